"""Command for configuration and remote window status."""

from __future__ import annotations

from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..configuration import ConfigurationError, build_settings
from ..slash_commands import SlashCommand, SlashCommandContext
from ..sync import LogStore, ReconciliationLog, SyncError
from .publish import resolve_store

DEFAULT_MAX_ROWS = 5


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    config = context.config
    show_all = any(arg.strip().lower() in {"--all", "-a", "all"} for arg in args)

    log: Optional[ReconciliationLog] = None
    log_error = ""
    log_key = ""
    try:
        settings = build_settings(config)
        log_store = LogStore(resolve_store(context, settings), settings.upload_path)
        log_key = log_store.key
        log = log_store.fetch()
    except ConfigurationError:
        log_error = "configuration not ready"
    except SyncError as exc:
        log_error = str(exc)

    def _render_summary(console: Console) -> None:
        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        store = config.section("store")
        publish = config.section("publish")
        info.add_row("Project", escape(str(config.project_dir)))
        info.add_row("Status", config.status)
        info.add_row("Config files", str(len(config.files_loaded)))
        info.add_row("Log path", escape(str(config.log_path or "(not initialized)")))
        info.add_row("Backend", str(store.get("backend", "")))
        info.add_row("Upload path", escape(str(publish.get("upload_path", ""))))
        info.add_row("Concurrency", str(publish.get("concurrency", "")))

        console.print(Panel(info, title="Publisher Status", border_style="green", padding=(0, 1)))

    def _render_diagnostics(console: Console) -> None:
        if not config.diagnostics:
            console.print(Panel("[green]No diagnostics reported.", title="Diagnostics", border_style="red"))
            return

        diag_table = Table(show_header=True, header_style="bold red", box=box.SIMPLE, pad_edge=False)
        diag_table.add_column("Lvl", style="red", no_wrap=True)
        diag_table.add_column("Message", overflow="fold", ratio=2)

        max_rows = len(config.diagnostics) if show_all else DEFAULT_MAX_ROWS
        for diag in config.diagnostics[:max_rows]:
            diag_table.add_row(diag.level.upper(), escape(diag.message))
        console.print(Panel(diag_table, title="Diagnostics", border_style="red", padding=(0, 1)))
        if len(config.diagnostics) > max_rows:
            console.print(
                f"[dim]Showing {max_rows}/{len(config.diagnostics)}. Use 'status --all' for the full list.[/dim]"
            )

    def _render_window(console: Console) -> None:
        if log_error:
            console.print(Panel(f"[yellow]{escape(log_error)}", title="Window", border_style="blue"))
            return
        if log is None:
            console.print(
                Panel("No reconciliation log yet; the next publish uploads everything.", title="Window", border_style="blue")
            )
            return

        window = Table(show_header=True, header_style="bold blue", box=box.SIMPLE, pad_edge=False)
        window.add_column("Generation", style="cyan", no_wrap=True)
        window.add_column("Files", justify="right")
        window.add_column("Sample", overflow="fold", ratio=2)
        window.add_row("current", str(len(log.current)), escape(_sample(sorted(log.current), show_all)))
        window.add_row("previous", str(len(log.previous)), escape(_sample(sorted(log.previous), show_all)))

        console.print(Panel(window, title=f"Window ({escape(log_key)})", border_style="blue", padding=(0, 1)))
        console.print(f"Last published: {log.published_at or '(unknown)'}")

    def _render(console: Console) -> None:
        _render_summary(console)
        _render_diagnostics(console)
        _render_window(console)

    return context.render(_render)


def _sample(names: Sequence[str], show_all: bool) -> str:
    if show_all or len(names) <= DEFAULT_MAX_ROWS:
        return ", ".join(names) or "-"
    return ", ".join(names[:DEFAULT_MAX_ROWS]) + f", ... (+{len(names) - DEFAULT_MAX_ROWS})"


COMMAND = SlashCommand(
    name="status",
    description="Show configuration diagnostics and the live artifact window.",
    usage="status [--all]",
    handler=_handler,
)
