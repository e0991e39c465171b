"""Command for publishing a build output directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..build import resolve_public_path, scan_build_output, unfingerprinted
from ..configuration import ConfigurationError, PublishSettings, build_settings
from ..slash_commands import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, SlashCommand, SlashCommandContext
from ..sync import ObjectStore, SyncError, SyncOutcome, build_store, run_publish

logger = logging.getLogger("assetwindow.commands.publish")

MAX_LISTED = 10


def prepare_release(
    context: SlashCommandContext,
    args: List[str],
    command: str,
) -> Tuple[Optional[PublishSettings], Dict[str, Path], str]:
    """Resolve settings and the matched release set for a build directory.

    Returns ``(settings, release, error)``; ``error`` is empty on success.
    """

    if not args:
        context.set_exit_status(EXIT_FAILED)
        return None, {}, f"[{command}] Usage: {command} <build_dir>"

    try:
        settings = build_settings(context.config)
    except ConfigurationError as exc:
        context.set_exit_status(EXIT_CONFIG)
        return None, {}, f"[{command}] {exc}"

    build_dir = Path(args[0])
    if not build_dir.is_absolute():
        build_dir = context.config.project_dir / build_dir
    try:
        output = scan_build_output(build_dir)
    except (FileNotFoundError, NotADirectoryError) as exc:
        context.set_exit_status(EXIT_FAILED)
        return None, {}, f"[{command}] {exc}"

    release = output.select(settings.match_files)
    logger.info("%d of %d emitted file(s) selected for release", len(release), len(output.files))

    if settings.warn_unfingerprinted:
        plain = unfingerprinted(release)
        if plain:
            logger.warning(
                "%d file(s) have no content hash in their name and will not be re-uploaded "
                "when their content changes: %s",
                len(plain),
                ", ".join(plain[:MAX_LISTED]),
            )

    return settings, release, ""


def resolve_store(context: SlashCommandContext, settings: PublishSettings) -> ObjectStore:
    store = context.metadata.get("store")
    return store if store is not None else build_store(settings)


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    """Publish a build output directory."""

    settings, release, error = prepare_release(context, args, "publish")
    if settings is None:
        return error

    try:
        outcome = run_publish(settings, release, store=resolve_store(context, settings))
    except (SyncError, OSError, ValueError) as exc:
        logger.exception("Publish aborted")
        context.set_exit_status(EXIT_FAILED)
        return f"[publish] Publish aborted: {exc}"

    context.set_exit_status(EXIT_OK if outcome.ok else EXIT_FAILED)
    public_path = resolve_public_path(settings.bucket_domain, settings.upload_path)
    return context.render(lambda console: _render_outcome(console, outcome, public_path))


def _render_outcome(console: Console, outcome: SyncOutcome, public_path: str) -> None:
    summary = Table.grid(padding=(0, 1))
    summary.add_column("Key", style="bold", no_wrap=True)
    summary.add_column("Value", overflow="fold")
    summary.add_row("Result", outcome.final_state.value.upper())
    summary.add_row("Public path", escape(public_path))
    summary.add_row("Log", outcome.log_status)
    summary.add_row("Uploaded", str(len(outcome.uploaded)))
    summary.add_row("Deleted", str(len(outcome.deleted)))
    summary.add_row("Skipped deletes", str(len(outcome.skipped_deletes)))
    summary.add_row("Failed", str(len(outcome.failed)))
    summary.add_row("Log written", "yes" if outcome.log_written else "no")
    if outcome.error is not None:
        summary.add_row("Error", escape(str(outcome.error)))

    console.print(
        Panel(
            summary,
            title="Publish",
            border_style="green" if outcome.ok else "red",
            padding=(0, 1),
        )
    )

    sections = [
        ("Uploaded", "green", outcome.uploaded),
        ("Deleted", "blue", outcome.deleted),
        ("Skipped deletes", "yellow", outcome.skipped_deletes),
        ("Failed uploads", "red", outcome.failed),
    ]
    for title, style, names in sections:
        if not names:
            continue
        table = Table(show_header=False, box=box.SIMPLE, pad_edge=False)
        table.add_column(title, style=style, overflow="fold")
        for name in names[:MAX_LISTED]:
            table.add_row(escape(name))
        console.print(f"[{style}]{title}:[/{style}]")
        console.print(table)
        if len(names) > MAX_LISTED:
            console.print(f"  ... and {len(names) - MAX_LISTED} more")


COMMAND = SlashCommand(
    name="publish",
    description="Upload new artifacts, purge expired ones and advance the window.",
    usage="publish <build_dir>",
    handler=_handler,
    requires_ready=True,
)
