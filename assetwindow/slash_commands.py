"""Shared command registry and rendering helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO
import shutil
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .configuration import ConfigurationBundle

SlashCommandHandler = Callable[["SlashCommandContext", List[str]], str]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


@dataclass
class SlashCommandContext:
    """Context passed into each command handler."""

    config: ConfigurationBundle
    router: "CommandRouter"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def styled(self) -> bool:
        return bool(self.metadata.get("styled", True))

    def set_exit_status(self, status: int) -> None:
        self.metadata["exit_status"] = status

    def render(self, render_fn: Callable[[Console], None]) -> str:
        return render_rich(render_fn, styles=self.styled)


@dataclass
class SlashCommand:
    """Metadata about a command."""

    name: str
    description: str
    handler: SlashCommandHandler
    usage: str = ""
    requires_ready: bool = False


class CommandRouter:
    """Registry + dispatcher for commands."""

    def __init__(
        self,
        config: ConfigurationBundle,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config = config
        self._commands: Dict[str, SlashCommand] = {}
        self.metadata = metadata or {}

    def register(self, command: SlashCommand) -> None:
        self._commands[command.name.lower()] = command

    def handle(self, command_name: str, args: List[str]) -> str:
        self.metadata["exit_status"] = EXIT_OK
        command = self._commands.get(command_name.lower())
        if command is None:
            self.metadata["exit_status"] = EXIT_FAILED
            return f"[router] Unknown command '{command_name}'. Run 'help' for the command list."
        if command.requires_ready and self.config.status != "ready":
            self.metadata["exit_status"] = EXIT_CONFIG
            errors = [diag.message for diag in self.config.diagnostics if diag.level == "error"]
            lines = [
                f"[router] '{command_name}' requires a ready configuration "
                f"(current status: {self.config.status})."
            ]
            lines.extend(f"  - {message}" for message in errors)
            return "\n".join(lines)
        context = SlashCommandContext(
            config=self.config,
            router=self,
            metadata=self.metadata,
        )
        return command.handler(context, args)

    @property
    def exit_status(self) -> int:
        return int(self.metadata.get("exit_status", EXIT_OK))

    @property
    def command_names(self) -> Sequence[str]:
        return sorted(self._commands.keys())

    def commands(self) -> Sequence[SlashCommand]:
        return [self._commands[name] for name in self.command_names]

    def get(self, command_name: str) -> Optional[SlashCommand]:
        return self._commands.get(command_name.lower())


def render_help_table(commands: Sequence[SlashCommand], styles: bool = True) -> str:
    """Render a help table listing commands."""

    def _render(console: Console) -> None:
        table = Table(title="Commands", show_header=True, header_style="bold cyan")
        table.add_column("Command", style="green", no_wrap=True)
        table.add_column("Usage")
        table.add_column("Description")
        for cmd in commands:
            table.add_row(cmd.name, cmd.usage or cmd.name, cmd.description)
        console.print(table)

    return render_rich(_render, styles=styles)


def render_rich(render_fn: Callable[[Console], None], styles: bool = True) -> str:
    """Render a Rich layout to a string without printing live."""

    terminal_size = shutil.get_terminal_size(fallback=(100, 24))
    # Clamp to a reasonable minimum so Rich does not choke on ultra-small widths.
    width = max(60, terminal_size.columns)
    height = max(10, terminal_size.lines)

    console = Console(
        record=True,
        force_terminal=styles,
        color_system="auto" if styles else None,
        width=width,
        height=height,
        file=StringIO(),
    )
    render_fn(console)
    return console.export_text(clear=False, styles=styles)


__all__ = [
    "EXIT_CONFIG",
    "EXIT_FAILED",
    "EXIT_OK",
    "SlashCommand",
    "SlashCommandContext",
    "CommandRouter",
    "render_help_table",
    "render_rich",
]
