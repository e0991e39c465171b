"""Unit tests for the command registry."""

from __future__ import annotations

from pathlib import Path
from typing import List

from assetwindow.configuration import ConfigurationBundle, Diagnostic
from assetwindow.slash_commands import (
    EXIT_CONFIG,
    EXIT_FAILED,
    EXIT_OK,
    CommandRouter,
    SlashCommand,
    SlashCommandContext,
    render_help_table,
    render_rich,
)


def test_router_handles_registered_command(tmp_path: Path):
    config = ConfigurationBundle(project_dir=tmp_path, status="ready")
    router = CommandRouter(config)
    captured = {}

    def handler(context: SlashCommandContext, args: List[str]) -> str:
        captured["context"] = context
        return f"echo:{' '.join(args)}"

    router.register(SlashCommand(name="echo", description="Echo args", handler=handler))
    result = router.handle("ECHO", ["hello", "world"])

    assert result == "echo:hello world"
    assert captured["context"].config is config
    assert "echo" in router.command_names
    assert router.exit_status == EXIT_OK


def test_exit_status_resets_between_commands(tmp_path: Path):
    config = ConfigurationBundle(project_dir=tmp_path, status="ready")
    router = CommandRouter(config)

    def failing(context: SlashCommandContext, _: List[str]) -> str:
        context.set_exit_status(EXIT_FAILED)
        return "failed"

    router.register(SlashCommand(name="fail", description="Fail", handler=failing))
    router.register(SlashCommand(name="ok", description="Succeed", handler=lambda *_: "ok"))

    router.handle("fail", [])
    assert router.exit_status == EXIT_FAILED
    router.handle("ok", [])
    assert router.exit_status == EXIT_OK


def test_render_help_table_lists_commands():
    commands = [
        SlashCommand(name="status", description="Show status", handler=lambda *_: ""),
        SlashCommand(name="publish", description="Publish", usage="publish <build_dir>", handler=lambda *_: ""),
    ]

    output = render_help_table(commands, styles=False)

    assert "status" in output
    assert "Show status" in output
    assert "publish <build_dir>" in output


def test_render_rich_produces_ansi():
    def _render(console):
        console.print("hello", style="bold red")

    ansi = render_rich(_render)
    plain = render_rich(_render, styles=False)

    assert "\x1b[" in ansi  # contains ANSI escape sequence
    assert "\x1b[" not in plain
    assert plain.strip() == "hello"


def test_requires_ready_guard(tmp_path: Path):
    config = ConfigurationBundle(
        project_dir=tmp_path,
        status="invalid",
        diagnostics=[Diagnostic(level="error", message="bad bucket")],
    )
    router = CommandRouter(config)
    router.register(
        SlashCommand(
            name="needs_ready",
            description="Needs ready config",
            handler=lambda *_: "ok",
            requires_ready=True,
        )
    )

    result = router.handle("needs_ready", [])

    assert "requires a ready configuration" in result
    assert "bad bucket" in result
    assert router.exit_status == EXIT_CONFIG
