"""Command for previewing a publish without touching the store."""

from __future__ import annotations

from typing import List

from rich.console import Console
from rich.markup import escape

from ..slash_commands import EXIT_FAILED, SlashCommand, SlashCommandContext
from ..sync import PublishPlan, SyncError, run_plan
from .publish import MAX_LISTED, prepare_release, resolve_store


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    """Show what ``publish`` would upload and delete."""

    settings, release, error = prepare_release(context, args, "plan")
    if settings is None:
        return error

    try:
        plan = run_plan(settings, release, store=resolve_store(context, settings))
    except SyncError as exc:
        context.set_exit_status(EXIT_FAILED)
        return f"[plan] Could not read the reconciliation log: {exc}"

    return context.render(lambda console: _render_plan(console, plan, len(release)))


def _render_plan(console: Console, plan: PublishPlan, candidate_count: int) -> None:
    result = plan.reconciliation
    console.print(f"[bold]Publish plan[/bold] ({candidate_count} candidate files, log {plan.log_status})\n")
    console.print(f"Summary: {result.summary()}\n")

    if result.upload_set:
        console.print("[green]To Upload:[/green]")
        for name in result.uploads[:MAX_LISTED]:
            console.print(f"  + {escape(name)}")
        if len(result.upload_set) > MAX_LISTED:
            console.print(f"  ... and {len(result.upload_set) - MAX_LISTED} more")
        console.print()

    if result.delete_set:
        console.print("[yellow]To Delete:[/yellow]")
        for name in result.deletes[:MAX_LISTED]:
            console.print(f"  - {escape(name)}")
        if len(result.delete_set) > MAX_LISTED:
            console.print(f"  ... and {len(result.delete_set) - MAX_LISTED} more")
        console.print()

    if plan.next_log is None:
        console.print("Nothing new to publish; the window would not advance.")
    else:
        console.print(
            f"Window after publish: previous={len(plan.next_log.previous)} files, "
            f"current={len(plan.next_log.current)} files"
        )


COMMAND = SlashCommand(
    name="plan",
    description="Preview uploads and deletes for a build without changing the store.",
    usage="plan <build_dir>",
    handler=_handler,
    requires_ready=True,
)
