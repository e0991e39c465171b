# assetwindow/app.py
"""
Command-line entry point for publishing build artifacts.

Configuration is loaded once, frozen into settings by the commands that need
them, and never consulted again through globals.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .commands import COMMANDS
from .configuration import (
    ConfigurationBundle,
    Diagnostic,
    load_runtime_configuration,
    resolve_project_dir,
)
from .logging_utils import setup_logging
from .slash_commands import CommandRouter

LOG_LEVEL_ENV = "ASSETWINDOW_LOG_LEVEL"
logger = logging.getLogger("assetwindow")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetwindow",
        description="Publish hashed build artifacts while keeping the previous generation live.",
    )
    parser.add_argument(
        "--project",
        type=Path,
        default=None,
        help="Project directory holding .assetwindow.yml. Defaults to $ASSETWINDOW_PROJECT_DIR or the cwd.",
    )
    parser.add_argument(
        "--upload-path",
        default=None,
        help="Key prefix under which artifacts are stored.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum number of store operations in flight.",
    )
    parser.add_argument(
        "--match",
        action="append",
        default=None,
        help="Glob pattern for release files; prefix with '!' to exclude. Repeatable.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log verbosity level.",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Render plain text output.",
    )
    parser.add_argument("command", nargs="?", default="help", help="publish, plan, status or help.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Command arguments.")
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate CLI flags into a configuration override mapping."""

    publish: Dict[str, Any] = {}
    if args.upload_path is not None:
        publish["upload_path"] = args.upload_path
    if args.concurrency is not None:
        publish["concurrency"] = args.concurrency
    if args.match:
        publish["match_files"] = list(args.match)

    overrides: Dict[str, Any] = {}
    if publish:
        overrides["publish"] = publish
    if args.log_level:
        overrides["logging"] = {"level": args.log_level}
    return overrides


def build_router(
    config_bundle: ConfigurationBundle,
    metadata: Optional[Dict[str, Any]] = None,
) -> CommandRouter:
    router = CommandRouter(config_bundle, metadata=metadata)
    for command in COMMANDS:
        router.register(command)
    return router


def configure_logging(config_bundle: ConfigurationBundle) -> None:
    """Set up log handlers once the project directory is known to exist."""

    if config_bundle.status == "missing":
        return

    logging_config = config_bundle.section("logging")
    env_level = os.environ.get(LOG_LEVEL_ENV)
    level_name = (env_level or logging_config.get("level") or "INFO").upper()
    log_path = setup_logging(
        config_bundle.project_dir,
        level_name,
        structured=bool(logging_config.get("structured", False)),
    )
    config_bundle.log_path = log_path
    if not _log_path_within_project(log_path, config_bundle.project_dir):
        config_bundle.diagnostics.append(
            Diagnostic(
                level="warning",
                message=(
                    "Project log directory is not writable; "
                    f"logging to fallback path '{log_path}'."
                ),
                source=log_path,
            )
        )
    logger.debug("Logging initialized at %s", log_path)


def _log_path_within_project(log_path: Path, project_dir: Path) -> bool:
    try:
        log_path.relative_to(project_dir)
        return True
    except ValueError:
        return False


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for `python -m assetwindow` and the console script."""

    args = build_parser().parse_args(argv)
    project_dir = args.project or resolve_project_dir()
    config_bundle = load_runtime_configuration(project_dir, cli_overrides(args))
    configure_logging(config_bundle)

    router = build_router(config_bundle, metadata={"styled": not args.no_color})
    command_args: List[str] = list(args.args)
    output = router.handle(args.command, command_args)
    print(output)
    return router.exit_status


__all__ = ["build_parser", "build_router", "cli_overrides", "configure_logging", "main"]
