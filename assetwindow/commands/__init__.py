"""Command registry."""

from __future__ import annotations

from .help import COMMAND as HELP_COMMAND
from .plan import COMMAND as PLAN_COMMAND
from .publish import COMMAND as PUBLISH_COMMAND
from .status import COMMAND as STATUS_COMMAND

COMMANDS = [
    STATUS_COMMAND,
    HELP_COMMAND,
    PLAN_COMMAND,
    PUBLISH_COMMAND,
]

__all__ = ["COMMANDS"]
