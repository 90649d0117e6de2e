"""Expose the command dispatcher to the reasoning loop as a tool."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..dispatcher.nlp import normalize_command
from .base import Tool

if TYPE_CHECKING:
    from ..dispatcher.core import CommandDispatcher

# Commands the model may not trigger on its own
BLOCKED_WORDS = frozenset(
    {"confirm", "yes", "yep", "yeah", "y", "send_email", "safe_mode_off", "model_set"}
)
BLOCKED_PREFIXES = ("update ", "model set")


class DeviceCommandTool(Tool):
    """Run one device command, e.g. ``task_add buy milk`` or ``time_show``."""

    def __init__(self, dispatcher: CommandDispatcher):
        self._dispatcher = dispatcher

    @property
    def name(self) -> str:
        return "device_command"

    @property
    def description(self) -> str:
        return (
            "Run a device command and return its output. Examples: time_show, task_list, "
            "task_add <text>, remember <note>, memory, reminder_show, "
            "reminder_set_daily <HH:MM> <message>, timezone_show, health, usage, "
            "email_draft <to>|<subject>|<body>, cron_list, relay_set <pin> <0|1>. "
            "Risky commands only create a confirmation request for the user."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The full command line"},
            },
            "required": ["command"],
        }

    async def execute(self, command: str, **kwargs: Any) -> str:
        lc = normalize_command(command).lower()
        if lc.split(" ", 1)[0] in BLOCKED_WORDS or lc.startswith(BLOCKED_PREFIXES):
            return "Error: this command needs the user to type it"
        result = await self._dispatcher.execute(command)
        if not result.handled:
            return f"Error: unknown command '{command}'. Try help for the list."
        return result.output or "(no output)"
