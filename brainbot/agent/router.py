"""Cheap checks deciding when to ask the LLM to map text onto a command."""

from __future__ import annotations

ROUTE_PREFIXES = (
    "set ", "show ", "list ", "add ", "delete ", "clear ",
    "turn ", "switch ", "enable ", "disable ", "remind ", "schedule ",
    "search ", "look up ", "find ", "google ", "status", "health",
    "logs", "time", "timezone", "task ", "memory", "remember ",
    "forget", "flash ", "blink ", "led ", "sensor ", "relay ",
    "safe mode", "email ", "plan ", "confirm", "cancel", "create ",
    "build ", "make ", "generate ",
)
ROUTE_KEYWORDS = ("every day", "everyday", "daily", "at ", "reminder", "web search")


def should_try_route(message: str) -> bool:
    lc = message.strip().lower()
    if not lc or lc.startswith("/"):
        return False
    if lc.startswith(ROUTE_PREFIXES):
        return True
    return any(k in lc for k in ROUTE_KEYWORDS)


def extract_routed_command(raw: str, max_chars: int = 180) -> str:
    """Pull the command out of a router reply.

    Takes the first line only, drops backticks, an optional ``TOOL:``
    prefix and a leading ``/``. Returns "" for ``NONE`` or empty replies.
    """
    line = raw.strip().splitlines()[0] if raw.strip() else ""
    line = line.replace("`", "").strip()
    if line.upper().startswith("TOOL:"):
        line = line[5:].strip()
    line = line.lstrip("/").strip()
    if line.lower() in ("", "none"):
        return ""
    return line[:max_chars].strip()
