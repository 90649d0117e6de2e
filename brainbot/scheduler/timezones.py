"""Timezone aliases, offset parsing and tzinfo resolution."""

from __future__ import annotations

import re
from datetime import timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger


DEFAULT_TZ = "UTC0"
MAX_TZ_CHARS = 63

# Common names -> POSIX TZ rule strings
TZ_ALIASES: dict[str, str] = {
    "asia/kolkata": "IST-5:30",
    "asia/calcutta": "IST-5:30",
    "india": "IST-5:30",
    "ist": "IST-5:30",
    "utc": "UTC0",
    "etc/utc": "UTC0",
    "gmt": "UTC0",
    "america/new_york": "EST5EDT,M3.2.0,M11.1.0",
    "america/chicago": "CST6CDT,M3.2.0,M11.1.0",
    "america/denver": "MST7MDT,M3.2.0,M11.1.0",
    "america/los_angeles": "PST8PDT,M3.2.0,M11.1.0",
    "europe/london": "GMT0BST,M3.5.0/1,M10.5.0",
    "europe/berlin": "CET-1CEST,M3.5.0,M10.5.0/3",
    "asia/tokyo": "JST-9",
}

# UTC+5:30, GMT-3, utc+05:00
_HUMAN_OFFSET = re.compile(r"^(?:utc|gmt)\s*([+-])\s*([0-9]{1,2})(?::?([0-9]{2}))?$", re.IGNORECASE)
# IST-5:30, EST5EDT,M3.2.0,M11.1.0, UTC0, <+04>-4
_POSIX_NAME = r"(?:[A-Z]{3,6}|<[A-Za-z0-9+-]+>)"
_POSIX_OFFSET = re.compile(
    rf"^{_POSIX_NAME}([+-]?)([0-9]{{1,2}})(?::([0-9]{{2}}))?"
    rf"(?:{_POSIX_NAME}(?:[+-]?[0-9]{{1,2}}(?::[0-9]{{2}})?)?(?:,[A-Za-z0-9./:+-]+){{0,2}})?$"
)
# Area/City with an optional third component
_IANA_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_+-]*(?:/[A-Za-z0-9_+-]+){1,2}$")


def normalize_tz(value: str) -> str:
    """Map a user-facing zone name to the rule string applied internally."""
    text = value.strip()
    return TZ_ALIASES.get(text.lower(), text)


def resolve_offset_seconds(value: str) -> int | None:
    """Standard UTC offset in seconds for an offset or POSIX rule string.

    ``UTC+5:30`` and ``GMT-3`` use the human sign. POSIX rules such as
    ``IST-5:30`` count hours west of Greenwich, so their sign is reversed.
    Returns None when the string carries no usable offset.
    """
    text = value.strip()
    if not text:
        return None

    m = _HUMAN_OFFSET.match(text)
    if m:
        sign = -1 if m.group(1) == "-" else 1
        hours, minutes = int(m.group(2)), int(m.group(3) or 0)
        if hours > 14 or minutes > 59:
            return None
        return sign * (hours * 3600 + minutes * 60)

    m = _POSIX_OFFSET.match(text)
    if m:
        hours, minutes = int(m.group(2)), int(m.group(3) or 0)
        if hours > 24 or minutes > 59:
            return None
        west = -1 if m.group(1) == "-" else 1
        return -west * (hours * 3600 + minutes * 60)

    return None


def _zoneinfo(name: str) -> ZoneInfo | None:
    if not _IANA_NAME.match(name):
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def is_valid_timezone(value: str) -> bool:
    """Whether ``timezone_set`` should accept the string."""
    text = value.strip()
    if not text or len(text) > MAX_TZ_CHARS or " " in text:
        return False
    if text.lower() in TZ_ALIASES:
        return True
    if _zoneinfo(text) is not None:
        return True
    return resolve_offset_seconds(text) is not None


def tzinfo_for(value: str) -> tzinfo:
    """tzinfo for a stored timezone; IANA names keep their DST rules."""
    text = value.strip() or DEFAULT_TZ
    zone = _zoneinfo(text)
    if zone is not None:
        return zone

    normalized = normalize_tz(text)
    offset = resolve_offset_seconds(normalized)
    if offset is None:
        logger.warning(f"Unrecognized timezone '{text}', falling back to UTC")
        return timezone.utc
    return timezone(timedelta(seconds=offset), name=normalized)
