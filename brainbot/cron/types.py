"""Cron job data types."""

from __future__ import annotations

from dataclasses import dataclass

# Sentinel stored in a field parsed from "*" or "?"
WILDCARD = -1

# (name, low, high) in line order
FIELD_BOUNDS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 6),
)


@dataclass
class CronJob:
    """A calendar-pattern job. Weekday 0 is Sunday."""

    minute: int
    hour: int
    day: int
    month: int
    weekday: int
    command: str

    @property
    def fields(self) -> tuple[int, int, int, int, int]:
        return (self.minute, self.hour, self.day, self.month, self.weekday)


@dataclass
class MissedJob:
    """A cron fire that should have happened while nobody was checking."""

    command: str
    hour: int
    minute: int
    day: int
    month: int
    weekday: int

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"
