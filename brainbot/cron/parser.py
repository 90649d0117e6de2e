"""Parse, match and render cron lines of the form ``m h dom mon dow | command``."""

from __future__ import annotations

from .types import FIELD_BOUNDS, WILDCARD, CronJob


class CronParseError(ValueError):
    """Raised when a cron line cannot be parsed."""


def _parse_field(name: str, raw: str, low: int, high: int) -> int:
    if not raw:
        raise CronParseError(f"{name}: Empty field")
    if raw in ("*", "?"):
        return WILDCARD
    if not (raw.isascii() and raw.isdigit()):
        raise CronParseError(f"{name}: Invalid numeric value: {raw}")
    value = int(raw)
    if value < low or value > high:
        raise CronParseError(f"{name}: Value {value} out of range [{low}-{high}]")
    return value


def parse_line(line: str) -> CronJob | None:
    """Parse one cron line.

    Returns None for blank and ``#`` comment lines. Raises CronParseError
    for anything else that is not a valid job.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    if "|" not in text:
        raise CronParseError("Missing '|' separator in cron line")
    schedule, command = text.split("|", 1)
    command = command.strip()
    if not command:
        raise CronParseError("Empty command after '|'")

    parts = schedule.split()
    if len(parts) != len(FIELD_BOUNDS):
        raise CronParseError(
            "Invalid cron format (need 5 fields: min hour day month weekday)"
        )

    values = [
        _parse_field(name, raw, low, high)
        for raw, (name, low, high) in zip(parts, FIELD_BOUNDS)
    ]
    return CronJob(*values, command=command)


def _field_matches(value: int, actual: int) -> bool:
    return value == WILDCARD or value == actual


def matches(
    job: CronJob, hour: int, minute: int, day: int, month: int, weekday: int
) -> bool:
    """True when every field of the job matches the given calendar minute."""
    return (
        _field_matches(job.minute, minute)
        and _field_matches(job.hour, hour)
        and _field_matches(job.day, day)
        and _field_matches(job.month, month)
        and _field_matches(job.weekday, weekday)
    )


def render(job: CronJob) -> str:
    """Render a job back to its line form, e.g. ``0 9 * * * | good morning``."""
    fields = " ".join("*" if v == WILDCARD else str(v) for v in job.fields)
    return f"{fields} | {job.command}"


def to_croniter_expression(job: CronJob) -> str:
    """The schedule half of a job in standard five-field cron syntax."""
    return " ".join("*" if v == WILDCARD else str(v) for v in job.fields)
