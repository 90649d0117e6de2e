"""File-backed cron store with missed-job reconstruction."""

from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path

from loguru import logger

from .parser import CronParseError, matches, parse_line, render, to_croniter_expression
from .types import WILDCARD, CronJob, MissedJob


SEED_HEADER = (
    "# Cron jobs, one per line: <minute> <hour> <day> <month> <weekday> | <command>\n"
    "# Example: 0 9 * * * | good morning\n"
    "# Use * or ? as a wildcard. All five fields must match for a job to fire.\n"
    "# Bounds: minute 0-59, hour 0-23, day 1-31, month 1-12, weekday 0-6 (0=Sunday)\n"
    "# Lines starting with # are ignored.\n"
    "\n"
)

CLEARED_HEADER = (
    "# Cron jobs, one per line: <minute> <hour> <day> <month> <weekday> | <command>\n"
    "# Example: 0 9 * * * | good morning\n"
    "# Use * or ? as a wildcard.\n"
    "\n"
)


def calendar_fields(moment: datetime) -> tuple[int, int, int, int, int]:
    """(hour, minute, day, month, weekday) with weekday 0 = Sunday."""
    return (
        moment.hour,
        moment.minute,
        moment.day,
        moment.month,
        moment.isoweekday() % 7,
    )


class CronStore:
    """Ordered list of cron jobs mirrored from ``cron.md``.

    The text file is the source of truth. Jobs are appended to it as they
    are added; the in-memory cache is rebuilt from it on load.
    """

    def __init__(self, data_dir: str | Path, max_jobs: int = 16) -> None:
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self.max_jobs = max_jobs
        self._jobs: list[CronJob] = []
        self._load()

    @property
    def path(self) -> Path:
        return self._dir / "cron.md"

    @property
    def last_check_path(self) -> Path:
        return self._dir / "cron_lastcheck.txt"

    def _load(self) -> None:
        if not self.path.exists():
            self.path.write_text(SEED_HEADER, encoding="utf-8")
            logger.info(f"Seeded cron file at {self.path}")

        self._jobs = []
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), 1):
            try:
                job = parse_line(line)
            except CronParseError as e:
                logger.warning(f"Skipping invalid cron line {lineno}: {e}")
                continue
            if job is None:
                continue
            if len(self._jobs) >= self.max_jobs:
                logger.warning(f"Cron file holds more than {self.max_jobs} jobs, ignoring the rest")
                break
            self._jobs.append(job)
        logger.debug(f"Loaded {len(self._jobs)} cron jobs")

    def reload(self) -> None:
        self._load()

    def jobs(self) -> list[CronJob]:
        return list(self._jobs)

    def count(self) -> int:
        return len(self._jobs)

    def content(self) -> str:
        """Raw file content."""
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read cron file: {e}")
            return ""

    def add(self, line: str) -> CronJob:
        """Validate and append a job. Raises CronParseError on any failure."""
        job = parse_line(line)
        if job is None:
            raise CronParseError("Empty cron line")
        if len(self._jobs) >= self.max_jobs:
            raise CronParseError(f"Maximum cron jobs reached ({self.max_jobs})")

        existing = self.path.read_text(encoding="utf-8") if self.path.exists() else SEED_HEADER
        if existing and not existing.endswith("\n"):
            existing += "\n"
        self.path.write_text(existing + render(job) + "\n", encoding="utf-8")
        self._jobs.append(job)
        logger.info(f"Added cron job: {render(job)}")
        return job

    def clear(self) -> None:
        self.path.write_text(CLEARED_HEADER, encoding="utf-8")
        self._jobs = []
        logger.info("Cleared cron jobs")

    # ------------------------------------------------------------------
    # Last check bookkeeping
    # ------------------------------------------------------------------

    def last_check(self) -> int:
        """Epoch seconds of the last completed check, 0 when unknown."""
        try:
            return int(self.last_check_path.read_text().strip() or 0)
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable cron last-check file: {e}")
            return 0

    def update_last_check(self, epoch: int) -> None:
        try:
            self.last_check_path.write_text(f"{int(epoch)}\n")
        except OSError as e:
            logger.error(f"Failed to persist cron last-check: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def due(self, moment: datetime) -> list[CronJob]:
        """Jobs matching the calendar minute of ``moment``."""
        hour, minute, day, month, weekday = calendar_fields(moment)
        return [j for j in self._jobs if matches(j, hour, minute, day, month, weekday)]

    def check_missed(
        self,
        now: int,
        tz: tzinfo,
        max_jobs: int = 10,
        lookback_hours: int = 48,
    ) -> list[MissedJob]:
        """Reconstruct fires that should have happened since the last check.

        Walks every minute boundary after the stored last-check and before
        the minute containing ``now``; the current minute belongs to the
        regular check. Jobs with a wildcard minute are never replayed.
        At most ``max_jobs`` fires are returned, oldest first.
        """
        last = self.last_check()
        if last <= 0 or last >= now:
            return []

        start = max(last, now - lookback_hours * 3600)
        t = (start // 60) * 60
        if t <= start:
            t += 60
        current_minute = (now // 60) * 60

        candidates = [j for j in self._jobs if j.minute != WILDCARD]
        missed: list[MissedJob] = []
        while t < current_minute and len(missed) < max_jobs:
            moment = datetime.fromtimestamp(t, tz)
            hour, minute, day, month, weekday = calendar_fields(moment)
            for job in candidates:
                if matches(job, hour, minute, day, month, weekday):
                    missed.append(
                        MissedJob(job.command, hour, minute, day, month, weekday)
                    )
                    if len(missed) >= max_jobs:
                        break
            t += 60
        return missed

    def next_fire(self, job: CronJob, after: datetime, limit: int = 64) -> datetime | None:
        """Next local time the job fires, for previews.

        croniter treats day and weekday as OR when both are set, so its
        candidates are filtered through ``matches``.
        """
        from croniter import croniter

        try:
            it = croniter(to_croniter_expression(job), after)
            for _ in range(limit):
                candidate = it.get_next(datetime)
                if matches(job, *calendar_fields(candidate)):
                    return candidate
        except (ValueError, KeyError) as e:
            logger.debug(f"No preview for {job.command}: {e}")
        return None

    def describe(self, now: datetime) -> str:
        """Human-readable job list with next fire times."""
        if not self._jobs:
            return "No cron jobs"
        lines = [f"Cron jobs ({len(self._jobs)}/{self.max_jobs}):"]
        for i, job in enumerate(self._jobs, 1):
            nxt = self.next_fire(job, now)
            when = nxt.strftime("%Y-%m-%d %H:%M") if nxt else "unknown"
            lines.append(f"{i}. {render(job)}  (next: {when})")
        return "\n".join(lines)
