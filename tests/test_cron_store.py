"""Tests for the file-backed cron store and missed-job reconstruction."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from brainbot.cron.parser import CronParseError
from brainbot.cron.store import CronStore


def _epoch(hour: int, minute: int, second: int = 0, day: int = 6) -> int:
    # 2025-01-06 is a Monday
    return int(datetime(2025, 1, day, hour, minute, second, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def store(tmp_path: Path) -> CronStore:
    return CronStore(tmp_path, max_jobs=3)


class TestCronFile:
    """cron.md is the source of truth."""

    def test_seeded_on_first_use(self, store: CronStore) -> None:
        assert store.path.exists()
        assert store.content().startswith("# Cron jobs")
        assert store.count() == 0

    def test_add_appends_and_persists(self, store: CronStore, tmp_path: Path) -> None:
        store.add("0 9 * * * | good morning")
        assert "0 9 * * * | good morning" in store.path.read_text()

        reloaded = CronStore(tmp_path)
        assert [j.command for j in reloaded.jobs()] == ["good morning"]

    def test_invalid_lines_are_skipped_on_load(self, tmp_path: Path) -> None:
        (tmp_path / "cron.md").write_text(
            "# header\n0 9 * * * | ok\nnot a job\n99 9 * * * | bad\n30 6 * * 1 | monday\n"
        )
        store = CronStore(tmp_path)
        assert [j.command for j in store.jobs()] == ["ok", "monday"]

    def test_non_ascii_digit_line_is_skipped_on_load(self, tmp_path: Path) -> None:
        (tmp_path / "cron.md").write_text("\u00b2 9 * * * | hi\n0 9 * * * | ok\n", encoding="utf-8")
        store = CronStore(tmp_path)
        assert [j.command for j in store.jobs()] == ["ok"]

    def test_add_rejects_invalid(self, store: CronStore) -> None:
        with pytest.raises(CronParseError):
            store.add("0 9 * * *")
        with pytest.raises(CronParseError, match="Empty cron line"):
            store.add("# just a comment")
        assert store.count() == 0

    def test_capacity_is_enforced(self, store: CronStore) -> None:
        for i in range(3):
            store.add(f"{i} 9 * * * | job {i}")
        with pytest.raises(CronParseError, match="Maximum cron jobs reached \\(3\\)"):
            store.add("5 9 * * * | one too many")
        assert store.count() == 3

    def test_clear(self, store: CronStore) -> None:
        store.add("0 9 * * * | x")
        store.clear()
        assert store.count() == 0
        assert store.content().startswith("# Cron jobs")

    def test_due(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.add("0 9 * * 2 | tuesday only")
        monday_nine = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
        assert [j.command for j in store.due(monday_nine)] == ["morning"]


class TestLastCheck:
    def test_missing_file_is_zero(self, store: CronStore) -> None:
        assert store.last_check() == 0

    def test_round_trip(self, store: CronStore) -> None:
        store.update_last_check(1_736_150_400)
        assert store.last_check() == 1_736_150_400

    def test_garbage_is_zero(self, store: CronStore) -> None:
        store.last_check_path.write_text("yesterday\n")
        assert store.last_check() == 0


class TestCheckMissed:
    """Fires between the last check and the current minute are replayed."""

    def test_no_last_check_means_nothing_missed(self, store: CronStore) -> None:
        store.add("0 9 * * * | hi")
        assert store.check_missed(_epoch(9, 5), timezone.utc) == []

    def test_reconstructs_missed_fire(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.update_last_check(_epoch(8, 58, 30))

        missed = store.check_missed(_epoch(9, 2, 10), timezone.utc)

        assert len(missed) == 1
        assert missed[0].command == "morning"
        assert missed[0].label == "09:00"

    def test_current_minute_is_left_to_regular_check(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.update_last_check(_epoch(8, 58))
        assert store.check_missed(_epoch(9, 0, 30), timezone.utc) == []

    def test_last_checked_minute_is_not_replayed(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.update_last_check(_epoch(9, 0))
        assert store.check_missed(_epoch(9, 10), timezone.utc) == []

    def test_minute_wildcard_jobs_are_skipped(self, store: CronStore) -> None:
        store.add("* 9 * * * | every minute")
        store.update_last_check(_epoch(8, 55))
        assert store.check_missed(_epoch(9, 30), timezone.utc) == []

    def test_limited_to_max_jobs(self, tmp_path: Path) -> None:
        store = CronStore(tmp_path)
        store.add("0 * * * * | hourly")
        store.update_last_check(_epoch(0, 30))
        missed = store.check_missed(_epoch(23, 30), timezone.utc, max_jobs=4)
        assert [m.label for m in missed] == ["01:00", "02:00", "03:00", "04:00"]

    def test_lookback_window(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.update_last_check(_epoch(8, 0, day=1))
        missed = store.check_missed(_epoch(10, 0, day=6), timezone.utc, lookback_hours=24)
        assert len(missed) == 1

    def test_clock_behind_last_check(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        store.update_last_check(_epoch(12, 0))
        assert store.check_missed(_epoch(9, 30), timezone.utc) == []


class TestDescribe:
    def test_empty(self, store: CronStore) -> None:
        assert store.describe(datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)) == "No cron jobs"

    def test_next_fire_respects_weekday(self, store: CronStore) -> None:
        job = store.add("0 9 * * 3 | wednesday")
        nxt = store.next_fire(job, datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc))
        assert nxt is not None
        assert (nxt.day, nxt.hour, nxt.minute) == (8, 9, 0)

    def test_lists_jobs_with_next_time(self, store: CronStore) -> None:
        store.add("0 9 * * * | morning")
        text = store.describe(datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc))
        assert text.startswith("Cron jobs (1/3):")
        assert "1. 0 9 * * * | morning  (next: 2025-01-06 09:00)" in text
