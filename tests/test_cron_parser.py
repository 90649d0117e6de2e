"""Tests for cron line parsing, matching and rendering."""

from __future__ import annotations

import pytest

from brainbot.cron.parser import CronParseError, matches, parse_line, render, to_croniter_expression
from brainbot.cron.types import WILDCARD, CronJob


class TestParseLine:
    """``m h dom mon dow | command`` lines."""

    def test_basic_line(self) -> None:
        job = parse_line("0 9 * * * | good morning")
        assert job == CronJob(0, 9, WILDCARD, WILDCARD, WILDCARD, "good morning")

    def test_question_mark_is_wildcard(self) -> None:
        job = parse_line("30 7 ? * 1 | standup")
        assert job is not None
        assert job.day == WILDCARD
        assert job.weekday == 1

    def test_command_keeps_inner_pipes(self) -> None:
        job = parse_line("0 8 * * * | email_draft a@b.c|Hi|Body")
        assert job is not None
        assert job.command == "email_draft a@b.c|Hi|Body"

    @pytest.mark.parametrize("line", ["", "   ", "# comment", "  # indented comment"])
    def test_blank_and_comment_lines(self, line: str) -> None:
        assert parse_line(line) is None

    def test_missing_separator(self) -> None:
        with pytest.raises(CronParseError, match="Missing '\\|' separator"):
            parse_line("0 9 * * * good morning")

    def test_empty_command(self) -> None:
        with pytest.raises(CronParseError, match="Empty command"):
            parse_line("0 9 * * * |   ")

    def test_wrong_field_count(self) -> None:
        with pytest.raises(CronParseError, match="need 5 fields"):
            parse_line("0 9 * * | hi")

    @pytest.mark.parametrize(
        "line, message",
        [
            ("60 9 * * * | x", "minute: Value 60 out of range"),
            ("0 24 * * * | x", "hour: Value 24 out of range"),
            ("0 9 0 * * | x", "day: Value 0 out of range"),
            ("0 9 * 13 * | x", "month: Value 13 out of range"),
            ("0 9 * * 7 | x", "weekday: Value 7 out of range"),
        ],
    )
    def test_out_of_range(self, line: str, message: str) -> None:
        with pytest.raises(CronParseError, match=message):
            parse_line(line)

    def test_ranges_and_steps_are_rejected(self) -> None:
        with pytest.raises(CronParseError, match="Invalid numeric value"):
            parse_line("*/5 * * * * | ping")

    @pytest.mark.parametrize("field", ["\u00b2", "\u0661", "\uff19"])
    def test_non_ascii_digits_are_rejected(self, field: str) -> None:
        with pytest.raises(CronParseError, match=f"minute: Invalid numeric value: {field}"):
            parse_line(f"{field} 9 * * * | hi")


class TestMatches:
    """All five fields must match; wildcards match anything."""

    def test_exact_match(self) -> None:
        job = parse_line("0 9 * * * | hi")
        assert job is not None
        assert matches(job, hour=9, minute=0, day=15, month=6, weekday=3)
        assert not matches(job, hour=9, minute=1, day=15, month=6, weekday=3)

    def test_day_and_weekday_are_anded(self) -> None:
        job = parse_line("0 9 13 * 5 | friday the 13th")
        assert job is not None
        assert matches(job, 9, 0, 13, 6, 5)
        assert not matches(job, 9, 0, 13, 6, 4)
        assert not matches(job, 9, 0, 14, 6, 5)

    def test_all_wildcards_match_every_minute(self) -> None:
        job = parse_line("* * * * * | tick")
        assert job is not None
        assert matches(job, 23, 59, 31, 12, 6)


class TestRender:
    def test_round_trip_form(self) -> None:
        job = parse_line("5 18 ? 12 0 |  lights on ")
        assert job is not None
        assert render(job) == "5 18 * 12 0 | lights on"
        assert to_croniter_expression(job) == "5 18 * 12 0"
