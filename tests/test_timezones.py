"""Tests for timezone validation and resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from brainbot.dispatcher.nlp import extract_timezone_from_text
from brainbot.scheduler.timezones import (
    is_valid_timezone,
    normalize_tz,
    resolve_offset_seconds,
    tzinfo_for,
)


class TestNormalize:
    def test_alias_is_case_insensitive(self) -> None:
        assert normalize_tz(" Asia/Kolkata ") == "IST-5:30"
        assert normalize_tz("utc") == "UTC0"

    def test_unknown_passes_through(self) -> None:
        assert normalize_tz("Europe/Paris") == "Europe/Paris"


class TestResolveOffset:
    @pytest.mark.parametrize(
        "value, seconds",
        [
            ("UTC+5:30", 19800),
            ("gmt-3", -10800),
            ("UTC+05:00", 18000),
            ("IST-5:30", 19800),
            ("EST5EDT,M3.2.0,M11.1.0", -18000),
            ("UTC0", 0),
        ],
    )
    def test_offsets(self, value: str, seconds: int) -> None:
        assert resolve_offset_seconds(value) == seconds

    @pytest.mark.parametrize("value", ["", "UTC+15", "nonsense", "12"])
    def test_unusable(self, value: str) -> None:
        assert resolve_offset_seconds(value) is None


class TestIsValid:
    @pytest.mark.parametrize(
        "value",
        [
            "Asia/Kolkata",
            "Europe/Paris",
            "America/Argentina/Buenos_Aires",
            "UTC+5:30",
            "IST-5:30",
            "gmt",
            "CET-1CEST,M3.5.0,M10.5.0/3",
            "<+04>-4",
        ],
    )
    def test_accepted(self, value: str) -> None:
        assert is_valid_timezone(value)

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "Mars/Olympus",
            "not a zone",
            "x" * 64,
            "banana",
            "task1",
            "abc5xyz",
            "IST-5:30junk!",
            "UTC+٥",
        ],
    )
    def test_rejected(self, value: str) -> None:
        assert not is_valid_timezone(value)

    def test_plain_word_is_not_a_timezone_reply(self) -> None:
        assert extract_timezone_from_text("task1") is None


class TestTzinfoFor:
    def test_iana_keeps_dst(self) -> None:
        tz = tzinfo_for("Europe/Berlin")
        assert isinstance(tz, ZoneInfo)
        summer = datetime(2025, 7, 1, 12, tzinfo=tz)
        assert summer.utcoffset() == timedelta(hours=2)

    def test_posix_rule_becomes_fixed_offset(self) -> None:
        tz = tzinfo_for("IST-5:30")
        assert datetime(2025, 1, 1, tzinfo=tz).utcoffset() == timedelta(hours=5, minutes=30)

    def test_empty_is_utc(self) -> None:
        assert datetime(2025, 1, 1, tzinfo=tzinfo_for("")).utcoffset() == timedelta(0)

    def test_garbage_falls_back_to_utc(self) -> None:
        assert tzinfo_for("banana") is timezone.utc
