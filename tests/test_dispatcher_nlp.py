"""Tests for the free-form text heuristics."""

from __future__ import annotations

import pytest

from brainbot.dispatcher import nlp


class TestNormalizeCommand:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/status", "status"),
            ("/status@my_bot", "status"),
            ("/task_add@my_bot buy milk", "task_add buy milk"),
            ("  task_list  ", "task_list"),
            ("email a@b.co", "email a@b.co"),
            ("/", ""),
        ],
    )
    def test_cases(self, raw: str, expected: str) -> None:
        assert nlp.normalize_command(raw) == expected


class TestTimeParsing:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("6 am", (6, 0)),
            ("at 6:15pm", (18, 15)),
            ("12 am", (0, 0)),
            ("12 pm", (12, 0)),
            ("18:30", (18, 30)),
            ("evening 7", (19, 0)),
            ("morning 6", (6, 0)),
            ("16 pm", (16, 0)),
        ],
    )
    def test_recognized(self, text: str, expected: tuple[int, int]) -> None:
        assert nlp.parse_time_from_natural(text) == expected

    @pytest.mark.parametrize("text", ["buy 3 apples", "25:00", "", "evening"])
    def test_rejected(self, text: str) -> None:
        assert nlp.parse_time_from_natural(text) is None

    def test_hhmm_validation(self) -> None:
        assert nlp.is_valid_hhmm("00:00")
        assert nlp.is_valid_hhmm("23:59")
        assert not nlp.is_valid_hhmm("24:00")
        assert not nlp.is_valid_hhmm("7:30")
        assert not nlp.is_valid_hhmm("07:60")
        assert not nlp.is_valid_hhmm("\u0660\u0667:\u0663\u0660")


class TestNaturalReminder:
    def test_send_form(self) -> None:
        assert nlp.parse_natural_daily_reminder("6 am send pls wake up") == ("06:00", "pls wake up")

    def test_needs_daily_marker_unless_assumed(self) -> None:
        assert nlp.parse_natural_daily_reminder("remind me at 7 pm to call mom") is None
        parsed = nlp.parse_natural_daily_reminder("remind me at 7 pm to call mom", assume_daily=True)
        assert parsed is not None
        assert parsed[0] == "19:00"

    def test_default_message(self) -> None:
        assert nlp.parse_natural_daily_reminder("send at 7 am") == ("07:00", "pls wake up")

    def test_no_time(self) -> None:
        assert nlp.parse_natural_daily_reminder("send it daily") is None


class TestTimeChange:
    def test_change_reminder(self) -> None:
        assert nlp.parse_natural_time_change("change the reminder to 7:45 am") == "07:45"

    def test_needs_target(self) -> None:
        assert nlp.parse_natural_time_change("change my mind at 7 am") is None


class TestNaturalWebjob:
    def test_news(self) -> None:
        assert nlp.parse_natural_daily_webjob("send me ai news every day at 8 am") == (
            "08:00",
            "ai news",
        )

    def test_requires_daily_and_topic(self) -> None:
        assert nlp.parse_natural_daily_webjob("send me ai news at 8 am") is None
        assert nlp.parse_natural_daily_webjob("every day at 8 am stretch") is None


class TestWebQuery:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("search for cricket matches today", "cricket matches today"),
            ("Look up the weather in Pune", "the weather in pune"),
            ("what is the latest news on rust", "what is the latest news on rust"),
            ("could you search for cheap flights", "cheap flights"),
            ("search the web", None),
            ("what is love", None),
            ("what are the news every day", None),
        ],
    )
    def test_cases(self, text: str, expected: str | None) -> None:
        assert nlp.extract_web_query(text) == expected


class TestWebFilesTopic:
    def test_landing_page_for_topic(self) -> None:
        assert nlp.extract_web_files_topic("make a landing page for bakery and send files") == "bakery"

    def test_html_css_without_topic(self) -> None:
        assert nlp.extract_web_files_topic("build html and css") == "mini demo"

    def test_not_a_build_request(self) -> None:
        assert nlp.extract_web_files_topic("what is html") is None

    def test_topic_sanitized(self) -> None:
        assert nlp.sanitize_web_topic("<b>cafe!</b>") == "bcafeb"
        assert nlp.sanitize_web_topic("!!!") == "mini demo"


class TestTimezoneReply:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("india", "Asia/Kolkata"),
            ("IST", "Asia/Kolkata"),
            ("my timezone is UTC+2", "UTC+2"),
            ("Europe/Berlin", "Europe/Berlin"),
            ("tz Nowhere/Land", None),
            ("hello there", None),
        ],
    )
    def test_cases(self, text: str, expected: str | None) -> None:
        assert nlp.extract_timezone_from_text(text) == expected


class TestLedAndIntents:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("flash_led", 3),
            ("flash_led 5", 5),
            ("blink led 2", 2),
            ("flash_led x", -1),
            ("flash the blue led 7 times", 7),
            ("please blink blue led", 3),
            ("status", 0),
        ],
    )
    def test_led_count(self, text: str, expected: int) -> None:
        assert nlp.parse_led_flash_count(text) == expected

    def test_hosting(self) -> None:
        assert nlp.wants_hosting("host it")
        assert nlp.wants_hosting("deploy that page")
        assert not nlp.wants_hosting("host")
        assert not nlp.wants_hosting("what is hosting")

    def test_firmware(self) -> None:
        assert nlp.wants_firmware_update("check for firmware update")
        assert nlp.wants_firmware_update("check for updates")
        assert not nlp.wants_firmware_update("update the reminder")
