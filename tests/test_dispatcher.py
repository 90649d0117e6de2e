"""Tests for the command dispatcher: commands, confirmation and reminder flows."""

from __future__ import annotations

import pytest

from brainbot.dispatcher.core import HELP_TEXT, LAPSED_DRAFT_NOTE
from brainbot.dispatcher.state import AwaitingDetails, AwaitingTimezone, Idle
from brainbot.providers.base import ProviderError


async def run(dispatcher, text: str) -> str:
    result = await dispatcher.execute(text)
    assert result.handled, f"'{text}' was not handled"
    return result.output


class TestNormalization:
    """Command markers and bot suffixes are stripped before matching."""

    @pytest.mark.asyncio
    async def test_slash_and_bot_suffix(self, dispatcher) -> None:
        assert await run(dispatcher, "/status@brainbot_bot") == "OK: alive"
        assert await run(dispatcher, "/help") == HELP_TEXT

    @pytest.mark.asyncio
    async def test_case_insensitive(self, dispatcher) -> None:
        assert await run(dispatcher, "  STATUS ") == "OK: alive"

    @pytest.mark.asyncio
    async def test_empty_and_chatter_not_handled(self, dispatcher) -> None:
        assert not (await dispatcher.execute("")).handled
        assert not (await dispatcher.execute("tell me a joke about cats")).handled


class TestConfirmationProtocol:
    """Risky actions only run on a later ``confirm``."""

    @pytest.mark.asyncio
    async def test_relay_confirm_then_none(self, dispatcher) -> None:
        out = await run(dispatcher, "relay_set 5 1")
        assert out.startswith("CONFIRM relay_set pin 5 -> 1")
        action = dispatcher.pending.action
        assert action is not None
        assert f"Run: confirm {action.id}" in out
        assert dispatcher.hardware.pins == {}

        out = await run(dispatcher, f"confirm {action.id}")
        assert out == f"OK: relay pin 5 -> 1 (confirmed id={action.id})"
        assert dispatcher.hardware.pins[5] == 1

        assert await run(dispatcher, f"confirm {action.id}") == "ERR: no pending action"

    @pytest.mark.asyncio
    async def test_bare_confirm_uses_current_action(self, dispatcher) -> None:
        dispatcher.hardware.config.led_flash_ms = 0
        await run(dispatcher, "flash_led 2")
        out = await run(dispatcher, "confirm")
        assert out.startswith("OK: flashed blue LED 2x")

    @pytest.mark.asyncio
    async def test_id_mismatch_keeps_action(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 4 0")
        assert await run(dispatcher, "confirm 99") == "ERR: confirm id mismatch"
        assert dispatcher.pending.action is not None
        assert await run(dispatcher, "confirm abc") == "ERR: usage confirm [id]"

    @pytest.mark.asyncio
    async def test_only_one_pending_action(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 5 1")
        first = dispatcher.pending.action
        out = await run(dispatcher, "flash_led 3")
        assert out == f"ERR: pending action exists (id={first.id}). confirm/cancel first"
        assert dispatcher.pending.action == first

    @pytest.mark.asyncio
    async def test_expired_action(self, dispatcher, clock) -> None:
        await run(dispatcher, "relay_set 5 1")
        clock.advance(dispatcher.pending.confirm_ttl + 0.5)

        assert await run(dispatcher, "confirm 1") == "ERR: pending action expired"
        assert await run(dispatcher, "confirm 1") == "ERR: no pending action"
        assert dispatcher.hardware.pins == {}

    @pytest.mark.asyncio
    async def test_long_overdue_action_is_also_absent(self, dispatcher, clock) -> None:
        await run(dispatcher, "relay_set 5 1")
        clock.advance(86_400)
        assert "pending=none" in await run(dispatcher, "health")

    @pytest.mark.asyncio
    async def test_ids_increase(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 1 1")
        await run(dispatcher, "cancel")
        await run(dispatcher, "relay_set 1 1")
        assert dispatcher.pending.action.id == 2

    @pytest.mark.asyncio
    async def test_cancel(self, dispatcher) -> None:
        assert await run(dispatcher, "cancel") == "OK: no pending action"
        await run(dispatcher, "relay_set 5 1")
        assert await run(dispatcher, "cancel") == "OK: pending action canceled"
        assert isinstance(dispatcher.pending.state, Idle)

    @pytest.mark.asyncio
    async def test_usage_errors(self, dispatcher) -> None:
        assert await run(dispatcher, "relay_set 5") == "ERR: usage relay_set <pin> <0|1>"
        assert await run(dispatcher, "relay_set 5 2") == "ERR: usage relay_set <pin> <0|1>"
        assert await run(dispatcher, "relay_set 99 1") == "ERR: usage relay_set <pin> <0|1>"
        assert await run(dispatcher, "flash_led 50") == "ERR: usage flash_led [1-20]"
        assert await run(dispatcher, "flash_led abc") == "ERR: usage flash_led [1-20]"
        assert await run(dispatcher, "sensor_read x") == "ERR: usage sensor_read <pin>"
        assert await run(dispatcher, "sensor_read \u00b2") == "ERR: usage sensor_read <pin>"

    @pytest.mark.asyncio
    async def test_sensor_read_is_immediate(self, dispatcher) -> None:
        assert await run(dispatcher, "sensor_read 7") == "OK: sensor pin 7 = 0"
        assert dispatcher.pending.action is None

    @pytest.mark.asyncio
    async def test_natural_led_request(self, dispatcher) -> None:
        out = await run(dispatcher, "please blink the blue led 4 times")
        assert out.startswith("CONFIRM flash_led 4")


class TestSafeMode:
    """Safe mode blocks relay and LED actions, not firmware updates."""

    @pytest.mark.asyncio
    async def test_flash_blocked_without_pending(self, dispatcher) -> None:
        assert await run(dispatcher, "safe_mode_on") == "OK: safe mode ON (risky actions blocked)"
        assert await run(dispatcher, "flash_led 3") == "ERR: safe mode ON. flash_led blocked"
        assert await run(dispatcher, "relay_set 5 1") == "ERR: safe mode ON. relay_set blocked"
        assert dispatcher.pending.action is None

    @pytest.mark.asyncio
    async def test_enabling_clears_pending(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 5 1")
        await run(dispatcher, "safe_mode_on")
        assert dispatcher.pending.action is None

    @pytest.mark.asyncio
    async def test_gate_checked_again_at_confirm(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 5 1")
        dispatcher.settings.set_safe_mode(True)
        out = await run(dispatcher, "confirm")
        assert out == "ERR: safe mode ON. Disable with safe_mode_off first"
        assert dispatcher.hardware.pins == {}

    @pytest.mark.asyncio
    async def test_firmware_update_not_gated(self, dispatcher) -> None:
        await run(dispatcher, "safe_mode_on")
        out = await run(dispatcher, "update https://example.com/fw.bin")
        assert out.startswith("CONFIRM ")
        assert dispatcher.pending.action is not None

    @pytest.mark.asyncio
    async def test_show_and_off(self, dispatcher) -> None:
        assert await run(dispatcher, "safe_mode") == "Safe mode: OFF"
        await run(dispatcher, "safe_mode_on")
        assert await run(dispatcher, "safe_mode_off") == "OK: safe mode OFF"
        assert "safe_mode=off" in await run(dispatcher, "health")


class TestReminderTimezoneFlow:
    """Reminders wait for a timezone when none is set."""

    @pytest.mark.asyncio
    async def test_structured_reminder_then_timezone(self, dispatcher) -> None:
        out = await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        assert out.startswith("Before I set that reminder, tell me your timezone.")
        assert isinstance(dispatcher.pending.state, AwaitingTimezone)
        assert dispatcher.settings.get_reminder() is None

        out = await run(dispatcher, "timezone_set Asia/Kolkata")
        assert out == (
            "OK: timezone set to Asia/Kolkata\n"
            "OK: daily reminder set at 07:30\n"
            "Message: take vitamins"
        )
        reminder = dispatcher.settings.get_reminder()
        assert reminder.time == "07:30"
        assert reminder.message.text == "take vitamins"
        assert isinstance(dispatcher.pending.state, Idle)

    @pytest.mark.asyncio
    async def test_free_form_timezone_reply(self, dispatcher) -> None:
        await run(dispatcher, "6 am send pls wake up")
        out = await run(dispatcher, "india")
        assert out.startswith("OK: timezone set to Asia/Kolkata")
        assert "OK: daily reminder set at 06:00" in out
        assert dispatcher.settings.get_reminder().message.text == "pls wake up"

    @pytest.mark.asyncio
    async def test_with_timezone_set_immediately(self, dispatcher) -> None:
        dispatcher.settings.set_timezone("UTC")
        out = await run(dispatcher, "reminder_set_daily 21:05 lights off")
        assert out == "OK: daily reminder set at 21:05\nMessage: lights off"

    @pytest.mark.asyncio
    async def test_bad_usage(self, dispatcher) -> None:
        assert await run(dispatcher, "reminder_set_daily 7:30 x") == (
            "ERR: usage reminder_set_daily <HH:MM> <message>"
        )
        assert await run(dispatcher, "reminder_set_daily 24:00 x") == (
            "ERR: usage reminder_set_daily <HH:MM> <message>"
        )
        assert await run(dispatcher, "webjob_set_daily 08:00") == (
            "ERR: usage webjob_set_daily <HH:MM> <task>"
        )

    @pytest.mark.asyncio
    async def test_draft_expires_with_note(self, dispatcher, clock) -> None:
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        clock.advance(dispatcher.pending.draft_ttl + 1)

        out = await run(dispatcher, "status")
        assert out == f"OK: alive\n{LAPSED_DRAFT_NOTE}"
        assert isinstance(dispatcher.pending.state, Idle)
        assert await run(dispatcher, "status") == "OK: alive"

    @pytest.mark.asyncio
    async def test_cancel_drops_draft(self, dispatcher) -> None:
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        assert await run(dispatcher, "cancel") == "OK: pending reminder flow canceled"
        assert dispatcher.settings.get_reminder() is None

    @pytest.mark.asyncio
    async def test_risky_action_keeps_draft(self, dispatcher) -> None:
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        await run(dispatcher, "relay_set 5 1")
        assert dispatcher.pending.draft is not None
        assert dispatcher.pending.action is not None

    @pytest.mark.asyncio
    async def test_draft_keeps_pending_action(self, dispatcher) -> None:
        assert (await run(dispatcher, "relay_set 5 1")).startswith("CONFIRM ")
        out = await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        assert out.startswith("Before I set that reminder")

        assert await run(dispatcher, "confirm 1") == "OK: relay pin 5 -> 1 (confirmed id=1)"
        assert dispatcher.hardware.pins == {5: 1}
        assert dispatcher.pending.draft is not None

    @pytest.mark.asyncio
    async def test_cancel_drops_action_and_draft(self, dispatcher) -> None:
        await run(dispatcher, "relay_set 5 1")
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        assert await run(dispatcher, "cancel") == (
            "OK: pending action canceled\nOK: pending reminder flow canceled"
        )
        assert dispatcher.pending.action is None
        assert isinstance(dispatcher.pending.state, Idle)

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, dispatcher) -> None:
        out = await run(dispatcher, "timezone_set Mars/Olympus_Mons_Base_Camp_7")
        assert out.startswith("ERR: usage timezone_set")


class TestDailyDetailsFlow:
    """Saying "daily" without details asks for time and message."""

    @pytest.mark.asyncio
    async def test_daily_then_details(self, dispatcher) -> None:
        dispatcher.settings.set_timezone("UTC")
        out = await run(dispatcher, "remind me daily")
        assert out.startswith("Got it, daily.")
        assert isinstance(dispatcher.pending.state, AwaitingDetails)

        out = await run(dispatcher, "6 am send pls wake up")
        assert out == "OK: daily reminder set at 06:00\nMessage: pls wake up"
        assert isinstance(dispatcher.pending.state, Idle)

    @pytest.mark.asyncio
    async def test_still_missing_details(self, dispatcher) -> None:
        await run(dispatcher, "every day please")
        out = await run(dispatcher, "hmm not sure yet")
        assert out.startswith("I still need both time and message.")

    @pytest.mark.asyncio
    async def test_daily_with_details_sets_directly(self, dispatcher) -> None:
        dispatcher.settings.set_timezone("UTC")
        out = await run(dispatcher, "daily 6:30 am send drink water")
        assert out == "OK: daily reminder set at 06:30\nMessage: drink water"

    @pytest.mark.asyncio
    async def test_natural_webjob(self, dispatcher) -> None:
        dispatcher.settings.set_timezone("UTC")
        out = await run(dispatcher, "send me ai news every day at 8 am")
        assert out == "OK: daily web job set at 08:00\nTask: ai news"
        assert dispatcher.settings.get_reminder().is_webjob

    @pytest.mark.asyncio
    async def test_change_time(self, dispatcher) -> None:
        dispatcher.settings.set_timezone("UTC")
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        out = await run(dispatcher, "change the reminder to 9 am")
        assert out == "OK: daily reminder changed to 09:00\nMessage: take vitamins"

    @pytest.mark.asyncio
    async def test_change_without_reminder(self, dispatcher) -> None:
        assert await run(dispatcher, "move it to 10:15") == "ERR: daily reminder is empty"


class TestReminderSlot:
    @pytest.mark.asyncio
    async def test_show_run_clear(self, dispatcher) -> None:
        assert await run(dispatcher, "reminder_show") == "Daily reminder is empty"
        assert await run(dispatcher, "reminder_run") == "ERR: daily reminder is empty"
        dispatcher.settings.set_timezone("UTC")
        await run(dispatcher, "reminder_set_daily 07:30 take vitamins")
        assert await run(dispatcher, "reminder_show") == "Daily reminder 07:30:\ntake vitamins"
        assert await run(dispatcher, "reminder_run") == "Reminder (07:30): take vitamins"
        assert await run(dispatcher, "webjob_show") == "Daily web job is empty"
        assert await run(dispatcher, "reminder_clear") == "OK: daily reminder cleared"
        assert dispatcher.settings.get_reminder() is None


class TestStoresThroughCommands:
    """Tasks, email drafts, persona text, memory and cron."""

    @pytest.mark.asyncio
    async def test_tasks(self, dispatcher) -> None:
        assert await run(dispatcher, "task_add buy milk") == "OK: task #1 added"
        assert await run(dispatcher, "task_done 1") == "OK: task #1 done"
        assert await run(dispatcher, "task_list") == "Tasks:\n#1 [x] buy milk"
        assert await run(dispatcher, "task_done 7") == "ERR: task #7 not found"
        assert await run(dispatcher, "task_done") == "ERR: usage task_done <id>"
        assert await run(dispatcher, "task_clear") == "OK: tasks cleared"

    @pytest.mark.asyncio
    async def test_email_draft(self, dispatcher) -> None:
        assert await run(dispatcher, "email_show") == "Email draft is empty"
        out = await run(dispatcher, "email_draft a@b.co|Hello|See you at 5")
        assert out == "OK: email draft saved (draft only, not sent)"
        assert "Subject: Hello" in await run(dispatcher, "email_show")
        assert await run(dispatcher, "email_draft a@b.co|only two") == (
            "ERR: usage email_draft <to>|<subject>|<body>"
        )

    @pytest.mark.asyncio
    async def test_send_email_without_provider_is_err(self, dispatcher) -> None:
        await run(dispatcher, "email_draft a@b.co|Hello|Body")
        out = await run(dispatcher, "send_email")
        assert out.startswith("ERR: email provider")
        assert not dispatcher.settings.get_email_draft().empty

    @pytest.mark.asyncio
    async def test_send_empty_draft(self, dispatcher) -> None:
        assert await run(dispatcher, "send_email") == "ERR: email draft is empty"

    @pytest.mark.asyncio
    async def test_soul_and_heartbeat(self, dispatcher) -> None:
        assert await run(dispatcher, "soul_show") == "Soul is empty"
        assert await run(dispatcher, "soul_set Be brief.") == "OK: soul updated"
        assert await run(dispatcher, "soul") == "SOUL:\nBe brief."
        assert await run(dispatcher, "heartbeat_run") == "ERR: heartbeat is empty"
        assert await run(dispatcher, "heartbeat_set check tasks") == "OK: heartbeat updated"

    @pytest.mark.asyncio
    async def test_heartbeat_run_uses_llm(self, dispatcher, provider) -> None:
        provider.push("All quiet.")
        await run(dispatcher, "heartbeat_set check tasks")
        assert await run(dispatcher, "heartbeat_run") == "Heartbeat:\nAll quiet."

    @pytest.mark.asyncio
    async def test_memory(self, dispatcher) -> None:
        assert await run(dispatcher, "memory") == "Memory is empty"
        assert await run(dispatcher, "remember the wifi is on channel 6") == "OK: remembered"
        assert "wifi is on channel 6" in await run(dispatcher, "memory")
        assert await run(dispatcher, "forget") == "OK: memory cleared"

    @pytest.mark.asyncio
    async def test_cron(self, dispatcher) -> None:
        out = await run(dispatcher, "cron_add 0 9 * * * | good morning")
        assert out == "OK: cron job added\n0 9 * * * | good morning"
        assert "good morning" in await run(dispatcher, "cron_list")
        assert (await run(dispatcher, "cron_add 0 9 * *")).startswith("ERR: ")
        out = await run(dispatcher, "cron_add \u00b2 9 * * * | hi")
        assert out == "ERR: minute: Invalid numeric value: \u00b2"
        assert await run(dispatcher, "cron_clear") == "OK: cron jobs cleared"

    @pytest.mark.asyncio
    async def test_logs(self, dispatcher) -> None:
        await run(dispatcher, "task_add x")
        dispatcher.events.append("HELLO")
        assert "HELLO" in await run(dispatcher, "logs")
        assert await run(dispatcher, "logs_clear") == "OK: logs cleared"


class TestTimezoneCommands:
    @pytest.mark.asyncio
    async def test_show_set_clear(self, dispatcher) -> None:
        out = await run(dispatcher, "timezone_show")
        assert out.startswith("Timezone not set. Using default: UTC0")
        assert await run(dispatcher, "timezone_set UTC+2") == "OK: timezone set to UTC+2"
        assert await run(dispatcher, "timezone_show") == "Timezone: UTC+2"
        assert await run(dispatcher, "timezone_clear") == "OK: timezone cleared. Using default UTC0"

    @pytest.mark.asyncio
    async def test_time_show(self, dispatcher) -> None:
        out = await run(dispatcher, "time_show")
        assert out.startswith("Time:\ntz_active=")
        assert "synced=yes" in out


class TestModelCommands:
    @pytest.mark.asyncio
    async def test_set_and_use(self, dispatcher) -> None:
        out = await run(dispatcher, "model use groq")
        assert out.startswith("ERR: provider 'groq' not configured.")
        assert await run(dispatcher, "model set groq gsk-123") == (
            "OK: API key saved for groq\nUse: model use groq to activate"
        )
        out = await run(dispatcher, "model use groq")
        assert out.startswith("OK: switched to groq")
        assert dispatcher.settings.get_active_provider() == "groq"
        assert "groq" in await run(dispatcher, "model list")

    @pytest.mark.asyncio
    async def test_unknown_provider(self, dispatcher) -> None:
        assert (await run(dispatcher, "model use acme")).startswith("ERR: unknown provider 'acme'")
        assert await run(dispatcher, "model set groq") == "ERR: API key cannot be empty"

    @pytest.mark.asyncio
    async def test_clear(self, dispatcher) -> None:
        await run(dispatcher, "model set groq gsk-123")
        assert await run(dispatcher, "model clear groq") == "OK: configuration cleared for groq"
        assert "groq" not in dispatcher.settings.get_api_keys()


class TestWebAndHosting:
    @pytest.mark.asyncio
    async def test_search_without_key(self, dispatcher) -> None:
        out = await run(dispatcher, "search for cricket scores")
        assert out.startswith("Web search needs setup")

    @pytest.mark.asyncio
    async def test_search_prompt(self, dispatcher) -> None:
        out = await run(dispatcher, "can you do a web search")
        assert out.startswith("Yes. Tell me what to search.")

    @pytest.mark.asyncio
    async def test_web_files_and_host(self, dispatcher) -> None:
        result = await dispatcher.execute("web_files_make coffee shop")
        assert result.handled
        assert [a.filename for a in result.attachments] == ["index.html", "styles.css", "script.js"]
        assert "coffee shop" in result.output

        out = await run(dispatcher, "host it")
        assert out.startswith("OK: hosted 3 files")
        assert (dispatcher.hosted_dir / "index.html").exists()

    @pytest.mark.asyncio
    async def test_host_file_from_last_reply(self, dispatcher) -> None:
        dispatcher.remember_reply("Here:\n```html\n<h1>Hi</h1>\n```")
        out = await run(dispatcher, "host_file page.html")
        assert out.startswith("OK: hosted page.html\nURL: http://localhost:")
        assert (dispatcher.hosted_dir / "page.html").read_text() == "<h1>Hi</h1>"

    @pytest.mark.asyncio
    async def test_host_nothing(self, dispatcher) -> None:
        out = await run(dispatcher, "host_file ../etc")
        assert out == "ERR: usage host_file <name> [content]"
        out = await run(dispatcher, "host_file a.html")
        assert out == "ERR: nothing to host. Generate something first or pass content"


class TestImageGeneration:
    """``generate_image`` returns the picture as a PNG attachment."""

    @pytest.mark.asyncio
    async def test_command_sends_png_and_counts_call(self, engine, provider) -> None:
        result = await engine.dispatcher.execute("generate_image a Red fox in snow")
        assert result.handled
        assert result.output == "Image generated and sent"
        [image] = result.attachments
        assert image.filename == "image.png"
        assert image.mime_type == "image/png"
        assert image.content == provider.image
        assert provider.image_prompts == ["a Red fox in snow"]

        counters = engine.usage.counters
        assert counters.image_calls == 1
        assert counters.successful_calls == 1
        assert counters.last_call_type == "image"

    @pytest.mark.asyncio
    async def test_natural_phrasing(self, dispatcher, provider) -> None:
        result = await dispatcher.execute("Draw a lighthouse at dusk")
        assert result.output == "Image generated and sent"
        assert provider.image_prompts == ["a lighthouse at dusk"]

        await dispatcher.execute("generate an image of two cats")
        assert provider.image_prompts[-1] == "two cats"

    @pytest.mark.asyncio
    async def test_missing_prompt(self, dispatcher, provider) -> None:
        assert await run(dispatcher, "generate_image") == "ERR: usage generate_image <prompt>"
        assert await run(dispatcher, "generate_image   ") == "ERR: usage generate_image <prompt>"
        assert provider.image_prompts == []

    @pytest.mark.asyncio
    async def test_provider_failure_is_reported_and_counted(self, engine, provider) -> None:
        provider.image = ProviderError("image request failed: quota", status=429)
        out = await run(engine.dispatcher, "generate_image a boat")
        assert out == "ERR: image request failed: quota"
        counters = engine.usage.counters
        assert counters.image_calls == 1
        assert counters.failed_calls == 1
        assert counters.rate_limited == 1


class TestFirmwareOffer:
    """``yes`` accepts a fresh update offer and starts a confirmation."""

    @pytest.mark.asyncio
    async def test_yes_within_ttl(self, dispatcher) -> None:
        from brainbot.dispatcher.state import FirmwareOffer

        dispatcher.firmware_offer = FirmwareOffer(True, "1.2.0", "https://x/fw.bin", dispatcher._clock())
        out = await run(dispatcher, "yes")
        assert out.startswith("CONFIRM update firmware 1.2.0")

    @pytest.mark.asyncio
    async def test_yes_after_ttl(self, dispatcher, clock) -> None:
        from brainbot.dispatcher.state import FirmwareOffer

        dispatcher.firmware_offer = FirmwareOffer(True, "1.2.0", "https://x/fw.bin", clock())
        clock.advance(dispatcher._config.firmware.offer_ttl_s + 1)
        assert await run(dispatcher, "yes") == "ERR: update offer expired. Run: update"

    @pytest.mark.asyncio
    async def test_yes_without_offer_not_handled(self, dispatcher) -> None:
        assert not (await dispatcher.execute("yes")).handled

    @pytest.mark.asyncio
    async def test_update_url_validation(self, dispatcher) -> None:
        assert await run(dispatcher, "update ftp://x") == "ERR: usage update <url>"


class TestReports:
    @pytest.mark.asyncio
    async def test_health_lines(self, dispatcher) -> None:
        out = await run(dispatcher, "health")
        assert out.startswith("OK: health\nuptime_s=")
        assert "timezone=UTC0 (default)" in out
        assert "reminder_daily=none" in out

    @pytest.mark.asyncio
    async def test_specs_and_security(self, dispatcher) -> None:
        assert "=== Device Specs ===" in await run(dispatcher, "specs")
        out = await run(dispatcher, "security")
        assert "Confirmation required: relay_set, flash_led, update" in out
        assert "Telegram allow-list: open" in out

    @pytest.mark.asyncio
    async def test_usage(self, dispatcher) -> None:
        await run(dispatcher, "usage")
        assert await run(dispatcher, "usage_reset") == "OK: usage stats reset"
