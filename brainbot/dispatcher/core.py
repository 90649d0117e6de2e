"""Deterministic command dispatcher with confirmation for risky actions."""

from __future__ import annotations

import os
import platform
import re
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Union

from loguru import logger

from .. import __version__
from ..agent.attachments import extract_code_blocks
from ..agent.llm import LLMService
from ..agent.memory import MemoryManager
from ..bus.events import Attachment
from ..config.schema import Config
from ..cron.parser import CronParseError, render
from ..cron.store import CronStore
from ..providers.base import ProviderError
from ..providers.registry import PROVIDERS, SELECTABLE_PROVIDERS, get_provider_spec
from ..scheduler.service import Scheduler
from ..scheduler.timezones import is_valid_timezone
from ..session.manager import SessionManager
from ..settings.events import EventLog
from ..settings.store import SettingsError, SettingsStore
from ..settings.tasks import TaskStore
from ..settings.types import PlainNote, ReminderMessage, WebJobTask
from ..settings.usage import UsageStats
from ..tools.email import EmailClient, EmailError
from ..tools.web import WebSearchClient, WebSearchError, WebSearchNotConfigured, run_web_job
from . import nlp
from .firmware import FirmwareError, FirmwareUpdater
from .hardware import HardwareBackend
from .state import (
    ActionPending,
    AwaitingDetails,
    AwaitingTimezone,
    FirmwareOffer,
    FirmwareUpdate,
    Idle,
    LedFlash,
    PendingMachine,
    PendingState,
    RelaySet,
)
from .webfiles import WEB_FILE_NAMES, build_web_files

TZ_EXAMPLE = "timezone_set Asia/Kolkata"
DAILY_EXAMPLE = "6 am send pls wake up"
SEARCH_PROMPT = "Tell me what to search.\nExample: search for cricket matches today"
LAPSED_DRAFT_NOTE = "(Your earlier reminder request expired. Send it again if you still need it.)"
HOSTED_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]{0,63}")

HELP_TEXT = """Commands:
status
help
health
specs
security | usage | usage_reset
relay_set <pin> <0|1> (requires confirm)
flash_led [1-20] (requires confirm)
sensor_read <pin>
confirm [id]
cancel
reminder_set_daily <HH:MM> <message>
reminder_show | reminder_run | reminder_clear
webjob_set_daily <HH:MM> <task>
webjob_show | webjob_run | webjob_clear
search for <query>
web_files_make [topic]
generate_image <prompt>
host_file <name> [content]
cron_add <min> <hour> <day> <month> <weekday> | <command>
cron_list | cron_clear
timezone_show | timezone_set <Zone> | timezone_clear
time_show
task_add <text> | task_list | task_done <id> | task_clear
email_draft <to>|<subject>|<body> | email_show | email_clear
send_email <to> <subject> <body>
safe_mode | safe_mode_on | safe_mode_off
logs | logs_clear
soul_show | soul_set <text> | soul_clear
heartbeat_show | heartbeat_set <text> | heartbeat_clear | heartbeat_run
plan <task>
remember <note> | memory | forget
update | update <url>
model list | model status | model use <provider>
model set <provider> <api_key> | model clear <provider>"""


@dataclass
class DispatchResult:
    """Outcome of one dispatch. ``handled=False`` means "not a command"."""

    handled: bool
    output: str = ""
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class _Command:
    raw: str  # normalized, original case
    lc: str

    def tail(self, prefix_len: int) -> str:
        return self.raw[prefix_len:].strip() if len(self.raw) > prefix_len else ""


Reply = Union[str, DispatchResult, None]
Handler = Callable[[_Command], Awaitable[Reply]]


def _cap(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _message_for_user(message: ReminderMessage) -> str:
    if isinstance(message, WebJobTask) and not message.text:
        return "(empty web job task)"
    return message.text


class CommandDispatcher:
    """Maps one line of user or scheduler text to a deterministic action.

    Handlers are tried in a fixed order; the first one that returns a
    reply wins. Collaborator failures are rendered as ``ERR: <reason>``.
    Risky actions go through ``PendingMachine`` and only run on
    ``confirm``.
    """

    def __init__(
        self,
        config: Config,
        *,
        settings: SettingsStore,
        tasks: TaskStore,
        usage: UsageStats,
        events: EventLog,
        memory: MemoryManager,
        sessions: SessionManager,
        cron: CronStore,
        scheduler: Scheduler,
        hardware: HardwareBackend,
        firmware: FirmwareUpdater,
        web_search: WebSearchClient,
        email: EmailClient,
        llm: LLMService,
        pending: PendingMachine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self.settings = settings
        self.tasks = tasks
        self.usage = usage
        self.events = events
        self.memory = memory
        self.sessions = sessions
        self.cron = cron
        self.scheduler = scheduler
        self.hardware = hardware
        self.firmware = firmware
        self.web_search = web_search
        self.email = email
        self.llm = llm
        self._clock = clock
        self.pending = pending or PendingMachine(
            config.dispatcher.confirm_timeout_s,
            config.dispatcher.draft_timeout_s,
            clock=clock,
        )
        self.firmware_offer: FirmwareOffer | None = None
        self.last_response = ""
        self._last_web_files: list[Attachment] = []
        self._started_at = clock()
        self._limit = config.agent.message_limit
        self._lapsed: list[PendingState] = []

        self._handlers: list[Handler] = [
            self._finish_timezone_draft,
            self._system,
            self._cancel,
            self._tasks,
            self._email,
            self._timezone,
            self._reminder_slot,
            self._image,
            self._web,
            self._reminder_setters,
            self._natural_schedule,
            self._persona,
            self._confirm,
            self._led,
            self._relay,
            self._sensor,
            self._firmware,
            self._hosting,
            self._cron,
            self._llm_commands,
            self._memory,
            self._model,
        ]

    @property
    def hosted_dir(self) -> Path:
        return self._config.hosted_dir

    def remember_reply(self, text: str) -> None:
        """Keep a generated reply as the source for later hosting commands."""
        self.last_response = text
        self._last_web_files = []

    async def execute(self, raw: str) -> DispatchResult:
        cmd_text = nlp.normalize_command(raw)
        if not cmd_text:
            return DispatchResult(False)
        cmd = _Command(cmd_text, cmd_text.lower())

        self._lapsed = self.pending.expire()

        for handler in self._handlers:
            try:
                reply = await handler(cmd)
            except (
                SettingsError,
                ProviderError,
                EmailError,
                FirmwareError,
                WebSearchError,
                OSError,
            ) as e:
                logger.error(f"Command '{cmd.raw[:60]}' failed: {e}")
                reply = f"ERR: {e}"
            if reply is None:
                continue
            result = reply if isinstance(reply, DispatchResult) else DispatchResult(True, reply)
            if self._draft_lapsed() and result.output:
                result.output += "\n" + LAPSED_DRAFT_NOTE
            return result

        return DispatchResult(False)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _draft_lapsed(self) -> bool:
        return any(isinstance(s, (AwaitingTimezone, AwaitingDetails)) for s in self._lapsed)

    def _uptime_s(self) -> int:
        return int(self._clock() - self._started_at)

    def _default_timezone(self) -> str:
        return self._config.scheduler.default_timezone

    def _store_reminder(self, hhmm: str, message: ReminderMessage) -> None:
        self.settings.set_reminder(hhmm, message)
        kind = "WEBJOB" if isinstance(message, WebJobTask) else "REMINDER"
        self.events.append(f"{kind} set daily {hhmm}")
        logger.info(f"Daily {message.kind} set at {hhmm}")

    def _set_reminder_confirmation(self, hhmm: str, message: ReminderMessage) -> str:
        if isinstance(message, WebJobTask):
            return f"OK: daily web job set at {hhmm}\nTask: {message.text}"
        return f"OK: daily reminder set at {hhmm}\nMessage: {message.text}"

    def _schedule_or_defer(self, hhmm: str, message: ReminderMessage, ask: str) -> str:
        """Store the reminder, or hold it until the user names a timezone."""
        if not self.settings.has_timezone():
            self.pending.await_timezone(hhmm, message)
            return ask
        self._store_reminder(hhmm, message)
        return self._set_reminder_confirmation(hhmm, message)

    async def _web_job(self, task: str) -> str:
        return await run_web_job(self.web_search, task)

    async def _web_job_friendly(self, task: str) -> str:
        task = nlp.compact_spaces(task)
        if not task:
            return SEARCH_PROMPT
        try:
            return _cap(await self._web_job(task), self._limit)
        except WebSearchNotConfigured:
            return "Web search needs setup: add a Brave or Tavily API key to tools.web.search."
        except WebSearchError as e:
            if str(e) == "No quick result.":
                return "No good quick result found. Try a clearer query."
            return f"ERR: {e}"

    def _pending_line(self) -> str:
        action = self.pending.action
        if action is None:
            return "none"
        ttl_ms = int(self.pending.action_remaining() * 1000)
        kind = action.kind
        if isinstance(kind, RelaySet):
            return f"relay_set id={action.id} pin={kind.pin} state={kind.state} ttl_ms={ttl_ms}"
        if isinstance(kind, LedFlash):
            return f"flash_led id={action.id} count={kind.count} ttl_ms={ttl_ms}"
        return f"update_firmware id={action.id} version={kind.version or '?'} ttl_ms={ttl_ms}"

    def _configured_providers(self) -> list[str]:
        names = set(self.settings.get_api_keys())
        names.update(n for n, p in self._config.providers.items() if p.api_key)
        return sorted(n for n in names if n in PROVIDERS)

    # ------------------------------------------------------------------
    # Deferred reminder waiting for a timezone
    # ------------------------------------------------------------------

    async def _finish_timezone_draft(self, cmd: _Command) -> Reply:
        draft = self.pending.draft
        if draft is None:
            return None
        tz = nlp.extract_timezone_from_text(cmd.raw)
        if tz is None:
            return None
        return self._apply_timezone_with_draft(tz, draft)

    def _apply_timezone_with_draft(self, tz: str, draft: AwaitingTimezone) -> str:
        stored = self.settings.set_timezone(tz)
        self._store_reminder(draft.time, draft.message)
        self.pending.clear_flow("timezone received")
        return (
            f"OK: timezone set to {stored}\n"
            f"OK: daily reminder set at {draft.time}\n"
            f"Message: {_message_for_user(draft.message)}"
        )

    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------

    async def _system(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "help":
            return HELP_TEXT
        if lc == "status":
            return "OK: alive"
        if lc == "health":
            return await self._health()
        if lc == "specs":
            return await self._specs()
        if lc == "security":
            return self._security()
        if lc == "usage":
            return self.usage.report()
        if lc == "usage_reset":
            self.usage.reset()
            return "OK: usage stats reset"
        if lc == "logs":
            return self.events.dump(self._limit)
        if lc == "logs_clear":
            self.events.clear()
            return "OK: logs cleared"
        if lc in ("time_show", "clock", "time"):
            return self.scheduler.time_report()
        if lc == "safe_mode":
            return f"Safe mode: {'ON' if self.settings.is_safe_mode() else 'OFF'}"
        if lc == "safe_mode_on":
            self.settings.set_safe_mode(True)
            self.pending.clear_action("safe mode on")
            return "OK: safe mode ON (risky actions blocked)"
        if lc == "safe_mode_off":
            self.settings.set_safe_mode(False)
            return "OK: safe mode OFF"
        return None

    async def _health(self) -> str:
        notes = await self.memory.get_notes()
        out = (
            "OK: health\n"
            f"uptime_s={self._uptime_s()}\n"
            f"memory_chars={len(notes)}\n"
            f"soul_chars={len(self.settings.get_str('soul'))}\n"
            f"heartbeat_chars={len(self.settings.get_str('heartbeat'))}\n"
            f"pending={self._pending_line()}\n"
            f"safe_mode={'on' if self.settings.is_safe_mode() else 'off'}"
        )
        tz = self.settings.get_timezone() or f"{self._default_timezone()} (default)"
        out += f"\ntimezone={tz}"
        reminder = self.settings.get_reminder()
        if reminder is None:
            out += "\nreminder_daily=none"
        elif reminder.is_webjob:
            out += f"\nwebjob_daily={reminder.time} task_chars={len(reminder.message.text)}"
        else:
            out += f"\nreminder_daily={reminder.time} msg_chars={len(reminder.message.text)}"
        return out

    async def _specs(self) -> str:
        def usage_line(label: str, used: int, limit: int) -> str:
            percent = int(used * 100 / limit) if limit else 0
            return f"{label}: {used} / {limit} chars ({percent}%)\n"

        session = await self.sessions.get_or_create()
        history_chars = sum(len(str(m.get("content", ""))) for m in session.messages)
        persona_chars = len(self.settings.get_str("soul")) + len(self.settings.get_str("heartbeat"))
        active = self.settings.get_active_provider()

        out = "=== Device Specs ===\n\n"
        out += f"Platform: {platform.system()} {platform.release()} ({platform.machine()})\n"
        out += f"Python: {sys.version.split()[0]}\n"
        out += f"CPU cores: {os.cpu_count() or 1}\n"
        out += f"brainbot: {__version__}\n\n"
        out += "=== Storage ===\n"
        out += f"data_dir: {self._config.data_path}\n"
        out += usage_line("memory", len(await self.memory.get_notes()), self.memory.max_chars)
        out += f"chat_history: {len(session.messages)} lines, {history_chars} chars\n"
        out += f"persona: {persona_chars} chars used\n"
        out += usage_line("tasks", self.tasks.used_chars(), self.tasks.max_chars)
        out += f"cron: {self.cron.count()} / {self.cron.max_jobs} jobs\n"
        out += "\n=== LLM Config ===\n"
        out += f"Active Provider: {active or '(none)'}\n"
        out += f"Configured: {', '.join(self._configured_providers()) or '(none)'}\n"
        out += f"Hardware backend: {self._config.hardware.backend}"
        return out

    def _security(self) -> str:
        allow = self._config.channels.telegram.allow_from
        lines = [
            "🔒 Security",
            f"Safe mode: {'ON' if self.settings.is_safe_mode() else 'OFF'}",
            "Confirmation required: relay_set, flash_led, update",
            f"Confirm timeout: {int(self._config.dispatcher.confirm_timeout_s)}s",
            f"Pending: {self._pending_line()}",
            f"Telegram allow-list: {len(allow)} user(s)" if allow else "Telegram allow-list: open",
        ]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Tasks and email
    # ------------------------------------------------------------------

    async def _tasks(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "task_list":
            return self.tasks.render()
        if lc == "task_clear":
            self.tasks.clear()
            return "OK: tasks cleared"
        if lc == "task_add" or lc.startswith("task_add "):
            text = cmd.tail(8)
            if not text:
                return "ERR: usage task_add <text>"
            task_id = self.tasks.add(text)
            return f"OK: task #{task_id} added"
        if lc == "task_done" or lc.startswith("task_done "):
            try:
                task_id = int(cmd.tail(9))
            except ValueError:
                task_id = 0
            if task_id <= 0:
                return "ERR: usage task_done <id>"
            self.tasks.done(task_id)
            return f"OK: task #{task_id} done"
        return None

    async def _email(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "email_show":
            draft = self.settings.get_email_draft()
            if draft.empty:
                return "Email draft is empty"
            return _cap(
                f"Email draft:\nTo: {draft.to}\nSubject: {draft.subject}\nBody:\n{draft.body}",
                self._limit,
            )
        if lc == "email_clear":
            self.settings.clear_email_draft()
            return "OK: email draft cleared"
        if lc == "email_draft" or lc.startswith("email_draft "):
            parts = [p.strip() for p in cmd.tail(11).split("|", 2)]
            if len(parts) != 3 or not all(parts):
                return "ERR: usage email_draft <to>|<subject>|<body>"
            self.settings.set_email_draft(*parts)
            return "OK: email draft saved (draft only, not sent)"
        if lc == "send_email" or lc.startswith("send_email "):
            return await self._send_email(cmd.tail(10))
        return None

    async def _send_email(self, tail: str) -> str:
        if not tail:
            draft = self.settings.get_email_draft()
            if draft.empty:
                return "ERR: email draft is empty"
            await self.email.send(draft.to, draft.subject, draft.body)
            self.settings.clear_email_draft()
            self.events.append(f"EMAIL sent to {draft.to}")
            return f"OK: email draft sent to {draft.to}"

        sep = "|" if "|" in tail else " "
        parts = [p.strip() for p in tail.split(sep, 2)]
        if len(parts) != 3 or not all(parts):
            return "ERR: usage send_email <to> <subject> <body>"
        to, subject, body = parts
        await self.email.send(to, subject, body)
        self.events.append(f"EMAIL sent to {to}")
        return f"OK: email sent to {to}"

    # ------------------------------------------------------------------
    # Timezone and the daily reminder slot
    # ------------------------------------------------------------------

    async def _timezone(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "timezone_show":
            tz = self.settings.get_timezone()
            if not tz:
                return (
                    f"Timezone not set. Using default: {self._default_timezone()}\n"
                    "Set with: timezone_set <Area/City>"
                )
            return f"Timezone: {tz}"
        if lc == "timezone_clear":
            self.settings.clear_timezone()
            return f"OK: timezone cleared. Using default {self._default_timezone()}"
        if lc == "timezone_set" or lc.startswith("timezone_set "):
            tz = cmd.tail(12)
            if not is_valid_timezone(tz):
                return (
                    "ERR: usage timezone_set <Area/City or UTC offset>\n"
                    f"Example: {TZ_EXAMPLE}"
                )
            draft = self.pending.draft
            if draft is not None:
                return self._apply_timezone_with_draft(tz, draft)
            stored = self.settings.set_timezone(tz)
            return f"OK: timezone set to {stored}"
        return None

    async def _reminder_slot(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc in ("reminder_show", "remainder_show", "reminder_shiw"):
            reminder = self.settings.get_reminder()
            if reminder is None:
                return "Daily reminder is empty"
            if reminder.is_webjob:
                return f"Daily web job {reminder.time}:\nTask: {reminder.message.text}"
            return f"Daily reminder {reminder.time}:\n{reminder.message.text}"
        if lc == "webjob_show":
            reminder = self.settings.get_reminder()
            if reminder is None or not reminder.is_webjob:
                return "Daily web job is empty"
            return f"Daily web job {reminder.time}:\nTask: {reminder.message.text}"
        if lc == "reminder_clear":
            self.settings.clear_reminder()
            return "OK: daily reminder cleared"
        if lc == "webjob_clear":
            reminder = self.settings.get_reminder()
            if reminder is None or not reminder.is_webjob:
                return "Daily web job is empty"
            self.settings.clear_reminder()
            return "OK: daily web job cleared"
        if lc == "reminder_run":
            reminder = self.settings.get_reminder()
            if reminder is None:
                return "ERR: daily reminder is empty"
            if reminder.is_webjob:
                task = reminder.message.text
                if not task:
                    return "ERR: empty web job task"
                return f"Web job ({reminder.time}): {task}\n{await self._web_job(task)}"
            return f"Reminder ({reminder.time}): {reminder.message.text}"
        if lc == "webjob_run":
            reminder = self.settings.get_reminder()
            if reminder is None or not reminder.is_webjob:
                return "ERR: daily web job is empty"
            if not reminder.message.text:
                return "ERR: empty web job task"
            return f"Web job now:\n{await self._web_job(reminder.message.text)}"
        return None

    # ------------------------------------------------------------------
    # Image generation
    # ------------------------------------------------------------------

    async def _image(self, cmd: _Command) -> Reply:
        if cmd.lc == "generate_image" or cmd.lc.startswith("generate_image "):
            prompt = cmd.tail(14)
        else:
            prompt = nlp.extract_image_prompt(cmd.raw)
            if prompt is None:
                return None
        if not prompt:
            return "ERR: usage generate_image <prompt>"
        image = await self.llm.generate_image(prompt)
        logger.info(f"Generated image ({len(image)} bytes) for '{prompt[:40]}'")
        attachment = Attachment("image.png", image, "image/png", caption=prompt[:200])
        return DispatchResult(True, "Image generated and sent", [attachment])

    # ------------------------------------------------------------------
    # Web search and generated files
    # ------------------------------------------------------------------

    def _web_files(self, topic: str) -> DispatchResult:
        files = build_web_files(topic)
        self._last_web_files = files
        self.last_response = ""
        logger.info(f"Generated web files for '{topic}'")
        return DispatchResult(
            True,
            f'Sent small web files for "{topic}".\nFiles: {", ".join(WEB_FILE_NAMES)}',
            list(files),
        )

    async def _web(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "web_files_make" or lc.startswith("web_files_make "):
            return self._web_files(nlp.sanitize_web_topic(cmd.tail(14)))

        topic = nlp.extract_web_files_topic(cmd.raw)
        if topic is not None:
            return self._web_files(topic)

        query = nlp.extract_web_query(cmd.raw)
        if query is not None:
            return await self._web_job_friendly(query)
        if "search web" in lc or "web search" in lc:
            return "Yes. " + SEARCH_PROMPT
        return None

    # ------------------------------------------------------------------
    # Structured and natural scheduling
    # ------------------------------------------------------------------

    async def _reminder_setters(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "webjob_set_daily" or lc.startswith("webjob_set_daily "):
            hhmm, _, task = cmd.tail(16).partition(" ")
            task = task.strip()
            if not nlp.is_valid_hhmm(hhmm) or not task:
                return "ERR: usage webjob_set_daily <HH:MM> <task>"
            return self._schedule_or_defer(
                hhmm,
                WebJobTask(task),
                f"Before I set that web job, tell me your timezone.\nReply: {TZ_EXAMPLE}",
            )
        if lc == "reminder_set_daily" or lc.startswith("reminder_set_daily "):
            hhmm, _, message = cmd.tail(18).partition(" ")
            message = message.strip()
            if not nlp.is_valid_hhmm(hhmm) or not message:
                return "ERR: usage reminder_set_daily <HH:MM> <message>"
            return self._schedule_or_defer(
                hhmm,
                PlainNote(message),
                f"Before I set that reminder, tell me your timezone.\nReply: {TZ_EXAMPLE}",
            )
        return None

    async def _natural_schedule(self, cmd: _Command) -> Reply:
        natural_tz_ask = (
            "Got it. I need your timezone first.\n"
            f"Reply with your timezone, for example: {TZ_EXAMPLE}"
        )

        changed = nlp.parse_natural_time_change(cmd.raw)
        if changed is not None:
            reminder = self.settings.get_reminder()
            if reminder is None:
                return "ERR: daily reminder is empty"
            self._store_reminder(changed, reminder.message)
            if reminder.is_webjob:
                return f"OK: daily web job changed to {changed}\nTask: {reminder.message.text}"
            return f"OK: daily reminder changed to {changed}\nMessage: {reminder.message.text}"

        webjob = nlp.parse_natural_daily_webjob(cmd.raw)
        if webjob is not None:
            hhmm, task = webjob
            return self._schedule_or_defer(hhmm, WebJobTask(task), natural_tz_ask)

        awaiting = self.pending.awaiting_details
        parsed = nlp.parse_natural_daily_reminder(cmd.raw, assume_daily=awaiting)
        if parsed is not None:
            hhmm, text = parsed
            message: ReminderMessage = (
                WebJobTask(text) if nlp.looks_like_webjob_task(text.lower()) else PlainNote(text)
            )
            if awaiting:
                self.pending.clear_flow("details received")
            return self._schedule_or_defer(hhmm, message, natural_tz_ask)

        first_word = cmd.lc.split(" ", 1)[0]
        if nlp.has_daily_words(cmd.lc) and "_" not in first_word:
            self.pending.await_details()
            return f"Got it, daily.\nNow send time + message, for example:\n{DAILY_EXAMPLE}"

        if awaiting:
            return f"I still need both time and message.\nExample: {DAILY_EXAMPLE}"
        return None

    # ------------------------------------------------------------------
    # Soul and heartbeat text
    # ------------------------------------------------------------------

    async def _persona(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc in ("soul_show", "soul"):
            soul = self.settings.get_str("soul")
            return f"SOUL:\n{soul[: self._limit]}" if soul else "Soul is empty"
        if lc == "soul_clear":
            self.settings.delete("soul")
            return "OK: soul cleared"
        if lc == "soul_set" or lc.startswith("soul_set "):
            text = cmd.tail(8)
            if not text:
                return "ERR: usage soul_set <text>"
            self.settings.set_str("soul", text)
            return "OK: soul updated"

        if lc == "heartbeat_show":
            hb = self.settings.get_str("heartbeat")
            return f"HEARTBEAT:\n{hb[: self._limit]}" if hb else "Heartbeat is empty"
        if lc == "heartbeat_clear":
            self.settings.delete("heartbeat")
            return "OK: heartbeat cleared"
        if lc == "heartbeat_set" or lc.startswith("heartbeat_set "):
            text = cmd.tail(13)
            if not text:
                return "ERR: usage heartbeat_set <text>"
            self.settings.set_str("heartbeat", text)
            return "OK: heartbeat updated"
        if lc == "heartbeat_run":
            hb = self.settings.get_str("heartbeat")
            if not hb:
                return "ERR: heartbeat is empty"
            reply = await self.llm.heartbeat(hb)
            return "Heartbeat:\n" + _cap(reply, self._limit)
        return None

    # ------------------------------------------------------------------
    # Confirmation protocol
    # ------------------------------------------------------------------

    async def _cancel(self, cmd: _Command) -> Reply:
        if cmd.lc != "cancel":
            return None
        had_action = self.pending.action is not None
        had_flow = not isinstance(self.pending.state, Idle)
        self.pending.clear("canceled")
        lines = []
        if had_action:
            self.firmware_offer = None
            lines.append("OK: pending action canceled")
        if had_flow:
            lines.append("OK: pending reminder flow canceled")
        return "\n".join(lines) or "OK: no pending action"

    async def _confirm(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc != "confirm" and not lc.startswith("confirm "):
            return None
        return await self._run_confirm(cmd.tail(7))

    async def _run_confirm(self, id_text: str) -> str:
        action = self.pending.action
        if action is None:
            if any(isinstance(s, ActionPending) for s in self._lapsed):
                return "ERR: pending action expired"
            return "ERR: no pending action"

        if id_text:
            try:
                requested = int(id_text)
            except ValueError:
                return "ERR: usage confirm [id]"
            if requested != action.id:
                return "ERR: confirm id mismatch"

        if action.safe_mode_gated and self.settings.is_safe_mode():
            self.pending.clear_action("blocked by safe mode")
            return "ERR: safe mode ON. Disable with safe_mode_off first"

        self.pending.clear_action(f"confirmed id={action.id}")
        kind = action.kind
        logger.info(f"Executing confirmed action id={action.id}: {kind.describe()}")
        if isinstance(kind, RelaySet):
            out = await self.hardware.relay_set(kind.pin, kind.state)
        elif isinstance(kind, LedFlash):
            out = await self.hardware.flash_led(kind.count)
        else:
            self.firmware_offer = None
            out = await self.firmware.install(kind.url)
        self.events.append(f"CONFIRM {kind.describe()}")
        return f"{out} (confirmed id={action.id})"

    def _begin(self, kind: RelaySet | LedFlash | FirmwareUpdate) -> str:
        current = self.pending.action
        if current is not None:
            return f"ERR: pending action exists (id={current.id}). confirm/cancel first"
        action = self.pending.begin_action(kind)
        return f"CONFIRM {kind.describe()}\nRun: confirm {action.id}\nOr: cancel"

    # ------------------------------------------------------------------
    # GPIO
    # ------------------------------------------------------------------

    async def _led(self, cmd: _Command) -> Reply:
        count = nlp.parse_led_flash_count(cmd.lc)
        if count == 0:
            return None
        if self.settings.is_safe_mode():
            return "ERR: safe mode ON. flash_led blocked"
        if not 1 <= count <= 20:
            return "ERR: usage flash_led [1-20]"
        return self._begin(LedFlash(count))

    async def _relay(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc != "relay_set" and not lc.startswith("relay_set "):
            return None
        if self.settings.is_safe_mode():
            return "ERR: safe mode ON. relay_set blocked"
        m = re.fullmatch(r"(\d+)\s+(\d+)", cmd.tail(9))
        if m:
            pin, state = int(m.group(1)), int(m.group(2))
            if 0 <= pin <= self._config.hardware.max_pin and state in (0, 1):
                return self._begin(RelaySet(pin, state))
        return "ERR: usage relay_set <pin> <0|1>"

    async def _sensor(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc != "sensor_read" and not lc.startswith("sensor_read "):
            return None
        tail = cmd.tail(11)
        if tail.isascii() and tail.isdigit() and int(tail) <= self._config.hardware.max_pin:
            return await self.hardware.sensor_read(int(tail))
        return "ERR: usage sensor_read <pin>"

    # ------------------------------------------------------------------
    # Firmware updates
    # ------------------------------------------------------------------

    async def _firmware(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "update" or nlp.wants_firmware_update(lc):
            return await self.check_for_update()
        if lc.startswith("update "):
            url = cmd.tail(6)
            if not url.startswith(("http://", "https://")):
                return "ERR: usage update <url>"
            return self._begin(FirmwareUpdate("", url))
        if lc in ("yes", "yep", "yeah", "y"):
            return await self._accept_offer()
        return None

    async def check_for_update(self) -> str:
        offer = await self.firmware.check()
        offer.notified_at = self._clock()
        if not offer.available:
            self.firmware_offer = None
            latest = offer.version or self.firmware.current_version
            return f"OK: firmware is up to date (current {self.firmware.current_version}, latest {latest})"
        self.firmware_offer = offer
        return (
            f"🆕 Firmware update available: {offer.version} "
            f"(current {self.firmware.current_version})\n"
            "Reply: yes to install"
        )

    async def _accept_offer(self) -> Reply:
        offer = self.firmware_offer
        if offer is None or not offer.available:
            if self.pending.action is not None:
                return await self._run_confirm("")
            return None
        if self._clock() - offer.notified_at > self._config.firmware.offer_ttl_s:
            self.firmware_offer = None
            return "ERR: update offer expired. Run: update"
        return self._begin(FirmwareUpdate(offer.version, offer.download_url))

    # ------------------------------------------------------------------
    # Hosting generated content
    # ------------------------------------------------------------------

    async def _hosting(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "host_file" or lc.startswith("host_file "):
            name, _, content = cmd.tail(9).partition(" ")
            if not HOSTED_NAME.fullmatch(name):
                return "ERR: usage host_file <name> [content]"
            content = content.strip() or self._content_for(name)
            if not content:
                return "ERR: nothing to host. Generate something first or pass content"
            return self._host(name, content)

        if nlp.wants_hosting(lc):
            if self._last_web_files:
                for f in self._last_web_files:
                    self._write_hosted(f.filename, f.content)
                return f"OK: hosted {len(self._last_web_files)} files\nURL: {self._file_url('index.html')}"
            content = self._content_for("index.html")
            if not content:
                return "ERR: nothing to host. Generate something first or pass content"
            return self._host("index.html", content)
        return None

    def _content_for(self, name: str) -> str:
        """Best match for ``name`` in the last generated reply."""
        blocks = extract_code_blocks(self.last_response)
        for block in blocks:
            if block.filename == name:
                return block.content
        suffix = Path(name).suffix
        for block in blocks:
            if Path(block.filename).suffix == suffix:
                return block.content
        for f in self._last_web_files:
            if f.filename == name:
                return f.content
        return blocks[0].content if blocks else self.last_response.strip()

    def _write_hosted(self, name: str, content: str) -> Path:
        self.hosted_dir.mkdir(parents=True, exist_ok=True)
        path = self.hosted_dir / name
        path.write_text(content, encoding="utf-8")
        logger.info(f"Hosted {name} ({len(content)} chars)")
        return path

    def _file_url(self, name: str) -> str:
        api = self._config.api
        host = "localhost" if api.host in ("0.0.0.0", "") else api.host
        return f"http://{host}:{api.port}/files/{name}"

    def _host(self, name: str, content: str) -> str:
        self._write_hosted(name, content)
        self.events.append(f"HOST {name}")
        return f"OK: hosted {name}\nURL: {self._file_url(name)}"

    # ------------------------------------------------------------------
    # Cron
    # ------------------------------------------------------------------

    async def _cron(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "cron_list":
            return self.cron.describe(self.scheduler.local_now())
        if lc == "cron_clear":
            self.cron.clear()
            return "OK: cron jobs cleared"
        if lc == "cron_add" or lc.startswith("cron_add "):
            line = cmd.tail(8)
            if not line:
                return "ERR: usage cron_add <min> <hour> <day> <month> <weekday> | <command>"
            try:
                job = self.cron.add(line)
            except CronParseError as e:
                return f"ERR: {e}"
            self.events.append(f"CRON added {render(job)}")
            return f"OK: cron job added\n{render(job)}"
        return None

    # ------------------------------------------------------------------
    # LLM-backed commands
    # ------------------------------------------------------------------

    async def _llm_commands(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "plan" or lc.startswith("plan "):
            task = cmd.tail(4)
            if not task:
                return "ERR: usage plan <what to build>"
            return _cap(await self.llm.plan(task), self._limit)
        if lc == "proactive_check":
            reply = await self.llm.proactive(await self._proactive_context())
            return DispatchResult(True, _cap(reply, self._limit))
        return None

    async def _proactive_context(self) -> str:
        parts = [f"Local time: {self.scheduler.local_now():%Y-%m-%d %H:%M (%A)}"]
        parts.append(self.tasks.render())
        reminder = self.settings.get_reminder()
        if reminder is not None:
            parts.append(f"Daily {reminder.message.kind} at {reminder.time}: {reminder.message.text}")
        notes = await self.memory.get_notes()
        if notes:
            parts.append(f"Memory:\n{notes[-600:]}")
        return "\n\n".join(parts)

    # ------------------------------------------------------------------
    # Memory notes
    # ------------------------------------------------------------------

    async def _memory(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        if lc == "memory":
            notes = await self.memory.get_notes()
            if not notes:
                return "Memory is empty"
            return "Memory:\n" + notes[-self._limit :]
        if lc in ("forget", "memory_clear"):
            await self.memory.clear_notes()
            return "OK: memory cleared"
        if lc == "remember" or lc.startswith("remember "):
            note = cmd.tail(8)
            if not note:
                return "ERR: usage remember <note>"
            await self.memory.append_note(note)
            return "OK: remembered"
        return None

    # ------------------------------------------------------------------
    # Model selection
    # ------------------------------------------------------------------

    async def _model(self, cmd: _Command) -> Reply:
        lc = cmd.lc
        providers_hint = "Providers: " + ", ".join(SELECTABLE_PROVIDERS)
        if lc in ("model list", "model_list"):
            configured = ", ".join(self._configured_providers()) or "(none)"
            return f"Configured providers:\n{configured}\n\nUse: model use <provider> to switch"
        if lc in ("model status", "model_status"):
            return self._model_status()

        if lc in ("model use", "model_use") or lc.startswith(("model use ", "model_use ")):
            provider = cmd.tail(9).lower()
            if not provider:
                return f"ERR: usage model use <provider>\n{providers_hint}"
            spec = get_provider_spec(provider)
            if spec is None:
                return f"ERR: unknown provider '{provider}'\n{providers_hint}"
            if provider not in self._configured_providers():
                return (
                    f"ERR: provider '{provider}' not configured.\n"
                    f"Use: model set {provider} <your_api_key>"
                )
            self.settings.set_active_provider(provider)
            logger.info(f"Switched active LLM provider to {provider}")
            return f"OK: switched to {provider} ({spec.default_model})"

        if lc in ("model set", "model_set") or lc.startswith(("model set ", "model_set ")):
            tail = cmd.tail(9)
            if not tail:
                return f"ERR: usage model set <provider> <api_key>\n{providers_hint}"
            provider, _, api_key = tail.partition(" ")
            provider = provider.lower()
            if get_provider_spec(provider) is None:
                return "ERR: usage model set <provider> <api_key>"
            api_key = api_key.strip()
            if not api_key:
                return "ERR: API key cannot be empty"
            self.settings.set_api_key(provider, api_key)
            return f"OK: API key saved for {provider}\nUse: model use {provider} to activate"

        if lc in ("model clear", "model_clear") or lc.startswith(("model clear ", "model_clear ")):
            provider = cmd.tail(11).lower()
            if not provider:
                return "ERR: usage model clear <provider>"
            self.settings.clear_provider(provider)
            return f"OK: configuration cleared for {provider}"
        return None

    def _model_status(self) -> str:
        active = self.settings.get_active_provider()
        spec = get_provider_spec(active) if active else None
        if spec is not None and active in self.settings.get_api_keys():
            model = spec.default_model
        else:
            active = f"{active} (no key, using config)" if active else "(config default)"
            model = self._config.agent.model
        c = self.usage.counters
        return (
            "Model status:\n"
            f"Active provider: {active}\n"
            f"Model: {model}\n"
            f"Configured: {', '.join(self._configured_providers()) or '(none)'}\n"
            f"Calls: {c.total_calls} (failed {c.failed_calls})"
        )
