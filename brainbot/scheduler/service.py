"""Time-driven trigger source: fixed timers, cron jobs and the daily reminder."""

from __future__ import annotations

import time
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Callable

from loguru import logger

from ..config.schema import CronConfig, SchedulerConfig
from ..cron.parser import render
from ..cron.store import CronStore
from ..settings.events import EventLog
from ..settings.store import SettingsStore
from .timezones import DEFAULT_TZ, normalize_tz, tzinfo_for

# Wall-clock values below this mean the clock has not been synced yet
SYNC_THRESHOLD_EPOCH = 1_700_000_000

Dispatch = Callable[[str], Awaitable[Any]]


class Scheduler:
    """Injects synthetic messages into the pipeline when their time comes.

    ``tick()`` is cheap and meant to be called on every engine loop
    iteration; each check throttles itself. ``clock`` returns wall-clock
    epoch seconds and ``monotonic`` drives the fixed-interval timers, both
    injectable for tests.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        cron_config: CronConfig,
        cron: CronStore,
        settings: SettingsStore,
        events: EventLog,
        dispatch: Dispatch,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._cron_config = cron_config
        self._cron = cron
        self._settings = settings
        self._events = events
        self._dispatch = dispatch
        self._clock = clock
        self._monotonic = monotonic

        self._started = False
        self._next_status = 0.0
        self._next_heartbeat = 0.0
        self._next_proactive = 0.0
        self._next_cron_check = 0.0
        self._next_reminder_check = 0.0

        self._missed_checked = False
        self._last_cron_minute: int | None = None
        self._last_reminder_minute: int | None = None

        self._tz_rule = ""
        self._tz: tzinfo | None = None

    # ------------------------------------------------------------------
    # Time base
    # ------------------------------------------------------------------

    def epoch(self) -> int:
        return int(self._clock())

    def is_synced(self) -> bool:
        return self.epoch() >= SYNC_THRESHOLD_EPOCH

    def timezone_name(self) -> str:
        return self._settings.get_timezone() or self._config.default_timezone or DEFAULT_TZ

    def _apply_timezone(self) -> tzinfo:
        """Resolve the effective zone, re-applying it only when it changed."""
        name = self.timezone_name()
        rule = normalize_tz(name)
        if self._tz is None or rule != self._tz_rule:
            logger.info(f"Applying timezone {name} ({rule})")
            self._tz_rule = rule
            self._tz = tzinfo_for(name)
        return self._tz

    def local_now(self) -> datetime:
        return datetime.fromtimestamp(self.epoch(), self._apply_timezone())

    def time_report(self) -> str:
        epoch = self.epoch()
        local = datetime.fromtimestamp(epoch, self._apply_timezone())
        offset = local.utcoffset()
        offset_sec = int(offset.total_seconds()) if offset is not None else 0
        return (
            "Time:\n"
            f"tz_active={self._tz_rule}\n"
            f"tz_offset_sec={offset_sec}\n"
            f"epoch={epoch}\n"
            f"synced={'yes' if epoch >= SYNC_THRESHOLD_EPOCH else 'no'}\n"
            f"local={local.strftime('%Y-%m-%d %H:%M:%S')}"
        )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _start(self, now: float) -> None:
        cfg = self._config
        self._started = True
        self._next_status = now + cfg.status_interval_s
        self._next_heartbeat = now + cfg.heartbeat_interval_s
        self._next_proactive = now + cfg.proactive_interval_s
        self._next_cron_check = now + cfg.startup_delay_s
        self._next_reminder_check = now + cfg.startup_delay_s
        logger.info(
            f"Scheduler started (status={'on' if cfg.status_enabled else 'off'}, "
            f"heartbeat={'on' if cfg.heartbeat_enabled else 'off'}, "
            f"proactive={'on' if cfg.proactive_enabled else 'off'})"
        )

    async def tick(self) -> None:
        now = self._monotonic()
        if not self._started:
            self._start(now)
        cfg = self._config

        if cfg.status_enabled and now >= self._next_status:
            self._next_status = now + cfg.status_interval_s
            await self._fire("status", "SCHED: status")

        if cfg.heartbeat_enabled and now >= self._next_heartbeat:
            self._next_heartbeat = now + cfg.heartbeat_interval_s
            if self._settings.get_str("heartbeat").strip():
                await self._fire("heartbeat_run", "SCHED: heartbeat_run")
            else:
                logger.debug("Heartbeat skipped: no heartbeat text configured")

        if cfg.proactive_enabled and now >= self._next_proactive:
            self._next_proactive = now + cfg.proactive_interval_s
            await self._fire("proactive_check", "SCHED: proactive_check")

        if now >= self._next_cron_check:
            self._next_cron_check = now + cfg.check_interval_s
            await self.check_cron()

        if now >= self._next_reminder_check:
            self._next_reminder_check = now + cfg.check_interval_s
            await self.check_reminder()

    async def _fire(self, message: str, event: str) -> None:
        logger.info(f"Scheduler dispatch: {message}")
        self._events.append(event)
        try:
            await self._dispatch(message)
        except Exception as e:
            logger.error(f"Scheduled dispatch of '{message}' failed: {e}")

    # ------------------------------------------------------------------
    # Cron
    # ------------------------------------------------------------------

    async def check_cron(self) -> None:
        epoch = self.epoch()
        if epoch < SYNC_THRESHOLD_EPOCH:
            logger.debug("Cron check skipped: time not synced")
            return
        tz = self._apply_timezone()

        if not self._missed_checked:
            # The minute recorded before a restart has already been checked
            last_check = self._cron.last_check()
            if last_check > 0:
                self._last_cron_minute = last_check // 60
            await self._replay_missed(epoch, tz)

        minute_key = epoch // 60
        if minute_key == self._last_cron_minute:
            return
        self._last_cron_minute = minute_key

        local = datetime.fromtimestamp(epoch, tz)
        for job in self._cron.due(local):
            logger.info(f"⏰ Cron trigger at {local:%H:%M}: {render(job)}")
            await self._fire(job.command, f"CRON: {job.command}")
        self._cron.update_last_check(epoch)

    async def _replay_missed(self, epoch: int, tz: tzinfo) -> None:
        """Replay fires missed while the device was down, once per boot."""
        self._missed_checked = True
        missed = self._cron.check_missed(
            epoch,
            tz,
            max_jobs=self._cron_config.missed_max,
            lookback_hours=self._cron_config.missed_lookback_hours,
        )
        if missed:
            logger.info(f"Replaying {len(missed)} missed cron job(s)")
        for job in missed:
            logger.info(f"🔄 Missed job from {job.label}: {job.command}")
            await self._fire(job.command, f"CRON missed {job.label}: {job.command}")
        self._cron.update_last_check(epoch)

    # ------------------------------------------------------------------
    # Daily reminder
    # ------------------------------------------------------------------

    async def check_reminder(self) -> None:
        epoch = self.epoch()
        if epoch < SYNC_THRESHOLD_EPOCH:
            return

        minute_key = epoch // 60
        if minute_key == self._last_reminder_minute:
            return
        self._last_reminder_minute = minute_key

        reminder = self._settings.get_reminder()
        if reminder is None:
            return
        local = datetime.fromtimestamp(epoch, self._apply_timezone())
        if local.strftime("%H:%M") == reminder.time:
            await self._fire("reminder_run", f"SCHED: reminder_run {reminder.time}")
