"""The engine: owns every store and service and drives them from one loop."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Callable

from fastapi import FastAPI
from loguru import logger

from . import __version__
from .agent.llm import LLMService
from .agent.memory import MemoryManager
from .agent.pipeline import UNRECORDED_MESSAGES, Resolution, ResolutionPipeline
from .agent.react import ReactAgent
from .api.app import ApiState, create_app
from .bus.events import OutboundMessage
from .bus.queue import HandoffQueue, MessageBus
from .config.schema import Config
from .cron.store import CronStore
from .dispatcher.core import CommandDispatcher
from .dispatcher.firmware import FirmwareError, FirmwareUpdater
from .dispatcher.hardware import HardwareBackend, create_backend
from .providers.base import LLMProvider
from .providers.litellm_provider import LiteLLMProvider
from .scheduler.service import Scheduler
from .session.manager import SessionManager
from .settings.events import EventLog
from .settings.store import SettingsStore
from .settings.tasks import TaskStore
from .settings.usage import UsageStats
from .tools.email import EmailClient
from .tools.registry import build_registry
from .tools.web import WebSearchClient


class Engine:
    """Single owner of the device state.

    Each ``tick()`` drains channel messages, lets the scheduler fire due
    triggers and takes at most one message from the API handoff queue.
    Every message is resolved with ``engine.stage_timeout_s`` so one slow
    call costs a tick, not the schedule. The API thread only sees the
    handoff queue and the snapshots published at the end of each tick.
    """

    def __init__(
        self,
        config: Config,
        *,
        provider: LLMProvider | None = None,
        hardware: HardwareBackend | None = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._monotonic = monotonic
        data = config.data_path

        self.settings = SettingsStore(data)
        self.tasks = TaskStore(data)
        self.usage = UsageStats(data)
        self.events = EventLog(data)
        self.memory = MemoryManager(data)
        self.sessions = SessionManager(config.sessions_dir)
        self.cron = CronStore(data, max_jobs=config.cron.max_jobs)

        self.bus = MessageBus()
        self.handoff = HandoffQueue(config.bus.handoff_capacity, config.bus.enqueue_timeout_s)

        self.scheduler = Scheduler(
            config.scheduler,
            config.cron,
            self.cron,
            self.settings,
            self.events,
            dispatch=self._on_scheduled,
            clock=clock,
            monotonic=monotonic,
        )

        self.provider = provider or LiteLLMProvider(config, self.settings)
        self.llm = LLMService(self.provider, config.agent, self.usage)
        self.dispatcher = CommandDispatcher(
            config,
            settings=self.settings,
            tasks=self.tasks,
            usage=self.usage,
            events=self.events,
            memory=self.memory,
            sessions=self.sessions,
            cron=self.cron,
            scheduler=self.scheduler,
            hardware=hardware or create_backend(config.hardware),
            firmware=FirmwareUpdater(config.firmware, data, __version__),
            web_search=WebSearchClient(config.tools.web.search),
            email=EmailClient(config.tools.email),
            llm=self.llm,
            clock=monotonic,
        )
        self.tools = build_registry(self.dispatcher)
        self.react = ReactAgent(self.llm, self.tools, config.agent)
        self.pipeline = ResolutionPipeline(
            config.agent, self.dispatcher, self.llm, self.react, self.sessions
        )

        self._running = False
        self._ticks = 0
        self._started_at = monotonic()
        self._history: deque[dict[str, str]] = deque(maxlen=config.agent.history_turns * 2)
        self._status_snapshot: dict[str, Any] = {}
        self._history_snapshot: list[dict[str, str]] = []
        self._publish_snapshots()

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    async def handle(self, message: str, channel: str = "", channel_id: str = "") -> Resolution:
        """Resolve one message and publish the reply to ``channel``.

        Without a channel the reply goes to the default delivery target.
        """
        timeout = self.config.engine.stage_timeout_s
        try:
            resolution = await asyncio.wait_for(self.pipeline.resolve(message), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Resolving '{message[:60]}' timed out after {timeout}s")
            self.events.append(f"ERR: timeout: {message[:60]}")
            resolution = Resolution("ERR: timed out", stage="timeout")

        if resolution.text and message.strip() not in UNRECORDED_MESSAGES:
            self._history.append({"role": "user", "content": message.strip()})
            self._history.append({"role": "assistant", "content": resolution.text})

        if resolution.text or resolution.attachments:
            await self.bus.publish_outbound(
                OutboundMessage(
                    channel=channel or self.config.delivery.channel,
                    channel_id=channel_id or self.config.delivery.channel_id,
                    content=resolution.text,
                    attachments=resolution.attachments,
                )
            )
        return resolution

    async def _on_scheduled(self, message: str) -> None:
        await self.handle(message)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        for inbound in self.bus.drain_inbound():
            await self.handle(inbound.content, inbound.channel, inbound.channel_id)

        await self.scheduler.tick()

        queued = self.handoff.pop()
        if queued is not None:
            logger.info(f"Handoff message: {queued[:60]}")
            await self.handle(queued)

        self._ticks += 1
        self._publish_snapshots()

    async def start(self) -> None:
        """One-time startup work before the loop."""
        self._history.extend(await self.sessions.recent(self.config.agent.history_turns))
        self.events.append(f"BOOT: brainbot {__version__}")
        if self.config.firmware.check_on_start and self.dispatcher.firmware.configured:
            try:
                text = await self.dispatcher.check_for_update()
            except FirmwareError as e:
                logger.warning(f"Startup firmware check failed: {e}")
            else:
                if self.dispatcher.firmware_offer is not None:
                    await self.bus.publish_outbound(
                        OutboundMessage(
                            channel=self.config.delivery.channel,
                            channel_id=self.config.delivery.channel_id,
                            content=text,
                        )
                    )
        self._publish_snapshots()

    async def run(self) -> None:
        await self.start()
        self._running = True
        interval = self.config.engine.tick_interval_s
        logger.info(f"Engine running (tick every {interval}s)")
        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Engine tick failed: {e}")
            await asyncio.sleep(interval)
        logger.info("Engine stopped")

    def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # API snapshots
    # ------------------------------------------------------------------

    def _publish_snapshots(self) -> None:
        provider, model, _ = self.provider.active_selection()
        self._status_snapshot = {
            "version": __version__,
            "uptime_s": int(self._monotonic() - self._started_at),
            "provider": provider,
            "model": model,
            "safe_mode": self.settings.is_safe_mode(),
            "timezone": self.scheduler.timezone_name(),
            "ticks": self._ticks,
        }
        self._history_snapshot = list(self._history)

    def status_snapshot(self) -> dict[str, Any]:
        return dict(self._status_snapshot)

    def history_snapshot(self) -> list[dict[str, str]]:
        return list(self._history_snapshot)

    def create_api_app(self) -> FastAPI:
        return create_app(
            ApiState(
                handoff=self.handoff,
                hosted_dir=self.config.hosted_dir,
                status=self.status_snapshot,
                history=self.history_snapshot,
            )
        )
