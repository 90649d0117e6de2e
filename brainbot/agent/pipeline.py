"""Message resolution: dispatcher, router, reasoning loop, then chat."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from ..bus.events import Attachment
from ..config.schema import AgentConfig
from ..dispatcher.core import CommandDispatcher
from ..providers.base import ProviderError
from ..session.manager import SessionManager
from .attachments import split_reply
from .context import build_system_prompt
from .llm import LLMService
from .react import ReactAgent
from .router import extract_routed_command, should_try_route

# Scheduler triggers whose replies are not part of the conversation
UNRECORDED_MESSAGES = frozenset({"heartbeat_run", "reminder_run"})


@dataclass
class Resolution:
    text: str
    attachments: list[Attachment] = field(default_factory=list)
    stage: str = "chat"  # dispatch, denied, route, react, chat


class ResolutionPipeline:
    """Resolve one incoming message to a reply.

    Stages run in order and the first to produce a reply wins:

    1. the dispatcher, verbatim
    2. unknown ``/commands`` are refused
    3. the LLM router, when the text looks like an instruction
    4. the tool-calling loop, for multi-step requests
    5. a plain chat completion

    Every message and reply is appended to the event log; chat turns are
    saved to the session except for internal scheduler triggers.
    """

    def __init__(
        self,
        config: AgentConfig,
        dispatcher: CommandDispatcher,
        llm: LLMService,
        react: ReactAgent,
        sessions: SessionManager,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._llm = llm
        self._react = react
        self._sessions = sessions

    def _cap(self, text: str) -> str:
        limit = self._config.message_limit
        return text[:limit] + "..." if len(text) > limit else text

    async def resolve(self, message: str) -> Resolution:
        message = message.strip()
        if not message:
            return Resolution("", stage="dispatch")
        events = self._dispatcher.events
        events.append(f"IN: {message}")

        resolution = await self._resolve(message)

        if resolution.text:
            events.append(f"OUT: {resolution.text}")
            if message not in UNRECORDED_MESSAGES:
                await self._sessions.add_turn("user", message)
                await self._sessions.add_turn("assistant", resolution.text)
        logger.debug(f"Resolved via {resolution.stage}: {resolution.text[:80]!r}")
        return resolution

    async def _resolve(self, message: str) -> Resolution:
        result = await self._dispatcher.execute(message)
        if result.handled:
            return Resolution(self._cap(result.output), result.attachments, "dispatch")

        if message.startswith("/"):
            return Resolution("Denied or unknown command", stage="denied")

        if should_try_route(message):
            routed = await self._route(message)
            if routed is not None:
                return routed

        history = await self._sessions.recent(self._config.history_turns)

        if ReactAgent.should_use(message):
            try:
                reply = await self._react.run(message, history)
            except ProviderError as e:
                logger.warning(f"ReAct failed, falling back to chat: {e}")
            else:
                if reply:
                    return self._finish_generated(reply, "react")

        try:
            reply = await self._llm.chat(await self._system_prompt(), history, message)
        except ProviderError as e:
            return Resolution(f"ERR: {e}", stage="chat")
        return self._finish_generated(reply, "chat")

    async def _route(self, message: str) -> Resolution | None:
        try:
            raw = await self._llm.route(message)
        except ProviderError as e:
            logger.warning(f"Router unavailable: {e}")
            return None

        command = extract_routed_command(raw, self._config.route_max_chars)
        if not command:
            return None
        result = await self._dispatcher.execute(command)
        if not result.handled:
            logger.debug(f"Router suggested unknown command: {command}")
            return None
        logger.info(f"Routed '{message[:60]}' -> {command}")
        self._dispatcher.events.append(f"ROUTE: {command}")
        return Resolution(self._cap(result.output), result.attachments, "route")

    def _finish_generated(self, reply: str, stage: str) -> Resolution:
        self._dispatcher.remember_reply(reply)
        text, attachments = split_reply(reply)
        return Resolution(self._cap(text), attachments, stage)

    async def _system_prompt(self) -> str:
        d = self._dispatcher
        tz = d.settings.get_timezone()
        tz_state = f"user timezone {tz}" if tz else (
            f"not set, using {d.scheduler.timezone_name()}; ask the user before scheduling"
        )
        schedule: list[str] = []
        reminder = d.settings.get_reminder()
        if reminder is not None:
            schedule.append(f"daily {reminder.message.kind} at {reminder.time}: {reminder.message.text}")
        if d.cron.count():
            schedule.append(f"{d.cron.count()} cron job(s)")
        return build_system_prompt(
            soul=d.settings.get_str("soul"),
            memory_notes=await d.memory.get_notes(),
            timezone_state=tz_state,
            schedule_state="\n".join(schedule),
            now=d.scheduler.local_now(),
        )
