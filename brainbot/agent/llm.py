"""Task-specific LLM calls, each counted in the usage stats."""

from __future__ import annotations

from typing import Any

from loguru import logger

from ..config.schema import AgentConfig
from ..providers.base import LLMProvider, LLMResponse, ProviderError
from ..settings.usage import UsageStats
from .context import (
    HEARTBEAT_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    PROACTIVE_SYSTEM_PROMPT,
    ROUTE_SYSTEM_PROMPT,
)


class LLMService:
    """Wraps an LLMProvider with the prompts the device needs.

    Every request is recorded in ``UsageStats``; failures are recorded
    with the backend's status and re-raised as ProviderError.
    """

    def __init__(self, provider: LLMProvider, config: AgentConfig, usage: UsageStats) -> None:
        self._provider = provider
        self._config = config
        self._usage = usage

    async def complete(
        self,
        messages: list[dict[str, Any]],
        call_type: str = "chat",
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        try:
            response = await self._provider.chat(
                messages=messages,
                tools=tools,
                max_tokens=max_tokens or self._config.max_tokens,
                temperature=self._config.temperature,
            )
        except ProviderError as e:
            self._usage.record_call(call_type, e.status or 500)
            raise
        self._usage.record_call(call_type, 200, response.provider, response.model)
        return response

    async def _ask(self, system: str, user: str, call_type: str, max_tokens: int | None = None) -> str:
        response = await self.complete(
            [{"role": "system", "content": system}, {"role": "user", "content": user}],
            call_type=call_type,
            max_tokens=max_tokens,
        )
        text = response.content.strip()
        if not text:
            raise ProviderError("empty reply from model")
        return text

    async def chat(self, system_prompt: str, history: list[dict[str, Any]], message: str) -> str:
        messages = [{"role": "system", "content": system_prompt}, *history]
        messages.append({"role": "user", "content": message})
        response = await self.complete(messages, call_type="chat")
        text = response.content.strip()
        if not text:
            raise ProviderError("empty reply from model")
        return text

    async def route(self, message: str) -> str:
        """Raw router reply: ``TOOL: <command>`` or ``NONE``."""
        task = f"User message:\n{message}\n\nReturn one line only."
        return await self._ask(ROUTE_SYSTEM_PROMPT, task, "route", max_tokens=120)

    async def plan(self, task: str) -> str:
        return await self._ask(PLAN_SYSTEM_PROMPT, task, "chat")

    async def heartbeat(self, instructions: str) -> str:
        task = f"Heartbeat instructions:\n{instructions}\n\nGenerate current heartbeat update."
        return await self._ask(HEARTBEAT_SYSTEM_PROMPT, task, "chat")

    async def proactive(self, context: str) -> str:
        """A short unprompted message, or "" when the model says SILENT."""
        reply = await self._ask(PROACTIVE_SYSTEM_PROMPT, context, "chat")
        if "SILENT" in reply:
            logger.debug("Proactive check: nothing to say")
            return ""
        return reply

    async def generate_image(self, prompt: str) -> bytes:
        """PNG bytes for ``prompt``, counted as an ``image`` call."""
        try:
            image = await self._provider.generate_image(prompt)
        except ProviderError as e:
            self._usage.record_call("image", e.status or 500)
            raise
        provider, _, _ = self._provider.active_selection()
        self._usage.record_call("image", 200, provider, self._config.image_model)
        if not image:
            raise ProviderError("empty image from model")
        return image
