"""Bounded tool-calling loop for multi-step requests."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from ..config.schema import AgentConfig
from ..tools.registry import ToolRegistry
from .context import (
    REACT_SUMMARY_PROMPT,
    REACT_SYSTEM_PROMPT,
    format_assistant_tool_calls,
    format_tool_result,
)
from .llm import LLMService

COMPLEX_KEYWORDS = (
    "how do i", "help me", "what should", "can you", "i need to",
    "remember to", "set up", "configure", "schedule", "remind me to",
    "figure out", "find out", "check if", "make sure", "todo", "task",
    "plan", "organize", "track",
)


class ReactAgent:
    """LLM -> tools -> observe, at most ``react_max_iterations`` rounds.

    Tool results are cut to ``react_tool_result_max_chars`` before they go
    back to the model. When the budget runs out a final call without
    tools asks for a summary.
    """

    def __init__(self, llm: LLMService, tools: ToolRegistry, config: AgentConfig) -> None:
        self._llm = llm
        self._tools = tools
        self._config = config

    @staticmethod
    def should_use(message: str) -> bool:
        lc = message.lower()
        return any(k in lc for k in COMPLEX_KEYWORDS)

    async def run(self, message: str, context: list[dict[str, Any]] | None = None) -> str:
        messages: list[dict[str, Any]] = [{"role": "system", "content": REACT_SYSTEM_PROMPT}]
        messages.extend(context or [])
        messages.append({"role": "user", "content": message})

        max_iterations = self._config.react_max_iterations
        limit = self._config.react_tool_result_max_chars
        tool_schemas = self._tools.get_schemas()

        for iteration in range(max_iterations):
            logger.debug(f"ReAct iteration {iteration + 1}/{max_iterations}")
            response = await self._llm.complete(messages, call_type="chat", tools=tool_schemas or None)

            if not response.has_tool_calls:
                return response.content.strip()

            messages.append(format_assistant_tool_calls(response.content, response.tool_calls))
            for tc in response.tool_calls:
                logger.info(f"ReAct tool: {tc.name}({json.dumps(tc.arguments)[:100]})")
                result = await self._tools.execute(tc.name, tc.arguments)
                if len(result) > limit:
                    result = result[:limit] + "..."
                messages.append(format_tool_result(tc.id, tc.name, result))

        logger.warning(f"ReAct hit max iterations ({max_iterations}), asking for a summary")
        messages.append({"role": "user", "content": REACT_SUMMARY_PROMPT})
        response = await self._llm.complete(messages, call_type="chat")
        return response.content.strip()
