"""LLM provider abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ProviderError(Exception):
    """Raised when a completion request fails.

    ``status`` carries the HTTP status when the backend reported one
    (429 means rate limited), otherwise 0.
    """

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class ToolCallRequest:
    """A tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    provider: str = ""
    model: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        """Send a chat completion request. Raises ProviderError."""
        ...

    def active_selection(self) -> tuple[str, str, str]:
        """``(provider, model, api_key)`` the next call will use."""
        return "", "", ""

    async def generate_image(self, prompt: str, model: str = "", size: str = "") -> bytes:
        """Render ``prompt`` to PNG bytes. Raises ProviderError."""
        raise ProviderError("image generation is not supported by this provider")
