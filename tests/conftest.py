"""Shared fixtures: a scripted LLM provider and an engine on a temp data dir."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from brainbot.config.schema import Config
from brainbot.engine import Engine
from brainbot.providers.base import LLMProvider, LLMResponse


class FakeProvider(LLMProvider):
    """Returns queued responses in order, then ``default``.

    Queue an exception instance to make that call raise it. Every
    request is kept in ``calls`` for assertions. Image requests return
    ``image`` (or raise it when it is an exception) and are kept in
    ``image_prompts``.
    """

    def __init__(self, default: str = "Sure thing.") -> None:
        self.default = default
        self.queue: list[LLMResponse | Exception] = []
        self.calls: list[dict[str, Any]] = []
        self.image: bytes | Exception = b"\x89PNG\r\n\x1a\nfake"
        self.image_prompts: list[str] = []

    def push(self, *items: str | LLMResponse | Exception) -> None:
        for item in items:
            self.queue.append(LLMResponse(content=item) if isinstance(item, str) else item)

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        self.calls.append({"messages": messages, "tools": tools, "max_tokens": max_tokens})
        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return LLMResponse(content=self.default, provider="fake", model="fake-1")

    def active_selection(self) -> tuple[str, str, str]:
        return "fake", "fake-1", "k"

    async def generate_image(self, prompt: str, model: str = "", size: str = "") -> bytes:
        self.image_prompts.append(prompt)
        if isinstance(self.image, Exception):
            raise self.image
        return self.image


class ManualClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config(tmp_path: Path) -> Config:
    cfg = Config(data_dir=str(tmp_path / "data"))
    cfg.firmware.check_on_start = False
    return cfg


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def engine(config: Config, provider: FakeProvider, clock: ManualClock) -> Engine:
    return Engine(config, provider=provider, monotonic=clock)


@pytest.fixture
def dispatcher(engine: Engine):
    return engine.dispatcher

