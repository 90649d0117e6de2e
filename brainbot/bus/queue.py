"""Message bus between channels and the engine, plus the API handoff queue."""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import Awaitable, Callable

from loguru import logger

from .events import InboundMessage, OutboundMessage


class MessageBus:
    """Two asyncio queues decoupling channels from the engine.

    Channels publish inbound messages; the engine drains them on its own
    tick. Outbound messages are fanned out to registered handlers by
    ``start()``.
    """

    MAX_QUEUE_SIZE = 1000

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[InboundMessage] = asyncio.Queue(
            maxsize=self.MAX_QUEUE_SIZE
        )
        self._outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue(
            maxsize=self.MAX_QUEUE_SIZE
        )
        self._outbound_handlers: list[Callable[[OutboundMessage], Awaitable[None]]] = []
        self._running = False

    def on_outbound(self, handler: Callable[[OutboundMessage], Awaitable[None]]) -> None:
        """Register a handler for outbound messages."""
        self._outbound_handlers.append(handler)

    async def publish_inbound(self, message: InboundMessage) -> bool:
        """Publish an inbound message from a channel. Returns False if queue is full."""
        if self._inbound.full():
            logger.error(f"Inbound queue full! Dropping message from {message.channel}")
            return False
        logger.debug(
            f"Inbound from {message.channel}:{message.sender_name}: {message.content[:80]}"
        )
        await self._inbound.put(message)
        return True

    async def publish_outbound(self, message: OutboundMessage) -> bool:
        """Publish an outbound message to a channel. Returns False if queue is full."""
        if self._outbound.full():
            logger.error(f"Outbound queue full! Dropping message to {message.channel}")
            return False
        extra = f" (+{len(message.attachments)} file(s))" if message.attachments else ""
        logger.debug(f"Outbound to {message.channel}: {message.content[:80]}{extra}")
        await self._outbound.put(message)
        return True

    def drain_inbound(self) -> list[InboundMessage]:
        """Take every inbound message queued so far without waiting."""
        drained: list[InboundMessage] = []
        while True:
            try:
                drained.append(self._inbound.get_nowait())
            except asyncio.QueueEmpty:
                return drained

    @property
    def inbound_size(self) -> int:
        return self._inbound.qsize()

    async def start(self) -> None:
        """Deliver outbound messages until stopped."""
        self._running = True
        await self._process_outbound()

    async def stop(self) -> None:
        self._running = False

    async def _process_outbound(self) -> None:
        while self._running:
            try:
                message = await asyncio.wait_for(self._outbound.get(), timeout=1.0)
                for handler in self._outbound_handlers:
                    try:
                        await handler(message)
                    except Exception as e:
                        logger.error(f"Outbound handler error: {e}")
            except asyncio.TimeoutError:
                continue
            except Exception as e:
                logger.error(f"Outbound processing error: {e}")


class HandoffQueue:
    """Bounded FIFO shared between the HTTP server thread and the engine.

    ``enqueue`` waits at most ``enqueue_timeout_s`` for the lock. A timeout
    or a full queue drops the message and returns False; the caller never
    blocks longer than that.
    """

    def __init__(self, capacity: int = 64, enqueue_timeout_s: float = 0.1) -> None:
        self.capacity = capacity
        self.enqueue_timeout_s = enqueue_timeout_s
        self._lock = threading.Lock()
        self._items: deque[str] = deque()

    def enqueue(self, message: str) -> bool:
        if not self._lock.acquire(timeout=self.enqueue_timeout_s):
            logger.error(f"Handoff queue busy, dropped message: {message[:60]}")
            return False
        try:
            if len(self._items) >= self.capacity:
                logger.error(f"Handoff queue full ({self.capacity}), dropped message: {message[:60]}")
                return False
            self._items.append(message)
            return True
        finally:
            self._lock.release()

    def pop(self) -> str | None:
        """Oldest message, or None when empty."""
        with self._lock:
            return self._items.popleft() if self._items else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
