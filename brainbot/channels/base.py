"""Abstract base class for chat channels."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..bus.events import OutboundMessage
    from ..bus.queue import MessageBus


class BaseChannel(ABC):
    """A transport that feeds the bus and delivers replies with their files."""

    def __init__(self, bus: "MessageBus") -> None:
        self._bus = bus

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name, e.g. 'telegram' or 'cli'."""
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def send(self, message: "OutboundMessage") -> None:
        """Deliver text and any attachments to ``message.channel_id``."""
        ...

    def is_allowed(self, sender_id: str) -> bool:
        """Default: everyone may talk to the device."""
        return True
