"""Message bus event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Attachment:
    """A file delivered alongside a reply; images carry raw bytes."""

    filename: str
    content: str | bytes
    mime_type: str = "text/plain"
    caption: str = ""


@dataclass
class InboundMessage:
    """A message received from a chat channel, the scheduler or the API."""

    channel: str  # e.g., "telegram", "cli", "scheduler", "api"
    channel_id: str  # e.g., "telegram:12345", "cli:local"
    sender_id: str
    sender_name: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboundMessage:
    """A message to send to a chat channel."""

    channel: str
    channel_id: str
    content: str
    attachments: list[Attachment] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)
