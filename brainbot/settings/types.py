"""Typed values held by the settings store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class PlainNote:
    """A reminder that is delivered as-is."""

    text: str

    kind = "note"


@dataclass(frozen=True)
class WebJobTask:
    """A reminder whose text is a research task run through web search."""

    text: str

    kind = "webjob"


ReminderMessage = Union[PlainNote, WebJobTask]


@dataclass(frozen=True)
class DailyReminder:
    """The single daily trigger slot."""

    time: str  # "HH:MM"
    message: ReminderMessage

    @property
    def is_webjob(self) -> bool:
        return isinstance(self.message, WebJobTask)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "message": {"kind": self.message.kind, "text": self.message.text},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyReminder:
        msg = data.get("message") or {}
        text = str(msg.get("text", ""))
        message: ReminderMessage = (
            WebJobTask(text) if msg.get("kind") == "webjob" else PlainNote(text)
        )
        return cls(time=str(data.get("time", "")), message=message)


@dataclass
class EmailDraft:
    to: str = ""
    subject: str = ""
    body: str = ""

    @property
    def empty(self) -> bool:
        return not (self.to or self.subject or self.body)
