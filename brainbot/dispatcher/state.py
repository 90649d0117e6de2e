"""Conversational pending state: a confirmable action plus a reminder flow."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Union

from loguru import logger

from ..settings.types import ReminderMessage


@dataclass(frozen=True)
class RelaySet:
    pin: int
    state: int

    def describe(self) -> str:
        return f"relay_set pin {self.pin} -> {self.state}"


@dataclass(frozen=True)
class LedFlash:
    count: int

    def describe(self) -> str:
        return f"flash_led {self.count}"


@dataclass(frozen=True)
class FirmwareUpdate:
    version: str
    url: str

    def describe(self) -> str:
        label = self.version or self.url
        return f"update firmware {label}"


ActionKind = Union[RelaySet, LedFlash, FirmwareUpdate]


@dataclass(frozen=True)
class PendingAction:
    """A risky operation waiting for ``confirm``."""

    id: int
    kind: ActionKind
    expires_at: float

    @property
    def safe_mode_gated(self) -> bool:
        return isinstance(self.kind, (RelaySet, LedFlash))


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class AwaitingTimezone:
    """A reminder or web job held back until a timezone is known."""

    time: str
    message: ReminderMessage
    expires_at: float


@dataclass(frozen=True)
class AwaitingDetails:
    """The user said "daily" and still owes a time and a message."""

    expires_at: float


@dataclass(frozen=True)
class ActionPending:
    action: PendingAction


FlowState = Union[Idle, AwaitingTimezone, AwaitingDetails]
PendingState = Union[Idle, AwaitingTimezone, AwaitingDetails, ActionPending]


@dataclass
class FirmwareOffer:
    """Result of an update check, waiting for a "yes"."""

    available: bool = False
    version: str = ""
    download_url: str = ""
    notified_at: float = 0.0


class PendingMachine:
    """Holds one pending action and one reminder flow. Deadlines are checked lazily.

    The two slots are independent: starting a draft never touches a
    pending action and starting an action never touches a draft. Only
    confirm, cancel, success or a lapsed deadline remove either. Every
    change is logged through ``_log``. Action ids come from a counter that
    only increases.
    """

    def __init__(
        self,
        confirm_ttl: float = 30.0,
        draft_ttl: float = 180.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.confirm_ttl = confirm_ttl
        self.draft_ttl = draft_ttl
        self._clock = clock
        self._flow: FlowState = Idle()
        self._action: PendingAction | None = None
        self._next_id = 1

    @property
    def state(self) -> FlowState:
        """The reminder flow: Idle, AwaitingTimezone or AwaitingDetails."""
        return self._flow

    @property
    def action(self) -> PendingAction | None:
        return self._action

    @property
    def draft(self) -> AwaitingTimezone | None:
        return self._flow if isinstance(self._flow, AwaitingTimezone) else None

    @property
    def awaiting_details(self) -> bool:
        return isinstance(self._flow, AwaitingDetails)

    def action_remaining(self) -> float:
        if self._action is None:
            return 0.0
        return max(0.0, self._action.expires_at - self._clock())

    def flow_remaining(self) -> float:
        if isinstance(self._flow, Idle):
            return 0.0
        return max(0.0, self._flow.expires_at - self._clock())

    @staticmethod
    def _log(old: object, new: object, reason: str) -> None:
        if type(old) is not type(new) or old != new:
            logger.debug(f"Pending {type(old).__name__} -> {type(new).__name__} ({reason})")

    def transition(self, new_state: FlowState, reason: str) -> FlowState:
        """Replace the reminder flow. Returns the flow that was replaced."""
        old = self._flow
        self._flow = new_state
        self._log(old, new_state, reason)
        return old

    def expire(self) -> list[PendingState]:
        """Drop whatever passed its deadline; return what lapsed."""
        lapsed: list[PendingState] = []
        now = self._clock()
        if self._action is not None and now >= self._action.expires_at:
            lapsed.append(ActionPending(self._action))
            self.clear_action("expired")
        if not isinstance(self._flow, Idle) and now >= self._flow.expires_at:
            lapsed.append(self.transition(Idle(), "expired"))
        return lapsed

    def clear_action(self, reason: str) -> PendingAction | None:
        old = self._action
        self._action = None
        if old is not None:
            self._log(ActionPending(old), Idle(), reason)
        return old

    def clear_flow(self, reason: str) -> FlowState:
        return self.transition(Idle(), reason)

    def clear(self, reason: str) -> None:
        """Drop the pending action and any reminder flow."""
        self.clear_action(reason)
        self.clear_flow(reason)

    def await_timezone(self, hhmm: str, message: ReminderMessage) -> None:
        self.transition(
            AwaitingTimezone(hhmm, message, self._clock() + self.draft_ttl),
            "reminder needs timezone",
        )

    def await_details(self) -> None:
        self.transition(AwaitingDetails(self._clock() + self.draft_ttl), "daily without details")

    def begin_action(self, kind: ActionKind) -> PendingAction:
        """Start a confirmation. The caller checks that no action is pending."""
        action = PendingAction(self._next_id, kind, self._clock() + self.confirm_ttl)
        self._next_id += 1
        self._action = action
        self._log(Idle(), ActionPending(action), f"awaiting confirm id={action.id}")
        return action
