"""Send-message state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class SendState(str, Enum):
    """Lifecycle of a single send operation in one chat."""

    IDLE = "IDLE"
    SENDING = "SENDING"
    STREAMING = "STREAMING"
    FALLBACK = "FALLBACK"
    SETTLED = "SETTLED"


ALLOWED_TRANSITIONS: dict[SendState, frozenset[SendState]] = {
    SendState.IDLE: frozenset({SendState.SENDING}),
    SendState.SENDING: frozenset(
        {SendState.STREAMING, SendState.FALLBACK, SendState.SETTLED}
    ),
    SendState.STREAMING: frozenset({SendState.SETTLED}),
    SendState.FALLBACK: frozenset({SendState.SETTLED}),
    SendState.SETTLED: frozenset({SendState.SENDING}),
}


class InvalidTransition(RuntimeError):
    """Raised when a transition is not part of the send lifecycle."""


class StateManager:
    """Manage send-state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SendState.IDLE

    @property
    def state(self) -> SendState:
        return self._state

    async def transition_to(self, new_state: SendState) -> SendState:
        """Transition to a new state and return it."""
        async with self._lock:
            if new_state not in ALLOWED_TRANSITIONS[self._state]:
                raise InvalidTransition(
                    f"Cannot move from {self._state.value} to {new_state.value}."
                )
            self._state = new_state
            return self._state

    async def try_begin_send(self) -> bool:
        """Enter SENDING only when no send is in flight."""
        async with self._lock:
            if self._state not in {SendState.IDLE, SendState.SETTLED}:
                return False
            self._state = SendState.SENDING
            return True
