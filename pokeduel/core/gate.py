"""Per-participant synchronization point for one pending decision.

A gate is opened once per decision (lead, turn, or forced switch). Exactly
one action may be committed to it; the session awaits it with a timeout.
Committing after the gate has closed is a no-op, committing twice is an
error.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from pydantic import BaseModel, Field

from pokeduel.core.actions import Action, LegalMoves
from pokeduel.core.errors import ActionAlreadyCommittedError, DecisionSourceError

logger = logging.getLogger(__name__)


class DecisionKind(str, Enum):
    """What the session is waiting for."""

    LEAD = "lead"  # Pick the first active combatant (SwitchAction)
    TURN = "turn"  # Any action
    FORCED_SWITCH = "forced_switch"  # SwitchAction only, after a faint


class DecisionRequest(BaseModel):
    """Everything a decision source needs to choose an action."""

    kind: DecisionKind
    turn: int
    legal_moves: LegalMoves | None = None
    legal_switches: list[int] = Field(default_factory=list)
    can_mega_evolve: bool = False


class GateSignal(str, Enum):
    """Non-action outcomes of awaiting a gate."""

    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class DecisionGate:
    """A single-commit, timeout-bearing wait for one participant's action."""

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        self.request: DecisionRequest | None = None
        self._action: Action | None = None
        self._committed = False
        self._closed = True
        self._cancelled = False
        self._error: BaseException | None = None
        self._waiter: asyncio.Future | None = None

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def committed(self) -> bool:
        return self._committed

    def open(self, request: DecisionRequest) -> None:
        """Reset to not-yet-committed for a new decision."""
        self.request = request
        self._action = None
        self._committed = False
        self._cancelled = False
        self._error = None
        self._closed = False

    def close(self) -> None:
        self._closed = True

    def commit(self, action: Action) -> bool:
        """Deliver the action. Returns False if the gate is already closed."""
        if self._closed:
            logger.debug("Ignoring late action from %s: gate closed", self.participant_id)
            return False
        if self._committed:
            raise ActionAlreadyCommittedError(f"{self.participant_id} already committed an action")
        self._action = action
        self._committed = True
        self._wake()
        return True

    def fail(self, exc: BaseException) -> None:
        """Report that the decision source broke down."""
        if self._closed or self._committed:
            return
        self._error = exc
        self._wake()

    def cancel(self) -> None:
        """Release any waiter without an action and close the gate."""
        self._cancelled = True
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)

    async def await_with_timeout(self, timeout: float) -> Action | GateSignal:
        """Suspend until commit, failure, cancellation or timeout.

        Returns the committed action or a GateSignal. Raises
        DecisionSourceError if the source failed. The gate is closed on
        return, so late commits are ignored.
        """
        try:
            if not self._settled():
                self._waiter = asyncio.get_running_loop().create_future()
                try:
                    await asyncio.wait_for(self._waiter, timeout)
                except asyncio.TimeoutError:
                    pass
                finally:
                    self._waiter = None
        finally:
            self._closed = True

        if self._cancelled:
            return GateSignal.CANCELLED
        if self._committed:
            return self._action  # type: ignore[return-value]
        if self._error is not None:
            raise DecisionSourceError(self.participant_id, str(self._error)) from self._error
        logger.warning("%s did not decide within %ss", self.participant_id, timeout)
        return GateSignal.TIMEOUT

    def _settled(self) -> bool:
        return self._committed or self._cancelled or self._error is not None or self._closed
