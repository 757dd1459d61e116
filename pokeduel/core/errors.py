"""Exception types raised by the battle engine."""

from __future__ import annotations


class BattleError(Exception):
    """Base class for every error the engine raises."""


class InvalidActionError(BattleError):
    """An action does not fit the decision currently being requested."""

    def __init__(self, participant_id: str, detail: str):
        super().__init__(f"Invalid action from {participant_id}: {detail}")
        self.participant_id = participant_id
        self.detail = detail


class ActionAlreadyCommittedError(BattleError):
    """A second action was committed to a gate that already holds one."""


class DecisionTimeoutError(BattleError):
    """A participant did not decide within the allotted time."""

    def __init__(self, participant_id: str, seconds: float):
        super().__init__(f"{participant_id} did not act within {seconds:g}s")
        self.participant_id = participant_id
        self.seconds = seconds


class DecisionSourceError(BattleError):
    """The channel delivering a participant's decisions is unusable."""

    def __init__(self, participant_id: str, detail: str):
        super().__init__(f"Decision source for {participant_id} failed: {detail}")
        self.participant_id = participant_id
        self.detail = detail


class InvariantViolationError(BattleError):
    """Battle state is inconsistent; the session cannot continue."""


class SessionStateError(BattleError):
    """An operation is not allowed in the session's current state."""


class SessionNotFoundError(BattleError):
    def __init__(self, token: str):
        super().__init__(f"No battle session registered under {token}")
        self.token = token


class ParticipantBusyError(BattleError):
    def __init__(self, participant_id: str):
        super().__init__(f"{participant_id} is already in a battle")
        self.participant_id = participant_id


class CatalogError(BattleError):
    """A move lookup failed."""
