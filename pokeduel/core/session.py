"""Battle session: the state machine that drives a battle to its end.

Lifecycle:
    pre_battle -> lead_selection -> turn_loop -> completed | forfeited | errored

``cancelled`` can be reached from any non-terminal state through an admin
abort. Each session runs as one asyncio task and only suspends while
waiting on decision gates.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from pokeduel.core.actions import Action, ForfeitAction, SwitchAction, parse_action
from pokeduel.core.combatant import CombatantSnapshot
from pokeduel.core.errors import (
    DecisionSourceError,
    DecisionTimeoutError,
    InvalidActionError,
    InvariantViolationError,
    SessionStateError,
)
from pokeduel.core.events import BattleLog, TurnEvent
from pokeduel.core.field import FieldState
from pokeduel.core.gate import DecisionKind, DecisionRequest, GateSignal
from pokeduel.core.participant import Participant
from pokeduel.core.resolver import TurnResolver, check_invariants
from pokeduel.utils.config import Config
from pokeduel.utils.config import config as default_config

logger = logging.getLogger(__name__)


class BattleType(str, Enum):
    """Battle rules chosen at creation."""

    SINGLE = "single"  # One combatant per side
    PARTY = "party"  # Up to a full roster
    INVERSE = "inverse"  # Party rules with the type chart inverted


class SessionStatus(str, Enum):
    """Lifecycle status of a battle session."""

    PRE_BATTLE = "pre_battle"
    LEAD_SELECTION = "lead_selection"
    TURN_LOOP = "turn_loop"
    COMPLETED = "completed"  # Winner decided, or a draw
    FORFEITED = "forfeited"  # One side forfeited or timed out
    ERRORED = "errored"  # Transport failure or internal error; no winner
    CANCELLED = "cancelled"  # Aborted by an administrator


TERMINAL_STATUSES = {
    SessionStatus.COMPLETED,
    SessionStatus.FORFEITED,
    SessionStatus.ERRORED,
    SessionStatus.CANCELLED,
}

_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.PRE_BATTLE: {SessionStatus.LEAD_SELECTION} | TERMINAL_STATUSES,
    SessionStatus.LEAD_SELECTION: {SessionStatus.TURN_LOOP} | TERMINAL_STATUSES,
    SessionStatus.TURN_LOOP: set(TERMINAL_STATUSES),
}


class BattleResult(BaseModel):
    """Terminal outcome of a session, read by reward/persistence code."""

    token: str
    status: SessionStatus
    battle_type: BattleType
    winner_id: str | None = None
    forfeited_by: list[str] = Field(default_factory=list)
    reason: str | None = None
    turns: int = 0
    created_at: datetime
    finished_at: datetime | None = None
    final_state: dict[str, list[CombatantSnapshot]] = Field(default_factory=dict)

    @property
    def is_draw(self) -> bool:
        return self.status == SessionStatus.COMPLETED and self.winner_id is None


class BattleSession:
    """Owns two participants, the field and the turn loop of one battle."""

    def __init__(
        self,
        challenger: Participant,
        opponent: Participant,
        battle_type: BattleType = BattleType.PARTY,
        config: Config | None = None,
        seed: int | None = None,
        token: str | None = None,
    ):
        self.config = config or default_config
        if challenger.participant_id == opponent.participant_id:
            raise ValueError("a participant cannot battle itself")
        for p in (challenger, opponent):
            if not p.roster:
                raise ValueError(f"{p.participant_id} has an empty roster")
            if not p.has_usable_combatants:
                raise ValueError(f"{p.participant_id} has no combatant able to battle")
            if len(p.roster) > self.config.max_roster_size:
                raise ValueError(
                    f"{p.participant_id} brought {len(p.roster)} combatants; "
                    f"the limit is {self.config.max_roster_size}"
                )
            if battle_type == BattleType.SINGLE:
                p.roster = [next(c for c in p.roster if not c.is_fainted)]

        self.token = token or uuid.uuid4().hex
        self.battle_type = battle_type
        self.participants: list[Participant] = [challenger, opponent]
        self.rng = random.Random(seed if seed is not None else self.config.seed)
        self.field = FieldState(background=self.rng.randint(1, 4))
        self.log = BattleLog()
        self.resolver = TurnResolver(
            self.participants,
            self.field,
            rng=self.rng,
            inverse=self.inverse,
            weather_turns=self.config.weather_turns,
            trick_room_turns=self.config.trick_room_turns,
            terrain_turns=self.config.terrain_turns,
        )

        self.status = SessionStatus.PRE_BATTLE
        self.turn = 0  # Completed turns; 0 during lead selection
        self.winner_id: str | None = None
        self.forfeited_by: list[str] = []
        self.reason: str | None = None
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: datetime | None = None

        logger.info(
            "Battle %s created: %s vs %s (%s)",
            self.token, challenger.participant_id, opponent.participant_id, battle_type.value,
        )

    # -- Properties ---------------------------------------------------------

    @property
    def inverse(self) -> bool:
        return self.battle_type == BattleType.INVERSE

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def participant_ids(self) -> tuple[str, str]:
        return (self.participants[0].participant_id, self.participants[1].participant_id)

    def side_of(self, participant_id: str) -> int:
        for side, p in enumerate(self.participants):
            if p.participant_id == participant_id:
                return side
        raise KeyError(participant_id)

    def pending_request(self, participant_id: str) -> DecisionRequest | None:
        """The decision currently asked of a participant, if any."""
        gate = self.participants[self.side_of(participant_id)].gate
        if self.is_terminal or not gate.is_open or gate.committed:
            return None
        return gate.request

    # -- State transitions --------------------------------------------------

    def _transition(self, new: SessionStatus) -> None:
        if new not in _TRANSITIONS.get(self.status, set()):
            raise InvariantViolationError(f"illegal transition {self.status.value} -> {new.value}")
        logger.debug("Battle %s: %s -> %s", self.token, self.status.value, new.value)
        self.status = new
        if new in TERMINAL_STATUSES:
            self.finished_at = datetime.now(timezone.utc)

    def _event(self, event_type: str, message: str, side: int | None = None) -> None:
        self.log.add(TurnEvent(
            turn=self.turn,
            event_type=event_type,
            side=side,
            participant_id=self.participants[side].participant_id if side is not None else None,
            message=message,
        ))

    def _terminate(self, status: SessionStatus, reason: str) -> None:
        self._transition(status)
        self.reason = reason
        for p in self.participants:
            p.gate.cancel()
        self.log.close_turn()
        logger.info(
            "Battle %s ended after %d turn(s): %s (winner=%s, reason=%s)",
            self.token, self.turn, status.value, self.winner_id, reason,
        )

    def _complete(self, winner_side: int | None, reason: str) -> None:
        if winner_side is None:
            self._event("draw", "The battle ended in a draw!")
        else:
            winner = self.participants[winner_side]
            self.winner_id = winner.participant_id
            self._event("win", f"{winner.name} wins the battle!", winner_side)
        self._terminate(SessionStatus.COMPLETED, reason)

    def _forfeit(self, sides: list[int], reason: str) -> None:
        self.forfeited_by = [self.participants[s].participant_id for s in sides]
        if len(sides) == 2:
            # Nobody is left to claim the win
            self._complete(None, reason)
            return
        winner_side = 1 - sides[0]
        winner = self.participants[winner_side]
        self.winner_id = winner.participant_id
        self._event("win", f"{winner.name} wins the battle!", winner_side)
        self._terminate(SessionStatus.FORFEITED, reason)

    def _error(self, reason: str) -> None:
        if self.is_terminal:
            return
        self._event("error", "The battle was stopped because of an error. No winner was declared.")
        self.winner_id = None
        self._terminate(SessionStatus.ERRORED, reason)

    def cancel(self, reason: str = "cancelled") -> bool:
        """Abort the battle. Pending actions are never executed."""
        if self.is_terminal:
            return False
        self._event("cancelled", f"The battle was cancelled ({reason}).")
        self._terminate(SessionStatus.CANCELLED, reason)
        return True

    # -- External decisions ---------------------------------------------------

    def submit(
        self,
        participant_id: str,
        turn: int,
        action: Action | dict,
        kind: DecisionKind | None = None,
    ) -> bool:
        """Deliver a decision from outside (UI, HTTP client, chat button).

        Returns False when the decision is stale: the session is over, the
        participant's gate is closed, or ``turn``/``kind`` name a different
        decision. Raises InvalidActionError for an action that does not fit
        the open request.
        """
        try:
            p = self.participants[self.side_of(participant_id)]
        except KeyError:
            raise InvalidActionError(participant_id, "not a participant of this battle") from None
        gate = p.gate
        request = gate.request
        if self.is_terminal or not gate.is_open or request is None:
            logger.debug("Battle %s: discarding action from %s, no open decision", self.token, participant_id)
            return False
        if request.turn != turn or (kind is not None and request.kind != kind):
            logger.debug(
                "Battle %s: discarding stale action from %s for turn %s", self.token, participant_id, turn
            )
            return False
        if isinstance(action, dict):
            action = parse_action(action)
        p.validate_action(action, request)
        return gate.commit(action)

    # -- Control loop -----------------------------------------------------------

    async def run(self) -> BattleResult:
        """Drive the battle to a terminal state and return its result.

        Never raises for battle errors: they end the session as ``errored``.
        """
        if self.is_terminal:
            return self.result()
        if self.status != SessionStatus.PRE_BATTLE:
            raise SessionStateError(f"battle {self.token} has already been started")
        try:
            self._team_preview()
            await self._lead_selection()
            while not self.is_terminal:
                await self._play_turn()
        except DecisionSourceError as e:
            logger.error("Battle %s: %s", self.token, e)
            self._error(str(e))
        except asyncio.CancelledError:
            self.cancel("session task cancelled")
            raise
        except Exception as e:
            logger.exception(
                "Battle %s errored on turn %d (%s vs %s)",
                self.token, self.turn + 1, *self.participant_ids,
            )
            self._error(f"{type(e).__name__}: {e}")
        finally:
            for p in self.participants:
                p.gate.cancel()
        return self.result()

    def _team_preview(self) -> None:
        for side, p in enumerate(self.participants):
            names = ", ".join(c.display_name for c in p.roster)
            self._event("preview", f"{p.name} brings {names}.", side)

    async def _lead_selection(self) -> None:
        self._transition(SessionStatus.LEAD_SELECTION)
        choosing = [s for s, p in enumerate(self.participants) if len(p.roster) > 1]
        leads = {s: 0 for s in range(2)}

        if choosing:
            results = await self._collect(DecisionKind.LEAD, choosing, self.config.lead_timeout)
            if self._settle(results, DecisionKind.LEAD):
                return
            for side, action in results.items():
                if not isinstance(action, SwitchAction):
                    raise InvariantViolationError(f"lead for side {side} is not a switch: {action!r}")
                leads[side] = action.index

        if self.is_terminal:
            return
        self._transition(SessionStatus.TURN_LOOP)
        self.resolver.begin(0)
        for side in range(2):
            self.resolver.send_in(side, leads[side])
        self.log.extend(self.resolver.drain_events())
        self.log.close_turn()
        logger.info(
            "Battle %s leads: %s / %s", self.token,
            self.participants[0].active.display_name, self.participants[1].active.display_name,
        )

    async def _play_turn(self) -> None:
        turn = self.turn + 1
        check_invariants(self.participants)
        results = await self._collect(DecisionKind.TURN, [0, 1], self.config.turn_timeout)
        if self._settle(results, DecisionKind.TURN):
            return

        outcome = self.resolver.resolve([results[0], results[1]], turn)
        self.log.extend(outcome.events)

        if outcome.forfeited_sides:
            self._forfeit(outcome.forfeited_sides, "forfeit")
            return
        if outcome.finished:
            self.turn = turn
            self._complete(outcome.winner_side, "knockout")
            return

        if outcome.replacements:
            results = await self._collect(
                DecisionKind.FORCED_SWITCH, outcome.replacements, self.config.forced_switch_timeout
            )
            if self._settle(results, DecisionKind.FORCED_SWITCH):
                return
            self.resolver.begin(turn)
            for side in sorted(results):
                action = results[side]
                if not isinstance(action, SwitchAction):
                    raise InvariantViolationError(f"replacement for side {side} is not a switch: {action!r}")
                self.resolver.send_in(side, action.index)
            self.log.extend(self.resolver.drain_events())

        self.turn = turn
        self.log.close_turn()
        logger.info(
            "Battle %s turn %d resolved (%s %d left, %s %d left)", self.token, turn,
            self.participants[0].participant_id, self.participants[0].alive_count,
            self.participants[1].participant_id, self.participants[1].alive_count,
        )

    async def _collect(
        self,
        kind: DecisionKind,
        sides: list[int],
        timeout: float,
    ) -> dict[int, Action | GateSignal]:
        """Open the gates of ``sides`` and wait for all of them."""
        tag = 0 if kind == DecisionKind.LEAD else self.turn + 1
        for side in sides:
            p = self.participants[side]
            p.gate.open(p.build_request(kind, tag))
        for side in sides:
            p = self.participants[side]
            opponent = self.participants[1 - side]
            p.prepare(p.gate.request, opponent, self.rng, self.inverse)

        outcomes = await asyncio.gather(*(self.participants[s].await_decision(timeout) for s in sides))
        return dict(zip(sides, outcomes))

    def _settle(self, results: dict[int, Action | GateSignal], kind: DecisionKind) -> bool:
        """End the battle if a gate timed out, was cancelled, or forfeited.

        Returns True when the session is now terminal. Turn forfeits are
        left to the resolver unless a timeout already ends the battle.
        """
        if self.is_terminal or any(r == GateSignal.CANCELLED for r in results.values()):
            if not self.is_terminal:
                self.cancel("decision cancelled")
            return True

        timed_out = [s for s, r in results.items() if r == GateSignal.TIMEOUT]
        forfeits = [s for s, r in results.items() if isinstance(r, ForfeitAction)]
        for side in timed_out:
            p = self.participants[side]
            seconds = {
                DecisionKind.LEAD: self.config.lead_timeout,
                DecisionKind.TURN: self.config.turn_timeout,
                DecisionKind.FORCED_SWITCH: self.config.forced_switch_timeout,
            }[kind]
            logger.warning("Battle %s: %s", self.token, DecisionTimeoutError(p.participant_id, seconds))
            self._event("forfeit", f"{p.name} ran out of time and forfeited!", side)

        if kind == DecisionKind.TURN and not timed_out:
            return False
        for side in forfeits:
            self._event("forfeit", f"{self.participants[side].name} forfeited the battle!", side)

        losers = sorted(set(timed_out) | set(forfeits))
        if not losers:
            return False
        self._forfeit(losers, "timeout" if timed_out else "forfeit")
        return True

    # -- Output -------------------------------------------------------------------

    def result(self) -> BattleResult:
        return BattleResult(
            token=self.token,
            status=self.status,
            battle_type=self.battle_type,
            winner_id=self.winner_id,
            forfeited_by=list(self.forfeited_by),
            reason=self.reason,
            turns=self.turn,
            created_at=self.created_at,
            finished_at=self.finished_at,
            final_state={p.participant_id: [c.snapshot() for c in p.roster] for p in self.participants},
        )

