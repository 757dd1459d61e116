"""The two sides of a battle: human-driven and AI-driven participants."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from pokeduel.core.actions import (
    Action,
    ForfeitAction,
    LegalMoveKind,
    LegalMoves,
    MoveAction,
    SwitchAction,
)
from pokeduel.core.combatant import Combatant
from pokeduel.core.errors import InvalidActionError, InvariantViolationError
from pokeduel.core.gate import DecisionGate, DecisionKind, DecisionRequest, GateSignal
from pokeduel.core.moves import get_type_effectiveness

logger = logging.getLogger(__name__)

AI_ID_PREFIX = "ai:"

# Async callable that produces a decision for a human: the transport
PromptFn = Callable[..., Awaitable[Action]]


class Participant(BaseModel):
    """One side of a battle: a roster, its active slot and a pending action."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    participant_id: str
    name: str
    roster: list[Combatant]
    active_index: int | None = None
    action: Action | None = None
    has_mega_evolved: bool = False

    _gate: DecisionGate = PrivateAttr()

    def model_post_init(self, __context) -> None:
        self._gate = DecisionGate(self.participant_id)

    @property
    def gate(self) -> DecisionGate:
        return self._gate

    @property
    def is_human(self) -> bool:
        return True

    @property
    def active(self) -> Combatant | None:
        if self.active_index is None or not 0 <= self.active_index < len(self.roster):
            return None
        return self.roster[self.active_index]

    @property
    def has_usable_combatants(self) -> bool:
        return any(not c.is_fainted for c in self.roster)

    @property
    def alive_count(self) -> int:
        return sum(1 for c in self.roster if not c.is_fainted)

    @property
    def needs_replacement(self) -> bool:
        """Active combatant fainted and a living one can take its place."""
        active = self.active
        return active is not None and active.is_fainted and bool(self.living_bench())

    def living_bench(self) -> list[int]:
        return [i for i, c in enumerate(self.roster) if not c.is_fainted and i != self.active_index]

    # -- Legality -----------------------------------------------------------

    def legal_moves(self) -> LegalMoves:
        """Moves the active combatant may use this turn."""
        active = self.active
        if active is None or active.is_fainted:
            return LegalMoves(kind=LegalMoveKind.INDEXES)
        if active.is_locked:
            return LegalMoves(kind=LegalMoveKind.FORCED, indexes=[active.locked_move_index])
        with_pp = active.moves_with_pp()
        if not with_pp:
            return LegalMoves(kind=LegalMoveKind.STRUGGLE)
        return LegalMoves(kind=LegalMoveKind.INDEXES, indexes=with_pp)

    def legal_switches(self, forced: bool = False) -> list[int]:
        """Roster indexes that may be switched in.

        A trapped active combatant blocks switching unless it can escape
        traps, or the switch is forced by a faint.
        """
        active = self.active
        if not forced and active is not None and not active.is_fainted:
            if active.trapped_turns > 0 and not active.can_escape_traps:
                return []
        return self.living_bench()

    def can_mega_evolve(self) -> bool:
        active = self.active
        return not self.has_mega_evolved and active is not None and active.can_mega_evolve

    def build_request(self, kind: DecisionKind, turn: int) -> DecisionRequest:
        if kind == DecisionKind.LEAD:
            return DecisionRequest(
                kind=kind, turn=turn, legal_switches=[i for i, c in enumerate(self.roster) if not c.is_fainted]
            )
        if kind == DecisionKind.FORCED_SWITCH:
            return DecisionRequest(kind=kind, turn=turn, legal_switches=self.legal_switches(forced=True))
        return DecisionRequest(
            kind=kind,
            turn=turn,
            legal_moves=self.legal_moves(),
            legal_switches=self.legal_switches(),
            can_mega_evolve=self.can_mega_evolve(),
        )

    def validate_action(self, action: Action, request: DecisionRequest) -> None:
        """Raise InvalidActionError if ``action`` does not answer ``request``."""
        if isinstance(action, ForfeitAction):
            return
        if request.kind in (DecisionKind.LEAD, DecisionKind.FORCED_SWITCH):
            if not isinstance(action, SwitchAction):
                raise InvalidActionError(self.participant_id, f"a {request.kind.value} needs a switch")
        if isinstance(action, SwitchAction):
            if action.index not in request.legal_switches:
                raise InvalidActionError(self.participant_id, f"cannot switch to slot {action.index}")
        elif isinstance(action, MoveAction):
            legal = request.legal_moves
            if legal is None or not legal.allows(action.move_index):
                raise InvalidActionError(self.participant_id, f"move {action.move_index} is not usable")
            if action.mega_evolve and not request.can_mega_evolve:
                raise InvalidActionError(self.participant_id, "mega evolution is not available")

    # -- Roster changes -------------------------------------------------------

    def switch_to(self, index: int) -> Combatant:
        """Make ``index`` the active combatant. Returns the incoming one."""
        outgoing = self.active
        if outgoing is not None:
            outgoing.reset_on_switch_out()
        self.active_index = index
        incoming = self.roster[index]
        incoming.send_out()
        return incoming

    # -- Decisions ------------------------------------------------------------

    def prepare(self, request: DecisionRequest, opponent: "Participant", rng: random.Random, inverse: bool) -> None:
        """Hook run right after the gate opens. Humans wait for input."""

    async def await_decision(self, timeout: float) -> Action | GateSignal:
        return await self._gate.await_with_timeout(timeout)


class HumanParticipant(Participant):
    """A side whose decisions arrive asynchronously from outside.

    Decisions are delivered either through ``BattleSession.submit`` or by
    the optional ``prompt`` coroutine, which stands in for the transport
    (a chat button, an HTTP client, a terminal prompt).
    """

    prompt: PromptFn | None = None

    async def await_decision(self, timeout: float) -> Action | GateSignal:
        task = asyncio.create_task(self._run_prompt()) if self.prompt else None
        try:
            return await self._gate.await_with_timeout(timeout)
        finally:
            if task is not None and not task.done():
                task.cancel()

    async def _run_prompt(self) -> None:
        request = self._gate.request
        if self.prompt is None or request is None:
            raise InvariantViolationError(f"{self.participant_id} has no prompt or pending request")
        while self._gate.is_open:
            try:
                action = await self.prompt(self, request)
                self.validate_action(action, request)
            except InvalidActionError as e:
                logger.info("Re-prompting %s: %s", self.participant_id, e.detail)
                # Let the loop run its timers between attempts
                await asyncio.sleep(0)
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._gate.fail(e)
                return
            self._gate.commit(action)
            return


class AutomatedParticipant(Participant):
    """An AI side that commits its decision as soon as the gate opens."""

    @property
    def is_human(self) -> bool:
        return False

    def prepare(self, request: DecisionRequest, opponent: Participant, rng: random.Random, inverse: bool) -> None:
        self._gate.commit(choose_action(self, request, opponent, rng, inverse))


# ---------------------------------------------------------------------------
# AI policy
# ---------------------------------------------------------------------------

def choose_action(
    me: Participant,
    request: DecisionRequest,
    opponent: Participant,
    rng: random.Random,
    inverse: bool = False,
) -> Action:
    """Pick an action for an automated participant.

    Leads and forced switches take the first living roster member. Turns
    use the highest scoring legal move (power times effectiveness against
    the opposing active combatant), ties broken by ``rng``; if every legal
    move scores 0 a random legal move is used.
    """
    if request.kind != DecisionKind.TURN:
        if not request.legal_switches:
            return ForfeitAction()
        return SwitchAction(index=request.legal_switches[0])

    legal = request.legal_moves
    mega = request.can_mega_evolve
    if legal is None or legal.kind == LegalMoveKind.STRUGGLE:
        return MoveAction(move_index=0, mega_evolve=mega)
    if legal.kind == LegalMoveKind.FORCED:
        return MoveAction(move_index=legal.indexes[0], mega_evolve=mega)
    if not legal.indexes:
        if request.legal_switches:
            return SwitchAction(index=request.legal_switches[0])
        return ForfeitAction()

    active = me.active
    target = opponent.active
    if active is None:
        raise InvariantViolationError(f"{me.participant_id} has no active combatant")

    def score(index: int) -> float:
        move = active.moves[index]
        if not move.power:
            return 0.0
        if target is None:
            return float(move.power)
        types = target.types
        return move.power * get_type_effectiveness(
            move.type, types[0], types[1] if len(types) > 1 else None, inverse
        )

    scores = {i: score(i) for i in legal.indexes}
    best = max(scores.values())
    if best <= 0:
        return MoveAction(move_index=rng.choice(legal.indexes), mega_evolve=mega)
    candidates = [i for i, s in scores.items() if s == best]
    return MoveAction(move_index=rng.choice(candidates), mega_evolve=mega)
