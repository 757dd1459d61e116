"""Tests for participants, legality queries and the AI policy."""

import asyncio
import random

import pytest

from pokeduel.core.actions import ForfeitAction, LegalMoveKind, MoveAction, SwitchAction
from pokeduel.core.errors import InvalidActionError
from pokeduel.core.gate import DecisionKind, DecisionRequest, GateSignal
from pokeduel.core.moves import DamageClass
from pokeduel.core.participant import choose_action

from tests.conftest import make_ai, make_combatant, make_human, make_move


def _make_trio():
    return [
        make_combatant(species="pikachu"),
        make_combatant(species="bulbasaur", type1="grass", type2="poison"),
        make_combatant(species="squirtle", type1="water"),
    ]


class TestLegalMoves:
    def test_moves_with_pp(self):
        p = make_human(active_index=0)
        p.active.moves[1].current_pp = 0
        legal = p.legal_moves()
        assert legal.kind == LegalMoveKind.INDEXES
        assert legal.indexes == [0]

    def test_struggle_when_out_of_pp(self):
        p = make_human(active_index=0)
        for m in p.active.moves:
            m.current_pp = 0
        legal = p.legal_moves()
        assert legal.kind == LegalMoveKind.STRUGGLE
        assert not legal.requires_choice
        assert legal.allows(3)

    def test_forced_when_locked(self):
        p = make_human(active_index=0)
        p.active.locked_move_index = 1
        p.active.locked_turns = 1
        legal = p.legal_moves()
        assert legal.kind == LegalMoveKind.FORCED
        assert legal.indexes == [1]


class TestLegalSwitches:
    def test_living_bench(self):
        roster = _make_trio()
        roster[2].current_hp = 0
        p = make_human(roster=roster, active_index=0)
        assert p.legal_switches() == [1]

    def test_trapped_cannot_switch(self):
        p = make_human(roster=_make_trio(), active_index=0)
        p.active.trapped_turns = 3
        assert p.legal_switches() == []
        assert p.legal_switches(forced=True) == [1, 2]

    def test_ghost_ignores_trap(self):
        roster = _make_trio()
        roster[0] = make_combatant(species="gastly", type1="ghost", type2="poison")
        p = make_human(roster=roster, active_index=0)
        p.active.trapped_turns = 3
        assert p.legal_switches() == [1, 2]

    def test_needs_replacement(self):
        p = make_human(roster=_make_trio(), active_index=0)
        assert not p.needs_replacement
        p.active.current_hp = 0
        assert p.needs_replacement
        assert p.alive_count == 2


class TestQueriesAreRepeatable:
    def _make_normal(self):
        return make_human(roster=_make_trio(), active_index=0)

    def _make_struggling(self):
        p = self._make_normal()
        for m in p.active.moves:
            m.current_pp = 0
        return p

    def _make_locked(self):
        p = self._make_normal()
        p.active.locked_move_index = 1
        p.active.locked_turns = 2
        return p

    def _make_trapped(self):
        p = self._make_normal()
        p.active.trapped_turns = 3
        return p

    @pytest.mark.parametrize("state", ["normal", "struggling", "locked", "trapped"])
    def test_same_answer_twice(self, state):
        p = getattr(self, f"_make_{state}")()
        before = p.active.model_copy(deep=True)

        assert p.legal_moves() == p.legal_moves()
        assert p.legal_switches() == p.legal_switches()
        assert p.legal_switches(forced=True) == p.legal_switches(forced=True)
        assert p.build_request(DecisionKind.TURN, 5) == p.build_request(DecisionKind.TURN, 5)
        assert p.active == before

    def test_locked_query_keeps_lock(self):
        p = self._make_locked()
        p.legal_moves()
        p.build_request(DecisionKind.TURN, 1)
        assert p.active.locked_move_index == 1
        assert p.active.locked_turns == 2


class TestRequests:
    def test_lead_request(self):
        roster = _make_trio()
        roster[1].current_hp = 0
        p = make_human(roster=roster)
        request = p.build_request(DecisionKind.LEAD, 0)
        assert request.legal_switches == [0, 2]
        assert request.legal_moves is None

    def test_turn_request_offers_mega(self):
        roster = [make_combatant(mega_stats={"atk": 120}), make_combatant(species="raichu")]
        p = make_human(roster=roster, active_index=0)
        request = p.build_request(DecisionKind.TURN, 3)
        assert request.turn == 3
        assert request.can_mega_evolve
        p.has_mega_evolved = True
        assert not p.build_request(DecisionKind.TURN, 3).can_mega_evolve


class TestValidateAction:
    def _request(self, p, kind=DecisionKind.TURN):
        return p.build_request(kind, 1)

    def test_valid_move(self):
        p = make_human(roster=_make_trio(), active_index=0)
        p.validate_action(MoveAction(move_index=1), self._request(p))

    def test_move_without_pp(self):
        p = make_human(roster=_make_trio(), active_index=0)
        p.active.moves[0].current_pp = 0
        with pytest.raises(InvalidActionError):
            p.validate_action(MoveAction(move_index=0), self._request(p))

    def test_move_slot_out_of_range(self):
        p = make_human(roster=_make_trio(), active_index=0)
        with pytest.raises(InvalidActionError):
            p.validate_action(MoveAction(move_index=3), self._request(p))

    def test_switch_to_active(self):
        p = make_human(roster=_make_trio(), active_index=0)
        with pytest.raises(InvalidActionError):
            p.validate_action(SwitchAction(index=0), self._request(p))

    def test_forced_switch_needs_switch(self):
        p = make_human(roster=_make_trio(), active_index=0)
        p.active.current_hp = 0
        with pytest.raises(InvalidActionError):
            p.validate_action(MoveAction(move_index=0), self._request(p, DecisionKind.FORCED_SWITCH))

    def test_mega_not_available(self):
        p = make_human(roster=_make_trio(), active_index=0)
        with pytest.raises(InvalidActionError):
            p.validate_action(MoveAction(move_index=0, mega_evolve=True), self._request(p))

    def test_forfeit_always_valid(self):
        p = make_human(roster=_make_trio(), active_index=0)
        p.validate_action(ForfeitAction(), self._request(p, DecisionKind.FORCED_SWITCH))


class TestSwitchTo:
    def test_switch_resets_outgoing(self):
        p = make_human(roster=_make_trio(), active_index=0)
        outgoing = p.active
        outgoing.modify_stage("atk", 2)
        incoming = p.switch_to(2)
        assert p.active_index == 2
        assert incoming.ever_sent_out
        assert outgoing.stages["atk"] == 0


class TestChooseAction:
    def test_picks_super_effective(self):
        me = make_human(active_index=0, roster=[make_combatant(moves=[
            make_move("tackle", "normal", 40),
            make_move("thunderbolt", "electric", 90, damage_class=DamageClass.SPECIAL),
        ])])
        foe = make_ai()
        foe.roster[0] = make_combatant(species="gyarados", type1="water", type2="flying")
        foe.active_index = 0
        action = choose_action(me, me.build_request(DecisionKind.TURN, 1), foe, random.Random(0))
        assert action == MoveAction(move_index=1)

    def test_avoids_immune_target(self):
        me = make_human(active_index=0, roster=[make_combatant(moves=[
            make_move("thunderbolt", "electric", 90, damage_class=DamageClass.SPECIAL),
            make_move("tackle", "normal", 40),
        ])])
        foe = make_ai(roster=[make_combatant(species="sandslash", type1="ground")])
        foe.active_index = 0
        action = choose_action(me, me.build_request(DecisionKind.TURN, 1), foe, random.Random(0))
        assert action == MoveAction(move_index=1)

    def test_inverse_flips_preference(self):
        me = make_human(active_index=0, roster=[make_combatant(moves=[
            make_move("thunderbolt", "electric", 90, damage_class=DamageClass.SPECIAL),
            make_move("tackle", "normal", 90),
        ])])
        foe = make_ai(roster=[make_combatant(species="sandslash", type1="ground")])
        foe.active_index = 0
        action = choose_action(me, me.build_request(DecisionKind.TURN, 1), foe, random.Random(0), inverse=True)
        assert action == MoveAction(move_index=0)

    def test_struggle(self):
        me = make_human(active_index=0)
        for m in me.active.moves:
            m.current_pp = 0
        foe = make_ai()
        foe.active_index = 0
        action = choose_action(me, me.build_request(DecisionKind.TURN, 1), foe, random.Random(0))
        assert isinstance(action, MoveAction)

    def test_forced_switch_takes_first_living(self):
        me = make_human(roster=_make_trio(), active_index=0)
        me.active.current_hp = 0
        me.roster[1].current_hp = 0
        action = choose_action(me, me.build_request(DecisionKind.FORCED_SWITCH, 2), make_ai(), random.Random(0))
        assert action == SwitchAction(index=2)

    def test_status_only_moves_pick_randomly(self):
        growl = make_move("growl", "normal", None, damage_class=DamageClass.STATUS, stat_changes={"atk": -1})
        me = make_human(active_index=0, roster=[make_combatant(moves=[growl])])
        foe = make_ai()
        foe.active_index = 0
        action = choose_action(me, me.build_request(DecisionKind.TURN, 1), foe, random.Random(0))
        assert action == MoveAction(move_index=0)


class TestAwaitDecision:
    def test_automated_commits_on_prepare(self):
        ai = make_ai()
        ai.active_index = 0
        foe = make_human(active_index=0)
        request = ai.build_request(DecisionKind.TURN, 1)
        ai.gate.open(request)
        ai.prepare(request, foe, random.Random(0), False)
        assert ai.gate.committed
        assert asyncio.run(ai.await_decision(1.0)) == MoveAction(move_index=0)
        assert not ai.is_human

    def test_human_without_prompt_times_out(self):
        p = make_human(active_index=0)
        p.gate.open(p.build_request(DecisionKind.TURN, 1))
        assert asyncio.run(p.await_decision(0.01)) == GateSignal.TIMEOUT

    def test_prompt_reasked_on_invalid_choice(self):
        answers = [MoveAction(move_index=3), MoveAction(move_index=1)]
        asked = []

        async def prompt(participant, request):
            asked.append(request.turn)
            return answers.pop(0)

        p = make_human(active_index=0, prompt=prompt)
        p.gate.open(p.build_request(DecisionKind.TURN, 4))
        assert asyncio.run(p.await_decision(1.0)) == MoveAction(move_index=1)
        assert asked == [4, 4]

    def test_prompt_always_invalid_times_out(self):
        asked = []

        async def prompt(participant, request):
            asked.append(request.turn)
            return MoveAction(move_index=3)

        p = make_human(active_index=0, prompt=prompt)
        p.gate.open(p.build_request(DecisionKind.TURN, 2))
        assert asyncio.run(p.await_decision(0.05)) == GateSignal.TIMEOUT
        assert len(asked) > 1
        assert not p.gate.committed

    def test_prompt_failure_surfaces(self):
        async def prompt(participant, request):
            raise ConnectionError("chat channel deleted")

        p = make_human(active_index=0, prompt=prompt)
        p.gate.open(p.build_request(DecisionKind.TURN, 1))
        with pytest.raises(Exception) as exc_info:
            asyncio.run(p.await_decision(1.0))
        assert "chat channel deleted" in str(exc_info.value)
