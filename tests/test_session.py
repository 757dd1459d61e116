"""Tests for the battle session state machine."""

import asyncio

import pytest

from pokeduel.core.actions import ForfeitAction, MoveAction, SwitchAction
from pokeduel.core.errors import InvalidActionError
from pokeduel.core.gate import DecisionKind
from pokeduel.core.moves import DamageClass
from pokeduel.core.session import BattleSession, BattleType, SessionStatus
from pokeduel.utils.config import Config

from tests.conftest import make_ai, make_combatant, make_human, make_move


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_flamethrower():
    return make_move("flamethrower", "fire", 90, None, 15, DamageClass.SPECIAL)


def _make_fast_ai(participant_id="ai:gary", hp=300):
    return make_ai(participant_id, roster=[
        make_combatant(species="charmander", type1="fire", hp=hp, spe=200, moves=[_make_flamethrower()])
    ])


def _make_ai_team(participant_id, seed_offset=0):
    roster = [
        make_combatant(species="pikachu", type1="electric", hp=120, spe=90 + seed_offset, moves=[
            make_move("thunderbolt", "electric", 90, 100, 15, DamageClass.SPECIAL), make_move(),
        ]),
        make_combatant(species="squirtle", type1="water", hp=130, spe=45, moves=[
            make_move("surf", "water", 90, 100, 15, DamageClass.SPECIAL), make_move(),
        ]),
    ]
    return make_ai(participant_id, name=participant_id, roster=roster)


async def _drive(session, participant_id, choose, seen):
    """Answer every decision asked of ``participant_id`` until the battle ends."""
    while not session.is_terminal:
        request = session.pending_request(participant_id)
        if request is not None:
            seen.append(request)
            session.submit(participant_id, request.turn, choose(request), kind=request.kind)
        await asyncio.sleep(0.005)


async def _play(session, *drivers):
    task = asyncio.create_task(session.run())
    await asyncio.gather(*drivers)
    return await task


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestCreation:
    def test_same_participant_rejected(self):
        with pytest.raises(ValueError):
            BattleSession(make_human("ash"), make_human("ash"))

    def test_oversized_roster_rejected(self):
        roster = [make_combatant(species=f"mon{i}") for i in range(7)]
        with pytest.raises(ValueError):
            BattleSession(make_human(roster=roster), make_ai())

    def test_roster_without_usable_combatant(self):
        with pytest.raises(ValueError):
            BattleSession(make_human(roster=[make_combatant(hp=50, current_hp=0)]), make_ai())

    def test_single_battle_trims_roster(self):
        roster = [make_combatant(species="pikachu"), make_combatant(species="raichu")]
        session = BattleSession(make_human(roster=roster), make_ai(), battle_type=BattleType.SINGLE)
        assert len(session.participants[0].roster) == 1

    def test_single_battle_skips_fainted_lead(self, slow_config):
        roster = [
            make_combatant(species="pikachu", hp=100, current_hp=0),
            make_combatant(species="raichu", hp=300, spe=250),
        ]
        session = BattleSession(
            make_ai("ai:red", roster=roster), _make_fast_ai(), battle_type=BattleType.SINGLE,
            config=slow_config, seed=2,
        )
        kept = session.participants[0].roster
        assert [c.species for c in kept] == ["raichu"]
        assert not kept[0].is_fainted

        result = asyncio.run(session.run())
        assert result.status == SessionStatus.COMPLETED
        assert result.winner_id in ("ai:red", "ai:gary")

    def test_inverse_battle(self):
        session = BattleSession(make_human(), make_ai(), battle_type=BattleType.INVERSE)
        assert session.inverse
        assert session.resolver.inverse

    def test_initial_state(self):
        session = BattleSession(make_human(), make_ai(), seed=3)
        assert session.status == SessionStatus.PRE_BATTLE
        assert session.turn == 0
        assert session.participant_ids == ("ash", "ai:gary")
        assert session.side_of("ai:gary") == 1
        assert 1 <= session.field.background <= 4


# ---------------------------------------------------------------------------
# Full battles
# ---------------------------------------------------------------------------


class TestAutomatedBattles:
    def test_runs_to_completion(self, slow_config):
        session = BattleSession(_make_ai_team("ai:red"), _make_ai_team("ai:blue", 5), config=slow_config, seed=42)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.COMPLETED
        assert result.winner_id in ("ai:red", "ai:blue")
        assert result.turns >= 1
        assert set(result.final_state) == {"ai:red", "ai:blue"}
        loser = "ai:blue" if result.winner_id == "ai:red" else "ai:red"
        assert all(s.fainted for s in result.final_state[loser])
        assert not session.participants[0].gate.is_open

    def test_same_seed_same_battle(self, slow_config):
        def run(seed):
            session = BattleSession(
                _make_ai_team("ai:red"), _make_ai_team("ai:blue", 5), config=slow_config, seed=seed
            )
            asyncio.run(session.run())
            return [e.message for e in session.log.all_events()]

        assert run(11) == run(11)

    def test_mutual_knockout_is_draw(self, slow_config):
        struggler = make_combatant(species="magikarp", type1="water", hp=100, current_hp=1, spe=300)
        for m in struggler.moves:
            m.current_pp = 0
        victim = make_combatant(species="caterpie", type1="bug", hp=100, current_hp=1, spe=10)
        session = BattleSession(
            make_ai("ai:a", roster=[struggler]), make_ai("ai:b", roster=[victim]), config=slow_config
        )
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.COMPLETED
        assert result.winner_id is None
        assert result.is_draw
        assert any(e.event_type == "draw" for e in session.log.all_events())

    def test_events_start_with_team_preview(self, slow_config):
        session = BattleSession(_make_ai_team("ai:red"), _make_ai_team("ai:blue"), config=slow_config, seed=1)
        asyncio.run(session.run())
        events = session.log.all_events()
        assert [e.event_type for e in events[:2]] == ["preview", "preview"]
        assert session.log.drain()
        assert session.log.drain() == []

    def test_run_twice_returns_result(self, slow_config):
        session = BattleSession(_make_ai_team("ai:red"), _make_ai_team("ai:blue"), config=slow_config, seed=1)
        first = asyncio.run(session.run())
        second = asyncio.run(session.run())
        assert first.status == second.status
        assert first.turns == second.turns


class TestHumanDecisions:
    def test_faint_reopens_gate_for_switch_only(self, slow_config):
        human = make_human(roster=[
            make_combatant(species="pikachu", hp=100, current_hp=1, spe=10),
            make_combatant(species="raichu", hp=100, spe=10),
        ])
        session = BattleSession(human, _make_fast_ai(), config=slow_config, seed=5)
        turn_requests = []

        def choose(request):
            if request.kind == DecisionKind.LEAD:
                return SwitchAction(index=0)
            if request.kind == DecisionKind.FORCED_SWITCH:
                return SwitchAction(index=request.legal_switches[0])
            turn_requests.append(request)
            if len(turn_requests) == 1:
                return MoveAction(move_index=0)
            return ForfeitAction()

        seen = []
        result = asyncio.run(_play(session, _drive(session, "ash", choose, seen)))

        assert [r.kind for r in seen] == [
            DecisionKind.LEAD, DecisionKind.TURN, DecisionKind.FORCED_SWITCH, DecisionKind.TURN,
        ]
        forced = seen[2]
        assert forced.legal_switches == [1]
        assert forced.legal_moves is None
        assert seen[3].turn == 2
        assert human.active_index == 1
        assert result.status == SessionStatus.FORFEITED
        assert result.forfeited_by == ["ash"]
        assert result.winner_id == "ai:gary"

    def test_lead_choice_respected(self, slow_config):
        human = make_human(roster=[make_combatant(species="pikachu"), make_combatant(species="raichu")])
        session = BattleSession(human, _make_fast_ai(), config=slow_config, seed=5)

        def choose(request):
            if request.kind == DecisionKind.LEAD:
                return SwitchAction(index=1)
            return ForfeitAction()

        asyncio.run(_play(session, _drive(session, "ash", choose, [])))
        assert human.roster[1].ever_sent_out
        assert not human.roster[0].ever_sent_out

    def test_turn_timeout_forfeits(self, fast_config):
        session = BattleSession(make_human(), _make_fast_ai(), config=fast_config)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.FORFEITED
        assert result.forfeited_by == ["ash"]
        assert result.winner_id == "ai:gary"
        assert result.reason == "timeout"
        assert result.turns == 0
        events = session.log.all_events()
        assert not any(e.event_type == "move" for e in events)
        assert any(e.event_type == "forfeit" and e.participant_id == "ash" for e in events)

    def test_lead_timeout_forfeits(self, fast_config):
        human = make_human(roster=[make_combatant(species="pikachu"), make_combatant(species="raichu")])
        session = BattleSession(human, _make_fast_ai(), config=fast_config)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.FORFEITED
        assert result.winner_id == "ai:gary"
        assert human.active_index is None

    def test_both_humans_time_out(self, fast_config):
        session = BattleSession(make_human("ash"), make_human("misty", "Misty"), config=fast_config)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.COMPLETED
        assert result.is_draw
        assert result.forfeited_by == ["ash", "misty"]

    def test_both_humans_forfeit(self, slow_config):
        session = BattleSession(make_human("ash"), make_human("misty", "Misty"), config=slow_config)

        def forfeit(request):
            return ForfeitAction()

        result = asyncio.run(_play(
            session,
            _drive(session, "ash", forfeit, []),
            _drive(session, "misty", forfeit, []),
        ))
        assert result.is_draw
        assert sorted(result.forfeited_by) == ["ash", "misty"]


class TestSubmit:
    def test_stale_and_invalid_submissions(self, slow_config):
        session = BattleSession(make_human(), _make_fast_ai(), config=slow_config)

        async def scenario():
            task = asyncio.create_task(session.run())
            while session.pending_request("ash") is None:
                await asyncio.sleep(0.005)
            request = session.pending_request("ash")
            assert request.turn == 1
            assert not session.submit("ash", 7, MoveAction(move_index=0))
            assert not session.submit("ash", 1, MoveAction(move_index=0), kind=DecisionKind.LEAD)
            with pytest.raises(InvalidActionError):
                session.submit("ash", 1, SwitchAction(index=3))
            with pytest.raises(InvalidActionError):
                session.submit("brock", 1, ForfeitAction())
            assert session.submit("ash", 1, {"kind": "forfeit"})
            result = await task
            assert not session.submit("ash", 1, ForfeitAction())
            return result

        result = asyncio.run(scenario())
        assert result.status == SessionStatus.FORFEITED

    def test_submit_before_start_is_discarded(self):
        session = BattleSession(make_human(), _make_fast_ai())
        assert not session.submit("ash", 1, MoveAction(move_index=0))


class TestFailures:
    def test_transport_failure_errors(self, slow_config):
        async def broken_prompt(participant, request):
            raise ConnectionError("channel deleted")

        human = make_human(prompt=broken_prompt)
        session = BattleSession(human, _make_fast_ai(), config=slow_config)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.ERRORED
        assert result.winner_id is None
        assert "channel deleted" in result.reason
        assert any(e.event_type == "error" for e in session.log.all_events())

    def test_resolver_exception_errors(self, slow_config, monkeypatch):
        session = BattleSession(_make_ai_team("ai:red"), _make_ai_team("ai:blue"), config=slow_config)

        def explode(actions, turn):
            raise RuntimeError("damage table corrupt")

        monkeypatch.setattr(session.resolver, "resolve", explode)
        result = asyncio.run(session.run())
        assert result.status == SessionStatus.ERRORED
        assert result.winner_id is None
        assert "damage table corrupt" in result.reason

    def test_cancel_releases_gates(self, slow_config):
        session = BattleSession(make_human(), _make_fast_ai(), config=slow_config)

        async def scenario():
            task = asyncio.create_task(session.run())
            while session.pending_request("ash") is None:
                await asyncio.sleep(0.005)
            assert session.cancel("admin abort")
            return await task

        result = asyncio.run(scenario())
        assert result.status == SessionStatus.CANCELLED
        assert result.reason == "admin abort"
        assert not any(e.event_type == "move" for e in session.log.all_events())
        assert not session.cancel()

    def test_task_cancellation(self, slow_config):
        session = BattleSession(make_human(), _make_fast_ai(), config=slow_config)

        async def scenario():
            task = asyncio.create_task(session.run())
            await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert session.status == SessionStatus.CANCELLED


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("POKEDUEL_TURN_TIMEOUT", "12.5")
    monkeypatch.setenv("POKEDUEL_SEED", "99")
    cfg = Config.from_env()
    assert cfg.turn_timeout == 12.5
    assert cfg.seed == 99
    assert cfg.lead_timeout == 60.0
