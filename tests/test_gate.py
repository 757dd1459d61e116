"""Tests for the per-participant decision gate."""

import asyncio

import pytest

from pokeduel.core.actions import ForfeitAction, MoveAction
from pokeduel.core.errors import ActionAlreadyCommittedError, DecisionSourceError
from pokeduel.core.gate import DecisionGate, DecisionKind, DecisionRequest, GateSignal


def _open_gate() -> DecisionGate:
    gate = DecisionGate("ash")
    gate.open(DecisionRequest(kind=DecisionKind.TURN, turn=1))
    return gate


class TestCommit:
    def test_closed_gate_ignores_commit(self):
        gate = DecisionGate("ash")
        assert not gate.commit(ForfeitAction())
        assert not gate.committed

    def test_commit_then_await(self):
        gate = _open_gate()
        assert gate.commit(MoveAction(move_index=1))
        result = asyncio.run(gate.await_with_timeout(1.0))
        assert result == MoveAction(move_index=1)
        assert not gate.is_open

    def test_double_commit_raises(self):
        gate = _open_gate()
        gate.commit(MoveAction(move_index=0))
        with pytest.raises(ActionAlreadyCommittedError):
            gate.commit(MoveAction(move_index=1))

    def test_late_commit_ignored(self):
        gate = _open_gate()
        assert asyncio.run(gate.await_with_timeout(0.01)) == GateSignal.TIMEOUT
        assert not gate.commit(MoveAction(move_index=0))

    def test_open_resets(self):
        gate = _open_gate()
        gate.commit(ForfeitAction())
        gate.open(DecisionRequest(kind=DecisionKind.TURN, turn=2))
        assert not gate.committed
        assert gate.request.turn == 2


class TestAwait:
    def test_commit_while_waiting(self):
        gate = _open_gate()

        async def scenario():
            loop = asyncio.get_running_loop()
            loop.call_later(0.01, gate.commit, ForfeitAction())
            return await gate.await_with_timeout(5.0)

        assert asyncio.run(scenario()) == ForfeitAction()

    def test_timeout(self):
        gate = _open_gate()
        assert asyncio.run(gate.await_with_timeout(0.01)) == GateSignal.TIMEOUT

    def test_cancel_wakes_waiter(self):
        gate = _open_gate()

        async def scenario():
            asyncio.get_running_loop().call_later(0.01, gate.cancel)
            return await gate.await_with_timeout(5.0)

        assert asyncio.run(scenario()) == GateSignal.CANCELLED

    def test_source_failure_raises(self):
        gate = _open_gate()

        async def scenario():
            asyncio.get_running_loop().call_later(0.01, gate.fail, ConnectionError("socket closed"))
            return await gate.await_with_timeout(5.0)

        with pytest.raises(DecisionSourceError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.participant_id == "ash"

    def test_closed_gate_returns_immediately(self):
        gate = DecisionGate("ash")
        assert asyncio.run(gate.await_with_timeout(5.0)) == GateSignal.TIMEOUT
