"""CLI tests for pokeduel."""

import asyncio
import threading

import pytest
import requests

from pokeduel import __version__
from pokeduel.cli.app import app
from pokeduel.cli.commands import remote
from pokeduel.cli.commands.battle import ask_on_daemon, parse_choice
from pokeduel.core.actions import ForfeitAction, LegalMoveKind, LegalMoves, MoveAction, SwitchAction
from pokeduel.core.errors import InvalidActionError
from pokeduel.core.gate import DecisionKind, DecisionRequest


def _turn_request(kind=LegalMoveKind.INDEXES, indexes=(0, 1)):
    return DecisionRequest(
        kind=DecisionKind.TURN,
        turn=2,
        legal_moves=LegalMoves(kind=kind, indexes=list(indexes)),
        legal_switches=[1, 2],
    )


class _FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload


class TestParseChoice:
    def test_move(self):
        assert parse_choice("m2", _turn_request()) == MoveAction(move_index=1)

    def test_move_with_mega(self):
        assert parse_choice(" M1+ ", _turn_request()) == MoveAction(move_index=0, mega_evolve=True)

    def test_switch(self):
        assert parse_choice("s3", _turn_request()) == SwitchAction(index=2)

    def test_forfeit(self):
        assert parse_choice("ff", _turn_request()) == ForfeitAction()

    def test_bare_m_continues_forced_move(self):
        request = _turn_request(LegalMoveKind.FORCED, [1])
        assert parse_choice("m", request) == MoveAction(move_index=1)

    def test_bare_m_needs_forced_move(self):
        with pytest.raises(InvalidActionError):
            parse_choice("m", _turn_request())

    def test_move_during_forced_switch(self):
        request = DecisionRequest(kind=DecisionKind.FORCED_SWITCH, turn=2, legal_switches=[1])
        with pytest.raises(InvalidActionError):
            parse_choice("m1", request)

    @pytest.mark.parametrize("text", ["", "m5", "x", "s"])
    def test_garbage(self, text):
        with pytest.raises(InvalidActionError):
            parse_choice(text, _turn_request())


class TestAskOnDaemon:
    def test_returns_answer_from_daemon_thread(self):
        seen = []

        def ask():
            seen.append(threading.current_thread().daemon)
            return "m1"

        assert asyncio.run(ask_on_daemon(ask)) == "m1"
        assert seen == [True]

    def test_read_error_propagates(self):
        def ask():
            raise EOFError()

        with pytest.raises(EOFError):
            asyncio.run(ask_on_daemon(ask))

    def test_abandoned_read_does_not_block_the_loop(self):
        release = threading.Event()

        async def main():
            return await asyncio.wait_for(ask_on_daemon(lambda: release.wait(5) and "late"), 0.05)

        try:
            with pytest.raises(asyncio.TimeoutError):
                asyncio.run(main())
        finally:
            release.set()


class TestAppCommands:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_simulate_quiet(self, cli_runner):
        result = cli_runner.invoke(app, ["battle", "simulate", "--seed", "1", "-q"])
        assert result.exit_code == 0
        assert "wins!" in result.output or "Draw!" in result.output
        assert "Turns:" in result.output

    def test_simulate_named_species(self, cli_runner):
        result = cli_runner.invoke(
            app, ["battle", "simulate", "-p", "pikachu", "--vs", "golem", "--seed", "4", "--type", "single"]
        )
        assert result.exit_code == 0
        assert "Pikachu" in result.output
        assert "Golem" in result.output

    def test_simulate_unknown_species(self, cli_runner):
        result = cli_runner.invoke(app, ["battle", "simulate", "-p", "missingno"])
        assert result.exit_code == 1
        assert "Unknown sample species" in result.output

    def test_simulate_shortcut(self, cli_runner):
        result = cli_runner.invoke(app, ["simulate", "--seed", "9", "--size", "1"])
        assert result.exit_code == 0
        assert "Turns:" in result.output

    def test_moves_list_by_type(self, cli_runner):
        result = cli_runner.invoke(app, ["moves", "list", "--type", "fire"])
        assert result.exit_code == 0
        assert "Ember" in result.output
        assert "Thunderbolt" not in result.output

    def test_moves_info(self, cli_runner):
        result = cli_runner.invoke(app, ["moves", "info", "thunderbolt"])
        assert result.exit_code == 0
        assert "Power: 90" in result.output
        assert "paralysis" in result.output

    def test_moves_info_unknown(self, cli_runner):
        result = cli_runner.invoke(app, ["moves", "info", "not-a-move"])
        assert result.exit_code == 1
        assert "Unknown move" in result.output


class TestRemoteCommands:
    def test_forfeit_submits_pending_turn(self, cli_runner, monkeypatch):
        calls = []
        view = {
            "sides": [{"participant_id": "ash", "pending": {"turn": 3, "kind": "turn"}}],
        }

        def fake_request(method, url, **kwargs):
            calls.append((method, url, kwargs.get("json")))
            if method == "GET":
                return _FakeResponse(payload=view)
            return _FakeResponse(payload={"accepted": True})

        monkeypatch.setattr(remote.requests, "request", fake_request)
        monkeypatch.setenv("POKEDUEL_SERVER_URL", "http://duel.test/")

        result = cli_runner.invoke(app, ["remote", "forfeit", "abc", "--id", "ash"])
        assert result.exit_code == 0
        assert "Action submitted" in result.output
        assert calls[0][:2] == ("GET", "http://duel.test/sessions/abc")
        assert calls[1] == (
            "POST",
            "http://duel.test/sessions/abc/actions",
            {"participant_id": "ash", "turn": 3, "kind": "turn", "action": {"kind": "forfeit"}},
        )

    def test_nothing_pending(self, cli_runner, monkeypatch):
        view = {"sides": [{"participant_id": "ash", "pending": None}]}
        monkeypatch.setattr(remote.requests, "request", lambda *a, **kw: _FakeResponse(payload=view))
        result = cli_runner.invoke(app, ["remote", "move", "abc", "1", "--id", "ash"])
        assert result.exit_code == 0
        assert "No decision is waiting" in result.output

    def test_server_error_detail(self, cli_runner, monkeypatch):
        monkeypatch.setattr(
            remote.requests,
            "request",
            lambda *a, **kw: _FakeResponse(404, {"detail": "Battle abc not found"}),
        )
        result = cli_runner.invoke(app, ["remote", "status", "abc"])
        assert result.exit_code == 0
        assert "Battle abc not found" in result.output

    def test_server_down(self, cli_runner, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(remote.requests, "request", refuse)
        result = cli_runner.invoke(app, ["remote", "log", "abc"])
        assert "Cannot connect" in result.output

    def test_challenge_unknown_species(self, cli_runner):
        result = cli_runner.invoke(app, ["remote", "challenge-ai", "--id", "ash", "-p", "missingno"])
        assert result.exit_code == 1
        assert "Unknown species" in result.output
