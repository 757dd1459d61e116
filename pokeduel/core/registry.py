"""Registry of running battle sessions.

Sessions are referenced by an opaque token. Human participants are also
indexed so the same person cannot be in two battles at once. Removal
happens exactly once, whichever path (normal end or error) gets there
first.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict

from pokeduel.core.errors import ParticipantBusyError, SessionNotFoundError
from pokeduel.core.session import BattleResult, BattleSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Thread-safe token -> session map with a human-pair index."""

    def __init__(self, archive_size: int = 100) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, BattleSession] = {}
        self._by_pair: dict[frozenset[str], str] = {}
        self._by_human: dict[str, str] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._archive: OrderedDict[str, BattleSession] = OrderedDict()
        self._archive_size = archive_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._sessions

    @staticmethod
    def _humans(session: BattleSession) -> list[str]:
        return [p.participant_id for p in session.participants if p.is_human]

    def register(self, session: BattleSession) -> str:
        """Add a session. Raises ParticipantBusyError if a human is busy."""
        humans = self._humans(session)
        with self._lock:
            for human in humans:
                if human in self._by_human:
                    raise ParticipantBusyError(human)
            if session.token in self._sessions:
                raise ValueError(f"token {session.token} already registered")
            self._sessions[session.token] = session
            for human in humans:
                self._by_human[human] = session.token
            if humans:
                self._by_pair[frozenset(humans)] = session.token
        logger.info("Registered battle %s (%d active)", session.token, len(self._sessions))
        return session.token

    def get(self, token: str) -> BattleSession:
        with self._lock:
            session = self._sessions.get(token)
        if session is None:
            raise SessionNotFoundError(token)
        return session

    def find_by_pair(self, first: str, second: str) -> BattleSession | None:
        with self._lock:
            token = self._by_pair.get(frozenset((first, second)))
            return self._sessions.get(token) if token else None

    def find_by_participant(self, participant_id: str) -> BattleSession | None:
        with self._lock:
            token = self._by_human.get(participant_id)
            return self._sessions.get(token) if token else None

    def is_busy(self, participant_id: str) -> bool:
        with self._lock:
            return participant_id in self._by_human

    def remove(self, token: str) -> bool:
        """Drop a session. Returns False if it was already removed."""
        with self._lock:
            session = self._sessions.pop(token, None)
            if session is None:
                return False
            humans = self._humans(session)
            for human in humans:
                if self._by_human.get(human) == token:
                    del self._by_human[human]
            pair = frozenset(humans)
            if self._by_pair.get(pair) == token:
                del self._by_pair[pair]
            self._tasks.pop(token, None)
            self._archive[token] = session
            while len(self._archive) > self._archive_size:
                self._archive.popitem(last=False)
        logger.info("Removed battle %s", token)
        return True

    def find(self, token: str) -> BattleSession:
        """Look a session up among running and recently finished ones."""
        with self._lock:
            session = self._sessions.get(token) or self._archive.get(token)
        if session is None:
            raise SessionNotFoundError(token)
        return session

    def start(self, session: BattleSession) -> asyncio.Task:
        """Register a session and run it as a task on the running loop.

        The session is removed when it reaches a terminal state, however
        its task ends.
        """
        token = self.register(session)

        async def _run() -> BattleResult:
            try:
                return await session.run()
            finally:
                if not session.is_terminal:
                    session.cancel("session task ended")
                self.remove(token)

        task = asyncio.get_running_loop().create_task(_run(), name=f"battle-{token}")
        with self._lock:
            self._tasks[token] = task
        return task

    def abort(self, token: str, reason: str = "aborted by admin") -> bool:
        """Cancel a running session. Its task removes it from the registry."""
        session = self.get(token)
        cancelled = session.cancel(reason)
        with self._lock:
            has_task = token in self._tasks
        if not has_task:
            self.remove(token)
        return cancelled

    def abort_all(self, reason: str = "server shutting down") -> int:
        """Cancel every running session. Returns how many were cancelled."""
        with self._lock:
            tokens = list(self._sessions)
        cancelled = 0
        for token in tokens:
            try:
                cancelled += self.abort(token, reason)
            except SessionNotFoundError:
                # Finished while we were iterating
                continue
        if cancelled:
            logger.info("Cancelled %d running battle(s): %s", cancelled, reason)
        return cancelled
