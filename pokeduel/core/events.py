"""Human-readable battle events and the per-session log."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TurnEvent(BaseModel):
    """A single event that occurred during a turn (for the battle log)."""

    turn: int = 0
    event_type: str  # "move", "damage", "switch", "faint", "status", "field", "win", ...
    side: int | None = None  # 0 = challenger, 1 = opponent
    participant_id: str | None = None
    pokemon_name: str | None = None
    target_name: str | None = None
    move_name: str | None = None
    damage: int = 0
    effectiveness: float = 1.0
    critical: bool = False
    message: str = ""


class BattleLog(BaseModel):
    """Per-turn event history plus a buffer of events not yet read.

    Readers call ``drain()`` to take everything new; the history keeps the
    full record for the result snapshot.
    """

    turns: list[list[TurnEvent]] = Field(default_factory=list)
    current: list[TurnEvent] = Field(default_factory=list)
    unread: list[TurnEvent] = Field(default_factory=list)

    def add(self, event: TurnEvent) -> None:
        self.current.append(event)
        self.unread.append(event)

    def extend(self, events: list[TurnEvent]) -> None:
        for event in events:
            self.add(event)

    def close_turn(self) -> list[TurnEvent]:
        """File the events gathered since the last call as one turn."""
        events, self.current = self.current, []
        if events:
            self.turns.append(events)
        return events

    def drain(self) -> list[TurnEvent]:
        """Return and clear every event not yet read."""
        events, self.unread = self.unread, []
        return events

    def all_events(self) -> list[TurnEvent]:
        return [e for turn in self.turns for e in turn] + list(self.current)
