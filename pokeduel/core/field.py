"""Session-wide field conditions: weather, terrain, Trick Room and the battle scene."""

from __future__ import annotations

import random
from enum import Enum

from pydantic import BaseModel, Field


class Weather(str, Enum):
    """Weather conditions a move can summon."""

    RAIN = "rain"
    SUN = "sun"
    SANDSTORM = "sandstorm"
    HAIL = "hail"


# Types that take no end-of-turn chip damage from each weather
WEATHER_IMMUNE_TYPES: dict[Weather, set[str]] = {
    Weather.SANDSTORM: {"rock", "ground", "steel"},
    Weather.HAIL: {"ice"},
}

WEATHER_START_MESSAGES: dict[Weather, str] = {
    Weather.RAIN: "It started to rain!",
    Weather.SUN: "The sunlight turned harsh!",
    Weather.SANDSTORM: "A sandstorm kicked up!",
    Weather.HAIL: "It started to hail!",
}

WEATHER_ACTIVE_MESSAGES: dict[Weather, str] = {
    Weather.RAIN: "Rain continues to fall.",
    Weather.SUN: "The sunlight is strong.",
    Weather.SANDSTORM: "The sandstorm rages.",
    Weather.HAIL: "Hail continues to fall.",
}

WEATHER_END_MESSAGES: dict[Weather, str] = {
    Weather.RAIN: "The rain stopped.",
    Weather.SUN: "The harsh sunlight faded.",
    Weather.SANDSTORM: "The sandstorm subsided.",
    Weather.HAIL: "The hail stopped.",
}


def weather_modifier(weather: Weather | None, move_type: str) -> float:
    """Damage multiplier weather applies to a move of ``move_type``."""
    move_t = move_type.lower()
    if weather == Weather.RAIN:
        if move_t == "water":
            return 1.5
        if move_t == "fire":
            return 0.5
    elif weather == Weather.SUN:
        if move_t == "fire":
            return 1.5
        if move_t == "water":
            return 0.5
    return 1.0


class Terrain(str, Enum):
    """Terrains a move can lay over the field."""

    ELECTRIC = "electric"
    GRASSY = "grassy"
    MISTY = "misty"
    PSYCHIC = "psychic"


TERRAIN_START_MESSAGES: dict[Terrain, str] = {
    Terrain.ELECTRIC: "An electric current ran across the battlefield!",
    Terrain.GRASSY: "Grass grew to cover the battlefield!",
    Terrain.MISTY: "Mist swirled around the battlefield!",
    Terrain.PSYCHIC: "The battlefield got weird!",
}

TERRAIN_END_MESSAGES: dict[Terrain, str] = {
    Terrain.ELECTRIC: "The electricity disappeared from the battlefield.",
    Terrain.GRASSY: "The grass disappeared from the battlefield.",
    Terrain.MISTY: "The mist disappeared from the battlefield.",
    Terrain.PSYCHIC: "The weirdness disappeared from the battlefield!",
}

# Move type each terrain powers up for a grounded attacker
TERRAIN_BOOSTED_TYPES: dict[Terrain, str] = {
    Terrain.ELECTRIC: "electric",
    Terrain.GRASSY: "grass",
    Terrain.PSYCHIC: "psychic",
}


def terrain_modifier(
    terrain: Terrain | None,
    move_type: str,
    attacker_grounded: bool = True,
    defender_grounded: bool = True,
) -> float:
    """Damage multiplier a terrain applies to a move of ``move_type``.

    Electric, Grassy and Psychic Terrain power up their own type by 1.3x
    when the attacker is on the ground. Misty Terrain halves Dragon moves
    aimed at a grounded target.
    """
    if terrain is None:
        return 1.0
    move_t = move_type.lower()
    if terrain == Terrain.MISTY:
        return 0.5 if move_t == "dragon" and defender_grounded else 1.0
    if attacker_grounded and TERRAIN_BOOSTED_TYPES[terrain] == move_t:
        return 1.3
    return 1.0


class ExpiringEffect(BaseModel):
    """A field effect with a countdown of remaining turns."""

    turns_left: int = 0

    @property
    def active(self) -> bool:
        return self.turns_left > 0

    def start(self, turns: int) -> None:
        self.turns_left = max(0, turns)

    def end(self) -> None:
        self.turns_left = 0

    def tick(self) -> bool:
        """Count down one turn. Returns True if the effect just expired."""
        if self.turns_left <= 0:
            return False
        self.turns_left -= 1
        return self.turns_left == 0


class FieldState(BaseModel):
    """Conditions shared by both sides of a battle."""

    weather: Weather | None = None
    weather_timer: ExpiringEffect = Field(default_factory=ExpiringEffect)
    terrain: Terrain | None = None
    terrain_timer: ExpiringEffect = Field(default_factory=ExpiringEffect)
    trick_room: ExpiringEffect = Field(default_factory=ExpiringEffect)
    background: int = Field(default_factory=lambda: random.randint(1, 4))

    @property
    def trick_room_active(self) -> bool:
        return self.trick_room.active

    @property
    def weather_turns_left(self) -> int:
        return self.weather_timer.turns_left if self.weather else 0

    @property
    def terrain_turns_left(self) -> int:
        return self.terrain_timer.turns_left if self.terrain else 0

    def set_weather(self, weather: Weather, turns: int) -> bool:
        """Replace the weather and its counter.

        Returns False when that weather is already up.
        """
        if self.weather == weather and self.weather_timer.active:
            return False
        self.weather = weather
        self.weather_timer.start(turns)
        return True

    def clear_weather(self) -> None:
        self.weather = None
        self.weather_timer.end()

    def set_terrain(self, terrain: Terrain, turns: int) -> bool:
        """Lay a terrain, replacing any other. Returns False if it is already up."""
        if self.terrain == terrain and self.terrain_timer.active:
            return False
        self.terrain = terrain
        self.terrain_timer.start(turns)
        return True

    def clear_terrain(self) -> None:
        self.terrain = None
        self.terrain_timer.end()

    def toggle_trick_room(self, turns: int) -> bool:
        """Start Trick Room, or end it if already active.

        Returns True if Trick Room is active afterwards.
        """
        if self.trick_room.active:
            self.trick_room.end()
            return False
        self.trick_room.start(turns)
        return True

    def tick(self) -> list[str]:
        """Advance every counter by one completed turn.

        Returns the messages for effects that ended.
        """
        messages: list[str] = []
        if self.weather is not None:
            self.weather_timer.tick()
            if not self.weather_timer.active:
                messages.append(WEATHER_END_MESSAGES[self.weather])
                self.weather = None
        if self.terrain is not None:
            self.terrain_timer.tick()
            if not self.terrain_timer.active:
                messages.append(TERRAIN_END_MESSAGES[self.terrain])
                self.terrain = None
        if self.trick_room.tick():
            messages.append("The twisted dimensions returned to normal!")
        return messages
