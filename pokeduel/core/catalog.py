"""Read-only move catalog and default moveset generation.

The engine never owns move data; it looks moves up here (or through the
PokeAPI-backed adapter in ``pokeduel.data.pokeapi``) and receives a fresh
copy each time, so PP spent in one battle never leaks into another.
"""

from __future__ import annotations

import random
from typing import Any, Protocol

from pokeduel.core.errors import CatalogError
from pokeduel.core.field import Terrain, Weather
from pokeduel.core.moves import DamageClass, Move, StatusEffect, VolatileEffect


class MoveCatalog(Protocol):
    """Anything that can look a move up by name."""

    def get(self, name: str) -> Move: ...


# ---------------------------------------------------------------------------
# Built-in move pool
# ---------------------------------------------------------------------------
# Damaging moves are (name, damage_class, power, accuracy, pp) grouped by
# type; status moves are (name, type, accuracy, pp). Extra behaviour lives
# in _MOVE_EFFECTS, keyed by name.
# ---------------------------------------------------------------------------

_MoveRow = tuple[str, str, int, int | None, int]
_StatusRow = tuple[str, str, int | None, int]

# fmt: off
MOVES_BY_TYPE: dict[str, list[_MoveRow]] = {
    "normal": [
        ("tackle", "physical", 40, 100, 35),
        ("quick-attack", "physical", 40, 100, 30),
        ("body-slam", "physical", 85, 100, 15),
        ("double-edge", "physical", 120, 100, 15),
        ("thrash", "physical", 120, 100, 10),
    ],
    "fire": [
        ("ember", "special", 40, 100, 25),
        ("fire-spin", "special", 35, 85, 15),
        ("flamethrower", "special", 90, 100, 15),
        ("fire-blast", "special", 110, 85, 5),
    ],
    "water": [
        ("water-gun", "special", 40, 100, 25),
        ("aqua-jet", "physical", 40, 100, 20),
        ("surf", "special", 90, 100, 15),
        ("hydro-pump", "special", 110, 80, 5),
    ],
    "electric": [
        ("thunder-shock", "special", 40, 100, 30),
        ("spark", "physical", 65, 100, 20),
        ("thunderbolt", "special", 90, 100, 15),
        ("volt-tackle", "physical", 120, 100, 15),
    ],
    "grass": [
        ("vine-whip", "physical", 45, 100, 25),
        ("razor-leaf", "physical", 55, 95, 25),
        ("giga-drain", "special", 75, 100, 10),
        ("energy-ball", "special", 90, 100, 10),
        ("petal-dance", "special", 120, 100, 10),
    ],
    "ice": [
        ("ice-shard", "physical", 40, 100, 30),
        ("icicle-spear", "physical", 25, 100, 30),
        ("ice-beam", "special", 90, 100, 10),
        ("blizzard", "special", 110, 70, 5),
    ],
    "fighting": [
        ("mach-punch", "physical", 40, 100, 30),
        ("karate-chop", "physical", 50, 100, 25),
        ("brick-break", "physical", 75, 100, 15),
        ("aura-sphere", "special", 80, None, 20),
        ("close-combat", "physical", 120, 100, 5),
    ],
    "poison": [
        ("poison-sting", "physical", 15, 100, 35),
        ("sludge", "special", 65, 100, 20),
        ("poison-jab", "physical", 80, 100, 20),
        ("sludge-bomb", "special", 90, 100, 10),
    ],
    "ground": [
        ("mud-shot", "special", 55, 95, 15),
        ("bulldoze", "physical", 60, 100, 20),
        ("earth-power", "special", 90, 100, 10),
        ("earthquake", "physical", 100, 100, 10),
    ],
    "flying": [
        ("gust", "special", 40, 100, 35),
        ("aerial-ace", "physical", 60, None, 20),
        ("air-slash", "special", 75, 95, 15),
        ("brave-bird", "physical", 120, 100, 15),
    ],
    "psychic": [
        ("confusion", "special", 50, 100, 25),
        ("psybeam", "special", 65, 100, 20),
        ("zen-headbutt", "physical", 80, 90, 15),
        ("psychic", "special", 90, 100, 10),
    ],
    "bug": [
        ("fury-cutter", "physical", 40, 95, 20),
        ("pin-missile", "physical", 25, 95, 20),
        ("x-scissor", "physical", 80, 100, 15),
        ("bug-buzz", "special", 90, 100, 10),
    ],
    "rock": [
        ("rock-throw", "physical", 50, 90, 15),
        ("rock-blast", "physical", 25, 90, 10),
        ("rock-slide", "physical", 75, 90, 10),
        ("stone-edge", "physical", 100, 80, 5),
    ],
    "ghost": [
        ("shadow-sneak", "physical", 40, 100, 30),
        ("hex", "special", 65, 100, 10),
        ("shadow-claw", "physical", 70, 100, 15),
        ("shadow-ball", "special", 80, 100, 15),
    ],
    "dragon": [
        ("twister", "special", 40, 100, 20),
        ("dragon-breath", "special", 60, 100, 20),
        ("dragon-claw", "physical", 80, 100, 15),
        ("outrage", "physical", 120, 100, 10),
    ],
    "dark": [
        ("sucker-punch", "physical", 70, 100, 5),
        ("bite", "physical", 60, 100, 25),
        ("crunch", "physical", 80, 100, 15),
        ("dark-pulse", "special", 80, 100, 15),
    ],
    "steel": [
        ("bullet-punch", "physical", 40, 100, 30),
        ("metal-claw", "physical", 50, 95, 35),
        ("iron-head", "physical", 80, 100, 15),
        ("flash-cannon", "special", 80, 100, 10),
    ],
    "fairy": [
        ("fairy-wind", "special", 40, 100, 30),
        ("draining-kiss", "special", 50, 100, 10),
        ("dazzling-gleam", "special", 80, 100, 10),
        ("moonblast", "special", 95, 100, 15),
    ],
}

STATUS_MOVES: list[_StatusRow] = [
    ("protect", "normal", None, 10),
    ("rest", "psychic", None, 10),
    ("substitute", "normal", None, 10),
    ("recover", "normal", None, 5),
    ("swords-dance", "normal", None, 20),
    ("growl", "normal", 100, 40),
    ("thunder-wave", "electric", 90, 20),
    ("will-o-wisp", "fire", 85, 15),
    ("toxic", "poison", 90, 10),
    ("sleep-powder", "grass", 75, 15),
    ("confuse-ray", "ghost", 100, 10),
    ("mean-look", "normal", None, 5),
    ("rain-dance", "water", None, 5),
    ("sunny-day", "fire", None, 5),
    ("sandstorm", "rock", None, 10),
    ("hail", "ice", None, 10),
    ("trick-room", "psychic", None, 5),
    ("electric-terrain", "electric", None, 10),
    ("grassy-terrain", "grass", None, 10),
    ("misty-terrain", "fairy", None, 10),
    ("psychic-terrain", "psychic", None, 10),
]
# fmt: on

# Per-move behaviour beyond the base row
_MOVE_EFFECTS: dict[str, dict[str, Any]] = {
    # Priority
    "quick-attack": {"priority": 1},
    "aqua-jet": {"priority": 1},
    "ice-shard": {"priority": 1},
    "mach-punch": {"priority": 1},
    "shadow-sneak": {"priority": 1},
    "bullet-punch": {"priority": 1},
    "sucker-punch": {"priority": 1},
    "protect": {"priority": 4, "volatile_effect": VolatileEffect.PROTECT},
    "trick-room": {"priority": -7, "sets_trick_room": True},
    # Secondary status
    "body-slam": {"status_effect": StatusEffect.PARALYSIS, "effect_chance": 30},
    "ember": {"status_effect": StatusEffect.BURN, "effect_chance": 10},
    "flamethrower": {"status_effect": StatusEffect.BURN, "effect_chance": 10},
    "fire-blast": {"status_effect": StatusEffect.BURN, "effect_chance": 10},
    "thunder-shock": {"status_effect": StatusEffect.PARALYSIS, "effect_chance": 10},
    "spark": {"status_effect": StatusEffect.PARALYSIS, "effect_chance": 30},
    "thunderbolt": {"status_effect": StatusEffect.PARALYSIS, "effect_chance": 10},
    "ice-beam": {"status_effect": StatusEffect.FREEZE, "effect_chance": 10},
    "blizzard": {"status_effect": StatusEffect.FREEZE, "effect_chance": 10},
    "poison-sting": {"status_effect": StatusEffect.POISON, "effect_chance": 30},
    "sludge": {"status_effect": StatusEffect.POISON, "effect_chance": 30},
    "poison-jab": {"status_effect": StatusEffect.POISON, "effect_chance": 30},
    "sludge-bomb": {"status_effect": StatusEffect.POISON, "effect_chance": 30},
    "dragon-breath": {"status_effect": StatusEffect.PARALYSIS, "effect_chance": 30},
    "thunder-wave": {"status_effect": StatusEffect.PARALYSIS},
    "will-o-wisp": {"status_effect": StatusEffect.BURN},
    "toxic": {"status_effect": StatusEffect.BADLY_POISONED},
    "sleep-powder": {"status_effect": StatusEffect.SLEEP},
    # Stat changes
    "close-combat": {"stat_changes": {"def": -1, "spd": -1}, "stat_target": "self"},
    "swords-dance": {"stat_changes": {"atk": 2}, "stat_target": "self"},
    "growl": {"stat_changes": {"atk": -1}},
    "mud-shot": {"stat_changes": {"spe": -1}, "effect_chance": 100},
    "bulldoze": {"stat_changes": {"spe": -1}, "effect_chance": 100},
    "crunch": {"stat_changes": {"def": -1}, "effect_chance": 20},
    "psychic": {"stat_changes": {"spd": -1}, "effect_chance": 10},
    "bug-buzz": {"stat_changes": {"spd": -1}, "effect_chance": 10},
    "earth-power": {"stat_changes": {"spd": -1}, "effect_chance": 10},
    "moonblast": {"stat_changes": {"spa": -1}, "effect_chance": 30},
    # Critical hits
    "karate-chop": {"crit_stage": 1},
    "razor-leaf": {"crit_stage": 1},
    "shadow-claw": {"crit_stage": 1},
    "stone-edge": {"crit_stage": 1},
    # Flinch
    "bite": {"flinch_chance": 30},
    "air-slash": {"flinch_chance": 30},
    "rock-slide": {"flinch_chance": 30},
    "zen-headbutt": {"flinch_chance": 20},
    "iron-head": {"flinch_chance": 30},
    "twister": {"flinch_chance": 20},
    "dark-pulse": {"flinch_chance": 20},
    # Multi-hit
    "icicle-spear": {"min_hits": 2, "max_hits": 5},
    "pin-missile": {"min_hits": 2, "max_hits": 5},
    "rock-blast": {"min_hits": 2, "max_hits": 5},
    # Drain / recoil
    "giga-drain": {"drain_percent": 50},
    "draining-kiss": {"drain_percent": 75},
    "double-edge": {"drain_percent": -33},
    "brave-bird": {"drain_percent": -33},
    "volt-tackle": {"drain_percent": -33},
    # Volatile conditions
    "confusion": {"volatile_effect": VolatileEffect.CONFUSION, "effect_chance": 10},
    "psybeam": {"volatile_effect": VolatileEffect.CONFUSION, "effect_chance": 10},
    "confuse-ray": {"volatile_effect": VolatileEffect.CONFUSION},
    "fire-spin": {"volatile_effect": VolatileEffect.TRAP},
    "mean-look": {"volatile_effect": VolatileEffect.TRAP},
    "substitute": {"volatile_effect": VolatileEffect.SUBSTITUTE},
    "thrash": {"volatile_effect": VolatileEffect.LOCK},
    "petal-dance": {"volatile_effect": VolatileEffect.LOCK},
    "outrage": {"volatile_effect": VolatileEffect.LOCK},
    # Healing
    "recover": {"healing_percent": 50},
    # Field
    "rain-dance": {"sets_weather": Weather.RAIN},
    "sunny-day": {"sets_weather": Weather.SUN},
    "sandstorm": {"sets_weather": Weather.SANDSTORM},
    "hail": {"sets_weather": Weather.HAIL},
    "electric-terrain": {"sets_terrain": Terrain.ELECTRIC},
    "grassy-terrain": {"sets_terrain": Terrain.GRASSY},
    "misty-terrain": {"sets_terrain": Terrain.MISTY},
    "psychic-terrain": {"sets_terrain": Terrain.PSYCHIC},
}


def move_from_row(move_type: str, row: _MoveRow) -> Move:
    name, dclass, power, accuracy, pp = row
    return Move(
        name=name,
        type=move_type,
        damage_class=DamageClass(dclass),
        power=power,
        accuracy=accuracy,
        pp=pp,
        **_MOVE_EFFECTS.get(name, {}),
    )


def status_move_from_row(row: _StatusRow) -> Move:
    name, move_type, accuracy, pp = row
    return Move(
        name=name,
        type=move_type,
        damage_class=DamageClass.STATUS,
        accuracy=accuracy,
        pp=pp,
        **_MOVE_EFFECTS.get(name, {}),
    )


class BuiltinMoveCatalog:
    """The offline catalog shipped with pokeduel."""

    def __init__(self) -> None:
        self._moves: dict[str, Move] = {}
        for move_type, rows in MOVES_BY_TYPE.items():
            for row in rows:
                self._moves[row[0]] = move_from_row(move_type, row)
        for row in STATUS_MOVES:
            self._moves[row[0]] = status_move_from_row(row)

    def __contains__(self, name: str) -> bool:
        return _normalize(name) in self._moves

    def __len__(self) -> int:
        return len(self._moves)

    def get(self, name: str) -> Move:
        """Return a fresh copy of a move, with full PP."""
        move = self._moves.get(_normalize(name))
        if move is None:
            raise CatalogError(f"Unknown move: {name}")
        return move.model_copy(deep=True)

    def names(self) -> list[str]:
        return sorted(self._moves)

    def by_type(self, move_type: str) -> list[Move]:
        return [m.model_copy(deep=True) for m in self._moves.values() if m.type == move_type.lower()]

    def generate_default_moveset(
        self,
        type1: str,
        type2: str | None,
        level: int,
        rng: random.Random | None = None,
    ) -> list[Move]:
        """Build up to 4 moves for a combatant from its types and level.

        Low-level combatants get weaker moves. STAB moves come first, then
        a Normal move for coverage, then one status move when ``rng`` is
        given and a slot is left.
        """
        t1 = type1.lower()
        t2 = type2.lower() if type2 else None

        pool = [move_from_row(t1, r) for r in MOVES_BY_TYPE.get(t1, [])]
        if t2 and t2 != t1:
            pool += [move_from_row(t2, r) for r in MOVES_BY_TYPE.get(t2, [])]
        if "normal" not in (t1, t2):
            pool += [move_from_row("normal", r) for r in MOVES_BY_TYPE["normal"][:2]]

        cap = _power_cap(level)
        eligible = [m for m in pool if (m.power or 0) <= cap] or pool[:2]
        eligible.sort(key=lambda m: m.power or 0, reverse=True)

        selected: list[Move] = []
        types_used: set[str] = set()
        for m in eligible:
            if len(selected) >= 3:
                break
            if m.type not in types_used or len(selected) < 2:
                selected.append(m)
                types_used.add(m.type)
        for m in eligible:
            if len(selected) >= 3:
                break
            if m not in selected:
                selected.append(m)

        if rng is not None:
            selected.append(status_move_from_row(rng.choice(STATUS_MOVES)))
        else:
            for m in eligible:
                if len(selected) >= 4:
                    break
                if m not in selected:
                    selected.append(m)

        return selected[:4]


def _normalize(name: str) -> str:
    return name.strip().lower().replace(" ", "-")


def _power_cap(level: int) -> int:
    if level < 10:
        return 50
    if level < 20:
        return 65
    if level < 35:
        return 85
    if level < 50:
        return 100
    return 999


# Shared instance used when no catalog is injected
builtin_catalog = BuiltinMoveCatalog()
