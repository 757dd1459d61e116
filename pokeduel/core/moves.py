"""Move model, type chart, stat stages and damage calculation."""

from __future__ import annotations

import random
from enum import Enum

from pydantic import BaseModel, Field

from pokeduel.core.field import Terrain, Weather, terrain_modifier, weather_modifier


class PokemonType(str, Enum):
    """The 18 Pokemon types."""

    NORMAL = "normal"
    FIRE = "fire"
    WATER = "water"
    ELECTRIC = "electric"
    GRASS = "grass"
    ICE = "ice"
    FIGHTING = "fighting"
    POISON = "poison"
    GROUND = "ground"
    FLYING = "flying"
    PSYCHIC = "psychic"
    BUG = "bug"
    ROCK = "rock"
    GHOST = "ghost"
    DRAGON = "dragon"
    DARK = "dark"
    STEEL = "steel"
    FAIRY = "fairy"


# Struggle's type: neutral against every defender, even in inverse battles
TYPELESS = "typeless"


class DamageClass(str, Enum):
    """Move damage classification."""

    PHYSICAL = "physical"
    SPECIAL = "special"
    STATUS = "status"


class StatusEffect(str, Enum):
    """Non-volatile status conditions. A combatant holds at most one."""

    NONE = "none"
    BURN = "burn"
    FREEZE = "freeze"
    PARALYSIS = "paralysis"
    POISON = "poison"
    BADLY_POISONED = "badly_poisoned"
    SLEEP = "sleep"


class VolatileEffect(str, Enum):
    """Conditions that clear when the holder switches out."""

    NONE = "none"
    CONFUSION = "confusion"
    SUBSTITUTE = "substitute"
    TRAP = "trap"  # Target cannot switch out while it lasts
    PROTECT = "protect"
    LOCK = "lock"  # User repeats the move for 2-3 turns, then becomes confused


# Types that cannot receive a status condition
STATUS_IMMUNE_TYPES: dict[StatusEffect, set[str]] = {
    StatusEffect.BURN: {"fire"},
    StatusEffect.FREEZE: {"ice"},
    StatusEffect.PARALYSIS: {"electric"},
    StatusEffect.POISON: {"poison", "steel"},
    StatusEffect.BADLY_POISONED: {"poison", "steel"},
}


# ---------------------------------------------------------------------------
# Natures
# ---------------------------------------------------------------------------

# nature -> (boosted_stat, lowered_stat); neutral natures map to (None, None)
NATURE_MODIFIERS: dict[str, tuple[str | None, str | None]] = {
    "hardy": (None, None), "docile": (None, None), "serious": (None, None),
    "bashful": (None, None), "quirky": (None, None),
    "lonely": ("atk", "def"), "brave": ("atk", "spe"),
    "adamant": ("atk", "spa"), "naughty": ("atk", "spd"),
    "bold": ("def", "atk"), "relaxed": ("def", "spe"),
    "impish": ("def", "spa"), "lax": ("def", "spd"),
    "timid": ("spe", "atk"), "hasty": ("spe", "def"),
    "jolly": ("spe", "spa"), "naive": ("spe", "spd"),
    "modest": ("spa", "atk"), "mild": ("spa", "def"),
    "quiet": ("spa", "spe"), "rash": ("spa", "spd"),
    "calm": ("spd", "atk"), "gentle": ("spd", "def"),
    "sassy": ("spd", "spe"), "careful": ("spd", "spa"),
}


def get_nature_multiplier(nature: str, stat: str) -> float:
    """Return the nature multiplier for a stat (1.0, 1.1, or 0.9)."""
    boosted, lowered = NATURE_MODIFIERS.get(nature.lower(), (None, None))
    if stat == boosted:
        return 1.1
    if stat == lowered:
        return 0.9
    return 1.0


# ---------------------------------------------------------------------------
# Type effectiveness chart
# ---------------------------------------------------------------------------
# TYPE_CHART[attacking_type][defending_type] = multiplier. Anything missing
# from the matchups below is neutral (1.0).
# ---------------------------------------------------------------------------

_ALL_TYPES = [t.value for t in PokemonType]

# fmt: off
# attacking type -> (super effective against, resisted by, no effect on)
_MATCHUPS: dict[str, tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]] = {
    "normal": ((), ("rock", "steel"), ("ghost",)),
    "fire": (("grass", "ice", "bug", "steel"), ("fire", "water", "rock", "dragon"), ()),
    "water": (("fire", "ground", "rock"), ("water", "grass", "dragon"), ()),
    "electric": (("water", "flying"), ("electric", "grass", "dragon"), ("ground",)),
    "grass": (("water", "ground", "rock"),
              ("fire", "grass", "poison", "flying", "bug", "dragon", "steel"), ()),
    "ice": (("grass", "ground", "flying", "dragon"), ("fire", "water", "ice", "steel"), ()),
    "fighting": (("normal", "ice", "rock", "dark", "steel"),
                 ("poison", "flying", "psychic", "bug", "fairy"), ("ghost",)),
    "poison": (("grass", "fairy"), ("poison", "ground", "rock", "ghost"), ("steel",)),
    "ground": (("fire", "electric", "poison", "rock", "steel"), ("grass", "bug"), ("flying",)),
    "flying": (("grass", "fighting", "bug"), ("electric", "rock", "steel"), ()),
    "psychic": (("fighting", "poison"), ("psychic", "steel"), ("dark",)),
    "bug": (("grass", "psychic", "dark"),
            ("fire", "fighting", "poison", "flying", "ghost", "steel", "fairy"), ()),
    "rock": (("fire", "ice", "flying", "bug"), ("fighting", "ground", "steel"), ()),
    "ghost": (("psychic", "ghost"), ("dark",), ("normal",)),
    "dragon": (("dragon",), ("steel",), ("fairy",)),
    "dark": (("psychic", "ghost"), ("fighting", "dark", "fairy"), ()),
    "steel": (("ice", "rock", "fairy"), ("fire", "water", "electric", "steel"), ()),
    "fairy": (("fighting", "dragon", "dark"), ("fire", "poison", "steel"), ()),
}
# fmt: on

TYPE_CHART: dict[str, dict[str, float]] = {a: {d: 1.0 for d in _ALL_TYPES} for a in _ALL_TYPES}
for _atk, (_strong, _weak, _immune) in _MATCHUPS.items():
    for _dfn in _strong:
        TYPE_CHART[_atk][_dfn] = 2.0
    for _dfn in _weak:
        TYPE_CHART[_atk][_dfn] = 0.5
    for _dfn in _immune:
        TYPE_CHART[_atk][_dfn] = 0.0


def _invert(mult: float) -> float:
    if mult == 1.0:
        return 1.0
    return 0.5 if mult > 1.0 else 2.0


# Inverse battles: weaknesses become resistances, resistances and immunities
# become weaknesses.
INVERSE_TYPE_CHART: dict[str, dict[str, float]] = {
    a: {d: _invert(m) for d, m in row.items()} for a, row in TYPE_CHART.items()
}


def get_type_effectiveness(
    move_type: str,
    defender_type1: str,
    defender_type2: str | None = None,
    inverse: bool = False,
) -> float:
    """Combined multiplier of a move type against one or two defending types.

    Results can be 0x, 0.25x, 0.5x, 1x, 2x, or 4x (no 0x in inverse battles).
    """
    chart = INVERSE_TYPE_CHART if inverse else TYPE_CHART
    row = chart.get(move_type.lower(), {})
    mult = row.get(defender_type1.lower(), 1.0)
    if defender_type2:
        mult *= row.get(defender_type2.lower(), 1.0)
    return mult


# ---------------------------------------------------------------------------
# Stat stages and critical hits
# ---------------------------------------------------------------------------

MIN_STAGE = -6
MAX_STAGE = 6

# Critical hit chance per crit stage (capped at 4)
CRIT_CHANCE: dict[int, float] = {0: 1 / 16, 1: 1 / 8, 2: 1 / 4, 3: 1 / 3, 4: 1 / 2}


def stat_stage_multiplier(stage: int) -> float:
    """Multiplier for atk/def/spa/spd/spe at a given stage."""
    stage = max(MIN_STAGE, min(MAX_STAGE, stage))
    if stage >= 0:
        return (2 + stage) / 2
    return 2 / (2 - stage)


def accuracy_stage_multiplier(stage: int) -> float:
    """Multiplier for the combined accuracy-minus-evasion stage."""
    stage = max(MIN_STAGE, min(MAX_STAGE, stage))
    if stage >= 0:
        return (3 + stage) / 3
    return 3 / (3 - stage)


def roll_critical(crit_stage: int, rng: random.Random | None = None) -> bool:
    rng = rng or random.Random()
    chance = CRIT_CHANCE[max(0, min(4, crit_stage))]
    return rng.random() < chance


# ---------------------------------------------------------------------------
# Move model
# ---------------------------------------------------------------------------

class Move(BaseModel):
    """A Pokemon move.

    Catalog data is read-only to the engine; only ``current_pp`` changes
    during a battle.
    """

    id: int | None = None  # PokeAPI move ID
    name: str
    display_name: str = ""  # Human-friendly (computed from name if blank)
    type: str  # Pokemon type (e.g. "fire") or "typeless"
    damage_class: DamageClass = DamageClass.PHYSICAL
    power: int | None = None  # None for status moves
    accuracy: int | None = None  # None means never misses
    pp: int = 20
    current_pp: int | None = None
    priority: int = 0  # -7 to +5
    crit_stage: int = 0

    # Effect metadata
    effect_chance: int | None = None  # % chance of the secondary effect
    status_effect: StatusEffect = StatusEffect.NONE
    stat_changes: dict[str, int] = Field(default_factory=dict)  # e.g. {"atk": -1}
    stat_target: str = "opponent"  # "self" or "opponent"
    drain_percent: int = 0  # % of damage dealt; positive = drain, negative = recoil
    recoil_max_hp_percent: int = 0  # % of the user's max HP lost after hitting
    healing_percent: int = 0  # % of max HP healed
    flinch_chance: int = 0
    min_hits: int = 1
    max_hits: int = 1
    volatile_effect: VolatileEffect = VolatileEffect.NONE
    sets_weather: Weather | None = None
    sets_terrain: Terrain | None = None
    sets_trick_room: bool = False

    def model_post_init(self, __context) -> None:
        if not self.display_name:
            self.display_name = self.name.replace("-", " ").title()
        if self.current_pp is None:
            self.current_pp = self.pp

    @property
    def is_struggle(self) -> bool:
        return self.name == "struggle"

    @property
    def targets_opponent(self) -> bool:
        """Whether the move needs a living opposing combatant to do anything."""
        if self.damage_class != DamageClass.STATUS:
            return True
        if self.status_effect != StatusEffect.NONE:
            return True
        if self.volatile_effect in (VolatileEffect.CONFUSION, VolatileEffect.TRAP):
            return True
        return bool(self.stat_changes) and self.stat_target == "opponent"


def struggle() -> Move:
    """The fallback move used when nothing else has PP.

    50 power, typeless, never misses, costs the user 1/4 of its max HP.
    """
    return Move(
        name="struggle",
        type=TYPELESS,
        damage_class=DamageClass.PHYSICAL,
        power=50,
        accuracy=None,
        pp=1,
        recoil_max_hp_percent=25,
    )


# ---------------------------------------------------------------------------
# Damage calculation (Gen V+ formula)
# ---------------------------------------------------------------------------

def calculate_damage(
    attacker_level: int,
    move: Move,
    attack_stat: int,
    defense_stat: int,
    attacker_types: list[str],
    defender_type1: str,
    defender_type2: str | None = None,
    critical: bool | None = None,
    weather: Weather | None = None,
    terrain: Terrain | None = None,
    inverse: bool = False,
    burned: bool = False,
    rng: random.Random | None = None,
) -> tuple[int, float, bool]:
    """Calculate damage using the Gen V+ damage formula.

    Returns (damage, effectiveness_multiplier, was_critical).

    Formula:
        base = (((2 * level / 5 + 2) * power * A / D) / 50) + 2
        damage = base * modifier

    Modifier = weather * terrain * critical * random(0.85..1.0) * STAB * type * burn

    Terrain only touches combatants on the ground; Flying types are not.

    ``critical`` forces the crit roll when given; otherwise it is rolled
    from the move's crit stage.
    """
    if not move.power:
        return 0, 1.0, False

    rng = rng or random.Random()
    is_crit = roll_critical(move.crit_stage, rng) if critical is None else critical

    base = (((2 * attacker_level / 5 + 2) * move.power * attack_stat / max(1, defense_stat)) / 50) + 2

    if move.type == TYPELESS:
        stab = 1.0
        effectiveness = 1.0
    else:
        stab = 1.5 if move.type.lower() in [t.lower() for t in attacker_types] else 1.0
        effectiveness = get_type_effectiveness(move.type, defender_type1, defender_type2, inverse)

    modifier = (
        weather_modifier(weather, move.type)
        * terrain_modifier(
            terrain,
            move.type,
            attacker_grounded="flying" not in [t.lower() for t in attacker_types],
            defender_grounded="flying" not in (defender_type1.lower(), (defender_type2 or "").lower()),
        )
        * (1.5 if is_crit else 1.0)
        * rng.uniform(0.85, 1.0)
        * stab
        * effectiveness
        * (0.5 if burned and move.damage_class == DamageClass.PHYSICAL else 1.0)
    )

    damage = max(1, int(base * modifier)) if effectiveness > 0 else 0
    return damage, effectiveness, is_crit
