"""Runtime state of a single Pokemon for the duration of one battle."""

from __future__ import annotations

import random

from pydantic import BaseModel, Field, field_validator, model_validator

from pokeduel.core.catalog import MoveCatalog, builtin_catalog
from pokeduel.core.moves import (
    MAX_STAGE,
    MIN_STAGE,
    Move,
    StatusEffect,
    get_nature_multiplier,
    stat_stage_multiplier,
)

# Stats that carry a stage modifier
STAGED_STATS = ("atk", "def", "spa", "spd", "spe", "accuracy", "evasion")

STAT_NAMES = {
    "atk": "Attack",
    "def": "Defense",
    "spa": "Sp. Atk",
    "spd": "Sp. Def",
    "spe": "Speed",
    "accuracy": "accuracy",
    "evasion": "evasiveness",
}

# Held items that let the holder switch out of a trap
TRAP_ESCAPE_ITEMS = {"shed-shell"}


def _neutral_stages() -> dict[str, int]:
    return {s: 0 for s in STAGED_STATS}


class CombatantSnapshot(BaseModel):
    """Final state of a combatant, read by reward and persistence code."""

    pokemon_id: int | None
    species: str
    nickname: str | None
    current_hp: int
    max_hp: int
    fainted: bool
    ever_sent_out: bool
    status: StatusEffect
    is_mega: bool


class Combatant(BaseModel):
    """A roster entry wrapped with live HP, stages, status and PP.

    Changes here do NOT propagate back to the owner's stored Pokemon.
    """

    # Identity
    pokemon_id: int | None = None  # Owner-side id of the source Pokemon
    pokedex_id: int = 0
    species: str
    nickname: str | None = None

    # Types
    type1: str
    type2: str | None = None

    # Calculated stats (frozen at battle start)
    level: int = 50
    nature: str = "hardy"
    max_hp: int
    current_hp: int
    atk: int
    defense: int  # 'def' is a Python keyword
    spa: int
    spd: int
    spe: int

    moves: list[Move] = Field(default_factory=list)
    held_item: str | None = None

    # Cosmetic flags, ignored by the engine
    shiny: bool = False
    radiant: bool = False
    skin: str | None = None

    # Non-volatile status
    status: StatusEffect = StatusEffect.NONE
    status_turns: int = 0  # Sleep turns left, or the badly-poisoned counter

    # Volatile conditions (cleared on switch-out)
    stages: dict[str, int] = Field(default_factory=_neutral_stages)
    confusion_turns: int = 0
    substitute_hp: int = 0
    trapped_turns: int = 0
    trap_damage: bool = False  # Trapped by a binding move that chips each turn
    flinched: bool = False
    protected: bool = False
    locked_move_index: int | None = None
    locked_turns: int = 0

    ever_sent_out: bool = False

    # Mega evolution
    mega_types: list[str] | None = None
    mega_stats: dict[str, int] | None = None
    is_mega: bool = False

    @field_validator("moves")
    @classmethod
    def _at_most_four_moves(cls, moves: list[Move]) -> list[Move]:
        if len(moves) > 4:
            raise ValueError("a combatant knows at most 4 moves")
        return moves

    @model_validator(mode="after")
    def _hp_in_range(self) -> "Combatant":
        if self.max_hp <= 0:
            raise ValueError("max_hp must be positive")
        if not 0 <= self.current_hp <= self.max_hp:
            raise ValueError(f"current_hp {self.current_hp} outside 0..{self.max_hp}")
        return self

    @property
    def display_name(self) -> str:
        return self.nickname or self.species.replace("-", " ").title()

    @property
    def hp_percent(self) -> float:
        return (self.current_hp / self.max_hp) * 100

    @property
    def types(self) -> list[str]:
        if self.is_mega and self.mega_types:
            return list(self.mega_types)
        t = [self.type1]
        if self.type2:
            t.append(self.type2)
        return t

    @property
    def is_fainted(self) -> bool:
        return self.current_hp <= 0

    @property
    def can_mega_evolve(self) -> bool:
        return not self.is_mega and bool(self.mega_types or self.mega_stats)

    @property
    def has_substitute(self) -> bool:
        return self.substitute_hp > 0

    @property
    def can_escape_traps(self) -> bool:
        return "ghost" in self.types or (self.held_item or "").lower() in TRAP_ESCAPE_ITEMS

    @property
    def is_grounded(self) -> bool:
        """Touching the ground, and so affected by terrain."""
        return not self.has_type("flying")

    def has_type(self, type_name: str) -> bool:
        return type_name.lower() in [t.lower() for t in self.types]

    # -- HP -----------------------------------------------------------------

    def take_damage(self, amount: int) -> int:
        """Apply damage, return the amount actually lost. Clamps to 0."""
        actual = max(0, min(amount, self.current_hp))
        self.current_hp -= actual
        return actual

    def heal(self, amount: int) -> int:
        """Heal HP, return the amount actually restored. Clamps to max_hp."""
        if self.is_fainted:
            return 0
        actual = max(0, min(amount, self.max_hp - self.current_hp))
        self.current_hp += actual
        return actual

    # -- Stats ----------------------------------------------------------------

    def base_stat(self, stat: str) -> int:
        return {
            "atk": self.atk,
            "def": self.defense,
            "spa": self.spa,
            "spd": self.spd,
            "spe": self.spe,
        }[stat]

    def stat(self, stat: str, ignore_stage: str | None = None) -> int:
        """Stat after its stage multiplier.

        ``ignore_stage`` of ``"negative"`` or ``"positive"`` drops stages of
        that sign, the way critical hits do.
        """
        stage = self.stages.get(stat, 0)
        if ignore_stage == "negative" and stage < 0:
            stage = 0
        elif ignore_stage == "positive" and stage > 0:
            stage = 0
        return max(1, int(self.base_stat(stat) * stat_stage_multiplier(stage)))

    def effective_speed(self) -> int:
        """Speed after stages, halved by paralysis."""
        speed = self.stat("spe")
        if self.status == StatusEffect.PARALYSIS:
            speed //= 2
        return speed

    def modify_stage(self, stat: str, delta: int) -> int:
        """Shift a stat stage within -6..+6 and return the applied change."""
        current = self.stages.get(stat, 0)
        new = max(MIN_STAGE, min(MAX_STAGE, current + delta))
        self.stages[stat] = new
        return new - current

    # -- Status -----------------------------------------------------------------

    def set_status(self, status: StatusEffect, rng: random.Random | None = None) -> bool:
        """Inflict a non-volatile status if none is present."""
        if self.status != StatusEffect.NONE or status == StatusEffect.NONE or self.is_fainted:
            return False
        self.status = status
        if status == StatusEffect.SLEEP:
            self.status_turns = (rng or random.Random()).randint(1, 3)
        else:
            self.status_turns = 0
        return True

    def cure_status(self) -> None:
        self.status = StatusEffect.NONE
        self.status_turns = 0

    # -- Moves ----------------------------------------------------------------

    def moves_with_pp(self) -> list[int]:
        return [i for i, m in enumerate(self.moves) if (m.current_pp or 0) > 0]

    @property
    def is_locked(self) -> bool:
        return self.locked_move_index is not None and self.locked_turns > 0

    # -- Switching and mega evolution -----------------------------------------

    def clear_volatiles(self) -> None:
        self.stages = _neutral_stages()
        self.confusion_turns = 0
        self.substitute_hp = 0
        self.trapped_turns = 0
        self.trap_damage = False
        self.flinched = False
        self.protected = False
        self.locked_move_index = None
        self.locked_turns = 0

    def reset_on_switch_out(self) -> None:
        """Drop everything that does not survive leaving the field."""
        self.clear_volatiles()
        if self.status == StatusEffect.BADLY_POISONED:
            self.status_turns = 0

    def send_out(self) -> None:
        self.ever_sent_out = True

    def mega_evolve(self) -> bool:
        """Swap in mega types and stats. HP is untouched."""
        if not self.can_mega_evolve:
            return False
        if self.mega_stats:
            self.atk = self.mega_stats.get("atk", self.atk)
            self.defense = self.mega_stats.get("def", self.defense)
            self.spa = self.mega_stats.get("spa", self.spa)
            self.spd = self.mega_stats.get("spd", self.spd)
            self.spe = self.mega_stats.get("spe", self.spe)
        self.is_mega = True
        return True

    def snapshot(self) -> CombatantSnapshot:
        return CombatantSnapshot(
            pokemon_id=self.pokemon_id,
            species=self.species,
            nickname=self.nickname,
            current_hp=self.current_hp,
            max_hp=self.max_hp,
            fainted=self.is_fainted,
            ever_sent_out=self.ever_sent_out,
            status=self.status,
            is_mega=self.is_mega,
        )


# ---------------------------------------------------------------------------
# Combatant factory
# ---------------------------------------------------------------------------

def create_combatant(
    species: str,
    type1: str,
    type2: str | None = None,
    level: int = 50,
    base_stats: dict[str, int] | None = None,
    ivs: dict[str, int] | None = None,
    evs: dict[str, int] | None = None,
    nature: str = "hardy",
    moves: list[Move] | list[str] | None = None,
    catalog: MoveCatalog | None = None,
    **extra,
) -> Combatant:
    """Create a Combatant from a Pokemon's permanent data.

    Calculates all stats and freezes them for the battle. Moves may be
    given as Move objects or as names looked up in ``catalog``; if none are
    given a default moveset is generated from the types and level.
    """
    base_stats = base_stats or {}
    ivs = ivs or {}
    evs = evs or {}
    catalog = catalog or builtin_catalog

    def calc_stat(stat_name: str) -> int:
        base = base_stats.get(stat_name, 50)
        iv = ivs.get(stat_name, 0)
        ev = evs.get(stat_name, 0)
        if stat_name == "hp":
            return int((2 * base + iv + ev // 4) * level / 100) + level + 10
        nature_mult = get_nature_multiplier(nature, stat_name)
        return int(((2 * base + iv + ev // 4) * level / 100 + 5) * nature_mult)

    if moves:
        battle_moves = [catalog.get(m) if isinstance(m, str) else m.model_copy(deep=True) for m in moves]
    else:
        battle_moves = builtin_catalog.generate_default_moveset(type1, type2, level)
    for m in battle_moves:
        m.current_pp = m.pp

    hp = calc_stat("hp")
    return Combatant(
        species=species,
        type1=type1.lower(),
        type2=type2.lower() if type2 else None,
        level=level,
        nature=nature,
        max_hp=hp,
        current_hp=hp,
        atk=calc_stat("atk"),
        defense=calc_stat("def"),
        spa=calc_stat("spa"),
        spd=calc_stat("spd"),
        spe=calc_stat("spe"),
        moves=battle_moves,
        **extra,
    )
