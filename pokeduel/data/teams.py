"""Sample species and random team building for the CLI and demos."""

from __future__ import annotations

import random

from pokeduel.core.combatant import Combatant, create_combatant
from pokeduel.core.catalog import builtin_catalog

# species -> (type1, type2, base stats)
SAMPLE_SPECIES: dict[str, tuple[str, str | None, dict[str, int]]] = {
    "pikachu": ("electric", None, {"hp": 35, "atk": 55, "def": 40, "spa": 50, "spd": 50, "spe": 90}),
    "charizard": ("fire", "flying", {"hp": 78, "atk": 84, "def": 78, "spa": 109, "spd": 85, "spe": 100}),
    "blastoise": ("water", None, {"hp": 79, "atk": 83, "def": 100, "spa": 85, "spd": 105, "spe": 78}),
    "venusaur": ("grass", "poison", {"hp": 80, "atk": 82, "def": 83, "spa": 100, "spd": 100, "spe": 80}),
    "gengar": ("ghost", "poison", {"hp": 60, "atk": 65, "def": 60, "spa": 130, "spd": 75, "spe": 110}),
    "machamp": ("fighting", None, {"hp": 90, "atk": 130, "def": 80, "spa": 65, "spd": 85, "spe": 55}),
    "golem": ("rock", "ground", {"hp": 80, "atk": 120, "def": 130, "spa": 55, "spd": 65, "spe": 45}),
    "lapras": ("water", "ice", {"hp": 130, "atk": 85, "def": 80, "spa": 85, "spd": 95, "spe": 60}),
    "snorlax": ("normal", None, {"hp": 160, "atk": 110, "def": 65, "spa": 65, "spd": 110, "spe": 30}),
    "dragonite": ("dragon", "flying", {"hp": 91, "atk": 134, "def": 95, "spa": 100, "spd": 100, "spe": 80}),
    "alakazam": ("psychic", None, {"hp": 55, "atk": 50, "def": 45, "spa": 135, "spd": 95, "spe": 120}),
    "scizor": ("bug", "steel", {"hp": 70, "atk": 130, "def": 100, "spa": 55, "spd": 80, "spe": 65}),
    "tyranitar": ("rock", "dark", {"hp": 100, "atk": 134, "def": 110, "spa": 95, "spd": 100, "spe": 61}),
    "gardevoir": ("psychic", "fairy", {"hp": 68, "atk": 65, "def": 65, "spa": 125, "spd": 115, "spe": 80}),
}

# Mega forms available to sample species
SAMPLE_MEGAS: dict[str, tuple[list[str], dict[str, int]]] = {
    "charizard": (["fire", "dragon"], {"atk": 150, "def": 131, "spa": 150, "spd": 105, "spe": 120}),
    "gengar": (["ghost", "poison"], {"atk": 85, "def": 100, "spa": 190, "spd": 115, "spe": 150}),
}


def build_sample(species: str, level: int = 50, rng: random.Random | None = None) -> Combatant:
    """Create a combatant for one of the sample species."""
    key = species.strip().lower()
    if key not in SAMPLE_SPECIES:
        raise KeyError(f"Unknown sample species: {species}")
    type1, type2, base = SAMPLE_SPECIES[key]
    extra = {}
    if key in SAMPLE_MEGAS:
        mega_types, mega_stats = SAMPLE_MEGAS[key]
        extra = {"mega_types": mega_types, "mega_stats": mega_stats}
    moves = builtin_catalog.generate_default_moveset(type1, type2, level, rng=rng)
    return create_combatant(
        species=key,
        type1=type1,
        type2=type2,
        level=level,
        base_stats=base,
        ivs={s: 31 for s in base},
        moves=moves,
        **extra,
    )


def random_team(size: int, level: int = 50, rng: random.Random | None = None) -> list[Combatant]:
    """Pick ``size`` distinct sample species."""
    rng = rng or random.Random()
    names = rng.sample(sorted(SAMPLE_SPECIES), k=min(size, len(SAMPLE_SPECIES)))
    return [build_sample(name, level, rng) for name in names]
