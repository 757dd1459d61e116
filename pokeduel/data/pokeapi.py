"""PokeAPI-backed move catalog."""

import json
import logging
from pathlib import Path

import httpx

from pokeduel.core.errors import CatalogError
from pokeduel.core.field import Terrain, Weather
from pokeduel.core.moves import DamageClass, Move, StatusEffect, VolatileEffect
from pokeduel.utils.config import config

logger = logging.getLogger(__name__)

# PokeAPI stat names -> combatant stage keys
_STAT_KEYS = {
    "attack": "atk",
    "defense": "def",
    "special-attack": "spa",
    "special-defense": "spd",
    "speed": "spe",
    "accuracy": "accuracy",
    "evasion": "evasion",
}

_AILMENTS = {
    "burn": StatusEffect.BURN,
    "freeze": StatusEffect.FREEZE,
    "paralysis": StatusEffect.PARALYSIS,
    "poison": StatusEffect.POISON,
    "sleep": StatusEffect.SLEEP,
}

_VOLATILE_AILMENTS = {
    "confusion": VolatileEffect.CONFUSION,
    "trap": VolatileEffect.TRAP,
}

# Moves PokeAPI describes only in prose
_LOCKING_MOVES = {"thrash", "petal-dance", "outrage", "raging-fury"}
_WEATHER_MOVES = {
    "rain-dance": Weather.RAIN,
    "sunny-day": Weather.SUN,
    "sandstorm": Weather.SANDSTORM,
    "hail": Weather.HAIL,
}
_TERRAIN_MOVES = {
    "electric-terrain": Terrain.ELECTRIC,
    "grassy-terrain": Terrain.GRASSY,
    "misty-terrain": Terrain.MISTY,
    "psychic-terrain": Terrain.PSYCHIC,
}


def move_from_api(data: dict) -> Move:
    """Convert a PokeAPI ``/move/{name}`` payload into a Move."""
    meta = data.get("meta") or {}
    ailment = (meta.get("ailment") or {}).get("name", "none")
    name = data["name"]
    if name == "toxic":
        status = StatusEffect.BADLY_POISONED
    else:
        status = _AILMENTS.get(ailment, StatusEffect.NONE)

    volatile = _VOLATILE_AILMENTS.get(ailment, VolatileEffect.NONE)
    if name in _LOCKING_MOVES:
        volatile = VolatileEffect.LOCK
    elif name in ("protect", "detect"):
        volatile = VolatileEffect.PROTECT
    elif name == "substitute":
        volatile = VolatileEffect.SUBSTITUTE

    stat_changes = {
        _STAT_KEYS[c["stat"]["name"]]: c["change"]
        for c in data.get("stat_changes", [])
        if c["stat"]["name"] in _STAT_KEYS
    }
    target = (data.get("target") or {}).get("name", "selected-pokemon")
    damage_class = DamageClass((data.get("damage_class") or {}).get("name", "status"))

    chance = meta.get("ailment_chance") or meta.get("stat_chance") or None
    if damage_class == DamageClass.STATUS:
        chance = None

    return Move(
        id=data.get("id"),
        name=name,
        type=data["type"]["name"],
        damage_class=damage_class,
        power=data.get("power"),
        accuracy=data.get("accuracy"),
        pp=data.get("pp") or 1,
        priority=data.get("priority", 0),
        crit_stage=meta.get("crit_rate", 0) or 0,
        effect_chance=chance,
        status_effect=status,
        stat_changes=stat_changes,
        stat_target="self" if target == "user" else "opponent",
        drain_percent=meta.get("drain", 0) or 0,
        healing_percent=meta.get("healing", 0) or 0,
        flinch_chance=meta.get("flinch_chance", 0) or 0,
        min_hits=meta.get("min_hits") or 1,
        max_hits=meta.get("max_hits") or 1,
        volatile_effect=volatile,
        sets_weather=_WEATHER_MOVES.get(name),
        sets_terrain=_TERRAIN_MOVES.get(name),
        sets_trick_room=name == "trick-room",
    )


class PokeAPIMoveCatalog:
    """Move catalog that fetches from PokeAPI and caches the JSON on disk.

    ``fetch_move`` is the async entry point. After a move has been fetched
    once, ``get`` serves it synchronously, which is what the engine uses.
    """

    def __init__(
        self,
        base_url: str | None = None,
        cache_dir: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or config.pokeapi_base_url).rstrip("/")
        self.cache_dir = cache_dir
        self._transport = transport
        self._move_cache: dict[str, dict] = {}
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _cache_file(self, name: str) -> Path | None:
        if self.cache_dir is None:
            return None
        return self.cache_dir / f"move_{name}.json"

    async def get_move_data(self, name: str) -> dict:
        """Fetch raw move data from the memory cache, disk cache or API."""
        key = name.strip().lower().replace(" ", "-")
        if key in self._move_cache:
            return self._move_cache[key]

        cache_file = self._cache_file(key)
        if cache_file is not None and cache_file.exists():
            with open(cache_file, "r") as f:
                data = json.load(f)
            self._move_cache[key] = data
            return data

        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            try:
                response = await client.get(f"{self.base_url}/move/{key}")
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning("PokeAPI lookup for move %s failed: %s", key, e)
                raise CatalogError(f"Could not fetch move {name}: {e}") from e
            data = response.json()

        if cache_file is not None:
            with open(cache_file, "w") as f:
                json.dump(data, f)
        self._move_cache[key] = data
        return data

    async def fetch_move(self, name: str) -> Move:
        return move_from_api(await self.get_move_data(name))

    async def fetch_moves(self, names: list[str]) -> list[Move]:
        return [await self.fetch_move(n) for n in names]

    def get(self, name: str) -> Move:
        """Return an already-fetched move."""
        key = name.strip().lower().replace(" ", "-")
        data = self._move_cache.get(key)
        if data is None:
            raise CatalogError(f"Move {name} has not been fetched yet")
        return move_from_api(data)
