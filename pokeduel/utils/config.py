"""Configuration management for pokeduel."""

import os
from pathlib import Path

from pydantic import BaseModel


class Config(BaseModel):
    """Engine configuration."""

    # Decision timeouts in seconds
    lead_timeout: float = 60.0
    turn_timeout: float = 60.0
    forced_switch_timeout: float = 60.0

    # Field effect durations (turns)
    weather_turns: int = 5
    trick_room_turns: int = 5
    terrain_turns: int = 5

    # Roster rules
    max_roster_size: int = 6
    default_level: int = 50

    # PokeAPI settings
    pokeapi_base_url: str = "https://pokeapi.co/api/v2"
    cache_dir: Path = Path.home() / ".pokeduel" / "cache"

    # Runtime
    log_level: str = "INFO"
    seed: int | None = None  # Fixed RNG seed for reproducible battles

    @classmethod
    def from_env(cls) -> "Config":
        """Build a config, overriding defaults from POKEDUEL_* variables."""
        overrides: dict[str, str] = {}
        for name in cls.model_fields:
            value = os.getenv(f"POKEDUEL_{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)

    def ensure_dirs(self) -> None:
        """Create the move cache directory if it doesn't exist."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
config = Config.from_env()
