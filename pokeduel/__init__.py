"""pokeduel - turn-based Pokemon battle orchestration engine."""

__version__ = "0.1.0"
