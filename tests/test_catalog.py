"""Tests for the built-in move catalog and default movesets."""

import random

import pytest

from pokeduel.core.catalog import BuiltinMoveCatalog, builtin_catalog
from pokeduel.core.errors import CatalogError
from pokeduel.core.field import Weather
from pokeduel.core.moves import DamageClass, StatusEffect, VolatileEffect


class TestBuiltinCatalog:
    def test_lookup_normalizes_name(self):
        assert builtin_catalog.get("THUNDERBOLT").name == "thunderbolt"
        assert builtin_catalog.get(" Fire Blast ").name == "fire-blast"

    def test_unknown_move_raises(self):
        with pytest.raises(CatalogError):
            builtin_catalog.get("splash-of-doom")

    def test_returns_fresh_copies(self):
        first = builtin_catalog.get("ember")
        first.current_pp = 0
        assert builtin_catalog.get("ember").current_pp == 25

    def test_contains_and_len(self):
        assert "protect" in builtin_catalog
        assert "nonexistent" not in builtin_catalog
        assert len(builtin_catalog) == len(builtin_catalog.names())

    def test_by_type(self):
        moves = builtin_catalog.by_type("Water")
        assert moves
        assert all(m.type == "water" for m in moves)

    def test_effects_attached(self):
        assert builtin_catalog.get("quick-attack").priority == 1
        assert builtin_catalog.get("trick-room").sets_trick_room
        assert builtin_catalog.get("rain-dance").sets_weather == Weather.RAIN
        assert builtin_catalog.get("toxic").status_effect == StatusEffect.BADLY_POISONED
        assert builtin_catalog.get("outrage").volatile_effect == VolatileEffect.LOCK
        assert builtin_catalog.get("fire-spin").volatile_effect == VolatileEffect.TRAP
        assert builtin_catalog.get("icicle-spear").max_hits == 5
        assert builtin_catalog.get("protect").damage_class == DamageClass.STATUS


class TestDefaultMoveset:
    def test_at_most_four_moves(self):
        moves = builtin_catalog.generate_default_moveset("fire", "flying", 50)
        assert 1 <= len(moves) <= 4

    def test_stab_moves_included(self):
        moves = builtin_catalog.generate_default_moveset("water", None, 50)
        assert any(m.type == "water" for m in moves)

    def test_low_level_gets_weaker_moves(self):
        moves = builtin_catalog.generate_default_moveset("fire", None, 5)
        damaging = [m for m in moves if m.power]
        assert all(m.power <= 50 for m in damaging)

    def test_rng_adds_status_move(self):
        moves = builtin_catalog.generate_default_moveset("electric", None, 50, rng=random.Random(3))
        assert moves[-1].damage_class == DamageClass.STATUS

    def test_separate_catalogs_are_independent(self):
        catalog = BuiltinMoveCatalog()
        assert catalog.names() == builtin_catalog.names()
