"""Shared fixtures for pokeduel tests."""

import random

import pytest
from typer.testing import CliRunner

from pokeduel.core.combatant import Combatant
from pokeduel.core.moves import DamageClass, Move
from pokeduel.core.participant import AutomatedParticipant, HumanParticipant
from pokeduel.utils.config import Config


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_move(name="tackle", type_="normal", power=40, accuracy=100, pp=35,
              damage_class=DamageClass.PHYSICAL, **kwargs) -> Move:
    return Move(name=name, type=type_, damage_class=damage_class, power=power,
                accuracy=accuracy, pp=pp, **kwargs)


def make_combatant(
    species="pikachu",
    type1="electric",
    type2=None,
    hp=100,
    atk=55,
    defense=40,
    spa=50,
    spd=50,
    spe=90,
    level=50,
    moves=None,
    **kwargs,
) -> Combatant:
    if moves is None:
        moves = [make_move(), make_move("thunderbolt", "electric", 90, 100, 15, DamageClass.SPECIAL)]
    return Combatant(
        species=species,
        type1=type1,
        type2=type2,
        max_hp=hp,
        current_hp=kwargs.pop("current_hp", hp),
        atk=atk,
        defense=defense,
        spa=spa,
        spd=spd,
        spe=spe,
        level=level,
        moves=moves,
        **kwargs,
    )


def make_human(participant_id="ash", name="Ash", roster=None, **kwargs) -> HumanParticipant:
    return HumanParticipant(
        participant_id=participant_id, name=name, roster=roster or [make_combatant()], **kwargs
    )


def make_ai(participant_id="ai:gary", name="Gary", roster=None) -> AutomatedParticipant:
    if roster is None:
        roster = [make_combatant(species="charmander", type1="fire", spe=65,
                                 moves=[make_move("ember", "fire", 40, 100, 25, DamageClass.SPECIAL)])]
    return AutomatedParticipant(participant_id=participant_id, name=name, roster=roster)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Provide a Typer CLI runner."""
    return CliRunner()


@pytest.fixture
def rng():
    """Deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def fast_config():
    """Config with short decision timeouts so timeout paths run quickly."""
    return Config(lead_timeout=0.2, turn_timeout=0.2, forced_switch_timeout=0.2, seed=7)


@pytest.fixture
def slow_config():
    """Config whose timeouts never fire during a test."""
    return Config(lead_timeout=30, turn_timeout=30, forced_switch_timeout=30, seed=7)
