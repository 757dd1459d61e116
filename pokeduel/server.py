"""HTTP surface for creating, driving and inspecting battle sessions."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from pokeduel import __version__
from pokeduel.core.actions import Action
from pokeduel.core.combatant import Combatant, create_combatant
from pokeduel.core.errors import (
    ActionAlreadyCommittedError,
    CatalogError,
    InvalidActionError,
    ParticipantBusyError,
    SessionNotFoundError,
)
from pokeduel.core.events import TurnEvent
from pokeduel.core.field import Terrain, Weather
from pokeduel.core.gate import DecisionKind, DecisionRequest
from pokeduel.core.participant import AI_ID_PREFIX, AutomatedParticipant, HumanParticipant, Participant
from pokeduel.core.registry import SessionRegistry
from pokeduel.core.session import BattleResult, BattleSession, BattleType, SessionStatus
from pokeduel.utils.config import config
from pokeduel.utils.logging import setup_logging

logger = logging.getLogger(__name__)

registry = SessionRegistry()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging(config.log_level)
    yield
    registry.abort_all()


app = FastAPI(title="pokeduel battle server", version=__version__, lifespan=lifespan)


# --- Models ---


class CombatantSpec(BaseModel):
    species: str
    nickname: str | None = None
    type1: str
    type2: str | None = None
    level: int = Field(default=config.default_level, ge=1, le=100)
    base_stats: dict[str, int] = Field(default_factory=dict)
    ivs: dict[str, int] = Field(default_factory=dict)
    evs: dict[str, int] = Field(default_factory=dict)
    nature: str = "hardy"
    moves: list[str] | None = None
    held_item: str | None = None
    shiny: bool = False
    mega_types: list[str] | None = None
    mega_stats: dict[str, int] | None = None

    def build(self) -> Combatant:
        return create_combatant(
            species=self.species,
            type1=self.type1,
            type2=self.type2,
            level=self.level,
            base_stats=self.base_stats,
            ivs=self.ivs,
            evs=self.evs,
            nature=self.nature,
            moves=self.moves,
            nickname=self.nickname,
            held_item=self.held_item,
            shiny=self.shiny,
            mega_types=self.mega_types,
            mega_stats=self.mega_stats,
        )


class ParticipantSpec(BaseModel):
    participant_id: str
    name: str
    automated: bool = False
    roster: list[CombatantSpec] = Field(min_length=1)

    def build(self) -> Participant:
        roster = [c.build() for c in self.roster]
        if self.automated:
            pid = self.participant_id
            if not pid.startswith(AI_ID_PREFIX):
                pid = AI_ID_PREFIX + pid
            return AutomatedParticipant(participant_id=pid, name=self.name, roster=roster)
        return HumanParticipant(participant_id=self.participant_id, name=self.name, roster=roster)


class SessionCreate(BaseModel):
    challenger: ParticipantSpec
    opponent: ParticipantSpec
    battle_type: BattleType = BattleType.PARTY
    seed: int | None = None


class ActionSubmit(BaseModel):
    participant_id: str
    turn: int
    action: Action
    kind: DecisionKind | None = None


class CombatantView(BaseModel):
    name: str
    types: list[str]
    current_hp: int
    max_hp: int
    status: str
    fainted: bool
    moves: list[tuple[str, int]]  # (display name, PP left)


class SideView(BaseModel):
    participant_id: str
    name: str
    active_index: int | None
    has_mega_evolved: bool
    roster: list[CombatantView]
    pending: DecisionRequest | None


class FieldView(BaseModel):
    weather: Weather | None
    weather_turns_left: int
    terrain: Terrain | None = None
    terrain_turns_left: int = 0
    trick_room_turns_left: int
    background: int


class SessionView(BaseModel):
    token: str
    status: SessionStatus
    battle_type: BattleType
    turn: int
    field: FieldView
    sides: list[SideView]
    result: BattleResult | None = None


# --- Dependencies ---


def get_registry() -> SessionRegistry:
    return registry


def _find_session(token: str, reg: SessionRegistry) -> BattleSession:
    try:
        return reg.find(token)
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found") from None


def _view(session: BattleSession) -> SessionView:
    sides = []
    for p in session.participants:
        sides.append(SideView(
            participant_id=p.participant_id,
            name=p.name,
            active_index=p.active_index,
            has_mega_evolved=p.has_mega_evolved,
            roster=[
                CombatantView(
                    name=c.display_name,
                    types=c.types,
                    current_hp=c.current_hp,
                    max_hp=c.max_hp,
                    status=c.status.value,
                    fainted=c.is_fainted,
                    moves=[(m.display_name, m.current_pp or 0) for m in c.moves],
                )
                for c in p.roster
            ],
            pending=session.pending_request(p.participant_id),
        ))
    field = session.field
    return SessionView(
        token=session.token,
        status=session.status,
        battle_type=session.battle_type,
        turn=session.turn,
        field=FieldView(
            weather=field.weather,
            weather_turns_left=field.weather_turns_left,
            terrain=field.terrain,
            terrain_turns_left=field.terrain_turns_left,
            trick_room_turns_left=field.trick_room.turns_left,
            background=field.background,
        ),
        sides=sides,
        result=session.result() if session.is_terminal else None,
    )


RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]


# --- Endpoints ---


@app.get("/health")
async def health_check(reg: RegistryDep):
    return {"status": "ok", "version": __version__, "active_battles": len(reg)}


@app.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def create_session(body: SessionCreate, reg: RegistryDep):
    try:
        session = BattleSession(
            body.challenger.build(),
            body.opponent.build(),
            battle_type=body.battle_type,
            seed=body.seed,
        )
        reg.start(session)
    except (CatalogError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except ParticipantBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return _view(session)


@app.get("/sessions/{token}", response_model=SessionView)
async def get_session(token: str, reg: RegistryDep):
    return _view(_find_session(token, reg))


@app.post("/sessions/{token}/actions")
async def submit_action(token: str, body: ActionSubmit, reg: RegistryDep):
    session = _find_session(token, reg)
    try:
        accepted = session.submit(body.participant_id, body.turn, body.action, kind=body.kind)
    except InvalidActionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail) from None
    except ActionAlreadyCommittedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return {"accepted": accepted}


@app.get("/sessions/{token}/log", response_model=list[TurnEvent])
async def read_log(token: str, reg: RegistryDep):
    """New events since the last read. Reading clears them."""
    return _find_session(token, reg).log.drain()


@app.get("/sessions/{token}/history", response_model=list[list[TurnEvent]])
async def read_history(token: str, reg: RegistryDep):
    session = _find_session(token, reg)
    return session.log.turns + ([session.log.current] if session.log.current else [])


@app.delete("/sessions/{token}")
async def abort_session(token: str, reg: RegistryDep):
    try:
        cancelled = reg.abort(token)
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not running") from None
    return {"cancelled": cancelled}
