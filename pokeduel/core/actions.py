"""Actions a participant can commit, and the legal-move query result."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class ActionKind(str, Enum):
    """Types of actions a participant can take each turn."""

    MOVE = "move"
    SWITCH = "switch"
    FORFEIT = "forfeit"


class MoveAction(BaseModel):
    kind: Literal["move"] = "move"
    move_index: int = Field(ge=0, le=3)
    mega_evolve: bool = False


class SwitchAction(BaseModel):
    kind: Literal["switch"] = "switch"
    index: int = Field(ge=0)


class ForfeitAction(BaseModel):
    kind: Literal["forfeit"] = "forfeit"


Action = Annotated[Union[MoveAction, SwitchAction, ForfeitAction], Field(discriminator="kind")]

action_adapter: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(data: dict) -> MoveAction | SwitchAction | ForfeitAction:
    """Validate a raw payload (e.g. from the HTTP API) into an Action."""
    return action_adapter.validate_python(data)


class LegalMoveKind(str, Enum):
    """How the decision layer should treat the move choice."""

    INDEXES = "indexes"  # Free choice among ``indexes``
    STRUGGLE = "struggle"  # Nothing has PP; commit any MoveAction
    FORCED = "forced"  # An effect pins ``indexes[0]``; skip the choice


class LegalMoves(BaseModel):
    kind: LegalMoveKind
    indexes: list[int] = Field(default_factory=list)

    @property
    def requires_choice(self) -> bool:
        return self.kind == LegalMoveKind.INDEXES

    def allows(self, move_index: int) -> bool:
        if self.kind == LegalMoveKind.INDEXES:
            return move_index in self.indexes
        # Struggle and forced moves ignore the submitted index
        return True
