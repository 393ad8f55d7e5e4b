"""Wire models for everything the sync layer writes to the shared store.

All values are JSON strings. Each payload carries a ``kind`` tag so decoding
at the transport boundary yields one member of a closed union.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import MalformedMessage
from .game import CELL_COUNT, EMPTY, MARKS

MarkField = Literal["X", "O"]
SignalType = Literal["new-game", "reset-match", "leave"]
RoomStatusField = Literal["waiting", "active"]


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def dumps(self) -> str:
        return self.model_dump_json(by_alias=True)


class RoomRecord(_Wire):
    kind: Literal["room"] = "room"
    host: str
    host_symbol: MarkField = Field(default="X", alias="hostSymbol")
    guest: Optional[str] = None
    guest_symbol: Optional[MarkField] = Field(default=None, alias="guestSymbol")
    status: RoomStatusField = "waiting"
    created: float
    ts: float


class MoveMessage(_Wire):
    kind: Literal["move"] = "move"
    player: MarkField
    cell_index: int = Field(alias="cellIndex", ge=0, lt=CELL_COUNT)
    board: Tuple[str, ...]
    move_number: int = Field(alias="moveNumber", ge=1)
    ts: float

    @field_validator("board")
    @classmethod
    def ensure_board_shape(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(value) != CELL_COUNT:
            raise ValueError(f"Board must have {CELL_COUNT} cells")
        if any(cell not in (EMPTY, *MARKS) for cell in value):
            raise ValueError("Board cells must be empty, 'X' or 'O'")
        return value


class SignalMessage(_Wire):
    kind: Literal["signal"] = "signal"
    type: SignalType
    initiator: MarkField
    payload: Dict[str, Any] = Field(default_factory=dict)
    ts: float


class HeartbeatMessage(_Wire):
    kind: Literal["heartbeat"] = "heartbeat"
    symbol: MarkField
    ts: float


Message = Annotated[
    Union[RoomRecord, MoveMessage, SignalMessage, HeartbeatMessage],
    Field(discriminator="kind"),
]

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def decode(raw: Optional[str]) -> Message:
    """Decode a stored JSON value, raising ``MalformedMessage`` on any failure."""
    if raw is None:
        raise MalformedMessage("No value stored")
    try:
        return _message_adapter.validate_json(raw)
    except ValidationError as exc:
        raise MalformedMessage(str(exc)) from exc


def decode_as(raw: Optional[str], kind: str) -> Message:
    message = decode(raw)
    if message.kind != kind:
        raise MalformedMessage(f"Expected a {kind!r} payload, got {message.kind!r}")
    return message
