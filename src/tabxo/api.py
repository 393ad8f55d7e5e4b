"""FastAPI surface: browser-like tabs attached to one shared device store."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import IllegalMove, RoomFull, RoomNotFound
from .game import GameResult, Mark
from .leaderboard import Leaderboard
from .session import SessionListener, SessionOrchestrator
from .store import SharedStorage, StorageContext
from .timers import AsyncioScheduler

MAX_EVENTS = 200


class EventLog(SessionListener):
    """Collects session notifications so clients can poll them with the tab state."""

    def __init__(self) -> None:
        self.events: List[Dict[str, object]] = []

    def _push(self, event: str, **data: object) -> None:
        self.events.append({"event": event, **data})
        del self.events[:-MAX_EVENTS]

    def on_result(self, result: GameResult) -> None:
        self._push("result", **_serialize_result(result))

    def on_score_changed(self, mark: Mark, score: int) -> None:
        self._push("score", player=mark, score=score)

    def on_match_won(self, mark: Mark) -> None:
        self._push("match-won", player=mark)

    def on_opponent_connected(self) -> None:
        self._push("opponent-connected")

    def on_opponent_disconnected(self) -> None:
        self._push("opponent-disconnected")

    def on_room_created(self, code: str) -> None:
        self._push("room-created", code=code)

    def on_room_joined(self, host_name: str) -> None:
        self._push("room-joined", hostName=host_name)

    def on_board_changed(self, board: Sequence[str], current_player: Mark) -> None:
        self._push("board", board=list(board), currentPlayer=current_player)

    def on_game_reset(self) -> None:
        self._push("new-game")

    def on_match_reset(self) -> None:
        self._push("new-match")

    def on_countdown_finished(self) -> None:
        self._push("countdown-finished")


@dataclass
class Tab:
    session: SessionOrchestrator
    storage: StorageContext
    log: EventLog = field(repr=False)


STORAGE = SharedStorage()
_LEADERBOARD_VIEW = STORAGE.context()
TABS: Dict[str, Tab] = {}
app = FastAPI(title="tabxo", description="Two-player tic-tac-toe synchronised across tabs")


class ModeRequest(BaseModel):
    mode: Literal["local", "online-tab"]


class NamesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player_x: str = Field(default="", alias="playerX", max_length=30)
    player_o: str = Field(default="", alias="playerO", max_length=30)


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    host_name: str = Field(alias="hostName", min_length=1, max_length=30)


class JoinRoomRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1, max_length=8)
    guest_name: str = Field(alias="guestName", min_length=1, max_length=30)

    @field_validator("code")
    @classmethod
    def ensure_alphanumeric(cls, value: str) -> str:
        value = value.strip()
        if not value.isalnum():
            raise ValueError("Room codes are letters and digits only")
        return value


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, le=8)


def _serialize_result(result: GameResult) -> Dict[str, object]:
    return {
        "outcome": str(result.outcome),
        "winner": result.winner,
        "line": list(result.line) if result.line else None,
    }


def _open_tab() -> Tuple[str, Tab]:
    storage = STORAGE.context()
    log = EventLog()
    session = SessionOrchestrator(storage, AsyncioScheduler(), listener=log)
    tab_id = uuid.uuid4().hex
    tab = Tab(session=session, storage=storage, log=log)
    TABS[tab_id] = tab
    return tab_id, tab


def _get_tab(tab_id: str) -> Tab:
    try:
        return TABS[tab_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Tab not found") from exc


def _serialize_tab(tab_id: str, tab: Tab) -> Dict[str, object]:
    session = tab.session
    ctx = session.context
    controller = session.match
    return {
        "id": tab_id,
        "mode": str(ctx.mode),
        "status": str(ctx.status),
        "role": str(ctx.role) if ctx.role else None,
        "mark": ctx.my_mark,
        "roomCode": ctx.room_code,
        "opponentName": ctx.opponent_name,
        "opponentOnline": ctx.opponent_online,
        "playerNames": dict(ctx.player_names),
        "board": list(controller.board),
        "currentPlayer": controller.current_player,
        "gameActive": controller.game_active,
        "result": _serialize_result(controller.result),
        "scores": dict(controller.scores),
        "matchActive": controller.match_active,
        "events": list(tab.log.events),
    }


# Endpoints are async so session timers land on the server's event loop.


@app.post("/api/tab")
async def open_tab() -> Dict[str, object]:
    tab_id, tab = _open_tab()
    return _serialize_tab(tab_id, tab)


@app.get("/api/tab/{tab_id}")
async def get_tab(tab_id: str) -> Dict[str, object]:
    return _serialize_tab(tab_id, _get_tab(tab_id))


@app.delete("/api/tab/{tab_id}")
async def close_tab(tab_id: str) -> Dict[str, str]:
    tab = _get_tab(tab_id)
    tab.session.leave()
    tab.storage.close()
    TABS.pop(tab_id, None)
    return {"id": tab_id, "status": "closed"}


@app.post("/api/tab/{tab_id}/mode")
async def select_mode(tab_id: str, request: ModeRequest) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.select_mode(request.mode)
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/names")
async def set_names(tab_id: str, request: NamesRequest) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.set_player_names(request.player_x, request.player_o)
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/room")
async def create_room(tab_id: str, request: CreateRoomRequest) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.create_room(request.host_name)
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/join")
async def join_room(tab_id: str, request: JoinRoomRequest) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    try:
        tab.session.join_room(request.code, request.guest_name)
    except RoomNotFound as exc:
        raise HTTPException(status_code=404, detail="Room not found") from exc
    except RoomFull as exc:
        raise HTTPException(status_code=409, detail="Room is full") from exc
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/move")
async def make_move(tab_id: str, request: MoveRequest) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    try:
        tab.session.play(request.cell_index)
    except IllegalMove as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/new-game")
async def new_game(tab_id: str) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.new_game()
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/reset-match")
async def reset_match(tab_id: str) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.reset_match()
    return _serialize_tab(tab_id, tab)


@app.post("/api/tab/{tab_id}/leave")
async def leave_room(tab_id: str) -> Dict[str, object]:
    tab = _get_tab(tab_id)
    tab.session.leave()
    return _serialize_tab(tab_id, tab)


@app.get("/api/leaderboard")
async def leaderboard(limit: Optional[int] = Query(default=None, ge=1, le=100)) -> List[Dict[str, object]]:
    board = Leaderboard(_LEADERBOARD_VIEW, time.time)
    return [entry.model_dump() for entry in board.ranked(limit)]
