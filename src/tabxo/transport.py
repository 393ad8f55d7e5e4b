"""Move, signal and heartbeat propagation through the shared store.

Each channel is a single key overwritten on every write (last write wins), so a
channel holds at most one pending message and a missed notification loses the
intermediate value for good. Consumers rely on cumulative state such as the
board snapshot carried by every ``MoveMessage``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .config import get_settings
from .errors import MalformedMessage
from .game import Mark
from .messages import (
    HeartbeatMessage,
    Message,
    MoveMessage,
    SignalMessage,
    SignalType,
    decode_as,
)
from .store import KeyValueStore, StorageEvent

logger = logging.getLogger(__name__)

# "state" is reserved: nothing writes it, teardown still clears it
CHANNELS: Tuple[str, ...] = ("move", "state", "signal", "heartbeat")

MessageHandler = Callable[[Message], None]


@dataclass(frozen=True)
class RoomKeys:
    code: str
    prefix: str = "ttt_room_"

    @property
    def room(self) -> str:
        return f"{self.prefix}{self.code}"

    @property
    def move(self) -> str:
        return f"{self.room}_move"

    @property
    def state(self) -> str:
        return f"{self.room}_state"

    @property
    def signal(self) -> str:
        return f"{self.room}_signal"

    @property
    def heartbeat(self) -> str:
        return f"{self.room}_heartbeat"

    def all(self) -> Tuple[str, ...]:
        return (self.room, self.move, self.state, self.signal, self.heartbeat)

    def channel_of(self, key: str) -> Optional[str]:
        """Map a store key to its logical channel in this room, or None."""
        if key == self.room:
            return "room"
        for channel in CHANNELS:
            if key == f"{self.room}_{channel}":
                return channel
        return None


class SyncTransport:
    """Publishes this tab's messages and decodes the peer's for one room."""

    def __init__(
        self,
        store: KeyValueStore,
        code: str,
        mark: Mark,
        clock: Callable[[], float],
        key_prefix: Optional[str] = None,
    ) -> None:
        self.store = store
        self.mark = mark
        self.clock = clock
        self.keys = RoomKeys(code, key_prefix or get_settings().KEY_PREFIX)
        self.move_number = 0
        self._handler: Optional[MessageHandler] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def code(self) -> str:
        return self.keys.code

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    # ---- publishing ----

    def publish_move(self, index: int, board: Sequence[str]) -> MoveMessage:
        self.move_number += 1
        message = MoveMessage(
            player=self.mark,
            cell_index=index,
            board=tuple(board),
            move_number=self.move_number,
            ts=self.clock(),
        )
        self.store.set(self.keys.move, message.dumps())
        return message

    def publish_signal(
        self, type: SignalType, payload: Optional[Dict[str, Any]] = None
    ) -> SignalMessage:
        message = SignalMessage(
            type=type, initiator=self.mark, payload=payload or {}, ts=self.clock()
        )
        self.store.set(self.keys.signal, message.dumps())
        return message

    def publish_heartbeat(self) -> HeartbeatMessage:
        message = HeartbeatMessage(symbol=self.mark, ts=self.clock())
        self.store.set(self.keys.heartbeat, message.dumps())
        return message

    def observe_move_number(self, move_number: int) -> None:
        """Continue the room-wide sequence after applying a peer's move."""
        self.move_number = max(self.move_number, move_number)

    # ---- reading ----

    def read_heartbeat(self) -> Optional[HeartbeatMessage]:
        return self._read(self.keys.heartbeat, "heartbeat")

    def _read(self, key: str, kind: str) -> Optional[Any]:
        try:
            return decode_as(self.store.get(key), kind)
        except MalformedMessage:
            return None

    # ---- notifications ----

    def subscribe(self, handler: MessageHandler) -> None:
        """Route every decodable change in this room to ``handler`` (replaces any previous one)."""
        self.unsubscribe()
        self._handler = handler
        self._unsubscribe = self.store.on_change(self._dispatch)

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._handler = None

    def _dispatch(self, event: StorageEvent) -> None:
        handler = self._handler
        if handler is None or event.new_value is None:
            return
        channel = self.keys.channel_of(event.key)
        if channel is None or channel == "state":
            return
        try:
            message = decode_as(event.new_value, channel)
        except MalformedMessage as exc:
            logger.debug("Dropping undecodable %s payload in room %s: %s", channel, self.code, exc)
            return
        handler(message)
