"""Room rendezvous records kept in the shared store."""

from __future__ import annotations

import logging
import random
import string
from typing import Callable, List, Optional

from .config import get_settings
from .errors import MalformedMessage, RoomFull, RoomNotFound
from .game import O, X
from .messages import RoomRecord, decode, decode_as
from .store import KeyValueStore
from .transport import CHANNELS, RoomKeys

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: str) -> str:
    return code.strip().upper()


class RoomRegistry:
    """Create, join, expire and delete rooms identified by a short code."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float],
        ttl_seconds: Optional[float] = None,
        code_length: Optional[int] = None,
        key_prefix: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.clock = clock
        self.ttl_seconds = settings.ROOM_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.code_length = code_length or settings.ROOM_CODE_LENGTH
        self.key_prefix = key_prefix or settings.KEY_PREFIX
        self.rng = rng or random.Random()

    def keys_for(self, code: str) -> RoomKeys:
        return RoomKeys(normalize_code(code), self.key_prefix)

    def generate_code(self) -> str:
        while True:
            code = "".join(self.rng.choice(CODE_ALPHABET) for _ in range(self.code_length))
            if self.store.get(self.keys_for(code).room) is None:
                return code
            logger.debug("Room code %s already taken, drawing again", code)

    def get(self, code: str) -> Optional[RoomRecord]:
        """Return the live room for ``code``; missing, unreadable and expired rooms are None."""
        try:
            room = decode_as(self.store.get(self.keys_for(code).room), "room")
        except MalformedMessage:
            return None
        if self.is_expired(room, self.clock()):
            return None
        return room

    def create_room(self, code: str, host_name: str) -> RoomRecord:
        now = self.clock()
        room = RoomRecord(host=host_name, host_symbol=X, status="waiting", created=now, ts=now)
        self.store.set(self.keys_for(code).room, room.dumps())
        logger.info("Room %s created by %s", normalize_code(code), host_name)
        return room

    def join_room(self, code: str, guest_name: str) -> RoomRecord:
        """Register the guest and return the updated record (``record.host`` names the host)."""
        code = normalize_code(code)
        room = self.get(code)
        if room is None:
            raise RoomNotFound(code)
        if room.status == "active":
            raise RoomFull(code)
        joined = room.model_copy(
            update={
                "guest": guest_name,
                "guest_symbol": O,
                "status": "active",
                "ts": self.clock(),
            }
        )
        self.store.set(self.keys_for(code).room, joined.dumps())
        logger.info("%s joined room %s hosted by %s", guest_name, code, room.host)
        return joined

    def delete_room(self, code: str) -> None:
        keys = self.keys_for(code)
        for key in keys.all():
            self.store.remove(key)
        logger.info("Room %s removed", keys.code)

    def is_expired(self, room: RoomRecord, now: float) -> bool:
        return now - room.created > self.ttl_seconds

    def sweep_expired(self) -> int:
        """Purge stale rooms and leftovers from the store. Returns the number of keys removed."""
        now = self.clock()
        removed = 0
        channel_keys: List[str] = []
        for key in self.store.keys():
            if not key.startswith(self.key_prefix):
                continue
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                message = decode(raw)
            except MalformedMessage:
                self.store.remove(key)
                removed += 1
                continue
            if message.kind != "room":
                channel_keys.append(key)
            elif self.is_expired(message, now):
                self.store.remove(key)
                removed += 1
        # Channel keys go once their room record is gone
        for key in channel_keys:
            if self._is_orphan(key):
                self.store.remove(key)
                removed += 1
        if removed:
            logger.info("Swept %d stale room keys", removed)
        return removed

    def _is_orphan(self, key: str) -> bool:
        body = key[len(self.key_prefix):]
        code, _, channel = body.rpartition("_")
        if not code or channel not in CHANNELS:
            return False
        return self.store.get(self.keys_for(code).room) is None
