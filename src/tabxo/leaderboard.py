"""Device-wide tally of match wins by player name."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import get_settings
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class LeaderboardEntry(BaseModel):
    name: str
    wins: int = 0
    date: str


_entries_adapter = TypeAdapter(List[LeaderboardEntry])


class Leaderboard:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float],
        key: Optional[str] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.key = key or get_settings().LEADERBOARD_KEY

    def entries(self) -> List[LeaderboardEntry]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Leaderboard data is unreadable, starting from scratch")
            return []

    def record_win(self, name: str) -> LeaderboardEntry:
        entries = self.entries()
        stamp = datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat()
        for entry in entries:
            if entry.name == name:
                entry.wins += 1
                entry.date = stamp
                break
        else:
            entry = LeaderboardEntry(name=name, wins=1, date=stamp)
            entries.append(entry)
        self.store.set(self.key, _entries_adapter.dump_json(entries).decode())
        return entry

    def ranked(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Entries by wins, most first; ties keep insertion order."""
        ordered = sorted(self.entries(), key=lambda entry: entry.wins, reverse=True)
        return ordered if limit is None else ordered[:limit]
