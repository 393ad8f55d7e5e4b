"""Shared fixtures: a manual clock/scheduler and a shared device store."""

from __future__ import annotations

import heapq
import itertools
import random
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

import pytest

from tabxo.session import SessionListener, SessionOrchestrator
from tabxo.store import SharedStorage


@dataclass(order=True)
class _Handle:
    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Simulated time: callbacks only run inside ``advance``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.time = start
        self._queue: List[_Handle] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(self.time + delay, next(self._seq), callback)
        heapq.heappush(self._queue, handle)
        return handle

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while self._queue and self._queue[0].when <= target:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.time = handle.when
            handle.callback()
        self.time = target

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)


class RecordingListener(SessionListener):
    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def count(self, name: str) -> int:
        return self.names().count(name)

    def on_result(self, result):
        self.calls.append(("result", (result,)))

    def on_score_changed(self, mark, score):
        self.calls.append(("score", (mark, score)))

    def on_match_won(self, mark):
        self.calls.append(("match_won", (mark,)))

    def on_opponent_connected(self):
        self.calls.append(("connected", ()))

    def on_opponent_disconnected(self):
        self.calls.append(("disconnected", ()))

    def on_room_created(self, code):
        self.calls.append(("room_created", (code,)))

    def on_room_joined(self, host_name):
        self.calls.append(("room_joined", (host_name,)))

    def on_game_reset(self):
        self.calls.append(("game_reset", ()))

    def on_match_reset(self):
        self.calls.append(("match_reset", ()))

    def on_countdown_finished(self):
        self.calls.append(("countdown_finished", ()))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def storage() -> SharedStorage:
    return SharedStorage()


@pytest.fixture
def make_session(storage, scheduler):
    """Open a new tab on the shared storage."""

    def factory(seed: int | None = None) -> SessionOrchestrator:
        return SessionOrchestrator(
            storage.context(),
            scheduler,
            listener=RecordingListener(),
            rng=random.Random(seed),
        )

    return factory


@pytest.fixture
def online_pair(make_session, scheduler):
    """A host and a guest tab connected through one room."""
    host = make_session(seed=1)
    guest = make_session(seed=2)
    code = host.create_room("Alice")
    scheduler.advance(0.5)
    guest.join_room(code.lower(), "Bob")
    scheduler.advance(0.1)
    return host, guest
