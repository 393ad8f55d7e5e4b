"""Scheduling primitives: a clock/timer protocol and single-slot scoped timers."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Clock plus delayed callbacks; every callback runs to completion."""

    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop and wall-clock time."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ScopedTimer:
    """At most one pending callback for one logical purpose.

    Starting the timer again cancels whatever was pending, so re-entry can never
    leave two timers acting on the same state.
    """

    def __init__(self, scheduler: Scheduler, name: str) -> None:
        self.scheduler = scheduler
        self.name = name
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start_once(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()
        generation = self._generation

        def fire() -> None:
            if generation != self._generation:
                return
            self._handle = None
            callback()

        self._handle = self.scheduler.call_later(delay, fire)

    def start_interval(self, period: float, callback: Callable[[], None]) -> None:
        self.cancel()
        generation = self._generation

        def tick() -> None:
            if generation != self._generation:
                return
            # Re-arm before running so the callback may cancel us
            self._handle = self.scheduler.call_later(period, tick)
            callback()

        self._handle = self.scheduler.call_later(period, tick)

    def cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
