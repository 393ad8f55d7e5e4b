"""Opponent liveness detection over the shared heartbeat slot."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .config import get_settings
from .messages import HeartbeatMessage
from .timers import Scheduler, ScopedTimer
from .transport import SyncTransport

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """Sends beacons and declares the opponent gone after timeout plus grace.

    Two independent timers drive it: one writes our beacon, one checks the
    opponent's. A gap longer than ``timeout`` opens a grace window and a
    one-shot re-check; only a gap longer than ``timeout + grace`` counts as a
    disconnect, and that is reported at most once per ``start()``.
    """

    def __init__(
        self,
        transport: SyncTransport,
        scheduler: Scheduler,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[], None]] = None,
        interval: Optional[float] = None,
        check_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        grace: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.transport = transport
        self.scheduler = scheduler
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.interval = interval or settings.HEARTBEAT_INTERVAL
        self.check_interval = check_interval or settings.HEARTBEAT_CHECK_INTERVAL
        self.timeout = settings.HEARTBEAT_TIMEOUT if timeout is None else timeout
        self.grace = settings.HEARTBEAT_GRACE if grace is None else grace

        self.last_seen = 0.0
        self.grace_started = False
        self.disconnected = False
        self.running = False
        self._send_timer = ScopedTimer(scheduler, "heartbeat-send")
        self._check_timer = ScopedTimer(scheduler, "heartbeat-check")
        self._grace_timer = ScopedTimer(scheduler, "heartbeat-grace")

    def start(self) -> None:
        self.last_seen = self.scheduler.now()
        self.grace_started = False
        self.disconnected = False
        self.running = True
        self.beat()
        self._send_timer.start_interval(self.interval, self.beat)
        self._check_timer.start_interval(self.check_interval, self.check)

    def stop(self) -> None:
        self.running = False
        self._send_timer.cancel()
        self._check_timer.cancel()
        self._grace_timer.cancel()

    def beat(self) -> None:
        self.transport.publish_heartbeat()

    def observe(self, message: HeartbeatMessage) -> None:
        """Record a beacon; our own beacons say nothing about the opponent."""
        if message.symbol == self.transport.mark or not self.running:
            return
        self.last_seen = self.scheduler.now()
        self.grace_started = False
        self._grace_timer.cancel()
        if self.on_connected:
            self.on_connected()

    def check(self) -> None:
        if not self.running or self.disconnected:
            return
        beacon = self.transport.read_heartbeat()
        if beacon is not None:
            self.observe(beacon)

        silence = self.scheduler.now() - self.last_seen
        if silence <= self.timeout:
            return
        if not self.grace_started:
            self.grace_started = True
            logger.debug("No heartbeat for %.1fs in room %s, grace period started", silence, self.transport.code)
            self._grace_timer.start_once(self.grace, self._recheck)
        elif silence > self.timeout + self.grace:
            self._declare_disconnected()

    def _recheck(self) -> None:
        if self.scheduler.now() - self.last_seen > self.timeout + self.grace:
            self._declare_disconnected()

    def _declare_disconnected(self) -> None:
        if self.disconnected:
            return
        self.disconnected = True
        self.stop()
        logger.info("Opponent in room %s timed out", self.transport.code)
        if self.on_disconnected:
            self.on_disconnected()
