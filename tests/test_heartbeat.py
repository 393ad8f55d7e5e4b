"""Tests for heartbeat beacons and timeout-plus-grace disconnect detection."""

import pytest

from tabxo.heartbeat import HeartbeatMonitor
from tabxo.transport import SyncTransport


@pytest.fixture
def transports(storage, scheduler):
    mine = SyncTransport(storage.context(), "AB12", "X", scheduler.now)
    theirs = SyncTransport(storage.context(), "AB12", "O", scheduler.now)
    return mine, theirs


@pytest.fixture
def monitor_events():
    return {"connected": 0, "disconnected": 0}


@pytest.fixture
def monitor(transports, scheduler, monitor_events):
    mine, _ = transports

    def connected():
        monitor_events["connected"] += 1

    def disconnected():
        monitor_events["disconnected"] += 1

    return HeartbeatMonitor(
        mine,
        scheduler,
        on_connected=connected,
        on_disconnected=disconnected,
        interval=3,
        check_interval=3,
        timeout=9,
        grace=2,
    )


def test_start_writes_beacon_and_repeats(monitor, transports, scheduler):
    _, theirs = transports
    monitor.start()
    assert theirs.read_heartbeat().ts == scheduler.now()
    scheduler.advance(3)
    assert theirs.read_heartbeat().ts == scheduler.now()


def test_opponent_beacon_reports_connected(monitor, transports, scheduler, monitor_events):
    _, theirs = transports
    monitor.start()
    scheduler.advance(1)
    theirs.publish_heartbeat()
    monitor.check()
    assert monitor_events["connected"] == 1
    assert monitor.last_seen == scheduler.now()


def test_silence_past_timeout_and_grace_disconnects_once(monitor, scheduler, monitor_events):
    monitor.start()
    scheduler.advance(11)
    assert monitor_events["disconnected"] == 0
    assert not monitor.grace_started

    scheduler.advance(1)  # t=12: silence 12 > 9, grace opens
    assert monitor.grace_started
    assert monitor_events["disconnected"] == 0

    scheduler.advance(2)  # t=14: re-check finds 14 > 11
    assert monitor_events["disconnected"] == 1
    assert monitor.disconnected

    monitor.check()
    monitor.check()
    scheduler.advance(60)
    assert monitor_events["disconnected"] == 1


def test_beacon_during_grace_cancels_disconnect(monitor, transports, scheduler, monitor_events):
    _, theirs = transports
    monitor.start()
    scheduler.advance(12)
    assert monitor.grace_started
    scheduler.advance(1)
    monitor.observe(theirs.publish_heartbeat())
    scheduler.advance(1)
    assert monitor_events["disconnected"] == 0
    assert not monitor.grace_started


def test_own_beacons_do_not_count_as_opponent(monitor, transports, scheduler):
    mine, _ = transports
    monitor.start()
    before = monitor.last_seen
    scheduler.advance(1)
    monitor.observe(mine.publish_heartbeat())
    assert monitor.last_seen == before


def test_stop_cancels_all_timers(monitor, transports, scheduler, monitor_events):
    _, theirs = transports
    monitor.start()
    scheduler.advance(12)
    monitor.stop()
    last_beacon = theirs.read_heartbeat().ts
    scheduler.advance(60)
    assert theirs.read_heartbeat().ts == last_beacon
    assert monitor_events["disconnected"] == 0
    assert scheduler.pending == 0
