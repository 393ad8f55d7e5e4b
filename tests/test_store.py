"""Tests for the shared device store and its cross-tab change events."""

import logging

from tabxo.store import SharedStorage, StorageEvent


def test_write_notifies_other_contexts_only():
    storage = SharedStorage()
    writer, reader = storage.context(), storage.context()
    seen_by_writer, seen_by_reader = [], []
    writer.on_change(seen_by_writer.append)
    reader.on_change(seen_by_reader.append)

    writer.set("k", "1")
    writer.set("k", "2")

    assert seen_by_writer == []
    assert seen_by_reader == [
        StorageEvent("k", None, "1"),
        StorageEvent("k", "1", "2"),
    ]
    assert reader.get("k") == "2"


def test_identical_value_does_not_notify():
    storage = SharedStorage()
    writer, reader = storage.context(), storage.context()
    events = []
    reader.on_change(events.append)
    writer.set("k", "same")
    writer.set("k", "same")
    assert len(events) == 1


def test_remove_notifies_with_no_new_value():
    storage = SharedStorage()
    writer, reader = storage.context(), storage.context()
    writer.set("k", "v")
    events = []
    reader.on_change(events.append)
    writer.remove("k")
    writer.remove("k")
    assert events == [StorageEvent("k", "v", None)]
    assert reader.get("k") is None
    assert "k" not in reader.keys()


def test_unsubscribe_and_close_stop_delivery():
    storage = SharedStorage()
    writer, reader, closed = storage.context(), storage.context(), storage.context()
    events, closed_events = [], []
    unsubscribe = reader.on_change(events.append)
    closed.on_change(closed_events.append)
    closed.close()
    unsubscribe()
    writer.set("k", "v")
    assert events == []
    assert closed_events == []


def test_failing_listener_does_not_block_others(caplog):
    storage = SharedStorage()
    writer, reader = storage.context(), storage.context()
    events = []

    def broken(event):
        raise RuntimeError("boom")

    reader.on_change(broken)
    reader.on_change(events.append)
    with caplog.at_level(logging.ERROR, logger="tabxo.store"):
        writer.set("k", "v")
    assert len(events) == 1
    assert "Storage listener failed" in caplog.text
