"""Tests for wire models and tagged decoding."""

import json

import pytest

from tabxo.errors import MalformedMessage
from tabxo.messages import HeartbeatMessage, MoveMessage, SignalMessage, decode, decode_as


def test_move_message_uses_camel_case_on_the_wire():
    message = MoveMessage(player="X", cell_index=4, board=("",) * 4 + ("X",) + ("",) * 4, move_number=1, ts=5.0)
    payload = json.loads(message.dumps())
    assert payload["kind"] == "move"
    assert payload["cellIndex"] == 4
    assert payload["moveNumber"] == 1
    assert decode(message.dumps()) == message


def test_decode_dispatches_on_kind():
    raw = json.dumps({"kind": "signal", "type": "new-game", "initiator": "O", "ts": 3})
    message = decode(raw)
    assert isinstance(message, SignalMessage)
    assert message.type == "new-game"
    assert message.payload == {}


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "not json",
        "{}",
        json.dumps({"kind": "move", "player": "X", "cellIndex": 0, "board": [""] * 8, "moveNumber": 1, "ts": 1}),
        json.dumps({"kind": "move", "player": "Q", "cellIndex": 0, "board": [""] * 9, "moveNumber": 1, "ts": 1}),
        json.dumps({"kind": "signal", "type": "explode", "initiator": "X", "ts": 1}),
    ],
)
def test_undecodable_payloads_raise_malformed(raw):
    with pytest.raises(MalformedMessage):
        decode(raw)


def test_decode_as_rejects_wrong_channel():
    raw = HeartbeatMessage(symbol="X", ts=1.0).dumps()
    assert decode_as(raw, "heartbeat").symbol == "X"
    with pytest.raises(MalformedMessage):
        decode_as(raw, "move")
