"""Exception taxonomy shared by the board, room and sync layers."""

from __future__ import annotations


class TabXOError(Exception):
    """Base class for every error raised by tabxo."""


class IllegalMove(TabXOError, ValueError):
    """Cell occupied, index out of range, or the game is not accepting moves."""


class NotYourTurn(IllegalMove):
    """A remote-mode session tried to move for the opponent's mark."""


class RoomNotFound(TabXOError, LookupError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Room {code!r} not found")
        self.code = code


class RoomFull(TabXOError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Room {code!r} is full")
        self.code = code


class MalformedMessage(TabXOError, ValueError):
    """A store payload could not be decoded for the channel it was read from."""


class StaleMessage(TabXOError):
    """A message is not newer than the last one applied from the peer."""

    def __init__(self, ts: float, watermark: float) -> None:
        super().__init__(f"Message at {ts} is not newer than {watermark}")
        self.ts = ts
        self.watermark = watermark
