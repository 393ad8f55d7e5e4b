"""Core rules for 3x3 tic-tac-toe: move application and result evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional, Sequence, Tuple

from .errors import IllegalMove

Mark = str  # "X" or "O"
Board = Tuple[str, ...]

X: Mark = "X"
O: Mark = "O"
EMPTY = ""
MARKS: Tuple[Mark, Mark] = (X, O)
CELL_COUNT = 9

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    # Rows
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    # Columns
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    # Diagonals
    (0, 4, 8),
    (2, 4, 6),
)


class Outcome(StrEnum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAW = "draw"


@dataclass(frozen=True)
class GameResult:
    outcome: Outcome
    winner: Optional[Mark] = None
    line: Optional[Tuple[int, int, int]] = None

    @property
    def is_over(self) -> bool:
        return self.outcome is not Outcome.IN_PROGRESS

    @property
    def is_won(self) -> bool:
        return self.outcome is Outcome.WON

    @property
    def is_draw(self) -> bool:
        return self.outcome is Outcome.DRAW


IN_PROGRESS = GameResult(Outcome.IN_PROGRESS)
DRAW = GameResult(Outcome.DRAW)


def empty_board() -> Board:
    return (EMPTY,) * CELL_COUNT


def other(mark: Mark) -> Mark:
    return O if mark == X else X


def apply_move(board: Sequence[str], index: int, mark: Mark) -> Board:
    """Return a new board with ``mark`` placed at ``index``.

    Raises ``IllegalMove`` for an unknown mark, an index outside the grid or an
    occupied cell. The input board is left untouched.
    """
    if mark not in MARKS:
        raise IllegalMove(f"Unknown mark {mark!r}")
    if isinstance(index, bool) or not isinstance(index, int):
        raise IllegalMove(f"Cell index must be an integer, got {index!r}")
    if not 0 <= index < CELL_COUNT:
        raise IllegalMove(f"Cell index {index} is out of range")
    if board[index] != EMPTY:
        raise IllegalMove("Cell already occupied")
    cells = list(board)
    cells[index] = mark
    return tuple(cells)


def evaluate(board: Sequence[str]) -> GameResult:
    # First complete line in WINNING_LINES order wins
    for a, b, c in WINNING_LINES:
        v = board[a]
        if v != EMPTY and v == board[b] == board[c]:
            return GameResult(Outcome.WON, winner=v, line=(a, b, c))
    if all(cell != EMPTY for cell in board):
        return DRAW
    return IN_PROGRESS
