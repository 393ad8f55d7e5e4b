"""Score keeping and first-to-N match semantics on top of the board engine."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Sequence

from .errors import IllegalMove
from .game import (
    MARKS,
    X,
    Board,
    GameResult,
    Mark,
    apply_move,
    empty_board,
    evaluate,
    other,
)

logger = logging.getLogger(__name__)

ScoreHook = Callable[[Mark, int], None]
MatchWonHook = Callable[[Mark], None]


class MatchController:
    """Board, turn and score state for one match.

    Local and remote moves go through the same ``_settle`` pipeline so both
    peers derive identical results from identical move sequences.
    """

    def __init__(
        self,
        winning_score: int = 5,
        on_score_changed: Optional[ScoreHook] = None,
        on_match_won: Optional[MatchWonHook] = None,
    ) -> None:
        self.winning_score = winning_score
        self.on_score_changed = on_score_changed
        self.on_match_won = on_match_won
        self.scores: Dict[Mark, int] = {mark: 0 for mark in MARKS}
        self.match_active = True
        self.board: Board = empty_board()
        self.current_player: Mark = X
        self.game_active = True
        self.result: GameResult = evaluate(self.board)

    # ---- match lifecycle ----

    def record_win(self, mark: Mark) -> bool:
        """Credit ``mark`` with a won game. Returns True when this win ends the match."""
        if not self.match_active:
            return False
        self.scores[mark] += 1
        score = self.scores[mark]
        if self.on_score_changed:
            self.on_score_changed(mark, score)
        if score >= self.winning_score:
            self.match_active = False
            logger.info("Match won by %s with %d points", mark, score)
            if self.on_match_won:
                self.on_match_won(mark)
            return True
        return False

    def new_game(self) -> bool:
        if not self.match_active:
            return False
        self.board = empty_board()
        self.current_player = X
        self.game_active = True
        self.result = evaluate(self.board)
        return True

    def new_match(self) -> None:
        self.scores = {mark: 0 for mark in MARKS}
        self.match_active = True
        self.new_game()

    # ---- moves ----

    def play(self, index: int, mark: Optional[Mark] = None) -> GameResult:
        """Apply a move for ``mark`` (default: the mark to move) and settle the result."""
        if not self.game_active:
            raise IllegalMove("Game already finished")
        mark = mark or self.current_player
        board = apply_move(self.board, index, mark)
        return self._settle(board, mark)

    def sync(self, index: int, mark: Mark, snapshot: Sequence[str]) -> GameResult:
        """Apply a peer's move; adopt its snapshot when local history has gaps."""
        snapshot = tuple(snapshot)
        try:
            board = apply_move(self.board, index, mark)
        except IllegalMove:
            board = snapshot
        if board != snapshot:
            logger.debug("Local board diverged from peer snapshot, adopting snapshot")
            board = snapshot
        return self._settle(board, mark)

    def _settle(self, board: Board, mark: Mark) -> GameResult:
        self.board = board
        self.result = evaluate(board)
        if self.result.is_won:
            self.game_active = False
            self.record_win(self.result.winner)
        elif self.result.is_draw:
            self.game_active = False
        else:
            self.game_active = True
            self.current_player = other(mark)
        return self.result
