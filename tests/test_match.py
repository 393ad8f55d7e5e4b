"""Tests for scorekeeping and first-to-five match rules."""

import pytest

from tabxo.errors import IllegalMove
from tabxo.game import EMPTY, O, X, empty_board
from tabxo.match import MatchController

TOP_ROW_FOR_X = [0, 3, 1, 4, 2]


def win_for_x(controller):
    result = None
    for index in TOP_ROW_FOR_X:
        result = controller.play(index)
    return result


def test_play_alternates_marks():
    controller = MatchController()
    controller.play(0)
    assert controller.board[0] == X
    assert controller.current_player == O
    controller.play(4)
    assert controller.board[4] == O
    assert controller.current_player == X


def test_win_increments_score_and_ends_game():
    scores = []
    controller = MatchController(on_score_changed=lambda mark, score: scores.append((mark, score)))
    result = win_for_x(controller)
    assert result.winner == X
    assert controller.scores == {X: 1, O: 0}
    assert scores == [(X, 1)]
    assert not controller.game_active
    with pytest.raises(IllegalMove):
        controller.play(8)


def test_draw_leaves_scores_unchanged():
    controller = MatchController()
    for index in [0, 1, 2, 4, 3, 5, 7, 6, 8]:
        result = controller.play(index)
    assert result.is_draw
    assert controller.scores == {X: 0, O: 0}
    assert not controller.game_active


def test_new_game_clears_board_and_keeps_scores():
    controller = MatchController()
    win_for_x(controller)
    assert controller.new_game() is True
    assert controller.board == empty_board()
    assert controller.current_player == X
    assert controller.game_active
    assert controller.scores[X] == 1


def test_five_wins_end_the_match():
    winners = []
    controller = MatchController(winning_score=5, on_match_won=winners.append)
    for game in range(5):
        win_for_x(controller)
        if game < 4:
            assert controller.new_game()
    assert controller.scores[X] == 5
    assert controller.match_active is False
    assert winners == [X]

    board_before = controller.board
    assert controller.new_game() is False
    assert controller.board == board_before


def test_record_win_is_ignored_after_match_ends():
    controller = MatchController(winning_score=1)
    assert controller.record_win(O) is True
    assert controller.record_win(O) is False
    assert controller.record_win(X) is False
    assert controller.scores == {X: 0, O: 1}


def test_new_match_resets_scores_and_reactivates():
    controller = MatchController(winning_score=1)
    win_for_x(controller)
    assert not controller.match_active
    controller.new_match()
    assert controller.match_active
    assert controller.scores == {X: 0, O: 0}
    assert controller.board == empty_board()


def test_sync_matches_local_pipeline():
    local = MatchController()
    remote = MatchController()
    for index in TOP_ROW_FOR_X:
        mark = local.current_player
        local.play(index)
        remote.sync(index, mark, local.board)
    assert remote.board == local.board
    assert remote.result == local.result
    assert remote.scores == local.scores


def test_sync_adopts_snapshot_after_missed_moves():
    controller = MatchController()
    snapshot = (X, EMPTY, EMPTY, EMPTY, O, EMPTY, EMPTY, EMPTY, X)
    # Only the last of three moves reaches us
    result = controller.sync(8, X, snapshot)
    assert controller.board == snapshot
    assert not result.is_over
    assert controller.current_player == O
