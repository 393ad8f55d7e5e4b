"""tabxo: two-player tic-tac-toe with scorekeeping and same-device cross-tab play."""

from .game import GameResult, apply_move, evaluate
from .match import MatchController
from .session import SessionListener, SessionOrchestrator
from .store import SharedStorage

__all__ = [
    "GameResult",
    "MatchController",
    "SessionListener",
    "SessionOrchestrator",
    "SharedStorage",
    "apply_move",
    "evaluate",
]
