"""Database repository helpers for QuizMark."""

from .progress_repo import record_completion
from .accounts_repo import fetch_account, register_account
from .leaderboard_repo import fetch_leaderboard

__all__ = [
    "record_completion",
    "fetch_account",
    "register_account",
    "fetch_leaderboard",
]
