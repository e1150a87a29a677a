"""Service layer for grading, accounts, and the leaderboard."""

from . import accounts, ai_client, grading, leaderboard, verdict_parser

__all__ = [
    "accounts",
    "ai_client",
    "grading",
    "leaderboard",
    "verdict_parser",
]
