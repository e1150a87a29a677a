from __future__ import annotations

from config.settings import Settings
from models import init_db, list_leaderboard, store_session


def fetch_leaderboard(settings: Settings) -> list[dict[str, object]]:
    """Return per-account completion counts, best first."""
    with store_session(settings) as session:
        init_db(session)
        return list_leaderboard(session)
