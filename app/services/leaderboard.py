from __future__ import annotations

from app.repositories import leaderboard_repo
from config.settings import Settings

from .store_errors import translate_store_errors


def build_leaderboard(settings: Settings) -> list[dict[str, object]]:
    """Return every account ranked by completed questions."""
    with translate_store_errors("Could not load leaderboard"):
        rows = leaderboard_repo.fetch_leaderboard(settings)

    return [
        {
            "username": row["username"],
            "firstName": row["first_name"],
            "lastName": row["last_name"],
            "done": int(row["questions_done"] or 0),
        }
        for row in rows
    ]
