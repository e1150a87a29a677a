"""Read-only store queries used by the test suite to inspect persisted rows."""

from __future__ import annotations

import datetime
from typing import Optional

from models import StoreSession


def count_accounts(session: StoreSession) -> int:
    row = session.fetchone("SELECT COUNT(*) AS total FROM accounts", ())
    return int(row["total"]) if row else 0


def get_progress_record(
    session: StoreSession, username: str, item_id: int
) -> Optional[dict[str, object]]:
    row = session.fetchone(
        """
        SELECT username, item_id, completed_at
        FROM progress
        WHERE username = %s AND item_id = %s;
        """,
        (username, item_id),
    )
    if row is None:
        return None
    # sqlite hands timestamps back as ISO text.
    if isinstance(row.get("completed_at"), str):
        row["completed_at"] = datetime.datetime.fromisoformat(row["completed_at"])
    return row


def count_progress_records(session: StoreSession, username: str) -> int:
    row = session.fetchone(
        "SELECT COUNT(*) AS total FROM progress WHERE username = %s",
        (username,),
    )
    return int(row["total"]) if row else 0
