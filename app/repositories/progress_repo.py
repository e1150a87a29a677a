from __future__ import annotations

import datetime
from typing import Optional

from config.settings import Settings
from models import ensure_progress_table, store_session, upsert_progress


def record_completion(
    settings: Settings,
    username: str,
    item_id: int,
    completed_at: Optional[datetime.datetime] = None,
) -> None:
    """Mark ``item_id`` as completed by ``username``, refreshing any existing row."""
    with store_session(settings) as session:
        ensure_progress_table(session)
        upsert_progress(
            session,
            username=username,
            item_id=item_id,
            completed_at=completed_at,
        )
