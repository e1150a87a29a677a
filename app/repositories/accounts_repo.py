from __future__ import annotations

from typing import Optional

from config.settings import Settings
from models import (
    Account,
    create_account,
    ensure_accounts_table,
    get_account,
    store_session,
)


def fetch_account(settings: Settings, username: str) -> Optional[Account]:
    """Return the stored account for ``username`` if it exists."""
    with store_session(settings) as session:
        ensure_accounts_table(session)
        return get_account(session, username)


def register_account(
    settings: Settings,
    *,
    username: str,
    first_name: str,
    last_name: str,
    password_hash: str,
) -> Optional[Account]:
    """Insert a new account, returning None when the username is taken."""
    with store_session(settings) as session:
        ensure_accounts_table(session)
        if get_account(session, username) is not None:
            return None
        return create_account(
            session,
            username=username,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
        )
