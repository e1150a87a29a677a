"""Signup and login for QuizMark accounts.

Passwords arrive already hashed by the client. The stored hash is compared
as an opaque value; the server never hashes anything itself.
"""

from __future__ import annotations

import hmac
import logging

from app.errors import Conflict, InvalidRequest, Unauthorized
from app.repositories import accounts_repo
from config.settings import Settings
from models import Account, DuplicateUsernameError

from .store_errors import translate_store_errors

logger = logging.getLogger(__name__)

USERNAME_NOT_FOUND = "Username not found. Check spelling or sign up."
INCORRECT_PASSWORD = "Incorrect password."


def _profile(account: Account) -> dict[str, object]:
    return {
        "success": True,
        "username": account.username,
        "firstName": account.first_name,
        "lastName": account.last_name,
    }


def _taken(username: str) -> Conflict:
    return Conflict(f'Username "{username}" is already taken.')


def sign_up(
    settings: Settings,
    *,
    username: str,
    first_name: str,
    last_name: str,
    password_hash: str,
) -> dict[str, object]:
    """Create an account and return its public profile."""
    if not (username and first_name and last_name and password_hash):
        raise InvalidRequest("Missing fields")

    try:
        with translate_store_errors("Server error during signup", username=username):
            account = accounts_repo.register_account(
                settings,
                username=username,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
            )
    except DuplicateUsernameError as exc:
        raise _taken(username) from exc

    if account is None:
        raise _taken(username)

    logger.info(f"Created account username={username!r}")
    return _profile(account)


def log_in(settings: Settings, *, username: str, password_hash: str) -> dict[str, object]:
    """Check credentials and return the stored profile."""
    if not (username and password_hash):
        raise InvalidRequest("Missing fields")

    with translate_store_errors("Server error during login", username=username):
        account = accounts_repo.fetch_account(settings, username)

    if account is None:
        raise Unauthorized(USERNAME_NOT_FOUND, reason="username_not_found")

    if not hmac.compare_digest(
        account.password_hash.encode("utf-8"),
        password_hash.encode("utf-8"),
    ):
        raise Unauthorized(INCORRECT_PASSWORD, reason="incorrect_password")

    return _profile(account)
