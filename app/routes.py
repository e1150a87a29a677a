from __future__ import annotations

from typing import Optional

from flask import Blueprint, current_app, json, jsonify, request

from app.errors import InvalidRequest
from app.services import accounts, grading, leaderboard
from app.services.ai_client import GradingClient
from config.settings import Settings

bp = Blueprint("core", __name__)


def _settings() -> Settings:
    return current_app.config["SETTINGS"]


def _grading_client() -> GradingClient:
    return current_app.extensions["grading_client"]


def _json_body() -> dict[str, object]:
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid JSON")
    return payload


def _text(payload: dict[str, object], key: str, *, strip: bool = True) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        return ""
    return value.strip() if strip else value


def _optional_text(payload: dict[str, object], key: str) -> Optional[str]:
    return _text(payload, key) or None


def _scalar_text(payload: dict[str, object], key: str) -> Optional[str]:
    """Return a scalar field as text, or None when it is absent, null, empty or nested."""
    value = payload.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    text = value if isinstance(value, str) else json.dumps(value)
    return text or None


@bp.get("/health")
def health():
    return jsonify({"status": "ok", "service": "quizmark"}), 200


@bp.post("/api/grade")
def api_grade():
    payload = _json_body()
    verdict = grading.grade_submission(
        question=_scalar_text(payload, "question"),
        answer=_scalar_text(payload, "answer"),
        username=_scalar_text(payload, "username"),
        item_id=payload.get("questionId"),
        client=_grading_client(),
        settings=_settings(),
    )
    return jsonify(verdict.to_dict())


@bp.get("/api/leaderboard")
def api_leaderboard():
    return jsonify(leaderboard.build_leaderboard(_settings()))


@bp.post("/api/signup")
def api_signup():
    payload = _json_body()
    profile = accounts.sign_up(
        _settings(),
        username=_text(payload, "username"),
        first_name=_text(payload, "firstName"),
        last_name=_text(payload, "lastName"),
        password_hash=_text(payload, "passwordHash", strip=False),
    )
    return jsonify(profile)


@bp.post("/api/login")
def api_login():
    payload = _json_body()
    profile = accounts.log_in(
        _settings(),
        username=_text(payload, "username"),
        password_hash=_text(payload, "passwordHash", strip=False),
    )
    return jsonify(profile)
