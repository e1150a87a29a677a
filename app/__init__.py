from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, json, jsonify, request
from werkzeug.exceptions import HTTPException

from config.settings import Settings, get_settings
from models import init_db, mask_database_url, store_session

from .errors import ApiError, InternalError, MethodNotAllowed
from .services.ai_client import GradingClient, OpenAIGradingClient

logger = logging.getLogger(__name__)

_ENV_LOADED = False


def _ensure_env_loaded() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    base_dir = Path(__file__).resolve().parent.parent
    env_path = base_dir / ".env"
    if env_path.exists():
        # Variables already present in the process environment take precedence.
        load_dotenv(env_path)
    else:
        load_dotenv()

    _ENV_LOADED = True


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 405:
            body = MethodNotAllowed("Method not allowed").to_dict()
        else:
            body = {"error": exc.name}
        # Keep werkzeug's headers (e.g. Allow on 405) and swap in a JSON body.
        response = exc.get_response()
        response.set_data(json.dumps(body))
        response.content_type = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.path}: {exc}",
            exc_info=True,
        )
        error = InternalError("Internal server error")
        return jsonify(error.to_dict()), error.status_code


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Create the accounts and progress tables."""
        settings: Settings = app.config["SETTINGS"]
        with store_session(settings) as session:
            init_db(session)
        click.echo(f"Database initialized ({mask_database_url(settings.DATABASE_URL)}).")


def create_app(
    settings: Optional[Settings] = None,
    grading_client: Optional[GradingClient] = None,
) -> Flask:
    """
    Build the QuizMark application.

    Args:
        settings: Configuration to use; read from the environment when omitted.
        grading_client: AI client used by the grading route; defaults to the
            OpenAI-backed client.
    """
    _ensure_env_loaded()
    if settings is None:
        settings = get_settings()
    _configure_logging(settings)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config["SETTINGS"] = settings
    app.extensions["grading_client"] = grading_client or OpenAIGradingClient(settings)

    _register_error_handlers(app)
    _register_cli(app)

    from .routes import bp as core_bp

    app.register_blueprint(core_bp)

    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL not set; progress, accounts and leaderboard are unavailable")
    if not settings.OPENAI_API_KEY and grading_client is None:
        logger.warning("OPENAI_API_KEY not set; grading requests will fail")
    logger.info(
        f"QuizMark configured (database={mask_database_url(settings.DATABASE_URL)}, "
        f"model={settings.GRADING_MODEL})"
    )
    return app
