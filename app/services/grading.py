from __future__ import annotations

import logging
from typing import Optional

from app.errors import ConfigurationError, InternalError, InvalidRequest, UpstreamServiceError
from app.repositories import progress_repo
from config.settings import Settings

from .ai_client import (
    GradingClient,
    GradingClientConfigurationError,
    GradingServiceError,
    GradingTransportError,
)
from .verdict_parser import GradingVerdict, parse_verdict

logger = logging.getLogger(__name__)


def build_grading_prompt(question: str, answer: str) -> str:
    """Return the examiner prompt with the question and answer embedded verbatim."""
    return f"""You are a strict but fair computer programming examiner grading a student's answer.

Question: {question}

Student's Answer: {answer}

Grade this answer. Respond ONLY with a valid JSON object in exactly this format:
- If the answer is correct or substantially correct: {{"status": "Correct"}}
- If the answer is wrong or incomplete: {{"status": "Incorrect", "hint": "One short, helpful hint to guide the student (max 20 words)"}}

Be strict: vague or incomplete answers should be marked Incorrect. But do not penalise for minor grammar or formatting issues. Focus on conceptual correctness.
Respond with JSON only. No extra text."""


def coerce_item_id(value: object) -> Optional[int]:
    """Return ``value`` as an integer item id, or None when it is not integral."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _record_completion(settings: Settings, username: Optional[str], raw_item_id: object) -> None:
    if not username or raw_item_id is None:
        logger.warning("Answer is Correct but username/questionId missing; skipping DB write")
        return

    item_id = coerce_item_id(raw_item_id)
    if item_id is None:
        logger.warning(
            f"Answer is Correct but questionId={raw_item_id!r} is not an integer; "
            f"skipping DB write for username={username!r}"
        )
        return

    try:
        progress_repo.record_completion(settings, username, item_id)
    except Exception as exc:
        # Storage failures never change the grading response.
        logger.error(
            f"Database error (non-fatal) saving username={username!r} "
            f"question_id={item_id}: {exc}",
            exc_info=True,
        )
        return

    logger.info(f'Saved: username="{username}" question_id={item_id}')


def grade_submission(
    *,
    question: Optional[str],
    answer: Optional[str],
    username: Optional[str],
    item_id: object,
    client: GradingClient,
    settings: Settings,
) -> GradingVerdict:
    """
    Grade a free-text answer and record the completion when it is correct.

    Args:
        question: Question shown to the student.
        answer: Student's free-text answer.
        username: Optional user to credit with the completion.
        item_id: Optional question identifier to credit.
        client: AI grading client used for the single completion call.
        settings: Process-wide configuration.

    Raises:
        InvalidRequest: question or answer is missing; no AI call is made.
        ConfigurationError: the AI credential is not configured.
        UpstreamServiceError: the AI provider answered with an error status.
        InternalError: the AI provider could not be reached.
    """
    if not question or not answer:
        raise InvalidRequest("Missing question or answer")

    prompt = build_grading_prompt(question, answer)
    try:
        raw = client.complete(prompt, max_output_tokens=settings.GRADING_MAX_OUTPUT_TOKENS)
    except GradingClientConfigurationError as exc:
        logger.error(f"AI client is not configured: {exc}")
        raise ConfigurationError(str(exc)) from exc
    except GradingServiceError as exc:
        logger.error(
            f"AI service error (status={exc.status_code}) grading for "
            f"username={username!r} question_id={item_id!r}: {exc}"
        )
        raise UpstreamServiceError("AI service error") from exc
    except GradingTransportError as exc:
        logger.error(
            f"AI request failed grading for username={username!r} question_id={item_id!r}",
            exc_info=True,
        )
        raise InternalError("Internal server error during grading") from exc

    verdict = parse_verdict(raw)
    if verdict.is_correct:
        _record_completion(settings, username, item_id)
    return verdict
