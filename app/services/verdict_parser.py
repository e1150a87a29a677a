"""Turn raw model output into a grading verdict.

Decoding happens in two stages. The cleaned text is first decoded as a strict
JSON object with a ``status`` of ``Correct`` or ``Incorrect``. When that fails
a keyword heuristic decides, so parsing always yields a verdict.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

STATUS_CORRECT = "Correct"
STATUS_INCORRECT = "Incorrect"
FALLBACK_HINT = "Review the concept and try again."

_FENCE_PATTERN = re.compile(r"```json|```", re.IGNORECASE)
# Quoted so that the token inside "incorrect" does not match.
_CORRECT_TOKEN = '"correct"'


@dataclass(frozen=True)
class GradingVerdict:
    status: str
    hint: Optional[str] = None

    @property
    def is_correct(self) -> bool:
        return self.status == STATUS_CORRECT

    @classmethod
    def correct(cls) -> "GradingVerdict":
        return cls(status=STATUS_CORRECT)

    @classmethod
    def incorrect(cls, hint: Optional[str] = None) -> "GradingVerdict":
        cleaned = (hint or "").strip()
        return cls(status=STATUS_INCORRECT, hint=cleaned or FALLBACK_HINT)

    def to_dict(self) -> dict[str, str]:
        if self.is_correct:
            return {"status": STATUS_CORRECT}
        return {"status": STATUS_INCORRECT, "hint": self.hint or FALLBACK_HINT}


def strip_code_fences(raw: str) -> str:
    return _FENCE_PATTERN.sub("", raw).strip()


def _decode_strict(cleaned: str) -> Optional[GradingVerdict]:
    try:
        payload = json.loads(cleaned)
    except (ValueError, RecursionError):
        return None

    if not isinstance(payload, dict):
        return None

    status = payload.get("status")
    if not isinstance(status, str):
        return None

    normalized = status.strip().lower()
    if normalized == STATUS_CORRECT.lower():
        return GradingVerdict.correct()
    if normalized == STATUS_INCORRECT.lower():
        hint = payload.get("hint")
        return GradingVerdict.incorrect(hint if isinstance(hint, str) else None)
    return None


def _decode_heuristic(raw: str) -> GradingVerdict:
    if _CORRECT_TOKEN in raw.lower():
        return GradingVerdict.correct()
    return GradingVerdict.incorrect(FALLBACK_HINT)


def parse_verdict(raw: object) -> GradingVerdict:
    """Parse model output into a verdict. Never raises."""
    text = raw.strip() if isinstance(raw, str) else ""

    verdict = _decode_strict(strip_code_fences(text))
    if verdict is not None:
        return verdict

    logger.error(f"Failed to parse AI response, using keyword fallback: {text!r}")
    return _decode_heuristic(text)
