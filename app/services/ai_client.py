from __future__ import annotations

import logging
from typing import Optional, Protocol

import openai
from openai import OpenAI

from config.settings import Settings

logger = logging.getLogger(__name__)


class GradingClientConfigurationError(RuntimeError):
    """Raised when the AI client cannot be configured."""


class GradingServiceError(RuntimeError):
    """Raised when the AI provider answers with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GradingTransportError(RuntimeError):
    """Raised when the AI provider cannot be reached at all."""


class GradingClient(Protocol):
    """Prompt in, raw completion text out."""

    def complete(self, prompt: str, *, max_output_tokens: int) -> str:
        ...


class OpenAIGradingClient:
    """GradingClient backed by OpenAI chat completions."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client

        if not self._settings.OPENAI_API_KEY:
            raise GradingClientConfigurationError("OPENAI_API_KEY is not configured.")

        kwargs: dict[str, object] = {
            "api_key": self._settings.OPENAI_API_KEY,
            "timeout": self._settings.AI_TIMEOUT_SECONDS,
            # A failed grading call is reported once, never re-attempted.
            "max_retries": 0,
        }
        if self._settings.OPENAI_BASE_URL:
            kwargs["base_url"] = self._settings.OPENAI_BASE_URL
        self._client = OpenAI(**kwargs)
        return self._client

    def complete(self, prompt: str, *, max_output_tokens: int) -> str:
        """
        Send a single-message prompt and return the completion text.

        Args:
            prompt: Full grading prompt.
            max_output_tokens: Upper bound on generated tokens.

        Returns an empty string when the provider answers without content;
        callers are expected to tolerate malformed or empty output.
        """
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=self._settings.GRADING_MODEL,
                temperature=self._settings.GRADING_TEMPERATURE,
                max_tokens=max_output_tokens,
                response_format={"type": "json_object"},
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIStatusError as exc:
            raise GradingServiceError(
                f"OpenAI returned status {exc.status_code}.",
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            raise GradingTransportError("OpenAI request failed.") from exc

        if not completion.choices:
            logger.warning("OpenAI response contained no choices.")
            return ""

        message = completion.choices[0].message
        if not message or not message.content:
            logger.warning("OpenAI response message was empty.")
            return ""

        return message.content.strip()
