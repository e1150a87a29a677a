from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from app.errors import ConfigurationError, InternalError
from models import STORE_ERRORS, DatabaseConfigurationError

logger = logging.getLogger(__name__)


@contextmanager
def translate_store_errors(message: str, **context: object) -> Iterator[None]:
    """Report store failures inside the block as ``message`` with a 500 status."""
    try:
        yield
    except DatabaseConfigurationError as exc:
        logger.error(f"{message}: {exc}")
        raise ConfigurationError(str(exc)) from exc
    except STORE_ERRORS as exc:
        details = "".join(f" {key}={value!r}" for key, value in context.items())
        logger.error(f"{message}{details}: {exc}", exc_info=True)
        raise InternalError(message) from exc
