from collections.abc import Iterator
from typing import Optional

import pytest

from app import create_app
from config.settings import get_settings
from models import init_db, store_session


class FakeGradingClient:
    """Records every prompt and replays a canned completion."""

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.max_output_tokens: list[int] = []
        self.response = '{"status": "Correct"}'
        self.error: Optional[BaseException] = None

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def complete(self, prompt: str, *, max_output_tokens: int) -> str:
        self.prompts.append(prompt)
        self.max_output_tokens.append(max_output_tokens)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'quizmark_test.sqlite'}")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    for name in (
        "DATABASE_SSLMODE",
        "OPENAI_BASE_URL",
        "GRADING_MODEL",
        "GRADING_MAX_OUTPUT_TOKENS",
        "DB_CLOSE_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    return get_settings()


@pytest.fixture()
def fake_grader() -> FakeGradingClient:
    return FakeGradingClient()


@pytest.fixture()
def app(settings, fake_grader):
    application = create_app(settings, grading_client=fake_grader)
    application.config.update(TESTING=True)

    yield application


@pytest.fixture()
def client(app) -> Iterator:
    with app.test_client() as client:
        yield client


@pytest.fixture()
def store(settings):
    with store_session(settings) as session:
        init_db(session)
        yield session
