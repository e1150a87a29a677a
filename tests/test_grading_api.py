from __future__ import annotations

from dataclasses import replace

import pytest

from app import create_app
from app.repositories import progress_repo
from app.services.ai_client import GradingServiceError, GradingTransportError
from app.services.grading import build_grading_prompt, coerce_item_id
from app.services.verdict_parser import FALLBACK_HINT
from store_helpers import count_progress_records, get_progress_record


def _total_progress_rows(store) -> int:
    row = store.fetchone("SELECT COUNT(*) AS total FROM progress")
    return int(row["total"])


def test_correct_answer_returns_exact_body(client, fake_grader):
    response = client.post(
        "/api/grade",
        json={"question": "What is a Python list?", "answer": "An ordered, mutable sequence."},
    )

    assert response.status_code == 200
    assert response.get_json() == {"status": "Correct"}
    assert fake_grader.calls == 1
    assert fake_grader.max_output_tokens == [150]


def test_prompt_embeds_question_and_answer_verbatim(client, fake_grader):
    client.post(
        "/api/grade",
        json={"question": "Define {recursion}?", "answer": "  A function calling itself. "},
    )

    prompt = fake_grader.prompts[0]
    assert "Question: Define {recursion}?" in prompt
    assert "Student's Answer:   A function calling itself. " in prompt
    assert prompt == build_grading_prompt("Define {recursion}?", "  A function calling itself. ")


def test_prompt_describes_both_response_shapes():
    prompt = build_grading_prompt("Q", "A")

    assert '{"status": "Correct"}' in prompt
    assert '"status": "Incorrect", "hint"' in prompt
    assert "max 20 words" in prompt
    assert "grammar" in prompt


def test_incorrect_answer_returns_hint(client, fake_grader, store):
    fake_grader.response = '{"status": "Incorrect", "hint": "Lists are mutable."}'

    response = client.post(
        "/api/grade",
        json={"question": "Are lists immutable?", "answer": "Yes", "username": "ada", "questionId": 2},
    )

    assert response.status_code == 200
    assert response.get_json() == {"status": "Incorrect", "hint": "Lists are mutable."}
    assert _total_progress_rows(store) == 0


def test_unparseable_answer_falls_back_to_generic_hint(client, fake_grader):
    fake_grader.response = "Sorry, I cannot help with that."

    response = client.post("/api/grade", json={"question": "Q?", "answer": "A."})

    assert response.status_code == 200
    assert response.get_json() == {"status": "Incorrect", "hint": FALLBACK_HINT}


def test_correct_answer_records_progress(client, store):
    response = client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 3},
    )

    assert response.status_code == 200
    record = get_progress_record(store, "ada", 3)
    assert record is not None
    assert record["completed_at"] is not None


def test_repeated_correct_answer_keeps_single_row(client, store):
    payload = {"question": "Q?", "answer": "A.", "username": "ada", "questionId": 3}

    client.post("/api/grade", json=payload)
    client.post("/api/grade", json=payload)

    assert count_progress_records(store, "ada") == 1


def test_string_question_id_is_accepted(client, store):
    client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": "7"},
    )

    assert get_progress_record(store, "ada", 7) is not None


def test_question_id_zero_is_persisted(client, store):
    client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 0},
    )

    assert get_progress_record(store, "ada", 0) is not None


@pytest.mark.parametrize(
    "extra",
    [
        {"username": "ada"},
        {"questionId": 4},
        {"username": "", "questionId": 4},
        {"username": "ada", "questionId": None},
        {"username": "ada", "questionId": "not-a-number"},
        {"username": "ada", "questionId": 2.5},
    ],
)
def test_correct_without_both_keys_skips_write(client, store, extra):
    payload = {"question": "Q?", "answer": "A."}
    payload.update(extra)

    response = client.post("/api/grade", json=payload)

    assert response.status_code == 200
    assert response.get_json() == {"status": "Correct"}
    assert _total_progress_rows(store) == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"answer": "A."},
        {"question": "Q?"},
        {"question": "", "answer": "A."},
        {"question": None, "answer": "A."},
        {"question": "Q?", "answer": None},
        {},
    ],
)
def test_missing_question_or_answer_is_rejected_without_ai_call(client, fake_grader, payload):
    response = client.post("/api/grade", json=payload)

    assert response.status_code == 400
    assert response.get_json() == {"error": "Missing question or answer"}
    assert fake_grader.calls == 0


def test_whitespace_answer_is_graded(client, fake_grader):
    fake_grader.response = '{"status": "Incorrect", "hint": "Write an answer."}'

    response = client.post("/api/grade", json={"question": "Q?", "answer": "   "})

    assert response.status_code == 200
    assert response.get_json() == {"status": "Incorrect", "hint": "Write an answer."}
    assert fake_grader.calls == 1


def test_scalar_question_and_answer_are_coerced_to_text(client, fake_grader):
    response = client.post("/api/grade", json={"question": 12, "answer": 3.5})

    assert response.status_code == 200
    prompt = fake_grader.prompts[0]
    assert "Question: 12" in prompt
    assert "Student's Answer: 3.5" in prompt


def test_numeric_username_records_progress(client, store):
    response = client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": 42, "questionId": 5},
    )

    assert response.status_code == 200
    assert get_progress_record(store, "42", 5) is not None


def test_invalid_json_is_rejected(client, fake_grader):
    response = client.post("/api/grade", data="{not json", content_type="application/json")

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON"}
    assert fake_grader.calls == 0


def test_grade_rejects_get(client, fake_grader):
    response = client.get("/api/grade")

    assert response.status_code == 405
    assert response.get_json() == {"error": "Method not allowed"}
    assert fake_grader.calls == 0


@pytest.mark.error
def test_upstream_error_returns_502(client, fake_grader, store):
    fake_grader.error = GradingServiceError("OpenAI returned status 503.", status_code=503)

    response = client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 1},
    )

    assert response.status_code == 502
    assert response.get_json() == {"error": "AI service error"}
    assert _total_progress_rows(store) == 0


@pytest.mark.error
def test_transport_error_returns_500(client, fake_grader):
    fake_grader.error = GradingTransportError("OpenAI request failed.")

    response = client.post("/api/grade", json={"question": "Q?", "answer": "A."})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error during grading"}


@pytest.mark.error
def test_missing_api_key_returns_500(settings):
    application = create_app(replace(settings, OPENAI_API_KEY=None))

    with application.test_client() as client:
        response = client.post("/api/grade", json={"question": "Q?", "answer": "A."})

    assert response.status_code == 500
    assert response.get_json() == {"error": "OPENAI_API_KEY is not configured."}


@pytest.mark.error
def test_missing_api_key_still_validates_first(settings):
    application = create_app(replace(settings, OPENAI_API_KEY=None))

    with application.test_client() as client:
        response = client.post("/api/grade", json={"question": "Q?"})

    assert response.status_code == 400


@pytest.mark.error
def test_unreachable_store_does_not_change_verdict(settings, fake_grader, tmp_path):
    broken = replace(
        settings,
        DATABASE_URL=f"sqlite:///{tmp_path / 'missing' / 'nested' / 'db.sqlite'}",
    )
    application = create_app(broken, grading_client=fake_grader)

    with application.test_client() as client:
        response = client.post(
            "/api/grade",
            json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 1},
        )

    assert response.status_code == 200
    assert response.get_json() == {"status": "Correct"}


@pytest.mark.error
def test_unconfigured_store_does_not_change_verdict(settings, fake_grader):
    application = create_app(replace(settings, DATABASE_URL=None), grading_client=fake_grader)

    with application.test_client() as client:
        response = client.post(
            "/api/grade",
            json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 1},
        )

    assert response.status_code == 200
    assert response.get_json() == {"status": "Correct"}


@pytest.mark.error
def test_failed_progress_write_is_swallowed(client, monkeypatch):
    calls = []

    def failing_record_completion(settings, username, item_id, completed_at=None):
        calls.append((username, item_id))
        raise RuntimeError("connection reset")

    monkeypatch.setattr(progress_repo, "record_completion", failing_record_completion)

    response = client.post(
        "/api/grade",
        json={"question": "Q?", "answer": "A.", "username": "ada", "questionId": 9},
    )

    assert response.status_code == 200
    assert response.get_json() == {"status": "Correct"}
    assert calls == [("ada", 9)]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (5, 5),
        ("12", 12),
        (" 8 ", 8),
        (3.0, 3),
        (3.5, None),
        (True, None),
        ("abc", None),
        (None, None),
        ([1], None),
    ],
)
def test_coerce_item_id(raw, expected):
    assert coerce_item_id(raw) == expected
