from __future__ import annotations

import logging

import pytest


def _payload(**overrides) -> dict:
    body = {
        "timestamp": "2025-01-01T12:34:56Z",
        "messageId": "msg-1735734896000",
        "feedback": "positive",
        "message": "Paris is the capital of France.",
    }
    body.update(overrides)
    return body


def test_create_feedback_saves_and_counts(client) -> None:
    r = client.post("/api/feedback", json=_payload())
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Feedback saved successfully"}

    client.post("/api/feedback", json=_payload(messageId="msg-2", feedback="negative"))
    client.post("/api/feedback", json=_payload(messageId="msg-3", message=None))

    r = client.get("/api/feedback/summary")
    assert r.status_code == 200
    assert r.json() == {"positive": 2, "negative": 1, "total": 3}


def test_feedback_summary_is_empty_by_default(client) -> None:
    r = client.get("/api/feedback/summary")
    assert r.json() == {"positive": 0, "negative": 0, "total": 0}


@pytest.mark.parametrize("missing", ["timestamp", "messageId", "feedback"])
def test_missing_field_returns_400(client, missing: str) -> None:
    body = _payload()
    body.pop(missing)

    r = client.post("/api/feedback", json=body)

    assert r.status_code == 400
    assert r.json() == {"error": "Missing required fields"}


def test_unknown_rating_returns_400(client) -> None:
    r = client.post("/api/feedback", json=_payload(feedback="meh"))

    assert r.status_code == 400
    assert r.json() == {"error": "Invalid feedback type"}


def test_malformed_timestamp_returns_400(client) -> None:
    r = client.post("/api/feedback", json=_payload(timestamp="yesterday"))

    assert r.status_code == 400
    assert r.json() == {"error": "Invalid feedback payload"}


def test_non_json_body_returns_400(client) -> None:
    r = client.post(
        "/api/feedback",
        content=b"messageId=1&feedback=positive",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert r.status_code == 400
    assert r.json() == {"error": "Request body must be JSON"}


def test_rejected_feedback_is_not_stored(client) -> None:
    client.post("/api/feedback", json=_payload(feedback="meh"))

    assert client.get("/api/feedback/summary").json()["total"] == 0


def test_saved_feedback_logs_the_rating_field(client, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="llm_gateway.feedback")

    client.post("/api/feedback", json=_payload(feedback="negative"))

    record = next(r for r in caplog.records if r.getMessage() == "Feedback saved")
    assert record.rating == "negative"
    assert not hasattr(record, "category")
