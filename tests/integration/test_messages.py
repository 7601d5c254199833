import asyncio

from sqlalchemy.exc import OperationalError

from marketplace.api.v1 import messages as messages_api
from marketplace.core.config import settings
from marketplace.core.rate_limiter import rate_limiter
from marketplace.services.message_service import message_broker


def _messages_url(booking_id: int) -> str:
    return f"/bookings/{booking_id}/messages"


def test_participants_exchange_messages_in_order(client, booked_lesson):
    url = _messages_url(booked_lesson["booking"]["id"])

    first = client.post(url, headers=booked_lesson["learner_headers"], json={"content": "  Hi, see you soon!  "})
    second = client.post(url, headers=booked_lesson["tutor_headers"], json={"content": "Bring your notes"})
    third = client.post(url, headers=booked_lesson["learner_headers"], json={"content": "Will do"})

    assert first.status_code == 201
    assert first.json()["content"] == "Hi, see you soon!"
    assert first.json()["sender_id"] == booked_lesson["learner"]["id"]
    assert second.json()["sender_id"] == booked_lesson["tutor"]["id"]

    listed = client.get(url, headers=booked_lesson["tutor_headers"]).json()
    assert [message["id"] for message in listed] == [first.json()["id"], second.json()["id"], third.json()["id"]]
    timestamps = [message["created_at"] for message in listed]
    assert timestamps == sorted(timestamps)


def test_message_content_is_validated(client, booked_lesson):
    url = _messages_url(booked_lesson["booking"]["id"])
    headers = booked_lesson["learner_headers"]

    blank = client.post(url, headers=headers, json={"content": "   "})
    too_long = client.post(url, headers=headers, json={"content": "x" * 1001})
    longest = client.post(url, headers=headers, json={"content": "x" * 1000})

    assert blank.status_code == 422
    assert too_long.status_code == 422
    assert longest.status_code == 201


def test_outsider_cannot_read_or_send(client, register_and_login, booked_lesson):
    url = _messages_url(booked_lesson["booking"]["id"])
    outsider_headers, _ = register_and_login("outsider@example.com")

    assert client.get(url, headers=outsider_headers).status_code == 403
    assert client.post(url, headers=outsider_headers, json={"content": "hello"}).status_code == 403


def test_closed_booking_does_not_accept_messages(client, booked_lesson):
    booking_id = booked_lesson["booking"]["id"]
    client.patch(
        f"/bookings/{booking_id}/status",
        headers=booked_lesson["tutor_headers"],
        json={"status": "cancelled"},
    )

    response = client.post(_messages_url(booking_id), headers=booked_lesson["learner_headers"], json={"content": "hi"})

    assert response.status_code == 409
    assert client.get(_messages_url(booking_id), headers=booked_lesson["learner_headers"]).json() == []


def test_messages_for_unknown_booking_return_404(client, booked_lesson):
    headers = booked_lesson["learner_headers"]

    assert client.get(_messages_url(9999), headers=headers).status_code == 404
    assert client.post(_messages_url(9999), headers=headers, json={"content": "hi"}).status_code == 404


def test_stream_rejects_outsiders_and_unknown_bookings(client, register_and_login, booked_lesson):
    outsider_headers, _ = register_and_login("outsider@example.com")
    stream_url = f"{_messages_url(booked_lesson['booking']['id'])}/stream"

    assert client.get(stream_url).status_code == 401
    assert client.get(stream_url, headers=outsider_headers).status_code == 403
    assert client.get(f"{_messages_url(9999)}/stream", headers=outsider_headers).status_code == 404


def test_stream_history_failure_releases_subscription(client, booked_lesson, monkeypatch):
    booking_id = booked_lesson["booking"]["id"]

    def failing_history(db, booking_id, limit=None, offset=0):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    monkeypatch.setattr(messages_api, "list_messages", failing_history)

    for _ in range(3):
        response = client.get(f"{_messages_url(booking_id)}/stream", headers=booked_lesson["learner_headers"])
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "storage_unavailable"

    assert message_broker.subscriber_count(booking_id) == 0


def test_stream_loads_history_off_the_event_loop(client, booked_lesson, monkeypatch):
    booking_id = booked_lesson["booking"]["id"]
    loop_running = []

    def recording_history(db, booking_id, limit=None, offset=0):
        try:
            asyncio.get_running_loop()
            loop_running.append(True)
        except RuntimeError:
            loop_running.append(False)
        raise OperationalError("SELECT 1", {}, Exception("stop before streaming"))

    monkeypatch.setattr(messages_api, "list_messages", recording_history)

    response = client.get(f"{_messages_url(booking_id)}/stream", headers=booked_lesson["learner_headers"])

    assert response.status_code == 503
    assert loop_running == [False]


def test_send_rate_limit_returns_429(client, booked_lesson):
    url = _messages_url(booked_lesson["booking"]["id"])
    headers = booked_lesson["learner_headers"]
    original_limit = settings.message_send_max_attempts
    settings.message_send_max_attempts = 2
    rate_limiter.reset()
    try:
        first = client.post(url, headers=headers, json={"content": "one"})
        second = client.post(url, headers=headers, json={"content": "two"})
        third = client.post(url, headers=headers, json={"content": "three"})

        assert first.status_code == 201
        assert second.status_code == 201
        assert third.status_code == 429
        assert third.headers.get("Retry-After")
    finally:
        settings.message_send_max_attempts = original_limit
        rate_limiter.reset()
