from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.core.config import settings
from marketplace.core.rate_limiter import rate_limiter
from marketplace.core.security import create_access_token
from marketplace.db.session import get_db
from marketplace.main import app


def test_error_response_has_unified_shape(client):
    response = client.get("/profiles/me")
    assert response.status_code == 401
    body = response.json()
    assert "error" in body
    assert "code" in body["error"]
    assert "message" in body["error"]
    assert "detail" in body
    assert "request_id" in body


def test_validation_error_has_unified_shape(client):
    response = client.post("/auth/login", json={"email": "not-an-email"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "validation_error"
    assert isinstance(body["detail"], list)


def test_health_endpoint_returns_ok_and_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["x-request-id"] == "trace-123"


def test_metrics_endpoint_returns_prometheus_text(client, booked_lesson):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers.get("content-type", "")
    body = response.text
    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert 'marketplace_events_total{event="booking_created"}' in body


def _break_storage(tmp_path) -> None:
    broken_engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    BrokenSession = sessionmaker(bind=broken_engine)

    def override_get_db():
        db = BrokenSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db


def test_storage_failure_returns_503(client, tmp_path):
    _break_storage(tmp_path)

    response = client.get("/skills")

    assert response.status_code == 503
    body = response.json()
    assert body["error"]["code"] == "storage_unavailable"
    assert body["error"]["message"] == "Something went wrong. Please try again."


def test_storage_errors_are_labelled_by_route_template(client, tmp_path):
    _break_storage(tmp_path)
    headers = {"Authorization": f"Bearer {create_access_token(user_id=1, role='learner')}"}

    for booking_id in (41, 42, 43):
        assert client.get(f"/bookings/{booking_id}", headers=headers).status_code == 503

    body = client.get("/metrics").text
    assert 'marketplace_storage_errors_total{path="/bookings/{booking_id}"}' in body
    assert 'path="/bookings/42"' not in body


def test_register_rate_limit_returns_429(client):
    original_limit = settings.auth_register_max_attempts
    original_window = settings.auth_rate_limit_window_seconds
    settings.auth_register_max_attempts = 2
    settings.auth_rate_limit_window_seconds = 60
    rate_limiter.reset()
    try:
        responses = [
            client.post(
                "/auth/register",
                json={
                    "email": f"limit{index}@example.com",
                    "password": "StrongPass123",
                    "first_name": "Limit",
                    "last_name": "Tester",
                },
            )
            for index in range(3)
        ]

        assert [response.status_code for response in responses] == [201, 201, 429]
        assert responses[2].json()["error"]["code"] == "http_429"
        assert responses[2].headers.get("Retry-After")
    finally:
        settings.auth_register_max_attempts = original_limit
        settings.auth_rate_limit_window_seconds = original_window
        rate_limiter.reset()


def test_login_rate_limit_returns_429(client, register_and_login):
    original_limit = settings.auth_login_max_attempts
    settings.auth_login_max_attempts = 2
    rate_limiter.reset()
    try:
        register_and_login("loglimit@example.com")
        rate_limiter.reset()

        attempts = [
            client.post("/auth/login", json={"email": "loglimit@example.com", "password": "WrongPass123"})
            for _ in range(3)
        ]

        assert [response.status_code for response in attempts] == [401, 401, 429]
    finally:
        settings.auth_login_max_attempts = original_limit
        rate_limiter.reset()
