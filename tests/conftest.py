import os
import sys
from datetime import date, timedelta
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from marketplace.core.rate_limiter import rate_limiter
from marketplace.db.base import Base
from marketplace.db.models import Skill, TutorSkill, User  # noqa: F401
from marketplace.db.session import get_db
from marketplace.main import app

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "StrongPass123"


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def register_and_login(client):
    """Register a user with a profile and return (auth headers, profile json)."""

    def _register_and_login(email: str, user_type: str = "learner", first_name: str = "Test", last_name: str = "User"):
        register_response = client.post(
            "/auth/register",
            json={
                "email": email,
                "password": PASSWORD,
                "user_type": user_type,
                "first_name": first_name,
                "last_name": last_name,
            },
        )
        assert register_response.status_code == 201, register_response.text

        login_response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert login_response.status_code == 200
        headers = {"Authorization": f"Bearer {login_response.json()['access_token']}"}

        profile = client.get("/profiles/me", headers=headers)
        assert profile.status_code == 200
        return headers, profile.json()

    return _register_and_login


@pytest.fixture()
def create_skill():
    def _create_skill(name: str, category: str | None = None) -> int:
        session = TestingSessionLocal()
        try:
            skill = Skill(name=name, category=category)
            session.add(skill)
            session.commit()
            return skill.id
        finally:
            session.close()

    return _create_skill


@pytest.fixture()
def make_admin():
    def _make_admin(email: str) -> None:
        session = TestingSessionLocal()
        try:
            user = session.query(User).filter(User.email == email).one()
            user.role = "admin"
            session.commit()
        finally:
            session.close()

    return _make_admin


@pytest.fixture()
def booked_lesson(client, register_and_login, create_skill):
    """Tutor offering Math at 120/h and a pending two-hour online lesson a week out."""
    tutor_headers, tutor = register_and_login("tutor@example.com", "tutor", "Ann", "Smith")
    learner_headers, learner = register_and_login("learner@example.com", "learner", "Lee", "Park")
    skill_id = create_skill("Math", "Science")

    offering = client.post(
        "/tutors/me/skills",
        headers=tutor_headers,
        json={"skill_id": skill_id, "hourly_rate": "120"},
    )
    assert offering.status_code == 201, offering.text

    booking = client.post(
        "/bookings",
        headers=learner_headers,
        json={
            "tutor_id": tutor["id"],
            "skill_id": skill_id,
            "lesson_date": (date.today() + timedelta(days=7)).isoformat(),
            "start_time": "14:00",
            "duration_hours": 2,
            "lesson_type": "online",
        },
    )
    assert booking.status_code == 201, booking.text

    return {
        "tutor_headers": tutor_headers,
        "learner_headers": learner_headers,
        "tutor": tutor,
        "learner": learner,
        "skill_id": skill_id,
        "booking": booking.json(),
    }
