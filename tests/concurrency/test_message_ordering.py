from concurrent.futures import ThreadPoolExecutor
from datetime import date, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace.db.base import Base
from marketplace.db.models import Booking, Message, Profile, Skill, User
from marketplace.services import message_service
from marketplace.services.message_service import list_messages, send_message
from marketplace.services.realtime import MessageBroker


@pytest.mark.concurrent
def test_parallel_sends_are_stored_in_send_order(tmp_path):
    db_file = tmp_path / "messages.db"
    engine = create_engine(f"sqlite+pysqlite:///{db_file}", connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    seed_session = SessionLocal()
    tutor_user = User(email="race-tutor@example.com", hashed_password="x", role="tutor")
    learner_user = User(email="race-learner@example.com", hashed_password="x", role="learner")
    tutor_user.profile = Profile(user_type="tutor", first_name="Ann", last_name="Smith")
    learner_user.profile = Profile(user_type="learner", first_name="Lee", last_name="Park")
    skill = Skill(name="Math")
    seed_session.add_all([tutor_user, learner_user, skill])
    seed_session.flush()
    booking = Booking(
        tutor_id=tutor_user.profile.id,
        learner_id=learner_user.profile.id,
        skill_id=skill.id,
        lesson_date=date.today() + timedelta(days=1),
        start_time=time(10, 0),
        end_time=time(11, 0),
        duration_hours=Decimal("1"),
        hourly_rate=Decimal("50"),
        total_amount=Decimal("50"),
        lesson_type="online",
        status="confirmed",
    )
    seed_session.add(booking)
    seed_session.commit()
    booking_id = booking.id
    sender_ids = [booking.tutor_id, booking.learner_id]
    seed_session.close()

    broker: MessageBroker = MessageBroker()

    def send(index: int) -> int:
        session = SessionLocal()
        try:
            target = session.get(Booking, booking_id)
            message = send_message(
                db=session,
                booking=target,
                sender_id=sender_ids[index % 2],
                content=f"message {index}",
                broker=broker,
            )
            return message.id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        sent_ids = list(pool.map(send, range(12)))

    check = SessionLocal()
    stored = list_messages(check, booking_id)
    total = check.query(Message).count()
    check.close()

    assert total == 12
    assert sorted(sent_ids) == [message.id for message in stored]
    timestamps = [message.created_at for message in stored]
    assert timestamps == sorted(timestamps)


def test_booking_locks_come_from_a_fixed_pool():
    locks = {id(message_service._lock_for(booking_id)) for booking_id in range(1, 100_000)}

    assert len(locks) == message_service.BOOKING_LOCK_STRIPES
    assert len(message_service._booking_locks) == message_service.BOOKING_LOCK_STRIPES
    assert message_service._lock_for(12345) is message_service._lock_for(12345)
