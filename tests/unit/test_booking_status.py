from dataclasses import dataclass
from datetime import date, datetime, time

import pytest

from marketplace.db.models.booking import BookingStatus
from marketplace.services.booking_status import (
    BookingActor,
    BookingPermissionError,
    BookingTransitionError,
    check_transition,
    partition_bookings,
)

LESSON_END = datetime(2026, 11, 2, 15, 30)
BEFORE_END = datetime(2026, 11, 2, 15, 0)
AFTER_END = datetime(2026, 11, 2, 16, 0)


@dataclass
class Lesson:
    name: str
    status: str
    lesson_date: date
    start_time: time
    end_time: time


@pytest.mark.parametrize("actor", list(BookingActor))
@pytest.mark.parametrize("now", [BEFORE_END, AFTER_END])
def test_pending_booking_can_never_be_completed(actor, now):
    with pytest.raises(BookingTransitionError):
        check_transition(BookingStatus.PENDING, BookingStatus.COMPLETED, actor, LESSON_END, now)


@pytest.mark.parametrize("current", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
@pytest.mark.parametrize("target", list(BookingStatus))
def test_terminal_statuses_have_no_exits(current, target):
    with pytest.raises(BookingTransitionError):
        check_transition(current, target, BookingActor.TUTOR, LESSON_END, AFTER_END)


@pytest.mark.parametrize("target", [BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_tutor_decides_pending_bookings(target):
    check_transition(BookingStatus.PENDING, target, BookingActor.TUTOR, LESSON_END, BEFORE_END)


@pytest.mark.parametrize("target", [BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_learner_cannot_decide_pending_bookings(target):
    with pytest.raises(BookingPermissionError, match="Only the tutor"):
        check_transition(BookingStatus.PENDING, target, BookingActor.LEARNER, LESSON_END, BEFORE_END)


@pytest.mark.parametrize("actor", list(BookingActor))
def test_either_participant_completes_after_lesson_ends(actor):
    check_transition("confirmed", "completed", actor, LESSON_END, AFTER_END)
    check_transition("confirmed", "completed", actor, LESSON_END, LESSON_END)


def test_confirmed_lesson_cannot_complete_before_it_ends():
    with pytest.raises(BookingPermissionError, match="before it has ended"):
        check_transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingActor.TUTOR, LESSON_END, BEFORE_END)


def test_confirmed_booking_cannot_go_back_to_pending():
    with pytest.raises(BookingTransitionError):
        check_transition(BookingStatus.CONFIRMED, BookingStatus.PENDING, BookingActor.TUTOR, LESSON_END, AFTER_END)


def test_partition_puts_each_booking_in_exactly_one_view():
    now = datetime(2026, 11, 10, 12, 0)
    bookings = [
        Lesson("later-pending", "pending", date(2026, 11, 12), time(9, 0), time(10, 0)),
        Lesson("earlier-pending", "pending", date(2026, 11, 11), time(18, 0), time(19, 0)),
        Lesson("upcoming-confirmed", "confirmed", date(2026, 11, 10), time(14, 0), time(15, 0)),
        Lesson("ended-confirmed", "confirmed", date(2026, 11, 10), time(10, 0), time(11, 0)),
        Lesson("stale-pending", "pending", date(2026, 11, 1), time(8, 0), time(9, 0)),
        Lesson("cancelled-future", "cancelled", date(2026, 12, 1), time(8, 0), time(9, 0)),
        Lesson("completed", "completed", date(2026, 11, 3), time(8, 0), time(9, 0)),
    ]

    views = partition_bookings(bookings, now)

    assert [lesson.name for lesson in views.pending] == ["earlier-pending", "later-pending"]
    assert [lesson.name for lesson in views.confirmed] == ["upcoming-confirmed"]
    assert [lesson.name for lesson in views.past] == [
        "stale-pending",
        "completed",
        "ended-confirmed",
        "cancelled-future",
    ]
    total = len(views.pending) + len(views.confirmed) + len(views.past)
    assert total == len(bookings)
