from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Protocol

from marketplace.db.models.booking import BookingStatus
from marketplace.services.schedule_service import lesson_end_at, lesson_start_at


class BookingActor(str, Enum):
    TUTOR = "tutor"
    LEARNER = "learner"


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)

TUTOR_ONLY_TARGETS = frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED})


class BookingTransitionError(ValueError):
    pass


class BookingPermissionError(PermissionError):
    pass


class ScheduledLesson(Protocol):
    status: str
    lesson_date: object
    start_time: object
    end_time: object


def check_transition(
    current: BookingStatus | str,
    target: BookingStatus | str,
    actor: BookingActor,
    lesson_end: datetime,
    now: datetime,
) -> None:
    current = BookingStatus(current)
    target = BookingStatus(target)

    if target not in ALLOWED_TRANSITIONS[current]:
        raise BookingTransitionError(f"Cannot change booking status from {current.value} to {target.value}")

    if target in TUTOR_ONLY_TARGETS and actor is not BookingActor.TUTOR:
        raise BookingPermissionError(f"Only the tutor can mark a booking as {target.value}")

    if target is BookingStatus.COMPLETED and lesson_end > now:
        raise BookingPermissionError("Lesson cannot be completed before it has ended")


def has_ended(booking: ScheduledLesson, now: datetime) -> bool:
    return lesson_end_at(booking.lesson_date, booking.end_time) <= now


@dataclass
class BookingViews:
    pending: list = field(default_factory=list)
    confirmed: list = field(default_factory=list)
    past: list = field(default_factory=list)


def partition_bookings(bookings: Iterable[ScheduledLesson], now: datetime) -> BookingViews:
    """Split bookings into the pending, confirmed and past views.

    A booking lands in exactly one view. Terminal bookings and lessons that
    have already ended are past regardless of status.
    """
    views = BookingViews()
    ordered = sorted(bookings, key=lambda booking: lesson_start_at(booking.lesson_date, booking.start_time))
    for booking in ordered:
        status = BookingStatus(booking.status)
        if status in TERMINAL_STATUSES or has_ended(booking, now):
            views.past.append(booking)
        elif status is BookingStatus.PENDING:
            views.pending.append(booking)
        else:
            views.confirmed.append(booking)
    return views
