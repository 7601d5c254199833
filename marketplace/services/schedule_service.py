"""Lesson slot arithmetic.

All times are naive wall-clock values in the tutor's local time. A lesson is
anchored on its calendar date and must finish on that same date.
"""

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

LESSON_START_TIMES: tuple[time, ...] = tuple(time(hour=hour) for hour in range(8, 21))
LESSON_DURATIONS: tuple[Decimal, ...] = tuple(Decimal(value) for value in ("0.5", "1", "1.5", "2", "3"))
MIN_DURATION_HOURS = Decimal("0.5")
MAX_DURATION_HOURS = Decimal("8")

CENTS = Decimal("0.01")


class LessonSlotError(ValueError):
    pass


def parse_clock_time(value: str) -> time:
    try:
        hours, minutes = value.split(":")
        return time(hour=int(hours), minute=int(minutes))
    except ValueError as exc:
        raise LessonSlotError(f"Invalid time format: {value!r}, expected HH:MM") from exc


def format_clock_time(value: time) -> str:
    return value.strftime("%H:%M")


def lesson_start_at(lesson_date: date, start_time: time) -> datetime:
    return datetime.combine(lesson_date, start_time)


def compute_lesson_end(lesson_date: date, start_time: time, duration_hours: Decimal) -> datetime:
    duration = Decimal(duration_hours)
    if duration < MIN_DURATION_HOURS or duration > MAX_DURATION_HOURS:
        raise LessonSlotError(
            f"Lesson duration must be between {MIN_DURATION_HOURS} and {MAX_DURATION_HOURS} hours"
        )
    minutes = int((duration * 60).to_integral_value(rounding=ROUND_HALF_UP))
    start_at = lesson_start_at(lesson_date, start_time)
    end_at = start_at + timedelta(minutes=minutes)
    if end_at.date() != lesson_date:
        raise LessonSlotError("Lesson must end before midnight on the lesson date")
    return end_at


def compute_end_time(lesson_date: date, start_time: time, duration_hours: Decimal) -> time:
    return compute_lesson_end(lesson_date, start_time, duration_hours).time()


def compute_total_amount(hourly_rate: Decimal, duration_hours: Decimal) -> Decimal:
    return (Decimal(hourly_rate) * Decimal(duration_hours)).quantize(CENTS, rounding=ROUND_HALF_UP)


def lesson_end_at(lesson_date: date, end_time: time) -> datetime:
    return datetime.combine(lesson_date, end_time)
