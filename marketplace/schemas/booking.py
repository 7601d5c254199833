from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from marketplace.db.models.booking import BookingStatus, LessonType
from marketplace.services.schedule_service import (
    LESSON_DURATIONS,
    LESSON_START_TIMES,
    format_clock_time,
    parse_clock_time,
)

REQUIRED_DRAFT_FIELDS = ("skill_id", "lesson_date", "start_time", "lesson_type")


class BookingDraft(BaseModel):
    """A learner's booking request.

    Every field may be omitted on input so that an incomplete draft reports all
    of its missing fields at once instead of failing on the first one.
    """

    tutor_id: int
    skill_id: int | None = None
    lesson_date: date | None = None
    start_time: time | None = None
    duration_hours: Decimal = Decimal("1")
    lesson_type: LessonType | None = None
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start_time(cls, value):
        if isinstance(value, str):
            if not value.strip():
                return None
            return parse_clock_time(value.strip())
        return value

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: time | None) -> time | None:
        if value is not None and value not in LESSON_START_TIMES:
            allowed = ", ".join(format_clock_time(slot) for slot in LESSON_START_TIMES)
            raise ValueError(f"start_time must be one of {allowed}")
        return value

    @field_validator("duration_hours")
    @classmethod
    def validate_duration(cls, value: Decimal) -> Decimal:
        if value not in LESSON_DURATIONS:
            allowed = ", ".join(str(duration) for duration in LESSON_DURATIONS)
            raise ValueError(f"duration_hours must be one of {allowed}")
        return value

    @field_validator("lesson_type", mode="before")
    @classmethod
    def blank_lesson_type(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("location", "notes")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def validate_required_fields(self) -> "BookingDraft":
        missing = [name for name in REQUIRED_DRAFT_FIELDS if getattr(self, name) is None]
        if missing:
            raise ValueError(f"Please fill in all required fields: {', '.join(missing)}")
        if self.lesson_type is LessonType.IN_PERSON and not self.location:
            raise ValueError("location is required for in-person lessons")
        return self


class BookingStatusUpdateRequest(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    id: int
    tutor_id: int
    learner_id: int
    skill_id: int
    lesson_date: date
    start_time: time
    end_time: time
    duration_hours: Decimal
    hourly_rate: Decimal
    total_amount: Decimal
    lesson_type: LessonType
    location: str | None
    notes: str | None
    status: BookingStatus
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("start_time", "end_time")
    def serialize_clock_time(self, value: time) -> str:
        return format_clock_time(value)


class BookingViewsResponse(BaseModel):
    pending: list[BookingResponse]
    confirmed: list[BookingResponse]
    past: list[BookingResponse]
