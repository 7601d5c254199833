import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from marketplace.core.analytics import track_event
from marketplace.db.models import Booking, BookingStatus, Profile, TutorSkill, User, UserRole, UserType
from marketplace.schemas.booking import BookingDraft
from marketplace.services.booking_status import (
    BookingActor,
    BookingPermissionError,
    BookingTransitionError,
    check_transition,
)
from marketplace.services.schedule_service import (
    LessonSlotError,
    compute_end_time,
    compute_total_amount,
    lesson_end_at,
    lesson_start_at,
)

logger = logging.getLogger(__name__)

BOOKING_NOT_FOUND_DETAIL = "Booking not found"
TUTOR_NOT_FOUND_DETAIL = "Tutor not found"
SUBJECT_NOT_OFFERED_DETAIL = "Tutor does not offer this subject"
SELF_BOOKING_DETAIL = "You cannot book a lesson with yourself"
PAST_LESSON_DETAIL = "Lesson must be scheduled in the future"
NOT_A_PARTICIPANT_DETAIL = "Not enough permissions"


def _is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def create_booking(
    db: Session,
    learner: Profile,
    draft: BookingDraft,
    now: datetime | None = None,
) -> Booking:
    current_time = now or datetime.now()

    if draft.tutor_id == learner.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=SELF_BOOKING_DETAIL)

    tutor = db.scalar(
        select(Profile).where(Profile.id == draft.tutor_id, Profile.user_type == UserType.TUTOR.value)
    )
    if not tutor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TUTOR_NOT_FOUND_DETAIL)

    offering = db.scalar(
        select(TutorSkill).where(TutorSkill.tutor_id == tutor.id, TutorSkill.skill_id == draft.skill_id)
    )
    if not offering:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SUBJECT_NOT_OFFERED_DETAIL)

    if lesson_start_at(draft.lesson_date, draft.start_time) <= current_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PAST_LESSON_DETAIL)

    try:
        end_time = compute_end_time(draft.lesson_date, draft.start_time, draft.duration_hours)
    except LessonSlotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None

    booking = Booking(
        tutor_id=tutor.id,
        learner_id=learner.id,
        skill_id=offering.skill_id,
        lesson_date=draft.lesson_date,
        start_time=draft.start_time,
        end_time=end_time,
        duration_hours=draft.duration_hours,
        hourly_rate=offering.hourly_rate,
        total_amount=compute_total_amount(offering.hourly_rate, draft.duration_hours),
        lesson_type=draft.lesson_type.value,
        location=draft.location,
        notes=draft.notes,
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)

    track_event(
        "booking_created",
        booking_id=booking.id,
        tutor_id=booking.tutor_id,
        learner_id=booking.learner_id,
        total_amount=booking.total_amount,
    )
    return booking


def get_booking_or_404(db: Session, booking_id: int, for_update: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update and _is_postgresql_session(db):
        query = query.with_for_update()
    booking = db.scalar(query)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=BOOKING_NOT_FOUND_DETAIL)
    return booking


def ensure_can_view(booking: Booking, user: User, profile: Profile | None) -> None:
    if user.role == UserRole.ADMIN.value:
        return
    if profile is None or not booking.is_participant(profile.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_A_PARTICIPANT_DETAIL)


def resolve_actor(booking: Booking, user: User, profile: Profile | None) -> BookingActor:
    if profile is not None and profile.id == booking.tutor_id:
        return BookingActor.TUTOR
    if profile is not None and profile.id == booking.learner_id:
        return BookingActor.LEARNER
    if user.role == UserRole.ADMIN.value:
        return BookingActor.TUTOR
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_A_PARTICIPANT_DETAIL)


def update_booking_status(
    db: Session,
    booking_id: int,
    target: BookingStatus,
    user: User,
    profile: Profile | None,
    now: datetime | None = None,
) -> Booking:
    current_time = now or datetime.now()
    booking = get_booking_or_404(db, booking_id, for_update=True)
    actor = resolve_actor(booking, user, profile)
    previous = booking.status

    try:
        check_transition(
            current=booking.status,
            target=target,
            actor=actor,
            lesson_end=lesson_end_at(booking.lesson_date, booking.end_time),
            now=current_time,
        )
    except BookingTransitionError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None
    except BookingPermissionError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from None

    booking.status = BookingStatus(target).value
    db.commit()
    db.refresh(booking)

    logger.info(
        "booking_status_changed booking_id=%s from=%s to=%s actor=%s",
        booking.id,
        previous,
        booking.status,
        actor.value,
    )
    track_event("booking_status_changed", booking_id=booking.id, status=booking.status)
    return booking


def list_bookings_for_profile(
    db: Session,
    profile_id: int,
    limit: int | None = None,
    offset: int = 0,
) -> list[Booking]:
    query = (
        select(Booking)
        .where(or_(Booking.tutor_id == profile_id, Booking.learner_id == profile_id))
        .order_by(Booking.lesson_date, Booking.start_time, Booking.id)
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    return list(db.scalars(query).all())
