import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from marketplace.api.deps import get_current_profile, get_current_user, get_optional_profile
from marketplace.api.pagination import LimitParam, OffsetParam
from marketplace.core.config import settings
from marketplace.core.rate_limiter import RateLimitScope, enforce_rate_limit
from marketplace.db.models import Profile, User
from marketplace.db.session import get_db
from marketplace.schemas.message import MessageCreateRequest, MessageResponse
from marketplace.services.booking_service import ensure_can_view, get_booking_or_404
from marketplace.services.message_service import (
    conversation_events,
    list_messages,
    message_broker,
    send_message,
)

router = APIRouter(prefix="/bookings/{booking_id}/messages", tags=["messages"])
logger = logging.getLogger(__name__)

STREAM_POLL_SECONDS = 1.0


@router.get("", response_model=list[MessageResponse], status_code=status.HTTP_200_OK)
def list_booking_messages(
    booking_id: int,
    limit: LimitParam = 100,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    profile: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_db),
) -> list[MessageResponse]:
    booking = get_booking_or_404(db, booking_id)
    ensure_can_view(booking, current_user, profile)
    messages = list_messages(db, booking.id, limit=limit, offset=offset)
    return [MessageResponse.model_validate(message) for message in messages]


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def post_booking_message(
    booking_id: int,
    payload: MessageCreateRequest,
    current_user: User = Depends(get_current_user),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> MessageResponse:
    booking = get_booking_or_404(db, booking_id)
    enforce_rate_limit(RateLimitScope.MESSAGE_SEND, str(current_user.id))
    message = send_message(db=db, booking=booking, sender_id=profile.id, content=payload.content)
    return MessageResponse.model_validate(message)


def _viewable_booking_id(db: Session, booking_id: int, current_user: User, profile: Profile | None) -> int:
    booking = get_booking_or_404(db, booking_id)
    ensure_can_view(booking, current_user, profile)
    return booking.id


def _load_history(db: Session, booking_id: int) -> list[MessageResponse]:
    return [MessageResponse.model_validate(message) for message in list_messages(db, booking_id)]


@router.get("/stream")
async def stream_booking_messages(
    booking_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    profile: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_db),
) -> EventSourceResponse:
    booking_id = await asyncio.to_thread(_viewable_booking_id, db, booking_id, current_user, profile)

    subscription = message_broker.subscribe(booking_id)
    try:
        history = await asyncio.to_thread(_load_history, db, booking_id)
    except BaseException:
        subscription.close()
        raise
    logger.info("message_stream_opened booking_id=%s history=%s", booking_id, len(history))

    return EventSourceResponse(
        conversation_events(
            booking_id=booking_id,
            subscription=subscription,
            history=history,
            is_disconnected=request.is_disconnected,
            poll_seconds=STREAM_POLL_SECONDS,
        ),
        ping=settings.message_stream_ping_seconds,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
