import logging
import threading
from typing import AsyncIterator, Awaitable, Callable, Iterable

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from marketplace.core.analytics import track_event
from marketplace.core.config import settings
from marketplace.db.models import Booking, BookingStatus, Message
from marketplace.schemas.message import MessageResponse
from marketplace.services.conversation import ConversationThread
from marketplace.services.realtime import MessageBroker, Subscription

logger = logging.getLogger(__name__)

NOT_A_PARTICIPANT_DETAIL = "Only booking participants can send messages"
MESSAGING_CLOSED_DETAIL = "Messages can only be sent for pending or confirmed bookings"
OPEN_STATUSES = frozenset({BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value})

message_broker: MessageBroker[MessageResponse] = MessageBroker(queue_size=settings.message_stream_queue_size)

BOOKING_LOCK_STRIPES = 64
_booking_locks = tuple(threading.Lock() for _ in range(BOOKING_LOCK_STRIPES))


def _lock_for(booking_id: int) -> threading.Lock:
    return _booking_locks[booking_id % BOOKING_LOCK_STRIPES]


def list_messages(db: Session, booking_id: int, limit: int | None = None, offset: int = 0) -> list[Message]:
    query = (
        select(Message)
        .where(Message.booking_id == booking_id)
        .order_by(Message.created_at, Message.id)
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    return list(db.scalars(query).all())


def list_conversations(
    db: Session,
    profile_id: int,
    limit: int | None = None,
    offset: int = 0,
) -> list[tuple[Booking, Message | None]]:
    """Bookings the profile takes part in, most recently updated first, each with its latest message."""
    query = (
        select(Booking)
        .where(or_(Booking.tutor_id == profile_id, Booking.learner_id == profile_id))
        .order_by(Booking.updated_at.desc(), Booking.id.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    bookings = list(db.scalars(query).all())
    latest = _latest_messages(db, [booking.id for booking in bookings])
    return [(booking, latest.get(booking.id)) for booking in bookings]


def _latest_messages(db: Session, booking_ids: list[int]) -> dict[int, Message]:
    if not booking_ids:
        return {}
    ranked = (
        select(
            Message.id,
            func.row_number()
            .over(partition_by=Message.booking_id, order_by=(Message.created_at.desc(), Message.id.desc()))
            .label("position"),
        )
        .where(Message.booking_id.in_(booking_ids))
        .subquery()
    )
    query = select(Message).join(ranked, ranked.c.id == Message.id).where(ranked.c.position == 1)
    return {message.booking_id: message for message in db.scalars(query)}


def send_message(
    db: Session,
    booking: Booking,
    sender_id: int,
    content: str,
    broker: MessageBroker[MessageResponse] = message_broker,
) -> Message:
    if not booking.is_participant(sender_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_A_PARTICIPANT_DETAIL)
    if booking.status not in OPEN_STATUSES:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=MESSAGING_CLOSED_DETAIL)

    # One writer per booking keeps stored order equal to send order.
    with _lock_for(booking.id):
        message = Message(booking_id=booking.id, sender_id=sender_id, content=content)
        db.add(message)
        db.commit()
        db.refresh(message)

    delivered = broker.publish(booking.id, MessageResponse.model_validate(message))
    logger.info(
        "message_sent booking_id=%s message_id=%s subscribers=%s",
        booking.id,
        message.id,
        delivered,
    )
    track_event("message_sent", booking_id=booking.id, sender_id=sender_id)
    return message


async def conversation_events(
    booking_id: int,
    subscription: Subscription[MessageResponse],
    history: Iterable[MessageResponse],
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_seconds: float,
) -> AsyncIterator[dict[str, str]]:
    """Yield SSE events: stored history first, then pushed messages.

    The subscription must be opened before history is loaded; anything pushed
    in between shows up in both and is emitted once.
    """
    thread = ConversationThread(booking_id, history)
    try:
        for message in thread.messages:
            yield _message_event(message)

        while not await is_disconnected():
            message = await subscription.next(timeout=poll_seconds)
            if message is None:
                if subscription.closed:
                    break
                continue
            if thread.add(message):
                yield _message_event(message)
    finally:
        subscription.close()


def _message_event(message: MessageResponse) -> dict[str, str]:
    return {"event": "message", "id": str(message.id), "data": message.model_dump_json()}
