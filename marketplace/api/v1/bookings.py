from datetime import datetime
from enum import Enum

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from marketplace.api.deps import (
    get_current_learner_profile,
    get_current_profile,
    get_current_user,
    get_optional_profile,
)
from marketplace.api.pagination import LimitParam, OffsetParam, paginate
from marketplace.db.models import Profile, User
from marketplace.db.session import get_db
from marketplace.schemas.booking import (
    BookingDraft,
    BookingResponse,
    BookingStatusUpdateRequest,
    BookingViewsResponse,
)
from marketplace.schemas.message import ConversationResponse, MessageResponse
from marketplace.services.booking_service import (
    create_booking,
    ensure_can_view,
    get_booking_or_404,
    list_bookings_for_profile,
    update_booking_status,
)
from marketplace.services.booking_status import partition_bookings
from marketplace.services.message_service import list_conversations

router = APIRouter(prefix="/bookings", tags=["bookings"])


class BookingView(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAST = "past"


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def request_booking(
    payload: BookingDraft,
    learner: Profile = Depends(get_current_learner_profile),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = create_booking(db=db, learner=learner, draft=payload)
    return BookingResponse.model_validate(booking)


@router.get("/me", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
def list_my_bookings(
    view: BookingView | None = Query(default=None),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> list[BookingResponse]:
    if view is None:
        bookings = list_bookings_for_profile(db, profile.id, limit=limit, offset=offset)
    else:
        views = partition_bookings(list_bookings_for_profile(db, profile.id), now=datetime.now())
        bookings = paginate(getattr(views, view.value), limit, offset)
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.get("/me/views", response_model=BookingViewsResponse, status_code=status.HTTP_200_OK)
def get_my_booking_views(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> BookingViewsResponse:
    views = partition_bookings(list_bookings_for_profile(db, profile.id), now=datetime.now())
    return BookingViewsResponse(
        pending=[BookingResponse.model_validate(booking) for booking in views.pending],
        confirmed=[BookingResponse.model_validate(booking) for booking in views.confirmed],
        past=[BookingResponse.model_validate(booking) for booking in views.past],
    )


@router.get("/me/conversations", response_model=list[ConversationResponse], status_code=status.HTTP_200_OK)
def list_my_conversations(
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> list[ConversationResponse]:
    conversations = list_conversations(db, profile.id, limit=limit, offset=offset)
    return [
        ConversationResponse(
            booking=BookingResponse.model_validate(booking),
            latest_message=MessageResponse.model_validate(message) if message is not None else None,
        )
        for booking, message in conversations
    ]


@router.get("/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def get_booking_by_id(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    profile: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = get_booking_or_404(db, booking_id)
    ensure_can_view(booking, current_user, profile)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}/status", response_model=BookingResponse, status_code=status.HTTP_200_OK)
def change_booking_status(
    booking_id: int,
    payload: BookingStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    profile: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_db),
) -> BookingResponse:
    booking = update_booking_status(
        db=db,
        booking_id=booking_id,
        target=payload.status,
        user=current_user,
        profile=profile,
    )
    return BookingResponse.model_validate(booking)
