from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, StringConstraints

from marketplace.schemas.booking import BookingResponse

MessageContent = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]


class MessageCreateRequest(BaseModel):
    content: MessageContent


class MessageResponse(BaseModel):
    id: int
    booking_id: int
    sender_id: int
    content: str
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class ConversationResponse(BaseModel):
    booking: BookingResponse
    latest_message: MessageResponse | None = None
