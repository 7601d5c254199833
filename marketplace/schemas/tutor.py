from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from marketplace.schemas.profile import ProfileSummaryResponse
from marketplace.schemas.skill import TutorSkillResponse


class TutorResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    bio: str | None
    location: str | None
    avatar_url: str | None
    min_hourly_rate: Decimal | None
    average_rating: float | None = None
    review_count: int = 0
    skills: list[TutorSkillResponse]


class ReviewResponse(BaseModel):
    id: int
    reviewer: ProfileSummaryResponse
    rating: int
    comment: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
