from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class SkillCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: str | None = Field(default=None, max_length=100)


class SkillResponse(BaseModel):
    id: int
    name: str
    category: str | None

    model_config = {"from_attributes": True}


class TutorSkillCreateRequest(BaseModel):
    skill_id: int
    hourly_rate: Decimal = Field(ge=1, le=10000, max_digits=7, decimal_places=2)
    description: str | None = Field(default=None, max_length=200)


class TutorSkillResponse(BaseModel):
    id: int
    tutor_id: int
    skill: SkillResponse
    hourly_rate: Decimal
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
