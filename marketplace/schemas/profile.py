from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, HttpUrl, StringConstraints, field_validator

from marketplace.db.models.profile import UserType

PersonName = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=50, pattern=r"^[a-zA-Z\s]+$"),
]
PhoneNumber = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\+?[1-9]\d{0,15}$")]


def _url_to_str(value: HttpUrl | None) -> str | None:
    return str(value) if value is not None else None


class ProfileUpdateRequest(BaseModel):
    first_name: PersonName | None = None
    last_name: PersonName | None = None
    bio: str | None = Field(default=None, max_length=500)
    location: str | None = Field(default=None, max_length=100)
    phone: PhoneNumber | None = None
    avatar_url: Annotated[HttpUrl | None, AfterValidator(_url_to_str)] = None

    @field_validator("bio", "location", "phone", "avatar_url", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ProfileSummaryResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    avatar_url: str | None

    model_config = {"from_attributes": True}


class ProfileResponse(ProfileSummaryResponse):
    user_id: int
    user_type: UserType
    bio: str | None
    location: str | None
    phone: str | None
    created_at: datetime
