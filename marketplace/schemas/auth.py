from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from marketplace.db.models.profile import UserType
from marketplace.db.models.user import UserRole
from marketplace.schemas.profile import PersonName, ProfileResponse


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    user_type: UserType = UserType.LEARNER
    first_name: PersonName
    last_name: PersonName


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AccountResponse(BaseModel):
    """A freshly registered account together with the profile created for it."""

    id: int
    email: EmailStr
    role: UserRole
    created_at: datetime
    profile: ProfileResponse

    model_config = {"from_attributes": True}
