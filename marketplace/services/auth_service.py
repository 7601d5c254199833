import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.analytics import track_event
from marketplace.core.config import settings
from marketplace.core.security import create_access_token, get_password_hash, verify_password
from marketplace.db.models import Profile, User
from marketplace.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

logger = logging.getLogger(__name__)

EMAIL_TAKEN_DETAIL = "User with this email already exists"
INVALID_CREDENTIALS_DETAIL = "Invalid email or password"
ACCOUNT_DISABLED_DETAIL = "Account is disabled"


def register_user(payload: RegisterRequest, db: Session) -> User:
    """Create the credential row and its learner or tutor profile in one commit."""
    email = payload.email.lower()
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL)

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        role=payload.user_type.value,
        profile=Profile(
            user_type=payload.user_type.value,
            first_name=payload.first_name,
            last_name=payload.last_name,
        ),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from None
    db.refresh(user)

    track_event("user_registered", user_id=user.id, user_type=payload.user_type.value)
    return user


def login_user(payload: LoginRequest, db: Session) -> TokenResponse:
    user = db.scalar(select(User).where(User.email == payload.email.lower()))
    if user is None or not verify_password(payload.password, user.hashed_password):
        logger.info("login_failed reason=bad_credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_DETAIL)
    if not user.is_active:
        logger.info("login_failed reason=disabled user_id=%s", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCOUNT_DISABLED_DETAIL)

    return TokenResponse(
        access_token=create_access_token(user_id=user.id, role=user.role),
        expires_in=settings.access_token_expire_minutes * 60,
    )
