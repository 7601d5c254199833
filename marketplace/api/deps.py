from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from marketplace.core.security import decode_access_token
from marketplace.db.models import Profile, User, UserRole, UserType
from marketplace.db.session import get_db

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

PROFILE_NOT_FOUND_DETAIL = "Profile not found"


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    unauthorized_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_access_token(token)
    except ValueError:
        raise unauthorized_exc

    user = db.scalar(select(User).options(joinedload(User.profile)).where(User.id == claims.user_id))
    if not user or not user.is_active:
        raise unauthorized_exc
    return user


def require_roles(*roles: UserRole | str) -> Callable[[User], User]:
    allowed_roles = {role.value if isinstance(role, UserRole) else role for role in roles}

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
        return current_user

    return checker


def get_optional_profile(current_user: User = Depends(get_current_user)) -> Profile | None:
    """Admin accounts may act without a marketplace profile."""
    return current_user.profile


def get_current_profile(profile: Profile | None = Depends(get_optional_profile)) -> Profile:
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROFILE_NOT_FOUND_DETAIL)
    return profile


def require_user_type(user_type: UserType, detail: str) -> Callable[[Profile], Profile]:
    def checker(profile: Profile = Depends(get_current_profile)) -> Profile:
        if profile.user_type != user_type.value:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return profile

    return checker


get_current_tutor_profile = require_user_type(UserType.TUTOR, "Only tutors can manage subjects")
get_current_learner_profile = require_user_type(UserType.LEARNER, "Only learners can book lessons")
