from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from marketplace.db.models import Profile
from marketplace.schemas.profile import ProfileUpdateRequest

REQUIRED_PROFILE_FIELDS = ("first_name", "last_name")


def update_profile(db: Session, profile: Profile, payload: ProfileUpdateRequest) -> Profile:
    """Apply only the fields present in the request; explicit nulls clear optional fields."""
    changes = payload.model_dump(exclude_unset=True)
    for name in REQUIRED_PROFILE_FIELDS:
        if name in changes and changes[name] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{name} cannot be empty")

    for name, value in changes.items():
        setattr(profile, name, value)
    db.commit()
    db.refresh(profile)
    return profile
