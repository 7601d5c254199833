from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_profile
from marketplace.db.models import Profile
from marketplace.db.session import get_db
from marketplace.schemas.profile import ProfileResponse, ProfileUpdateRequest
from marketplace.services.profile_service import update_profile

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileResponse, status_code=status.HTTP_200_OK)
def get_my_profile(profile: Profile = Depends(get_current_profile)) -> ProfileResponse:
    return ProfileResponse.model_validate(profile)


@router.patch("/me", response_model=ProfileResponse, status_code=status.HTTP_200_OK)
def update_my_profile(
    payload: ProfileUpdateRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    updated = update_profile(db=db, profile=profile, payload=payload)
    return ProfileResponse.model_validate(updated)
