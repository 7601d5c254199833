from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.api.deps import require_roles
from marketplace.db.models import User, UserRole
from marketplace.db.session import get_db
from marketplace.schemas.skill import SkillCreateRequest, SkillResponse
from marketplace.services.skill_service import create_skill, list_skills

router = APIRouter(prefix="/skills", tags=["skills"])


@router.get("", response_model=list[SkillResponse], status_code=status.HTTP_200_OK)
def list_skill_catalog(db: Session = Depends(get_db)) -> list[SkillResponse]:
    return [SkillResponse.model_validate(skill) for skill in list_skills(db)]


@router.post("", response_model=SkillResponse, status_code=status.HTTP_201_CREATED)
def add_skill_to_catalog(
    payload: SkillCreateRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> SkillResponse:
    return SkillResponse.model_validate(create_skill(db=db, payload=payload))
