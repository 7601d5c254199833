from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.analytics import track_event
from marketplace.db.models import Profile, Skill, TutorSkill
from marketplace.schemas.skill import SkillCreateRequest, TutorSkillCreateRequest

SKILL_NOT_FOUND_DETAIL = "Skill not found"
SKILL_EXISTS_DETAIL = "Skill with this name already exists"
ALREADY_OFFERED_DETAIL = "You already offer this subject"
OFFERING_NOT_FOUND_DETAIL = "Tutor skill not found"


def list_skills(db: Session) -> list[Skill]:
    return list(db.scalars(select(Skill).order_by(Skill.name)).all())


def create_skill(db: Session, payload: SkillCreateRequest) -> Skill:
    skill = Skill(name=payload.name.strip(), category=payload.category)
    db.add(skill)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SKILL_EXISTS_DETAIL) from None
    db.refresh(skill)
    return skill


def list_tutor_skills(db: Session, tutor_id: int) -> list[TutorSkill]:
    return list(
        db.scalars(select(TutorSkill).where(TutorSkill.tutor_id == tutor_id).order_by(TutorSkill.id)).all()
    )


def list_available_skills(db: Session, tutor_id: int) -> list[Skill]:
    """Catalog subjects the tutor does not offer yet."""
    offered = select(TutorSkill.skill_id).where(TutorSkill.tutor_id == tutor_id)
    return list(db.scalars(select(Skill).where(Skill.id.not_in(offered)).order_by(Skill.name)).all())


def add_tutor_skill(db: Session, tutor: Profile, payload: TutorSkillCreateRequest) -> TutorSkill:
    skill = db.get(Skill, payload.skill_id)
    if not skill:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SKILL_NOT_FOUND_DETAIL)

    existing = db.scalar(
        select(TutorSkill).where(TutorSkill.tutor_id == tutor.id, TutorSkill.skill_id == skill.id)
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_OFFERED_DETAIL)

    offering = TutorSkill(
        tutor_id=tutor.id,
        skill_id=skill.id,
        hourly_rate=payload.hourly_rate,
        description=payload.description,
    )
    db.add(offering)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_OFFERED_DETAIL) from None
    db.refresh(offering)

    track_event("tutor_skill_added", tutor_id=tutor.id, skill_id=skill.id, hourly_rate=offering.hourly_rate)
    return offering


def remove_tutor_skill(db: Session, tutor: Profile, offering_id: int) -> None:
    offering = db.scalar(
        select(TutorSkill).where(TutorSkill.id == offering_id, TutorSkill.tutor_id == tutor.id)
    )
    if not offering:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=OFFERING_NOT_FOUND_DETAIL)

    skill_id = offering.skill_id
    db.delete(offering)
    db.commit()
    track_event("tutor_skill_removed", tutor_id=tutor.id, skill_id=skill_id)
