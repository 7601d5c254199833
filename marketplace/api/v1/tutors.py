from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from marketplace.api.deps import get_current_tutor_profile
from marketplace.api.pagination import LimitParam, OffsetParam, paginate
from marketplace.db.models import Profile, Review, TutorSkill, UserType
from marketplace.db.session import get_db
from marketplace.schemas.skill import SkillResponse, TutorSkillCreateRequest, TutorSkillResponse
from marketplace.schemas.tutor import ReviewResponse, TutorResponse
from marketplace.services.review_service import NO_REVIEWS, RatingSummary, rating_summaries
from marketplace.services.skill_service import (
    add_tutor_skill,
    list_available_skills,
    list_tutor_skills,
    remove_tutor_skill,
)
from marketplace.services.tutor_search import (
    ALL,
    OfferedSkill,
    PriceRange,
    TutorFilters,
    TutorListing,
    filter_tutors,
)

router = APIRouter(prefix="/tutors", tags=["tutors"])

TUTOR_NOT_FOUND_DETAIL = "Tutor not found"


def _to_listing(profile: Profile) -> TutorListing:
    return TutorListing(
        tutor_id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        bio=profile.bio,
        location=profile.location,
        skills=tuple(
            OfferedSkill(skill_id=offering.skill_id, name=offering.skill.name, hourly_rate=offering.hourly_rate)
            for offering in profile.tutor_skills
        ),
    )


def _to_response(profile: Profile, listing: TutorListing, ratings: RatingSummary) -> TutorResponse:
    return TutorResponse(
        id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        bio=profile.bio,
        location=profile.location,
        avatar_url=profile.avatar_url,
        min_hourly_rate=listing.min_hourly_rate,
        average_rating=ratings.average_rating,
        review_count=ratings.review_count,
        skills=[TutorSkillResponse.model_validate(offering) for offering in profile.tutor_skills],
    )


def _get_tutor_or_404(db: Session, tutor_id: int) -> Profile:
    tutor = db.scalar(
        select(Profile)
        .options(selectinload(Profile.tutor_skills))
        .where(Profile.id == tutor_id, Profile.user_type == UserType.TUTOR.value)
    )
    if not tutor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TUTOR_NOT_FOUND_DETAIL)
    return tutor


@router.get("/me/skills", response_model=list[TutorSkillResponse], status_code=status.HTTP_200_OK)
def list_my_skills(
    tutor: Profile = Depends(get_current_tutor_profile),
    db: Session = Depends(get_db),
) -> list[TutorSkillResponse]:
    return [TutorSkillResponse.model_validate(offering) for offering in list_tutor_skills(db, tutor.id)]


@router.get("/me/skills/available", response_model=list[SkillResponse], status_code=status.HTTP_200_OK)
def list_my_available_skills(
    tutor: Profile = Depends(get_current_tutor_profile),
    db: Session = Depends(get_db),
) -> list[SkillResponse]:
    return [SkillResponse.model_validate(skill) for skill in list_available_skills(db, tutor.id)]


@router.post("/me/skills", response_model=TutorSkillResponse, status_code=status.HTTP_201_CREATED)
def add_my_skill(
    payload: TutorSkillCreateRequest,
    tutor: Profile = Depends(get_current_tutor_profile),
    db: Session = Depends(get_db),
) -> TutorSkillResponse:
    return TutorSkillResponse.model_validate(add_tutor_skill(db=db, tutor=tutor, payload=payload))


@router.delete("/me/skills/{offering_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_my_skill(
    offering_id: int,
    tutor: Profile = Depends(get_current_tutor_profile),
    db: Session = Depends(get_db),
) -> Response:
    remove_tutor_skill(db=db, tutor=tutor, offering_id=offering_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=list[TutorResponse], status_code=status.HTTP_200_OK)
def search_tutors(
    search: str = Query(default="", max_length=100),
    subject: str = Query(default=ALL, max_length=100),
    location: str = Query(default=ALL, max_length=100),
    price_range: PriceRange = Query(default=PriceRange.ALL),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[TutorResponse]:
    tutors = db.scalars(
        select(Profile)
        .options(selectinload(Profile.tutor_skills).joinedload(TutorSkill.skill))
        .where(Profile.user_type == UserType.TUTOR.value)
        .order_by(Profile.id)
    ).all()
    profiles = {tutor.id: tutor for tutor in tutors}

    filters = TutorFilters(search=search, subject=subject, location=location, price_range=price_range)
    matches = filter_tutors((_to_listing(tutor) for tutor in tutors), filters)
    page = paginate(matches, limit, offset)
    ratings = rating_summaries(db, [listing.tutor_id for listing in page])
    return [
        _to_response(profiles[listing.tutor_id], listing, ratings.get(listing.tutor_id, NO_REVIEWS))
        for listing in page
    ]


@router.get("/{tutor_id}", response_model=TutorResponse, status_code=status.HTTP_200_OK)
def get_tutor(tutor_id: int, db: Session = Depends(get_db)) -> TutorResponse:
    tutor = _get_tutor_or_404(db, tutor_id)
    ratings = rating_summaries(db, [tutor.id]).get(tutor.id, NO_REVIEWS)
    return _to_response(tutor, _to_listing(tutor), ratings)


@router.get("/{tutor_id}/reviews", response_model=list[ReviewResponse], status_code=status.HTTP_200_OK)
def list_tutor_reviews(
    tutor_id: int,
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[ReviewResponse]:
    _get_tutor_or_404(db, tutor_id)
    reviews = db.scalars(
        select(Review)
        .options(selectinload(Review.reviewer))
        .where(Review.reviewee_id == tutor_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    return [ReviewResponse.model_validate(review) for review in reviews]
