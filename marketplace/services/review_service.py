from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from marketplace.db.models import Review


@dataclass(frozen=True)
class RatingSummary:
    average_rating: float | None = None
    review_count: int = 0


NO_REVIEWS = RatingSummary()


def rating_summaries(db: Session, tutor_ids: list[int]) -> dict[int, RatingSummary]:
    """Average rating (one decimal) and review count per reviewee; tutors without reviews are absent."""
    if not tutor_ids:
        return {}
    rows = db.execute(
        select(Review.reviewee_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.reviewee_id.in_(tutor_ids))
        .group_by(Review.reviewee_id)
    ).all()
    return {
        reviewee_id: RatingSummary(average_rating=round(float(average), 1), review_count=count)
        for reviewee_id, average, count in rows
    }
