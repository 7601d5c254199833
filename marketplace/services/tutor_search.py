from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

ALL = "all"


class PriceRange(str, Enum):
    ALL = "all"
    UNDER_50 = "under-50"
    FROM_50_TO_100 = "50-100"
    FROM_100_TO_200 = "100-200"
    OVER_200 = "over-200"


@dataclass(frozen=True)
class OfferedSkill:
    skill_id: int
    name: str
    hourly_rate: Decimal


@dataclass(frozen=True)
class TutorListing:
    tutor_id: int
    first_name: str
    last_name: str
    bio: str | None = None
    location: str | None = None
    skills: tuple[OfferedSkill, ...] = ()

    @property
    def min_hourly_rate(self) -> Decimal | None:
        if not self.skills:
            return None
        return min(skill.hourly_rate for skill in self.skills)


@dataclass(frozen=True)
class TutorFilters:
    search: str = ""
    subject: str = ALL
    location: str = ALL
    price_range: PriceRange = PriceRange.ALL


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle in haystack.lower()


def matches_search(tutor: TutorListing, term: str) -> bool:
    needle = term.strip().lower()
    if not needle:
        return True
    return (
        _contains(tutor.first_name, needle)
        or _contains(tutor.last_name, needle)
        or _contains(tutor.bio, needle)
        or any(_contains(skill.name, needle) for skill in tutor.skills)
    )


def matches_subject(tutor: TutorListing, subject: str) -> bool:
    wanted = subject.strip().lower()
    if not wanted or wanted == ALL:
        return True
    return any(str(skill.skill_id) == wanted or skill.name.lower() == wanted for skill in tutor.skills)


def matches_location(tutor: TutorListing, location: str) -> bool:
    wanted = location.strip().lower()
    if not wanted or wanted == ALL:
        return True
    return _contains(tutor.location, wanted)


def matches_price_range(tutor: TutorListing, price_range: PriceRange) -> bool:
    price_range = PriceRange(price_range)
    if price_range is PriceRange.ALL:
        return True

    min_rate = tutor.min_hourly_rate
    if min_rate is None:
        return False

    if price_range is PriceRange.UNDER_50:
        return min_rate < 50
    if price_range is PriceRange.FROM_50_TO_100:
        return 50 <= min_rate <= 100
    if price_range is PriceRange.FROM_100_TO_200:
        return 100 <= min_rate <= 200
    return min_rate > 200


def tutor_matches(tutor: TutorListing, filters: TutorFilters) -> bool:
    return (
        matches_search(tutor, filters.search)
        and matches_subject(tutor, filters.subject)
        and matches_location(tutor, filters.location)
        and matches_price_range(tutor, filters.price_range)
    )


def filter_tutors(tutors: Iterable[TutorListing], filters: TutorFilters) -> list[TutorListing]:
    return [tutor for tutor in tutors if tutor_matches(tutor, filters)]
