from typing import Annotated, Sequence, TypeVar

from fastapi import Query

T = TypeVar("T")

LimitParam = Annotated[int, Query(ge=1, le=100)]
OffsetParam = Annotated[int, Query(ge=0)]


def paginate(items: Sequence[T], limit: int, offset: int) -> list[T]:
    """Slice an already filtered in-memory result set."""
    return list(items[offset : offset + limit])
