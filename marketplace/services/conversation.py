from datetime import UTC, datetime
from itertools import count
from typing import Iterable, Protocol


class ThreadMessage(Protocol):
    id: int
    booking_id: int
    created_at: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps for values stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ConversationThread:
    """Ordered, de-duplicated view of one booking's messages.

    Messages are ordered by creation time, then id, then arrival order. A
    message whose id is already in the thread is ignored, so an optimistic
    local echo and the pushed copy of the same row render once.
    """

    def __init__(self, booking_id: int, messages: Iterable[ThreadMessage] = ()) -> None:
        self.booking_id = booking_id
        self._sequence = count()
        self._entries: dict[int, tuple[tuple[datetime, int, int], ThreadMessage]] = {}
        for message in messages:
            self.add(message)

    def add(self, message: ThreadMessage) -> bool:
        if message.booking_id != self.booking_id:
            raise ValueError(
                f"Message {message.id} belongs to booking {message.booking_id}, not {self.booking_id}"
            )
        if message.id in self._entries:
            return False
        sort_key = (_as_utc(message.created_at), message.id, next(self._sequence))
        self._entries[message.id] = (sort_key, message)
        return True

    def extend(self, messages: Iterable[ThreadMessage]) -> list[ThreadMessage]:
        return [message for message in messages if self.add(message)]

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def messages(self) -> list[ThreadMessage]:
        return [message for _, message in sorted(self._entries.values(), key=lambda entry: entry[0])]
