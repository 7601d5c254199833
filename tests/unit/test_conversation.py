from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from itertools import permutations

import pytest

from marketplace.services.conversation import ConversationThread

BASE = datetime(2026, 11, 2, 14, 0, tzinfo=UTC)


@dataclass
class StoredMessage:
    id: int
    booking_id: int
    created_at: datetime
    content: str = ""


MESSAGES = [StoredMessage(id=index + 1, booking_id=5, created_at=BASE + timedelta(seconds=index)) for index in range(3)]


@pytest.mark.parametrize("arrival", list(permutations(MESSAGES)))
def test_thread_orders_by_timestamp_regardless_of_arrival(arrival):
    thread = ConversationThread(5, arrival)

    timestamps = [message.created_at for message in thread.messages]
    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == 3
    assert thread.messages[-1] is MESSAGES[-1]


def test_duplicate_message_is_ignored():
    thread = ConversationThread(5, MESSAGES[:2])

    echo = StoredMessage(id=2, booking_id=5, created_at=BASE + timedelta(seconds=1), content="pushed copy")

    assert thread.add(echo) is False
    assert len(thread) == 2
    assert 2 in thread
    assert thread.messages[-1].content == ""


def test_same_timestamp_breaks_tie_by_id():
    later_id = StoredMessage(id=9, booking_id=5, created_at=BASE)
    earlier_id = StoredMessage(id=3, booking_id=5, created_at=BASE)

    thread = ConversationThread(5, [later_id, earlier_id])

    assert [message.id for message in thread.messages] == [3, 9]


def test_naive_timestamps_are_treated_as_utc():
    naive = StoredMessage(id=1, booking_id=5, created_at=datetime(2026, 11, 2, 14, 0, 30))
    aware = StoredMessage(id=2, booking_id=5, created_at=BASE)

    thread = ConversationThread(5, [naive, aware])

    assert [message.id for message in thread.messages] == [2, 1]


def test_extend_returns_only_new_messages():
    thread = ConversationThread(5, MESSAGES[:1])

    added = thread.extend(MESSAGES)

    assert added == MESSAGES[1:]


def test_message_from_another_booking_is_rejected():
    thread = ConversationThread(5)

    with pytest.raises(ValueError):
        thread.add(StoredMessage(id=1, booking_id=6, created_at=BASE))
    assert len(thread) == 0
