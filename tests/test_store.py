from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from raffle.models import Participant


def test_add_if_absent_never_updates(store, db):
    first, created = store.add_if_absent("09121111111", "9", datetime(2025, 3, 1, 19, 0))
    again, created_again = store.add_if_absent(
        "09121111111", "9", datetime(2025, 3, 2, 20, 0), channel_joined=True
    )

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert again.received_at == datetime(2025, 3, 1, 19, 0)
    assert again.channel_joined is False
    assert db.query(Participant).count() == 1


def test_phone_is_unique_at_table_level(db):
    db.add(Participant(phone="09121111111", code="9", received_at=datetime(2025, 3, 1)))
    db.commit()
    db.add(Participant(phone="09121111111", code="9", received_at=datetime(2025, 3, 2)))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_lost_insert_race_returns_existing(store, db, monkeypatch):
    existing, _ = store.add_if_absent("09121111111", "9", datetime(2025, 3, 1, 19, 0))

    # Simulate the row appearing between the lookup and the insert
    lookups = iter([None, existing])
    monkeypatch.setattr(store, "get_by_phone", lambda phone: next(lookups))

    participant, created = store.add_if_absent("09121111111", "9", datetime(2025, 3, 1, 19, 5))

    assert created is False
    assert participant.id == existing.id
    assert db.query(Participant).count() == 1


def test_list_newest_first(store, add_participant):
    add_participant("A", received_at=datetime(2025, 3, 1, 19, 0))
    add_participant("B", received_at=datetime(2025, 3, 1, 20, 0))
    add_participant("C", received_at=datetime(2025, 3, 1, 19, 30))

    assert [p.phone for p in store.list_participants()] == ["B", "C", "A"]


def test_list_time_range_is_inclusive(store, add_participant):
    add_participant("A", received_at=datetime(2025, 3, 1, 18, 59))
    add_participant("B", received_at=datetime(2025, 3, 1, 19, 0))
    add_participant("C", received_at=datetime(2025, 3, 1, 20, 0))
    add_participant("D", received_at=datetime(2025, 3, 1, 21, 1))

    result = store.list_participants(
        start=datetime(2025, 3, 1, 19, 0),
        end=datetime(2025, 3, 1, 20, 0),
    )
    assert [p.phone for p in result] == ["C", "B"]

    assert [p.phone for p in store.list_participants(start=datetime(2025, 3, 1, 20, 0))] == ["D", "C"]


def test_mark_channel_joined_only_sets(store, add_participant):
    a = add_participant("A")
    b = add_participant("B", channel_joined=True)

    assert store.mark_channel_joined([a.id, b.id]) == 1
    assert store.list_not_joined() == []
    assert store.mark_channel_joined([]) == 0


def test_clear_winners_resets_everyone(store, add_participant):
    a = add_participant("A")
    add_participant("B")
    with store.atomic():
        assert store.mark_winners([a.id]) == 1

    assert [p.phone for p in store.list_winners()] == ["A"]
    store.clear_winners()
    assert store.list_winners() == []


def test_list_bounds_with_offset_are_compared_in_utc(store, add_participant):
    add_participant("A", received_at=datetime(2025, 3, 1, 10, 0))
    tehran = timezone(timedelta(hours=3, minutes=30))

    # 12:00+03:30 is 08:30 UTC, before A arrived
    assert [p.phone for p in store.list_participants(start=datetime(2025, 3, 1, 12, 0, tzinfo=tehran))] == ["A"]
    # 13:00+03:30 is 09:30 UTC
    assert store.list_participants(end=datetime(2025, 3, 1, 13, 0, tzinfo=tehran)) == []
