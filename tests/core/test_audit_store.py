from datetime import datetime, timedelta, timezone

import pytest

from agrilog_core.audit.filters import ORDER_DESC, RecordFilter
from agrilog_core.errors import StoreError, ValidationError
from agrilog_core.stores.duckdb_store import DuckDBAuditStore
from agrilog_core.time_utils import utc_now


def test_create_returns_unsaved_draft(store):
    draft = store.create(action="user_login", actor="User 1", details={"ip_address": "10.0.0.1"})
    assert draft.id is None
    assert store.count() == 0

    saved = store.save(draft)
    assert saved.id is not None
    assert store.count() == 1

    [loaded] = store.find()
    assert loaded.action == "user_login"
    assert loaded.details == {"ip_address": "10.0.0.1"}
    assert loaded.timestamp.tzinfo is not None


def test_save_rejects_stored_record(store):
    saved = store.save(store.create(action="user_login", actor="User 1"))
    with pytest.raises(ValidationError):
        store.save(saved)


def test_find_orders_and_filters(store, seed):
    now = utc_now()
    seed("user_login", when=now - timedelta(days=3))
    seed("user_logout", when=now - timedelta(days=2), actor="User 2")
    seed("data_update", when=now - timedelta(days=1))

    records = store.find()
    assert [record.action for record in records] == ["user_login", "user_logout", "data_update"]

    newest_first = store.find(order=ORDER_DESC, limit=2)
    assert [record.action for record in newest_first] == ["data_update", "user_logout"]

    older = store.find(RecordFilter.older_than(now - timedelta(days=2, hours=12)))
    assert [record.action for record in older] == ["user_login"]

    by_actor = store.find(RecordFilter().with_actor("User 2"))
    assert [record.action for record in by_actor] == ["user_logout"]

    by_keyword = store.find(RecordFilter().with_action_keywords(["LOG"]))
    assert {record.action for record in by_keyword} == {"user_login", "user_logout"}

    by_action = store.find(RecordFilter().with_actions(["data_update", "missing"]))
    assert [record.action for record in by_action] == ["data_update"]


def test_delete_by_ids_reports_affected_rows(store, seed):
    seed("user_login", count=4)
    ids = [record.id for record in store.find()][:3]
    assert store.delete_by_ids(ids) == 3
    assert store.delete_by_ids([]) == 0
    assert store.count() == 1


def test_delete_matching_requires_filter(store, seed):
    seed("user_login", count=2)
    with pytest.raises(ValidationError):
        store.delete_matching(RecordFilter())
    assert store.count() == 2


def test_tally_orders_by_count(store, seed):
    seed("user_login", count=3)
    seed("data_update", count=3)
    seed("user_logout", count=1)

    tallies = store.tally("action")
    assert [(item.value, item.count) for item in tallies] == [
        ("data_update", 3),
        ("user_login", 3),
        ("user_logout", 1),
    ]
    assert len(store.tally("action", limit=1)) == 1

    with pytest.raises(ValidationError):
        store.tally("details")


def test_prefix_filters(store, seed):
    seed("user_login", actor="User 1")
    seed("system_sync", actor="User 2")
    seed("backup_run", actor="System")

    users = store.find(RecordFilter().with_actor_prefix("User "))
    assert sorted(record.actor for record in users) == ["User 1", "User 2"]
    others = store.find(RecordFilter().without_actor_prefix("User "))
    assert [record.actor for record in others] == ["System"]
    non_system = RecordFilter().with_actor_prefix("User ").without_action_prefix("system_")
    assert [record.action for record in store.find(non_system)] == ["user_login"]


def test_tally_time_buckets(store, seed):
    monday = datetime(2024, 3, 4, 9, 15, tzinfo=timezone.utc)
    seed("user_login", when=monday, count=2, step=timedelta(minutes=10))
    seed("user_login", when=monday + timedelta(days=3, hours=5))
    seed("user_login", when=monday + timedelta(days=28))

    def buckets(field):
        return sorted((item.value, item.count) for item in store.tally(field))

    assert buckets("hour") == [("14", 1), ("9", 3)]
    assert buckets("hour_period") == [
        ("2024-03-04 09:00:00", 2),
        ("2024-03-07 14:00:00", 1),
        ("2024-04-01 09:00:00", 1),
    ]
    assert buckets("day") == [("2024-03-04", 2), ("2024-03-07", 1), ("2024-04-01", 1)]
    assert buckets("week") == [("2024-03-04", 3), ("2024-04-01", 1)]
    assert buckets("month") == [("2024-03-01", 3), ("2024-04-01", 1)]


def test_rolled_back_transaction_discards_writes(store, seed):
    seed("user_login", count=2)
    tx = store.begin()
    store.delete_matching(RecordFilter.older_than(utc_now() + timedelta(days=1)), tx=tx)
    assert store.count(tx=tx) == 0
    tx.rollback()
    tx.release()
    assert store.count() == 2


def test_committed_transaction_is_visible(store):
    tx = store.begin()
    store.save(store.create(action="user_login", actor="User 1"), tx=tx)
    tx.commit()
    tx.release()
    assert store.count() == 1


def test_released_transaction_cannot_be_reused(store):
    tx = store.begin()
    tx.commit()
    tx.release()
    with pytest.raises(StoreError):
        store.count(tx=tx)


def test_store_persists_across_reopen(tmp_path):
    path = str(tmp_path / "nested" / "audit.duckdb")
    first = DuckDBAuditStore(path)
    first.save(first.create(action="user_login", actor="User 1"))
    first.close()

    second = DuckDBAuditStore(path)
    try:
        assert second.count() == 1
        second.save(second.create(action="user_logout", actor="User 1"))
        assert sorted(record.id for record in second.find()) == [1, 2]
    finally:
        second.close()
