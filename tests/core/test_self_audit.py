from datetime import timedelta

import pytest

from agrilog_core.audit.filters import RecordFilter
from agrilog_core.audit.self_audit import ACTION_CLEANUP, SelfAuditLogger
from agrilog_core.audit.transactions import transaction_scope
from agrilog_core.errors import StoreError
from agrilog_core.retention.cleanup import cleanup_old_audit_trails
from agrilog_core.stores.duckdb_store import DuckDBAuditStore
from agrilog_core.time_utils import utc_now


class _NoSelfAuditStore(DuckDBAuditStore):
    def create(self, *, action, actor, details=None, timestamp=None):
        if action == ACTION_CLEANUP:
            raise StoreError("audit table locked")
        return super().create(action=action, actor=actor, details=details, timestamp=timestamp)


def test_logger_writes_meta_record(store):
    saved = SelfAuditLogger(store).log(
        action=ACTION_CLEANUP, actor="User 1", details={"dry_run": True}
    )
    assert saved is not None
    assert saved.id is not None
    [record] = store.find()
    assert record.details == {"dry_run": True}


def test_self_audit_failure_does_not_fail_operation(tmp_path, caplog):
    store = _NoSelfAuditStore(str(tmp_path / "audit.duckdb"))
    try:
        store.save(
            store.create(
                action="user_login",
                actor="User 1",
                timestamp=utc_now() - timedelta(days=100),
            )
        )
        with caplog.at_level("WARNING"):
            result = cleanup_old_audit_trails(store, days_to_keep=30, dry_run=False, actor_id=1)

        assert result.status is True
        assert result.data["actually_deleted"] == 1
        assert store.count() == 0
        assert "Self-audit record could not be written" in caplog.text
    finally:
        store.close()


def test_transaction_scope_commits_owned_transaction(store):
    with transaction_scope(store) as tx:
        store.save(store.create(action="user_login", actor="User 1"), tx=tx)
    assert store.count() == 1


def test_transaction_scope_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with transaction_scope(store) as tx:
            store.save(store.create(action="user_login", actor="User 1"), tx=tx)
            raise RuntimeError("boom")
    assert store.count(RecordFilter().with_actions(["user_login"])) == 0
