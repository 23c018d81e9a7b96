import os
from datetime import datetime, timedelta
from typing import Any, Callable, Iterator

import pytest

from agrilog_core.stores.duckdb_store import DuckDBAuditStore
from agrilog_core.time_utils import utc_now


@pytest.fixture(autouse=True)
def _audit_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    def set_default(name: str, value: str) -> None:
        if not os.getenv(name):
            monkeypatch.setenv(name, value)

    set_default("ENV", "test")
    set_default("LOG_LEVEL", "INFO")
    set_default("AUDIT_STORE_BACKEND", "duckdb")
    set_default("AUDIT_DB_PATH", ":memory:")
    set_default("ARCHIVE_ROOT", str(tmp_path / "audit_archives"))
    set_default("EXPORT_ROOT", str(tmp_path / "audit_trails"))
    for name in (
        "AUDIT_RETENTION_DAYS",
        "AUDIT_RETENTION_DRY_RUN",
        "AUDIT_COMPACTION_MONTHS_OLD",
        "AUDIT_COMPACTION_METHOD",
        "AUDIT_COMPACTION_SAMPLE_RATE",
        "AUDIT_COMPACTION_MAX_RECORDS",
        "AUDIT_ARCHIVE_MONTHS_OLD",
        "AUDIT_ARCHIVE_FORMAT",
        "AUDIT_ARCHIVE_COMPRESS",
        "AUDIT_ARCHIVE_MAX_RECORDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path) -> Iterator[DuckDBAuditStore]:
    audit_store = DuckDBAuditStore(str(tmp_path / "audit.duckdb"))
    yield audit_store
    audit_store.close()


@pytest.fixture
def seed(store: DuckDBAuditStore) -> Callable[..., int]:
    def _seed(
        action: str,
        *,
        actor: str = "User 1",
        when: datetime | None = None,
        count: int = 1,
        step: timedelta = timedelta(0),
        details: dict[str, Any] | None = None,
    ) -> int:
        start = when or utc_now()
        drafts = [
            store.create(
                action=action,
                actor=actor,
                details=details or {},
                timestamp=start - step * idx,
            )
            for idx in range(count)
        ]
        return store.save_all(drafts)

    return _seed
