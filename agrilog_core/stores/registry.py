from __future__ import annotations

from agrilog_core.config import AuditConfig
from agrilog_core.stores.duckdb_store import DuckDBAuditStore
from agrilog_core.stores.interfaces import AuditRecordStore


def get_audit_store(config: AuditConfig | None = None) -> AuditRecordStore:
    config = config or AuditConfig.from_env()
    backend = config.store_backend.strip().lower()
    if backend != "duckdb":
        raise ValueError(f"Unsupported audit store backend: {backend}")
    return DuckDBAuditStore(config.db_path)
