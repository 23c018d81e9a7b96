from agrilog_core.stores.duckdb_store import DuckDBAuditStore, DuckDBTransaction
from agrilog_core.stores.interfaces import AuditRecordStore, FieldTally, Transaction
from agrilog_core.stores.registry import get_audit_store

__all__ = [
    "AuditRecordStore",
    "DuckDBAuditStore",
    "DuckDBTransaction",
    "FieldTally",
    "Transaction",
    "get_audit_store",
]
