from agrilog_core.audit.filters import ORDER_ASC, ORDER_DESC, RecordFilter
from agrilog_core.audit.types import (
    SYSTEM_ACTOR,
    AuditRecord,
    OperationResult,
    actor_label,
)

__all__ = [
    "ORDER_ASC",
    "ORDER_DESC",
    "SYSTEM_ACTOR",
    "AuditRecord",
    "OperationResult",
    "RecordFilter",
    "actor_label",
]
