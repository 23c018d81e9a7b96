from __future__ import annotations

from typing import Any, Mapping

from agrilog_core.audit.types import AuditRecord
from agrilog_core.logging import get_logger
from agrilog_core.stores.interfaces import AuditRecordStore, Transaction

logger = get_logger(__name__)

ACTION_CLEANUP = "cleanup_old_audit_trails"
ACTION_COMPACT = "compact_audit_trails"
ACTION_ARCHIVE = "archive_audit_trails"


class SelfAuditLogger:
    """Write the meta-record that describes a lifecycle operation.

    The record joins the operation's transaction so it commits or rolls back
    with the work it describes. Failing to write it never fails the
    operation.
    """

    def __init__(self, store: AuditRecordStore) -> None:
        self._store = store

    def log(
        self,
        *,
        action: str,
        actor: str,
        details: Mapping[str, Any],
        tx: Transaction | None = None,
    ) -> AuditRecord | None:
        try:
            record = self._store.create(action=action, actor=actor, details=details)
            return self._store.save(record, tx=tx)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Self-audit record could not be written",
                extra={"operation": action, "actor": actor, "error_message": str(exc)},
            )
            return None
