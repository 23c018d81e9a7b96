from __future__ import annotations

import time
from datetime import datetime

from agrilog_core.audit.filters import RecordFilter
from agrilog_core.audit.self_audit import ACTION_CLEANUP, SelfAuditLogger
from agrilog_core.audit.transactions import transaction_scope
from agrilog_core.audit.types import OperationResult, actor_label
from agrilog_core.errors import ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.retention.policy import RetentionPolicy
from agrilog_core.stores.interfaces import AuditRecordStore, Transaction
from agrilog_core.time_utils import isoformat, utc_now

logger = get_logger(__name__)


def _resolve_policy(days_to_keep: int | None, dry_run: bool | None) -> RetentionPolicy:
    defaults = RetentionPolicy.from_env()
    policy = RetentionPolicy(
        days_to_keep=days_to_keep if days_to_keep is not None else defaults.days_to_keep,
        dry_run=dry_run if dry_run is not None else defaults.dry_run,
    )
    if isinstance(policy.days_to_keep, bool) or not isinstance(policy.days_to_keep, int):
        raise ValidationError("days_to_keep must be an integer")
    if policy.days_to_keep < 0:
        raise ValidationError("days_to_keep must be zero or greater")
    return policy


def cleanup_old_audit_trails(
    store: AuditRecordStore,
    *,
    days_to_keep: int | None = None,
    dry_run: bool | None = None,
    actor_id: object = None,
    tx: Transaction | None = None,
    now: datetime | None = None,
) -> OperationResult:
    try:
        policy = _resolve_policy(days_to_keep, dry_run)
    except (ValidationError, ValueError, TypeError) as exc:
        return OperationResult.failure(str(exc))

    actor = actor_label(actor_id)
    cutoff = policy.cutoff(now or utc_now())
    started = time.monotonic()
    try:
        with transaction_scope(store, tx) as scope:
            stale = RecordFilter.older_than(cutoff)
            would_delete = store.count(stale, tx=scope)
            actually_deleted = 0
            if not policy.dry_run and would_delete > 0:
                actually_deleted = store.delete_matching(stale, tx=scope)

            SelfAuditLogger(store).log(
                action=ACTION_CLEANUP,
                actor=actor,
                details={
                    "days_to_keep": policy.days_to_keep,
                    "cutoff_date": isoformat(cutoff),
                    "dry_run": policy.dry_run,
                    "would_delete": would_delete,
                    "actually_deleted": actually_deleted,
                },
                tx=scope,
            )
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit trail cleanup failed",
            extra={"operation": ACTION_CLEANUP, "actor": actor, "error_message": str(exc)},
        )
        return OperationResult.failure(f"Failed to cleanup old audit trails: {exc}")

    logger.info(
        "Audit trail cleanup completed",
        extra={
            "operation": ACTION_CLEANUP,
            "actor": actor,
            "dry_run": policy.dry_run,
            "cutoff": isoformat(cutoff),
            "records_selected": would_delete,
            "records_deleted": actually_deleted,
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    message = (
        "Cleanup simulation completed successfully"
        if policy.dry_run
        else "Cleanup completed successfully"
    )
    return OperationResult.success(
        message,
        {
            "cutoff": isoformat(cutoff),
            "days_to_keep": policy.days_to_keep,
            "dry_run": policy.dry_run,
            "would_delete": would_delete,
            "actually_deleted": actually_deleted,
        },
    )
