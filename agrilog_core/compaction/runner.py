from __future__ import annotations

import math
import random
import time
from datetime import datetime

from agrilog_core.audit.filters import ORDER_ASC, RecordFilter
from agrilog_core.audit.self_audit import ACTION_COMPACT, SelfAuditLogger
from agrilog_core.audit.transactions import transaction_scope
from agrilog_core.audit.types import OperationResult, actor_label
from agrilog_core.compaction.policy import CompactionPolicy
from agrilog_core.compaction.strategies import STRATEGIES, get_strategy
from agrilog_core.compaction.types import METHOD_SAMPLE
from agrilog_core.errors import EmptySelectionError, ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.stores.interfaces import AuditRecordStore, Transaction
from agrilog_core.time_utils import isoformat, subtract_months, utc_now

logger = get_logger(__name__)


def _resolve_policy(
    months_old: int | None,
    method: str | None,
    sample_rate: float | None,
) -> CompactionPolicy:
    defaults = CompactionPolicy.from_env()
    policy = CompactionPolicy(
        months_old=months_old if months_old is not None else defaults.months_old,
        method=method if method is not None else defaults.method,
        sample_rate=sample_rate if sample_rate is not None else defaults.sample_rate,
        max_records=defaults.max_records,
    )
    if isinstance(policy.months_old, bool) or not isinstance(policy.months_old, int):
        raise ValidationError("months_old must be an integer")
    if policy.months_old < 0:
        raise ValidationError("months_old must be zero or greater")
    if (
        isinstance(policy.sample_rate, bool)
        or not isinstance(policy.sample_rate, (int, float))
        or math.isnan(policy.sample_rate)
    ):
        raise ValidationError("sample_rate must be a number")
    if not isinstance(policy.method, str) or policy.method not in STRATEGIES:
        raise ValidationError(f"Unknown compaction method: {policy.method}")
    if policy.method == METHOD_SAMPLE and not 0 < policy.sample_rate <= 1:
        raise ValidationError("sample_rate must be greater than 0 and at most 1")
    if policy.max_records <= 0:
        raise ValidationError("AUDIT_COMPACTION_MAX_RECORDS must be positive")
    return policy


def compact_audit_trails(
    store: AuditRecordStore,
    *,
    months_old: int | None = None,
    method: str | None = None,
    sample_rate: float | None = None,
    actor_id: object = None,
    tx: Transaction | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> OperationResult:
    try:
        policy = _resolve_policy(months_old, method, sample_rate)
    except (ValidationError, ValueError, TypeError) as exc:
        return OperationResult.failure(str(exc))

    strategy = get_strategy(policy.method)
    actor = actor_label(actor_id)
    cutoff = subtract_months(now or utc_now(), policy.months_old)
    started = time.monotonic()
    try:
        with transaction_scope(store, tx) as scope:
            records = store.find(
                RecordFilter.older_than(cutoff),
                order=ORDER_ASC,
                limit=policy.max_records,
                tx=scope,
            )
            if not records:
                raise EmptySelectionError("No audit trails found to compact")

            plan = strategy(
                records,
                store=store,
                sample_rate=policy.sample_rate,
                rng=rng,
            )
            store.delete_by_ids(plan.delete_ids, tx=scope)
            store.save_all(plan.derived, tx=scope)

            original_count = len(records)
            space_saved = original_count - plan.retained_count
            SelfAuditLogger(store).log(
                action=ACTION_COMPACT,
                actor=actor,
                details={
                    "months_old": policy.months_old,
                    "cutoff_date": isoformat(cutoff),
                    "method": policy.method,
                    "sample_rate": policy.sample_rate,
                    "original_count": original_count,
                    "compacted_count": plan.compacted_count,
                    "retained_count": plan.retained_count,
                    "space_saved": space_saved,
                },
                tx=scope,
            )
    except EmptySelectionError as exc:
        logger.info(
            "Nothing to compact",
            extra={"operation": ACTION_COMPACT, "actor": actor, "cutoff": isoformat(cutoff)},
        )
        return OperationResult.failure(str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit trail compaction failed",
            extra={
                "operation": ACTION_COMPACT,
                "actor": actor,
                "method": policy.method,
                "error_message": str(exc),
            },
        )
        return OperationResult.failure(f"Failed to compact audit trails: {exc}")

    logger.info(
        "Audit trail compaction completed",
        extra={
            "operation": ACTION_COMPACT,
            "actor": actor,
            "method": policy.method,
            "cutoff": isoformat(cutoff),
            "records_selected": original_count,
            "records_deleted": len(plan.delete_ids),
            "records_created": plan.compacted_count,
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return OperationResult.success(
        "Audit trails compacted successfully",
        {
            "method": policy.method,
            "original_count": original_count,
            "compacted_count": plan.compacted_count,
            "retained_count": plan.retained_count,
            "space_saved": space_saved,
            "space_saved_pct": round(space_saved / original_count * 100, 2),
            "date_range": {
                "oldest": isoformat(records[0].timestamp),
                "newest": isoformat(records[-1].timestamp),
            },
            "method_details": plan.method_details,
        },
    )
