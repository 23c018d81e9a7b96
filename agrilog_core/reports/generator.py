from __future__ import annotations

import time
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Callable, Sequence

from agrilog_core.audit.filters import ORDER_DESC, RecordFilter
from agrilog_core.audit.rollups import rank_counts
from agrilog_core.audit.types import AuditRecord, OperationResult
from agrilog_core.errors import ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.reports.rules import (
    COMPLIANCE_ACTIONS,
    COMPLIANCE_CATEGORIES,
    COMPLIANCE_RULES,
    FAILED_LOGINS,
    INCIDENT_BUCKETS,
    INCIDENT_RULES,
    PERMISSION_CHANGES,
    SECURITY_KEYWORDS,
    SECURITY_SETTINGS,
    SUSPICIOUS_ACTIVITY,
    UNAUTHORIZED_ACCESS,
    action_risk,
    classify,
)
from agrilog_core.reports.scoring import assess_risk, compliance_score
from agrilog_core.stores.interfaces import AuditRecordStore
from agrilog_core.time_utils import day_key, isoformat, parse_date, utc_now

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 30
# Average daily activity is always divided by this, whatever the queried range.
AVERAGE_DAILY_DIVISOR = 30
SUMMARY_LIMIT = 1000
DETAILED_LIMIT = 5000
COMPLIANCE_LIMIT = 5000
SECURITY_LIMIT = 5000
TOP_N = 10
TIMELINE_LENGTH = 50

REPORT_SUMMARY = "summary"
REPORT_DETAILED = "detailed"
REPORT_COMPLIANCE = "compliance"
REPORT_SECURITY = "security"


def resolve_date_range(
    start_date: str | date | datetime | None,
    end_date: str | date | datetime | None,
    *,
    now: datetime,
) -> RecordFilter:
    if start_date and end_date:
        try:
            since = parse_date(start_date)
            until = parse_date(end_date) + timedelta(days=1)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid report date range: {exc}") from exc
        if until < since:
            raise ValidationError("end_date must not be before start_date")
        return RecordFilter.between(since, until)
    return RecordFilter.between(now - timedelta(days=DEFAULT_WINDOW_DAYS))


def _metadata(
    records: Sequence[AuditRecord],
    window: RecordFilter,
    limit: int,
) -> dict[str, object]:
    return {
        "record_count": len(records),
        "truncated": len(records) >= limit,
        "date_range": {
            "start": isoformat(window.since) if window.since else None,
            "end": isoformat(window.until) if window.until else None,
        },
    }


def build_summary_report(
    store: AuditRecordStore,
    window: RecordFilter,
) -> dict[str, object]:
    records = store.find(window, order=ORDER_DESC, limit=SUMMARY_LIMIT)
    total = len(records)
    daily = Counter(day_key(record.timestamp) for record in records)
    return {
        "type": REPORT_SUMMARY,
        "metadata": _metadata(records, window, SUMMARY_LIMIT),
        "statistics": {
            "total_activities": total,
            "unique_actors": len({record.actor for record in records}),
            "unique_actions": len({record.action for record in records}),
            "average_daily": total / AVERAGE_DAILY_DIVISOR,
        },
        "top_actions": rank_counts(
            (record.action for record in records), label="action", limit=TOP_N
        ),
        "top_actors": rank_counts(
            (record.actor for record in records), label="actor", limit=TOP_N
        ),
        "daily_activity": [
            {"date": day, "count": daily[day]} for day in sorted(daily)
        ],
    }


def build_detailed_report(
    store: AuditRecordStore,
    window: RecordFilter,
) -> dict[str, object]:
    records = store.find(window, order=ORDER_DESC, limit=DETAILED_LIMIT)
    return {
        "type": REPORT_DETAILED,
        "metadata": _metadata(records, window, DETAILED_LIMIT),
        "activities": [record.to_dict() for record in records],
    }


def build_compliance_report(
    store: AuditRecordStore,
    window: RecordFilter,
) -> dict[str, object]:
    records = store.find(
        window.with_actions(COMPLIANCE_ACTIONS),
        order=ORDER_DESC,
        limit=COMPLIANCE_LIMIT,
    )
    categories: dict[str, list[dict[str, object]]] = {
        category: [] for category in COMPLIANCE_CATEGORIES
    }
    for record in records:
        category = classify(COMPLIANCE_RULES, record.action)
        if category is not None:
            categories[category].append(record.to_dict())

    counts = {category: len(items) for category, items in categories.items()}
    metrics: dict[str, object] = {"total_compliance_events": len(records)}
    metrics.update({f"{category}_events": counts[category] for category in COMPLIANCE_CATEGORIES})
    metrics["unique_users"] = len({record.actor for record in records})
    return {
        "type": REPORT_COMPLIANCE,
        "metadata": _metadata(records, window, COMPLIANCE_LIMIT),
        "categories": categories,
        "metrics": metrics,
        "compliance_score": compliance_score(counts, len(records)),
    }


def build_security_report(
    store: AuditRecordStore,
    window: RecordFilter,
) -> dict[str, object]:
    records = store.find(
        window.with_action_keywords(SECURITY_KEYWORDS),
        order=ORDER_DESC,
        limit=SECURITY_LIMIT,
    )
    incidents: dict[str, list[dict[str, object]]] = {
        bucket: [] for bucket in INCIDENT_BUCKETS
    }
    for record in records:
        bucket = classify(INCIDENT_RULES, record.action, record.details)
        if bucket is not None:
            incidents[bucket].append(record.to_dict())

    metrics = {
        "total_security_events": len(records),
        "failed_login_attempts": len(incidents[FAILED_LOGINS]),
        "unauthorized_access_attempts": len(incidents[UNAUTHORIZED_ACCESS]),
        "permission_changes": len(incidents[PERMISSION_CHANGES]),
        "security_setting_changes": len(incidents[SECURITY_SETTINGS]),
        "suspicious_activities": len(incidents[SUSPICIOUS_ACTIVITY]),
        "unique_source_ips": len(
            {str(record.details.get("ip_address") or "unknown") for record in records}
        ),
    }
    return {
        "type": REPORT_SECURITY,
        "metadata": _metadata(records, window, SECURITY_LIMIT),
        "incidents": incidents,
        "metrics": metrics,
        "risk_assessment": assess_risk(metrics).to_dict(),
        "timeline": [
            {
                "timestamp": isoformat(record.timestamp),
                "action": record.action,
                "actor": record.actor,
                "risk": action_risk(record.action),
            }
            for record in records[:TIMELINE_LENGTH]
        ],
    }


REPORT_BUILDERS: dict[str, Callable[[AuditRecordStore, RecordFilter], dict[str, object]]] = {
    REPORT_SUMMARY: build_summary_report,
    REPORT_DETAILED: build_detailed_report,
    REPORT_COMPLIANCE: build_compliance_report,
    REPORT_SECURITY: build_security_report,
}


def generate_audit_report(
    store: AuditRecordStore,
    report_type: str = REPORT_SUMMARY,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
    *,
    now: datetime | None = None,
) -> OperationResult:
    builder = REPORT_BUILDERS.get(report_type) if isinstance(report_type, str) else None
    if builder is None:
        return OperationResult.failure(f"Unknown report type: {report_type}")
    try:
        window = resolve_date_range(start_date, end_date, now=now or utc_now())
    except ValidationError as exc:
        return OperationResult.failure(str(exc))

    started = time.monotonic()
    try:
        report = builder(store, window)
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit report generation failed",
            extra={"report_type": report_type, "error_message": str(exc)},
        )
        return OperationResult.failure(f"Failed to generate audit report: {exc}")

    logger.info(
        "Audit report generated",
        extra={
            "report_type": report_type,
            "records_selected": report["metadata"]["record_count"],
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    report["generated_at"] = isoformat(utc_now())
    return OperationResult.success("Audit report generated successfully", report)
