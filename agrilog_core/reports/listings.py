from __future__ import annotations

from datetime import datetime, timedelta

from agrilog_core.audit.filters import RecordFilter
from agrilog_core.audit.types import OperationResult
from agrilog_core.errors import ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.reports.rules import (
    ACTION_CATEGORIES,
    ACTION_CATEGORY_RULES,
    ACTOR_CATEGORIES,
    ACTOR_CATEGORY_RULES,
    classify,
)
from agrilog_core.reports.scoring import round_half_up
from agrilog_core.stores.interfaces import AuditRecordStore, FieldTally
from agrilog_core.time_utils import isoformat, start_of_day, utc_now

logger = get_logger(__name__)

TOP_N = 10
ACTOR_DETAIL_COUNT = 10
ACTOR_TOP_ACTIONS = 5
DAYS_PER_MONTH = 30

# (exclusive lower bound, level), highest first.
ACTIVITY_LEVELS = (
    (1000, "very-high"),
    (100, "high"),
    (10, "medium"),
)


def positive_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def activity_level(count: int) -> str:
    for threshold, level in ACTIVITY_LEVELS:
        if count > threshold:
            return level
    return "low"


def monthly_frequency(count: int, first_seen: datetime, now: datetime) -> str:
    elapsed_days = max((now - first_seen).total_seconds() / 86400, 1.0)
    per_month = round_half_up(count / (elapsed_days / DAYS_PER_MONTH))
    return f"Approx. {per_month} times per month"


def ranked_tallies(tallies: list[FieldTally], label: str) -> list[dict[str, object]]:
    return [{label: item.value, "count": item.count} for item in tallies]


def get_audit_trail_stats(
    store: AuditRecordStore,
    *,
    now: datetime | None = None,
) -> OperationResult:
    now = now or utc_now()
    try:
        stats = {
            "total_count": store.count(),
            "today_count": store.count(RecordFilter.between(start_of_day(now))),
            "last_week_count": store.count(
                RecordFilter.between(now - timedelta(days=7))
            ),
            "top_actions": ranked_tallies(store.tally("action", limit=TOP_N), "action"),
            "top_actors": ranked_tallies(store.tally("actor", limit=TOP_N), "actor"),
        }
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit trail statistics failed", extra={"error_message": str(exc)}
        )
        return OperationResult.failure(
            f"Failed to retrieve audit trail statistics: {exc}"
        )
    return OperationResult.success(
        "Audit trail statistics retrieved successfully", {"stats": stats}
    )


def get_actions_list(
    store: AuditRecordStore,
    *,
    limit: int = 100,
    now: datetime | None = None,
) -> OperationResult:
    try:
        positive_int("limit", limit)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))
    now = now or utc_now()
    try:
        tallies = store.tally("action", limit=limit)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Actions list failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve actions list: {exc}")

    actions = [
        {
            "action": item.value,
            "count": item.count,
            "first_occurrence": isoformat(item.first_seen),
            "last_occurrence": isoformat(item.last_seen),
            "frequency": monthly_frequency(item.count, item.first_seen, now),
        }
        for item in tallies
    ]
    categorized: dict[str, list[dict[str, object]]] = {
        category: [] for category in ACTION_CATEGORIES
    }
    for entry in actions:
        category = classify(ACTION_CATEGORY_RULES, str(entry["action"]), default="other")
        categorized[category or "other"].append(entry)

    totals = {"total_unique_actions": len(actions)}
    totals.update({category: len(items) for category, items in categorized.items()})
    return OperationResult.success(
        "Actions list retrieved successfully",
        {"actions": actions, "categorized": categorized, "totals": totals},
    )


def get_actors_list(
    store: AuditRecordStore,
    *,
    limit: int = 100,
) -> OperationResult:
    try:
        positive_int("limit", limit)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))
    try:
        tallies = store.tally("actor", limit=limit)
        actor_details = [
            {
                "actor": item.value,
                "top_actions": ranked_tallies(
                    store.tally(
                        "action",
                        RecordFilter().with_actor(item.value),
                        limit=ACTOR_TOP_ACTIONS,
                    ),
                    "action",
                ),
            }
            for item in tallies[:ACTOR_DETAIL_COUNT]
        ]
    except Exception as exc:  # noqa: BLE001
        logger.exception("Actors list failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve actors list: {exc}")

    actors = [
        {
            "actor": item.value,
            "count": item.count,
            "first_activity": isoformat(item.first_seen),
            "last_activity": isoformat(item.last_seen),
            "activity_level": activity_level(item.count),
        }
        for item in tallies
    ]
    categorized: dict[str, list[dict[str, object]]] = {
        category: [] for category in ACTOR_CATEGORIES
    }
    for entry in actors:
        category = classify(ACTOR_CATEGORY_RULES, str(entry["actor"]), default="unknown")
        categorized[category or "unknown"].append(entry)

    totals = {"total_unique_actors": len(actors)}
    totals.update({category: len(items) for category, items in categorized.items()})
    return OperationResult.success(
        "Actors list retrieved successfully",
        {
            "actors": actors,
            "categorized": categorized,
            "actor_details": actor_details,
            "totals": totals,
        },
    )
