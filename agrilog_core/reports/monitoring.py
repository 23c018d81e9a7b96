from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from agrilog_core.audit.filters import ORDER_DESC, RecordFilter
from agrilog_core.audit.rollups import rank_counts
from agrilog_core.audit.types import AuditRecord, OperationResult, actor_label
from agrilog_core.errors import ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.reports.listings import positive_int, ranked_tallies
from agrilog_core.reports.rules import (
    STARTUP_MARKERS,
    SYSTEM_ACTIVITY_CATEGORIES,
    SYSTEM_ACTIVITY_RULES,
    classify,
)
from agrilog_core.reports.scoring import round_half_up
from agrilog_core.stores.interfaces import AuditRecordStore
from agrilog_core.time_utils import add_months, day_key, isoformat, utc_now

logger = get_logger(__name__)

SUMMARY_ACTOR_LIMIT = 20
BUSIEST_HOURS_LIMIT = 5
PERIOD_DETAIL_COUNT = 5
PERIOD_TOP_N = 3
SYSTEM_ACTIVITY_LIMIT = 1000
SYSTEM_USER_ACTIVITY_LIMIT = 500
USER_ACTIVITY_LIMIT = 1000
ERROR_DETAIL_COUNT = 10
TOP_ACTIONS = 10
TREND_CHANGE_PCT = 20

USER_ACTOR_PREFIX = "User "
SYSTEM_ACTION_PREFIX = "system_"

# (exclusive lower bound on actions per day, level), highest first.
DAILY_ACTIVITY_LEVELS = (
    (50, "very-high"),
    (20, "high"),
    (5, "medium"),
    (1, "low"),
)


@dataclass(frozen=True)
class Timeframe:
    tally_field: str
    key_format: str
    step: Callable[[datetime], datetime]

    def window(self, period: str) -> RecordFilter:
        start = datetime.strptime(period, self.key_format).replace(tzinfo=timezone.utc)
        return RecordFilter(since=start, before=self.step(start))


TIMEFRAMES = {
    "hourly": Timeframe(
        "hour_period", "%Y-%m-%d %H:%M:%S", lambda start: start + timedelta(hours=1)
    ),
    "daily": Timeframe("day", "%Y-%m-%d", lambda start: start + timedelta(days=1)),
    "weekly": Timeframe("week", "%Y-%m-%d", lambda start: start + timedelta(days=7)),
    "monthly": Timeframe("month", "%Y-%m-%d", lambda start: add_months(start, 1)),
}


def daily_activity_level(count: int, days: int) -> str:
    average = count / days
    for threshold, level in DAILY_ACTIVITY_LEVELS:
        if average > threshold:
            return level
    return "very-low"


def activity_trend(records: Sequence[AuditRecord]) -> str:
    """Compare the first and last active day of the selection."""
    if len(records) < 2:
        return "insufficient-data"
    daily = Counter(day_key(record.timestamp) for record in records)
    days = sorted(daily)
    if len(days) < 2:
        return "stable"
    first, last = daily[days[0]], daily[days[-1]]
    change = (last - first) / first * 100
    if change > TREND_CHANGE_PCT:
        return "increasing"
    if change < -TREND_CHANGE_PCT:
        return "decreasing"
    return "stable"


def system_uptime(events: Sequence[AuditRecord], now: datetime) -> str:
    for record in sorted(events, key=lambda item: item.timestamp, reverse=True):
        action = record.action.lower()
        if any(marker in action for marker in STARTUP_MARKERS):
            elapsed = max(int((now - record.timestamp).total_seconds()), 0)
            days, rest = divmod(elapsed, 86400)
            hours, rest = divmod(rest, 3600)
            return f"{days}d {hours}h {rest // 60}m"
    return "Unknown"


def _rate(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def get_audit_trail_summary(
    store: AuditRecordStore,
    *,
    days: int = 30,
    now: datetime | None = None,
) -> OperationResult:
    try:
        positive_int("days", days)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))

    now = now or utc_now()
    window = RecordFilter.between(now - timedelta(days=days))
    try:
        daily = sorted(store.tally("day", window), key=lambda item: item.value)
        summary = {
            "period_days": days,
            "total_count": store.count(window),
            "action_summary": ranked_tallies(store.tally("action", window), "action"),
            "actor_summary": ranked_tallies(
                store.tally("actor", window, limit=SUMMARY_ACTOR_LIMIT), "actor"
            ),
            "daily_activity": [{"date": item.value, "count": item.count} for item in daily],
            "busiest_hours": [
                {"hour": int(item.value), "count": item.count}
                for item in store.tally("hour", window, limit=BUSIEST_HOURS_LIMIT)
            ],
        }
    except Exception as exc:  # noqa: BLE001
        logger.exception("Audit trail summary failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve audit trail summary: {exc}")
    return OperationResult.success(
        "Audit trail summary retrieved successfully", {"summary": summary}
    )


def get_audit_trail_activity(
    store: AuditRecordStore,
    *,
    timeframe: str = "hourly",
    limit: int = 24,
) -> OperationResult:
    frame = TIMEFRAMES.get(timeframe) if isinstance(timeframe, str) else None
    if frame is None:
        return OperationResult.failure(f"Unknown timeframe: {timeframe}")
    try:
        positive_int("limit", limit)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))

    try:
        periods = sorted(
            store.tally(frame.tally_field), key=lambda item: item.value, reverse=True
        )[:limit]
        activity: list[dict[str, object]] = []
        period_details: list[dict[str, object]] = []
        for index, period in enumerate(periods):
            window = frame.window(period.value)
            actions = store.tally("action", window)
            actors = store.tally("actor", window)
            activity.append(
                {
                    "period": period.value,
                    "count": period.count,
                    "unique_actors": len(actors),
                    "unique_actions": len(actions),
                }
            )
            if index < PERIOD_DETAIL_COUNT:
                period_details.append(
                    {
                        "period": period.value,
                        "total": period.count,
                        "unique_actors": len(actors),
                        "unique_actions": len(actions),
                        "top_actions": ranked_tallies(actions[:PERIOD_TOP_N], "action"),
                        "top_actors": ranked_tallies(actors[:PERIOD_TOP_N], "actor"),
                    }
                )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Audit trail activity failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve audit trail activity: {exc}")

    counts = [int(row["count"]) for row in activity]
    total = sum(counts)
    busiest: dict[str, object] = {
        "period": "N/A",
        "count": 0,
        "unique_actors": 0,
        "unique_actions": 0,
    }
    for row in activity:
        if int(row["count"]) > int(busiest["count"]):
            busiest = row
    statistics = {
        "total_periods": len(activity),
        "total_activity": total,
        "average_activity": round_half_up(total / (len(activity) or 1) * 100) / 100,
        "max_activity": max(counts, default=0),
        "min_activity": min(counts, default=0),
        "busiest_period": dict(busiest),
    }
    return OperationResult.success(
        "Audit trail activity retrieved successfully",
        {
            "activity": activity,
            "period_details": period_details,
            "timeframe": timeframe,
            "statistics": statistics,
        },
    )


def get_system_activity(
    store: AuditRecordStore,
    *,
    hours: int = 24,
    include_user_actions: bool = False,
    now: datetime | None = None,
) -> OperationResult:
    try:
        positive_int("hours", hours)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))

    now = now or utc_now()
    since = now - timedelta(hours=hours)
    window = RecordFilter.between(since)
    try:
        system_records = store.find(
            window.without_actor_prefix(USER_ACTOR_PREFIX),
            order=ORDER_DESC,
            limit=SYSTEM_ACTIVITY_LIMIT,
        )
        user_records: list[AuditRecord] = []
        if include_user_actions:
            user_records = store.find(
                window.with_actor_prefix(USER_ACTOR_PREFIX),
                order=ORDER_DESC,
                limit=SYSTEM_USER_ACTIVITY_LIMIT,
            )
    except Exception as exc:  # noqa: BLE001
        logger.exception("System activity failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve system activity: {exc}")

    categorized: dict[str, list[AuditRecord]] = {
        category: [] for category in SYSTEM_ACTIVITY_CATEGORIES
    }
    for record in system_records:
        category = classify(SYSTEM_ACTIVITY_RULES, record.action, default="other")
        categorized[category or "other"].append(record)

    by_category = {category: len(items) for category, items in categorized.items()}
    total = len(system_records)
    errors = categorized["errors"]
    backups = categorized["backups"]
    health = {
        "has_recent_errors": bool(errors),
        "error_rate": _rate(len(errors), total),
        "warning_rate": _rate(by_category["warnings"], total),
        "security_events": by_category["security"],
        "last_backup": isoformat(backups[0].timestamp) if backups else None,
        "system_uptime": system_uptime(categorized["startup_shutdown"], now),
    }
    data: dict[str, object] = {
        "system_activities": [record.to_dict() for record in system_records],
        "categorized": {
            category: [record.to_dict() for record in items]
            for category, items in categorized.items()
        },
        "stats": {
            "total_system_activities": total,
            "total_user_activities": len(user_records),
            "by_category": by_category,
            "time_range": {
                "start": isoformat(since),
                "end": isoformat(now),
                "hours": hours,
            },
        },
        "error_details": [record.to_dict() for record in errors[:ERROR_DETAIL_COUNT]],
        "health_indicators": health,
        "summary": {
            "total_activities": total + len(user_records),
            "system_health": "needs-attention" if errors else "healthy",
            "recent_errors": len(errors),
            "security_events": by_category["security"],
        },
    }
    if include_user_actions:
        data["user_activities"] = [record.to_dict() for record in user_records]
    return OperationResult.success("System activity retrieved successfully", data)


def _user_stats(
    actor: str,
    records: Sequence[AuditRecord],
    days: int,
) -> dict[str, object]:
    action_counts = Counter(record.action for record in records)
    hour_counts = Counter(record.timestamp.hour for record in records)
    user_id = actor.removeprefix(USER_ACTOR_PREFIX)
    return {
        "user_id": user_id,
        "username": actor,
        "total_actions": len(records),
        "first_activity": isoformat(records[-1].timestamp),
        "last_activity": isoformat(records[0].timestamp),
        "most_frequent_action": action_counts.most_common(1)[0][0],
        "action_counts": dict(action_counts),
        "peak_hour": hour_counts.most_common(1)[0][0],
        "activity_level": daily_activity_level(len(records), days),
        "unique_actions": len(action_counts),
    }


def get_user_activity(
    store: AuditRecordStore,
    *,
    user_id: object = None,
    days: int = 7,
    include_system_actions: bool = False,
    now: datetime | None = None,
) -> OperationResult:
    try:
        positive_int("days", days)
    except ValidationError as exc:
        return OperationResult.failure(str(exc))

    now = now or utc_now()
    since = now - timedelta(days=days)
    record_filter = RecordFilter.between(since)
    if user_id is not None:
        record_filter = record_filter.with_actor(actor_label(user_id))
    else:
        record_filter = record_filter.with_actor_prefix(USER_ACTOR_PREFIX)
    if not include_system_actions:
        record_filter = record_filter.without_action_prefix(SYSTEM_ACTION_PREFIX)

    try:
        records = store.find(record_filter, order=ORDER_DESC, limit=USER_ACTIVITY_LIMIT)
    except Exception as exc:  # noqa: BLE001
        logger.exception("User activity failed", extra={"error_message": str(exc)})
        return OperationResult.failure(f"Failed to retrieve user activity: {exc}")

    by_user: dict[str, list[AuditRecord]] = {}
    for record in records:
        by_user.setdefault(record.actor, []).append(record)
    user_stats = sorted(
        (_user_stats(actor, items, days) for actor, items in by_user.items()),
        key=lambda entry: int(entry["total_actions"]),
        reverse=True,
    )
    overall = {
        "total_users": len(by_user),
        "total_activities": len(records),
        "average_activities_per_user": len(records) / (len(by_user) or 1),
        "busiest_user": user_stats[0] if user_stats else None,
        "time_range": {"start": isoformat(since), "end": isoformat(now), "days": days},
        "activity_trend": activity_trend(records),
    }
    data: dict[str, object] = {
        "user_stats": user_stats,
        "overall_stats": overall,
        "top_actions": rank_counts(
            (record.action for record in records), label="action", limit=TOP_ACTIONS
        ),
        "filters": {
            "user_id": user_id,
            "days": days,
            "include_system_actions": include_system_actions,
        },
    }
    if user_id is not None:
        data["activities"] = [record.to_dict() for record in records]
        message = "User activity retrieved successfully"
    else:
        data["activities_by_user"] = {
            actor: [record.to_dict() for record in items]
            for actor, items in by_user.items()
        }
        message = "All user activities retrieved successfully"
    return OperationResult.success(message, data)
