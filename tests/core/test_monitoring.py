from datetime import datetime, timedelta, timezone

import pytest

from agrilog_core.audit.types import AuditRecord
from agrilog_core.reports.monitoring import (
    activity_trend,
    daily_activity_level,
    get_audit_trail_activity,
    get_audit_trail_summary,
    get_system_activity,
    get_user_activity,
    system_uptime,
)
from agrilog_core.time_utils import isoformat

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def _seed_traffic(seed):
    seed("user_login", when=NOW - timedelta(hours=1), count=3, step=timedelta(days=1))
    backup_at = datetime(2024, 5, 19, 8, 30, tzinfo=timezone.utc)
    seed("backup_completed", actor="System", when=backup_at, count=2)
    seed("user_login", when=NOW - timedelta(days=60))


def test_summary_rolls_up_window(store, seed):
    _seed_traffic(seed)

    result = get_audit_trail_summary(store, days=30, now=NOW)

    assert result.status is True
    assert result.message == "Audit trail summary retrieved successfully"
    summary = result.data["summary"]
    assert summary["period_days"] == 30
    assert summary["total_count"] == 5
    assert summary["action_summary"] == [
        {"action": "user_login", "count": 3},
        {"action": "backup_completed", "count": 2},
    ]
    assert summary["actor_summary"] == [
        {"actor": "User 1", "count": 3},
        {"actor": "System", "count": 2},
    ]
    assert summary["daily_activity"] == [
        {"date": "2024-05-18", "count": 1},
        {"date": "2024-05-19", "count": 3},
        {"date": "2024-05-20", "count": 1},
    ]
    assert summary["busiest_hours"] == [
        {"hour": 11, "count": 3},
        {"hour": 8, "count": 2},
    ]


@pytest.mark.parametrize("days", [0, -1, "30", 1.5])
def test_summary_days_is_validated(store, days):
    result = get_audit_trail_summary(store, days=days, now=NOW)
    assert result.status is False
    assert result.message == "days must be a positive integer"


def test_daily_activity_periods_and_statistics(store, seed):
    _seed_traffic(seed)

    result = get_audit_trail_activity(store, timeframe="daily", limit=3)

    assert result.status is True
    data = result.data
    assert data["timeframe"] == "daily"
    assert [row["period"] for row in data["activity"]] == [
        "2024-05-20",
        "2024-05-19",
        "2024-05-18",
    ]
    assert data["activity"][1] == {
        "period": "2024-05-19",
        "count": 3,
        "unique_actors": 2,
        "unique_actions": 2,
    }
    assert data["period_details"][1]["top_actions"] == [
        {"action": "backup_completed", "count": 2},
        {"action": "user_login", "count": 1},
    ]
    assert data["statistics"] == {
        "total_periods": 3,
        "total_activity": 5,
        "average_activity": 1.67,
        "max_activity": 3,
        "min_activity": 1,
        "busiest_period": {
            "period": "2024-05-19",
            "count": 3,
            "unique_actors": 2,
            "unique_actions": 2,
        },
    }


def test_monthly_periods_cover_whole_months(store, seed):
    _seed_traffic(seed)
    data = get_audit_trail_activity(store, timeframe="monthly").data
    assert [(row["period"], row["count"]) for row in data["activity"]] == [
        ("2024-05-01", 5),
        ("2024-03-01", 1),
    ]


def test_activity_without_records(store):
    data = get_audit_trail_activity(store, timeframe="weekly").data
    assert data["activity"] == []
    assert data["statistics"]["busiest_period"]["period"] == "N/A"
    assert data["statistics"]["max_activity"] == 0


def test_activity_rejects_unknown_timeframe(store):
    result = get_audit_trail_activity(store, timeframe="yearly")
    assert result.status is False
    assert result.message == "Unknown timeframe: yearly"
    assert get_audit_trail_activity(store, limit=0).status is False


def test_system_activity_health(store, seed):
    seed("server_startup", actor="System", when=NOW - timedelta(hours=5))
    seed("backup_completed", actor="System", when=NOW - timedelta(hours=2))
    seed("sync_failed", actor="Cron Job", when=NOW - timedelta(hours=1))
    seed("disk_warning", actor="System", when=NOW - timedelta(minutes=30))
    seed("user_login", when=NOW - timedelta(minutes=10))
    seed("nightly_cleanup", actor="System", when=NOW - timedelta(days=2))

    result = get_system_activity(store, hours=24, now=NOW)

    assert result.status is True
    data = result.data
    assert "user_activities" not in data
    assert data["stats"]["total_system_activities"] == 4
    assert data["stats"]["by_category"] == {
        "startup_shutdown": 1,
        "errors": 1,
        "warnings": 1,
        "maintenance": 0,
        "backups": 1,
        "security": 0,
        "performance": 0,
        "other": 0,
    }
    assert [item["action"] for item in data["error_details"]] == ["sync_failed"]
    health = data["health_indicators"]
    assert health["has_recent_errors"] is True
    assert health["error_rate"] == 25.0
    assert health["warning_rate"] == 25.0
    assert health["last_backup"] == isoformat(NOW - timedelta(hours=2))
    assert health["system_uptime"] == "0d 5h 0m"
    assert data["summary"]["system_health"] == "needs-attention"

    with_users = get_system_activity(store, hours=24, include_user_actions=True, now=NOW).data
    assert [item["action"] for item in with_users["user_activities"]] == ["user_login"]
    assert with_users["summary"]["total_activities"] == 5


def test_quiet_system_is_healthy(store):
    data = get_system_activity(store, now=NOW).data
    assert data["health_indicators"]["error_rate"] == 0.0
    assert data["health_indicators"]["system_uptime"] == "Unknown"
    assert data["summary"]["system_health"] == "healthy"


def _seed_users(seed):
    seed("user_login", when=NOW - timedelta(hours=1), count=3, step=timedelta(days=1))
    seed("report_view", when=NOW - timedelta(hours=2))
    seed("system_sync", actor="User 2", when=NOW - timedelta(hours=3))
    seed("data_update", actor="User 2", when=NOW - timedelta(days=1, hours=3))
    seed("backup_completed", actor="System", when=NOW - timedelta(hours=1))


def test_all_user_activity(store, seed):
    _seed_users(seed)

    result = get_user_activity(store, days=7, now=NOW)

    assert result.status is True
    assert result.message == "All user activities retrieved successfully"
    data = result.data
    assert "activities" not in data
    assert list(data["activities_by_user"]) == ["User 1", "User 2"]
    top = data["user_stats"][0]
    assert top["username"] == "User 1"
    assert top["user_id"] == "1"
    assert top["total_actions"] == 4
    assert top["most_frequent_action"] == "user_login"
    assert top["action_counts"] == {"user_login": 3, "report_view": 1}
    assert top["peak_hour"] == 11
    assert top["activity_level"] == "very-low"
    assert top["first_activity"] == isoformat(NOW - timedelta(days=2, hours=1))
    assert top["last_activity"] == isoformat(NOW - timedelta(hours=1))
    overall = data["overall_stats"]
    assert overall["total_users"] == 2
    assert overall["total_activities"] == 5
    assert overall["average_activities_per_user"] == 2.5
    assert overall["busiest_user"] == top
    assert overall["activity_trend"] == "increasing"
    assert data["top_actions"] == [
        {"action": "user_login", "count": 3},
        {"action": "report_view", "count": 1},
        {"action": "data_update", "count": 1},
    ]


def test_user_activity_can_include_system_actions(store, seed):
    _seed_users(seed)
    data = get_user_activity(store, include_system_actions=True, now=NOW).data
    assert data["overall_stats"]["total_activities"] == 6
    assert data["filters"]["include_system_actions"] is True


def test_single_user_activity(store, seed):
    _seed_users(seed)

    result = get_user_activity(store, user_id=2, now=NOW)

    assert result.message == "User activity retrieved successfully"
    assert "activities_by_user" not in result.data
    assert [item["action"] for item in result.data["activities"]] == ["data_update"]
    assert result.data["filters"]["user_id"] == 2


def test_daily_activity_levels():
    assert daily_activity_level(351, 7) == "very-high"
    assert daily_activity_level(350, 7) == "high"
    assert daily_activity_level(36, 7) == "medium"
    assert daily_activity_level(8, 7) == "low"
    assert daily_activity_level(7, 7) == "very-low"


def _record(action, when):
    return AuditRecord(action=action, actor="System", timestamp=when)


def test_activity_trend_and_uptime():
    assert activity_trend([]) == "insufficient-data"
    same_day = [_record("a", NOW), _record("b", NOW - timedelta(hours=1))]
    assert activity_trend(same_day) == "stable"
    falling = same_day + [_record("c", NOW - timedelta(days=1)) for _ in range(3)]
    assert activity_trend(falling) == "decreasing"

    events = [
        _record("service_stop", NOW - timedelta(hours=1)),
        _record("service_start", NOW - timedelta(days=1, hours=2, minutes=30)),
    ]
    assert system_uptime(events, NOW) == "1d 2h 30m"
    assert system_uptime([_record("service_halt", NOW)], NOW) == "Unknown"
