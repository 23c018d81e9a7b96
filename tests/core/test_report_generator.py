from datetime import date, timedelta

import pytest

from agrilog_core.reports import generator
from agrilog_core.reports.generator import (
    AVERAGE_DAILY_DIVISOR,
    generate_audit_report,
    resolve_date_range,
)
from agrilog_core.time_utils import utc_now


def test_compliance_score_for_logins_and_permission_changes(store, seed):
    now = utc_now()
    seed("user_login", when=now - timedelta(days=1), count=10, step=timedelta(minutes=5))
    seed("permission_change", when=now - timedelta(days=2), count=10, step=timedelta(minutes=5))

    result = generate_audit_report(store, "compliance")

    assert result.status is True
    report = result.data
    assert report["metrics"]["total_compliance_events"] == 20
    assert report["metrics"]["authentication_events"] == 10
    assert report["metrics"]["authorization_events"] == 10
    assert report["metrics"]["unique_users"] == 1
    assert report["compliance_score"] == 58
    assert len(report["categories"]["authentication"]) == 10


def test_compliance_ignores_actions_outside_allow_list(store, seed):
    seed("login_page_view", count=4)
    seed("security_setting_change", count=1)
    report = generate_audit_report(store, "compliance").data
    assert report["metrics"]["total_compliance_events"] == 1
    assert report["metrics"]["security_events"] == 1
    assert report["compliance_score"] == 100


def test_compliance_score_zero_without_events(store):
    report = generate_audit_report(store, "compliance").data
    assert report["compliance_score"] == 0


def test_summary_report_uses_constant_divisor(store, seed):
    now = utc_now()
    seed("user_login", when=now - timedelta(days=1), count=6, step=timedelta(hours=1))
    seed("data_update", actor="User 2", when=now - timedelta(days=3), count=3)

    result = generate_audit_report(
        store,
        "summary",
        start_date=(now - timedelta(days=5)).date().isoformat(),
        end_date=now.date().isoformat(),
    )

    report = result.data
    stats = report["statistics"]
    assert stats["total_activities"] == 9
    assert stats["unique_actors"] == 2
    assert stats["unique_actions"] == 2
    # Divides by 30 even though the queried range spans six days.
    assert AVERAGE_DAILY_DIVISOR == 30
    assert stats["average_daily"] == pytest.approx(9 / 30)
    assert report["top_actions"][0] == {"action": "user_login", "count": 6}
    days = [entry["date"] for entry in report["daily_activity"]]
    assert days == sorted(days)
    assert sum(entry["count"] for entry in report["daily_activity"]) == 9


def test_default_range_is_last_thirty_days(store, seed):
    now = utc_now()
    seed("user_login", when=now - timedelta(days=45))
    seed("user_login", when=now - timedelta(days=3))
    report = generate_audit_report(store, "detailed").data
    assert report["metadata"]["record_count"] == 1
    assert report["activities"][0]["action"] == "user_login"
    assert report["metadata"]["date_range"]["end"] is None


def test_end_day_is_inclusive():
    now = utc_now()
    window = resolve_date_range("2024-01-01", date(2024, 1, 31), now=now)
    assert window.since.isoformat() == "2024-01-01T00:00:00+00:00"
    assert window.until.isoformat() == "2024-02-01T00:00:00+00:00"


def test_security_report_buckets_and_risk(store, seed):
    now = utc_now() - timedelta(hours=1)
    seed("failed_login", when=now, count=3)
    seed("unauthorized_access", when=now, count=1, details={"ip_address": "10.0.0.9"})
    seed("data_access", when=now, count=1, details={"unauthorized": True})
    seed("permission_change", when=now, count=2)
    seed("security_setting_change", when=now, count=1)
    seed("user_login", when=now, count=4)
    seed("data_update", when=now, count=5)

    report = generate_audit_report(store, "security").data

    metrics = report["metrics"]
    assert metrics["total_security_events"] == 12
    assert metrics["failed_login_attempts"] == 3
    assert metrics["unauthorized_access_attempts"] == 2
    assert metrics["permission_changes"] == 2
    assert metrics["security_setting_changes"] == 1
    assert metrics["suspicious_activities"] == 0
    assert metrics["unique_source_ips"] == 2

    risk = report["risk_assessment"]
    assert risk["score"] == 3 * 10 + 2 * 20 + 2 * 5
    assert risk["level"] == "high"
    assert risk["recommendations"][0] == "Schedule security audit"

    timeline = {entry["action"]: entry["risk"] for entry in report["timeline"]}
    assert timeline["permission_change"] == "medium"
    assert timeline["user_login"] == "low"
    assert "data_update" not in timeline


def test_security_timeline_is_capped(store, seed):
    seed("user_login", count=80, step=timedelta(minutes=1))
    report = generate_audit_report(store, "security").data
    assert len(report["timeline"]) == 50
    assert report["risk_assessment"]["level"] == "low"


def test_unknown_report_type(store):
    result = generate_audit_report(store, "forecast")
    assert result.status is False
    assert result.message == "Unknown report type: forecast"
    assert result.data is None


def test_invalid_date_is_reported(store):
    result = generate_audit_report(store, "summary", start_date="yesterday", end_date="today")
    assert result.status is False


def test_non_string_report_type_is_a_failure(store):
    result = generate_audit_report(store, ["summary"])
    assert result.status is False
    assert result.message == "Unknown report type: ['summary']"


@pytest.mark.parametrize("report_type", ["compliance", "security"])
def test_capped_report_is_flagged_truncated(store, seed, monkeypatch, report_type):
    monkeypatch.setattr(generator, "COMPLIANCE_LIMIT", 3)
    monkeypatch.setattr(generator, "SECURITY_LIMIT", 3)
    seed("user_login", count=5, step=timedelta(minutes=1))

    capped = generate_audit_report(store, report_type).data
    assert capped["metadata"]["record_count"] == 3
    assert capped["metadata"]["truncated"] is True

    monkeypatch.setattr(generator, "COMPLIANCE_LIMIT", 10)
    monkeypatch.setattr(generator, "SECURITY_LIMIT", 10)
    full = generate_audit_report(store, report_type).data
    assert full["metadata"]["record_count"] == 5
    assert full["metadata"]["truncated"] is False
