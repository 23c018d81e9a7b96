from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class ClassificationRule:
    """One row of an ordered rule table; the first matching row wins."""

    patterns: tuple[str, ...]
    category: str
    detail_flag: str | None = None
    prefix: bool = False
    ignore_case: bool = True

    def matches(self, value: str, details: Mapping[str, Any] | None = None) -> bool:
        subject = value.lower() if self.ignore_case else value
        for pattern in self.patterns:
            if self.prefix and subject.startswith(pattern):
                return True
            if not self.prefix and pattern in subject:
                return True
        if self.detail_flag and details:
            return bool(details.get(self.detail_flag))
        return False


def classify(
    rules: Sequence[ClassificationRule],
    value: str,
    details: Mapping[str, Any] | None = None,
    *,
    default: str | None = None,
) -> str | None:
    for rule in rules:
        if rule.matches(value, details):
            return rule.category
    return default


COMPLIANCE_ACTIONS = (
    "user_login",
    "user_logout",
    "permission_change",
    "role_assignment",
    "data_access",
    "data_modification",
    "system_config_change",
    "security_setting_change",
)

AUTHENTICATION = "authentication"
AUTHORIZATION = "authorization"
DATA_INTEGRITY = "data_integrity"
CONFIGURATION = "configuration"
SECURITY = "security"

COMPLIANCE_CATEGORIES = (
    AUTHENTICATION,
    AUTHORIZATION,
    DATA_INTEGRITY,
    CONFIGURATION,
    SECURITY,
)

COMPLIANCE_RULES = (
    ClassificationRule(("login", "logout"), AUTHENTICATION),
    ClassificationRule(("permission", "role"), AUTHORIZATION),
    ClassificationRule(("data",), DATA_INTEGRITY),
    ClassificationRule(("config",), CONFIGURATION),
    ClassificationRule(("security",), SECURITY),
)

SECURITY_KEYWORDS = (
    "login",
    "logout",
    "security",
    "access",
    "permission",
    "failed",
    "unauthorized",
)

FAILED_LOGINS = "failed_logins"
UNAUTHORIZED_ACCESS = "unauthorized_access"
PERMISSION_CHANGES = "permission_changes"
SECURITY_SETTINGS = "security_settings"
SUSPICIOUS_ACTIVITY = "suspicious_activity"

INCIDENT_BUCKETS = (
    FAILED_LOGINS,
    UNAUTHORIZED_ACCESS,
    PERMISSION_CHANGES,
    SECURITY_SETTINGS,
    SUSPICIOUS_ACTIVITY,
)

INCIDENT_RULES = (
    ClassificationRule(("failed_login", "login_failed"), FAILED_LOGINS),
    ClassificationRule(("unauthorized",), UNAUTHORIZED_ACCESS, detail_flag="unauthorized"),
    ClassificationRule(("permission", "role"), PERMISSION_CHANGES),
    ClassificationRule(("security_setting", "security_config"), SECURITY_SETTINGS),
    ClassificationRule(
        (
            "multiple_failed_logins",
            "unusual_time",
            "bulk_operations",
            "sensitive_data_access",
        ),
        SUSPICIOUS_ACTIVITY,
    ),
)

RISK_HIGH = "high"
RISK_MEDIUM = "medium"
RISK_LOW = "low"

ACTION_RISK_RULES = (
    ClassificationRule(
        ("delete", "drop", "truncate", "password_reset", "role_change"), RISK_HIGH
    ),
    ClassificationRule(
        ("update", "modify", "config_change", "permission_change"), RISK_MEDIUM
    ),
)

ACTION_CATEGORY_RULES = (
    ClassificationRule(("login", "logout", "user"), "user_actions", ignore_case=False),
    ClassificationRule(("system", "server", "startup"), "system_actions", ignore_case=False),
    ClassificationRule(("create", "update", "delete"), "data_actions", ignore_case=False),
    ClassificationRule(
        ("security", "permission", "access"), "security_actions", ignore_case=False
    ),
)
ACTION_CATEGORIES = (
    "user_actions",
    "system_actions",
    "data_actions",
    "security_actions",
    "other",
)

ACTOR_CATEGORY_RULES = (
    ClassificationRule(("User ",), "users", prefix=True, ignore_case=False),
    ClassificationRule(("System", "Server"), "system", ignore_case=False),
    ClassificationRule(("Cron", "Job", "Automated"), "automated", ignore_case=False),
)
ACTOR_CATEGORIES = ("users", "system", "automated", "unknown")


def action_risk(action: str) -> str:
    return classify(ACTION_RISK_RULES, action, default=RISK_LOW) or RISK_LOW

SYSTEM_ACTIVITY_RULES = (
    ClassificationRule(("start", "stop", "shutdown", "restart"), "startup_shutdown"),
    ClassificationRule(("error", "fail", "exception"), "errors"),
    ClassificationRule(("warn", "alert"), "warnings"),
    ClassificationRule(("backup", "export", "import"), "backups"),
    ClassificationRule(("security", "login", "access", "permission"), "security"),
    ClassificationRule(("maintenance", "cleanup", "optimize"), "maintenance"),
    ClassificationRule(("performance", "slow", "timeout", "memory"), "performance"),
)
SYSTEM_ACTIVITY_CATEGORIES = (
    "startup_shutdown",
    "errors",
    "warnings",
    "maintenance",
    "backups",
    "security",
    "performance",
    "other",
)
STARTUP_MARKERS = ("start", "up")
