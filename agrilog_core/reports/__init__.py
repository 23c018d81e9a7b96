from agrilog_core.reports.export import export_audit_trails
from agrilog_core.reports.generator import REPORT_BUILDERS, generate_audit_report
from agrilog_core.reports.listings import (
    get_actions_list,
    get_actors_list,
    get_audit_trail_stats,
)
from agrilog_core.reports.monitoring import (
    get_audit_trail_activity,
    get_audit_trail_summary,
    get_system_activity,
    get_user_activity,
)

__all__ = [
    "REPORT_BUILDERS",
    "export_audit_trails",
    "generate_audit_report",
    "get_actions_list",
    "get_actors_list",
    "get_audit_trail_activity",
    "get_audit_trail_stats",
    "get_audit_trail_summary",
    "get_system_activity",
    "get_user_activity",
]
