from agrilog_core.retention.cleanup import cleanup_old_audit_trails
from agrilog_core.retention.policy import RetentionPolicy

__all__ = ["RetentionPolicy", "cleanup_old_audit_trails"]
