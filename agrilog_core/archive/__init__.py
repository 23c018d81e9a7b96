from agrilog_core.archive.exporter import archive_audit_trails
from agrilog_core.archive.policy import ArchivePolicy

__all__ = ["ArchivePolicy", "archive_audit_trails"]
