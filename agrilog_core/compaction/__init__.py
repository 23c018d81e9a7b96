from agrilog_core.compaction.policy import CompactionPolicy
from agrilog_core.compaction.runner import compact_audit_trails
from agrilog_core.compaction.strategies import STRATEGIES

__all__ = ["CompactionPolicy", "STRATEGIES", "compact_audit_trails"]
