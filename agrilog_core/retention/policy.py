from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from agrilog_core.config import env_flag, env_int
from agrilog_core.time_utils import subtract_days


@dataclass(frozen=True)
class RetentionPolicy:
    days_to_keep: int = 365
    dry_run: bool = True

    @classmethod
    def from_env(cls) -> "RetentionPolicy":
        return cls(
            days_to_keep=env_int("AUDIT_RETENTION_DAYS", 365),
            dry_run=env_flag("AUDIT_RETENTION_DRY_RUN", True),
        )

    def cutoff(self, now: datetime) -> datetime:
        return subtract_days(now, self.days_to_keep)
