from __future__ import annotations

import os
from dataclasses import dataclass

from agrilog_core.compaction.types import METHOD_SUMMARIZE
from agrilog_core.config import env_float, env_int


@dataclass(frozen=True)
class CompactionPolicy:
    months_old: int = 6
    method: str = METHOD_SUMMARIZE
    sample_rate: float = 0.1
    max_records: int = 50000

    @classmethod
    def from_env(cls) -> "CompactionPolicy":
        return cls(
            months_old=env_int("AUDIT_COMPACTION_MONTHS_OLD", cls.months_old),
            method=(
                os.getenv("AUDIT_COMPACTION_METHOD", "").strip().lower()
                or cls.method
            ),
            sample_rate=env_float("AUDIT_COMPACTION_SAMPLE_RATE", cls.sample_rate),
            max_records=env_int("AUDIT_COMPACTION_MAX_RECORDS", cls.max_records),
        )
