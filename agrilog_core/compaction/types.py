from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from agrilog_core.audit.types import AuditRecord

METHOD_SUMMARIZE = "summarize"
METHOD_AGGREGATE = "aggregate"
METHOD_SAMPLE = "sample"


@dataclass(frozen=True)
class CompactionPlan:
    """What one strategy wants done to the selected records.

    ``delete_ids`` are removed first, then ``derived`` drafts are inserted.
    ``kept`` lists originals that survive untouched.
    """

    delete_ids: tuple[int, ...]
    derived: tuple[AuditRecord, ...]
    kept: tuple[AuditRecord, ...] = ()
    method_details: dict[str, Any] = field(default_factory=dict)

    @property
    def compacted_count(self) -> int:
        return len(self.derived)

    @property
    def retained_count(self) -> int:
        return len(self.kept) + len(self.derived)
