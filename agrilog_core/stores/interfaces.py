from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

from agrilog_core.audit.filters import RecordFilter
from agrilog_core.audit.types import AuditRecord


class Transaction(Protocol):
    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def release(self) -> None:
        ...


@dataclass(frozen=True)
class FieldTally:
    value: str
    count: int
    first_seen: datetime
    last_seen: datetime


class AuditRecordStore(Protocol):
    def begin(self) -> Transaction:
        ...

    def close(self) -> None:
        ...

    def find(
        self,
        record_filter: RecordFilter | None = None,
        *,
        order: str = "asc",
        limit: int | None = None,
        offset: int = 0,
        tx: Transaction | None = None,
    ) -> list[AuditRecord]:
        ...

    def count(
        self,
        record_filter: RecordFilter | None = None,
        *,
        tx: Transaction | None = None,
    ) -> int:
        ...

    def create(
        self,
        *,
        action: str,
        actor: str,
        details: Mapping[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> AuditRecord:
        ...

    def save(self, record: AuditRecord, *, tx: Transaction | None = None) -> AuditRecord:
        ...

    def save_all(
        self,
        records: Iterable[AuditRecord],
        *,
        tx: Transaction | None = None,
    ) -> int:
        ...

    def delete_by_ids(
        self,
        ids: Iterable[int],
        *,
        tx: Transaction | None = None,
    ) -> int:
        ...

    def delete_matching(
        self,
        record_filter: RecordFilter,
        *,
        tx: Transaction | None = None,
    ) -> int:
        ...

    def tally(
        self,
        field: str,
        record_filter: RecordFilter | None = None,
        *,
        limit: int | None = None,
        tx: Transaction | None = None,
    ) -> list[FieldTally]:
        ...
