from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

import duckdb

from agrilog_core.audit.filters import ORDER_ASC, ORDER_DESC, RecordFilter
from agrilog_core.audit.types import AuditRecord
from agrilog_core.errors import StoreError, ValidationError
from agrilog_core.stores.interfaces import FieldTally, Transaction
from agrilog_core.time_utils import ensure_utc, utc_now

MEMORY_DATABASE = ":memory:"
TABLE_NAME = "audit_trails"

# Grouping expressions for tally(); time buckets are rendered from naive UTC.
_TALLY_EXPRESSIONS = {
    "action": "action",
    "actor": "actor",
    "hour": "CAST(hour(\"timestamp\") AS VARCHAR)",
    "hour_period": "strftime(\"timestamp\", '%Y-%m-%d %H:00:00')",
    "day": "strftime(\"timestamp\", '%Y-%m-%d')",
    "week": "strftime(date_trunc('week', \"timestamp\"), '%Y-%m-%d')",
    "month": "strftime(\"timestamp\", '%Y-%m-01')",
}
_COLUMNS = 'id, action, actor, details, "timestamp"'


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump_details(details: Mapping[str, Any]) -> str:
    return json.dumps(dict(details), default=_json_default, ensure_ascii=True)


def _load_details(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    payload = json.loads(raw)
    return payload if isinstance(payload, dict) else {"value": payload}


def _to_db(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _where(record_filter: RecordFilter | None) -> tuple[str, list[object]]:
    if record_filter is None:
        return "", []
    clauses: list[str] = []
    params: list[object] = []
    if record_filter.before is not None:
        clauses.append('"timestamp" < ?')
        params.append(_to_db(record_filter.before))
    if record_filter.since is not None:
        clauses.append('"timestamp" >= ?')
        params.append(_to_db(record_filter.since))
    if record_filter.until is not None:
        clauses.append('"timestamp" <= ?')
        params.append(_to_db(record_filter.until))
    if record_filter.actions:
        clauses.append("action IN (SELECT unnest(?::VARCHAR[]))")
        params.append(list(record_filter.actions))
    if record_filter.action_keywords:
        keyword_clauses = []
        for keyword in record_filter.action_keywords:
            keyword_clauses.append("contains(lower(action), ?)")
            params.append(keyword.lower())
        clauses.append("(" + " OR ".join(keyword_clauses) + ")")
    if record_filter.actor is not None:
        clauses.append("actor = ?")
        params.append(record_filter.actor)
    if record_filter.actor_prefix is not None:
        clauses.append("starts_with(actor, ?)")
        params.append(record_filter.actor_prefix)
    if record_filter.exclude_actor_prefix is not None:
        clauses.append("NOT starts_with(actor, ?)")
        params.append(record_filter.exclude_actor_prefix)
    if record_filter.exclude_action_prefix is not None:
        clauses.append("NOT starts_with(action, ?)")
        params.append(record_filter.exclude_action_prefix)
    if record_filter.ids:
        clauses.append("id IN (SELECT unnest(?::BIGINT[]))")
        params.append([int(item) for item in record_filter.ids])
    if not clauses:
        return "", []
    return " WHERE " + " AND ".join(clauses), params


def _row_to_record(row: tuple[Any, ...]) -> AuditRecord:
    record_id, action, actor, details, timestamp = row
    return AuditRecord(
        id=int(record_id),
        action=action,
        actor=actor,
        details=_load_details(details),
        timestamp=_from_db(timestamp),
    )


class DuckDBTransaction:
    """One open transaction on a dedicated cursor of the shared database."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self.conn = conn
        self._active = True
        self._released = False
        self.conn.begin()

    @property
    def active(self) -> bool:
        return self._active

    def commit(self) -> None:
        if not self._active:
            raise StoreError("Transaction is no longer active")
        try:
            self.conn.commit()
        except duckdb.Error as exc:
            raise StoreError(f"Commit failed: {exc}") from exc
        finally:
            self._active = False

    def rollback(self) -> None:
        if not self._active:
            return
        try:
            self.conn.rollback()
        except duckdb.Error as exc:
            raise StoreError(f"Rollback failed: {exc}") from exc
        finally:
            self._active = False

    def release(self) -> None:
        if self._released:
            return
        try:
            if self._active:
                self.rollback()
        finally:
            self._released = True
            self.conn.close()


class DuckDBAuditStore:
    def __init__(self, path: str = MEMORY_DATABASE) -> None:
        self.path = path
        if path != MEMORY_DATABASE:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(database=path)
        except duckdb.Error as exc:
            raise StoreError(f"Unable to open audit store at {path}: {exc}") from exc
        self._init_db()

    def _init_db(self) -> None:
        with self._connection(None) as conn:
            conn.execute("CREATE SEQUENCE IF NOT EXISTS audit_trail_id_seq START 1")
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    id BIGINT PRIMARY KEY DEFAULT nextval('audit_trail_id_seq'),
                    action VARCHAR NOT NULL,
                    actor VARCHAR NOT NULL,
                    details VARCHAR,
                    "timestamp" TIMESTAMP NOT NULL
                )
                """
            )

    def close(self) -> None:
        self._conn.close()

    def begin(self) -> DuckDBTransaction:
        try:
            return DuckDBTransaction(self._conn.cursor())
        except duckdb.Error as exc:
            raise StoreError(f"Unable to begin transaction: {exc}") from exc

    @contextmanager
    def _connection(
        self,
        tx: Transaction | None,
    ) -> Iterator[duckdb.DuckDBPyConnection]:
        if tx is not None:
            if not isinstance(tx, DuckDBTransaction):
                raise StoreError("Transaction was not opened by a DuckDB audit store")
            if not tx.active:
                raise StoreError("Transaction is no longer active")
            try:
                yield tx.conn
            except duckdb.Error as exc:
                raise StoreError(str(exc)) from exc
            return
        cursor = self._conn.cursor()
        try:
            yield cursor
        except duckdb.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            cursor.close()

    def find(
        self,
        record_filter: RecordFilter | None = None,
        *,
        order: str = ORDER_ASC,
        limit: int | None = None,
        offset: int = 0,
        tx: Transaction | None = None,
    ) -> list[AuditRecord]:
        if order not in {ORDER_ASC, ORDER_DESC}:
            raise ValidationError(f"Unsupported order: {order}")
        where, params = _where(record_filter)
        direction = "ASC" if order == ORDER_ASC else "DESC"
        sql = (
            f"SELECT {_COLUMNS} FROM {TABLE_NAME}{where} "
            f'ORDER BY "timestamp" {direction}, id {direction}'
        )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        if offset:
            sql += " OFFSET ?"
            params.append(int(offset))
        with self._connection(tx) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(
        self,
        record_filter: RecordFilter | None = None,
        *,
        tx: Transaction | None = None,
    ) -> int:
        where, params = _where(record_filter)
        with self._connection(tx) as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}{where}", params).fetchone()
        return int(row[0]) if row else 0

    def create(
        self,
        *,
        action: str,
        actor: str,
        details: Mapping[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> AuditRecord:
        return AuditRecord(
            action=action,
            actor=actor,
            details=dict(details or {}),
            timestamp=ensure_utc(timestamp) if timestamp else utc_now(),
        )

    def save(self, record: AuditRecord, *, tx: Transaction | None = None) -> AuditRecord:
        if record.is_saved:
            raise ValidationError(f"Audit record {record.id} is already stored")
        payload = _dump_details(record.details)
        with self._connection(tx) as conn:
            row = conn.execute(
                f'INSERT INTO {TABLE_NAME} (action, actor, details, "timestamp") '
                "VALUES (?, ?, ?, ?) RETURNING id",
                [record.action, record.actor, payload, _to_db(record.timestamp)],
            ).fetchone()
        if row is None:
            raise StoreError("Insert did not return an id")
        return record.with_id(int(row[0]))

    def save_all(
        self,
        records: Iterable[AuditRecord],
        *,
        tx: Transaction | None = None,
    ) -> int:
        actions: list[str] = []
        actors: list[str] = []
        payloads: list[str] = []
        timestamps: list[datetime] = []
        for record in records:
            if record.is_saved:
                raise ValidationError(f"Audit record {record.id} is already stored")
            actions.append(record.action)
            actors.append(record.actor)
            payloads.append(_dump_details(record.details))
            timestamps.append(_to_db(record.timestamp))
        if not actions:
            return 0
        with self._connection(tx) as conn:
            row = conn.execute(
                f'INSERT INTO {TABLE_NAME} (action, actor, details, "timestamp") '
                "SELECT unnest(?::VARCHAR[]), unnest(?::VARCHAR[]), "
                "unnest(?::VARCHAR[]), unnest(?::TIMESTAMP[])",
                [actions, actors, payloads, timestamps],
            ).fetchone()
        return int(row[0]) if row else 0

    def delete_by_ids(
        self,
        ids: Iterable[int],
        *,
        tx: Transaction | None = None,
    ) -> int:
        id_list = [int(item) for item in ids]
        if not id_list:
            return 0
        with self._connection(tx) as conn:
            row = conn.execute(
                f"DELETE FROM {TABLE_NAME} WHERE id IN (SELECT unnest(?::BIGINT[]))",
                [id_list],
            ).fetchone()
        return int(row[0]) if row else 0

    def delete_matching(
        self,
        record_filter: RecordFilter,
        *,
        tx: Transaction | None = None,
    ) -> int:
        where, params = _where(record_filter)
        if not where:
            raise ValidationError("Refusing to delete audit records without a filter")
        with self._connection(tx) as conn:
            row = conn.execute(f"DELETE FROM {TABLE_NAME}{where}", params).fetchone()
        return int(row[0]) if row else 0

    def tally(
        self,
        field: str,
        record_filter: RecordFilter | None = None,
        *,
        limit: int | None = None,
        tx: Transaction | None = None,
    ) -> list[FieldTally]:
        expression = _TALLY_EXPRESSIONS.get(field)
        if expression is None:
            raise ValidationError(f"Cannot tally audit records by {field}")
        where, params = _where(record_filter)
        sql = (
            f"SELECT {expression} AS bucket, COUNT(*) AS total, "
            f'MIN("timestamp"), MAX("timestamp") FROM {TABLE_NAME}{where} '
            "GROUP BY bucket ORDER BY total DESC, bucket ASC"
        )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._connection(tx) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            FieldTally(
                value=value,
                count=int(total),
                first_seen=_from_db(first_seen),
                last_seen=_from_db(last_seen),
            )
            for value, total, first_seen, last_seen in rows
        ]
