from __future__ import annotations

import csv
import io
import json
import time
from datetime import date, datetime, timedelta

from agrilog_core.audit.filters import ORDER_DESC, RecordFilter
from agrilog_core.audit.types import AuditRecord, OperationResult, actor_label
from agrilog_core.config import AuditConfig
from agrilog_core.errors import EmptySelectionError, ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.storage.paths import export_uri
from agrilog_core.storage.writer import write_bytes
from agrilog_core.stores.interfaces import AuditRecordStore
from agrilog_core.time_utils import isoformat, parse_date, utc_now

logger = get_logger(__name__)

EXPORT_LIMIT = 10000
EXPORT_JSON = "json"
EXPORT_CSV = "csv"
EXPORT_FORMATS = (EXPORT_JSON, EXPORT_CSV)
CSV_FIELDS = ("id", "action", "actor", "details", "timestamp", "date", "time")
NOT_SPECIFIED = "not-specified"


def _export_filter(
    start_date: str | date | datetime | None,
    end_date: str | date | datetime | None,
    action: str | None,
    actor: str | None,
) -> RecordFilter:
    record_filter = RecordFilter()
    if start_date and end_date:
        try:
            record_filter = RecordFilter.between(
                parse_date(start_date),
                parse_date(end_date) + timedelta(days=1),
            )
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid export date range: {exc}") from exc
    if action:
        record_filter = record_filter.with_actions([action])
    if actor:
        record_filter = record_filter.with_actor(actor)
    return record_filter


def _csv_row(record: AuditRecord) -> dict[str, object]:
    stamp = isoformat(record.timestamp)
    return {
        "id": record.id,
        "action": record.action,
        "actor": record.actor,
        "details": json.dumps(record.details, default=str),
        "timestamp": stamp,
        "date": stamp[:10],
        "time": stamp[11:19],
    }


def render_csv(records: list[AuditRecord]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_FIELDS)
    writer.writeheader()
    for record in records:
        writer.writerow(_csv_row(record))
    return buffer.getvalue().encode("utf-8")


def render_json(
    records: list[AuditRecord],
    *,
    exported_by: str,
    filters: dict[str, object],
    start_date: object,
    end_date: object,
    pretty: bool,
    now: datetime,
) -> bytes:
    payload = {
        "metadata": {
            "export_date": isoformat(now),
            "exported_by": exported_by,
            "record_count": len(records),
            "filters": filters,
            "date_range": {
                "start_date": str(start_date) if start_date else NOT_SPECIFIED,
                "end_date": str(end_date) if end_date else NOT_SPECIFIED,
            },
        },
        "audit_trails": [record.to_dict() for record in records],
    }
    if pretty:
        return json.dumps(payload, indent=2, default=str).encode("utf-8")
    return json.dumps(payload, default=str).encode("utf-8")


def export_audit_trails(
    store: AuditRecordStore,
    export_format: str = EXPORT_JSON,
    *,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
    action: str | None = None,
    actor: str | None = None,
    pretty: bool = True,
    export_root: str | None = None,
    actor_id: object = None,
    now: datetime | None = None,
) -> OperationResult:
    if export_format not in EXPORT_FORMATS:
        return OperationResult.failure(f"Unsupported export format: {export_format}")
    try:
        record_filter = _export_filter(start_date, end_date, action, actor)
        root = export_root or AuditConfig.from_env().export_root
    except (ValidationError, ValueError, TypeError) as exc:
        return OperationResult.failure(str(exc))

    now = now or utc_now()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
    filename = f"audit_trails_{stamp}.{export_format}"
    if export_format == EXPORT_JSON:
        dest_uri = export_uri(root, f"json/{filename}")
    else:
        dest_uri = export_uri(root, filename)

    started = time.monotonic()
    try:
        records = store.find(record_filter, order=ORDER_DESC, limit=EXPORT_LIMIT)
        if not records:
            raise EmptySelectionError("No audit trails found to export")
        if export_format == EXPORT_JSON:
            payload = render_json(
                records,
                exported_by=actor_label(actor_id),
                filters={"action": action, "actor": actor},
                start_date=start_date,
                end_date=end_date,
                pretty=pretty,
                now=now,
            )
        else:
            payload = render_csv(records)
        written = write_bytes(payload, dest_uri, suffix=f".{export_format}")
    except EmptySelectionError as exc:
        return OperationResult.failure(str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit trail export failed",
            extra={"export_format": export_format, "error_message": str(exc)},
        )
        return OperationResult.failure(f"Failed to export audit trails: {exc}")

    logger.info(
        "Audit trails exported",
        extra={
            "export_format": export_format,
            "records_selected": len(records),
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return OperationResult.success(
        "Audit trails exported successfully",
        {
            "filename": filename,
            "export_uri": written.uri,
            "record_count": len(records),
            "file_size": written.bytes_written,
            "sha256": written.sha256,
            "format": export_format,
        },
    )
