from __future__ import annotations

import json
import os
import time
from datetime import datetime
from typing import Sequence

from agrilog_core.archive.container import write_container
from agrilog_core.archive.policy import ARCHIVE_FORMATS, ArchivePolicy
from agrilog_core.audit.filters import ORDER_ASC, RecordFilter
from agrilog_core.audit.rollups import rank_counts
from agrilog_core.audit.self_audit import ACTION_ARCHIVE, SelfAuditLogger
from agrilog_core.audit.transactions import transaction_scope
from agrilog_core.audit.types import AuditRecord, OperationResult, actor_label
from agrilog_core.config import AuditConfig
from agrilog_core.errors import EmptySelectionError, ValidationError
from agrilog_core.logging import get_logger
from agrilog_core.storage.manifest import write_manifest
from agrilog_core.storage.paths import archive_metadata_uri, archive_uri
from agrilog_core.storage.writer import new_temp_path, publish_file, uri_exists
from agrilog_core.stores.interfaces import AuditRecordStore, Transaction
from agrilog_core.time_utils import day_key, isoformat, subtract_months, utc_now

logger = get_logger(__name__)

TRAILS_ENTRY = "audit_trails.json"
SUMMARY_ENTRY = "summary.json"
TOP_N = 20


def build_archive_id(cutoff: datetime, now: datetime) -> str:
    return f"audit_archive_{day_key(cutoff)}_to_{day_key(now)}"


def resolve_archive_id(archive_root: str, base_id: str, extension: str) -> str:
    """First id whose container and sidecar are both free under the root."""
    archive_id = base_id
    attempt = 1
    while uri_exists(archive_uri(archive_root, archive_id, extension)) or uri_exists(
        archive_metadata_uri(archive_root, archive_id)
    ):
        attempt += 1
        archive_id = f"{base_id}_{attempt}"
    return archive_id


def build_archive_metadata(
    records: Sequence[AuditRecord],
    *,
    actor: str,
    cutoff: datetime,
    months_old: int,
    now: datetime,
) -> dict[str, object]:
    return {
        "archive_date": isoformat(now),
        "archived_by": actor,
        "cutoff_date": isoformat(cutoff),
        "months_old": months_old,
        "record_count": len(records),
        "original_record_ids": [record.id for record in records],
    }


def build_archive_summary(records: Sequence[AuditRecord]) -> dict[str, object]:
    oldest = isoformat(records[0].timestamp)
    newest = isoformat(records[-1].timestamp)
    return {
        "summary": f"Audit Trail Archive - {len(records)} records",
        "date_range": f"{oldest} to {newest}",
        "actions_summary": rank_counts(
            (record.action for record in records), label="action", limit=TOP_N
        ),
        "actors_summary": rank_counts(
            (record.actor for record in records), label="actor", limit=TOP_N
        ),
    }


def _json_bytes(payload: dict[str, object]) -> bytes:
    return json.dumps(payload, indent=2, ensure_ascii=True, default=str).encode("utf-8")


def _resolve_policy(
    months_old: int | None,
    archive_format: str | None,
    compress: bool | None,
) -> ArchivePolicy:
    defaults = ArchivePolicy.from_env()
    policy = ArchivePolicy(
        months_old=months_old if months_old is not None else defaults.months_old,
        archive_format=(
            archive_format if archive_format is not None else defaults.archive_format
        ),
        compress=compress if compress is not None else defaults.compress,
        max_records=defaults.max_records,
    )
    if isinstance(policy.months_old, bool) or not isinstance(policy.months_old, int):
        raise ValidationError("months_old must be an integer")
    if policy.months_old < 0:
        raise ValidationError("months_old must be zero or greater")
    if policy.archive_format not in ARCHIVE_FORMATS:
        raise ValidationError(f"Unsupported archive format: {policy.archive_format}")
    if policy.max_records <= 0:
        raise ValidationError("AUDIT_ARCHIVE_MAX_RECORDS must be positive")
    return policy


def archive_audit_trails(
    store: AuditRecordStore,
    *,
    months_old: int | None = None,
    archive_format: str | None = None,
    compress: bool | None = None,
    actor_id: object = None,
    archive_root: str | None = None,
    tx: Transaction | None = None,
    now: datetime | None = None,
) -> OperationResult:
    try:
        policy = _resolve_policy(months_old, archive_format, compress)
        root = archive_root or AuditConfig.from_env().archive_root
    except (ValidationError, ValueError, TypeError) as exc:
        return OperationResult.failure(str(exc))

    now = now or utc_now()
    actor = actor_label(actor_id)
    cutoff = subtract_months(now, policy.months_old)
    archive_id = build_archive_id(cutoff, now)
    started = time.monotonic()
    try:
        with transaction_scope(store, tx) as scope:
            records = store.find(
                RecordFilter.older_than(cutoff),
                order=ORDER_ASC,
                limit=policy.max_records,
                tx=scope,
            )
            if not records:
                raise EmptySelectionError("No audit trails found to archive")

            archive_id = resolve_archive_id(root, archive_id, policy.archive_format)
            filename = f"{archive_id}.{policy.archive_format}"
            container_uri = archive_uri(root, archive_id, policy.archive_format)
            metadata_uri = archive_metadata_uri(root, archive_id)
            metadata = build_archive_metadata(
                records,
                actor=actor,
                cutoff=cutoff,
                months_old=policy.months_old,
                now=now,
            )
            entries = [
                (
                    TRAILS_ENTRY,
                    _json_bytes(
                        {
                            "metadata": metadata,
                            "audit_trails": [record.to_dict() for record in records],
                        }
                    ),
                ),
                (SUMMARY_ENTRY, _json_bytes(build_archive_summary(records))),
            ]
            tmp_path = new_temp_path(f".{policy.archive_format}")
            try:
                write_container(
                    policy.archive_format,
                    tmp_path,
                    entries,
                    compress=policy.compress,
                )
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
            written = publish_file(tmp_path, container_uri)
            write_manifest(metadata, metadata_uri)

            deleted = store.delete_by_ids(
                [record.id for record in records if record.id is not None],
                tx=scope,
            )
            SelfAuditLogger(store).log(
                action=ACTION_ARCHIVE,
                actor=actor,
                details={
                    "months_old": policy.months_old,
                    "cutoff_date": isoformat(cutoff),
                    "archive_format": policy.archive_format,
                    "compress": policy.compress,
                    "archived_records": len(records),
                    "deleted_records": deleted,
                    "archive_filename": filename,
                    "archive_size": written.bytes_written,
                },
                tx=scope,
            )
    except EmptySelectionError as exc:
        logger.info(
            "Nothing to archive",
            extra={"operation": ACTION_ARCHIVE, "actor": actor, "cutoff": isoformat(cutoff)},
        )
        return OperationResult.failure(str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "Audit trail archive failed",
            extra={
                "operation": ACTION_ARCHIVE,
                "actor": actor,
                "archive_id": archive_id,
                "error_message": str(exc),
            },
        )
        return OperationResult.failure(f"Failed to archive audit trails: {exc}")

    logger.info(
        "Audit trail archive completed",
        extra={
            "operation": ACTION_ARCHIVE,
            "actor": actor,
            "cutoff": isoformat(cutoff),
            "archive_id": archive_id,
            "archive_uri": written.uri,
            "archive_size": written.bytes_written,
            "records_selected": len(records),
            "records_deleted": deleted,
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return OperationResult.success(
        "Audit trails archived successfully",
        {
            "archive_id": archive_id,
            "archive_filename": filename,
            "archive_uri": written.uri,
            "metadata_uri": metadata_uri,
            "archive_size": written.bytes_written,
            "sha256": written.sha256,
            "records_archived": len(records),
            "records_deleted": deleted,
            "date_range": {
                "oldest": isoformat(records[0].timestamp),
                "newest": isoformat(records[-1].timestamp),
            },
        },
    )
