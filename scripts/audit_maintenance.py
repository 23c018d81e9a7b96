#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import random

from agrilog_core.archive.exporter import archive_audit_trails
from agrilog_core.compaction.runner import compact_audit_trails
from agrilog_core.compaction.strategies import STRATEGIES
from agrilog_core.config import AuditConfig
from agrilog_core.logging import configure_logging
from agrilog_core.reports.generator import REPORT_BUILDERS, generate_audit_report
from agrilog_core.retention.cleanup import cleanup_old_audit_trails
from agrilog_core.stores.registry import get_audit_store


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"Expected a boolean, got {value!r}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Audit trail maintenance.")
    parser.add_argument("--db-path", help="DuckDB audit store path.")
    parser.add_argument("--actor-id", default="maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    cleanup = sub.add_parser("cleanup", help="Delete records past retention.")
    cleanup.add_argument("--days-to-keep", type=int)
    cleanup.add_argument("--dry-run", type=_parse_bool)

    compact = sub.add_parser("compact", help="Compact stale records.")
    compact.add_argument("--months-old", type=int)
    compact.add_argument("--method", choices=sorted(STRATEGIES))
    compact.add_argument("--sample-rate", type=float)
    compact.add_argument("--seed", type=int, help="Seed for the sample method.")

    archive = sub.add_parser("archive", help="Archive and delete stale records.")
    archive.add_argument("--months-old", type=int)
    archive.add_argument("--format", dest="archive_format", choices=["zip", "tar"])
    archive.add_argument("--compress", type=_parse_bool)
    archive.add_argument("--archive-root", help="Destination URI (local or remote).")

    report = sub.add_parser("report", help="Print an audit report.")
    report.add_argument("--type", dest="report_type", choices=sorted(REPORT_BUILDERS))
    report.add_argument("--start-date")
    report.add_argument("--end-date")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    config = AuditConfig.from_env()
    configure_logging(
        service="agrilog-audit-maintenance",
        env=config.env,
        version=config.version,
        level=config.log_level,
    )
    if args.db_path:
        config = AuditConfig(
            store_backend=config.store_backend,
            db_path=args.db_path,
            archive_root=config.archive_root,
            export_root=config.export_root,
            env=config.env,
            log_level=config.log_level,
            version=config.version,
        )
    store = get_audit_store(config)
    try:
        if args.command == "cleanup":
            result = cleanup_old_audit_trails(
                store,
                days_to_keep=args.days_to_keep,
                dry_run=args.dry_run,
                actor_id=args.actor_id,
            )
        elif args.command == "compact":
            result = compact_audit_trails(
                store,
                months_old=args.months_old,
                method=args.method,
                sample_rate=args.sample_rate,
                actor_id=args.actor_id,
                rng=random.Random(args.seed) if args.seed is not None else None,
            )
        elif args.command == "archive":
            result = archive_audit_trails(
                store,
                months_old=args.months_old,
                archive_format=args.archive_format,
                compress=args.compress,
                actor_id=args.actor_id,
                archive_root=args.archive_root or config.archive_root,
            )
        else:
            result = generate_audit_report(
                store,
                args.report_type or "summary",
                start_date=args.start_date,
                end_date=args.end_date,
            )
    finally:
        store.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.status else 1


if __name__ == "__main__":
    raise SystemExit(main())
