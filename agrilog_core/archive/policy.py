from __future__ import annotations

import os
from dataclasses import dataclass

from agrilog_core.config import env_flag, env_int

FORMAT_ZIP = "zip"
FORMAT_TAR = "tar"
ARCHIVE_FORMATS = (FORMAT_ZIP, FORMAT_TAR)


@dataclass(frozen=True)
class ArchivePolicy:
    months_old: int = 12
    archive_format: str = FORMAT_ZIP
    compress: bool = True
    max_records: int = 100000

    @classmethod
    def from_env(cls) -> "ArchivePolicy":
        return cls(
            months_old=env_int("AUDIT_ARCHIVE_MONTHS_OLD", cls.months_old),
            archive_format=(
                os.getenv("AUDIT_ARCHIVE_FORMAT", "").strip().lower()
                or cls.archive_format
            ),
            compress=env_flag("AUDIT_ARCHIVE_COMPRESS", cls.compress),
            max_records=env_int("AUDIT_ARCHIVE_MAX_RECORDS", cls.max_records),
        )
