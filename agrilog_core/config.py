import os
from dataclasses import dataclass

DEFAULT_DB_PATH = "./agrilog_data/audit.duckdb"
DEFAULT_ARCHIVE_ROOT = "./agrilog_data/exports/audit_archives"
DEFAULT_EXPORT_ROOT = "./agrilog_data/exports/audit_trails"

_ALLOWED_BACKENDS = {"duckdb"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class AuditConfig:
    store_backend: str
    db_path: str
    archive_root: str
    export_root: str
    env: str
    log_level: str
    version: str | None = None

    @classmethod
    def from_env(cls) -> "AuditConfig":
        store_backend = os.getenv("AUDIT_STORE_BACKEND", "duckdb").strip().lower()
        if store_backend not in _ALLOWED_BACKENDS:
            allowed = ", ".join(sorted(_ALLOWED_BACKENDS))
            raise ValueError(f"AUDIT_STORE_BACKEND must be one of: {allowed}")

        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        if log_level not in _ALLOWED_LOG_LEVELS:
            allowed = ", ".join(sorted(_ALLOWED_LOG_LEVELS))
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")

        db_path = os.getenv("AUDIT_DB_PATH", "").strip() or DEFAULT_DB_PATH
        archive_root = os.getenv("ARCHIVE_ROOT", "").strip() or DEFAULT_ARCHIVE_ROOT
        export_root = os.getenv("EXPORT_ROOT", "").strip() or DEFAULT_EXPORT_ROOT

        return cls(
            store_backend=store_backend,
            db_path=db_path,
            archive_root=archive_root,
            export_root=export_root,
            env=os.getenv("ENV", "dev").strip() or "dev",
            log_level=log_level,
            version=os.getenv("AGRILOG_VERSION") or None,
        )


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
