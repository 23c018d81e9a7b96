from __future__ import annotations

from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse


def _strip_slashes(value: str) -> str:
    return value.strip("/")


def _join_parts(parts: Iterable[str]) -> str:
    return "/".join(_strip_slashes(part) for part in parts if part)


def join_uri(base_uri: str, *parts: str) -> str:
    parsed = urlparse(base_uri)
    if parsed.scheme == "file":
        safe_parts = [_strip_slashes(part) for part in parts if part]
        return str(Path(parsed.path).joinpath(*safe_parts))
    if parsed.scheme and parsed.netloc:
        base = base_uri.rstrip("/")
        return f"{base}/{_join_parts(parts)}"
    safe_parts = [_strip_slashes(part) for part in parts if part]
    return str(Path(base_uri).joinpath(*safe_parts))


def archive_uri(archive_root: str, archive_id: str, extension: str) -> str:
    return join_uri(archive_root, f"{archive_id}.{extension}")


def archive_metadata_uri(archive_root: str, archive_id: str) -> str:
    return join_uri(archive_root, f"{archive_id}_metadata.json")


def export_uri(export_root: str, filename: str) -> str:
    return join_uri(export_root, filename)
