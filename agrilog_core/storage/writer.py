from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from dataclasses import dataclass
from urllib.parse import urlparse

import fsspec


@dataclass(frozen=True)
class WriteResult:
    uri: str
    bytes_written: int
    sha256: str


def _sha256_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _write_local(src_path: str, dest_path: str) -> None:
    parent = os.path.dirname(dest_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        os.replace(src_path, dest_path)
    except OSError:
        # Temp dir and destination may sit on different devices.
        shutil.move(src_path, dest_path)


def _write_remote(src_path: str, dest_uri: str) -> None:
    fs, path = fsspec.core.url_to_fs(dest_uri)
    fs.makedirs(os.path.dirname(path), exist_ok=True)
    with fs.open(path, "wb") as handle, open(src_path, "rb") as src:
        shutil.copyfileobj(src, handle)


def uri_exists(uri: str) -> bool:
    fs, path = fsspec.core.url_to_fs(uri)
    return fs.exists(path)


def new_temp_path(suffix: str) -> str:
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        return tmp.name


def publish_file(tmp_path: str, dest_uri: str) -> WriteResult:
    """Hash a finished temp file and move it to its final destination."""
    try:
        bytes_written = os.path.getsize(tmp_path)
        checksum = _sha256_file(tmp_path)
        parsed = urlparse(dest_uri)
        if parsed.scheme == "file":
            _write_local(tmp_path, parsed.path)
        elif parsed.scheme and parsed.netloc:
            _write_remote(tmp_path, dest_uri)
        else:
            _write_local(tmp_path, dest_uri)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)

    return WriteResult(uri=dest_uri, bytes_written=bytes_written, sha256=checksum)


def write_bytes(payload: bytes, dest_uri: str, *, suffix: str = "") -> WriteResult:
    tmp_path = new_temp_path(suffix)
    try:
        with open(tmp_path, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        os.unlink(tmp_path)
        raise
    return publish_file(tmp_path, dest_uri)
