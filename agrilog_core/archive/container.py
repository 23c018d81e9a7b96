from __future__ import annotations

import contextlib
import io
import os
import tarfile
import time
import zipfile
from typing import Protocol

from agrilog_core.archive.policy import FORMAT_TAR, FORMAT_ZIP
from agrilog_core.errors import ArchiveError, ValidationError


class ContainerWriter(Protocol):
    def add(self, name: str, payload: bytes) -> None:
        ...

    def close(self) -> int:
        ...


class ZipContainerWriter:
    def __init__(self, path: str, *, compress: bool) -> None:
        self.path = path
        if compress:
            self._zip = zipfile.ZipFile(
                path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
            )
        else:
            self._zip = zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED)

    def add(self, name: str, payload: bytes) -> None:
        self._zip.writestr(name, payload)

    def close(self) -> int:
        self._zip.close()
        return os.path.getsize(self.path)


class TarContainerWriter:
    def __init__(self, path: str, *, compress: bool) -> None:
        self.path = path
        if compress:
            self._tar = tarfile.open(path, "w:gz", compresslevel=9)
        else:
            self._tar = tarfile.open(path, "w")

    def add(self, name: str, payload: bytes) -> None:
        info = tarfile.TarInfo(name=name)
        info.size = len(payload)
        info.mtime = int(time.time())
        self._tar.addfile(info, io.BytesIO(payload))

    def close(self) -> int:
        self._tar.close()
        return os.path.getsize(self.path)


def open_container(archive_format: str, path: str, *, compress: bool) -> ContainerWriter:
    if archive_format == FORMAT_ZIP:
        return ZipContainerWriter(path, compress=compress)
    if archive_format == FORMAT_TAR:
        return TarContainerWriter(path, compress=compress)
    raise ValidationError(f"Unsupported archive format: {archive_format}")


def write_container(
    archive_format: str,
    path: str,
    entries: list[tuple[str, bytes]],
    *,
    compress: bool,
) -> int:
    """Write every entry and close the container, returning its byte size."""
    try:
        writer = open_container(archive_format, path, compress=compress)
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"Unable to open archive container: {exc}") from exc
    try:
        for name, payload in entries:
            writer.add(name, payload)
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as exc:
        with contextlib.suppress(Exception):
            writer.close()
        raise ArchiveError(f"Unable to write archive container: {exc}") from exc
    try:
        return writer.close()
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as exc:
        raise ArchiveError(f"Unable to finalize archive container: {exc}") from exc
