"""Filesystem boundary used by the exporter."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..errors import ExportFilesystemError


@runtime_checkable
class FileSystem(Protocol):
    def create_dir(self, path: Path) -> None: ...

    def write_file(self, path: Path, data: bytes) -> None: ...

    def file_exists(self, path: Path) -> bool: ...

    def set_timestamps(
        self, path: Path, created: datetime, modified: datetime
    ) -> None: ...


class LocalFileSystem:
    """FileSystem backed by the local disk.

    POSIX has no settable creation time, so `created` is only honoured where
    the platform exposes it; access and modification times both get
    `modified`.
    """

    def create_dir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportFilesystemError(f"Cannot create directory: {e}", str(path)) from e

    def write_file(self, path: Path, data: bytes) -> None:
        try:
            path.write_bytes(data)
        except OSError as e:
            raise ExportFilesystemError(f"Cannot write file: {e}", str(path)) from e

    def file_exists(self, path: Path) -> bool:
        return path.exists()

    def set_timestamps(self, path: Path, created: datetime, modified: datetime) -> None:
        stamp = modified.timestamp()
        try:
            os.utime(path, (stamp, stamp))
        except OSError as e:
            raise ExportFilesystemError(f"Cannot set timestamps: {e}", str(path)) from e
