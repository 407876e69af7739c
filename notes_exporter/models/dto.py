"""Exporter data transfer objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

UNKNOWN_ACCOUNT = "Unknown Account"
UNKNOWN_FOLDER = "Unknown Folder"


@dataclass(frozen=True)
class Account:
    id: int
    name: str
    identifier: Optional[str]
    kind: str


@dataclass(frozen=True)
class Folder:
    id: int
    name: str
    account_id: Optional[int]
    parent_id: Optional[int]


@dataclass(frozen=True)
class NoteRecord:
    """Read-only snapshot of one note row; the body is loaded on demand."""

    id: int
    identifier: Optional[str]
    title: str
    snippet: Optional[str]
    folder_id: Optional[int]
    account_id: Optional[int]
    created_at: datetime
    modified_at: datetime

    @property
    def key(self) -> str:
        """Stable key used by the sync watermark."""
        return self.identifier or str(self.id)


@dataclass(frozen=True)
class ExportJob:
    note: NoteRecord
    destination: Path
    format: str
    include_attachments: bool = True
