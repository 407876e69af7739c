"""Sync watermark for incremental exports."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..models import NoteRecord

LOGGER = logging.getLogger(__name__)

MANIFEST_FILENAME = "AppleNotesExportSyncWatermark.json"
MANIFEST_VERSION = 1
MODIFICATION_TOLERANCE = 0.001


class ManifestEntry(BaseModel):
    modification_date: datetime
    exported_path: str
    attachment_paths: List[str] = Field(default_factory=list)


class SyncManifest(BaseModel):
    version: int = MANIFEST_VERSION
    last_sync: Optional[datetime] = None
    notes: Dict[str, ManifestEntry] = Field(default_factory=dict)

    @classmethod
    def load(cls, root: Path) -> "SyncManifest":
        path = root / MANIFEST_FILENAME
        if not path.is_file():
            return cls()
        try:
            return cls.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            LOGGER.warning("Ignoring unreadable sync manifest %s: %s", path, e)
            return cls()

    def save(self, root: Path) -> None:
        self.last_sync = datetime.now(timezone.utc)
        fd, tmp = tempfile.mkstemp(dir=root, prefix=".watermark-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(self.model_dump_json(indent=2))
            os.replace(tmp, root / MANIFEST_FILENAME)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def notes_needing_export(self, notes: Iterable[NoteRecord]) -> List[NoteRecord]:
        """Notes that are new, or whose modification date has moved."""
        pending: List[NoteRecord] = []
        for note in notes:
            entry = self.notes.get(note.key)
            if entry is None:
                pending.append(note)
                continue
            delta = abs(
                (note.modified_at - entry.modification_date).total_seconds()
            )
            if delta > MODIFICATION_TOLERANCE:
                pending.append(note)
        return pending

    def existing_path(self, note: NoteRecord) -> Optional[str]:
        entry = self.notes.get(note.key)
        return entry.exported_path if entry else None

    def record_export(
        self,
        note: NoteRecord,
        exported_path: str,
        attachment_paths: Iterable[str] = (),
    ) -> None:
        self.notes[note.key] = ManifestEntry(
            modification_date=note.modified_at,
            exported_path=exported_path,
            attachment_paths=list(attachment_paths),
        )
