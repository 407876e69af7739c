"""
NoteStore-backed NoteDataSource for a single note.

Lookups go to the database lazily and are memoized for the lifetime of one
note's export. The orchestrator registers exported attachment paths with
`set_exported_asset` before rendering so placeholders can link to them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..database import NotesDatabase
from ..errors import NotesExportError
from .renderer_iface import ExportedAsset, NoteDataSource

LOGGER = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class DatabaseNoteDataSource(NoteDataSource):
    database: Optional[NotesDatabase] = None
    _uti: Dict[str, Optional[str]] = field(default_factory=dict)
    _mergeable_gz: Dict[str, Optional[bytes]] = field(default_factory=dict)
    _inline_text: Dict[str, Optional[str]] = field(default_factory=dict)
    _url_card: Dict[str, Optional[Tuple[str, Optional[str]]]] = field(
        default_factory=dict
    )
    _exported: Dict[str, ExportedAsset] = field(default_factory=dict)

    def _cached(self, cache: dict, identifier: str, loader):
        hit = cache.get(identifier, _MISSING)
        if hit is not _MISSING:
            return hit
        value = None
        if self.database is not None and identifier:
            try:
                value = loader(identifier)
            except NotesExportError as e:
                LOGGER.debug("notes.datasource.lookup_fail id=%s %s", identifier, e)
        cache[identifier] = value
        return value

    def get_attachment_uti(self, identifier: str) -> Optional[str]:
        return self._cached(
            self._uti, identifier, lambda i: self.database.fetch_attachment_uti(i)
        )

    def get_mergeable_gz(self, identifier: str) -> Optional[bytes]:
        return self._cached(
            self._mergeable_gz,
            identifier,
            lambda i: self.database.fetch_mergeable_data(i),
        )

    def get_inline_text(self, identifier: str) -> Optional[str]:
        return self._cached(
            self._inline_text,
            identifier,
            lambda i: self.database.fetch_inline_text(i),
        )

    def get_url_card(self, identifier: str) -> Optional[Tuple[str, Optional[str]]]:
        return self._cached(
            self._url_card, identifier, lambda i: self.database.fetch_url_card(i)
        )

    def get_exported_asset(self, identifier: str) -> Optional[ExportedAsset]:
        return self._exported.get(identifier)

    def set_exported_asset(
        self, identifier: str, relative_path: str, data_uri: Optional[str] = None
    ) -> None:
        if not identifier or not relative_path:
            return
        self._exported[identifier] = ExportedAsset(relative_path, data_uri)
