"""
Datasource seam between the renderer and storage.

The renderer never touches sqlite or the filesystem; it asks a
`NoteDataSource` for:
  - the UTI of an embedded attachment (by identifier),
  - the gzipped mergeable bytes behind table and URL attachments,
  - the display text of inline attachments (hashtags, mentions),
  - URL card (url, title) pairs,
  - where an attachment was exported to, once it has been.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple


@dataclass(frozen=True)
class ExportedAsset:
    """An attachment written next to the note."""

    relative_path: str
    data_uri: Optional[str] = None


class NoteDataSource(Protocol):
    def get_attachment_uti(self, identifier: str) -> Optional[str]: ...

    def get_mergeable_gz(self, identifier: str) -> Optional[bytes]: ...

    def get_inline_text(self, identifier: str) -> Optional[str]: ...

    def get_url_card(self, identifier: str) -> Optional[Tuple[str, Optional[str]]]: ...

    def get_exported_asset(self, identifier: str) -> Optional[ExportedAsset]: ...


@dataclass(frozen=True)
class AttachmentRef:
    """An attachment run's identifier and the UTI stored on the run, if any."""

    identifier: Optional[str] = None
    type_uti: Optional[str] = None

    def lookup_uti(self, datasource: Optional[NoteDataSource]) -> Optional[str]:
        """The run's UTI, else the attachment row's."""
        if self.type_uti or datasource is None or not self.identifier:
            return self.type_uti
        return datasource.get_attachment_uti(self.identifier)
