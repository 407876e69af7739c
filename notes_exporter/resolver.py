"""
Locate attachment files inside the Notes group container.

Lookup is a fixed, ordered list of strategies over a bounded set of roots:

1. media pointer: the attachment row references a media row whose
   ZFILENAME is searched for under Media/, Accounts/ and Fallbacks/;
2. fallback rendition: drawings and scans keep pre-rendered copies under
   Accounts/<account>/FallbackImages|FallbackPDFs, either in a
   generation-qualified folder or (older layouts) as a flat file;
3. direct filename: the attachment row's own ZFILENAME, searched like 1.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, Union

from .database import NotesDatabase
from .domain import AttachmentDescriptor
from .errors import AttachmentUnresolvedError
from .models.rows import AttachmentRow

LOGGER = logging.getLogger(__name__)

CONTAINER_ENV = "NOTES_EXPORTER_CONTAINER"
DEFAULT_CONTAINER = Path("~/Library/Group Containers/group.com.apple.notes")

SEARCH_SUBDIRS = ("Media", "Accounts", "Fallbacks")


@dataclass(frozen=True)
class FallbackFamily:
    directory: str
    stem: str
    extensions: Tuple[str, ...]
    generation_field: str


_FALLBACK_FAMILIES = {
    "com.apple.paper": FallbackFamily(
        "FallbackImages",
        "FallbackImage",
        ("jpeg", "png", "jpg"),
        "fallback_image_generation",
    ),
    "com.apple.drawing.2": FallbackFamily(
        "FallbackImages",
        "FallbackImage",
        ("jpeg", "png", "jpg"),
        "fallback_image_generation",
    ),
    "com.apple.drawing": FallbackFamily(
        "FallbackImages",
        "FallbackImage",
        ("jpeg", "png", "jpg"),
        "fallback_image_generation",
    ),
    "com.apple.paper.doc.pdf": FallbackFamily(
        "FallbackPDFs",
        "FallbackPDF",
        ("pdf",),
        "fallback_pdf_generation",
    ),
}


def default_container() -> Path:
    env = os.getenv(CONTAINER_ENV)
    return Path(env).expanduser() if env else DEFAULT_CONTAINER.expanduser()


@dataclass(frozen=True)
class ResolvedAttachment:
    descriptor: AttachmentDescriptor
    path: Path
    strategy: str

    @property
    def filename(self) -> str:
        """Name to export under; renditions are named after the attachment."""
        if self.strategy == "fallback":
            return f"{self.descriptor.identifier}{self.path.suffix}"
        name = self.descriptor.filename or self.path.name
        if "." not in name and self.descriptor.extension:
            return f"{name}.{self.descriptor.extension}"
        return name


class AttachmentResolver:
    def __init__(
        self,
        database: NotesDatabase,
        container: Optional[Union[str, Path]] = None,
        max_depth: int = 6,
    ):
        self._db = database
        self.container = Path(container).expanduser() if container else default_container()
        self.max_depth = max_depth

    @property
    def search_roots(self) -> List[Path]:
        return [self.container / d for d in SEARCH_SUBDIRS]

    def resolve(self, identifier: str) -> Optional[ResolvedAttachment]:
        """Try each strategy in order; None when every one fails."""
        row = self._db.fetch_attachment(identifier)
        if row is None:
            LOGGER.debug("notes.resolver.no_row id=%s", identifier)
            return None
        strategies: Sequence[
            Tuple[str, Callable[[AttachmentRow], Optional[Tuple[Path, Optional[str]]]]]
        ] = (
            ("media", self._from_media),
            ("fallback", self._from_fallback),
            ("filename", self._from_filename),
        )
        for name, strategy in strategies:
            found = strategy(row)
            if found is None:
                continue
            path, filename = found
            LOGGER.debug("notes.resolver.hit id=%s strategy=%s", identifier, name)
            return ResolvedAttachment(
                descriptor=AttachmentDescriptor(
                    identifier=identifier, type_uti=row.type_uti, filename=filename
                ),
                path=path,
                strategy=name,
            )
        LOGGER.debug("notes.resolver.miss id=%s uti=%s", identifier, row.type_uti)
        return None

    def require(self, descriptor: AttachmentDescriptor) -> ResolvedAttachment:
        resolved = self.resolve(descriptor.identifier)
        if resolved is None:
            raise AttachmentUnresolvedError(descriptor.identifier, descriptor.type_uti)
        return resolved

    def read(self, resolved: ResolvedAttachment) -> bytes:
        return resolved.path.read_bytes()

    # ------------------------------------------------------------------ strategies

    def _from_media(self, row: AttachmentRow) -> Optional[Tuple[Path, Optional[str]]]:
        if row.media_pk is None:
            return None
        filename = self._db.fetch_media_filename(row.media_pk)
        if not filename:
            return None
        path = self.find_file(filename)
        return (path, filename) if path else None

    def _from_fallback(
        self, row: AttachmentRow
    ) -> Optional[Tuple[Path, Optional[str]]]:
        family = _FALLBACK_FAMILIES.get((row.type_uti or "").lower())
        if family is None:
            return None
        generation = getattr(row, family.generation_field)
        for base in self._account_dirs(row):
            for candidate in _fallback_candidates(base, family, row.identifier, generation):
                if candidate.is_file():
                    return candidate, None
        return None

    def _from_filename(
        self, row: AttachmentRow
    ) -> Optional[Tuple[Path, Optional[str]]]:
        if not row.filename:
            return None
        path = self.find_file(row.filename)
        return (path, row.filename) if path else None

    # ------------------------------------------------------------------ helpers

    def _account_dirs(self, row: AttachmentRow) -> List[Path]:
        accounts = self.container / "Accounts"
        names: List[str] = []
        for name in (row.account_identifier, row.account_pk):
            if name is not None and str(name) not in names:
                names.append(str(name))
        dirs = [accounts / n for n in names]
        # Local-only accounts keep renditions at the container root.
        dirs.append(self.container)
        return dirs

    def _walk(self, root: Path) -> Iterator[Path]:
        base_depth = len(root.parts)
        for dirpath, dirnames, filenames in os.walk(root):
            depth = len(Path(dirpath).parts) - base_depth
            if depth >= self.max_depth:
                dirnames[:] = []
            dirnames.sort()
            for name in sorted(filenames):
                yield Path(dirpath) / name

    def find_file(self, filename: str) -> Optional[Path]:
        """First file under the search roots whose name matches, in root order."""
        for root in self.search_roots:
            if not root.is_dir():
                continue
            for path in self._walk(root):
                if path.name == filename or str(path).endswith(os.sep + filename):
                    return path
        return None


def _fallback_candidates(
    base: Path, family: FallbackFamily, identifier: str, generation: Optional[str]
) -> Iterator[Path]:
    folder = base / family.directory
    if generation:
        for ext in family.extensions:
            yield folder / identifier / generation / f"{family.stem}.{ext}"
    else:
        for ext in family.extensions:
            yield folder / f"{identifier}.{ext}"


__all__ = [
    "AttachmentResolver",
    "ResolvedAttachment",
    "default_container",
]
