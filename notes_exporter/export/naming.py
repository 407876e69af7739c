"""Output names: sanitizing, collision suffixes and the folder hierarchy."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..models import UNKNOWN_ACCOUNT, UNKNOWN_FOLDER, Account, Folder, NoteRecord

LOGGER = logging.getLogger(__name__)

MAX_COLLISION_ATTEMPTS = 10000

_INVALID = re.compile(r'[/\\:*?"<>|\x00-\x1f\x7f]')


def sanitize_component(name: Optional[str], default: str = "Untitled") -> str:
    """Make `name` safe to use as a single path component."""
    cleaned = _INVALID.sub("_", name or "").strip()
    # A bare "." or ".." would walk the tree.
    if not cleaned or set(cleaned) == {"."}:
        return default
    return cleaned[:200]


def unique_filename(
    base: str,
    extension: str,
    exists: Callable[[str], bool],
    max_attempts: int = MAX_COLLISION_ATTEMPTS,
) -> str:
    """First of `base.ext`, `base (2).ext`, ... for which `exists` is false."""
    suffix = f".{extension}" if extension else ""
    candidate = f"{base}{suffix}"
    if not exists(candidate):
        return candidate
    for n in range(2, max_attempts + 2):
        candidate = f"{base} ({n}){suffix}"
        if not exists(candidate):
            return candidate
    LOGGER.warning("notes.naming.collisions base=%s attempts=%d", base, max_attempts)
    return f"{base} ({uuid.uuid4().hex[:8]}){suffix}"


def split_extension(filename: str) -> Tuple[str, str]:
    if "." in filename.lstrip("."):
        stem, ext = filename.rsplit(".", 1)
        return stem, ext
    return filename, ""


def unique_attachment_name(filename: str, taken: Set[str]) -> str:
    """Reserve a collision-free name within one attachment folder."""
    stem, ext = split_extension(sanitize_component(filename, "attachment"))
    name = unique_filename(stem, ext, lambda c: c.lower() in taken)
    taken.add(name.lower())
    return name


def folder_path(folder_id: Optional[int], folders: Dict[int, Folder]) -> List[str]:
    """Sanitized names from the root folder down to `folder_id`."""
    if folder_id is None or folder_id not in folders:
        return [UNKNOWN_FOLDER]
    parts: List[str] = []
    seen: Set[int] = set()
    current: Optional[int] = folder_id
    while current is not None and current in folders and current not in seen:
        seen.add(current)
        folder = folders[current]
        parts.append(sanitize_component(folder.name, UNKNOWN_FOLDER))
        current = folder.parent_id
    parts.reverse()
    return parts


@dataclass
class FolderNode:
    """One output directory and the notes exported into it."""

    parts: Tuple[str, ...]
    notes: List[NoteRecord] = field(default_factory=list)


@dataclass
class ExportHierarchy:
    """account directory -> folder path -> notes."""

    nodes: Dict[Tuple[str, ...], FolderNode] = field(default_factory=dict)

    def add(self, parts: Tuple[str, ...], note: NoteRecord) -> None:
        node = self.nodes.setdefault(parts, FolderNode(parts))
        node.notes.append(note)

    def directories(self) -> List[Tuple[str, ...]]:
        """Every directory to create, parents before children."""
        dirs: Set[Tuple[str, ...]] = set()
        for parts in self.nodes:
            for i in range(1, len(parts) + 1):
                dirs.add(parts[:i])
        return sorted(dirs, key=lambda p: (len(p), p))

    def pairs(self) -> List[Tuple[NoteRecord, Tuple[str, ...]]]:
        return [(n, node.parts) for node in self.nodes.values() for n in node.notes]

    def notes_under(self, prefix: Tuple[str, ...]) -> List[NoteRecord]:
        return [
            n
            for parts, node in self.nodes.items()
            if parts[: len(prefix)] == prefix
            for n in node.notes
        ]


def build_hierarchy(
    accounts: Iterable[Account],
    folders: Iterable[Folder],
    notes: Iterable[NoteRecord],
) -> ExportHierarchy:
    account_map = {a.id: a for a in accounts}
    folder_map = {f.id: f for f in folders}
    hierarchy = ExportHierarchy()
    for note in notes:
        account_id = note.account_id
        if account_id is None and note.folder_id in folder_map:
            account_id = folder_map[note.folder_id].account_id
        account = account_map.get(account_id) if account_id is not None else None
        account_name = sanitize_component(
            account.name if account else None, UNKNOWN_ACCOUNT
        )
        parts = (account_name, *folder_path(note.folder_id, folder_map))
        hierarchy.add(parts, note)
    return hierarchy
