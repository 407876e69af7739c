"""
Column-name resolution for NoteStore.sqlite.

Apple renamed and added columns on ZICCLOUDSYNCINGOBJECT with nearly every OS
release. `resolve_schema` inspects the live column inventory once and returns
a `SchemaProfile`, an immutable mapping from logical fields to the concrete
column names of the detected generation. Query code only ever reads the
profile; it never inspects columns itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterable, Optional, Sequence, Tuple


class NotesVersion(IntEnum):
    UNKNOWN = -1
    LEGACY = 0
    IOS9 = 9
    IOS10 = 10
    IOS11 = 11
    IOS12 = 12
    IOS13 = 13
    IOS14 = 14
    IOS15 = 15
    IOS16 = 16
    IOS17 = 17
    IOS18 = 18


def _has_column(prefix: str) -> Callable[[frozenset, frozenset], bool]:
    def check(columns: frozenset, tables: frozenset) -> bool:
        return any(c.startswith(prefix) for c in columns)

    return check


def _has_table(name: str) -> Callable[[frozenset, frozenset], bool]:
    def check(columns: frozenset, tables: frozenset) -> bool:
        return name in tables

    return check


# Newest signature first; first match wins.
_SIGNATURES: Sequence[Tuple[NotesVersion, Callable[[frozenset, frozenset], bool]]] = (
    (NotesVersion.IOS18, _has_column("ZUNAPPLIEDENCRYPTEDRECORDDATA")),
    (NotesVersion.IOS17, _has_column("ZGENERATION")),
    (NotesVersion.IOS16, _has_column("ZACCOUNT6")),
    (NotesVersion.IOS15, _has_column("ZACCOUNT5")),
    (NotesVersion.IOS14, _has_column("ZLASTOPENEDDATE")),
    (NotesVersion.IOS13, _has_column("ZACCOUNT4")),
    (NotesVersion.IOS12, _has_column("ZSERVERRECORDDATA")),
    (NotesVersion.IOS11, _has_table("Z_11NOTES")),
    (NotesVersion.IOS10, _has_column("ZMINIMUMSUPPORTEDNOTESVERSION")),
    (NotesVersion.IOS9, _has_column("ZNOTEDATA")),
)


@dataclass(frozen=True)
class SchemaProfile:
    version: NotesVersion

    note_title: str
    note_folder: str
    note_account: str
    note_creation_date: str
    note_modification_date: str
    note_snippet: Optional[str]
    note_password_protected: Optional[str]

    folder_title: str
    folder_account: str
    folder_parent: Optional[str]

    account_name: str
    account_identifier: str
    account_type: Optional[str]

    marked_for_deletion: Optional[str]
    attachment_media: Optional[str]
    attachment_mergeable_data: Optional[str]
    attachment_alt_text: Optional[str]
    attachment_token_identifier: Optional[str]
    attachment_url: Optional[str]
    fallback_image_generation: Optional[str]
    fallback_pdf_generation: Optional[str]

    @property
    def is_modern(self) -> bool:
        return self.version >= NotesVersion.IOS9


def _first(columns: frozenset, candidates: Iterable[str], default: str) -> str:
    for name in candidates:
        if name in columns:
            return name
    return default


def _optional(columns: frozenset, *candidates: str) -> Optional[str]:
    for name in candidates:
        if name in columns:
            return name
    return None


def detect_version(
    columns: Iterable[str], tables: Iterable[str] = ()
) -> NotesVersion:
    cols = frozenset(columns)
    tbls = frozenset(tables)
    if not cols:
        return NotesVersion.UNKNOWN
    for version, matches in _SIGNATURES:
        if matches(cols, tbls):
            return version
    return NotesVersion.LEGACY


def resolve_schema(
    columns: Iterable[str], tables: Iterable[str] = ()
) -> SchemaProfile:
    """Build the profile for a column inventory. Never raises.

    Unknown or empty inventories fall back to the oldest layout's names.
    """
    cols = frozenset(columns)
    version = detect_version(cols, tables)
    return SchemaProfile(
        version=version,
        note_title=_first(cols, ("ZTITLE1", "ZTITLE2", "ZTITLE"), "ZTITLE"),
        note_folder=_first(cols, ("ZFOLDER", "ZFOLDER2"), "ZFOLDER"),
        note_account=_first(
            cols,
            ("ZACCOUNT7", "ZACCOUNT4", "ZACCOUNT3", "ZACCOUNT2", "ZACCOUNT"),
            "ZACCOUNT",
        ),
        note_creation_date=_first(
            cols,
            ("ZCREATIONDATE3", "ZCREATIONDATE1", "ZCREATIONDATE"),
            "ZCREATIONDATE",
        ),
        note_modification_date=_first(
            cols, ("ZMODIFICATIONDATE1", "ZMODIFICATIONDATE"), "ZMODIFICATIONDATE"
        ),
        note_snippet=_optional(cols, "ZSNIPPET"),
        note_password_protected=_optional(
            cols, "ZISPASSWORDPROTECTED", "ZPASSWORDPROTECTED"
        ),
        folder_title=_first(cols, ("ZTITLE2", "ZTITLE1", "ZTITLE"), "ZTITLE"),
        folder_account=_first(cols, ("ZOWNER", "ZACCOUNT", "ZACCOUNT2"), "ZOWNER"),
        folder_parent=_optional(cols, "ZPARENT"),
        account_name=_first(cols, ("ZNAME",), "ZNAME"),
        account_identifier=_first(cols, ("ZIDENTIFIER",), "ZIDENTIFIER"),
        account_type=_optional(cols, "ZACCOUNTTYPE"),
        marked_for_deletion=_optional(cols, "ZMARKEDFORDELETION"),
        attachment_media=_optional(cols, "ZMEDIA"),
        attachment_mergeable_data=_optional(cols, "ZMERGEABLEDATA1", "ZMERGEABLEDATA"),
        attachment_alt_text=_optional(cols, "ZALTTEXT"),
        attachment_token_identifier=_optional(cols, "ZTOKENCONTENTIDENTIFIER"),
        attachment_url=_optional(cols, "ZURLSTRING"),
        fallback_image_generation=_optional(cols, "ZFALLBACKIMAGEGENERATION"),
        fallback_pdf_generation=_optional(cols, "ZFALLBACKPDFGENERATION"),
    )


__all__ = ["NotesVersion", "SchemaProfile", "detect_version", "resolve_schema"]
