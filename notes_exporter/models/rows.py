"""
Typed rows read from NoteStore.sqlite.

Queries alias their columns to the field names below, so the concrete
per-generation column names stay confined to the SchemaProfile.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from pydantic import BeforeValidator, PlainSerializer

from ._base import RowModel

# CoreData timestamps count seconds from 2001-01-01T00:00:00Z.
COREDATA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

ACCOUNT_TYPE_NAMES = {
    0: "Local",
    1: "Exchange",
    2: "IMAP",
    3: "iCloud",
    4: "Google",
}


def _from_coredata_or_now(v):
    # Missing or non-positive values mean "unknown"; use now.
    if v is None:
        return datetime.now(timezone.utc)
    if isinstance(v, datetime):
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
    if isinstance(v, (bytes, bytearray)):
        v = v.decode("ascii", "ignore")
    try:
        secs = float(v)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    if secs <= 0:
        return datetime.now(timezone.utc)
    return COREDATA_EPOCH + timedelta(seconds=secs)


def _to_coredata(dt: datetime) -> float:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - COREDATA_EPOCH).total_seconds()


CoreDataDateTime = Annotated[
    datetime,
    BeforeValidator(_from_coredata_or_now),
    PlainSerializer(_to_coredata, return_type=float, when_used="json"),
]


def _text(v):
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).decode("utf-8", "replace")
    if v is None:
        return None
    return str(v)


# Some generations store identifiers and generation tokens as BLOB or INTEGER.
Text = Annotated[Optional[str], BeforeValidator(_text)]


class AccountRow(RowModel):
    pk: int
    name: Text = None
    identifier: Text = None
    account_type: Optional[int] = None

    @property
    def type_name(self) -> str:
        if self.account_type is None:
            return "Unknown"
        return ACCOUNT_TYPE_NAMES.get(self.account_type, "Unknown")


class FolderRow(RowModel):
    pk: int
    title: Text = None
    account_pk: Optional[int] = None
    parent_pk: Optional[int] = None


class NoteRow(RowModel):
    pk: int
    identifier: Text = None
    title: Text = None
    snippet: Text = None
    folder_pk: Optional[int] = None
    account_pk: Optional[int] = None
    created_at: CoreDataDateTime
    modified_at: CoreDataDateTime


class AttachmentRow(RowModel):
    pk: int
    identifier: Annotated[str, BeforeValidator(_text)]
    type_uti: Text = None
    filename: Text = None
    media_pk: Optional[int] = None
    note_pk: Optional[int] = None
    account_pk: Optional[int] = None
    account_identifier: Text = None
    fallback_image_generation: Text = None
    fallback_pdf_generation: Text = None


__all__ = [
    "COREDATA_EPOCH",
    "CoreDataDateTime",
    "AccountRow",
    "FolderRow",
    "NoteRow",
    "AttachmentRow",
]
