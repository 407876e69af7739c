"""Public exports for exporter data models."""

from __future__ import annotations

from .dto import UNKNOWN_ACCOUNT, UNKNOWN_FOLDER, Account, ExportJob, Folder, NoteRecord
from .rows import AccountRow, AttachmentRow, FolderRow, NoteRow

__all__ = [
    "Account",
    "Folder",
    "NoteRecord",
    "ExportJob",
    "AccountRow",
    "FolderRow",
    "NoteRow",
    "AttachmentRow",
    "UNKNOWN_ACCOUNT",
    "UNKNOWN_FOLDER",
]
