"""Exception hierarchy for the Notes exporter."""

from __future__ import annotations

from typing import Optional


class NotesExportError(Exception):
    """Base exporter error."""


class DatabaseUnavailableError(NotesExportError):
    """NoteStore database missing, unreadable, or not a NoteStore."""


class NoteNotFoundError(NotesExportError):
    """Requested note row does not exist (or is deleted/locked)."""


class AttachmentUnresolvedError(NotesExportError):
    """No lookup strategy located the attachment's file."""

    def __init__(self, identifier: str, type_uti: Optional[str] = None):
        super().__init__(
            f"Attachment {identifier} ({type_uti or 'unknown type'}) could not be located"
        )
        self.identifier = identifier
        self.type_uti = type_uti


class RenderTimeoutError(NotesExportError):
    """PDF rendering exceeded its time bound."""

    def __init__(self, timeout: float):
        super().__init__(f"PDF rendering timed out after {timeout:g} seconds")
        self.timeout = timeout


class ExportFilesystemError(NotesExportError):
    """A directory or file could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ExportCancelledError(NotesExportError):
    """User requested cancellation."""


__all__ = [
    "NotesExportError",
    "DatabaseUnavailableError",
    "NoteNotFoundError",
    "AttachmentUnresolvedError",
    "RenderTimeoutError",
    "ExportFilesystemError",
    "ExportCancelledError",
]
