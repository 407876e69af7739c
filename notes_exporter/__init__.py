"""Export notes from a local Apple Notes database."""

from .database import NotesDatabase
from .domain import AttachmentDescriptor, NoteBody
from .errors import NotesExportError
from .export import ExportOrchestrator, ExportPhase, ExportState
from .models import Account, Folder, NoteRecord
from .rendering.options import ExportFormat, ExportOptions
from .resolver import AttachmentResolver
from .schema import NotesVersion, SchemaProfile

__all__ = [
    "NotesDatabase",
    "NotesExportError",
    "ExportOrchestrator",
    "ExportPhase",
    "ExportState",
    "ExportFormat",
    "ExportOptions",
    "AttachmentResolver",
    "AttachmentDescriptor",
    "NoteBody",
    "Account",
    "Folder",
    "NoteRecord",
    "NotesVersion",
    "SchemaProfile",
]
