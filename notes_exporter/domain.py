from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .protobuf import notes_pb2 as pb

# Attachment types that never carry a file of their own.
NON_FILE_UTI_PREFIXES = (
    "com.apple.notes.table",
    "com.apple.notes.inlinetextattachment",
    "public.url",
)

_UTI_EXTENSIONS = {
    "public.jpeg": "jpg",
    "public.jpg": "jpg",
    "public.png": "png",
    "public.heic": "heic",
    "public.heif": "heif",
    "public.gif": "gif",
    "public.tiff": "tiff",
    "public.pdf": "pdf",
    "com.adobe.pdf": "pdf",
    "com.apple.paper.doc.pdf": "pdf",
    "com.apple.paper": "jpeg",
    "com.apple.quicktime-movie": "mov",
    "public.mpeg-4": "mp4",
    "public.mp3": "mp3",
    "com.apple.m4a-audio": "m4a",
    "public.vcard": "vcf",
}


def extension_for_uti(type_uti: Optional[str]) -> Optional[str]:
    if not type_uti:
        return None
    uti = type_uti.lower()
    if uti in _UTI_EXTENSIONS:
        return _UTI_EXTENSIONS[uti]
    tail = uti.rsplit(".", 1)[-1]
    return tail or None


@dataclass(frozen=True)
class AttachmentDescriptor:
    identifier: str
    type_uti: Optional[str] = None
    filename: Optional[str] = None

    @property
    def extension(self) -> Optional[str]:
        if self.filename and "." in self.filename:
            return self.filename.rsplit(".", 1)[-1]
        return extension_for_uti(self.type_uti)

    @property
    def is_file(self) -> bool:
        uti = (self.type_uti or "").lower()
        return not any(uti.startswith(p) for p in NON_FILE_UTI_PREFIXES)


@dataclass(frozen=True)
class NoteBody:
    """Decoded note payload: plain text, the parsed note and its attachments."""

    bytes: bytes
    text: Optional[str]
    attachment_ids: List[AttachmentDescriptor] = field(default_factory=list)
    note: Optional[pb.Note] = None

    @property
    def is_structured(self) -> bool:
        return self.note is not None

    @classmethod
    def empty(cls, text: Optional[str] = None) -> "NoteBody":
        return cls(bytes=b"", text=text or "", attachment_ids=[], note=None)
