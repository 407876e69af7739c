from __future__ import annotations

import logging
import zlib
from typing import List, Optional

from .domain import AttachmentDescriptor, NoteBody
from .protobuf import notes_pb2

LOGGER = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"
_GZIP_HEADER_LEN = 10
_GZIP_TRAILER_LEN = 8

_FHCRC = 0x02
_FEXTRA = 0x04
_FNAME = 0x08
_FCOMMENT = 0x10


def _gzip_payload_offset(data: bytes) -> Optional[int]:
    """Offset of the deflate stream after the gzip header, or None."""
    if len(data) < _GZIP_HEADER_LEN or data[:2] != _GZIP_MAGIC:
        return None
    flags = data[3]
    pos = _GZIP_HEADER_LEN
    if flags & _FEXTRA:
        if pos + 2 > len(data):
            return None
        xlen = data[pos] | (data[pos + 1] << 8)
        pos += 2 + xlen
    if flags & _FNAME:
        end = data.find(b"\x00", pos)
        if end < 0:
            return None
        pos = end + 1
    if flags & _FCOMMENT:
        end = data.find(b"\x00", pos)
        if end < 0:
            return None
        pos = end + 1
    if flags & _FHCRC:
        pos += 2
    if pos >= len(data) - _GZIP_TRAILER_LEN:
        return None
    return pos


def gunzip_blob(data: Optional[bytes]) -> Optional[bytes]:
    """Strip the gzip container and inflate the raw deflate stream.

    Returns None for anything that is not a decodable gzip member (wrong
    magic, truncated header, corrupt stream, empty output). Never raises.
    """
    if not data:
        return None
    data = bytes(data)
    start = _gzip_payload_offset(data)
    if start is None:
        LOGGER.debug("notes.decoder.gzip_header_invalid len=%d", len(data))
        return None
    payload = data[start : len(data) - _GZIP_TRAILER_LEN]
    try:
        out = zlib.decompress(payload, -zlib.MAX_WBITS, max(len(payload) * 10, 64))
    except zlib.error as e:
        LOGGER.debug("notes.decoder.inflate_fail %s", e)
        return None
    if not out:
        LOGGER.debug("notes.decoder.inflate_empty")
        return None
    return out


def decode_mergeable(blob: Optional[bytes]) -> Optional[notes_pb2.MergableDataProto]:
    """Parse a (usually gzipped) ZMERGEABLEDATA blob."""
    if not blob:
        return None
    payload = gunzip_blob(blob) or bytes(blob)
    msg = notes_pb2.MergableDataProto()
    try:
        msg.ParseFromString(payload)
    except Exception as e:
        LOGGER.debug("notes.decoder.mergeable_parse_fail %s", e)
        return None
    return msg


class BodyDecoder:
    """Decode a gzipped ZICNOTEDATA.ZDATA blob into a NoteBody.

    A malformed payload yields an unstructured body carrying the fallback
    text (or "") so a single bad note never aborts a batch.
    """

    def decode(
        self, blob: Optional[bytes], fallback_text: Optional[str] = None
    ) -> NoteBody:
        if not blob:
            return NoteBody.empty(fallback_text)
        doc = gunzip_blob(blob)
        if doc is None:
            return NoteBody.empty(fallback_text)

        msg = notes_pb2.NoteStoreProto()
        try:
            msg.ParseFromString(doc)
        except Exception as e:
            LOGGER.debug("notes.decoder.proto_parse_fail %s", e)
            return NoteBody.empty(fallback_text)

        if not (msg.HasField("document") and msg.document.HasField("note")):
            LOGGER.debug("notes.decoder.no_note_message")
            return NoteBody(
                bytes=doc, text=fallback_text or "", attachment_ids=[], note=None
            )
        note = msg.document.note

        ids: List[AttachmentDescriptor] = []
        seen = set()
        for run in note.attribute_run:
            if not run.HasField("attachment_info"):
                continue
            ai = run.attachment_info
            ident = ai.attachment_identifier or ""
            type_uti = ai.type_uti or None
            if not ident and not type_uti:
                continue
            key = (ident, type_uti)
            if key in seen:
                continue
            seen.add(key)
            ids.append(AttachmentDescriptor(identifier=ident, type_uti=type_uti))
        LOGGER.debug(
            "notes.decoder.attachments ids=%d note_text=%s",
            len(ids),
            bool(note.note_text),
        )
        return NoteBody(bytes=doc, text=note.note_text, attachment_ids=ids, note=note)
