"""
Read-only access to an Apple Notes NoteStore.sqlite database.

Every query is built from the connection's SchemaProfile, so the concrete
column names of the detected OS generation are resolved exactly once, when
the database is opened.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from .decoding import BodyDecoder, decode_mergeable
from .domain import NoteBody
from .errors import DatabaseUnavailableError, NoteNotFoundError
from .models.dto import Account, Folder, NoteRecord
from .models.rows import AccountRow, AttachmentRow, FolderRow, NoteRow
from .schema import SchemaProfile, resolve_schema

LOGGER = logging.getLogger(__name__)

RECORD_TABLE = "ZICCLOUDSYNCINGOBJECT"
NOTE_DATA_TABLE = "ZICNOTEDATA"


def _entity(name: str) -> str:
    return f"(SELECT Z_ENT FROM Z_PRIMARYKEY WHERE Z_NAME = '{name}')"


class NotesDatabase:
    """NoteStore.sqlite opened read-only.

    The connection is shared across worker threads; a lock serializes
    access to it.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.is_file():
            raise DatabaseUnavailableError(f"Notes database not found: {self.path}")
        try:
            self._conn = sqlite3.connect(
                f"file:{self.path}?mode=ro", uri=True, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise DatabaseUnavailableError(
                f"Cannot open Notes database {self.path}: {e}"
            ) from e
        self._conn.row_factory = sqlite3.Row
        self._conn.text_factory = lambda b: b.decode("utf-8", "replace")
        self._lock = threading.Lock()
        self._decoder = BodyDecoder()

        self.tables = frozenset(
            r[0]
            for r in self._query("SELECT name FROM sqlite_master WHERE type='table'")
        )
        if RECORD_TABLE not in self.tables:
            self.close()
            raise DatabaseUnavailableError(
                f"{self.path} is not a NoteStore database ({RECORD_TABLE} missing)"
            )
        self.columns = frozenset(
            r[1] for r in self._query(f"PRAGMA table_info({RECORD_TABLE})")
        )
        self.profile: SchemaProfile = resolve_schema(self.columns, self.tables)
        LOGGER.info(
            "notes.db.opened path=%s version=%s", self.path, self.profile.version.name
        )

    # ------------------------------------------------------------------ plumbing

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "NotesDatabase":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _query(self, sql: str, params: Tuple[Any, ...] = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                LOGGER.debug("notes.db.query_fail %s sql=%s", e, sql)
                raise DatabaseUnavailableError(f"Query failed: {e}") from e

    def _col(self, name: Optional[str], alias: str, table: str = "o") -> str:
        if name and name in self.columns:
            return f"{table}.{name} AS {alias}"
        return f"NULL AS {alias}"

    def _live_filter(self, table: str = "o") -> str:
        col = self.profile.marked_for_deletion
        if not col:
            return ""
        return f" AND ({table}.{col} = 0 OR {table}.{col} IS NULL)"

    # ------------------------------------------------------------------ hierarchy

    def fetch_accounts(self) -> List[Account]:
        p = self.profile
        rows = self._query(
            f"SELECT o.Z_PK AS pk, {self._col(p.account_name, 'name')}, "
            f"{self._col(p.account_identifier, 'identifier')}, "
            f"{self._col(p.account_type, 'account_type')} "
            f"FROM {RECORD_TABLE} o WHERE o.Z_ENT = {_entity('ICAccount')}"
        )
        out: List[Account] = []
        for r in rows:
            try:
                row = AccountRow.model_validate(dict(r))
            except ValidationError as e:
                LOGGER.debug("notes.db.account_row_invalid %s", e)
                continue
            out.append(
                Account(
                    id=row.pk,
                    name=row.name or row.type_name,
                    identifier=row.identifier,
                    kind=row.type_name,
                )
            )
        return out

    def fetch_folders(self) -> List[Folder]:
        p = self.profile
        rows = self._query(
            f"SELECT o.Z_PK AS pk, {self._col(p.folder_title, 'title')}, "
            f"{self._col(p.folder_account, 'account_pk')}, "
            f"{self._col(p.folder_parent, 'parent_pk')} "
            f"FROM {RECORD_TABLE} o WHERE o.Z_ENT = {_entity('ICFolder')}"
            f"{self._live_filter()}"
        )
        out: List[Folder] = []
        for r in rows:
            try:
                row = FolderRow.model_validate(dict(r))
            except ValidationError as e:
                LOGGER.debug("notes.db.folder_row_invalid %s", e)
                continue
            out.append(
                Folder(
                    id=row.pk,
                    name=row.title or "Untitled Folder",
                    account_id=row.account_pk,
                    parent_id=row.parent_pk,
                )
            )
        return out

    def _note_select(self) -> str:
        p = self.profile
        locked = ""
        if p.note_password_protected:
            col = p.note_password_protected
            locked = f" AND (o.{col} = 0 OR o.{col} IS NULL)"
        return (
            f"SELECT o.Z_PK AS pk, {self._col('ZIDENTIFIER', 'identifier')}, "
            f"{self._col(p.note_title, 'title')}, "
            f"{self._col(p.note_snippet, 'snippet')}, "
            f"{self._col(p.note_folder, 'folder_pk')}, "
            f"{self._col(p.note_account, 'account_pk')}, "
            f"{self._col(p.note_creation_date, 'created_at')}, "
            f"{self._col(p.note_modification_date, 'modified_at')} "
            f"FROM {RECORD_TABLE} o WHERE o.Z_ENT = {_entity('ICNote')}"
            f"{self._live_filter()}{locked}"
        )

    @staticmethod
    def _note_record(row: NoteRow) -> NoteRecord:
        return NoteRecord(
            id=row.pk,
            identifier=row.identifier,
            title=(row.title or "").strip() or "Untitled",
            snippet=row.snippet,
            folder_id=row.folder_pk,
            account_id=row.account_pk,
            created_at=row.created_at,
            modified_at=row.modified_at,
        )

    def fetch_notes(self, folder_id: Optional[int] = None) -> List[NoteRecord]:
        sql = self._note_select()
        params: Tuple[Any, ...] = ()
        if folder_id is not None:
            sql += f" AND o.{self.profile.note_folder} = ?"
            params = (folder_id,)
        out: List[NoteRecord] = []
        for r in self._query(sql, params):
            try:
                out.append(self._note_record(NoteRow.model_validate(dict(r))))
            except ValidationError as e:
                LOGGER.debug("notes.db.note_row_invalid %s", e)
        return out

    def fetch_note(self, note_id: int) -> NoteRecord:
        rows = self._query(self._note_select() + " AND o.Z_PK = ?", (note_id,))
        if not rows:
            raise NoteNotFoundError(f"Note {note_id} not found")
        return self._note_record(NoteRow.model_validate(dict(rows[0])))

    # ------------------------------------------------------------------ payloads

    def fetch_note_data(self, note_id: int) -> Optional[bytes]:
        if NOTE_DATA_TABLE not in self.tables:
            return None
        rows = self._query(
            f"SELECT ZDATA FROM {NOTE_DATA_TABLE} WHERE ZNOTE = ?", (note_id,)
        )
        if not rows or rows[0][0] is None:
            return None
        return bytes(rows[0][0])

    def load_note_body(self, note: NoteRecord) -> NoteBody:
        """Decode the note's payload. Undecodable payloads fall back to the snippet."""
        blob = self.fetch_note_data(note.id)
        body = self._decoder.decode(blob, fallback_text=note.snippet)
        if not body.is_structured:
            LOGGER.debug("notes.db.unstructured_body note=%s", note.id)
        return body

    # ------------------------------------------------------------------ attachments

    def _attachment_row(self, identifier: str) -> Optional[sqlite3.Row]:
        rows = self._query(
            f"SELECT o.* FROM {RECORD_TABLE} o "
            f"WHERE o.Z_ENT = {_entity('ICAttachment')} AND o.ZIDENTIFIER = ?",
            (identifier,),
        )
        if rows:
            return rows[0]
        # Some generations register attachments under other entity names.
        if "ZTYPEUTI" in self.columns:
            rows = self._query(
                f"SELECT o.* FROM {RECORD_TABLE} o WHERE o.ZIDENTIFIER = ? "
                f"AND o.ZTYPEUTI IS NOT NULL",
                (identifier,),
            )
            if rows:
                return rows[0]
        return None

    def fetch_attachment(self, identifier: str) -> Optional[AttachmentRow]:
        p = self.profile
        if not identifier or "ZIDENTIFIER" not in self.columns:
            return None
        row = self._attachment_row(identifier)
        if row is None:
            return None
        keys = row.keys()

        def _get(col: Optional[str]) -> Any:
            return row[col] if col and col in keys else None

        note_pk = _get("ZNOTE")
        account_pk = None
        account_identifier = None
        if note_pk is not None:
            acct = self._query(
                f"SELECT n.{p.note_account} AS account_pk, a.{p.account_identifier} "
                f"AS account_identifier FROM {RECORD_TABLE} n "
                f"LEFT JOIN {RECORD_TABLE} a ON a.Z_PK = n.{p.note_account} "
                f"WHERE n.Z_PK = ?",
                (note_pk,),
            )
            if acct:
                account_pk = acct[0]["account_pk"]
                account_identifier = acct[0]["account_identifier"]

        try:
            return AttachmentRow(
                pk=row["Z_PK"],
                identifier=identifier,
                type_uti=_get("ZTYPEUTI"),
                filename=_get("ZFILENAME"),
                media_pk=_get(p.attachment_media),
                note_pk=note_pk,
                account_pk=account_pk,
                account_identifier=account_identifier,
                fallback_image_generation=_get(p.fallback_image_generation),
                fallback_pdf_generation=_get(p.fallback_pdf_generation),
            )
        except ValidationError as e:
            LOGGER.debug("notes.db.attachment_row_invalid %s %s", identifier, e)
            return None

    def fetch_media_filename(self, media_pk: int) -> Optional[str]:
        if "ZFILENAME" not in self.columns:
            return None
        rows = self._query(
            f"SELECT ZFILENAME FROM {RECORD_TABLE} WHERE Z_PK = ?", (media_pk,)
        )
        if not rows or not rows[0][0]:
            return None
        return str(rows[0][0])

    def fetch_attachment_uti(self, identifier: str) -> Optional[str]:
        row = self.fetch_attachment(identifier)
        return row.type_uti if row else None

    def fetch_mergeable_data(self, identifier: str) -> Optional[bytes]:
        col = self.profile.attachment_mergeable_data
        if not col or "ZIDENTIFIER" not in self.columns:
            return None
        rows = self._query(
            f"SELECT {col} FROM {RECORD_TABLE} WHERE ZIDENTIFIER = ? "
            f"AND {col} IS NOT NULL",
            (identifier,),
        )
        if not rows:
            return None
        return bytes(rows[0][0])

    def fetch_inline_text(self, identifier: str) -> Optional[str]:
        """Display text of an inline attachment (hashtag, mention, calc result)."""
        p = self.profile
        cols = [c for c in (p.attachment_alt_text, p.attachment_token_identifier) if c]
        if not cols or "ZIDENTIFIER" not in self.columns:
            return None
        rows = self._query(
            f"SELECT {', '.join(cols)} FROM {RECORD_TABLE} WHERE ZIDENTIFIER = ?",
            (identifier,),
        )
        if not rows:
            return None
        for value in rows[0]:
            if value:
                return str(value)
        return None

    def fetch_url_card(self, identifier: str) -> Optional[Tuple[str, Optional[str]]]:
        """(url, title) for a public.url attachment."""
        p = self.profile
        row = self._attachment_row(identifier) if "ZIDENTIFIER" in self.columns else None
        if row is None:
            return None
        keys = row.keys()
        title = None
        for col in ("ZTITLE", p.attachment_alt_text):
            if col and col in keys and row[col]:
                title = str(row[col])
                break
        url = None
        if p.attachment_url and p.attachment_url in keys and row[p.attachment_url]:
            url = str(row[p.attachment_url])
        if url is None and p.attachment_mergeable_data in keys:
            url = _url_from_mergeable(row[p.attachment_mergeable_data])
        if not url:
            return None
        return url, title

    def counts(self) -> Dict[str, int]:
        return {
            "accounts": len(self.fetch_accounts()),
            "folders": len(self.fetch_folders()),
            "notes": len(self.fetch_notes()),
        }


def _url_from_mergeable(blob: Optional[bytes]) -> Optional[str]:
    msg = decode_mergeable(blob)
    if msg is None:
        return None
    data = msg.mergable_data_object.mergeable_data_object_data
    for entry in data.mergeable_data_object_entry:
        if entry.HasField("note"):
            text = entry.note.note_text.strip()
            if text.startswith("http"):
                return text
    return None


__all__ = ["NotesDatabase", "RECORD_TABLE", "NOTE_DATA_TABLE"]
