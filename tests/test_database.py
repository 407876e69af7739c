import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from notes_exporter.database import NotesDatabase
from notes_exporter.errors import DatabaseUnavailableError, NoteNotFoundError
from notes_exporter.schema import NotesVersion

from ._notestore import NoteStoreBuilder, table_payload


class TestNotesDatabase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "NoteStore.sqlite"
        with NoteStoreBuilder(self.path) as b:
            self.account = b.account("Personal", identifier="ACC-1")
            self.folder = b.folder("Notes", self.account)
            self.child = b.folder("Child", self.account, parent=self.folder)
            b.folder("Trash", self.account, ZMARKEDFORDELETION=1)
            self.note = b.note("Test", self.account, self.folder, text="Hello")
            b.note("Locked", self.account, self.folder, text="x", ZISPASSWORDPROTECTED=1)
            b.note("Gone", self.account, self.folder, text="x", ZMARKEDFORDELETION=1)
            self.broken = b.note(
                "Broken", self.account, self.child, payload=b"junk", ZSNIPPET="snip"
            )
            self.undated = b.note(
                "Undated", self.account, self.child, text="u", ZCREATIONDATE1=None
            )
            b.attachment("TBL", "com.apple.notes.table", self.note,
                         ZMERGEABLEDATA1=table_payload(["a"]))
            b.attachment("TAG", "com.apple.notes.inlinetextattachment.hashtag",
                         self.note, ZALTTEXT="#work")
            b.attachment("URL", "public.url", self.note,
                         ZURLSTRING="https://example.com", ZTITLE="Example")
            media = b.media("photo.jpg")
            b.attachment("IMG", "public.jpeg", self.note, media=media)
        self.db = NotesDatabase(self.path)

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()

    def test_missing_file(self):
        with self.assertRaises(DatabaseUnavailableError):
            NotesDatabase(Path(self.tmp.name) / "nope.sqlite")

    def test_not_a_notestore(self):
        other = Path(self.tmp.name) / "other.sqlite"
        import sqlite3

        conn = sqlite3.connect(other)
        conn.execute("CREATE TABLE t (x)")
        conn.close()
        with self.assertRaises(DatabaseUnavailableError):
            NotesDatabase(other)

    def test_profile(self):
        self.assertEqual(self.db.profile.version, NotesVersion.IOS13)

    def test_accounts(self):
        accounts = self.db.fetch_accounts()
        self.assertEqual(len(accounts), 1)
        self.assertEqual(accounts[0].name, "Personal")
        self.assertEqual(accounts[0].kind, "iCloud")

    def test_folders_skip_deleted(self):
        names = {f.name for f in self.db.fetch_folders()}
        self.assertEqual(names, {"Notes", "Child"})
        child = next(f for f in self.db.fetch_folders() if f.name == "Child")
        self.assertEqual(child.parent_id, self.folder)

    def test_notes_skip_locked_and_deleted(self):
        titles = {n.title for n in self.db.fetch_notes()}
        self.assertEqual(titles, {"Test", "Broken", "Undated"})
        self.assertEqual(
            {n.title for n in self.db.fetch_notes(folder_id=self.child)},
            {"Broken", "Undated"},
        )

    def test_note_dates(self):
        note = self.db.fetch_note(self.note)
        self.assertEqual(note.created_at, datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        self.assertEqual(note.modified_at, datetime(2021, 6, 7, 8, 9, 10, tzinfo=timezone.utc))

    def test_missing_date_means_now(self):
        before = datetime.now(timezone.utc)
        note = self.db.fetch_note(self.undated)
        self.assertGreaterEqual(note.created_at, before)

    def test_fetch_note_missing(self):
        with self.assertRaises(NoteNotFoundError):
            self.db.fetch_note(9999)

    def test_load_body(self):
        body = self.db.load_note_body(self.db.fetch_note(self.note))
        self.assertTrue(body.is_structured)
        self.assertEqual(body.text, "Hello")

    def test_undecodable_body_uses_snippet(self):
        body = self.db.load_note_body(self.db.fetch_note(self.broken))
        self.assertFalse(body.is_structured)
        self.assertEqual(body.text, "snip")

    def test_side_lookups(self):
        self.assertEqual(self.db.fetch_attachment_uti("TBL"), "com.apple.notes.table")
        self.assertIsNotNone(self.db.fetch_mergeable_data("TBL"))
        self.assertEqual(self.db.fetch_inline_text("TAG"), "#work")
        self.assertEqual(
            self.db.fetch_url_card("URL"), ("https://example.com", "Example")
        )
        self.assertIsNone(self.db.fetch_attachment("NOPE"))

    def test_attachment_row(self):
        row = self.db.fetch_attachment("IMG")
        self.assertEqual(row.type_uti, "public.jpeg")
        self.assertEqual(row.note_pk, self.note)
        self.assertEqual(row.account_identifier, "ACC-1")
        self.assertEqual(self.db.fetch_media_filename(row.media_pk), "photo.jpg")

    def test_counts(self):
        self.assertEqual(self.db.counts(), {"accounts": 1, "folders": 2, "notes": 3})

    def test_read_only(self):
        mtime = os.stat(self.path).st_mtime_ns
        self.db.fetch_notes()
        self.assertEqual(os.stat(self.path).st_mtime_ns, mtime)


if __name__ == "__main__":
    unittest.main()
