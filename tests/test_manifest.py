import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from notes_exporter.export.manifest import MANIFEST_FILENAME, SyncManifest
from notes_exporter.models import NoteRecord

MODIFIED = datetime(2021, 6, 7, 8, 9, 10, tzinfo=timezone.utc)


def _note(identifier, modified=MODIFIED):
    return NoteRecord(
        id=1,
        identifier=identifier,
        title="Test",
        snippet=None,
        folder_id=None,
        account_id=None,
        created_at=MODIFIED,
        modified_at=modified,
    )


class TestSyncManifest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file_is_empty(self):
        manifest = SyncManifest.load(self.root)
        self.assertEqual(manifest.notes, {})
        self.assertIsNone(manifest.last_sync)

    def test_save_and_load(self):
        manifest = SyncManifest()
        manifest.record_export(_note("N1"), "Personal/Notes/Test.txt", ["a/b.jpg"])
        manifest.save(self.root)

        data = json.loads((self.root / MANIFEST_FILENAME).read_text())
        self.assertEqual(data["version"], 1)

        loaded = SyncManifest.load(self.root)
        self.assertIsNotNone(loaded.last_sync)
        entry = loaded.notes["N1"]
        self.assertEqual(entry.exported_path, "Personal/Notes/Test.txt")
        self.assertEqual(entry.attachment_paths, ["a/b.jpg"])
        self.assertEqual(entry.modification_date, MODIFIED)
        self.assertEqual([p.name for p in self.root.iterdir()], [MANIFEST_FILENAME])

    def test_invalid_file_is_ignored(self):
        (self.root / MANIFEST_FILENAME).write_text("{not json")
        with self.assertLogs("notes_exporter.export.manifest", level="WARNING"):
            manifest = SyncManifest.load(self.root)
        self.assertEqual(manifest.notes, {})

    def test_notes_needing_export(self):
        manifest = SyncManifest()
        manifest.record_export(_note("same"), "same.txt")
        manifest.record_export(_note("jitter"), "jitter.txt")
        manifest.record_export(_note("moved"), "moved.txt")

        notes = [
            _note("same"),
            _note("jitter", MODIFIED + timedelta(microseconds=500)),
            _note("moved", MODIFIED + timedelta(milliseconds=10)),
            _note("new"),
        ]
        pending = manifest.notes_needing_export(notes)
        self.assertEqual([n.identifier for n in pending], ["moved", "new"])

    def test_existing_path(self):
        manifest = SyncManifest()
        manifest.record_export(_note("N1"), "x/Test.md")
        self.assertEqual(manifest.existing_path(_note("N1")), "x/Test.md")
        self.assertIsNone(manifest.existing_path(_note("N2")))

    def test_key_falls_back_to_primary_key(self):
        manifest = SyncManifest()
        manifest.record_export(_note(None), "Test.txt")
        self.assertIn("1", manifest.notes)


if __name__ == "__main__":
    unittest.main()
