import logging
import tempfile
import unittest
from pathlib import Path

from rich.logging import RichHandler
from typer.testing import CliRunner

from notes_exporter.cli.main import app
from notes_exporter.cli.utils.database import database_path, folder_ids_named
from notes_exporter.cli.utils.logging import setup_logging
from notes_exporter.models import Folder

from ._notestore import NoteStoreBuilder


class TestCli(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.base = Path(self.tmp.name)
        self.db = self.base / "NoteStore.sqlite"
        with NoteStoreBuilder(self.db) as b:
            account = b.account("Personal")
            notes = b.folder("Notes", account)
            work = b.folder("Work", account)
            b.note("Test", account, notes, text="Hello")
            b.note("Plan", account, work, text="Ship it")
        self.runner = CliRunner()

    def test_export_text(self):
        out = self.base / "out"
        result = self.runner.invoke(
            app,
            ["export", "run", str(out), "--database", str(self.db), "-f", "txt", "--workers", "1"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(
            (out / "Personal" / "Notes" / "Test.txt").read_text(encoding="utf-8").strip(),
            "Hello",
        )
        self.assertTrue((out / "Personal" / "Work" / "Plan.txt").is_file())

    def test_export_one_folder(self):
        out = self.base / "out"
        result = self.runner.invoke(
            app,
            ["export", "run", str(out), "--database", str(self.db), "-f", "md", "--folder", "work"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue((out / "Personal" / "Work" / "Plan.md").is_file())
        self.assertFalse((out / "Personal" / "Notes").exists())

    def test_unknown_folder(self):
        result = self.runner.invoke(
            app,
            ["export", "run", str(self.base / "out"), "--database", str(self.db), "--folder", "Nope"],
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not found", result.output)

    def test_missing_database(self):
        result = self.runner.invoke(
            app, ["browse", "notes", "--database", str(self.base / "missing.sqlite")]
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error:", result.output)

    def test_browse_notes(self):
        result = self.runner.invoke(app, ["browse", "notes", "--database", str(self.db)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Test", result.output)
        self.assertIn("Plan", result.output)


class TestCliHelpers(unittest.TestCase):
    def test_folder_ids_include_children(self):
        folders = [
            Folder(1, "Work", 1, None),
            Folder(2, "Projects", 1, 1),
            Folder(3, "Old", 1, 2),
            Folder(4, "Home", 1, None),
        ]
        self.assertEqual(folder_ids_named(folders, "work"), {1, 2, 3})
        self.assertEqual(folder_ids_named(folders, "missing"), set())

    def test_database_path(self):
        self.assertEqual(
            database_path(None, Path("/tmp/container")),
            Path("/tmp/container/NoteStore.sqlite"),
        )
        self.assertEqual(database_path(Path("/x/db.sqlite"), None), Path("/x/db.sqlite"))

    def test_setup_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level

        def restore():
            root.handlers[:] = handlers
            root.setLevel(level)

        self.addCleanup(restore)
        setup_logging(True)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertTrue(any(isinstance(h, RichHandler) for h in root.handlers))
        setup_logging(False)
        self.assertEqual(root.level, logging.INFO)
        self.assertEqual(len(root.handlers), 1)


if __name__ == "__main__":
    unittest.main()
