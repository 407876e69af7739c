import unittest
from datetime import datetime, timezone

from notes_exporter.export.naming import (
    build_hierarchy,
    folder_path,
    sanitize_component,
    split_extension,
    unique_attachment_name,
    unique_filename,
)
from notes_exporter.models import UNKNOWN_ACCOUNT, UNKNOWN_FOLDER, Account, Folder, NoteRecord

T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)


def _note(pk, folder_id=None, account_id=None, title="n"):
    return NoteRecord(
        id=pk,
        identifier=f"N{pk}",
        title=title,
        snippet=None,
        folder_id=folder_id,
        account_id=account_id,
        created_at=T0,
        modified_at=T0,
    )


class TestSanitize(unittest.TestCase):
    def test_replaces_separators_and_reserved(self):
        self.assertEqual(sanitize_component('a/b:c*d?"e<f>g|h\\i'), "a_b_c_d__e_f_g_h_i")

    def test_control_characters(self):
        self.assertEqual(sanitize_component("a\nb\x00"), "a_b_")

    def test_dots_and_empty(self):
        self.assertEqual(sanitize_component(".."), "Untitled")
        self.assertEqual(sanitize_component("   "), "Untitled")
        self.assertEqual(sanitize_component(None, "Fallback"), "Fallback")

    def test_truncates(self):
        self.assertEqual(len(sanitize_component("x" * 300)), 200)


class TestUniqueNames(unittest.TestCase):
    def test_first_free_name(self):
        self.assertEqual(unique_filename("Test", "txt", lambda c: False), "Test.txt")

    def test_suffix_starts_at_two(self):
        taken = {"Test.txt", "Test (2).txt"}
        self.assertEqual(unique_filename("Test", "txt", taken.__contains__), "Test (3).txt")

    def test_no_extension(self):
        self.assertEqual(unique_filename("Makefile", "", {"Makefile"}.__contains__), "Makefile (2)")

    def test_falls_back_to_random_suffix(self):
        with self.assertLogs("notes_exporter.export.naming", level="WARNING"):
            name = unique_filename("Test", "txt", lambda c: True, max_attempts=3)
        self.assertRegex(name, r"^Test \([0-9a-f]{8}\)\.txt$")

    def test_split_extension(self):
        self.assertEqual(split_extension("a.tar.gz"), ("a.tar", "gz"))
        self.assertEqual(split_extension(".bashrc"), (".bashrc", ""))
        self.assertEqual(split_extension("README"), ("README", ""))

    def test_attachment_names_case_insensitive(self):
        taken = set()
        self.assertEqual(unique_attachment_name("photo.jpg", taken), "photo.jpg")
        self.assertEqual(unique_attachment_name("PHOTO.jpg", taken), "PHOTO (2).jpg")
        self.assertEqual(unique_attachment_name("photo.jpg", taken), "photo (3).jpg")


class TestHierarchy(unittest.TestCase):
    def setUp(self):
        self.accounts = [Account(1, "Personal", "ACC-1", "iCloud")]
        self.folders = [
            Folder(10, "Notes", 1, None),
            Folder(11, "Work/Home", 1, 10),
        ]

    def test_folder_path(self):
        folders = {f.id: f for f in self.folders}
        self.assertEqual(folder_path(11, folders), ["Notes", "Work_Home"])
        self.assertEqual(folder_path(99, folders), [UNKNOWN_FOLDER])
        self.assertEqual(folder_path(None, folders), [UNKNOWN_FOLDER])

    def test_folder_cycle_terminates(self):
        folders = {1: Folder(1, "A", 1, 2), 2: Folder(2, "B", 1, 1)}
        self.assertEqual(folder_path(1, folders), ["B", "A"])

    def test_build(self):
        nested = _note(1, folder_id=11)
        top = _note(2, folder_id=10, account_id=1)
        orphan = _note(3)
        h = build_hierarchy(self.accounts, self.folders, [nested, top, orphan])

        self.assertEqual(
            h.directories(),
            [
                ("Personal",),
                (UNKNOWN_ACCOUNT,),
                ("Personal", "Notes"),
                (UNKNOWN_ACCOUNT, UNKNOWN_FOLDER),
                ("Personal", "Notes", "Work_Home"),
            ],
        )
        pairs = dict((n.id, parts) for n, parts in h.pairs())
        self.assertEqual(pairs[1], ("Personal", "Notes", "Work_Home"))
        self.assertEqual(pairs[3], (UNKNOWN_ACCOUNT, UNKNOWN_FOLDER))
        self.assertEqual(
            sorted(n.id for n in h.notes_under(("Personal", "Notes"))), [1, 2]
        )
        self.assertEqual([n.id for n in h.notes_under(("Personal", "Notes", "Work_Home"))], [1])


if __name__ == "__main__":
    unittest.main()
