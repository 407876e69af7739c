import unittest

from notes_exporter.schema import NotesVersion, detect_version, resolve_schema


class TestDetectVersion(unittest.TestCase):
    def test_newest_signature_wins(self):
        cols = {"ZNOTEDATA", "ZACCOUNT4", "ZGENERATION", "ZUNAPPLIEDENCRYPTEDRECORDDATA"}
        self.assertEqual(detect_version(cols), NotesVersion.IOS18)

    def test_each_generation(self):
        cases = [
            ({"ZGENERATION"}, (), NotesVersion.IOS17),
            ({"ZACCOUNT6"}, (), NotesVersion.IOS16),
            ({"ZACCOUNT5"}, (), NotesVersion.IOS15),
            ({"ZLASTOPENEDDATE"}, (), NotesVersion.IOS14),
            ({"ZACCOUNT4", "ZSERVERRECORDDATA"}, (), NotesVersion.IOS13),
            ({"ZSERVERRECORDDATA"}, (), NotesVersion.IOS12),
            ({"ZTITLE"}, ("Z_11NOTES",), NotesVersion.IOS11),
            ({"ZMINIMUMSUPPORTEDNOTESVERSION"}, (), NotesVersion.IOS10),
            ({"ZNOTEDATA"}, (), NotesVersion.IOS9),
        ]
        for cols, tables, expected in cases:
            with self.subTest(expected=expected):
                self.assertEqual(detect_version(cols, tables), expected)

    def test_no_signature_is_legacy(self):
        self.assertEqual(detect_version({"ZTITLE", "ZBODY"}), NotesVersion.LEGACY)

    def test_empty_inventory_is_unknown(self):
        self.assertEqual(detect_version(set()), NotesVersion.UNKNOWN)


class TestResolveSchema(unittest.TestCase):
    def test_modern_columns(self):
        profile = resolve_schema(
            {
                "ZTITLE1",
                "ZTITLE2",
                "ZACCOUNT4",
                "ZACCOUNT2",
                "ZCREATIONDATE1",
                "ZMODIFICATIONDATE1",
                "ZOWNER",
                "ZMERGEABLEDATA1",
                "ZMARKEDFORDELETION",
            }
        )
        self.assertEqual(profile.version, NotesVersion.IOS13)
        self.assertTrue(profile.is_modern)
        self.assertEqual(profile.note_title, "ZTITLE1")
        self.assertEqual(profile.folder_title, "ZTITLE2")
        self.assertEqual(profile.note_account, "ZACCOUNT4")
        self.assertEqual(profile.note_creation_date, "ZCREATIONDATE1")
        self.assertEqual(profile.folder_account, "ZOWNER")
        self.assertEqual(profile.attachment_mergeable_data, "ZMERGEABLEDATA1")
        self.assertEqual(profile.marked_for_deletion, "ZMARKEDFORDELETION")

    def test_account7_preferred(self):
        profile = resolve_schema({"ZACCOUNT7", "ZACCOUNT4", "ZCREATIONDATE3"})
        self.assertEqual(profile.note_account, "ZACCOUNT7")
        self.assertEqual(profile.note_creation_date, "ZCREATIONDATE3")

    def test_unresolvable_degrades_to_legacy_names(self):
        profile = resolve_schema(set())
        self.assertEqual(profile.version, NotesVersion.UNKNOWN)
        self.assertFalse(profile.is_modern)
        self.assertEqual(profile.note_title, "ZTITLE")
        self.assertEqual(profile.note_account, "ZACCOUNT")
        self.assertEqual(profile.note_modification_date, "ZMODIFICATIONDATE")
        self.assertIsNone(profile.attachment_media)
        self.assertIsNone(profile.marked_for_deletion)

    def test_profile_is_immutable(self):
        profile = resolve_schema({"ZTITLE1"})
        with self.assertRaises(Exception):
            profile.note_title = "ZTITLE"


if __name__ == "__main__":
    unittest.main()
