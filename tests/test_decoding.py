import gzip
import unittest

from notes_exporter import errors
from notes_exporter.decoding import BodyDecoder, decode_mergeable, gunzip_blob

from ._notestore import note_payload, run, table_payload


class TestGunzipBlob(unittest.TestCase):
    def test_plain_gzip(self):
        self.assertEqual(gunzip_blob(gzip.compress(b"hello world")), b"hello world")

    def test_optional_header_sections(self):
        body = gzip.compress(b"payload")
        deflate = body[10:]
        # FEXTRA | FNAME | FCOMMENT | FHCRC
        header = bytes([0x1F, 0x8B, 8, 0x1E, 0, 0, 0, 0, 0, 255])
        extra = b"\x03\x00abc"
        blob = header + extra + b"name\x00" + b"comment\x00" + b"\xaa\xbb" + deflate
        self.assertEqual(gunzip_blob(blob), b"payload")

    def test_not_decodable(self):
        for blob in (
            None,
            b"",
            b"\x1f",
            b"not gzip at all",
            gzip.compress(b"truncated")[:12],
            b"\x1f\x8b\x08\x08\x00\x00\x00\x00\x00\x03name-without-terminator",
            b"\x1f\x8b\x08\x00\x00\x00\x00\x00\x00\x03garbagegarbage\x00\x00\x00\x00\x00\x00\x00\x00",
        ):
            with self.subTest(blob=blob):
                self.assertIsNone(gunzip_blob(blob))

    def test_empty_output_is_failure(self):
        self.assertIsNone(gunzip_blob(gzip.compress(b"")))

    def test_large_expansion(self):
        data = b"a" * 500_000
        self.assertEqual(gunzip_blob(gzip.compress(data)), data)


class TestBodyDecoder(unittest.TestCase):
    def test_structured_note(self):
        text = "Hi\ufffc"
        blob = note_payload(
            text,
            [run(2), run(1, attachment="ATT-1", uti="public.jpeg"), run(0, attachment="ATT-1", uti="public.jpeg")],
        )
        body = BodyDecoder().decode(blob)
        self.assertTrue(body.is_structured)
        self.assertEqual(body.text, text)
        self.assertEqual(len(body.attachment_ids), 1)
        self.assertEqual(body.attachment_ids[0].identifier, "ATT-1")
        self.assertEqual(body.attachment_ids[0].type_uti, "public.jpeg")

    def test_garbage_falls_back_to_snippet(self):
        body = BodyDecoder().decode(b"\x00\x01\x02", fallback_text="snippet")
        self.assertFalse(body.is_structured)
        self.assertEqual(body.text, "snippet")

    def test_gzip_of_non_protobuf(self):
        body = BodyDecoder().decode(gzip.compress(b"\xff\xff\xff\xff"))
        self.assertIsNone(body.note)
        self.assertEqual(body.text, "")

    def test_missing_blob(self):
        body = BodyDecoder().decode(None)
        self.assertEqual(body.text, "")
        self.assertEqual(body.attachment_ids, [])


class TestDecodeMergeable(unittest.TestCase):
    def test_table_blob(self):
        msg = decode_mergeable(table_payload(["a", "b"]))
        self.assertIsNotNone(msg)
        data = msg.mergable_data_object.mergeable_data_object_data
        self.assertIn("crRows", list(data.mergeable_data_object_key_item))

    def test_empty(self):
        self.assertIsNone(decode_mergeable(b""))


class TestErrorHierarchy(unittest.TestCase):
    def test_exported_errors_share_base(self):
        for name in errors.__all__:
            self.assertTrue(issubclass(getattr(errors, name), errors.NotesExportError), name)

    def test_decode_failures_are_not_exceptions(self):
        self.assertNotIn("DecodeError", errors.__all__)
        self.assertFalse(hasattr(errors, "DecodeError"))
        self.assertIsNone(gunzip_blob(b"\x1f\x8bbroken"))


if __name__ == "__main__":
    unittest.main()
