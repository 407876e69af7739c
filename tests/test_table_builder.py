import html
import unittest

from notes_exporter.rendering.table_builder import parse_table, render_table_from_mergeable

from ._notestore import table_payload


def _cell(note):
    return html.escape(note.note_text)


class TestTableBuilder(unittest.TestCase):
    def test_rows_in_order(self):
        table = parse_table(table_payload(["a", "b"]), _cell)
        self.assertIsNotNone(table)
        self.assertEqual(table.column_count, 1)
        self.assertEqual([[c.text for c in row] for row in table.rows], [["a"], ["b"]])

    def test_html(self):
        out = render_table_from_mergeable(table_payload(["x & y", "z"]), _cell)
        self.assertEqual(out, "<table><tr><td>x &amp; y</td></tr><tr><td>z</td></tr></table>")

    def test_garbage(self):
        self.assertIsNone(parse_table(b"\x1f\x8bjunk", _cell))
        self.assertIsNone(render_table_from_mergeable(None, _cell))


if __name__ == "__main__":
    unittest.main()
