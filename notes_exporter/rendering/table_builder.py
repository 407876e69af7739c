"""
Table reconstruction for com.apple.notes.table attachments.

A table attachment's ZMERGEABLEDATA1 blob is a CRDT object graph: a root map
(typed ICTable) points at an ordered set of row UUIDs, an ordered set of
column UUIDs, and a column -> (row -> cell note) dictionary. The builder
recovers row/column order and fills a grid of cells; each cell is itself a
pb.Note, rendered through a callback so nested styles reuse the main renderer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from tinyhtml import h, raw

from ..decoding import decode_mergeable
from ..protobuf import notes_pb2 as pb

LOGGER = logging.getLogger(__name__)


class TypeName(str, Enum):
    ICTABLE = "com.apple.notes.ICTable"


class MapKey(str, Enum):
    CR_ROWS = "crRows"
    CR_COLUMNS = "crColumns"
    CELL_COLUMNS = "cellColumns"


ALLOWED_TABLE_TYPES = {
    TypeName.ICTABLE.value,
    "com.apple.notes.ICTable2",
    "com.apple.notes.CRTable",
}


@dataclass
class Cell:
    html: str = ""
    text: str = ""


@dataclass
class Axis:
    # uuid index -> display position
    positions: Dict[int, int] = field(default_factory=dict)
    total: int = 0


@dataclass
class ParsedTable:
    rows: List[List[Cell]]

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def to_html(self) -> str:
        trs = [
            h("tr")(*(h("td")(raw(cell.html)) for cell in row)) for row in self.rows
        ]
        return h("table")(*trs).render()


@dataclass
class TableBuilder:
    key_items: List[str]
    type_items: List[str]
    uuid_items: List[bytes]
    entries: List[pb.MergeableDataObjectRow]
    render_note_cb: Callable[[pb.Note], str]

    uuid_index: Dict[bytes, int] = field(init=False)
    rows: Axis = field(default_factory=Axis)
    cols: Axis = field(default_factory=Axis)
    cells: List[List[Cell]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.uuid_index = {u: i for i, u in enumerate(self.uuid_items)}

    def _entry(self, index: int) -> Optional[pb.MergeableDataObjectRow]:
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def _uuid_slot(self, entry: Optional[pb.MergeableDataObjectRow]) -> Optional[int]:
        """Row/column key entries hold a uuid_items index in their first map value."""
        if entry is None or not entry.custom_map.map_entry:
            return None
        val = entry.custom_map.map_entry[0].value.unsigned_integer_value
        if not 0 <= val < len(self.uuid_items):
            return None
        return self.uuid_index.get(self.uuid_items[val])

    def _read_axis(self, entry: pb.MergeableDataObjectRow, axis: Axis) -> None:
        axis.positions.clear()
        axis.total = 0
        ordering = entry.ordered_set.ordering
        for att in ordering.array.attachment:
            slot = self.uuid_index.get(att.uuid)
            if slot is None:
                continue
            axis.positions[slot] = axis.total
            axis.total += 1
        # Moved rows/columns: contents maps an original uuid to its replacement.
        for elem in ordering.contents.element:
            key_slot = self._uuid_slot(self._entry(elem.key.object_index))
            value_slot = self._uuid_slot(self._entry(elem.value.object_index))
            if value_slot is None:
                continue
            axis.positions[value_slot] = axis.positions.get(
                key_slot, axis.positions.get(value_slot, 0)
            )

    def read_rows(self, entry: pb.MergeableDataObjectRow) -> None:
        self._read_axis(entry, self.rows)

    def read_cols(self, entry: pb.MergeableDataObjectRow) -> None:
        self._read_axis(entry, self.cols)

    def allocate(self) -> None:
        self.cells = [[Cell() for _ in range(self.cols.total)] for _ in range(self.rows.total)]

    def read_cells(self, entry: pb.MergeableDataObjectRow) -> None:
        for col in entry.dictionary.element:
            col_pos = self.cols.positions.get(
                self._uuid_slot(self._entry(col.key.object_index))
            )
            col_dict = self._entry(col.value.object_index)
            if col_pos is None or col_dict is None:
                continue
            for row in col_dict.dictionary.element:
                row_pos = self.rows.positions.get(
                    self._uuid_slot(self._entry(row.key.object_index))
                )
                cell_entry = self._entry(row.value.object_index)
                if row_pos is None or cell_entry is None:
                    continue
                if not cell_entry.HasField("note"):
                    continue
                if row_pos >= len(self.cells) or col_pos >= len(self.cells[row_pos]):
                    continue
                cell = self.cells[row_pos][col_pos]
                cell.html = self.render_note_cb(cell_entry.note)
                cell.text = cell_entry.note.note_text.strip()

    def result(self) -> Optional[ParsedTable]:
        if not self.cells or self.rows.total == 0 or self.cols.total == 0:
            return None
        return ParsedTable(rows=self.cells)


def _is_table_root(
    entry: pb.MergeableDataObjectRow, key_items: List[str], type_items: List[str]
) -> bool:
    if not entry.HasField("custom_map"):
        return False
    type_idx = entry.custom_map.type
    if 0 <= type_idx < len(type_items) and type_items[type_idx] in ALLOWED_TABLE_TYPES:
        return True
    # Untyped roots still qualify when they carry all three table keys.
    names = {
        key_items[item.key]
        for item in entry.custom_map.map_entry
        if 0 <= item.key < len(key_items)
    }
    return {k.value for k in MapKey} <= names


def parse_table(
    blob: Optional[bytes], render_note_cb: Callable[[pb.Note], str]
) -> Optional[ParsedTable]:
    msg = decode_mergeable(blob)
    if msg is None:
        return None
    data = msg.mergable_data_object.mergeable_data_object_data
    key_items = list(data.mergeable_data_object_key_item)
    type_items = list(data.mergeable_data_object_type_item)
    builder = TableBuilder(
        key_items=key_items,
        type_items=type_items,
        uuid_items=list(data.mergeable_data_object_uuid_item),
        entries=list(data.mergeable_data_object_entry),
        render_note_cb=render_note_cb,
    )
    for entry in builder.entries:
        if not _is_table_root(entry, key_items, type_items):
            continue
        cell_columns: Optional[pb.MergeableDataObjectRow] = None
        for item in entry.custom_map.map_entry:
            name = key_items[item.key] if 0 <= item.key < len(key_items) else None
            target = builder._entry(item.value.object_index)
            if target is None:
                continue
            if name == MapKey.CR_ROWS.value:
                builder.read_rows(target)
            elif name == MapKey.CR_COLUMNS.value:
                builder.read_cols(target)
            elif name == MapKey.CELL_COLUMNS.value:
                cell_columns = target
        builder.allocate()
        if cell_columns is not None:
            builder.read_cells(cell_columns)
        break
    table = builder.result()
    if table is None:
        LOGGER.debug("notes.table.empty")
    return table


def render_table_from_mergeable(
    blob: Optional[bytes], render_note_cb: Callable[[pb.Note], str]
) -> Optional[str]:
    table = parse_table(blob, render_note_cb)
    return table.to_html() if table else None
