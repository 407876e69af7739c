"""Builders for NoteStore-shaped sqlite databases and note payloads."""

import gzip
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from notes_exporter.protobuf import notes_pb2 as pb

COREDATA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

ENTITIES = {
    "ICAccount": 1,
    "ICFolder": 2,
    "ICNote": 3,
    "ICAttachment": 4,
    "ICMedia": 5,
}

# An iOS 13 era column set.
COLUMNS = [
    "ZIDENTIFIER",
    "ZTITLE",
    "ZTITLE1",
    "ZTITLE2",
    "ZSNIPPET",
    "ZFOLDER",
    "ZACCOUNT4",
    "ZSERVERRECORDDATA",
    "ZOWNER",
    "ZPARENT",
    "ZCREATIONDATE1",
    "ZMODIFICATIONDATE1",
    "ZNAME",
    "ZACCOUNTTYPE",
    "ZMARKEDFORDELETION",
    "ZISPASSWORDPROTECTED",
    "ZTYPEUTI",
    "ZFILENAME",
    "ZMEDIA",
    "ZNOTE",
    "ZFALLBACKIMAGEGENERATION",
    "ZFALLBACKPDFGENERATION",
    "ZMERGEABLEDATA1",
    "ZALTTEXT",
    "ZTOKENCONTENTIDENTIFIER",
    "ZURLSTRING",
]


def coredata(dt: datetime) -> float:
    return (dt - COREDATA_EPOCH).total_seconds()


def utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def run(
    length: int,
    style_type: Optional[int] = None,
    indent: Optional[int] = None,
    done: Optional[bool] = None,
    weight: Optional[int] = None,
    link: Optional[str] = None,
    attachment: Optional[str] = None,
    uti: Optional[str] = None,
) -> pb.AttributeRun:
    r = pb.AttributeRun(length=length)
    if style_type is not None or indent is not None or done is not None:
        ps = r.paragraph_style
        if style_type is not None:
            ps.style_type = style_type
        if indent is not None:
            ps.indent_amount = indent
        if done is not None:
            ps.checklist.done = 1 if done else 0
            ps.checklist.uuid = b"check"
    if weight is not None:
        r.font_weight = weight
    if link is not None:
        r.link = link
    if attachment is not None or uti is not None:
        r.attachment_info.attachment_identifier = attachment or ""
        r.attachment_info.type_uti = uti or ""
    return r


def note_message(text: str, runs: Optional[Iterable[pb.AttributeRun]] = None) -> pb.Note:
    if runs is None:
        runs = [run(utf16_len(text))]
    return pb.Note(note_text=text, attribute_run=list(runs))


def note_payload(text: str, runs: Optional[Iterable[pb.AttributeRun]] = None) -> bytes:
    """Gzipped NoteStoreProto as stored in ZICNOTEDATA.ZDATA."""
    msg = pb.NoteStoreProto(
        document=pb.Document(version=1, note=note_message(text, runs))
    )
    return gzip.compress(msg.SerializeToString())


def table_payload(cells: List[str]) -> bytes:
    """A one-column table with one row per entry of `cells`."""
    n = len(cells)
    row_uuids = [f"row-{i}".encode() for i in range(n)]
    col_uuid = b"col-0"
    uuids = row_uuids + [col_uuid]

    def ref(index: int) -> pb.ObjectID:
        return pb.ObjectID(object_index=index)

    def key_entry(uuid_slot: int) -> pb.MergeableDataObjectRow:
        return pb.MergeableDataObjectRow(
            custom_map=pb.MergeableDataObjectMap(
                type=0,
                map_entry=[
                    pb.MapItem(
                        key=0, value=pb.ObjectID(unsigned_integer_value=uuid_slot)
                    )
                ],
            )
        )

    # 0 root, 1 rows, 2 cols, 3 cellColumns, 4 column key, 5 column dict,
    # 6.. row keys, then cell notes.
    row_key_base = 6
    cell_base = row_key_base + n
    entries = [
        pb.MergeableDataObjectRow(
            custom_map=pb.MergeableDataObjectMap(
                type=0,
                map_entry=[
                    pb.MapItem(key=0, value=ref(1)),
                    pb.MapItem(key=1, value=ref(2)),
                    pb.MapItem(key=2, value=ref(3)),
                ],
            )
        ),
        pb.MergeableDataObjectRow(
            ordered_set=pb.OrderedSet(
                ordering=pb.OrderedSetOrdering(
                    array=pb.OrderedSetOrderingArray(
                        attachment=[
                            pb.OrderedSetOrderingArrayAttachment(index=i, uuid=u)
                            for i, u in enumerate(row_uuids)
                        ]
                    )
                )
            )
        ),
        pb.MergeableDataObjectRow(
            ordered_set=pb.OrderedSet(
                ordering=pb.OrderedSetOrdering(
                    array=pb.OrderedSetOrderingArray(
                        attachment=[
                            pb.OrderedSetOrderingArrayAttachment(index=0, uuid=col_uuid)
                        ]
                    )
                )
            )
        ),
        pb.MergeableDataObjectRow(
            dictionary=pb.Dictionary(
                element=[pb.DictionaryElement(key=ref(4), value=ref(5))]
            )
        ),
        key_entry(n),
        pb.MergeableDataObjectRow(
            dictionary=pb.Dictionary(
                element=[
                    pb.DictionaryElement(
                        key=ref(row_key_base + i), value=ref(cell_base + i)
                    )
                    for i in range(n)
                ]
            )
        ),
    ]
    entries += [key_entry(i) for i in range(n)]
    entries += [pb.MergeableDataObjectRow(note=note_message(c)) for c in cells]
    msg = pb.MergableDataProto(
        mergable_data_object=pb.MergableDataObject(
            version=1,
            mergeable_data_object_data=pb.MergeableDataObjectData(
                mergeable_data_object_entry=entries,
                mergeable_data_object_key_item=["crRows", "crColumns", "cellColumns"],
                mergeable_data_object_type_item=["com.apple.notes.ICTable"],
                mergeable_data_object_uuid_item=uuids,
            ),
        )
    )
    return gzip.compress(msg.SerializeToString())


class NoteStoreBuilder:
    """Write a minimal NoteStore.sqlite.

    Use as a context manager or call `close()` before opening the file with
    NotesDatabase.
    """

    def __init__(self, path, columns: Iterable[str] = COLUMNS):
        self.path = Path(path)
        self.columns = list(columns)
        self.conn = sqlite3.connect(self.path)
        self.conn.execute("CREATE TABLE Z_PRIMARYKEY (Z_ENT INTEGER, Z_NAME TEXT)")
        self.conn.executemany(
            "INSERT INTO Z_PRIMARYKEY VALUES (?, ?)",
            [(ent, name) for name, ent in ENTITIES.items()],
        )
        cols = ", ".join(f"{c}" for c in self.columns)
        self.conn.execute(
            "CREATE TABLE ZICCLOUDSYNCINGOBJECT "
            f"(Z_PK INTEGER PRIMARY KEY, Z_ENT INTEGER, {cols})"
        )
        self.conn.execute(
            "CREATE TABLE ZICNOTEDATA (Z_PK INTEGER PRIMARY KEY, ZNOTE INTEGER, ZDATA BLOB)"
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        self.conn.commit()
        self.conn.close()

    def insert(self, entity: str, **values) -> int:
        values = {k: v for k, v in values.items() if k in self.columns}
        names = ["Z_ENT", *values]
        params = [ENTITIES[entity], *values.values()]
        cur = self.conn.execute(
            f"INSERT INTO ZICCLOUDSYNCINGOBJECT ({', '.join(names)}) "
            f"VALUES ({', '.join('?' for _ in names)})",
            params,
        )
        return cur.lastrowid

    def account(self, name: str, identifier: str = "ACC-1", account_type: int = 3) -> int:
        return self.insert(
            "ICAccount", ZNAME=name, ZIDENTIFIER=identifier, ZACCOUNTTYPE=account_type
        )

    def folder(self, title: str, account: int, parent: Optional[int] = None, **extra) -> int:
        values = dict(ZTITLE2=title, ZOWNER=account, ZPARENT=parent)
        values.update(extra)
        return self.insert("ICFolder", **values)

    def note(
        self,
        title: str,
        account: int,
        folder: int,
        text: Optional[str] = None,
        payload: Optional[bytes] = None,
        created: datetime = datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        modified: datetime = datetime(2021, 6, 7, 8, 9, 10, tzinfo=timezone.utc),
        identifier: Optional[str] = None,
        **extra,
    ) -> int:
        values = dict(
            ZIDENTIFIER=identifier or f"NOTE-{title}",
            ZTITLE1=title,
            ZFOLDER=folder,
            ZACCOUNT4=account,
            ZCREATIONDATE1=coredata(created),
            ZMODIFICATIONDATE1=coredata(modified),
        )
        values.update(extra)
        pk = self.insert("ICNote", **values)
        if payload is None and text is not None:
            payload = note_payload(text)
        if payload is not None:
            self.conn.execute(
                "INSERT INTO ZICNOTEDATA (ZNOTE, ZDATA) VALUES (?, ?)", (pk, payload)
            )
        return pk

    def media(self, filename: str) -> int:
        return self.insert("ICMedia", ZIDENTIFIER=f"MEDIA-{filename}", ZFILENAME=filename)

    def attachment(
        self,
        identifier: str,
        type_uti: str,
        note: int,
        media: Optional[int] = None,
        filename: Optional[str] = None,
        **extra,
    ) -> int:
        return self.insert(
            "ICAttachment",
            ZIDENTIFIER=identifier,
            ZTYPEUTI=type_uti,
            ZNOTE=note,
            ZMEDIA=media,
            ZFILENAME=filename,
            **extra,
        )
