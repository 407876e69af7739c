"""
Message classes for the NoteStore protobuf payloads.

The schema is assembled at import time from a FileDescriptorProto instead of
being compiled by protoc. Every field is proto2 ``optional`` so ``HasField``
reports presence and older payloads that omit fields still parse. Style-like
fields (style type, alignment, weight) are plain ints; list styles use values
outside any closed enum range.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.message_factory import GetMessageClass

_PACKAGE = "notes_exporter.notestore"
_FILE_NAME = "notes_exporter/notestore.proto"

_F = descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "int32": _F.TYPE_INT32,
    "int64": _F.TYPE_INT64,
    "uint64": _F.TYPE_UINT64,
    "float": _F.TYPE_FLOAT,
    "string": _F.TYPE_STRING,
    "bytes": _F.TYPE_BYTES,
}

# message name -> [(field, number, type, repeated, default)]
_MESSAGES = {
    "Color": [
        ("red", 1, "float"),
        ("green", 2, "float"),
        ("blue", 3, "float"),
        ("alpha", 4, "float"),
    ],
    "AttachmentInfo": [
        ("attachment_identifier", 1, "string"),
        ("type_uti", 2, "string"),
    ],
    "Font": [
        ("font_name", 1, "string"),
        ("point_size", 2, "float"),
        ("font_hints", 3, "int32"),
    ],
    "ParagraphStyle": [
        ("style_type", 1, "int32", False, -1),
        ("alignment", 2, "int32"),
        ("writing_direction_paragraph", 3, "int32"),
        ("indent_amount", 4, "int32"),
        ("checklist", 5, "Checklist"),
        ("starting_list_item_number", 6, "int32"),
        ("block_quote", 8, "int32"),
        ("paragraph_uuid", 9, "bytes"),
    ],
    "Checklist": [
        ("uuid", 1, "bytes"),
        ("done", 2, "int32"),
    ],
    "DictionaryElement": [
        ("key", 1, "ObjectID"),
        ("value", 2, "ObjectID"),
    ],
    "Dictionary": [
        ("element", 1, "DictionaryElement", True),
    ],
    "ObjectID": [
        ("unsigned_integer_value", 2, "uint64"),
        ("string_value", 4, "string"),
        ("object_index", 6, "int32"),
    ],
    "RegisterLatest": [
        ("contents", 2, "ObjectID"),
    ],
    "MapItem": [
        ("key", 1, "int32"),
        ("value", 2, "ObjectID"),
    ],
    "AttributeRun": [
        ("length", 1, "int32"),
        ("paragraph_style", 2, "ParagraphStyle"),
        ("font", 3, "Font"),
        ("font_weight", 5, "int32"),
        ("underlined", 6, "int32"),
        ("strikethrough", 7, "int32"),
        ("superscript", 8, "int32"),
        ("link", 9, "string"),
        ("color", 10, "Color"),
        ("writing_direction_selection", 11, "int32"),
        ("attachment_info", 12, "AttachmentInfo"),
        ("timestamp", 13, "int64"),
        ("emphasis_style", 14, "int32"),
        ("highlight_color", 15, "int32"),
    ],
    "Note": [
        ("note_text", 2, "string"),
        ("attribute_run", 5, "AttributeRun", True),
    ],
    "Document": [
        ("version", 2, "int32"),
        ("note", 3, "Note"),
    ],
    "NoteStoreProto": [
        ("document", 2, "Document"),
    ],
    "MergableDataProto": [
        ("mergable_data_object", 2, "MergableDataObject"),
    ],
    "MergableDataObject": [
        ("version", 2, "int32"),
        ("mergeable_data_object_data", 3, "MergeableDataObjectData"),
    ],
    "MergeableDataObjectData": [
        ("mergeable_data_object_entry", 3, "MergeableDataObjectRow", True),
        ("mergeable_data_object_key_item", 4, "string", True),
        ("mergeable_data_object_type_item", 5, "string", True),
        ("mergeable_data_object_uuid_item", 6, "bytes", True),
    ],
    "MergeableDataObjectRow": [
        ("register_latest", 1, "RegisterLatest"),
        ("list", 5, "List"),
        ("dictionary", 6, "Dictionary"),
        ("unknown_message", 9, "UnknownMergeableDataObjectEntryMessage"),
        ("note", 10, "Note"),
        ("custom_map", 13, "MergeableDataObjectMap"),
        ("ordered_set", 16, "OrderedSet"),
    ],
    "UnknownMergeableDataObjectEntryMessage": [
        ("unknown_entry", 1, "UnknownMergeableDataObjectEntryMessageEntry"),
    ],
    "UnknownMergeableDataObjectEntryMessageEntry": [
        ("unknown_int1", 1, "int32"),
        ("unknown_int2", 2, "int64"),
    ],
    "MergeableDataObjectMap": [
        ("type", 1, "int32"),
        ("map_entry", 3, "MapItem", True),
    ],
    "OrderedSet": [
        ("ordering", 1, "OrderedSetOrdering"),
        ("elements", 2, "Dictionary"),
    ],
    "OrderedSetOrdering": [
        ("array", 1, "OrderedSetOrderingArray"),
        ("contents", 2, "Dictionary"),
    ],
    "OrderedSetOrderingArray": [
        ("contents", 1, "Note"),
        ("attachment", 2, "OrderedSetOrderingArrayAttachment", True),
    ],
    "OrderedSetOrderingArrayAttachment": [
        ("index", 1, "int32"),
        ("uuid", 2, "bytes"),
    ],
    "List": [
        ("list_entry", 1, "ListItem", True),
    ],
    "ListItem": [
        ("id", 2, "ObjectID"),
        ("details", 3, "ListEntryDetails"),
        ("additional_details", 4, "ListEntryDetails"),
    ],
    "ListEntryDetails": [
        ("list_entry_details_key", 1, "ListEntryDetailsKey"),
        ("id", 2, "ObjectID"),
    ],
    "ListEntryDetailsKey": [
        ("list_entry_details_type_index", 1, "int32"),
        ("list_entry_details_key", 2, "int32"),
    ],
}


def _field(name, number, kind, repeated=False, default=None) -> _F:
    fd = _F(
        name=name,
        number=number,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
    )
    if kind in _SCALARS:
        fd.type = _SCALARS[kind]
    else:
        fd.type = _F.TYPE_MESSAGE
        fd.type_name = f".{_PACKAGE}.{kind}"
    if default is not None:
        fd.default_value = str(default)
    return fd


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name=_FILE_NAME, package=_PACKAGE, syntax="proto2"
    )
    for msg_name, fields in _MESSAGES.items():
        msg = fdp.message_type.add(name=msg_name)
        for spec in fields:
            msg.field.append(_field(*spec))
    return fdp


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())
DESCRIPTOR = _POOL.FindFileByName(_FILE_NAME)


def _message(name: str):
    return GetMessageClass(DESCRIPTOR.message_types_by_name[name])


Color = _message("Color")
AttachmentInfo = _message("AttachmentInfo")
Font = _message("Font")
ParagraphStyle = _message("ParagraphStyle")
Checklist = _message("Checklist")
DictionaryElement = _message("DictionaryElement")
Dictionary = _message("Dictionary")
ObjectID = _message("ObjectID")
RegisterLatest = _message("RegisterLatest")
MapItem = _message("MapItem")
AttributeRun = _message("AttributeRun")
Note = _message("Note")
Document = _message("Document")
NoteStoreProto = _message("NoteStoreProto")
MergableDataProto = _message("MergableDataProto")
MergableDataObject = _message("MergableDataObject")
MergeableDataObjectData = _message("MergeableDataObjectData")
MergeableDataObjectRow = _message("MergeableDataObjectRow")
UnknownMergeableDataObjectEntryMessage = _message(
    "UnknownMergeableDataObjectEntryMessage"
)
UnknownMergeableDataObjectEntryMessageEntry = _message(
    "UnknownMergeableDataObjectEntryMessageEntry"
)
MergeableDataObjectMap = _message("MergeableDataObjectMap")
OrderedSet = _message("OrderedSet")
OrderedSetOrdering = _message("OrderedSetOrdering")
OrderedSetOrderingArray = _message("OrderedSetOrderingArray")
OrderedSetOrderingArrayAttachment = _message("OrderedSetOrderingArrayAttachment")
List = _message("List")
ListItem = _message("ListItem")
ListEntryDetails = _message("ListEntryDetails")
ListEntryDetailsKey = _message("ListEntryDetailsKey")
