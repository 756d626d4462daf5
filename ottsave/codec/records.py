"""Record decoding for every chunk encoding.

RAW chunk:
    selector high nibble + uint24: declared size (28 bits, big-endian)
    body: one record, consuming exactly the declared size

FIXED_ARRAY chunk:
    varint: declared size of the body
    body:
        varint: record count
        records, laid out back to back per the static schema

SPARSE_ARRAY chunk:
    repeated:
        varint: index + 1           (0 terminates the chunk)
        varint: record size
        record, consuming exactly its size
    Later entries with the same index replace earlier ones.

TABLE chunk:
    field list (see read_table_header), then a FIXED_ARRAY style body
    decoded with the schema built from that list

SPARSE_TABLE chunk:
    field list, then SPARSE_ARRAY style entries

Field values are big-endian. Strings are a varint byte length followed by
UTF-8. Arrays with a fixed ``length`` are stored inline; other arrays carry a
varint element count. Numeric arrays and fixed-size record blocks are decoded
through numpy.
"""

from collections.abc import Mapping
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import LoadOptions
from ..exceptions import CorruptData, ResourceLimitExceeded, TruncatedData
from ..schema.fields import LIST_FLAG, FieldDescriptor, FieldKind, Schema
from .stream import ChunkStream, RecordCursor

MAX_NESTING = 16


class Record(Mapping):
    """Immutable ordered mapping of field name to decoded value.

    Values are also reachable by field ordinal: ``record[0]`` is the first
    field.
    """

    __slots__ = ("_names", "_values", "_index")

    def __init__(self, names: Sequence[str], values: Sequence):
        self._names = tuple(names)
        self._values = tuple(values)
        if len(self._names) != len(self._values):
            raise ValueError("Record needs one value per field name")
        self._index = {name: i for i, name in enumerate(self._names)}

    def __getitem__(self, key):
        if isinstance(key, int) and not isinstance(key, bool):
            if -len(self._values) <= key < len(self._values):
                return self._values[key]
            raise KeyError(key)
        return self._values[self._index[key]]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        body = ", ".join(f"{n}={v!r}" for n, v in zip(self._names, self._values))
        return f"Record({body})"

    @property
    def values_tuple(self) -> tuple:
        return self._values

    def as_dict(self) -> dict:
        """Plain nested dict/list copy, e.g. for JSON output."""
        return {name: _plain(value) for name, value in zip(self._names, self._values)}


class SparseRecords(Mapping):
    """Immutable mapping of array index to Record, iterated in ascending order."""

    __slots__ = ("_entries", "_keys")

    def __init__(self, entries: Dict[int, Record]):
        self._keys = tuple(sorted(entries))
        self._entries = {k: entries[k] for k in self._keys}

    def __getitem__(self, index: int) -> Record:
        return self._entries[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"SparseRecords(indices={list(self._keys)!r})"

    @property
    def indices(self) -> Tuple[int, ...]:
        return self._keys


ChunkData = Union[Record, Tuple[Record, ...], SparseRecords]


def _plain(value):
    if isinstance(value, Record):
        return value.as_dict()
    if isinstance(value, SparseRecords):
        return {k: v.as_dict() for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _record_from_row(schema: Schema, row: tuple) -> Record:
    """Convert one row of a structured numpy array into a Record."""
    values = []
    for fd, value in zip(schema, row):
        if fd.kind.is_composite:
            if fd.is_array:
                value = [_record_from_row(fd.sub_schema, v) for v in value]
            else:
                value = _record_from_row(fd.sub_schema, value)
        values.append(value)
    return Record(schema.names, values)


class RecordDecoder:
    """Decodes chunk payloads into records.

    Raw and fixed-array routines take the declared size the chunk table has
    already read; the others take the stream right after the selector byte.
    All of them leave the stream right after the chunk. Schema-driven
    methods accept ``schema=None`` to skip the payload and return None.
    """

    def __init__(self, options: Optional[LoadOptions] = None):
        self.options = options or LoadOptions()

    # ---- limits ----

    def _check_size(self, size: int, what: str, stream: ChunkStream):
        limit = self.options.max_decompressed_bytes
        if size > limit:
            raise ResourceLimitExceeded(
                f"{what} declares {size} bytes, above the ceiling of {limit}",
                offset=stream.offset,
            )

    def _check_count(self, count: int, what: str, offset: int):
        limit = self.options.max_record_count
        if count > limit:
            raise ResourceLimitExceeded(
                f"{what} declares {count} records, above the ceiling of {limit}",
                offset=offset,
            )

    def _cursor(self, body: bytes, start: int) -> RecordCursor:
        return RecordCursor(body, start, self.options.max_varint_bytes)

    # ---- per encoding ----

    def decode_raw(self, stream: ChunkStream, size: int,
                   schema: Optional[Schema]) -> Optional[Record]:
        body, start = self._read_body(stream, size, "raw chunk")
        if schema is None:
            return None
        cursor = self._cursor(body, start)
        record = self.decode_record(schema, cursor)
        cursor.expect_end("raw chunk")
        return record

    def decode_fixed_array(self, stream: ChunkStream, size: int,
                           schema: Optional[Schema]) -> Optional[Tuple[Record, ...]]:
        body, start = self._read_body(stream, size, "fixed array")
        if schema is None:
            return None
        return self._decode_counted(schema, self._cursor(body, start), "fixed array")

    def decode_sparse_array(self, stream: ChunkStream,
                            schema: Optional[Schema]) -> Optional[SparseRecords]:
        return self._decode_sparse_entries(stream, schema, "sparse array")

    def decode_table(self, stream: ChunkStream,
                     schema: Optional[Schema] = None) -> Tuple[Record, ...]:
        """Table chunks bring their own schema; ``schema`` is ignored."""
        table_schema = self.read_table_header(stream)
        size = stream.read_varint("table length")
        body, start = self._read_body(stream, size, "table")
        return self._decode_counted(table_schema, self._cursor(body, start), "table")

    def decode_sparse_table(self, stream: ChunkStream,
                            schema: Optional[Schema] = None) -> SparseRecords:
        table_schema = self.read_table_header(stream)
        return self._decode_sparse_entries(stream, table_schema, "sparse table")

    # ---- shared payload shapes ----

    def _read_body(self, stream: ChunkStream, size: int, what: str) -> Tuple[bytes, int]:
        self._check_size(size, what, stream)
        start = stream.offset
        return stream.read_exact(size, f"{what} body"), start

    def _decode_counted(self, schema: Schema, cursor: RecordCursor,
                        what: str) -> Tuple[Record, ...]:
        count_offset = cursor.offset
        count = cursor.read_varint(f"{what} record count")
        self._check_count(count, what, count_offset)

        dtype = schema.numpy_dtype()
        if dtype is not None and count:
            block = cursor.take(count * dtype.itemsize, f"{count} {what} records")
            cursor.expect_end(what)
            rows = np.frombuffer(block, dtype=dtype, count=count).tolist()
            return tuple(_record_from_row(schema, row) for row in rows)

        records = tuple(self.decode_record(schema, cursor) for _ in range(count))
        cursor.expect_end(what)
        return records

    def _decode_sparse_entries(self, stream: ChunkStream, schema: Optional[Schema],
                               what: str) -> Optional[SparseRecords]:
        entries: Dict[int, Record] = {}
        n_entries = 0
        while True:
            entry_offset = stream.offset
            marker = stream.read_varint(f"{what} index")
            if marker == 0:
                break
            n_entries += 1
            self._check_count(n_entries, what, entry_offset)
            index = marker - 1
            size = stream.read_varint(f"{what} record length")
            self._check_size(size, f"{what} record {index}", stream)
            start = stream.offset
            body = stream.read_exact(size, f"{what} record {index}")
            if schema is None:
                continue
            if size == 0:
                # Free slot; drops any earlier record at this index
                entries.pop(index, None)
                continue
            cursor = self._cursor(body, start)
            record = self.decode_record(schema, cursor)
            cursor.expect_end(f"{what} record {index}")
            entries[index] = record
        if schema is None:
            return None
        return SparseRecords(entries)

    # ---- self-describing headers ----

    def read_table_header(self, stream: ChunkStream) -> Schema:
        """Read a table field list into an ephemeral Schema.

        Field list:
            repeated:
                uint8: type byte (low nibble FieldKind, 0x10 list flag)
                varint: name length
                bytes: UTF-8 name
                NESTED/LIST fields: their own field list
            uint8: 0 terminates the list
        """
        return self._read_field_list(stream, depth=0)

    def _read_field_list(self, stream: ChunkStream, depth: int) -> Schema:
        if depth > MAX_NESTING:
            raise CorruptData(f"Table header nests deeper than {MAX_NESTING} levels",
                              offset=stream.offset)
        fields: List[FieldDescriptor] = []
        while True:
            field_offset = stream.offset
            type_byte = stream.read_u8("table field type")
            if type_byte == 0:
                break
            self._check_count(len(fields) + 1, "table header", field_offset)
            try:
                kind = FieldKind(type_byte & 0x0F)
            except ValueError:
                kind = None
            if kind is None or type_byte & ~(LIST_FLAG | 0x0F):
                raise CorruptData(f"Invalid table field type byte 0x{type_byte:02x}",
                                  offset=field_offset)
            name_len = stream.read_varint("table field name length")
            self._check_size(name_len, "table field name", stream)
            raw_name = stream.read_exact(name_len, "table field name")
            try:
                name = raw_name.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CorruptData(f"Table field name is not UTF-8: {raw_name!r}",
                                  offset=field_offset) from exc
            sub_fields: Tuple[FieldDescriptor, ...] = ()
            if kind.is_composite:
                sub_fields = self._read_field_list(stream, depth + 1).fields
            try:
                fields.append(FieldDescriptor(name, kind, is_array=bool(type_byte & LIST_FLAG),
                                              fields=sub_fields))
            except ValueError as exc:
                raise CorruptData(f"Invalid table field {name!r}: {exc}",
                                  offset=field_offset) from exc
        try:
            return Schema(tuple(fields))
        except ValueError as exc:
            raise CorruptData(f"Invalid table header: {exc}", offset=stream.offset) from exc

    # ---- fields ----

    def decode_record(self, schema: Schema, cursor: RecordCursor) -> Record:
        return Record(schema.names, [self._decode_field(fd, cursor) for fd in schema])

    def _decode_field(self, fd: FieldDescriptor, cursor: RecordCursor):
        if not fd.is_array:
            return self._decode_value(fd, cursor)
        if fd.length is not None:
            return self._decode_elements(fd, cursor, fd.length, declared=False)
        count_offset = cursor.offset
        count = cursor.read_varint(f"element count of {fd.name!r}")
        self._check_count(count, f"list {fd.name!r}", count_offset)
        return self._decode_elements(fd, cursor, count, declared=True)

    def _decode_elements(self, fd: FieldDescriptor, cursor: RecordCursor,
                         count: int, declared: bool) -> list:
        kind = fd.kind
        if count == 0:
            return []
        if kind.is_numeric:
            n_bytes = count * kind.width
            what = f"array {fd.name!r}"
            view = cursor.take_declared(n_bytes, what) if declared else cursor.take(n_bytes, what)
            return np.frombuffer(view, dtype=">" + kind.struct_code, count=count).tolist()
        if declared and kind is FieldKind.STRING and count > cursor.remaining:
            # Every string needs at least its length byte
            raise TruncatedData(
                f"list {fd.name!r} declares {count} strings but only {cursor.remaining} bytes remain",
                offset=cursor.offset,
            )
        return [self._decode_value(fd, cursor) for _ in range(count)]

    def _decode_value(self, fd: FieldDescriptor, cursor: RecordCursor):
        kind = fd.kind
        if kind.is_numeric:
            return cursor.unpack(kind.struct_code, kind.width, f"field {fd.name!r}")
        if kind is FieldKind.STRING:
            length = cursor.read_varint(f"length of {fd.name!r}")
            raw = cursor.take_declared(length, f"string {fd.name!r}")
            return bytes(raw).decode("utf-8", errors="replace")
        return self.decode_record(fd.sub_schema, cursor)
