"""Field descriptors and schemas.

A Schema is the ordered field layout of one record. Static schemas come from
the version matrix; table chunks build an ephemeral Schema of the same type
from their own header.

Field kind codes are the ones used on the wire by table headers
(low nibble of the type byte; bit 0x10 marks a list):

    1 INT8    2 UINT8    3 INT16   4 UINT16   5 INT32   6 UINT32
    7 INT64   8 UINT64   9 STRING_ID (uint16)  10 STRING  11 NESTED  12 LIST
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, Optional, Tuple, Union

import numpy as np


class FieldKind(IntEnum):
    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    INT64 = 7
    UINT64 = 8
    STRING_ID = 9
    STRING = 10
    NESTED = 11
    LIST = 12

    @property
    def width(self) -> Optional[int]:
        """Byte width of one value, or None for variable-size kinds."""
        entry = _FIXED_KINDS.get(self)
        return entry[1] if entry else None

    @property
    def struct_code(self) -> str:
        return _FIXED_KINDS[self][0]

    @property
    def is_numeric(self) -> bool:
        return self in _FIXED_KINDS

    @property
    def is_composite(self) -> bool:
        return self in (FieldKind.NESTED, FieldKind.LIST)


# kind -> (struct code, byte width); all big-endian on the wire
_FIXED_KINDS = {
    FieldKind.INT8: ("b", 1),
    FieldKind.UINT8: ("B", 1),
    FieldKind.INT16: ("h", 2),
    FieldKind.UINT16: ("H", 2),
    FieldKind.INT32: ("i", 4),
    FieldKind.UINT32: ("I", 4),
    FieldKind.INT64: ("q", 8),
    FieldKind.UINT64: ("Q", 8),
    FieldKind.STRING_ID: ("H", 2),
}

LIST_FLAG = 0x10


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of a record layout.

    Args:
        name: Field key; records expose values under this name.
        kind: Primitive kind of each value.
        is_array: Value is a sequence of ``kind`` elements.
        length: Fixed element count stored inline (static schemas only).
            ``None`` with ``is_array`` means a varint count prefix.
        fields: Sub-schema of NESTED and LIST fields.
    """
    name: str
    kind: FieldKind
    is_array: bool = False
    length: Optional[int] = None
    fields: Tuple["FieldDescriptor", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "kind", FieldKind(self.kind))
        object.__setattr__(self, "fields", tuple(self.fields))
        if self.kind is FieldKind.LIST:
            object.__setattr__(self, "is_array", True)
        if self.length is not None:
            if self.length < 0:
                raise ValueError(f"Field {self.name!r}: negative length {self.length}")
            object.__setattr__(self, "is_array", True)
        if self.kind.is_composite and not self.fields:
            raise ValueError(f"Field {self.name!r}: {self.kind.name} needs sub-fields")
        if not self.kind.is_composite and self.fields:
            raise ValueError(f"Field {self.name!r}: {self.kind.name} cannot have sub-fields")
        # Not a dataclass field: excluded from eq/hash/repr
        object.__setattr__(self, "sub_schema",
                           Schema(self.fields) if self.kind.is_composite else None)

    @property
    def element_size(self) -> Optional[int]:
        """Byte size of one element, or None if it varies."""
        if self.kind.is_composite:
            return self.sub_schema.fixed_size
        return self.kind.width

    @property
    def fixed_size(self) -> Optional[int]:
        """Total encoded size, or None if it depends on the data."""
        size = self.element_size
        if size is None:
            return None
        if not self.is_array:
            return size
        if self.length is None:
            return None
        return size * self.length

    @property
    def type_byte(self) -> int:
        """Table-header type byte for this field."""
        code = int(self.kind)
        if self.is_array and self.kind is not FieldKind.LIST:
            code |= LIST_FLAG
        return code

    def numpy_dtype(self):
        """numpy dtype of one element (big-endian), or None."""
        if self.kind.is_composite:
            return self.sub_schema.numpy_dtype()
        if not self.kind.is_numeric:
            return None
        return np.dtype(">" + self.kind.struct_code)


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable record layout."""
    fields: Tuple[FieldDescriptor, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema: {names}")

    @classmethod
    def of(cls, *fields: Union[FieldDescriptor, Tuple]) -> "Schema":
        """Build a schema from descriptors or ``(name, kind, ...)`` tuples."""
        return cls(tuple(
            f if isinstance(f, FieldDescriptor) else FieldDescriptor(*f)
            for f in fields
        ))

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, index: int) -> FieldDescriptor:
        return self.fields[index]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def fixed_size(self) -> Optional[int]:
        """Encoded size of one record, or None if any field is variable."""
        total = 0
        for f in self.fields:
            size = f.fixed_size
            if size is None:
                return None
            total += size
        return total

    def numpy_dtype(self):
        """Structured big-endian dtype for fixed-size schemas, else None."""
        if not self.fields or self.fixed_size is None:
            return None
        parts = []
        for f in self.fields:
            dtype = f.numpy_dtype()
            if dtype is None:
                return None
            if f.is_array:
                parts.append((f.name, dtype, (f.length,)))
            else:
                parts.append((f.name, dtype))
        return np.dtype(parts)

    def with_fields(self, extra: Iterable[FieldDescriptor]) -> "Schema":
        """Return a new schema with fields appended (used by newer versions)."""
        return Schema(self.fields + tuple(extra))

    def without(self, *names: str) -> "Schema":
        return Schema(tuple(f for f in self.fields if f.name not in names))

    def replace(self, name: str, field: FieldDescriptor) -> "Schema":
        return Schema(tuple(field if f.name == name else f for f in self.fields))

