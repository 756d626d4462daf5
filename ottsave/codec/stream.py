"""Readers over the decompressed chunk stream.

``ChunkStream`` pulls from a ByteSource and only moves forward. Chunk
descriptors, table headers and length prefixes are read from it directly.

``RecordCursor`` walks an in-memory body whose length was declared up front
(a raw blob, a fixed-array body, one sparse entry). Because the body has
already been read in full, truncation of the file can only surface in
``ChunkStream``; inside a cursor, running out of bytes means the data does
not match its declared length.
"""

import struct

from ..exceptions import SchemaMismatch, TruncatedData
from ..storage.compression import ByteSource
from ..storage.header import HEADER_SIZE
from .varint import DEFAULT_MAX_BYTES, read_varint

TAG_SIZE = 4
SENTINEL_TAG = b"\x00" * TAG_SIZE


class ChunkStream:
    """Forward-only big-endian reader with file-relative offsets."""

    def __init__(self, source: ByteSource, base_offset: int = HEADER_SIZE,
                 max_varint_bytes: int = DEFAULT_MAX_BYTES):
        self.source = source
        self.base_offset = base_offset
        self.max_varint_bytes = max_varint_bytes

    @property
    def offset(self) -> int:
        return self.base_offset + self.source.position

    def begin_chunk(self):
        self.source.begin_chunk()

    def read_exact(self, n: int, what: str = "data") -> bytes:
        start = self.offset
        data = self.source.read(n)
        if len(data) < n:
            raise TruncatedData(
                f"Stream ended while reading {what}: needed {n} bytes, got {len(data)}",
                offset=start,
            )
        return data

    def read_u8(self, what: str = "byte") -> int:
        return self.read_exact(1, what)[0]

    def read_u24(self, what: str = "uint24") -> int:
        b = self.read_exact(3, what)
        return (b[0] << 16) | (b[1] << 8) | b[2]

    def read_varint(self, what: str = "varint") -> int:
        return read_varint(lambda: self.read_u8(what), self.max_varint_bytes)

    def read_tag(self) -> bytes:
        start = self.offset
        data = self.source.read(TAG_SIZE)
        if len(data) < TAG_SIZE:
            raise TruncatedData(
                "Stream ended before the end-of-savegame marker",
                offset=start,
            )
        return data


class RecordCursor:
    """Bounded reader over one declared-length body."""

    def __init__(self, data: bytes, base_offset: int = 0,
                 max_varint_bytes: int = DEFAULT_MAX_BYTES):
        self.data = memoryview(data)
        self.pos = 0
        self.base_offset = base_offset
        self.max_varint_bytes = max_varint_bytes

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    @property
    def offset(self) -> int:
        return self.base_offset + self.pos

    def take(self, n: int, what: str = "field") -> memoryview:
        """Consume ``n`` bytes the schema requires."""
        if n > self.remaining:
            raise SchemaMismatch(
                f"{what} needs {n} bytes but only {self.remaining} remain in the declared length",
                offset=self.offset,
            )
        view = self.data[self.pos:self.pos + n]
        self.pos += n
        return view

    def take_declared(self, n: int, what: str = "value") -> memoryview:
        """Consume ``n`` bytes whose length came from the data itself."""
        if n > self.remaining:
            raise TruncatedData(
                f"{what} declares {n} bytes but only {self.remaining} remain",
                offset=self.offset,
            )
        view = self.data[self.pos:self.pos + n]
        self.pos += n
        return view

    def unpack(self, code: str, width: int, what: str = "field") -> int:
        return struct.unpack(">" + code, self.take(width, what))[0]

    def read_varint(self, what: str = "varint") -> int:
        def next_byte() -> int:
            if self.pos >= len(self.data):
                raise TruncatedData(f"Body ended inside {what}", offset=self.offset)
            b = self.data[self.pos]
            self.pos += 1
            return b
        return read_varint(next_byte, self.max_varint_bytes)

    def expect_end(self, what: str = "record"):
        """The declared length must be consumed exactly."""
        if self.remaining:
            raise SchemaMismatch(
                f"{what} left {self.remaining} of {len(self.data)} declared bytes unconsumed",
                offset=self.offset,
            )
