"""Chunk table: the sequence of tagged chunks after the header.

CHUNK DESCRIPTOR:
    tag: bytes[4]        # ASCII; b"\\x00\\x00\\x00\\x00" ends the savegame
    selector: uint8      # low nibble: ChunkEncoding
                         # high nibble: bits 24-27 of a RAW chunk's length
    declared size        # RAW: uint24 (+ high nibble); FIXED_ARRAY: varint
    payload              # per encoding, see records.py

The reader is a pull loop over the stream: read a tag, stop at the sentinel,
otherwise read the selector, hand the payload to the RecordDecoder routine
for that encoding, and go round again. Any error ends the load; once a chunk
is misaligned the following chunk boundaries cannot be trusted.
"""

import warnings
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Iterator, Optional, Tuple

from ..config import LoadOptions
from ..exceptions import (
    CorruptData, LoadCancelled, LoadError, UnknownChunk, UnknownChunkWarning,
)
from ..schema.fields import Schema
from ..schema.matrix import SchemaSet
from .records import ChunkData, RecordDecoder
from .stream import SENTINEL_TAG, ChunkStream


class ChunkEncoding(IntEnum):
    RAW = 0
    FIXED_ARRAY = 1
    SPARSE_ARRAY = 2
    TABLE = 3
    SPARSE_TABLE = 4

    @property
    def self_describing(self) -> bool:
        return self in (ChunkEncoding.TABLE, ChunkEncoding.SPARSE_TABLE)

    @classmethod
    def from_selector(cls, selector: int) -> "ChunkEncoding":
        try:
            return cls(selector & 0x0F)
        except ValueError:
            raise CorruptData(f"Invalid chunk encoding selector 0x{selector:02x}") from None


@dataclass(frozen=True)
class ChunkDescriptor:
    """Tag and encoding of one chunk, with the file offset of its tag.

    ``declared_size`` is the body length for raw and fixed-array chunks;
    the other encodings carry sizes inside their payload.
    """
    tag: str
    encoding: ChunkEncoding
    declared_size: Optional[int]
    offset: int


def tag_to_str(raw_tag: bytes) -> str:
    return raw_tag.decode("latin-1")


class ChunkTableReader:
    """Iterates chunks of one savegame, decoding each as it is reached.

    Args:
        stream: Decompressed chunk stream positioned after the header.
        schema_set: Static schemas resolved for the savegame's version.
        options: Limits and the unknown-chunk policy.
        decoder: RecordDecoder to use (one is built from ``options`` if None).
    """

    def __init__(self, stream: ChunkStream, schema_set: SchemaSet,
                 options: Optional[LoadOptions] = None,
                 decoder: Optional[RecordDecoder] = None):
        self.stream = stream
        self.schema_set = schema_set
        self.options = options or LoadOptions()
        self.decoder = decoder or RecordDecoder(self.options)
        self._dispatch: Dict[ChunkEncoding, Callable[[ChunkDescriptor, Optional[Schema]], Optional[ChunkData]]] = {
            ChunkEncoding.RAW: lambda d, s: self.decoder.decode_raw(self.stream, d.declared_size, s),
            ChunkEncoding.FIXED_ARRAY: lambda d, s: self.decoder.decode_fixed_array(self.stream, d.declared_size, s),
            ChunkEncoding.SPARSE_ARRAY: lambda d, s: self.decoder.decode_sparse_array(self.stream, s),
            ChunkEncoding.TABLE: lambda d, s: self.decoder.decode_table(self.stream),
            ChunkEncoding.SPARSE_TABLE: lambda d, s: self.decoder.decode_sparse_table(self.stream),
        }

    def __iter__(self) -> Iterator[Tuple[ChunkDescriptor, Optional[ChunkData]]]:
        return self.iter_chunks()

    def iter_chunks(self) -> Iterator[Tuple[ChunkDescriptor, Optional[ChunkData]]]:
        """Yield ``(descriptor, data)`` per chunk; ``data`` is None when skipped."""
        seen = set()
        while True:
            tag = None
            try:
                if self.options.cancelled:
                    raise LoadCancelled("Load cancelled between chunks",
                                        offset=self.stream.offset)
                self.stream.begin_chunk()
                chunk_offset = self.stream.offset
                raw_tag = self.stream.read_tag()
                if raw_tag == SENTINEL_TAG:
                    self.stream.source.finish()
                    return
                tag = tag_to_str(raw_tag)
                selector = self.stream.read_u8("chunk selector")
                encoding = ChunkEncoding.from_selector(selector)
                if tag in seen:
                    raise CorruptData(f"Duplicate chunk tag {tag!r}", offset=chunk_offset)
                seen.add(tag)
                declared_size = self._read_declared_size(encoding, selector)
                descriptor = ChunkDescriptor(tag, encoding, declared_size, chunk_offset)
                data = self._decode(descriptor)
            except LoadError as exc:
                raise exc.locate(tag, self.stream.offset)
            yield descriptor, data

    def _read_declared_size(self, encoding: ChunkEncoding, selector: int) -> Optional[int]:
        if encoding is ChunkEncoding.RAW:
            # High nibble of the selector supplies bits 24-27
            return ((selector >> 4) << 24) | self.stream.read_u24("raw chunk length")
        if encoding is ChunkEncoding.FIXED_ARRAY:
            return self.stream.read_varint("fixed array length")
        return None

    def _decode(self, descriptor: ChunkDescriptor) -> Optional[ChunkData]:
        schema = None
        if not descriptor.encoding.self_describing:
            schema = self.schema_set.get(descriptor.tag)
            if schema is None and self.options.strict_unknown_chunks:
                raise UnknownChunk(
                    f"No {self.schema_set.name} schema for {descriptor.encoding.name} chunk",
                    tag=descriptor.tag,
                    offset=descriptor.offset,
                )
        data = self._dispatch[descriptor.encoding](descriptor, schema)
        if schema is None and not descriptor.encoding.self_describing:
            warnings.warn(
                f"Skipped unknown {descriptor.encoding.name} chunk {descriptor.tag!r} "
                f"at offset {descriptor.offset}",
                UnknownChunkWarning,
                stacklevel=4,
            )
        return data
