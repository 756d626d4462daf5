"""Chunk stream decoding: varints, readers, record decoder and chunk table."""

from .varint import encode_varint, decode_varint, read_varint
from .stream import ChunkStream, RecordCursor, SENTINEL_TAG
from .records import Record, SparseRecords, RecordDecoder, ChunkData
from .chunks import ChunkEncoding, ChunkDescriptor, ChunkTableReader

__all__ = [
    "encode_varint", "decode_varint", "read_varint",
    "ChunkStream", "RecordCursor", "SENTINEL_TAG",
    "Record", "SparseRecords", "RecordDecoder", "ChunkData",
    "ChunkEncoding", "ChunkDescriptor", "ChunkTableReader",
]
