from .compression import (
    Compression, ByteSource, detect_compression, open_source, compress_payload,
    MAGIC_TO_COMPRESSION, COMPRESSION_TO_MAGIC,
)
from .header import SavegameHeader, read_header, HEADER_SIZE

__all__ = [
    "Compression", "ByteSource", "detect_compression", "open_source", "compress_payload",
    "MAGIC_TO_COMPRESSION", "COMPRESSION_TO_MAGIC",
    "SavegameHeader", "read_header", "HEADER_SIZE",
]
