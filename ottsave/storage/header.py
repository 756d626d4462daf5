"""Savegame header: magic signature and format version.

HEADER (8 bytes fixed):
    magic: bytes[4]          # selects compression, see compression.py
    version_major: uint16    # big-endian
    version_minor: uint16    # big-endian

Everything after the header is the (possibly compressed) chunk stream.
"""

import struct
from dataclasses import dataclass
from typing import BinaryIO, Tuple

from ..exceptions import TruncatedData
from .compression import COMPRESSION_TO_MAGIC, Compression, detect_compression

HEADER_SIZE = 8
HEADER_FORMAT = ">4sHH"  # total = 4+2+2 = 8


@dataclass(frozen=True)
class SavegameHeader:
    """Parsed savegame header."""
    magic: bytes
    compression: Compression
    version_major: int
    version_minor: int

    @property
    def version(self) -> Tuple[int, int]:
        return (self.version_major, self.version_minor)

    def to_bytes(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self.magic, self.version_major, self.version_minor)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SavegameHeader":
        if len(data) < HEADER_SIZE:
            raise TruncatedData(
                f"Savegame header needs {HEADER_SIZE} bytes, got {len(data)}",
                offset=len(data),
            )
        magic, major, minor = struct.unpack(HEADER_FORMAT, bytes(data[:HEADER_SIZE]))
        return cls(
            magic=magic,
            compression=detect_compression(magic),
            version_major=major,
            version_minor=minor,
        )

    @classmethod
    def for_compression(cls, compression: Compression, version_major: int,
                        version_minor: int = 0) -> "SavegameHeader":
        """Build a header using the preferred magic of a scheme."""
        return cls(
            magic=COMPRESSION_TO_MAGIC[compression],
            compression=compression,
            version_major=version_major,
            version_minor=version_minor,
        )


def read_header(fileobj: BinaryIO) -> SavegameHeader:
    """Consume and parse the header from the start of a file."""
    return SavegameHeader.from_bytes(fileobj.read(HEADER_SIZE))
