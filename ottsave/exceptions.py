"""Error taxonomy for savegame loading.

Every failure of a load call raises a subclass of ``LoadError``. All of them
are terminal for that call: there is no partial result. Errors carry the
chunk tag and byte offset where they were detected when known. Offsets are
counted from the start of the file as if it were uncompressed (8 header bytes
plus decompressed bytes consumed).
"""

from typing import Optional


class LoadError(ValueError):
    """Base class for all savegame load failures."""

    def __init__(self, message: str, tag: Optional[str] = None,
                 offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.tag = tag
        self.offset = offset

    def locate(self, tag: Optional[str] = None, offset: Optional[int] = None) -> "LoadError":
        """Fill in whichever location fields are still unknown."""
        if self.tag is None:
            self.tag = tag
        if self.offset is None:
            self.offset = offset
        return self

    def __str__(self) -> str:
        where = []
        if self.tag is not None:
            where.append(f"chunk {self.tag!r}")
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class UnsupportedFormat(LoadError):
    """Magic signature does not select a known compression scheme."""


class UnsupportedVersion(LoadError):
    """Declared format version lies outside every known range."""


class TruncatedData(LoadError):
    """Stream ended before a declared length was satisfied."""


class CorruptData(LoadError):
    """Decompression failure, malformed varint or invalid selector."""


class SchemaMismatch(LoadError):
    """Decoded bytes did not consume exactly the declared length."""


class UnknownChunk(LoadError):
    """Chunk tag has no schema and strict mode is enabled."""


class ResourceLimitExceeded(LoadError):
    """Decompressed size or record count ceiling exceeded."""


class LoadCancelled(LoadError):
    """Cancellation token was set between two chunks."""


class UnknownChunkWarning(UserWarning):
    """Emitted when permissive mode skips a chunk it cannot interpret."""


__all__ = [
    "LoadError",
    "UnsupportedFormat",
    "UnsupportedVersion",
    "TruncatedData",
    "CorruptData",
    "SchemaMismatch",
    "UnknownChunk",
    "ResourceLimitExceeded",
    "LoadCancelled",
    "UnknownChunkWarning",
]
