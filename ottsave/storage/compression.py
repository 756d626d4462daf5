"""Compression detection and lazy decompressing byte sources.

The first four bytes of a savegame select how everything after the 8-byte
header is compressed:

    magic   scheme
    OTTN    none
    OTTD    none (legacy uncompressed saves)
    OTTZ    zlib
    OTTX    lzma / xz
    OTTS    zstd

Every scheme is exposed as a ``ByteSource``: a pull-based reader that only
decompresses as much as the caller asks for. The source also enforces the
per-chunk decompressed-size ceiling, so a decompression bomb is stopped
before its output is produced rather than after.
"""

import lzma
import zlib
from enum import Enum
from typing import BinaryIO, Dict, Type

import zstandard as zstd

from ..config import LoadOptions
from ..exceptions import CorruptData, ResourceLimitExceeded, UnsupportedFormat


class Compression(Enum):
    """Compression scheme of the chunk stream."""
    NONE = "none"
    ZLIB = "zlib"
    LZMA = "lzma"
    ZSTD = "zstd"


MAGIC_TO_COMPRESSION: Dict[bytes, Compression] = {
    b"OTTN": Compression.NONE,
    b"OTTD": Compression.NONE,
    b"OTTZ": Compression.ZLIB,
    b"OTTX": Compression.LZMA,
    b"OTTS": Compression.ZSTD,
}

# Preferred magic per scheme (OTTD is accepted on read only)
COMPRESSION_TO_MAGIC: Dict[Compression, bytes] = {
    Compression.NONE: b"OTTN",
    Compression.ZLIB: b"OTTZ",
    Compression.LZMA: b"OTTX",
    Compression.ZSTD: b"OTTS",
}


def detect_compression(magic: bytes) -> Compression:
    """Map a 4-byte magic signature to its compression scheme."""
    try:
        return MAGIC_TO_COMPRESSION[bytes(magic)]
    except KeyError:
        raise UnsupportedFormat(f"Unrecognized savegame magic: {bytes(magic)!r}", offset=0) from None


class ByteSource:
    """Pull-based byte source with a per-chunk decompressed-size ceiling.

    Subclasses implement ``_pull(max_length)``, returning at most
    ``max_length`` bytes and ``b""`` only once the stream is exhausted.
    """

    def __init__(self, fileobj: BinaryIO, options: LoadOptions):
        self._raw = fileobj
        self._limit = options.max_decompressed_bytes
        self._feed_size = options.feed_size
        self._chunk_bytes = 0
        self.position = 0  # decompressed bytes delivered so far

    def begin_chunk(self):
        """Reset the ceiling budget at a chunk boundary."""
        self._chunk_bytes = 0

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes; fewer only if the stream ends."""
        if n <= 0:
            return b""
        if self._chunk_bytes + n > self._limit:
            raise ResourceLimitExceeded(
                f"Chunk exceeds the decompressed-size ceiling of {self._limit} bytes"
            )
        parts = []
        remaining = n
        while remaining:
            block = self._pull(remaining)
            if not block:
                break
            parts.append(block)
            remaining -= len(block)
        data = b"".join(parts)
        self._chunk_bytes += len(data)
        self.position += len(data)
        return data

    def finish(self):
        """Called after the end-of-savegame marker has been read."""

    def _pull(self, max_length: int) -> bytes:
        raise NotImplementedError


class PlainSource(ByteSource):
    """Uncompressed chunk stream; trailing bytes after the marker are ignored."""

    def _pull(self, max_length: int) -> bytes:
        return self._raw.read(max_length)


class _DecompressingSource(ByteSource):
    """Shared feeding and error handling for the compressed schemes."""

    scheme = ""
    _errors: tuple = ()

    def _next_input(self) -> bytes:
        data = self._raw.read(self._feed_size)
        if not data:
            raise CorruptData(f"{self.scheme} stream ended before its end marker")
        return data

    def _pull(self, max_length: int) -> bytes:
        try:
            return self._inflate(max_length)
        except self._errors as exc:
            raise CorruptData(f"{self.scheme} decompression failed: {exc}") from exc

    def _inflate(self, max_length: int) -> bytes:
        raise NotImplementedError

    def finish(self):
        """Drain output after the marker and require a clean end of stream.

        Draining counts against a fresh chunk budget, so trailing garbage
        cannot be used to expand without bound.
        """
        self.begin_chunk()
        while True:
            allowed = self._limit - self._chunk_bytes
            block = self._pull(min(self._feed_size, allowed) or 1)
            if not block:
                return
            self._chunk_bytes += len(block)
            self.position += len(block)
            if self._chunk_bytes > self._limit:
                raise ResourceLimitExceeded(
                    f"Trailing data exceeds the decompressed-size ceiling of {self._limit} bytes"
                )


class ZlibSource(_DecompressingSource):
    scheme = "zlib"
    _errors = (zlib.error,)

    def __init__(self, fileobj: BinaryIO, options: LoadOptions):
        super().__init__(fileobj, options)
        self._obj = zlib.decompressobj()

    def _inflate(self, max_length: int) -> bytes:
        d = self._obj
        while True:
            if d.unconsumed_tail:
                data = d.unconsumed_tail
            elif d.eof:
                return b""
            else:
                data = self._next_input()
            out = d.decompress(data, max_length)
            if out:
                return out


class LzmaSource(_DecompressingSource):
    scheme = "lzma"
    _errors = (lzma.LZMAError,)

    def __init__(self, fileobj: BinaryIO, options: LoadOptions):
        super().__init__(fileobj, options)
        self._obj = lzma.LZMADecompressor(format=lzma.FORMAT_AUTO)

    def _inflate(self, max_length: int) -> bytes:
        d = self._obj
        while True:
            if d.eof:
                return b""
            data = self._next_input() if d.needs_input else b""
            out = d.decompress(data, max_length=max_length)
            if out:
                return out


ZSTD_MAGIC = 0xFD2FB528
ZSTD_SKIPPABLE_MASK = 0xFFFFFFF0
ZSTD_SKIPPABLE_MAGIC = 0x184D2A50


class _ZstdFrameTracker:
    """Pass-through reader that follows zstd frame boundaries.

    The stream reader returns ``b""`` both at a clean end and when the input
    is cut off mid-frame. Walking the frame and block headers of the bytes
    handed to it tells the two apart without decoding anything:

        frame      magic(4) descriptor(1) [window(1)] [dict id] [content size]
                   block... [checksum(4)]
        block      header(3, LE): last(1 bit) type(2 bits) size(21 bits)
        skippable  magic(4) size(4, LE) data
    """

    def __init__(self, fileobj: BinaryIO):
        self._raw = fileobj
        self._buf = b""
        self._want = 4
        self._step = self._on_magic
        self._skip = 0
        self._checksum = False
        self._in_frame = False
        self._frames = 0

    @property
    def complete(self) -> bool:
        """True when the input seen so far ends exactly after a frame."""
        return bool(self._frames) and not (self._in_frame or self._buf or self._skip)

    def read(self, n: int = -1) -> bytes:
        data = self._raw.read(n)
        self._scan(data)
        return data

    def _scan(self, data: bytes):
        pos, end = 0, len(data)
        while pos < end:
            if self._skip:
                used = min(self._skip, end - pos)
                self._skip -= used
                pos += used
                continue
            take = min(self._want - len(self._buf), end - pos)
            self._buf += data[pos:pos + take]
            pos += take
            if len(self._buf) == self._want:
                field, self._buf = self._buf, b""
                self._step(field)

    def _expect(self, want: int, step, skip: int = 0):
        self._want, self._step, self._skip = want, step, skip

    def _on_magic(self, field: bytes):
        magic = int.from_bytes(field, "little")
        self._in_frame = True
        if magic == ZSTD_MAGIC:
            self._expect(1, self._on_descriptor)
        elif magic & ZSTD_SKIPPABLE_MASK == ZSTD_SKIPPABLE_MAGIC:
            self._expect(4, self._on_skippable_size)
        else:
            raise CorruptData(f"zstd stream has an unknown frame magic 0x{magic:08x}")

    def _on_skippable_size(self, field: bytes):
        self._end_frame(skip=int.from_bytes(field, "little"))

    def _on_descriptor(self, field: bytes):
        fhd = field[0]
        single_segment = (fhd >> 5) & 1
        self._checksum = bool(fhd & 0x04)
        dict_id = (0, 1, 2, 4)[fhd & 0x03]
        content_size = (single_segment, 2, 4, 8)[fhd >> 6]
        self._expect(3, self._on_block_header,
                     skip=(1 - single_segment) + dict_id + content_size)

    def _on_block_header(self, field: bytes):
        header = int.from_bytes(field, "little")
        block_type = (header >> 1) & 0x03
        if block_type == 3:
            raise CorruptData("zstd stream has a reserved block type")
        body = 1 if block_type == 1 else header >> 3
        if not header & 1:
            self._expect(3, self._on_block_header, skip=body)
        elif self._checksum:
            self._expect(4, self._on_checksum, skip=body)
        else:
            self._end_frame(skip=body)

    def _on_checksum(self, field: bytes):
        self._end_frame()

    def _end_frame(self, skip: int = 0):
        self._in_frame = False
        self._frames += 1
        self._expect(4, self._on_magic, skip=skip)


class ZstdSource(_DecompressingSource):
    """Bounded reads through ``stream_reader``; frames are read back to back."""

    scheme = "zstd"
    _errors = (zstd.ZstdError,)

    def __init__(self, fileobj: BinaryIO, options: LoadOptions):
        super().__init__(fileobj, options)
        self._frames = _ZstdFrameTracker(fileobj)
        self._reader = zstd.ZstdDecompressor().stream_reader(
            self._frames, read_size=options.feed_size,
            read_across_frames=True, closefd=False,
        )

    def _inflate(self, max_length: int) -> bytes:
        out = self._reader.read(max_length)
        if not out and not self._frames.complete:
            raise CorruptData(f"{self.scheme} stream ended before its end marker")
        return out


_SOURCES: Dict[Compression, Type[ByteSource]] = {
    Compression.NONE: PlainSource,
    Compression.ZLIB: ZlibSource,
    Compression.LZMA: LzmaSource,
    Compression.ZSTD: ZstdSource,
}


def open_source(compression: Compression, fileobj: BinaryIO,
                options: LoadOptions) -> ByteSource:
    """Wrap the bytes following the header in the matching source."""
    return _SOURCES[compression](fileobj, options)


def compress_payload(compression: Compression, payload: bytes) -> bytes:
    """Compress a chunk stream with the given scheme.

    Only used to build fixtures and sample files; the loader never writes.
    """
    if compression is Compression.NONE:
        return bytes(payload)
    if compression is Compression.ZLIB:
        return zlib.compress(payload, 6)
    if compression is Compression.LZMA:
        return lzma.compress(payload, format=lzma.FORMAT_XZ)
    if compression is Compression.ZSTD:
        return zstd.ZstdCompressor(level=19).compress(payload)
    raise ValueError(f"Unknown compression: {compression!r}")
