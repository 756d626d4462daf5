"""Loading a savegame file into immutable records.

Usage:
    from ottsave import load_savegame, LoadOptions

    save = load_savegame("autosave.sav", LoadOptions(strict_unknown_chunks=True))
    print(save.version, save.map_size, save.calendar_date)
    for index, company in save.chunk("PLYR").items():
        print(index, company["name"], company["money"])
"""

import datetime
import io
import os
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Tuple, Union

import numpy as np

from .codec.chunks import ChunkEncoding, ChunkTableReader
from .codec.records import ChunkData, Record, SparseRecords
from .codec.stream import ChunkStream
from .config import LoadOptions
from .schema.matrix import DEFAULT_MATRIX, VersionCompatibilityMatrix
from .storage.compression import open_source
from .storage.header import HEADER_SIZE, SavegameHeader, read_header

SavegameSource = Union[str, os.PathLike, bytes, bytearray, memoryview, BinaryIO]

# Day 0 is 1 January of year 0, which is a leap year; Python ordinals start
# at 1 January of year 1.
_DAYS_BEFORE_YEAR_ONE = 366


@dataclass(frozen=True)
class DecodedSavegame:
    """Everything decoded from one savegame.

    ``chunks`` maps each decoded tag, in file order, to a Record (raw
    chunks), a tuple of Records (fixed arrays and tables) or SparseRecords
    (sparse arrays and sparse tables). Tags skipped in permissive mode appear
    in ``encodings`` and ``skipped`` but not in ``chunks``.
    """
    header: SavegameHeader
    chunks: Mapping[str, ChunkData]
    encodings: Mapping[str, ChunkEncoding]
    skipped: Tuple[str, ...] = ()
    schema_set: str = ""

    @property
    def version(self) -> Tuple[int, int]:
        return self.header.version

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(self.chunks)

    def __contains__(self, tag: str) -> bool:
        return tag in self.chunks

    def chunk(self, tag: str) -> ChunkData:
        try:
            return self.chunks[tag]
        except KeyError:
            raise KeyError(f"Savegame has no decoded chunk {tag!r}") from None

    def records(self, tag: str) -> Tuple[Record, ...]:
        """Records of a chunk as a flat tuple, whatever its encoding."""
        data = self.chunk(tag)
        if isinstance(data, Record):
            return (data,)
        if isinstance(data, SparseRecords):
            return tuple(data.values())
        return tuple(data)

    def scalar(self, tag: str, field: str, default: Any = None) -> Any:
        """A field of a single-record chunk, or ``default`` if absent."""
        data = self.chunks.get(tag)
        if not isinstance(data, Record):
            return default
        return data.get(field, default)

    def column(self, tag: str, field: str) -> np.ndarray:
        """One field across all records of a chunk, as a numpy array."""
        return np.array([record[field] for record in self.records(tag)])

    # ---- well-known scalars for the windowing layer ----

    @property
    def map_size(self) -> Optional[Tuple[int, int]]:
        dim_x = self.scalar("MAPS", "dim_x")
        dim_y = self.scalar("MAPS", "dim_y")
        if dim_x is None or dim_y is None:
            return None
        return (dim_x, dim_y)

    @property
    def date(self) -> Optional[int]:
        """In-game date as days since 1 January of year 0."""
        return self.scalar("DATE", "date")

    @property
    def calendar_date(self) -> Optional[datetime.date]:
        days = self.date
        if days is None or days < _DAYS_BEFORE_YEAR_ONE:
            return None
        try:
            return datetime.date.fromordinal(days - _DAYS_BEFORE_YEAR_ONE + 1)
        except (ValueError, OverflowError):
            return None


@contextmanager
def _open(source: SavegameSource) -> Iterator[BinaryIO]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
    elif hasattr(source, "read"):
        yield source
    else:
        with open(source, "rb") as f:
            yield f


def load_savegame(source: SavegameSource,
                  options: Optional[LoadOptions] = None,
                  matrix: Optional[VersionCompatibilityMatrix] = None) -> DecodedSavegame:
    """Decode a savegame.

    Args:
        source: Path, in-memory bytes, or a binary file object positioned at
            the start of the savegame (left open).
        options: Limits and policies; defaults to ``LoadOptions()``.
        matrix: Version compatibility matrix; defaults to the built-in one.

    Returns:
        DecodedSavegame owned by the caller.

    Raises:
        LoadError: any subclass; nothing is returned on failure.
        OSError: the path cannot be opened.
    """
    options = options or LoadOptions()
    matrix = matrix or DEFAULT_MATRIX

    with _open(source) as fileobj:
        header = read_header(fileobj)
        schema_set = matrix.resolve(header.version)
        byte_source = open_source(header.compression, fileobj, options)
        stream = ChunkStream(byte_source, HEADER_SIZE, options.max_varint_bytes)

        chunks = {}
        encodings = {}
        skipped = []
        for descriptor, data in ChunkTableReader(stream, schema_set, options):
            encodings[descriptor.tag] = descriptor.encoding
            if data is None:
                skipped.append(descriptor.tag)
            else:
                chunks[descriptor.tag] = data

    return DecodedSavegame(
        header=header,
        chunks=MappingProxyType(chunks),
        encodings=MappingProxyType(encodings),
        skipped=tuple(skipped),
        schema_set=schema_set.name,
    )
