"""ottsave: decoder for chunked, versioned transport-game savegames.

    import ottsave
    save = ottsave.load_savegame("game.sav")
    save.version         # (major, minor)
    save.map_size        # (dim_x, dim_y)
    save.chunk("PLYR")   # SparseRecords of company records
"""

__version__ = "0.3.0"

from .config import LoadOptions
from .exceptions import (
    LoadError,
    UnsupportedFormat,
    UnsupportedVersion,
    TruncatedData,
    CorruptData,
    SchemaMismatch,
    UnknownChunk,
    ResourceLimitExceeded,
    LoadCancelled,
    UnknownChunkWarning,
)
from .savegame import DecodedSavegame, load_savegame
from .storage import Compression, SavegameHeader
from .schema import (
    FieldKind, FieldDescriptor, Schema, SchemaSet, VersionRange,
    VersionCompatibilityMatrix, DEFAULT_MATRIX,
)
from .codec import ChunkEncoding, Record, SparseRecords

__all__ = [
    "__version__",
    "load_savegame", "DecodedSavegame", "LoadOptions",
    "Compression", "SavegameHeader",
    "FieldKind", "FieldDescriptor", "Schema", "SchemaSet", "VersionRange",
    "VersionCompatibilityMatrix", "DEFAULT_MATRIX",
    "ChunkEncoding", "Record", "SparseRecords",
    "LoadError", "UnsupportedFormat", "UnsupportedVersion", "TruncatedData",
    "CorruptData", "SchemaMismatch", "UnknownChunk", "ResourceLimitExceeded",
    "LoadCancelled", "UnknownChunkWarning",
]
