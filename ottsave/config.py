"""Central configuration for savegame loading."""

from dataclasses import dataclass
from typing import Any, Optional

MIB = 1024 * 1024


@dataclass(frozen=True)
class LoadOptions:
    """All loader limits and policies in one place."""

    # --- Policy ---
    strict_unknown_chunks: bool = False  # Fail on chunks with no schema instead of skipping

    # --- Resource ceilings ---
    max_decompressed_bytes: int = 64 * MIB  # Per chunk, after decompression
    max_record_count: int = 1_000_000  # Per chunk, and per count-prefixed list
    max_varint_bytes: int = 10  # 10 groups of 7 bits cover uint64

    # --- Decompression ---
    feed_size: int = 16 * 1024  # Compressed bytes handed to the decompressor per step

    # --- Cancellation ---
    cancellation_token: Optional[Any] = None  # Anything with is_set(), e.g. threading.Event

    def __post_init__(self):
        for name in ("max_decompressed_bytes", "max_record_count",
                     "max_varint_bytes", "feed_size"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @property
    def cancelled(self) -> bool:
        token = self.cancellation_token
        return token is not None and bool(token.is_set())
