"""Variable-length unsigned integers.

Big-endian groups of 7 bits, most significant group first. Every byte except
the last has its high bit set:

    0..127          0xxxxxxx
    128..16383      1xxxxxxx 0xxxxxxx
    ...

Decoders stop after ``max_bytes`` bytes; a longer encoding is rejected as
corrupt rather than accumulated into an arbitrarily large integer.
"""

from typing import Callable, Tuple

from ..exceptions import CorruptData, TruncatedData

DEFAULT_MAX_BYTES = 10


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer."""
    if value < 0:
        raise ValueError(f"Cannot encode negative varint: {value}")
    groups = [value & 0x7F]
    value >>= 7
    while value:
        groups.append(0x80 | (value & 0x7F))
        value >>= 7
    return bytes(reversed(groups))


def read_varint(next_byte: Callable[[], int], max_bytes: int = DEFAULT_MAX_BYTES) -> int:
    """Decode one varint pulling bytes from ``next_byte``.

    ``next_byte`` raises TruncatedData when no byte is left.
    """
    value = 0
    for _ in range(max_bytes):
        b = next_byte()
        value = (value << 7) | (b & 0x7F)
        if not b & 0x80:
            return value
    raise CorruptData(f"Variable-length integer longer than {max_bytes} bytes")


def decode_varint(buf: bytes, offset: int = 0,
                  max_bytes: int = DEFAULT_MAX_BYTES) -> Tuple[int, int]:
    """Decode a varint from a buffer.

    Returns:
        (value, bytes consumed)
    """
    pos = offset

    def next_byte() -> int:
        nonlocal pos
        if pos >= len(buf):
            raise TruncatedData("Buffer ended inside a variable-length integer", offset=pos)
        b = buf[pos]
        pos += 1
        return b

    value = read_varint(next_byte, max_bytes)
    return value, pos - offset
