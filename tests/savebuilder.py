"""Byte-level builders for savegame fixtures.

Tests assemble chunk streams from these helpers instead of checked-in
binaries, so every fixture shows exactly which bytes it contains.
"""

import struct

from ottsave.codec.varint import encode_varint as varint
from ottsave.storage.compression import MAGIC_TO_COMPRESSION, compress_payload

SENTINEL = b"\x00\x00\x00\x00"


def u8(v): return struct.pack(">B", v)
def i8(v): return struct.pack(">b", v)
def u16(v): return struct.pack(">H", v)
def i16(v): return struct.pack(">h", v)
def u32(v): return struct.pack(">I", v)
def i32(v): return struct.pack(">i", v)
def i64(v): return struct.pack(">q", v)


def string(text, encoding="utf-8"):
    raw = text.encode(encoding) if isinstance(text, str) else bytes(text)
    return varint(len(raw)) + raw


def header(magic=b"OTTN", major=1, minor=0):
    return magic + u16(major) + u16(minor)


def raw_chunk(tag, body, declared=None):
    """RAW chunk; ``declared`` overrides the length written before the body."""
    size = len(body) if declared is None else declared
    selector = ((size >> 24) & 0x0F) << 4
    return tag + u8(selector) + struct.pack(">I", size & 0xFFFFFF)[1:] + body


def counted_body(records, count=None):
    records = list(records)
    n = len(records) if count is None else count
    return varint(n) + b"".join(records)


def fixed_array_chunk(tag, records, count=None):
    body = counted_body(records, count)
    return tag + u8(1) + varint(len(body)) + body


def sparse_entries(entries):
    """``entries`` is a list of (index, record bytes) in file order."""
    out = b""
    for index, record in entries:
        out += varint(index + 1) + varint(len(record)) + record
    return out + varint(0)


def sparse_array_chunk(tag, entries):
    return tag + u8(2) + sparse_entries(entries)


def field(type_byte, name, sub=None):
    """One table-header field; ``sub`` is the nested field list bytes."""
    out = u8(type_byte) + string(name)
    if sub is not None:
        out += sub
    return out


def field_list(*fields):
    return b"".join(fields) + b"\x00"


def table_chunk(tag, header_bytes, records, count=None):
    body = counted_body(records, count)
    return tag + u8(3) + header_bytes + varint(len(body)) + body


def sparse_table_chunk(tag, header_bytes, entries):
    return tag + u8(4) + header_bytes + sparse_entries(entries)


def savegame(*chunks, magic=b"OTTN", version=(1, 0), sentinel=True):
    """Header plus the (compressed, per ``magic``) chunk stream."""
    stream = b"".join(chunks) + (SENTINEL if sentinel else b"")
    compression = MAGIC_TO_COMPRESSION[magic]
    return header(magic, *version) + compress_payload(compression, stream)


# ---- records for the built-in legacy (1.x) schemas ----

def maps_record(dim_x, dim_y):
    return u32(dim_x) + u32(dim_y)


def date_record(date, date_fract=0, tick_counter=0):
    return i32(date) + u16(date_fract) + u16(tick_counter)


def price_record(price, fraction):
    return i32(price) + i16(fraction)


def city_record(xy, townnametype, townnameparts, population, ratings):
    return (u32(xy) + u16(townnametype) + u32(townnameparts) + u32(population)
            + b"".join(i16(r) for r in ratings))


def company_record(name, president, face=0, money=0, loan=0, year=1950, hq=0):
    return (string(name) + string(president) + u32(face) + i32(money)
            + i32(loan) + i32(year) + u32(hq))


def tile_types_record(tiles):
    return varint(len(tiles)) + bytes(tiles)
