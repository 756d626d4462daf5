"""Version compatibility matrix: which static schemas apply to which saves.

Format versions are ``(major, minor)`` pairs compared as tuples. Each entry
of the matrix covers a closed version range and carries the schema set for
every chunk tag that uses a schema-driven encoding (raw, fixed array, sparse
array). Table chunks describe themselves and never consult the matrix, but a
save whose version lies outside every range is rejected outright: the loader
never guesses at future formats.

Built-in ranges:

    1.0 - 1.65535   legacy   32-bit money, town names as string ids
    2.0 - 2.65535   classic  free-text town names, 64-bit money
    3.0 - 3.65535   modern   economy date, 64-bit prices, company liveries
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from ..exceptions import UnsupportedVersion
from .fields import FieldDescriptor as F
from .fields import FieldKind as K
from .fields import Schema

Version = Tuple[int, int]

MAX_COMPANIES = 15


@dataclass(frozen=True)
class SchemaSet:
    """Static schemas for one version range, keyed by chunk tag."""
    name: str
    schemas: Mapping[str, Schema] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "schemas", MappingProxyType(dict(self.schemas)))

    def get(self, tag: str) -> Optional[Schema]:
        return self.schemas.get(tag)

    def __contains__(self, tag: str) -> bool:
        return tag in self.schemas

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(self.schemas)


@dataclass(frozen=True)
class VersionRange:
    min_version: Version
    max_version: Version
    schema_set: SchemaSet

    def __post_init__(self):
        if tuple(self.min_version) > tuple(self.max_version):
            raise ValueError(f"Empty version range {self.min_version}..{self.max_version}")

    def __contains__(self, version: Version) -> bool:
        return tuple(self.min_version) <= tuple(version) <= tuple(self.max_version)


class VersionCompatibilityMatrix:
    """Ordered, non-overlapping version ranges with their schema sets.

    Built once and never mutated, so it is safe to share between threads.
    """

    def __init__(self, ranges: Iterable[VersionRange]):
        ordered = tuple(sorted(ranges, key=lambda r: tuple(r.min_version)))
        for prev, cur in zip(ordered, ordered[1:]):
            if tuple(cur.min_version) <= tuple(prev.max_version):
                raise ValueError(
                    f"Overlapping version ranges: {prev.min_version}..{prev.max_version} "
                    f"and {cur.min_version}..{cur.max_version}"
                )
        self._ranges = ordered

    @property
    def ranges(self) -> Tuple[VersionRange, ...]:
        return self._ranges

    @property
    def newest(self) -> Optional[Version]:
        return self._ranges[-1].max_version if self._ranges else None

    def supports(self, version: Version) -> bool:
        return any(version in r for r in self._ranges)

    def resolve(self, version: Version) -> SchemaSet:
        """Return the schema set covering ``version``.

        Raises:
            UnsupportedVersion: no range contains the version.
        """
        for r in self._ranges:
            if version in r:
                return r.schema_set
        major, minor = version
        if self.newest is not None and tuple(version) > tuple(self.newest):
            reason = f"newer than the newest known format {self.newest[0]}.{self.newest[1]}"
        else:
            reason = "outside every known format range"
        raise UnsupportedVersion(f"Savegame version {major}.{minor} is {reason}", offset=4)

    def schema_for(self, version: Version, tag: str) -> Optional[Schema]:
        """Static schema for a schema-driven chunk, or None if the tag is unknown."""
        return self.resolve(version).get(tag)


# ---- Built-in schema sets ----

_MAPS = Schema.of(
    ("dim_x", K.UINT32),
    ("dim_y", K.UINT32),
)

_MAPT = Schema.of(
    F("tile_types", K.UINT8, is_array=True),
)

_DATE_LEGACY = Schema.of(
    ("date", K.INT32),
    ("date_fract", K.UINT16),
    ("tick_counter", K.UINT16),
)

_DATE_CLASSIC = _DATE_LEGACY.with_fields([
    F("cur_tileloop_tile", K.UINT32),
])

_DATE_MODERN = Schema.of(
    ("date", K.INT32),
    ("date_fract", K.UINT16),
    ("tick_counter", K.UINT16),
    ("economy_date", K.INT32),
    ("cur_tileloop_tile", K.UINT32),
)

_PRIC = Schema.of(
    ("price", K.INT32),
    ("fraction", K.INT16),
)

_PRIC_MODERN = Schema.of(
    ("price", K.INT64),
    ("fraction", K.UINT16),
)

_CITY_LEGACY = Schema.of(
    ("xy", K.UINT32),
    ("townnametype", K.STRING_ID),
    ("townnameparts", K.UINT32),
    ("population", K.UINT32),
    F("ratings", K.INT16, length=MAX_COMPANIES),
)

_CITY_CLASSIC = _CITY_LEGACY.replace("townnametype", F("name", K.STRING)).without("townnameparts")

_PLYR_LEGACY = Schema.of(
    ("name", K.STRING),
    ("president_name", K.STRING),
    ("face", K.UINT32),
    ("money", K.INT32),
    ("current_loan", K.INT32),
    ("inaugurated_year", K.INT32),
    ("location_of_hq", K.UINT32),
)

_PLYR_CLASSIC = (
    _PLYR_LEGACY
    .replace("money", F("money", K.INT64))
    .replace("current_loan", F("current_loan", K.INT64))
)

_LIVERY = (
    F("in_use", K.UINT8),
    F("colour1", K.UINT8),
    F("colour2", K.UINT8),
)

_PLYR_MODERN = _PLYR_CLASSIC.with_fields([
    F("liveries", K.LIST, fields=_LIVERY),
])

_STNS = Schema.of(
    ("xy", K.UINT32),
    ("town", K.UINT16),
    ("name", K.STRING),
    ("facilities", K.UINT8),
)

_VEHS = Schema.of(
    ("type", K.UINT8),
    ("owner", K.UINT8),
    ("tile", K.UINT32),
    ("x_pos", K.INT32),
    ("y_pos", K.INT32),
    ("name", K.STRING),
    ("cargo_cap", K.UINT16),
)

_INDY = Schema.of(
    ("location", K.UINT32),
    ("type", K.UINT8),
    ("owner", K.UINT8),
    F("production_rate", K.UINT8, length=2),
)

LEGACY = SchemaSet("legacy", {
    "MAPS": _MAPS,
    "MAPT": _MAPT,
    "DATE": _DATE_LEGACY,
    "PRIC": _PRIC,
    "CITY": _CITY_LEGACY,
    "PLYR": _PLYR_LEGACY,
    "STNS": _STNS,
    "VEHS": _VEHS,
})

CLASSIC = SchemaSet("classic", {
    "MAPS": _MAPS,
    "MAPT": _MAPT,
    "DATE": _DATE_CLASSIC,
    "PRIC": _PRIC,
    "CITY": _CITY_CLASSIC,
    "PLYR": _PLYR_CLASSIC,
    "STNS": _STNS,
    "VEHS": _VEHS,
    "INDY": _INDY,
})

MODERN = SchemaSet("modern", {
    "MAPS": _MAPS,
    "MAPT": _MAPT,
    "DATE": _DATE_MODERN,
    "PRIC": _PRIC_MODERN,
    "CITY": _CITY_CLASSIC,
    "PLYR": _PLYR_MODERN,
    "STNS": _STNS,
    "VEHS": _VEHS,
    "INDY": _INDY,
})

DEFAULT_MATRIX = VersionCompatibilityMatrix([
    VersionRange((1, 0), (1, 0xFFFF), LEGACY),
    VersionRange((2, 0), (2, 0xFFFF), CLASSIC),
    VersionRange((3, 0), (3, 0xFFFF), MODERN),
])
