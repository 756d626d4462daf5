"""Tests for field descriptors, schemas and the version matrix."""

import numpy as np
import pytest

from ottsave import load_savegame
from ottsave.exceptions import UnsupportedVersion
from ottsave.schema import (
    DEFAULT_MATRIX, FieldDescriptor, FieldKind, Schema, SchemaSet,
    VersionCompatibilityMatrix, VersionRange,
)

import savebuilder as sb


class TestFieldDescriptor:
    def test_list_kind_is_array(self):
        fd = FieldDescriptor("items", FieldKind.LIST, fields=(FieldDescriptor("a", FieldKind.UINT8),))
        assert fd.is_array
        assert fd.type_byte == 12

    def test_fixed_length_implies_array(self):
        fd = FieldDescriptor("ratings", FieldKind.INT16, length=15)
        assert fd.is_array
        assert fd.fixed_size == 30

    def test_counted_array_has_no_fixed_size(self):
        fd = FieldDescriptor("tiles", FieldKind.UINT8, is_array=True)
        assert fd.fixed_size is None
        assert fd.type_byte == 0x12

    def test_composite_needs_sub_fields(self):
        with pytest.raises(ValueError):
            FieldDescriptor("pos", FieldKind.NESTED)

    def test_scalar_cannot_have_sub_fields(self):
        with pytest.raises(ValueError):
            FieldDescriptor("x", FieldKind.INT32, fields=(FieldDescriptor("y", FieldKind.INT8),))

    def test_kind_from_int(self):
        assert FieldDescriptor("x", 5).kind is FieldKind.INT32

    def test_widths(self):
        assert FieldKind.INT64.width == 8
        assert FieldKind.STRING_ID.width == 2
        assert FieldKind.STRING.width is None
        assert not FieldKind.NESTED.is_numeric


class TestSchema:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            Schema.of(("a", FieldKind.INT8), ("a", FieldKind.INT16))

    def test_fixed_size_and_dtype(self):
        schema = Schema.of(("price", FieldKind.INT32), ("fraction", FieldKind.INT16))
        assert schema.fixed_size == 6
        dtype = schema.numpy_dtype()
        assert dtype.itemsize == 6
        assert dtype["price"] == np.dtype(">i4")

    def test_variable_schema_has_no_dtype(self):
        schema = Schema.of(("name", FieldKind.STRING), ("x", FieldKind.INT8))
        assert schema.fixed_size is None
        assert schema.numpy_dtype() is None

    def test_nested_fixed_dtype(self):
        pos = FieldDescriptor("pos", FieldKind.NESTED, fields=(
            FieldDescriptor("x", FieldKind.INT16), FieldDescriptor("y", FieldKind.INT16)))
        schema = Schema((FieldDescriptor("id", FieldKind.UINT8), pos))
        assert schema.fixed_size == 5
        assert schema.numpy_dtype().itemsize == 5

    def test_derivation_helpers(self):
        base = Schema.of(("a", FieldKind.INT8), ("b", FieldKind.INT8))
        assert base.with_fields([FieldDescriptor("c", FieldKind.INT8)]).names == ("a", "b", "c")
        assert base.without("a").names == ("b",)
        assert base.replace("b", FieldDescriptor("b", FieldKind.INT64)).fixed_size == 9
        assert base.names == ("a", "b")


class TestVersionMatrix:
    @pytest.mark.parametrize("version,name", [
        ((1, 0), "legacy"),
        ((1, 65535), "legacy"),
        ((2, 0), "classic"),
        ((2, 17), "classic"),
        ((3, 4), "modern"),
    ])
    def test_resolve(self, version, name):
        assert DEFAULT_MATRIX.resolve(version).name == name

    def test_newer_version_rejected(self):
        with pytest.raises(UnsupportedVersion) as info:
            DEFAULT_MATRIX.resolve((4, 0))
        assert "newer" in str(info.value)
        assert info.value.offset == 4

    def test_older_version_rejected(self):
        with pytest.raises(UnsupportedVersion):
            DEFAULT_MATRIX.resolve((0, 9))

    def test_supports(self):
        assert DEFAULT_MATRIX.supports((2, 3))
        assert not DEFAULT_MATRIX.supports((9, 0))
        assert DEFAULT_MATRIX.newest == (3, 0xFFFF)

    def test_schema_for(self):
        assert DEFAULT_MATRIX.schema_for((1, 0), "INDY") is None
        assert DEFAULT_MATRIX.schema_for((2, 0), "INDY") is not None
        legacy_money = DEFAULT_MATRIX.schema_for((1, 0), "PLYR")
        classic_money = DEFAULT_MATRIX.schema_for((2, 0), "PLYR")
        assert legacy_money.fixed_size is None
        assert [f.kind for f in legacy_money if f.name == "money"] == [FieldKind.INT32]
        assert [f.kind for f in classic_money if f.name == "money"] == [FieldKind.INT64]

    def test_overlapping_ranges_rejected(self):
        empty = SchemaSet("empty", {})
        with pytest.raises(ValueError):
            VersionCompatibilityMatrix([
                VersionRange((1, 0), (1, 10), empty),
                VersionRange((1, 5), (2, 0), empty),
            ])

    def test_empty_range_rejected(self):
        with pytest.raises(ValueError):
            VersionRange((2, 0), (1, 0), SchemaSet("x"))

    def test_load_rejects_unsupported_version(self):
        with pytest.raises(UnsupportedVersion):
            load_savegame(sb.savegame(version=(4, 0)))

    def test_load_with_custom_matrix(self):
        custom = SchemaSet("custom", {"MAPS": Schema.of(("side", FieldKind.UINT16))})
        matrix = VersionCompatibilityMatrix([VersionRange((7, 0), (7, 3), custom)])
        data = sb.savegame(sb.raw_chunk(b"MAPS", sb.u16(64)), version=(7, 2))
        save = load_savegame(data, matrix=matrix)
        assert save.schema_set == "custom"
        assert save.chunk("MAPS")["side"] == 64
        with pytest.raises(UnsupportedVersion):
            load_savegame(data)
