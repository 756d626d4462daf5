"""End-to-end tests for load_savegame and DecodedSavegame."""

import dataclasses
import datetime
import io
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from ottsave import DecodedSavegame, LoadOptions, load_savegame
from ottsave.exceptions import (
    CorruptData, ResourceLimitExceeded, SchemaMismatch, TruncatedData, UnsupportedFormat,
)
from ottsave.storage import Compression

import savebuilder as sb

# 1 January 1920, counted in days from 1 January of year 0
JAN_1_1920 = 701265


def full_save_chunks():
    goal_header = sb.field_list(sb.field(6, "id"), sb.field(10, "text"), sb.field(0x12, "flags"))
    return [
        sb.raw_chunk(b"MAPS", sb.maps_record(256, 128)),
        sb.raw_chunk(b"DATE", sb.date_record(JAN_1_1920, date_fract=12, tick_counter=300)),
        sb.fixed_array_chunk(b"PRIC", [sb.price_record(1000, 5), sb.price_record(-40, -1),
                                       sb.price_record(65000, 300)]),
        sb.fixed_array_chunk(b"CITY", [
            sb.city_record(0x1234, 0x20C1, 77, 1800, [i - 7 for i in range(15)]),
            sb.city_record(0x2222, 0x20C1, 78, 450, [0] * 15),
        ]),
        sb.sparse_array_chunk(b"PLYR", [
            (4, sb.company_record("Tarnwick Transport", "J. Smith", money=250000, loan=100000)),
            (0, sb.company_record("Unnamed", "A. Jones", money=-5000, year=1921)),
        ]),
        sb.table_chunk(b"GOAL", goal_header, [
            sb.u32(1) + sb.string("Connect two towns") + sb.varint(2) + sb.u8(1) + sb.u8(0),
        ]),
        sb.raw_chunk(b"MAPT", sb.tile_types_record([0, 1, 1, 2, 9])),
    ]


@pytest.fixture
def full_save():
    return sb.savegame(*full_save_chunks())


class TestScenarios:
    def test_empty_legacy_save(self):
        save = load_savegame(sb.header(b"OTTD", 1, 0) + sb.SENTINEL)
        assert isinstance(save, DecodedSavegame)
        assert save.version == (1, 0)
        assert save.header.compression is Compression.NONE
        assert save.tags == ()
        assert save.map_size is None
        assert save.date is None

    def test_raw_chunk_declares_more_than_follows(self):
        data = sb.header() + sb.raw_chunk(b"MAPS", b"\x00" * 5, declared=10)
        with pytest.raises(TruncatedData) as info:
            load_savegame(data)
        assert info.value.tag == "MAPS"
        assert info.value.offset == 16
        assert "chunk 'MAPS'" in str(info.value)
        assert "offset 16" in str(info.value)

    def test_raw_chunk_longer_than_schema(self):
        data = sb.savegame(sb.raw_chunk(b"MAPS", sb.maps_record(8, 8) + b"\x00\x00"))
        with pytest.raises(SchemaMismatch):
            load_savegame(data)

    def test_raw_chunk_shorter_than_schema(self):
        data = sb.savegame(sb.raw_chunk(b"MAPS", sb.maps_record(8, 8)[:6]))
        with pytest.raises(SchemaMismatch):
            load_savegame(data)

    def test_unknown_magic(self):
        with pytest.raises(UnsupportedFormat):
            load_savegame(b"RIFF\x00\x01\x00\x00" + sb.SENTINEL)

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            load_savegame(b"OTT")


class TestTruncation:
    def test_every_offset_fails_with_truncated_data(self, full_save):
        for cut in range(len(full_save)):
            with pytest.raises(TruncatedData):
                load_savegame(full_save[:cut])

    def test_complete_file_loads(self, full_save):
        assert len(load_savegame(full_save).tags) == 7


class TestDecodedSavegame:
    def test_well_known_scalars(self, full_save):
        save = load_savegame(full_save)
        assert save.schema_set == "legacy"
        assert save.map_size == (256, 128)
        assert save.date == JAN_1_1920
        assert save.calendar_date == datetime.date(1920, 1, 1)
        assert save.scalar("DATE", "tick_counter") == 300
        assert save.scalar("DATE", "missing", default=-1) == -1
        assert save.scalar("PRIC", "price") is None

    def test_calendar_date_before_year_one(self):
        save = load_savegame(sb.savegame(sb.raw_chunk(b"DATE", sb.date_record(100))))
        assert save.date == 100
        assert save.calendar_date is None

    def test_fixed_size_records_with_inline_array(self, full_save):
        towns = load_savegame(full_save).chunk("CITY")
        assert len(towns) == 2
        assert towns[0]["population"] == 1800
        assert towns[0]["ratings"] == [i - 7 for i in range(15)]
        assert towns[1]["townnameparts"] == 78

    def test_sparse_companies(self, full_save):
        companies = load_savegame(full_save).chunk("PLYR")
        assert companies.indices == (0, 4)
        assert companies[4]["name"] == "Tarnwick Transport"
        assert companies[0]["money"] == -5000

    def test_table_chunk(self, full_save):
        goal = load_savegame(full_save).chunk("GOAL")[0]
        assert goal.as_dict() == {"id": 1, "text": "Connect two towns", "flags": [1, 0]}

    def test_columns(self, full_save):
        save = load_savegame(full_save)
        prices = save.column("PRIC", "price")
        assert isinstance(prices, np.ndarray)
        assert prices.tolist() == [1000, -40, 65000]
        assert save.column("PLYR", "money").tolist() == [-5000, 250000]

    def test_records_flattens_every_shape(self, full_save):
        save = load_savegame(full_save)
        assert len(save.records("MAPS")) == 1
        assert len(save.records("PRIC")) == 3
        assert len(save.records("PLYR")) == 2

    def test_missing_chunk(self, full_save):
        save = load_savegame(full_save)
        assert "VEHS" not in save
        with pytest.raises(KeyError):
            save.chunk("VEHS")

    def test_result_is_immutable(self, full_save):
        save = load_savegame(full_save)
        with pytest.raises(TypeError):
            save.chunks["MAPS"] = None
        with pytest.raises(dataclasses.FrozenInstanceError):
            save.skipped = ()


class TestSources:
    def test_path(self, full_save, tmp_path):
        path = tmp_path / "game.sav"
        path.write_bytes(full_save)
        assert load_savegame(path).map_size == (256, 128)
        assert load_savegame(str(path)).map_size == (256, 128)

    def test_file_object_left_open(self, full_save):
        f = io.BytesIO(full_save)
        load_savegame(f)
        assert not f.closed

    def test_bytearray(self, full_save):
        assert load_savegame(bytearray(full_save)).map_size == (256, 128)

    def test_missing_path(self, tmp_path):
        with pytest.raises(OSError):
            load_savegame(tmp_path / "nope.sav")


class TestLimits:
    def test_record_count_ceiling(self, full_save):
        with pytest.raises(ResourceLimitExceeded) as info:
            load_savegame(full_save, LoadOptions(max_record_count=2))
        assert info.value.tag == "PRIC"

    def test_varint_length_limit(self):
        data = sb.savegame(b"PRIC" + sb.u8(1) + b"\x80\x80\x80\x01")
        with pytest.raises(CorruptData) as info:
            load_savegame(data, LoadOptions(max_varint_bytes=3))
        assert info.value.tag == "PRIC"

    @pytest.mark.parametrize("name", ["max_decompressed_bytes", "max_record_count",
                                      "max_varint_bytes", "feed_size"])
    def test_options_must_be_positive(self, name):
        with pytest.raises(ValueError):
            LoadOptions(**{name: 0})


class TestConcurrentLoads:
    def test_parallel_loads_agree(self):
        chunks = full_save_chunks()
        data = sb.savegame(*chunks, magic=b"OTTZ")
        with ThreadPoolExecutor(max_workers=4) as pool:
            saves = list(pool.map(load_savegame, [data] * 8))
        first = saves[0]
        assert all(dict(s.chunks) == dict(first.chunks) for s in saves)
        assert first.map_size == (256, 128)
