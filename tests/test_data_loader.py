"""
Test Suite for Data Loader Module
=================================

Tests for delimiter detection, header normalization, cell typing, parsing,
the cleaning pass and feature detection.
"""

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vehicle_analytics.data_loader import (
    clean_records,
    detect_delimiter,
    detect_features,
    load_config,
    load_text,
    normalize_header,
    parse_cell,
    parse_records,
)
from vehicle_analytics.errors import InsufficientDataError, NoValidRecordsError
from vehicle_analytics.records import VehicleRecord

CURRENT_YEAR = 2025


class TestDetectDelimiter:
    """Tests for delimiter detection."""

    @pytest.mark.parametrize("header, expected", [
        ("brand,model,price", ","),
        ("brand;model;price", ";"),
        ("brand\tmodel\tprice", "\t"),
        ("brand|model|price", "|"),
    ])
    def test_picks_most_splitting_delimiter(self, header, expected):
        assert detect_delimiter(header) == expected

    def test_tie_keeps_comma(self):
        """A single-column header splits equally for all; comma wins."""
        assert detect_delimiter("price") == ","

    def test_majority_wins_over_earlier_candidate(self):
        assert detect_delimiter("a,b;c;d;e") == ";"


class TestNormalizeHeader:
    """Tests for header synonym mapping."""

    @pytest.mark.parametrize("raw, expected", [
        ("Make", "brand"),
        ("manufacturer", "brand"),
        ("  Model_Year ", "year"),
        ("selling_price", "price"),
        ("Odometer", "mileage"),
        ("fuel_type", "fuelType"),
        ("fuelType", "fuelType"),
        ("engine_capacity", "engineSize"),
        ("engineSize", "engineSize"),
        ("quality", "condition"),
        ("area", "region"),
        ("gear", "transmission"),
    ])
    def test_synonyms(self, raw, expected):
        assert normalize_header(raw) == expected

    def test_unmapped_headers_are_stripped(self):
        assert normalize_header("Body-Type") == "bodytype"
        assert normalize_header("Seats (#)") == "seats"


class TestParseCell:
    """Tests for cell typing."""

    def test_quoted_number(self):
        assert parse_cell('"500"') == 500

    def test_float(self):
        value = parse_cell(" 2.5 ")
        assert value == 2.5
        assert isinstance(value, float)

    def test_integer_stays_int(self):
        assert isinstance(parse_cell("2020"), int)

    def test_exponent(self):
        assert parse_cell("1e3") == 1000.0

    @pytest.mark.parametrize("raw", ["\u0663\u0660\u0660\u0660\u0660", "\uff13\uff10\uff10", "1.\u0665"])
    def test_non_ascii_digits_stay_strings(self, raw):
        assert parse_cell(raw) == raw

    @pytest.mark.parametrize("raw", ["", "   ", "null", "NULL", "na", "NA", '""'])
    def test_missing_tokens(self, raw):
        assert parse_cell(raw) is None

    @pytest.mark.parametrize("raw, expected", [
        ("'Toyota'", "Toyota"),
        ("12abc", "12abc"),
        ("inf", "inf"),
        ("1_000", "1_000"),
        ("1e400", "1e400"),
    ])
    def test_non_numeric_stays_string(self, raw, expected):
        assert parse_cell(raw) == expected


class TestParseRecords:
    """Tests for parse_records."""

    @pytest.fixture
    def text(self):
        return (
            "Make,Price,Mileage,Color,Trim\n"
            "toyota,25000,30000,red,LX\n"
            "broken,row\n"
            "\n"
            "honda,30000,,blue,EX\r\n"
        )

    def test_ids_follow_non_blank_line_index(self, text):
        records = parse_records(text)
        assert [r.id for r in records] == ["vehicle_1", "vehicle_3"]

    def test_shape_mismatch_is_dropped_silently(self, text):
        records = parse_records(text)
        assert all(r.brand != "broken" for r in records)

    def test_typed_values_and_extras(self, text):
        first, second = parse_records(text)
        assert first.brand == "toyota"
        assert first.price == 25000
        assert first.mileage == 30000
        assert first.color == "red"
        assert first.extras == {"trim": "LX"}
        assert second.mileage is None
        assert second.get("trim") == "EX"

    def test_semicolon_file(self):
        records = parse_records("price;year\n1000;2015\n2000;2016")
        assert [r.year for r in records] == [2015, 2016]

    def test_all_blank_row_yields_no_record(self):
        records = parse_records("price,brand\n,\n500,kia")
        assert [r.id for r in records] == ["vehicle_2"]

    def test_id_column_does_not_replace_generated_id(self):
        (record,) = parse_records("ID,price\n7,500")

        assert record.id == "vehicle_1"
        assert record.as_dict()["id"] == "vehicle_1"
        assert record.extras == {"id": 7}

    @pytest.mark.parametrize("text", ["", "price", "price\n\n   \n"])
    def test_insufficient_data(self, text):
        with pytest.raises(InsufficientDataError, match="insufficient data"):
            parse_records(text)


class TestCleanRecords:
    """Tests for the cleaning pass."""

    def _clean(self, **fields):
        return clean_records([VehicleRecord(id="vehicle_1", **fields)], CURRENT_YEAR)

    def test_price_below_floor_drops_record(self):
        with pytest.raises(NoValidRecordsError):
            self._clean(price=50)

    def test_price_above_ceiling_drops_record(self):
        with pytest.raises(NoValidRecordsError):
            self._clean(price=10_000_001)

    def test_price_bounds_inclusive(self):
        assert self._clean(price=100)[0].price == 100
        assert self._clean(price=10_000_000)[0].price == 10_000_000

    def test_negative_price_made_positive(self):
        assert self._clean(price=-15000)[0].price == 15000

    def test_string_price_drops_record(self):
        with pytest.raises(NoValidRecordsError):
            self._clean(price="cheap")

    def test_year_range(self):
        assert self._clean(price=1000, year=1899)[0].year is None
        assert self._clean(price=1000, year=1900)[0].year == 1900
        assert self._clean(price=1000, year=CURRENT_YEAR + 1)[0].year == CURRENT_YEAR + 1
        assert self._clean(price=1000, year=CURRENT_YEAR + 2)[0].year is None

    def test_mileage_abs_and_ceiling(self):
        assert self._clean(price=1000, mileage=-5000)[0].mileage == 5000
        assert self._clean(price=1000, mileage=1_000_000)[0].mileage == 1_000_000
        assert self._clean(price=1000, mileage=1_000_001)[0].mileage is None

    def test_engine_size_range(self):
        assert self._clean(price=1000, engine_size=0)[0].engine_size == 0
        assert self._clean(price=1000, engine_size=-1)[0].engine_size is None
        assert self._clean(price=1000, engine_size=20.5)[0].engine_size is None

    @pytest.mark.parametrize("raw, expected", [
        ("BMW", "Bmw"),
        ("  toyota ", "Toyota"),
        ("land rover", "Land Rover"),
        ("mercedes-benz", "Mercedes-Benz"),
    ])
    def test_brand_title_case(self, raw, expected):
        assert self._clean(price=1000, brand=raw)[0].brand == expected

    def test_other_fields_untouched(self):
        record = self._clean(price=1000, condition="Good", extras={"trim": "LX"})[0]
        assert record.condition == "Good"
        assert record.extras == {"trim": "LX"}

    def test_filters_unpriced_records(self):
        records = [
            VehicleRecord(id="vehicle_1", price=500),
            VehicleRecord(id="vehicle_2", brand="kia"),
            VehicleRecord(id="vehicle_3", price=50),
        ]
        cleaned = clean_records(records, CURRENT_YEAR)
        assert [r.id for r in cleaned] == ["vehicle_1"]


class TestDetectFeatures:
    """Tests for feature detection."""

    def test_numeric_and_categorical(self):
        records = parse_records(
            "brand,price,year,doors\n"
            "kia,1000,2015,4\n"
            "ford,2000,2016,two\n"
        )
        report = detect_features(records)

        assert report.numeric_features == ("year", "price")
        assert report.categorical_features == ("brand", "doors")
        assert report.has_price and report.has_year and report.has_brand
        assert not report.has_mileage
        assert not report.has_region

    def test_sample_size_limits_inspection(self):
        records = parse_records("price,doors\n1000,4\n2000,two\n")
        report = detect_features(records, sample_size=1)
        assert "doors" in report.numeric_features

    def test_empty_input(self):
        report = detect_features([])
        assert report.numeric_features == ()
        assert not report.has_price


class TestFileLoading:
    """Tests for config and text loading."""

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("model:\n  learning_rate: 0.01\n  iterations: 10\n")
        config = load_config(str(path))
        assert config["model"]["iterations"] == 10

    def test_load_empty_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_load_text_strips_bom(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("\ufeffprice\n500\n", encoding="utf-8")
        assert load_text(str(path)) == "price\n500\n"

    def test_missing_text(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Data file not found"):
            load_text(str(tmp_path / "missing.csv"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
