"""
Test Value Coercion and Type Inference

Unit tests for lenient value parsing, half-up rounding and
sample-based column typing.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from config import AnalysisSettings, Settings
from core.dataset import ColumnType
from core.type_inference import ColumnTypeInferencer
from core.values import is_boolean_token, parse_date, parse_number, round_half_up


@pytest.fixture
def inferencer(settings):
    return ColumnTypeInferencer(settings)


class TestParseNumber:
    def test_numeric_strings(self):
        assert parse_number("42") == 42.0
        assert parse_number("  3.5 ") == 3.5
        assert parse_number("-1e3") == -1000.0

    def test_native_numbers(self):
        assert parse_number(7) == 7.0
        assert parse_number(0) == 0.0

    def test_rejects_non_numbers(self):
        assert parse_number(None) is None
        assert parse_number("") is None
        assert parse_number("abc") is None
        assert parse_number([1]) is None

    def test_booleans_are_not_numbers(self):
        assert parse_number(True) is None
        assert parse_number(False) is None

    def test_rejects_nan_and_infinity(self):
        assert parse_number("nan") is None
        assert parse_number("Infinity") is None
        assert parse_number(float("inf")) is None

    def test_rejects_separators_and_non_ascii_digits(self):
        assert parse_number("1_000") is None
        assert parse_number("1,000") is None
        assert parse_number("\u0661\u0662") is None
        assert parse_number("0x1F") is None

    def test_plain_decimal_forms(self):
        assert parse_number(".5") == 0.5
        assert parse_number("5.") == 5.0
        assert parse_number("+2E2") == 200.0


class TestParseDate:
    def test_iso_date(self):
        assert parse_date("2024-01-15") == datetime(2024, 1, 15)

    def test_common_formats(self):
        assert parse_date("01/15/2024") == datetime(2024, 1, 15)
        assert parse_date("2024/01/15") == datetime(2024, 1, 15)
        assert parse_date("Jan 15, 2024") == datetime(2024, 1, 15)
        assert parse_date("15 January 2024") == datetime(2024, 1, 15)

    def test_date_objects(self):
        assert parse_date(date(2024, 1, 15)) == datetime(2024, 1, 15)
        assert parse_date(datetime(2024, 1, 15, 8, 30)) == datetime(2024, 1, 15, 8, 30)

    def test_aware_values_convert_to_zone(self):
        parsed = parse_date("2024-01-15T10:00:00Z", ZoneInfo("America/New_York"))
        assert parsed == datetime(2024, 1, 15, 5, 0)
        assert parsed.tzinfo is None

    def test_naive_values_are_wall_clock(self):
        parsed = parse_date("2024-01-15T10:00:00", ZoneInfo("Asia/Tokyo"))
        assert parsed == datetime(2024, 1, 15, 10, 0)

    def test_numbers_and_booleans_are_not_dates(self):
        assert parse_date(20240115) is None
        assert parse_date(True) is None

    def test_unparsable(self):
        assert parse_date("someday") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestBooleanTokens:
    @pytest.mark.parametrize("value", ["true", "FALSE", " yes ", "No", "1", "0", True])
    def test_tokens(self, value):
        assert is_boolean_token(value)

    @pytest.mark.parametrize("value", ["y", "2", None, "maybe"])
    def test_non_tokens(self, value):
        assert not is_boolean_token(value)


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(0.125) == 0.13
        assert round_half_up(2.675) == 2.68

    def test_sum_then_round(self):
        assert round_half_up(10.005 + 10.005) == 20.01

    def test_places(self):
        assert round_half_up(337.5, 0) == 338.0
        assert round_half_up(0.12345, 4) == 0.1235

    def test_no_negative_zero(self):
        result = round_half_up(-0.001)
        assert result == 0.0
        assert str(result) == "0.0"


class TestColumnTypeInferencer:
    def test_empty_sample_is_string(self, inferencer):
        assert inferencer.infer([], "x") == ColumnType.STRING
        assert inferencer.infer([{"x": None}], "x") == ColumnType.STRING

    def test_numeric_just_above_ratio(self, inferencer):
        rows = [{"x": f"{i}.5"} for i in range(81)] + [{"x": "n/a"} for _ in range(19)]
        assert inferencer.infer(rows, "x") == ColumnType.NUMBER

    def test_numeric_exactly_at_ratio_is_not_number(self, inferencer):
        rows = [{"x": f"{i}.5"} for i in range(80)] + [{"x": "n/a"} for _ in range(20)]
        assert inferencer.infer(rows, "x") == ColumnType.STRING

    def test_dates(self, inferencer):
        rows = [{"d": f"2024-01-{day:02d}"} for day in range(1, 29)]
        assert inferencer.infer(rows, "d") == ColumnType.DATE

    def test_year_only_column_is_number(self, inferencer):
        rows = [{"year": str(2000 + i)} for i in range(10)]
        assert inferencer.infer(rows, "year") == ColumnType.NUMBER

    def test_booleans(self, inferencer):
        rows = [{"flag": v} for v in ["yes", "no", "Yes", "true", "false"]]
        assert inferencer.infer(rows, "flag") == ColumnType.BOOLEAN

    def test_zero_one_tokens_are_numbers(self, inferencer):
        rows = [{"flag": v} for v in ["1", "0", "1", "1", "0"]]
        assert inferencer.infer(rows, "flag") == ColumnType.NUMBER

    def test_nulls_are_ignored(self, inferencer):
        rows = [{"x": "1"}, {"x": None}, {}, {"x": "2"}]
        assert inferencer.infer(rows, "x") == ColumnType.NUMBER
        assert inferencer.is_nullable(rows, "x")

    def test_sample_size_is_configurable(self):
        settings = Settings(analysis=AnalysisSettings(inference_sample_size=3))
        inferencer = ColumnTypeInferencer(settings)
        rows = [{"x": "1"}] * 3 + [{"x": "text"}] * 10
        assert inferencer.infer(inferencer.sample(rows), "x") == ColumnType.NUMBER
