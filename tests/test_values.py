"""Tests for setting value parsing and typed reads."""

from __future__ import annotations

import pytest

from pidpro.schema import ColumnType
from pidpro.values import (
	SettingValue,
	is_valid_for,
	parse_boolean,
	parse_integer,
	parse_real,
	parse_value,
	to_storage,
)


class TestParsing:
	@pytest.mark.parametrize("text,expected", [("42", 42), ("-7", -7), ("+3", 3), ("0", 0)])
	def test_integer_accepts(self, text: str, expected: int) -> None:
		assert parse_integer(text) == expected

	@pytest.mark.parametrize("text", ["4.2", " 42", "42 ", "abc", "", "1_000", "9223372036854775808"])
	def test_integer_rejects(self, text: str) -> None:
		with pytest.raises(ValueError):
			parse_integer(text)

	def test_integer_int64_bounds(self) -> None:
		assert parse_integer("9223372036854775807") == 2**63 - 1
		assert parse_integer("-9223372036854775808") == -(2**63)

	@pytest.mark.parametrize("text,expected", [("65.0", 65.0), ("1e3", 1000.0), ("-2", -2.0), (".5", 0.5)])
	def test_real_accepts(self, text: str, expected: float) -> None:
		assert parse_real(text) == expected

	@pytest.mark.parametrize("text", ["abc", " 1.0", "1_0", "", "nan", "NaN", "inf", "-inf", "Infinity", "1e400"])
	def test_real_rejects(self, text: str) -> None:
		with pytest.raises(ValueError):
			parse_real(text)

	@pytest.mark.parametrize("text", ["1", "true", "TRUE", "True"])
	def test_boolean_true_tokens(self, text: str) -> None:
		assert parse_boolean(text) is True

	@pytest.mark.parametrize("text", ["0", "false", "FALSE"])
	def test_boolean_false_tokens(self, text: str) -> None:
		assert parse_boolean(text) is False

	@pytest.mark.parametrize("text", ["yes", "no", "2", "", "on"])
	def test_boolean_rejects(self, text: str) -> None:
		with pytest.raises(ValueError):
			parse_boolean(text)

	def test_text_accepts_anything(self) -> None:
		assert parse_value(ColumnType.TEXT, "  any thing ") == "  any thing "

	def test_boolean_stored_as_int(self) -> None:
		assert to_storage(ColumnType.BOOLEAN, True) == 1
		assert to_storage(ColumnType.BOOLEAN, False) == 0
		assert to_storage(ColumnType.INTEGER, 5) == 5


class TestIsValidFor:
	def test_text_accepts_null(self) -> None:
		assert is_valid_for(ColumnType.TEXT, None)

	def test_null_invalid_for_typed_columns(self) -> None:
		for col_type in (ColumnType.INTEGER, ColumnType.REAL, ColumnType.BOOLEAN):
			assert not is_valid_for(col_type, None)

	def test_stored_numbers(self) -> None:
		assert is_valid_for(ColumnType.INTEGER, 42)
		assert is_valid_for(ColumnType.INTEGER, "42")
		assert not is_valid_for(ColumnType.INTEGER, "abc")
		assert not is_valid_for(ColumnType.INTEGER, 4.5)
		assert is_valid_for(ColumnType.REAL, 65)
		assert is_valid_for(ColumnType.BOOLEAN, 1)
		assert not is_valid_for(ColumnType.BOOLEAN, 7)

	def test_non_finite_reals_invalid(self) -> None:
		assert not is_valid_for(ColumnType.REAL, "nan")
		assert not is_valid_for(ColumnType.REAL, float("inf"))
		assert not is_valid_for(ColumnType.REAL, "-inf")


class TestSettingValue:
	def test_boolean_column_reads_bool(self) -> None:
		value = SettingValue.from_raw(ColumnType.BOOLEAN, 1)
		assert value == SettingValue(ColumnType.BOOLEAN, True)
		assert str(value) == "true"
		assert str(SettingValue.from_raw(ColumnType.BOOLEAN, 0)) == "false"

	def test_integer_from_text_storage(self) -> None:
		assert SettingValue.from_raw(ColumnType.INTEGER, "42") == SettingValue(ColumnType.INTEGER, 42)

	def test_unreadable_value_comes_back_as_text(self) -> None:
		assert SettingValue.from_raw(ColumnType.INTEGER, "abc") == SettingValue(ColumnType.TEXT, "abc")

	def test_real_from_integer_storage(self) -> None:
		value = SettingValue.from_raw(ColumnType.REAL, 65)
		assert value.value == 65.0
		assert isinstance(value.value, float)
		assert str(value) == "65.0"

	def test_text_null_is_empty(self) -> None:
		assert SettingValue.from_raw(ColumnType.TEXT, None).value == ""

	def test_stored_infinity_comes_back_as_text(self) -> None:
		assert SettingValue.from_raw(ColumnType.REAL, float("inf")) == SettingValue(ColumnType.TEXT, "inf")

	def test_integer_str(self) -> None:
		assert str(SettingValue(ColumnType.INTEGER, 15)) == "15"
