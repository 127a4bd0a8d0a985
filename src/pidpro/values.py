"""Typed setting values and the parsing rules shared by the accessor and migrations."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Union

from pidpro.schema import ColumnType

RawValue = Union[int, float, str, bytes, None]
PyValue = Union[int, float, str, bool]

BOOLEAN_TRUE = frozenset({"1", "true"})
BOOLEAN_FALSE = frozenset({"0", "false"})

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")


def parse_integer(text: str) -> int:
	"""Parse a signed 64-bit integer. Raises ValueError on anything else."""
	if not _INTEGER_RE.match(text):
		raise ValueError(f"not an integer: {text!r}")
	value = int(text)
	if not INT64_MIN <= value <= INT64_MAX:
		raise ValueError(f"integer out of range: {text!r}")
	return value


def parse_real(text: str) -> float:
	"""Parse a finite float. Surrounding whitespace and digit separators are rejected.

	NaN and infinities are rejected too: SQLite stores NaN as NULL, and JSON
	has no representation for either.
	"""
	if not text or text != text.strip() or "_" in text:
		raise ValueError(f"not a real number: {text!r}")
	value = float(text)
	if not math.isfinite(value):
		raise ValueError(f"not a finite real number: {text!r}")
	return value


def parse_boolean(text: str) -> bool:
	"""Parse one of 0/1/true/false, case-insensitive."""
	lowered = text.lower()
	if lowered in BOOLEAN_TRUE:
		return True
	if lowered in BOOLEAN_FALSE:
		return False
	raise ValueError(f"not a boolean (true/false/1/0): {text!r}")


def parse_value(col_type: ColumnType, text: str) -> PyValue:
	"""Parse user input for a column of ``col_type``. TEXT accepts anything."""
	if col_type is ColumnType.INTEGER:
		return parse_integer(text)
	if col_type is ColumnType.REAL:
		return parse_real(text)
	if col_type is ColumnType.BOOLEAN:
		return parse_boolean(text)
	return text


def to_storage(col_type: ColumnType, value: PyValue) -> int | float | str:
	"""Convert a parsed value to what gets bound into the UPDATE statement."""
	if col_type is ColumnType.BOOLEAN:
		return 1 if value else 0
	return value  # type: ignore[return-value]


def raw_to_text(raw: RawValue) -> str | None:
	"""Render a stored value as text, the form type checks are made against."""
	if raw is None:
		return None
	if isinstance(raw, bytes):
		return raw.decode("utf-8", errors="replace")
	if isinstance(raw, float):
		return repr(raw)
	return str(raw)


def is_valid_for(col_type: ColumnType, raw: RawValue) -> bool:
	"""Whether a stored value can be read as ``col_type``.

	TEXT accepts any value, NULL included. NULL is invalid for every other type.
	"""
	if col_type is ColumnType.TEXT:
		return True
	text = raw_to_text(raw)
	if text is None:
		return False
	try:
		parse_value(col_type, text)
	except ValueError:
		return False
	return True


def expected_description(col_type: ColumnType) -> str:
	return {
		ColumnType.INTEGER: "integer value",
		ColumnType.REAL: "real/float value",
		ColumnType.BOOLEAN: "boolean value (true/false/1/0)",
		ColumnType.TEXT: "text value",
	}[col_type]


@dataclass(frozen=True)
class SettingValue:
	"""A setting read from the store, tagged with the type it was read as."""

	type: ColumnType
	value: PyValue

	@classmethod
	def from_raw(cls, col_type: ColumnType, raw: RawValue) -> SettingValue:
		"""Build a value guided by the declared type rather than SQLite's storage class.

		Values that cannot be read as the declared type come back as TEXT.
		"""
		if col_type is ColumnType.TEXT:
			return cls(ColumnType.TEXT, raw_to_text(raw) or "")
		if col_type is ColumnType.INTEGER and isinstance(raw, int):
			return cls(ColumnType.INTEGER, raw)
		if col_type is ColumnType.REAL and isinstance(raw, (int, float)) and math.isfinite(raw):
			return cls(ColumnType.REAL, float(raw))
		text = raw_to_text(raw)
		if text is None:
			return cls(ColumnType.TEXT, "")
		try:
			return cls(col_type, parse_value(col_type, text))
		except ValueError:
			return cls(ColumnType.TEXT, text)

	def __str__(self) -> str:
		if self.type is ColumnType.BOOLEAN:
			return "true" if self.value else "false"
		if self.type is ColumnType.REAL:
			return repr(float(self.value))
		return str(self.value)
