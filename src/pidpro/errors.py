"""Error taxonomy for the settings store."""

from __future__ import annotations


class SettingsError(Exception):
	"""Base class for every error raised by the settings store."""


class NotFoundError(SettingsError, KeyError):
	"""A setting key is not declared by any table in the composed schema."""

	def __init__(self, key: str, table: str | None = None) -> None:
		self.key = key
		self.table = table
		if table:
			message = f"Unknown setting key '{key}' in table '{table}'"
		else:
			message = f"Unknown setting key '{key}'"
		super().__init__(message)

	def __str__(self) -> str:
		# KeyError repr()s its argument; keep the plain message
		return str(self.args[0])


class InvalidValueError(SettingsError, ValueError):
	"""A supplied value does not parse as the target column's declared type."""

	def __init__(self, key: str, value: str, expected: str) -> None:
		self.key = key
		self.value = value
		self.expected = expected
		super().__init__(f"Invalid value {value!r} for '{key}': expected {expected}")


class StoreIOError(SettingsError):
	"""The backing SQLite file could not be opened, read, or written."""


class SchemaIntegrityError(SettingsError):
	"""The live store's structure is inconsistent with what the store relies on."""
