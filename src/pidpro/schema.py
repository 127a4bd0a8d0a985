"""Static schema declaration and schema composition.

This module is the single source of truth for the tables owned by the core
application. To add a setting, add a Column to the appropriate table and bump
SCHEMA_VERSION so existing stores pick it up on the next start. Controller
kinds contribute their own tables through ``controller_tables()`` (see
``pidpro.controllers``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol, Sequence

SCHEMA_VERSION = 6

# Tables with this suffix belong to controller fragments and are dropped
# once no registered controller declares them.
DYNAMIC_TABLE_SUFFIX = "_settings"

META_TABLE = "meta"
ROW_ID = 1

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(name: str) -> None:
	"""Validate a SQL identifier before it is interpolated into a statement."""
	if not name or len(name) > 64 or not _IDENTIFIER_RE.match(name):
		raise ValueError(f"Invalid SQL identifier: {name!r}")


class ColumnType(str, Enum):
	INTEGER = "INTEGER"
	REAL = "REAL"
	TEXT = "TEXT"
	BOOLEAN = "BOOLEAN"

	@classmethod
	def from_declared(cls, declared: str) -> ColumnType | None:
		"""Map a declared SQLite type (as reported by PRAGMA table_info) to a ColumnType."""
		try:
			return cls(declared.strip().upper())
		except ValueError:
			return None


@dataclass(frozen=True)
class Column:
	"""One setting: a column in a table's single row."""

	name: str
	type: ColumnType
	default: str  # SQLite literal, e.g. "'pidpro'", "15", "65.0", "0"

	def __post_init__(self) -> None:
		validate_identifier(self.name)
		if self.name.lower() == "id":
			raise ValueError("Column name 'id' is reserved for the row key")

	@property
	def definition(self) -> str:
		return f"{self.name} {self.type.value} DEFAULT {self.default}"


@dataclass(frozen=True)
class Table:
	"""A single-row settings group."""

	name: str
	columns: tuple[Column, ...]

	def __post_init__(self) -> None:
		validate_identifier(self.name)
		if self.name == META_TABLE:
			raise ValueError(f"Table name {META_TABLE!r} is reserved")
		# Accept any sequence at construction but store a tuple
		object.__setattr__(self, "columns", tuple(self.columns))

	@property
	def is_dynamic(self) -> bool:
		return self.name.endswith(DYNAMIC_TABLE_SUFFIX)

	def column(self, name: str) -> Column | None:
		for column in self.columns:
			if column.name == name:
				return column
		return None


class SchemaProvider(Protocol):
	"""Anything that contributes tables to the composed schema."""

	def controller_tables(self) -> Sequence[Table]: ...


def _col(name: str, col_type: ColumnType, default: str) -> Column:
	return Column(name=name, type=col_type, default=default)


STATIC_SCHEMA: tuple[Table, ...] = (
	Table(
		name="device_config",
		columns=(
			_col("device_name", ColumnType.TEXT, "'pidpro'"),
			_col("board", ColumnType.TEXT, "'rpi'"),
			_col("temp_units", ColumnType.TEXT, "'F'"),
		),
	),
	Table(
		name="safety_config",
		columns=(
			_col("max_grill_temp", ColumnType.INTEGER, "550"),
			_col("igniter_temp_window", ColumnType.INTEGER, "15"),
			_col("min_startup_temp_delta", ColumnType.INTEGER, "10"),
			_col("max_auger_on_time_no_ignition", ColumnType.INTEGER, "300"),
		),
	),
	Table(
		name="operational_settings",
		columns=(
			_col("active_controller", ColumnType.TEXT, "'pmode'"),
			_col("primary_setpoint", ColumnType.INTEGER, "225"),
			_col("shutdown_fan_time", ColumnType.INTEGER, "300"),
		),
	),
	Table(
		name="mqtt_config",
		columns=(
			_col("mqtt_enabled", ColumnType.BOOLEAN, "0"),
			_col("mqtt_broker", ColumnType.TEXT, "'mqtt://localhost'"),
			_col("mqtt_port", ColumnType.INTEGER, "1883"),
			_col("mqtt_username", ColumnType.TEXT, "''"),
			_col("mqtt_password", ColumnType.TEXT, "''"),
			_col("mqtt_topic_prefix", ColumnType.TEXT, "'pidpro'"),
		),
	),
)

# (table, old_column, new_column). The old column stays in the store after the
# copy: SQLite stores written by earlier releases cannot drop columns.
RENAMES: tuple[tuple[str, str, str], ...] = ()


def compose_schema(
	static_tables: Sequence[Table],
	providers: Iterable[SchemaProvider] = (),
) -> tuple[Table, ...]:
	"""Concatenate the static tables with every provider's tables, in order.

	No deduplication is performed. When two tables share a name or a column,
	lookups resolve to the first definition, so the static tables mask
	provider tables.
	"""
	tables: list[Table] = list(static_tables)
	for provider in providers:
		tables.extend(provider.controller_tables())
	return tuple(tables)


def find_column(
	schema: Sequence[Table], key: str, table: str | None = None,
) -> tuple[Table, Column] | None:
	"""Return the first (table, column) declaring ``key``, optionally within ``table``."""
	for candidate in schema:
		if table is not None and candidate.name != table:
			continue
		column = candidate.column(key)
		if column is not None:
			return candidate, column
	return None


def find_table(schema: Sequence[Table], name: str) -> Table | None:
	for candidate in schema:
		if candidate.name == name:
			return candidate
	return None
