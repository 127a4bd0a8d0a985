"""SQLite-backed settings store: startup sequence and typed accessor."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Iterable, Sequence

from pidpro import migrations
from pidpro.errors import (
	InvalidValueError,
	NotFoundError,
	SchemaIntegrityError,
	StoreIOError,
)
from pidpro.migrations import MigrationReport
from pidpro.schema import (
	RENAMES,
	ROW_ID,
	SCHEMA_VERSION,
	STATIC_SCHEMA,
	Column,
	SchemaProvider,
	Table,
	compose_schema,
	find_column,
)
from pidpro.values import SettingValue, expected_description, parse_value, to_storage

if TYPE_CHECKING:
	from pidpro.models import SettingsExport

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"
JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")

GroupedSettings = list[tuple[str, list[tuple[str, SettingValue]]]]


def connect(
	path: str | Path,
	*,
	busy_timeout_ms: int = 5000,
	journal_mode: str = "WAL",
) -> sqlite3.Connection:
	"""Open an autocommit connection; transactions are issued explicitly."""
	db_path = str(path)
	mode = journal_mode.upper()
	if mode not in JOURNAL_MODES:
		raise ValueError(f"Unsupported journal mode: {journal_mode!r}")
	try:
		conn = sqlite3.connect(db_path, isolation_level=None)
	except sqlite3.Error as exc:
		raise StoreIOError(f"Failed to open {db_path}: {exc}") from exc
	logger.debug("Opened database connection: %s", db_path)
	if db_path == MEMORY_PATH:
		return conn
	try:
		conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
		conn.execute(f"PRAGMA journal_mode={mode}")
	except sqlite3.Error as exc:
		conn.close()
		raise StoreIOError(f"Failed to open {db_path}: {exc}") from exc
	logger.debug("%s journal mode activated for %s", mode, db_path)
	return conn


def _remove_store_files(db_path: str) -> None:
	for suffix in ("", "-wal", "-shm", "-journal"):
		Path(db_path + suffix).unlink(missing_ok=True)


class SettingsStore:
	"""Single-row-per-table settings store over one SQLite file.

	Not thread-safe: one handle is meant to be owned by one thread, and
	callers sharing it must serialize access themselves.
	"""

	def __init__(self, conn: sqlite3.Connection, schema: Sequence[Table], path: str = MEMORY_PATH) -> None:
		self.conn = conn
		self.schema: tuple[Table, ...] = tuple(schema)
		self.path = path
		self.last_migration: MigrationReport | None = None
		self.dropped_tables: list[str] = []

	@classmethod
	def open_or_create(
		cls,
		path: str | Path,
		providers: Iterable[SchemaProvider] | None = None,
		*,
		static_tables: Sequence[Table] = STATIC_SCHEMA,
		version: int = SCHEMA_VERSION,
		renames: Sequence[tuple[str, str, str]] = RENAMES,
		busy_timeout_ms: int = 5000,
		journal_mode: str = "WAL",
	) -> SettingsStore:
		"""Open the store at ``path``, creating or migrating it as needed.

		Composes the schema from ``static_tables`` and ``providers`` (every
		registered controller by default), initializes a new store or
		migrates an older one, creates anything still missing, and drops
		orphaned controller tables.

		Raises:
			StoreIOError: If the file cannot be opened or a new store cannot
				be initialized. A failed initialization removes the new file.
			SchemaIntegrityError: If a live table cannot be addressed.
		"""
		if providers is None:
			from pidpro.controllers import DEFAULT_CONTROLLERS

			providers = DEFAULT_CONTROLLERS
		schema = compose_schema(static_tables, providers)
		db_path = str(path)
		existed = db_path != MEMORY_PATH and Path(db_path).exists()

		conn = connect(db_path, busy_timeout_ms=busy_timeout_ms, journal_mode=journal_mode)
		store = cls(conn, schema, db_path)
		try:
			if not existed:
				migrations.initialize(conn, schema, version)
			else:
				store._upgrade(version, renames)
		except BaseException:
			conn.close()
			if not existed and db_path != MEMORY_PATH:
				_remove_store_files(db_path)
			raise
		return store

	def _upgrade(self, version: int, renames: Sequence[tuple[str, str, str]]) -> None:
		current = migrations.get_schema_version(self.conn)
		if current < version:
			self.last_migration = migrations.migrate(self.conn, self.schema, current, version, renames)
			try:
				migrations.set_schema_version(self.conn, version)
			except sqlite3.Error as exc:
				raise StoreIOError(f"Failed to record schema version {version}: {exc}") from exc
		elif current > version:
			logger.warning(
				"Store schema version %d is newer than declared version %d; leaving it as is",
				current, version,
			)
		else:
			logger.debug("Store already at schema version %d", current)
		migrations.ensure_tables(self.conn, self.schema)
		self.dropped_tables = migrations.cleanup_orphans(self.conn, self.schema)

	def close(self) -> None:
		logger.debug("Closing database connection")
		self.conn.close()

	def __enter__(self) -> SettingsStore:
		return self

	def __exit__(self, *args: object) -> None:
		self.close()

	@contextmanager
	def transaction(self) -> Generator[sqlite3.Connection, None, None]:
		"""Group several writes; commits on success, rolls back on exception."""
		with migrations.transaction(self.conn) as conn:
			yield conn

	@property
	def schema_version(self) -> int:
		return migrations.get_schema_version(self.conn)

	# -- Lookup --

	def resolve(self, key: str, table: str | None = None) -> tuple[Table, Column]:
		"""Find the table and column owning ``key``.

		``key`` may be qualified as ``table.column``. Unqualified keys resolve
		to the first declaring table in schema order.
		"""
		if table is None and "." in key:
			table, key = key.split(".", 1)
		found = find_column(self.schema, key, table)
		if found is None:
			raise NotFoundError(key, table)
		return found

	def describe(self) -> list[tuple[str, str]]:
		"""(table, column) for every declared setting, in schema order."""
		return [(table.name, column.name) for table in self.schema for column in table.columns]

	# -- Accessor --

	def get(self, key: str, table: str | None = None) -> SettingValue:
		owner, column = self.resolve(key, table)
		try:
			row = self.conn.execute(
				f"SELECT {column.name} FROM {owner.name} WHERE id = ?", (ROW_ID,),  # noqa: S608
			).fetchone()
		except sqlite3.Error as exc:
			raise StoreIOError(f"Failed to read {owner.name}.{column.name}: {exc}") from exc
		if row is None:
			raise SchemaIntegrityError(f"Table {owner.name} has no settings row")
		return SettingValue.from_raw(column.type, row[0])

	def set(self, key: str, value: str, table: str | None = None) -> None:
		owner, column = self.resolve(key, table)
		try:
			parsed = parse_value(column.type, value)
		except ValueError as exc:
			raise InvalidValueError(column.name, value, expected_description(column.type)) from exc
		try:
			updated = self.conn.execute(
				f"UPDATE {owner.name} SET {column.name} = ? WHERE id = ?",  # noqa: S608
				(to_storage(column.type, parsed), ROW_ID),
			).rowcount
		except sqlite3.Error as exc:
			raise StoreIOError(f"Failed to write {owner.name}.{column.name}: {exc}") from exc
		if updated == 0:
			raise SchemaIntegrityError(f"Table {owner.name} has no settings row")
		logger.debug("Set %s.%s = %r", owner.name, column.name, parsed)

	def get_all_grouped(self) -> GroupedSettings:
		"""Every declared setting, grouped by table in schema order.

		Each value is read with an unqualified ``get``, so a column name
		declared by more than one table shows the first owner's value in
		every group. Any failed read aborts the whole listing.
		"""
		grouped: GroupedSettings = []
		for table in self.schema:
			settings = [(column.name, self.get(column.name)) for column in table.columns]
			grouped.append((table.name, settings))
		return grouped

	# -- Export / import --

	def export_settings(self) -> SettingsExport:
		"""Snapshot every table's own values (table-qualified reads)."""
		from pidpro.models import SettingsExport

		tables = {
			table.name: {column.name: self.get(column.name, table.name).value for column in table.columns}
			for table in self.schema
		}
		return SettingsExport(version=self.schema_version, tables=tables)

	def import_settings(self, doc: SettingsExport) -> list[str]:
		"""Apply an exported snapshot in one transaction.

		Tables and keys the current schema does not declare are skipped and
		returned as ``table.key`` strings. A value that does not parse aborts
		the import and nothing is written.
		"""
		skipped: list[str] = []
		with self.transaction():
			for table_name, values in doc.tables.items():
				for key, value in values.items():
					if find_column(self.schema, key, table_name) is None:
						skipped.append(f"{table_name}.{key}")
						continue
					self.set(key, _export_text(value), table_name)
		if skipped:
			logger.info("Import skipped %d undeclared settings", len(skipped))
		return skipped


def _export_text(value: object) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, float):
		return repr(value)
	return str(value)
