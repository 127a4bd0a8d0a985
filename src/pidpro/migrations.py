"""Store initialization, forward migration, and orphan cleanup.

Every statement here interpolates table and column names taken from declared
``Table``/``Column`` objects, which validate their identifiers on
construction. Nothing in this module sees user-supplied names.

Connections passed in must be in autocommit mode (``isolation_level=None``):
``transaction()`` issues its own BEGIN/COMMIT, and migration steps are
expected to commit one by one.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator, Sequence

from pidpro.errors import SchemaIntegrityError, StoreIOError
from pidpro.schema import (
	DYNAMIC_TABLE_SUFFIX,
	META_TABLE,
	RENAMES,
	ROW_ID,
	ColumnType,
	Table,
	find_table,
	validate_identifier,
)
from pidpro.values import is_valid_for

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
	"""What a migration run changed, and what it had to skip."""

	from_version: int = 0
	to_version: int = 0
	created_tables: list[str] = field(default_factory=list)
	added_columns: list[str] = field(default_factory=list)
	repaired_columns: list[str] = field(default_factory=list)
	renamed_columns: list[str] = field(default_factory=list)
	skipped: list[str] = field(default_factory=list)

	@property
	def changed(self) -> bool:
		return bool(
			self.created_tables or self.added_columns
			or self.repaired_columns or self.renamed_columns
		)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
	"""Explicit transaction: commits on success, rolls back on exception."""
	conn.execute("BEGIN")
	try:
		yield conn
	except BaseException:
		conn.execute("ROLLBACK")
		raise
	else:
		conn.execute("COMMIT")


def create_table_sql(table: Table) -> str:
	columns_sql = ", ".join(column.definition for column in table.columns)
	if columns_sql:
		return f"CREATE TABLE {table.name} (id INTEGER PRIMARY KEY, {columns_sql})"
	return f"CREATE TABLE {table.name} (id INTEGER PRIMARY KEY)"


def _create_table(conn: sqlite3.Connection, table: Table) -> None:
	conn.execute(create_table_sql(table))  # noqa: S608
	conn.execute(f"INSERT INTO {table.name} (id) VALUES (?)", (ROW_ID,))  # noqa: S608


def list_tables(conn: sqlite3.Connection) -> list[str]:
	"""Names of every user table in the live store."""
	try:
		rows = conn.execute(
			"SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
		).fetchall()
	except sqlite3.Error as exc:
		raise StoreIOError(f"Failed to list tables: {exc}") from exc
	return [row[0] for row in rows]


def table_columns(conn: sqlite3.Connection, table_name: str) -> list[tuple[str, str]]:
	"""(name, declared type) for each live column; empty if the table does not exist."""
	validate_identifier(table_name)
	try:
		rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
	except sqlite3.Error as exc:
		raise StoreIOError(f"Failed to introspect table {table_name}: {exc}") from exc
	return [(row[1], row[2] or "") for row in rows]


def get_schema_version(conn: sqlite3.Connection) -> int:
	"""Persisted schema version, or 0 if the meta table or its row is missing."""
	try:
		row = conn.execute(f"SELECT version FROM {META_TABLE} WHERE id = ?", (ROW_ID,)).fetchone()
	except sqlite3.Error as exc:
		logger.debug("No readable schema version (%s), treating as 0", exc)
		return 0
	if row is None or row[0] is None:
		return 0
	try:
		return int(row[0])
	except (TypeError, ValueError):
		logger.warning("Unreadable schema version %r, treating as 0", row[0])
		return 0


def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
	conn.execute(f"CREATE TABLE IF NOT EXISTS {META_TABLE} (id INTEGER PRIMARY KEY, version INTEGER)")
	updated = conn.execute(f"UPDATE {META_TABLE} SET version = ? WHERE id = ?", (version, ROW_ID)).rowcount
	if updated == 0:
		conn.execute(f"INSERT INTO {META_TABLE} (id, version) VALUES (?, ?)", (ROW_ID, version))


def initialize(conn: sqlite3.Connection, schema: Sequence[Table], version: int) -> None:
	"""Create every table with its default row and record ``version``, all or nothing.

	Raises:
		StoreIOError: If any statement fails; nothing is left behind.
	"""
	try:
		with transaction(conn):
			for table in schema:
				_create_table(conn, table)
				logger.debug("Created table %s (%d columns)", table.name, len(table.columns))
			set_schema_version(conn, version)
	except sqlite3.Error as exc:
		logger.error("Store initialization failed, rolled back", exc_info=True)
		raise StoreIOError(f"Failed to initialize store: {exc}") from exc
	logger.info("Initialized store with %d tables at schema version %d", len(schema), version)


def ensure_tables(conn: sqlite3.Connection, schema: Sequence[Table]) -> list[str]:
	"""Create tables missing from the live store and restore missing default rows.

	Returns the names of the tables that were created.
	"""
	live = set(list_tables(conn))
	created: list[str] = []
	for table in schema:
		try:
			if table.name in live:
				inserted = conn.execute(
					f"INSERT OR IGNORE INTO {table.name} (id) VALUES (?)", (ROW_ID,),  # noqa: S608
				).rowcount
				if inserted:
					logger.info("Restored missing default row in %s", table.name)
				continue
			with transaction(conn):
				_create_table(conn, table)
		except sqlite3.Error as exc:
			raise StoreIOError(f"Failed to create table {table.name}: {exc}") from exc
		live.add(table.name)
		created.append(table.name)
		logger.info("Created table %s", table.name)
	return created


def _try(conn: sqlite3.Connection, sql: str, what: str, report: MigrationReport) -> bool:
	"""Run one best-effort migration statement; log and record a failure instead of raising."""
	try:
		conn.execute(sql)
	except sqlite3.Error as exc:
		logger.warning("Migration failed for %s: %s", what, exc)
		report.skipped.append(what)
		return False
	return True


def _repair_column(
	conn: sqlite3.Connection, table: Table, name: str, col_type: ColumnType, default: str,
	report: MigrationReport,
) -> None:
	what = f"{table.name}.{name}"
	try:
		row = conn.execute(
			f"SELECT {name} FROM {table.name} WHERE id = ?", (ROW_ID,),  # noqa: S608
		).fetchone()
	except sqlite3.Error as exc:
		logger.warning("Migration failed reading %s: %s", what, exc)
		report.skipped.append(what)
		return
	if row is None:
		logger.debug("Migration: %s has no row to check", table.name)
		return
	if is_valid_for(col_type, row[0]):
		logger.debug("Migration: %s value %r still valid as %s", what, row[0], col_type.value)
		return
	sql = f"UPDATE {table.name} SET {name} = {default} WHERE id = {ROW_ID}"  # noqa: S608
	if _try(conn, sql, what, report):
		logger.info("Migration: type changed for %s, value %r reset to default %s", what, row[0], default)
		report.repaired_columns.append(what)


def _migrate_table(
	conn: sqlite3.Connection, table: Table, renames: Sequence[tuple[str, str, str]],
	report: MigrationReport,
) -> None:
	live_columns = table_columns(conn, table.name)
	if not live_columns:
		try:
			with transaction(conn):
				_create_table(conn, table)
		except sqlite3.Error as exc:
			logger.warning("Migration failed creating table %s: %s", table.name, exc)
			report.skipped.append(table.name)
			return
		logger.info("Migration: created table %s", table.name)
		report.created_tables.append(table.name)
		return

	live_types = {name: declared for name, declared in live_columns}
	if "id" not in live_types:
		raise SchemaIntegrityError(f"Table {table.name} has no id column; cannot address its row")

	# Rename targets whose source column is still live are left to the rename
	# pass; adding them here with their default would block the copy.
	pending = {new for name, old, new in renames if name == table.name and old in live_types}

	# Missing columns first, then type repair on the ones that already existed
	for column in table.columns:
		if column.name in live_types or column.name in pending:
			continue
		what = f"{table.name}.{column.name}"
		if _try(conn, f"ALTER TABLE {table.name} ADD COLUMN {column.definition}", what, report):
			logger.info("Migration: added column %s", what)
			report.added_columns.append(what)

	for column in table.columns:
		declared = live_types.get(column.name)
		if declared is None or declared.strip().upper() == column.type.value:
			continue
		_repair_column(conn, table, column.name, column.type, column.default, report)


def _apply_rename(
	conn: sqlite3.Connection, schema: Sequence[Table], rename: tuple[str, str, str],
	report: MigrationReport,
) -> None:
	table_name, old, new = rename
	for name in rename:
		validate_identifier(name)
	live = {name for name, _ in table_columns(conn, table_name)}
	if old not in live or new in live:
		return
	table = find_table(schema, table_name)
	column = table.column(new) if table is not None else None
	what = f"{table_name}.{old} -> {new}"
	if column is None:
		logger.warning("Rename %s skipped: %s.%s is not declared", what, table_name, new)
		report.skipped.append(what)
		return
	if not _try(conn, f"ALTER TABLE {table_name} ADD COLUMN {column.definition}", what, report):
		return
	if _try(conn, f"UPDATE {table_name} SET {new} = {old}", what, report):  # noqa: S608
		# The old column stays behind for good; see RENAMES
		logger.info("Migration: renamed %s", what)
		report.renamed_columns.append(what)


def migrate(
	conn: sqlite3.Connection,
	schema: Sequence[Table],
	from_version: int,
	to_version: int,
	renames: Sequence[tuple[str, str, str]] = RENAMES,
) -> MigrationReport:
	"""Bring a live store's tables in line with ``schema``.

	Per table in schema order: create it if absent, add missing columns, then
	reset values that no longer parse as a changed column type. Renames run
	as a final pass over all tables. Individual column operations are best
	effort: failures are logged and recorded in the report. Introspection
	failures propagate as StoreIOError. The caller records ``to_version``.
	"""
	logger.info("Migrating schema from version %d to %d", from_version, to_version)
	report = MigrationReport(from_version=from_version, to_version=to_version)
	for table in schema:
		_migrate_table(conn, table, renames, report)
	for rename in renames:
		_apply_rename(conn, schema, rename, report)
	if report.skipped:
		logger.warning("Migration finished with %d skipped operations", len(report.skipped))
	return report


def cleanup_orphans(conn: sqlite3.Connection, schema: Sequence[Table]) -> list[str]:
	"""Drop controller tables that no table in ``schema`` declares any more.

	Only tables carrying the dynamic suffix are considered; static tables are
	never dropped.
	"""
	declared = {table.name for table in schema}
	dropped: list[str] = []
	for name in list_tables(conn):
		if not name.endswith(DYNAMIC_TABLE_SUFFIX) or name in declared:
			continue
		try:
			validate_identifier(name)
		except ValueError:
			logger.warning("Not dropping table with unexpected name %r", name)
			continue
		try:
			conn.execute(f"DROP TABLE IF EXISTS {name}")
		except sqlite3.Error as exc:
			logger.warning("Failed to drop orphaned table %s: %s", name, exc)
			continue
		logger.info("Dropped orphaned controller table %s", name)
		dropped.append(name)
	return dropped
