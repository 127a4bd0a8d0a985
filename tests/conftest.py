"""Shared pytest fixtures and factory functions for pidpro tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Generator, Sequence

import pytest

from pidpro.db import SettingsStore, connect
from pidpro.schema import Column, ColumnType, Table


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
	return tmp_path / "settings.db"


@pytest.fixture()
def store(db_path: Path) -> Generator[SettingsStore, None, None]:
	"""File-backed store with the default static schema and every controller."""
	s = SettingsStore.open_or_create(db_path)
	yield s
	s.close()


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
	"""Bare in-memory autocommit connection."""
	c = connect(":memory:")
	yield c
	c.close()


class FakeProvider:
	"""Schema fragment provider contributing a fixed list of tables."""

	def __init__(self, *tables: Table) -> None:
		self.tables = tables

	def controller_tables(self) -> Sequence[Table]:
		return self.tables


def make_column(name: str, col_type: str = "INTEGER", default: str = "0") -> Column:
	return Column(name=name, type=ColumnType(col_type), default=default)


def make_table(name: str, *columns: Column) -> Table:
	return Table(name=name, columns=columns)


def open_store(path: Path | str, *tables: Table, version: int = 1, **overrides: Any) -> SettingsStore:
	"""Open a store whose whole schema is ``tables`` (no controllers)."""
	kwargs: dict[str, Any] = {"static_tables": tables, "version": version}
	kwargs.update(overrides)
	providers = kwargs.pop("providers", ())
	return SettingsStore.open_or_create(path, providers, **kwargs)


def raw_value(store: SettingsStore, table: str, column: str) -> Any:
	"""Value as stored, bypassing the accessor's type handling."""
	return store.conn.execute(f"SELECT {column} FROM {table} WHERE id = 1").fetchone()[0]
