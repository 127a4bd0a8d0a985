"""Tests for schema declaration and composition."""

from __future__ import annotations

import pytest

from pidpro.controllers import DEFAULT_CONTROLLERS, PidController, PModeController
from pidpro.schema import (
	STATIC_SCHEMA,
	Column,
	ColumnType,
	Table,
	compose_schema,
	find_column,
	find_table,
	validate_identifier,
)
from tests.conftest import FakeProvider, make_column, make_table


class TestDeclarations:
	@pytest.mark.parametrize("name", ["", "1abc", "drop table x", "a;b", "x" * 65, "naïve"])
	def test_rejects_bad_identifiers(self, name: str) -> None:
		with pytest.raises(ValueError):
			validate_identifier(name)

	def test_accepts_plain_identifiers(self) -> None:
		validate_identifier("Pb")
		validate_identifier("_private")
		validate_identifier("max_grill_temp")

	def test_column_rejects_reserved_id(self) -> None:
		with pytest.raises(ValueError, match="reserved"):
			Column("id", ColumnType.INTEGER, "1")

	def test_table_rejects_meta(self) -> None:
		with pytest.raises(ValueError, match="reserved"):
			Table("meta", ())

	def test_table_columns_stored_as_tuple(self) -> None:
		table = Table("t", [make_column("a")])  # type: ignore[arg-type]
		assert isinstance(table.columns, tuple)

	def test_column_definition(self) -> None:
		assert make_column("port", "INTEGER", "1883").definition == "port INTEGER DEFAULT 1883"

	def test_dynamic_suffix(self) -> None:
		assert make_table("pid_settings").is_dynamic
		assert not make_table("safety_config").is_dynamic

	def test_static_schema_has_unique_names(self) -> None:
		names = [t.name for t in STATIC_SCHEMA]
		assert len(names) == len(set(names))
		columns = [c.name for t in STATIC_SCHEMA for c in t.columns]
		assert len(columns) == len(set(columns))

	def test_from_declared(self) -> None:
		assert ColumnType.from_declared("integer") is ColumnType.INTEGER
		assert ColumnType.from_declared(" Boolean ") is ColumnType.BOOLEAN
		assert ColumnType.from_declared("VARCHAR(10)") is None


class TestCompose:
	def test_static_first_then_providers_in_order(self) -> None:
		static = (make_table("a"),)
		schema = compose_schema(
			static, [FakeProvider(make_table("b_settings")), FakeProvider(make_table("c_settings"))],
		)
		assert [t.name for t in schema] == ["a", "b_settings", "c_settings"]

	def test_no_providers(self) -> None:
		assert compose_schema(STATIC_SCHEMA) == STATIC_SCHEMA

	def test_keeps_duplicates(self) -> None:
		dup = make_table("a")
		schema = compose_schema((dup,), [FakeProvider(dup)])
		assert len(schema) == 2

	def test_default_controllers_contribute_tables(self) -> None:
		schema = compose_schema(STATIC_SCHEMA, DEFAULT_CONTROLLERS)
		names = [t.name for t in schema]
		assert names[-2:] == ["pmode_settings", "pid_settings"]
		assert PModeController.controller_tables()[0] in schema
		assert PidController.controller_tables()[0] in schema


class TestLookup:
	def test_first_declaring_table_wins(self) -> None:
		static = make_table("a", make_column("x", default="1"))
		provided = make_table("b_settings", make_column("x", default="2"))
		schema = compose_schema((static,), [FakeProvider(provided)])
		found = find_column(schema, "x")
		assert found is not None
		assert found[0].name == "a"

	def test_qualified_lookup(self) -> None:
		static = make_table("a", make_column("x"))
		provided = make_table("b_settings", make_column("x"))
		found = find_column((static, provided), "x", "b_settings")
		assert found is not None
		assert found[0] is provided

	def test_missing(self) -> None:
		assert find_column(STATIC_SCHEMA, "nope") is None
		assert find_column(STATIC_SCHEMA, "mqtt_port", "safety_config") is None

	def test_find_table(self) -> None:
		assert find_table(STATIC_SCHEMA, "mqtt_config") is STATIC_SCHEMA[3]
		assert find_table(STATIC_SCHEMA, "nope") is None
