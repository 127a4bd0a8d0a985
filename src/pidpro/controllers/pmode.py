"""P-mode auger timing: full cycle on, then off for a cycle plus a p_mode delay."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pidpro.controllers.base import Controller
from pidpro.schema import Column, ColumnType, Table

if TYPE_CHECKING:
	from pidpro.db import SettingsStore

TABLE_NAME = "pmode_settings"

TABLES: tuple[Table, ...] = (
	Table(
		name=TABLE_NAME,
		columns=(
			Column("p_mode", ColumnType.INTEGER, "4"),
			Column("cycle_time", ColumnType.INTEGER, "15"),
		),
	),
)


class PModeController(Controller):
	name = "pmode"

	def __init__(self, p_mode: int = 4, cycle_time: int = 15) -> None:
		if p_mode < 0:
			raise ValueError(f"p_mode must be non-negative, got {p_mode}")
		self.p_mode = p_mode
		self.cycle_time = cycle_time

	@classmethod
	def controller_tables(cls) -> tuple[Table, ...]:
		return TABLES

	@classmethod
	def from_store(cls, store: SettingsStore) -> PModeController:
		return cls(
			p_mode=int(store.get("p_mode", TABLE_NAME).value),
			cycle_time=int(store.get("cycle_time", TABLE_NAME).value),
		)

	def u(self) -> float:
		return 1.0

	def on_off_times(self, cycle_length: int) -> tuple[int, int]:
		return cycle_length, cycle_length + self.p_mode * 10
