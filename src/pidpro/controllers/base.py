"""Abstract base class for control-law components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from pidpro.schema import Table

if TYPE_CHECKING:
	from pidpro.db import SettingsStore


class Controller(ABC):
	"""A control law that owns its own settings tables.

	``controller_tables()`` must be stable for a given release: renaming a
	table orphans the old one, and the next start drops it.
	"""

	name: ClassVar[str]

	@classmethod
	@abstractmethod
	def controller_tables(cls) -> tuple[Table, ...]:
		"""Tables this controller contributes to the composed schema."""

	@classmethod
	@abstractmethod
	def from_store(cls, store: SettingsStore) -> Controller:
		"""Build a controller from the tunables in its own tables."""

	@abstractmethod
	def u(self) -> float:
		"""Fraction of the cycle the auger should be on, 0.0 to 1.0."""

	def on_off_times(self, cycle_length: int) -> tuple[int, int]:
		"""(on, off) seconds for one auger cycle of ``cycle_length`` seconds."""
		u = min(max(self.u(), 0.0), 1.0)
		on_time = int(cycle_length * u)
		return on_time, cycle_length - on_time
