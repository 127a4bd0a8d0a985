"""Proportional-band PID controller for auger timing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pidpro.controllers.base import Controller
from pidpro.schema import Column, ColumnType, Table

if TYPE_CHECKING:
	from pidpro.db import SettingsStore

logger = logging.getLogger(__name__)

TABLE_NAME = "pid_settings"

TABLES: tuple[Table, ...] = (
	Table(
		name=TABLE_NAME,
		columns=(
			Column("Pb", ColumnType.REAL, "65.0"),
			Column("Ti", ColumnType.REAL, "180.0"),
			Column("Td", ColumnType.REAL, "45.0"),
			Column("cycle_time", ColumnType.INTEGER, "15"),
		),
	),
)

# Output when the error is zero
OUTPUT_BIAS = 0.5


@dataclass(frozen=True)
class PIDGains:
	kp: float
	ki: float
	kd: float


class PidController(Controller):
	"""PID in proportional-band form.

	Pb is the band (degrees) over which the output swings fully, Ti the
	integral time and Td the derivative time, both in seconds.
	"""

	name = "pid"

	def __init__(self, pb: float = 65.0, ti: float = 180.0, td: float = 45.0, cycle_time: int = 15) -> None:
		if pb <= 0:
			raise ValueError(f"Pb must be positive, got {pb}")
		self.pb = pb
		self.ti = ti
		self.td = td
		self.cycle_time = cycle_time
		self._integral = 0.0
		self._last_error: float | None = None
		self._u = OUTPUT_BIAS

	@classmethod
	def controller_tables(cls) -> tuple[Table, ...]:
		return TABLES

	@classmethod
	def from_store(cls, store: SettingsStore) -> PidController:
		return cls(
			pb=float(store.get("Pb", TABLE_NAME).value),
			ti=float(store.get("Ti", TABLE_NAME).value),
			td=float(store.get("Td", TABLE_NAME).value),
			cycle_time=int(store.get("cycle_time", TABLE_NAME).value),
		)

	def gains(self) -> PIDGains:
		kp = 1.0 / self.pb
		ki = kp / self.ti if self.ti != 0 else 0.0
		kd = kp * self.td
		return PIDGains(kp=kp, ki=ki, kd=kd)

	def update(self, setpoint: float, measured: float, dt: float) -> float:
		"""Advance the controller by ``dt`` seconds and return the new output."""
		gains = self.gains()
		error = setpoint - measured
		derivative = 0.0
		if self._last_error is not None and dt > 0:
			derivative = (error - self._last_error) / dt
		self._last_error = error

		integral = self._integral + error * dt
		raw = OUTPUT_BIAS + gains.kp * error + gains.ki * integral + gains.kd * derivative
		u = min(max(raw, 0.0), 1.0)
		# Hold the integral while saturated so it does not wind up
		if 0.0 <= raw <= 1.0:
			self._integral = integral
		self._u = u
		logger.debug("PID error=%.2f raw=%.3f u=%.3f", error, raw, u)
		return u

	def reset(self) -> None:
		self._integral = 0.0
		self._last_error = None
		self._u = OUTPUT_BIAS

	def u(self) -> float:
		return self._u
