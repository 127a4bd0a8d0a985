"""Tests for controller schema fragments and control outputs."""

from __future__ import annotations

import pytest

from pidpro.controllers import (
	CONTROLLERS,
	DEFAULT_CONTROLLERS,
	PidController,
	PModeController,
	build_controller,
	providers_for,
)
from pidpro.db import SettingsStore
from pidpro.errors import NotFoundError


class TestRegistry:
	def test_registration_order(self) -> None:
		assert list(CONTROLLERS) == ["pmode", "pid"]
		assert DEFAULT_CONTROLLERS == (PModeController, PidController)

	def test_providers_for(self) -> None:
		assert providers_for(["pid"]) == (PidController,)
		assert providers_for([]) == ()

	def test_unknown_controller(self) -> None:
		with pytest.raises(ValueError, match="Unknown controller 'bang_bang'"):
			providers_for(["pmode", "bang_bang"])

	def test_fragments_use_dynamic_suffix(self) -> None:
		for controller in DEFAULT_CONTROLLERS:
			for table in controller.controller_tables():
				assert table.is_dynamic

	def test_build_active_controller(self, store: SettingsStore) -> None:
		assert isinstance(build_controller(store), PModeController)
		store.set("active_controller", "pid")
		assert isinstance(build_controller(store), PidController)

	def test_build_disabled_controller(self) -> None:
		with SettingsStore.open_or_create(":memory:", providers_for(["pmode"])) as s:
			with pytest.raises(NotFoundError):
				build_controller(s, "pid")


class TestPMode:
	def test_on_off_times(self) -> None:
		ctrl = PModeController(p_mode=4)
		assert ctrl.u() == 1.0
		assert ctrl.on_off_times(15) == (15, 55)
		assert PModeController(p_mode=0).on_off_times(10) == (10, 10)

	def test_negative_p_mode(self) -> None:
		with pytest.raises(ValueError):
			PModeController(p_mode=-1)

	def test_from_store(self, store: SettingsStore) -> None:
		store.set("p_mode", "6")
		store.set("cycle_time", "20", table="pmode_settings")
		ctrl = PModeController.from_store(store)
		assert ctrl.p_mode == 6
		assert ctrl.cycle_time == 20


class TestPid:
	def test_gains(self) -> None:
		gains = PidController(pb=50.0, ti=100.0, td=10.0).gains()
		assert gains.kp == pytest.approx(0.02)
		assert gains.ki == pytest.approx(0.0002)
		assert gains.kd == pytest.approx(0.2)

	def test_zero_ti_disables_integral(self) -> None:
		assert PidController(ti=0.0).gains().ki == 0.0

	def test_pb_must_be_positive(self) -> None:
		with pytest.raises(ValueError):
			PidController(pb=0.0)

	def test_zero_error_gives_bias(self) -> None:
		ctrl = PidController()
		assert ctrl.u() == 0.5
		assert ctrl.update(225.0, 225.0, 1.0) == pytest.approx(0.5)

	def test_output_clamped(self) -> None:
		ctrl = PidController(td=0.0)
		assert ctrl.update(400.0, 100.0, 1.0) == 1.0
		assert PidController(td=0.0).update(100.0, 400.0, 1.0) == 0.0

	def test_no_windup_while_saturated(self) -> None:
		ctrl = PidController(td=0.0)
		for _ in range(10):
			ctrl.update(400.0, 100.0, 1.0)
		assert ctrl.update(225.0, 225.0, 1.0) == pytest.approx(0.5)

	def test_integral_accumulates_inside_band(self) -> None:
		ctrl = PidController(td=0.0)
		first = ctrl.update(230.0, 225.0, 1.0)
		second = ctrl.update(230.0, 225.0, 1.0)
		assert 0.5 < first < second < 1.0

	def test_reset(self) -> None:
		ctrl = PidController(td=0.0)
		ctrl.update(230.0, 225.0, 1.0)
		ctrl.reset()
		assert ctrl.u() == 0.5

	def test_on_off_times_split_cycle(self) -> None:
		ctrl = PidController()
		assert ctrl.on_off_times(15) == (7, 8)

	def test_from_store_reads_own_table(self, store: SettingsStore) -> None:
		store.set("Pb", "40")
		store.set("cycle_time", "30", table="pid_settings")
		ctrl = PidController.from_store(store)
		assert ctrl.pb == 40.0
		assert ctrl.cycle_time == 30
		assert ctrl.ti == 180.0
