"""Control-law components and the registry of controller kinds."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from pidpro.controllers.base import Controller
from pidpro.controllers.pid import PidController
from pidpro.controllers.pmode import PModeController

if TYPE_CHECKING:
	from pidpro.db import SettingsStore

# Registration order is schema order for the fragments.
CONTROLLERS: dict[str, type[Controller]] = {
	PModeController.name: PModeController,
	PidController.name: PidController,
}

DEFAULT_CONTROLLERS: tuple[type[Controller], ...] = tuple(CONTROLLERS.values())


def providers_for(names: Iterable[str]) -> tuple[type[Controller], ...]:
	"""Controller classes for ``names``, in the order given.

	Raises:
		ValueError: If a name is not a registered controller kind.
	"""
	providers: list[type[Controller]] = []
	for name in names:
		if name not in CONTROLLERS:
			known = ", ".join(sorted(CONTROLLERS))
			raise ValueError(f"Unknown controller {name!r} (known: {known})")
		providers.append(CONTROLLERS[name])
	return tuple(providers)


def build_controller(store: SettingsStore, kind: str | None = None) -> Controller:
	"""Instantiate the controller named by ``kind`` or the active_controller setting."""
	if kind is None:
		kind = str(store.get("active_controller").value)
	return providers_for([kind])[0].from_store(store)


__all__ = [
	"CONTROLLERS",
	"DEFAULT_CONTROLLERS",
	"Controller",
	"PModeController",
	"PidController",
	"build_controller",
	"providers_for",
]
