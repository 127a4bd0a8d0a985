"""TOML configuration loader for pidpro."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pidpro.controllers import CONTROLLERS
from pidpro.db import JOURNAL_MODES

DEFAULT_CONFIG = "pidpro.toml"
DEFAULT_DB = "settings.db"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StoreConfig:
	"""Backing SQLite file settings."""

	path: str = DEFAULT_DB
	busy_timeout_ms: int = 5000
	journal_mode: str = "WAL"

	@property
	def resolved_path(self) -> Path:
		return Path(os.path.expanduser(self.path))


@dataclass
class ControllersConfig:
	"""Which controller kinds contribute settings tables, in schema order."""

	enabled: list[str] = field(default_factory=lambda: list(CONTROLLERS))


@dataclass
class LoggingConfig:
	level: str = "INFO"


@dataclass
class PidproConfig:
	"""Top-level pidpro configuration."""

	store: StoreConfig = field(default_factory=StoreConfig)
	controllers: ControllersConfig = field(default_factory=ControllersConfig)
	logging: LoggingConfig = field(default_factory=LoggingConfig)

	@property
	def log_level(self) -> int:
		level = self.logging.level.upper()
		return int(getattr(logging, level)) if level in _LOG_LEVELS else logging.INFO


def _build_store(data: dict[str, Any], base_dir: Path | None) -> StoreConfig:
	sc = StoreConfig()
	if "path" in data:
		sc.path = str(data["path"])
		# Relative store paths are relative to the config file
		if base_dir is not None and sc.path != ":memory:" and not Path(os.path.expanduser(sc.path)).is_absolute():
			sc.path = str(base_dir / sc.path)
	if "busy_timeout_ms" in data:
		sc.busy_timeout_ms = int(data["busy_timeout_ms"])
	if "journal_mode" in data:
		sc.journal_mode = str(data["journal_mode"])
	return sc


def _build_controllers(data: dict[str, Any]) -> ControllersConfig:
	cc = ControllersConfig()
	if "enabled" in data:
		cc.enabled = [str(name) for name in data["enabled"]]
	return cc


def _build_logging(data: dict[str, Any]) -> LoggingConfig:
	lc = LoggingConfig()
	if "level" in data:
		lc.level = str(data["level"])
	return lc


def load_config(path: str | Path) -> PidproConfig:
	"""Load a pidpro.toml config file.

	Args:
		path: Path to the TOML config file.

	Returns:
		Parsed PidproConfig.

	Raises:
		FileNotFoundError: If config file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	config_path = Path(path)
	if not config_path.exists():
		raise FileNotFoundError(f"Config file not found: {config_path}")

	with open(config_path, "rb") as f:
		data = tomllib.load(f)

	pc = PidproConfig()
	if "store" in data:
		pc.store = _build_store(data["store"], config_path.parent)
	else:
		pc.store.path = str(config_path.parent / DEFAULT_DB)
	if "controllers" in data:
		pc.controllers = _build_controllers(data["controllers"])
	if "logging" in data:
		pc.logging = _build_logging(data["logging"])
	return pc


def validate_config(config: PidproConfig) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded PidproConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []

	for name in config.controllers.enabled:
		if name not in CONTROLLERS:
			issues.append(("error", f"unknown controller: {name} (known: {', '.join(CONTROLLERS)})"))
	if len(set(config.controllers.enabled)) != len(config.controllers.enabled):
		issues.append(("error", "controllers.enabled lists a controller more than once"))
	if not config.controllers.enabled:
		issues.append(("warning", "no controllers enabled; every *_settings table will be dropped on next start"))

	if config.store.journal_mode.upper() not in JOURNAL_MODES:
		issues.append(("error", f"store.journal_mode must be one of {', '.join(JOURNAL_MODES)}"))
	if config.store.busy_timeout_ms <= 0:
		issues.append(("error", f"store.busy_timeout_ms must be positive, got {config.store.busy_timeout_ms}"))
	store_dir = config.store.resolved_path.parent
	if config.store.path != ":memory:" and not store_dir.exists():
		issues.append(("error", f"store directory does not exist: {store_dir}"))

	if config.logging.level.upper() not in _LOG_LEVELS:
		issues.append(("warning", f"unknown logging.level {config.logging.level!r}, using INFO"))

	return issues


def default_config_text(store_path: str = DEFAULT_DB) -> str:
	enabled = ", ".join(f'"{name}"' for name in CONTROLLERS)
	return f"""\
[store]
path = "{store_path}"
busy_timeout_ms = 5000
journal_mode = "WAL"

[controllers]
enabled = [{enabled}]

[logging]
level = "INFO"
"""
