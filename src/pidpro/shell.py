"""Interactive get/set/list shell over a SettingsStore."""

from __future__ import annotations

import logging
import shlex
import sys
from typing import Callable, TextIO

from pidpro.db import GroupedSettings, SettingsStore
from pidpro.errors import InvalidValueError, NotFoundError, SettingsError

logger = logging.getLogger(__name__)

PROMPT = "> "

HELP_TEXT = """\
Available commands:
  get <key>            - Get a setting's value (key or table.key).
  set <key> <value>    - Set a setting's value.
  list                 - List all settings and their current values.
  help                 - Show this help.
  exit                 - Exit the shell."""


def format_grouped(grouped: GroupedSettings) -> list[str]:
	lines: list[str] = []
	for table_name, settings in grouped:
		lines.append(f"--- {table_name.replace('_', ' ').upper()} ---")
		for key, value in settings:
			lines.append(f"  {key}: {value}")
	return lines


class SettingsShell:
	"""Line-oriented command loop. Errors are reported, never raised."""

	def __init__(self, store: SettingsStore, out: TextIO | None = None) -> None:
		self.store = store
		self.out = out if out is not None else sys.stdout

	def _print(self, text: str = "") -> None:
		self.out.write(text + "\n")

	def execute(self, line: str) -> bool:
		"""Run one command line. Returns False when the shell should exit."""
		try:
			parts = shlex.split(line)
		except ValueError as exc:
			self._print(f"Error: {exc}")
			return True
		if not parts:
			return True

		command, args = parts[0].lower(), parts[1:]
		if command == "get":
			self._get(args)
		elif command == "set":
			self._set(args)
		elif command == "list":
			self._list()
		elif command == "help":
			self._print(HELP_TEXT)
		elif command in ("exit", "quit"):
			self._print("Exiting.")
			return False
		else:
			self._print("Unknown command. Type 'help' for a list of commands.")
		return True

	def _get(self, args: list[str]) -> None:
		if len(args) != 1:
			self._print("Usage: get <setting_key>")
			return
		key = args[0]
		try:
			value = self.store.get(key)
		except NotFoundError as exc:
			self._print(f"Error: {exc}")
		except SettingsError as exc:
			logger.error("get %s failed: %s", key, exc)
			self._print(f"Error: {exc}")
		else:
			self._print(f"  {key} = {value}")

	def _set(self, args: list[str]) -> None:
		if len(args) != 2:
			self._print("Usage: set <setting_key> <value>")
			return
		key, value = args
		try:
			self.store.set(key, value)
		except (NotFoundError, InvalidValueError) as exc:
			self._print(f"Error: {exc}")
		except SettingsError as exc:
			logger.error("set %s failed: %s", key, exc)
			self._print(f"Error: {exc}")
		else:
			self._print(f"Successfully set '{key}' to {value}")

	def _list(self) -> None:
		try:
			grouped = self.store.get_all_grouped()
		except SettingsError as exc:
			self._print(f"Error fetching settings: {exc}")
			return
		for line in format_grouped(grouped):
			self._print(line)

	def run(self, read_line: Callable[[str], str] = input) -> int:
		"""Read and execute commands until exit or end of input."""
		self._print("Dynamic Settings Manager. Type 'help' for commands.")
		while True:
			try:
				line = read_line(PROMPT)
			except (EOFError, KeyboardInterrupt):
				self._print()
				return 0
			if not self.execute(line):
				return 0
