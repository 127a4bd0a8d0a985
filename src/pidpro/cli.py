"""CLI interface for pidpro."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from pidpro.config import DEFAULT_CONFIG, PidproConfig, default_config_text, load_config, validate_config
from pidpro.controllers import providers_for
from pidpro.db import SettingsStore
from pidpro.errors import InvalidValueError, NotFoundError, SettingsError
from pidpro.models import SettingsExport
from pidpro.schema import SCHEMA_VERSION
from pidpro.shell import SettingsShell, format_grouped

logger = logging.getLogger(__name__)


def _add_store_args(parser: argparse.ArgumentParser) -> None:
	parser.add_argument("--config", default=DEFAULT_CONFIG, help="Config file path")
	parser.add_argument("--db", default=None, help="Settings database path (overrides config)")


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="pidpro",
		description="pidpro - controller settings store",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	sub = parser.add_subparsers(dest="command")

	# pidpro get
	get = sub.add_parser("get", help="Print one setting")
	get.add_argument("key", help="Setting key, optionally qualified as table.key")
	_add_store_args(get)

	# pidpro set
	set_cmd = sub.add_parser("set", help="Change one setting")
	set_cmd.add_argument("key", help="Setting key, optionally qualified as table.key")
	set_cmd.add_argument("value")
	_add_store_args(set_cmd)

	# pidpro list
	list_cmd = sub.add_parser("list", help="List all settings grouped by table")
	list_cmd.add_argument("--json", action="store_true", dest="json_output", help="JSON output")
	_add_store_args(list_cmd)

	# pidpro shell
	shell = sub.add_parser("shell", help="Interactive get/set/list shell")
	_add_store_args(shell)

	# pidpro export
	export = sub.add_parser("export", help="Write every setting to a JSON file")
	export.add_argument("file", help="Output path, or - for stdout")
	_add_store_args(export)

	# pidpro import
	import_cmd = sub.add_parser("import", help="Apply settings from an exported JSON file")
	import_cmd.add_argument("file")
	_add_store_args(import_cmd)

	# pidpro status
	status = sub.add_parser("status", help="Show schema version and tables")
	_add_store_args(status)

	# pidpro validate-config
	vc = sub.add_parser("validate-config", help="Validate config file semantically")
	vc.add_argument("--config", default=DEFAULT_CONFIG, help="Config file path")

	# pidpro init
	init_cmd = sub.add_parser("init", help="Write a default pidpro config")
	init_cmd.add_argument("path", nargs="?", default=".")

	return parser


def _load(args: argparse.Namespace) -> PidproConfig:
	"""Load the config file; the default path may be absent, an explicit one may not."""
	config_path = Path(args.config)
	if config_path.exists():
		config = load_config(config_path)
	elif args.config == DEFAULT_CONFIG:
		config = PidproConfig()
	else:
		raise FileNotFoundError(f"Config file not found: {config_path}")
	if getattr(args, "db", None):
		config.store.path = args.db
	if not args.verbose:
		logging.getLogger().setLevel(config.log_level)
	return config


def _open_store(config: PidproConfig) -> SettingsStore:
	return SettingsStore.open_or_create(
		config.store.path,
		providers_for(config.controllers.enabled),
		busy_timeout_ms=config.store.busy_timeout_ms,
		journal_mode=config.store.journal_mode,
	)


def cmd_get(args: argparse.Namespace) -> int:
	"""Print one setting."""
	with _open_store(_load(args)) as store:
		try:
			value = store.get(args.key)
		except NotFoundError as exc:
			print(f"Error: {exc}")
			return 1
		print(f"{args.key} = {value}")
		return 0


def cmd_set(args: argparse.Namespace) -> int:
	"""Change one setting."""
	with _open_store(_load(args)) as store:
		try:
			store.set(args.key, args.value)
		except (NotFoundError, InvalidValueError) as exc:
			print(f"Error: {exc}")
			return 1
		print(f"Successfully set '{args.key}' to {args.value}")
		return 0


def cmd_list(args: argparse.Namespace) -> int:
	"""List all settings grouped by table."""
	with _open_store(_load(args)) as store:
		grouped = store.get_all_grouped()
		if args.json_output:
			data = {
				table: {key: value.value for key, value in settings}
				for table, settings in grouped
			}
			print(json.dumps(data, indent=2))
		else:
			for line in format_grouped(grouped):
				print(line)
		return 0


def cmd_shell(args: argparse.Namespace) -> int:
	"""Run the interactive shell."""
	with _open_store(_load(args)) as store:
		return SettingsShell(store).run()


def cmd_export(args: argparse.Namespace) -> int:
	"""Write every table's settings to JSON."""
	with _open_store(_load(args)) as store:
		text = store.export_settings().model_dump_json(indent=2)
	if args.file == "-":
		print(text)
	else:
		Path(args.file).write_text(text + "\n")
		print(f"Exported settings to {args.file}")
	return 0


def cmd_import(args: argparse.Namespace) -> int:
	"""Apply settings from an exported JSON file."""
	source = Path(args.file)
	if not source.exists():
		print(f"File not found: {source}")
		return 1
	try:
		doc = SettingsExport.model_validate_json(source.read_text())
	except ValidationError as exc:
		print(f"Invalid settings file: {exc}")
		return 1

	with _open_store(_load(args)) as store:
		try:
			skipped = store.import_settings(doc)
		except (NotFoundError, InvalidValueError) as exc:
			print(f"Error: {exc} (nothing imported)")
			return 1
	for entry in skipped:
		print(f"  skipped {entry}: not in current schema")
	print(f"Imported settings from {source}")
	return 0


def cmd_status(args: argparse.Namespace) -> int:
	"""Show schema version, tables, and what the last open changed."""
	config = _load(args)
	with _open_store(config) as store:
		print(f"Store: {config.store.path}")
		print(f"Schema version: {store.schema_version} (declared {SCHEMA_VERSION})")
		report = store.last_migration
		if report is not None:
			print(
				f"Migrated {report.from_version} -> {report.to_version}: "
				f"{len(report.added_columns)} column(s) added, "
				f"{len(report.repaired_columns)} value(s) reset, "
				f"{len(report.renamed_columns)} rename(s), "
				f"{len(report.skipped)} skipped"
			)
		for name in store.dropped_tables:
			print(f"Dropped orphaned table: {name}")
		print(f"\nTables ({len(store.schema)}):")
		for table in store.schema:
			kind = "controller" if table.is_dynamic else "static"
			print(f"  {table.name} [{kind}] {len(table.columns)} setting(s)")
	return 0


def _report_issues(issues: list[tuple[str, str]]) -> int:
	"""Print config issues one per line; returns how many are errors."""
	counts = {"error": 0, "warning": 0}
	for level, msg in issues:
		counts[level] = counts.get(level, 0) + 1
		print(f"[{level.upper()}] {msg}")
	print(f"{counts['error']} error(s), {counts['warning']} warning(s)")
	return counts["error"]


def cmd_validate_config(args: argparse.Namespace) -> int:
	"""Check a config file and the store and controllers it names."""
	config = load_config(args.config)
	print(f"Config: {args.config} (store {config.store.path})")
	issues = validate_config(config)
	if not issues:
		print("Config OK")
		return 0
	return 1 if _report_issues(issues) else 0


def cmd_init(args: argparse.Namespace) -> int:
	"""Write a default pidpro config."""
	target = Path(args.path).resolve()
	config_path = target / DEFAULT_CONFIG

	if config_path.exists():
		print(f"Config already exists: {config_path}")
		return 1

	config_path.write_text(default_config_text())
	print(f"Created {config_path}")
	return 0


COMMANDS = {
	"get": cmd_get,
	"set": cmd_set,
	"list": cmd_list,
	"shell": cmd_shell,
	"export": cmd_export,
	"import": cmd_import,
	"status": cmd_status,
	"validate-config": cmd_validate_config,
	"init": cmd_init,
}


def main(argv: list[str] | None = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
		force=True,
	)

	if args.command is None:
		parser.print_help()
		return 0

	handler = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1

	try:
		return handler(args)
	except FileNotFoundError as e:
		print(f"Error: {e}")
		return 1
	except (SettingsError, ValueError) as e:
		logger.debug("Command %s failed", args.command, exc_info=True)
		print(f"Error: {e}")
		return 1


if __name__ == "__main__":
	sys.exit(main())
