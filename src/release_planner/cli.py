"""CLI for release-planner: init, doctor, import, list, show, save and serve commands."""

import argparse
import asyncio
import json
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console

from .catalog.models import Feature, Product
from .config import Config, load_config
from .errors import DuplicateNameError, StoreError
from .logging_config import setup_logging
from .plans.models import Plan, PlanStatus
from .saving.classifier import SaveError, classify_error
from .saving.orchestrator import PlanBaseline
from .saving.sections import PlanSection
from .services import Stores, build_orchestrator

CORE_DEPS = ["pydantic", "aiosqlite", "platformdirs", "python-dotenv", "rich", "mcp"]

DEFAULT_CONFIG_TOML = (
	"# release-planner configuration\n"
	"\n"
	"# data_dir = \"~/.local/share/release-planner\"\n"
	"# max_save_attempts = 3\n"
	"# stamp_tolerance_ms = 1000\n"
	"# log_level = \"INFO\"\n"
)

console = Console()


def _open_stores(config: Config) -> Stores:
	return Stores.open(str(config.db_path), config.stamp_tolerance_ms)


def _load_json_arg(value: str):
	"""Parse a JSON argument given inline or as a path to a file."""
	text = value.strip()
	if text.startswith(("{", "[")):
		try:
			return json.loads(text)
		except json.JSONDecodeError as e:
			console.print(f"[red]Invalid JSON: {e}[/red]")
			sys.exit(1)

	try:
		return json.loads(Path(value).read_text())
	except OSError as e:
		console.print(f"[red]Cannot read {value}: {e}[/red]")
		sys.exit(1)
	except json.JSONDecodeError as e:
		console.print(f"[red]Invalid JSON in {value}: {e}[/red]")
		sys.exit(1)


def cmd_init(args: argparse.Namespace) -> None:
	"""Create directories, a default config file and the database."""
	config = load_config()
	console.print("[bold]release-planner init[/bold]")
	console.print(f"  Config: {config.config_dir}")
	console.print(f"  Data:   {config.data_dir}")

	if not config.config_file.exists():
		config.config_file.write_text(DEFAULT_CONFIG_TOML)
		console.print(f"  Config file created: {config.config_file}")
	else:
		console.print(f"  Config file exists: {config.config_file}")

	async def create_schema():
		stores = _open_stores(config)
		try:
			await stores.init()
		finally:
			await stores.close()

	asyncio.run(create_schema())
	console.print(f"  Database ready: {config.db_path}")


def _check_config_toml(config_file: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	if not config_file.exists():
		return "not found (optional)", None
	try:
		with open(config_file, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		return f"INVALID ({e})", f"config.toml parse error: {e}"


def _check_database(config: Config) -> tuple[str, str | None]:
	"""Open the database and count plans. Returns (status, issue_or_none)."""
	if not config.db_path.exists():
		return "not created (run 'release-planner init')", "database missing"

	async def count():
		stores = _open_stores(config)
		try:
			return len(await stores.plans.list_plans())
		finally:
			await stores.close()

	try:
		return f"OK ({asyncio.run(count())} plans)", None
	except Exception as e:
		return f"FAILED ({e})", f"database unreadable: {e}"


def _check_server_startup() -> tuple[str, str | None]:
	"""Try importing and counting registered tools. Returns (status, issue_or_none)."""
	try:
		from .server import mcp as server_instance
		# FastMCP stores tools internally - count them
		tools = server_instance._tool_manager._tools
		return f"OK ({len(tools)} tools registered)", None
	except Exception as e:
		return f"FAILED ({e})", f"Server startup failed: {e}"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("release-planner doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	toml_status, toml_issue = _check_config_toml(config.config_file)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	print(f"    max_save_attempts:   {config.max_save_attempts}")
	print(f"    stamp_tolerance_ms:  {config.stamp_tolerance_ms}")
	print()

	print("  Database:")
	db_status, db_issue = _check_database(config)
	print(f"    {db_status}")
	if db_issue:
		issues.append(db_issue)
	print()

	print("  Server:")
	server_status, server_issue = _check_server_startup()
	print(f"    {server_status}")
	if server_issue:
		issues.append(server_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


async def _import_data(config: Config, data: dict) -> dict[str, int]:
	stores = _open_stores(config)
	counts = {"products": 0, "features": 0, "plans": 0, "skipped": 0}
	try:
		for raw in data.get("products", []):
			await stores.products.create_product(Product.model_validate(raw))
			counts["products"] += 1
		for raw in data.get("features", []):
			await stores.features.create_feature(Feature.model_validate(raw))
			counts["features"] += 1
		for raw in data.get("plans", []):
			try:
				await stores.plans.create_plan(Plan.model_validate(raw))
				counts["plans"] += 1
			except DuplicateNameError as e:
				console.print(f"  [yellow]Skipped:[/yellow] {e.message}")
				counts["skipped"] += 1
	finally:
		await stores.close()
	return counts


def cmd_import(args: argparse.Namespace) -> None:
	"""Import products, features and plans from a JSON document."""
	config = load_config()
	data = _load_json_arg(args.file)
	if not isinstance(data, dict):
		console.print("[red]Expected an object with 'products', 'features' and/or 'plans' lists[/red]")
		sys.exit(1)

	try:
		counts = asyncio.run(_import_data(config, data))
	except ValueError as e:
		console.print(f"[red]Invalid record: {e}[/red]")
		sys.exit(1)

	console.print(
		f"Imported {counts['products']} products, {counts['features']} features, "
		f"{counts['plans']} plans ({counts['skipped']} skipped)"
	)


def cmd_list(args: argparse.Namespace) -> None:
	"""List release plans."""
	from .visualizer.plan_view import render_plan_list

	config = load_config()
	status = PlanStatus(args.status) if args.status else None

	async def load():
		stores = _open_stores(config)
		try:
			return await stores.plans.list_plans(status=status, product_id=args.product)
		finally:
			await stores.close()

	render_plan_list(asyncio.run(load()), console=console)


def cmd_show(args: argparse.Namespace) -> None:
	"""Show one release plan."""
	from .visualizer.plan_view import render_plan

	config = load_config()

	async def load():
		stores = _open_stores(config)
		try:
			return await stores.plans.get(args.plan_id)
		finally:
			await stores.close()

	try:
		plan = asyncio.run(load())
	except StoreError as e:
		console.print(f"[red]{classify_error(e).user_message}[/red]")
		sys.exit(1)

	if args.json:
		print(plan.model_dump_json(indent=2))
	else:
		render_plan(plan, console=console)


def cmd_save(args: argparse.Namespace) -> None:
	"""Save a section (or all sections) of a plan from JSON."""
	from .visualizer.plan_view import render_save_report

	config = load_config()
	data = _load_json_arg(args.data)
	if not isinstance(data, dict):
		console.print("[red]Expected a JSON object of plan fields[/red]")
		sys.exit(1)

	async def save():
		stores = _open_stores(config)
		try:
			baseline = PlanBaseline(await stores.plans.get(args.plan_id))
			orchestrator = build_orchestrator(stores, config)
			if args.section == "all":
				return await orchestrator.save_all(baseline, data)
			return await orchestrator.save_section(baseline, args.section, data)
		finally:
			await stores.close()

	try:
		report = asyncio.run(save())
	except SaveError as e:
		console.print(f"[red]Save failed:[/red] {e}")
		sys.exit(1)
	except StoreError as e:
		console.print(f"[red]{classify_error(e).user_message}[/red]")
		sys.exit(1)

	render_save_report(report, console=console)
	if not report.fully_applied:
		sys.exit(2)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def main() -> None:
	"""CLI entry point."""
	load_dotenv()

	parser = argparse.ArgumentParser(
		prog="release-planner",
		description="Release planning: section-wise plan saves with optimistic locking",
	)
	subparsers = parser.add_subparsers(dest="command")

	# init
	init_parser = subparsers.add_parser("init", help="Create config, data directory and database")
	init_parser.set_defaults(func=cmd_init)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	# import
	import_parser = subparsers.add_parser("import", help="Import products, features and plans from JSON")
	import_parser.add_argument("file", help="JSON file (or inline JSON)")
	import_parser.set_defaults(func=cmd_import)

	# list
	list_parser = subparsers.add_parser("list", help="List release plans")
	list_parser.add_argument(
		"--status", choices=[s.value for s in PlanStatus], default=None, help="Filter by status"
	)
	list_parser.add_argument("--product", default=None, help="Filter by product ID")
	list_parser.set_defaults(func=cmd_list)

	# show
	show_parser = subparsers.add_parser("show", help="Show a release plan")
	show_parser.add_argument("plan_id", help="Plan ID")
	show_parser.add_argument("--json", action="store_true", help="Print the plan as JSON")
	show_parser.set_defaults(func=cmd_show)

	# save
	save_parser = subparsers.add_parser("save", help="Save a plan section from JSON")
	save_parser.add_argument("plan_id", help="Plan ID")
	save_parser.add_argument(
		"section",
		choices=[s.value for s in PlanSection] + ["all"],
		help="Section to save, or 'all' for a full-plan commit",
	)
	save_parser.add_argument("data", help="JSON object of plan fields (inline or file path)")
	save_parser.set_defaults(func=cmd_save)

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	if args.command != "serve":
		config = load_config()
		setup_logging(level=config.log_level, log_dir=config.log_dir, console=False)

	args.func(args)
