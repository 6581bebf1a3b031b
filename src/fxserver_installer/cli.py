"""Command line interface for the FXServer installer."""

from __future__ import annotations

import argparse
import getpass
import json
import pathlib
import shlex
import sys
from typing import Dict, Iterable, List, Optional

import yaml

from .config import SERVER_TYPES, InstallerSettings
from .errors import ConfigurationError, InstallerError, MalformedRecipe, ProviderError
from .execution.report import ExecutionReport
from .executor import RecipeExecutor
from .installer import (
    FXServerInstaller,
    InstallResult,
    check_prerequisites,
    launch,
    provision_database,
    required_tools,
)
from .logging_utils import configure_logging
from .models import Recipe
from .providers import Providers
from .recipe import fetch_recipe, load_recipe
from .tasks import registry
from .variables import VariableContext


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fxserver-installer",
        description="Install FXServer and run txAdmin style recipes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute the tasks of a recipe")
    _add_recipe_argument(run_parser)
    run_parser.add_argument(
        "--var",
        action="append",
        dest="variables",
        default=[],
        metavar="NAME=VALUE",
        help="Set a recipe variable (can be used multiple times)",
    )
    run_parser.add_argument(
        "--vars-file",
        help="YAML file with a mapping of recipe variables",
    )
    run_parser.add_argument(
        "--base-dir",
        help="Resolve relative task paths against this directory (defaults to the current directory)",
    )
    run_parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Record failing tasks and keep going instead of aborting",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        help="Timeout in seconds for each network or database call",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and validate every task without executing it",
    )
    run_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the execution report as JSON",
    )

    validate_parser = subparsers.add_parser("validate", help="Load a recipe and list its tasks")
    _add_recipe_argument(validate_parser)

    install_parser = subparsers.add_parser("install", help="Install an FXServer")
    install_parser.add_argument("--config", help="Settings file (YAML)")
    install_parser.add_argument("--server-type", choices=SERVER_TYPES)
    install_parser.add_argument("--server-dir")
    install_parser.add_argument("--license-key")
    install_parser.add_argument("--server-name")
    install_parser.add_argument("--max-clients", type=int)
    install_parser.add_argument(
        "--txadmin",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run the server under txAdmin (always on for ox_core)",
    )
    install_parser.add_argument(
        "--continue-on-error",
        action="store_true",
        default=None,
        help="Keep running recipe tasks after a failure",
    )
    install_parser.add_argument(
        "--with-database",
        action="store_true",
        help="Create a MariaDB database and user for the server",
    )
    install_parser.add_argument(
        "--start",
        action="store_true",
        help="Start the server once the installation is complete",
    )
    install_parser.add_argument(
        "--yes",
        action="store_true",
        help="Proceed with the installation (without it only the plan is shown)",
    )
    install_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the installation result as JSON",
    )
    return parser


def _add_recipe_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("recipe", help="Path or http(s) URL of the recipe (YAML)")


def main(argv: Optional[list[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "run":
        return _handle_run(parser, args)
    if args.command == "validate":
        return _handle_validate(parser, args)
    if args.command == "install":
        return _handle_install(parser, args)

    parser.error("Unsupported command")  # pragma: no cover
    return 2


def _handle_run(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    try:
        recipe = _load(args.recipe)
        variables = _collect_variables(args.vars_file, args.variables)
    except (ConfigurationError, ProviderError) as exc:
        parser.error(str(exc))
        return 2

    base_dir = pathlib.Path(args.base_dir).expanduser() if args.base_dir else None
    providers = Providers()
    executor = RecipeExecutor(
        providers=providers,
        base_dir=base_dir,
        continue_on_error=args.continue_on_error,
        timeout=args.timeout,
        dry_run=args.dry_run,
    )
    try:
        report = executor.run(recipe, variables)
    finally:
        providers.close()

    if args.json:
        print(json.dumps(report.as_dict(), indent=2))
    else:
        _print_report(report, recipe)

    return 0 if report.status.successful else 1


def _handle_validate(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    try:
        recipe = _load(args.recipe)
    except (MalformedRecipe, ProviderError) as exc:
        parser.error(str(exc))
        return 2

    if recipe.name:
        print(f"Recipe: {recipe.name}")
    if recipe.description:
        print(recipe.description)
    print(f"{len(recipe)} task(s):")
    for task in recipe:
        marker = "" if registry.lookup(task.action) else "  (unknown action)"
        print(f"  - {task.summary()}{marker}")

    return 1 if recipe.unknown_tasks() else 0


def _handle_install(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    try:
        settings = InstallerSettings.load(pathlib.Path(args.config) if args.config else None)
        settings = settings.with_overrides(
            {
                "server_type": args.server_type,
                "server_dir": args.server_dir,
                "license_key": args.license_key,
                "server_name": args.server_name,
                "max_clients": args.max_clients,
                "txadmin": args.txadmin,
                "continue_on_error": args.continue_on_error,
            }
        )
        check_prerequisites(required_tools(settings, launching=args.start))
    except ConfigurationError as exc:
        parser.error(str(exc))
        return 2

    providers = Providers()
    try:
        return _install(FXServerInstaller(settings, providers=providers), args)
    finally:
        providers.close()


def _install(installer: FXServerInstaller, args: argparse.Namespace) -> int:
    for line in installer.plan():
        print(line)
    if not args.yes:
        print("\nRe-run with --yes to proceed with the installation.")
        return 0

    settings = installer.settings
    try:
        credentials = None
        if args.with_database:
            credentials = provision_database(settings, _prompt_root_password)
        result = installer.install(credentials=credentials)
    except (InstallerError, OSError) as exc:
        print(f"Installation failed: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.as_dict(), indent=2))
    else:
        _print_install_result(result)

    if not result.succeeded:
        return 1
    if args.start:
        try:
            return launch(settings)
        except InstallerError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    return 0


def _load(source: str) -> Recipe:
    if source.startswith(("http://", "https://")):
        return fetch_recipe(source)
    return load_recipe(pathlib.Path(source).expanduser())


def _collect_variables(vars_file: Optional[str], assignments: Iterable[str]) -> VariableContext:
    variables = VariableContext()
    if vars_file:
        variables.update(_read_vars_file(pathlib.Path(vars_file)))
    for assignment in assignments:
        name, separator, value = assignment.partition("=")
        if not separator or not name.strip():
            raise ConfigurationError(f"Invalid variable assignment '{assignment}' (expected NAME=VALUE)")
        variables.set(name.strip(), value)
    return variables


def _read_vars_file(path: pathlib.Path) -> Dict[str, object]:
    if not path.exists():
        raise ConfigurationError(f"Variables file does not exist: {path}")
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Variables file {path} is not valid YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError("Variables file must define a mapping at the top level")
    return {str(key): value for key, value in payload.items()}


def _prompt_root_password(attempt: int) -> str:
    prompt = "MariaDB root password: " if attempt == 1 else "Invalid password, try again: "
    return getpass.getpass(prompt)


def _print_report(report: ExecutionReport, recipe: Recipe) -> None:
    header = f"Recipe '{recipe.name}'" if recipe.name else "Recipe"
    print(f"{header}: {report.status.value}")
    for result in report.tasks:
        print(f"  [{result.index}] {result.action}: {result.outcome.value}")
        if result.message:
            print(f"      {result.message}")

    pending: List[int] = [
        index for index in range(report.total_tasks) if index not in report.executed_indexes
    ]
    if pending:
        print("\nNot executed:")
        for index in pending:
            print(f"  - task {index}")
    if report.failed_index is not None:
        print(f"\nAborted at task {report.failed_index}.")
    if report.warnings:
        print(f"{len(report.warnings)} task(s) skipped because their action is unknown.")


def _print_install_result(result: InstallResult) -> None:
    print(f"\nInstalled build: {result.build_url}")
    print(f"Server data:     {result.data_dir}")
    if result.credentials is not None:
        credentials = result.credentials
        print("\nDatabase credentials (store them securely):")
        print(f"  Database: {credentials.name}")
        print(f"  User:     {credentials.user}")
        print(f"  Password: {credentials.password}")
    if result.report is not None:
        print(f"\nRecipe status: {result.report.status.value}")
        for task in result.report.errors:
            print(f"  task {task.index} ({task.action}) failed: {task.message}")
    print("\nTo start your server later, run:")
    print(f"  cd {shlex.quote(str(result.data_dir))} && {shlex.join(result.launch_command)}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
