# File: schemaforge/cli.py
"""
Schemaforge - Command-Line Interface
====================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # Generate for one table using the profile in the current directory
    schemaforge run clients

    # Registered profile, several tables, answers supplied up front
    schemaforge run -p rust-backend clients orders --set password_reset=1

    # Offline run from a schema snapshot, without touching the terminal
    schemaforge run clients --schema-file schema.yaml --non-interactive

    # Check a profile
    schemaforge validate --profile-file ./Schemaforge.toml

    # Manage registered profiles
    schemaforge config add ./profiles/rust --name rust-backend
    schemaforge config add ./profiles/rust --default
    schemaforge config list
    schemaforge config rm rust-backend

Exit codes:
    0   - success
    1   - profile / validation error
    2   - generation error (run-fatal or target failure)
    3   - reflection / connection error
    4   - input / argument error
    130 - interrupted
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Sequence

from schemaforge.errors import ProfileError, PromptError, ReflectionError, RenderError
from schemaforge.models import DatabaseSchema, Profile, ProfileOverrides, ProfileSettings

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_PROFILE_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_REFLECTION_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4
EXIT_INTERRUPTED: int = 130

PROFILE_ENV: str = "SCHEMAFORGE_PROFILE"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``schemaforge`` logger.

    Args:
        verbosity: -1 = silent, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    ))

    root_logger: logging.Logger = logging.getLogger("schemaforge")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False
    root_logger.disabled = verbosity < 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_profile_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-p", "--profile",
        metavar="NAME",
        default=None,
        help=f"Registered profile name (default: ${PROFILE_ENV}, then ./Schemaforge.toml).",
    )
    group.add_argument(
        "--profile-file",
        metavar="PATH",
        default=None,
        help="Profile file, or a directory containing Schemaforge.toml.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from schemaforge import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="schemaforge",
        description=(
            "Schemaforge - profile-driven code generator.\n\n"
            "Reflects a database table, asks the profile's questions and "
            "renders the profile's templates into files."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"schemaforge {__version__}")

    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress log output.",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    # --- run ---
    run_p = sub.add_parser("run", help="Generate files for one or more tables.")
    run_p.add_argument("tables", nargs="*", metavar="TABLE", help="Table(s) to generate for.")
    _add_profile_args(run_p)
    run_p.add_argument("--dsn", default=None, help="Database URL (overrides the profile).")
    run_p.add_argument("--env-file", default=None, metavar="PATH", help="Env file holding the DSN.")
    run_p.add_argument("--env-var", default=None, metavar="NAME", help="Variable holding the DSN.")
    run_p.add_argument("--target-dir", default=None, metavar="DIR", help="Output root directory.")
    run_p.add_argument(
        "--schema-file",
        default=None,
        metavar="PATH",
        help="Read the schema from a JSON/YAML snapshot instead of a database.",
    )
    run_p.add_argument(
        "--set",
        dest="answers",
        action="append",
        default=[],
        metavar="ID=VALUE",
        help="Answer a prompt up front (repeatable; multi-select values are comma-separated).",
    )
    run_p.add_argument(
        "--non-interactive",
        action="store_true",
        default=False,
        help="Never prompt; fail when an answer is missing.",
    )
    run_p.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Render everything but write no files and run no formatters.",
    )
    run_p.add_argument(
        "--any-success",
        action="store_true",
        default=False,
        help="Exit 0 when at least one target succeeded.",
    )

    # --- validate ---
    val_p = sub.add_parser("validate", help="Check a profile and its templates.")
    _add_profile_args(val_p)

    # --- config ---
    cfg_p = sub.add_parser("config", help="Manage registered profiles.")
    cfg_sub = cfg_p.add_subparsers(dest="config_command", metavar="ACTION")
    cfg_sub.required = True
    add_p = cfg_sub.add_parser("add", help="Register a profile.")
    add_p.add_argument("path", nargs="?", default=".", help="Profile file or directory.")
    add_name = add_p.add_mutually_exclusive_group()
    add_name.add_argument("--name", default=None, help="Name to register under.")
    add_name.add_argument(
        "--default",
        action="store_true",
        help="Register the profile under the name 'default'.",
    )
    cfg_sub.add_parser("list", help="List registered profiles.")
    rm_p = cfg_sub.add_parser("rm", help="Remove a registered profile.")
    rm_p.add_argument("name")

    return parser


# ---------------------------------------------------------------------------
# Profile selection
# ---------------------------------------------------------------------------


def _load_selected_profile(args: argparse.Namespace) -> Profile:
    from schemaforge.profile import load_profile
    from schemaforge.registry import ProfileRegistry

    if args.profile_file:
        return load_profile(Path(args.profile_file))
    name: Optional[str] = args.profile or os.environ.get(PROFILE_ENV)
    if name:
        return ProfileRegistry().load(name)
    return load_profile(Path.cwd())


def _build_overrides(args: argparse.Namespace) -> ProfileOverrides:
    return ProfileOverrides(
        dsn=args.dsn,
        env_file=args.env_file,
        env_var=args.env_var,
        target_dir=args.target_dir,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _obtain_schema(args: argparse.Namespace, settings: ProfileSettings, collector) -> DatabaseSchema:
    from schemaforge.profile import resolve_dsn
    from schemaforge.reflection import (
        database_name,
        load_schema_file,
        reflect_database,
        with_database,
    )

    if args.schema_file:
        return load_schema_file(Path(args.schema_file))

    dsn: str = resolve_dsn(settings, context_dir=Path.cwd())
    if not database_name(dsn):
        name: str = collector.ask_text("Database name", required=True)
        dsn = with_database(dsn, name)
    return reflect_database(dsn)


def _pick_tables(args: argparse.Namespace, schema: DatabaseSchema, collector) -> List[str]:
    from schemaforge.prompts import Choice

    if args.tables:
        return list(args.tables)
    if not schema.tables:
        raise PromptError("The database has no tables.", subject=schema.name or None)
    choices: List[Choice] = [Choice(name, name) for name in schema.table_names]
    return [collector.ask_select("Table", choices, required=True)]


def _cmd_run(args: argparse.Namespace) -> int:
    from schemaforge.generator import ProfileGenerator, SuccessPolicy, overall_success
    from schemaforge.profile import apply_overrides, resolve_target_dir
    from schemaforge.prompts import ConsoleCollector, NonInteractiveCollector, parse_overrides

    try:
        answers: Dict[str, str] = parse_overrides(args.answers)
    except PromptError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR

    try:
        profile: Profile = _load_selected_profile(args)
        settings: ProfileSettings = apply_overrides(profile.settings, _build_overrides(args))
        target_dir: Path = resolve_target_dir(settings, context_dir=Path.cwd())
        collector = NonInteractiveCollector() if args.non_interactive else ConsoleCollector()
        generator: ProfileGenerator = ProfileGenerator.for_profile(
            profile,
            collector,
            target_dir=target_dir,
            policy=SuccessPolicy.ANY if args.any_success else SuccessPolicy.ALL,
            dry_run=args.dry_run,
        )
    except ProfileError as exc:
        logger.error("%s", exc)
        return EXIT_PROFILE_ERROR
    except PromptError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except RenderError as exc:
        logger.error("Cannot load templates: %s", exc)
        return EXIT_PROFILE_ERROR

    try:
        schema: DatabaseSchema = _obtain_schema(args, settings, collector)
    except ProfileError as exc:
        logger.error("%s", exc)
        return EXIT_PROFILE_ERROR
    except PromptError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except ReflectionError as exc:
        logger.error("%s", exc)
        return EXIT_REFLECTION_ERROR

    try:
        tables: List[str] = _pick_tables(args, schema, collector)
    except PromptError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR

    logger.info("Profile: %s", profile.name)
    logger.info("Tables:  %s", ", ".join(tables))
    logger.info("Output:  %s", target_dir)

    reports = generator.run_tables(schema, tables, profile.prompts, profile.targets, answers)
    for report in reports:
        print(report.summary())

    return EXIT_SUCCESS if overall_success(reports) else EXIT_GENERATION_ERROR


def _cmd_validate(args: argparse.Namespace) -> int:
    from schemaforge.validators import validate_profile

    try:
        profile: Profile = _load_selected_profile(args)
    except ProfileError as exc:
        logger.error("%s", exc)
        return EXIT_PROFILE_ERROR

    result = validate_profile(profile)

    print(f"\n{'=' * 50}")
    print("  Profile Validation Report")
    print(f"{'=' * 50}")
    print(f"  Profile:  {profile.name}")
    print(f"  Source:   {profile.source}")
    print(f"  Prompts:  {len(profile.prompts)}")
    print(f"  Targets:  {len(profile.targets)}")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")
    print()
    print(result.format_report())
    print(f"{'=' * 50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_PROFILE_ERROR


def _cmd_config(args: argparse.Namespace) -> int:
    from schemaforge.registry import ProfileRegistry

    registry = ProfileRegistry()
    try:
        if args.config_command == "add":
            name: str = registry.add(Path(args.path), name=args.name, default=args.default)
            print(f"Registered profile '{name}'.")
        elif args.config_command == "rm":
            registry.remove(args.name)
            print(f"Removed profile '{args.name}'.")
        else:
            profiles: Dict[str, str] = registry.list()
            if not profiles:
                print("No profiles registered.")
            for profile_name, path in profiles.items():
                print(f"{profile_name:<24s} {path}")
    except ProfileError as exc:
        logger.error("%s", exc)
        return EXIT_PROFILE_ERROR
    return EXIT_SUCCESS


_COMMANDS = {
    "run": _cmd_run,
    "validate": _cmd_validate,
    "config": _cmd_config,
}


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv*, run the command and return its exit code."""
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    _setup_logging(-1 if args.quiet else args.verbose)

    try:
        exit_code: int = _COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    if exit_code == EXIT_SUCCESS:
        logger.info("'%s' completed successfully.", args.command)
    else:
        logger.error("'%s' failed with exit code %d.", args.command, exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Console-script entry point."""
    sys.exit(main(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "main",
    "EXIT_SUCCESS",
    "EXIT_PROFILE_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_REFLECTION_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_INTERRUPTED",
]

logger.debug("schemaforge.cli loaded.")
