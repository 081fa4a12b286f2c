# CLI interface for mcpp
import argparse
import logging
import sys
import warnings
from collections.abc import Iterable
from pathlib import Path

from mcpp import __version__
from mcpp.bundles import BundleRegistryError, BundleValidationError
from mcpp.doppler import DopplerSource
from mcpp.env import parse_env_pairs
from mcpp.manager import ApplyResult, ProjectExistsError, ProjectManager
from mcpp.merge import WritePlan
from mcpp.platforms import CommandPlan
from mcpp.project import ProjectNotInitializedError, ProjectStateError

# ABOUTME: Exit codes
# 0 = success, 1 = partial success, 2 = config error, 3 = fatal
EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_CONFIG_ERROR = 2
EXIT_FATAL = 3

STATUS_SYMBOLS = {
    "created": "✓",
    "updated": "✓",
    "applied": "✓",
    "unchanged": "=",
    "create": "+",
    "update": "~",
    "skipped": "⊘",
    "failed": "✗",
}


def split_ids(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated and comma-separated id arguments.

    Examples:
        >>> split_ids(["cursor,warp", "windsurf"])
        ['cursor', 'warp', 'windsurf']
    """
    ids: list[str] = []
    for value in values or []:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


def _doppler_from_args(args: argparse.Namespace) -> DopplerSource | None:
    if not (args.doppler or args.doppler_project or args.doppler_config):
        return None
    return DopplerSource(project=args.doppler_project, config=args.doppler_config)


def _manager(args: argparse.Namespace) -> ProjectManager:
    return ProjectManager(project_dir=Path(args.project_dir) if args.project_dir else None)


def _print_plan_preview(plan: WritePlan | CommandPlan) -> None:
    print("    ---")
    for line in plan.content.rstrip("\n").splitlines():
        print(f"    {line}")
    print("    ---")


def print_apply_result(result: ApplyResult) -> int:
    """Print an apply outcome and return the matching exit code."""
    descriptor = result.descriptor
    report = result.report

    print(f"Project: {descriptor.name}")
    print(f"  servers: {', '.join(descriptor.servers) or '(none)'}")
    print(f"  IDEs: {', '.join(descriptor.ides) or '(none)'}")
    if result.added:
        print(f"  added: {', '.join(result.added)}")
    if result.removed:
        print(f"  removed: {', '.join(result.removed)}")
    if result.unchanged:
        print(f"  already configured / not present: {', '.join(result.unchanged)}")
    print()

    if not report.plans and not report.results:
        print("Nothing to do.")
        return EXIT_SUCCESS

    if result.dry_run:
        print("Dry run: no files will be written.")
    print("Configuring IDEs...")

    for plan, outcome in zip(report.plans, report.results[-len(report.plans):] if report.plans else []):
        symbol = STATUS_SYMBOLS.get(outcome.status, "-")
        where = str(outcome.path) if outcome.path else f"{plan.target_id} CLI"
        line = f"  {symbol} {outcome.target_id} ({outcome.scope}) {outcome.status}: {where}"
        if outcome.message:
            line += f" - {outcome.message}"
        print(line)
        if result.dry_run and outcome.status not in ("unchanged", "skipped"):
            _print_plan_preview(plan)

    for outcome in report.results[: len(report.results) - len(report.plans)]:
        print(f"  ✗ {outcome.target_id} failed - {outcome.message}")

    if result.env_template is not None and result.env_template.changed:
        verb = "Would write" if result.dry_run else "Wrote"
        print(f"  {verb} env template: {result.env_template.path}")

    for note in report.notes:
        print(f"  Note: {note}")

    if result.env.missing:
        print()
        print("Missing environment variables:")
        for server_id, keys in result.env.missing.items():
            print(f"  {server_id}: {', '.join(keys)}")

    print()
    if result.dry_run:
        print("Project state that would be written:")
        for line in result.state_content.rstrip("\n").splitlines():
            print(f"    {line}")
        print()

    if report.errors:
        for error_msg in report.errors:
            print(f"  Error: {error_msg}")
        print()
        print(
            f"Done with errors: {report.targets_synced}/{report.targets_total} "
            f"IDE(s) configured, {len(report.errors)} error(s)"
        )
        return EXIT_PARTIAL

    print(f"Done: {report.targets_synced}/{report.targets_total} IDE(s) configured")
    return EXIT_SUCCESS


def cmd_init(args: argparse.Namespace) -> int:
    """Execute init command.

    ABOUTME: Non-interactive; defaults to the essential bundle and cursor
    """
    print(f"mcpp init v{__version__}")
    print()

    result = _manager(args).init_project(
        name=args.name,
        bundles=split_ids(args.bundle),
        servers=split_ids(args.servers),
        ides=split_ids(args.ides),
        env=parse_env_pairs(args.env or []),
        doppler=_doppler_from_args(args),
        force=args.force,
        dry_run=args.dry_run,
    )
    return print_apply_result(result)


def cmd_add(args: argparse.Namespace) -> int:
    print(f"mcpp add v{__version__}")
    print()

    result = _manager(args).add_servers(
        servers=split_ids(args.servers),
        bundles=split_ids(args.bundle),
        env=parse_env_pairs(args.env or []),
        doppler=_doppler_from_args(args),
        dry_run=args.dry_run,
    )
    return print_apply_result(result)


def cmd_remove(args: argparse.Namespace) -> int:
    print(f"mcpp remove v{__version__}")
    print()

    result = _manager(args).remove_servers(
        servers=split_ids(args.servers),
        env=parse_env_pairs(args.env or []),
        doppler=_doppler_from_args(args),
        dry_run=args.dry_run,
    )
    return print_apply_result(result)


def cmd_sync(args: argparse.Namespace) -> int:
    print(f"mcpp sync v{__version__}")
    print()

    result = _manager(args).sync_configs(
        ides=split_ids(args.ides) or None,
        env=parse_env_pairs(args.env or []),
        doppler=_doppler_from_args(args),
        dry_run=args.dry_run,
    )
    return print_apply_result(result)


def cmd_migrate(args: argparse.Namespace) -> int:
    """Execute migrate command.

    ABOUTME: Builds the project from servers found in user-level IDE configs
    """
    print(f"mcpp migrate v{__version__}")
    print()

    manager = _manager(args)
    print("Scanning IDE configurations...")
    result = manager.migrate_from_global(
        name=args.name,
        env=parse_env_pairs(args.env or []),
        doppler=_doppler_from_args(args),
        dry_run=args.dry_run,
    )
    if result is None:
        print("  No existing MCP configuration found in any IDE.")
        return EXIT_SUCCESS
    print()
    return print_apply_result(result)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command.

    ABOUTME: Shows project servers, all available servers, or bundles
    """
    print(f"mcpp list v{__version__}")
    print()

    manager = _manager(args)
    catalog = manager.catalog

    if args.bundles:
        print("Server bundles:")
        print()
        for bundle in manager.list_bundles():
            tag = " [custom]" if bundle.custom else ""
            print(f"  {bundle.id}{tag}")
            print(f"    {bundle.description}")
            print(f"    servers: {', '.join(bundle.servers)}")
            print()
        return EXIT_SUCCESS

    if args.available:
        print("Available servers:")
        for category in ("core", "integration", "specialized"):
            print()
            print(f"  {category}:")
            for server in catalog.servers.values():
                if server.category != category:
                    continue
                env_note = " (requires env)" if server.required_env else ""
                print(f"    {server.id} - {server.description}{env_note}")
        print()
        print(f"Total: {len(catalog.servers)} server(s)")
        return EXIT_SUCCESS

    descriptor = manager.load_project()
    print(f"Project: {descriptor.name}")
    print(f"  created: {descriptor.created}")
    print(f"  updated: {descriptor.updated}")
    print()
    print("Servers:")
    for server_id in descriptor.servers:
        server = catalog.servers.get(server_id)
        description = server.description if server else "Unknown"
        env_note = f" (env: {', '.join(server.required_env)})" if server and server.required_env else ""
        print(f"  {server_id} - {description}{env_note}")
    print()
    print(f"IDEs: {', '.join(descriptor.ides) or '(none)'}")
    print()
    print(f"Total: {len(descriptor.servers)} server(s)")
    return EXIT_SUCCESS


def cmd_bundle(args: argparse.Namespace) -> int:
    """Execute bundle subcommands (create, list, remove)."""
    print(f"mcpp bundle v{__version__}")
    print()

    manager = _manager(args)

    if args.bundle_command == "create":
        servers = split_ids(args.servers) if args.servers else None
        bundle = manager.create_bundle(
            args.name,
            description=args.description,
            servers=servers,
            dry_run=args.dry_run,
        )
        verb = "Would save" if args.dry_run else "Saved"
        print(f"{verb} custom bundle '{bundle.id}' to {manager.bundle_store.path}")
        print(f"  servers: {', '.join(bundle.servers)}")
        return EXIT_SUCCESS

    if args.bundle_command == "remove":
        if manager.remove_bundle(args.name):
            print(f"Removed custom bundle '{args.name}'.")
            return EXIT_SUCCESS
        print(f"Custom bundle '{args.name}' not found.")
        return EXIT_CONFIG_ERROR

    bundles = manager.bundle_store.list_bundles()
    if not bundles:
        print("No custom bundles. Create one with 'mcpp bundle create NAME'.")
        return EXIT_SUCCESS
    for bundle in bundles:
        print(f"  {bundle.id}")
        print(f"    {bundle.description}")
        print(f"    servers: {', '.join(bundle.servers)}")
        if bundle.created:
            print(f"    created: {bundle.created}")
    print()
    print(f"Total: {len(bundles)} custom bundle(s)")
    return EXIT_SUCCESS


def _print_warning(message, category, filename, lineno, file=None, line=None) -> None:
    print(f"  Warning: {message}")


def _add_apply_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be written without changing any file"
    )
    parser.add_argument(
        "--env", "-e",
        action="append",
        metavar="KEY=VALUE",
        help="Environment value (highest precedence, repeatable)"
    )
    parser.add_argument(
        "--doppler",
        action="store_true",
        help="Also look up env values with the Doppler CLI"
    )
    parser.add_argument(
        "--doppler-project",
        help="Doppler project (implies --doppler)"
    )
    parser.add_argument(
        "--doppler-config",
        help="Doppler config (implies --doppler)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpp",
        description="Project-specific MCP server management for multiple IDEs"
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"mcpp v{__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--project-dir", "-C",
        help="Project directory (defaults to the current directory)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize MCP configuration for this project"
    )
    init_parser.add_argument("--name", "-n", help="Project name (defaults to directory name)")
    init_parser.add_argument(
        "--bundle", "-b",
        action="append",
        help="Server bundle to use (repeatable, comma-separated)"
    )
    init_parser.add_argument(
        "--servers", "-s",
        action="append",
        help="Comma-separated server ids"
    )
    init_parser.add_argument(
        "--ides", "-i",
        action="append",
        help="Comma-separated IDE ids (default: cursor)"
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing project configuration"
    )
    _add_apply_options(init_parser)

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add MCP servers to this project"
    )
    add_parser.add_argument("servers", nargs="*", help="Server ids to add")
    add_parser.add_argument(
        "--bundle", "-b",
        action="append",
        help="Add every server of a bundle (repeatable)"
    )
    _add_apply_options(add_parser)

    # remove command
    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove MCP servers from this project"
    )
    remove_parser.add_argument("servers", nargs="+", help="Server ids to remove")
    _add_apply_options(remove_parser)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List project servers, available servers or bundles"
    )
    list_group = list_parser.add_mutually_exclusive_group()
    list_group.add_argument("--available", "-a", action="store_true", help="Show all available servers")
    list_group.add_argument("--bundles", "-b", action="store_true", help="Show server bundles")

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Synchronize IDE configurations with the project"
    )
    sync_parser.add_argument(
        "--ides", "-i",
        action="append",
        help="Comma-separated IDE ids to sync (added to the project)"
    )
    _add_apply_options(sync_parser)

    # migrate command
    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Create project configuration from existing IDE configurations"
    )
    migrate_parser.add_argument("--name", "-n", help="Project name for a new project")
    _add_apply_options(migrate_parser)

    # bundle command
    bundle_parser = subparsers.add_parser(
        "bundle",
        help="Manage custom server bundles"
    )
    bundle_sub = bundle_parser.add_subparsers(dest="bundle_command")

    create_parser = bundle_sub.add_parser("create", help="Save a custom bundle")
    create_parser.add_argument("name", help="Bundle name (letters, digits, - and _)")
    create_parser.add_argument("--description", "-d", help="Bundle description")
    create_parser.add_argument(
        "--servers", "-s",
        action="append",
        help="Comma-separated server ids (default: the project's servers)"
    )
    create_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and show the bundle without saving it"
    )

    bundle_sub.add_parser("list", help="List custom bundles")

    bundle_remove_parser = bundle_sub.add_parser("remove", help="Remove a custom bundle")
    bundle_remove_parser.add_argument("name", help="Bundle name")

    return parser


COMMANDS = {
    "init": cmd_init,
    "add": cmd_add,
    "remove": cmd_remove,
    "list": cmd_list,
    "sync": cmd_sync,
    "migrate": cmd_migrate,
    "bundle": cmd_bundle,
}


def run_command(args: argparse.Namespace) -> int:
    """Dispatch a parsed command and map exceptions to exit codes.

    ABOUTME: User warnings are printed inline as "Warning: ..." lines
    """
    handler = COMMANDS[args.command]

    with warnings.catch_warnings():
        warnings.simplefilter("always", UserWarning)
        warnings.showwarning = _print_warning
        try:
            return handler(args)
        except ProjectNotInitializedError as e:
            print(f"Error: {e}")
            return EXIT_CONFIG_ERROR
        except ProjectExistsError as e:
            print(f"Error: {e}")
            return EXIT_CONFIG_ERROR
        except BundleValidationError as e:
            print(f"Error: {e}")
            return EXIT_CONFIG_ERROR
        except ProjectStateError as e:
            print(f"Error: {e}")
            print()
            print("Fix or remove the project state file; it was left untouched.")
            return EXIT_FATAL
        except BundleRegistryError as e:
            print(f"Error: {e}")
            print()
            print("Fix or remove the custom bundles file; it was left untouched.")
            return EXIT_FATAL
        except Exception as e:
            print(f"Fatal error: {e}")
            return EXIT_FATAL


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    ABOUTME: Parses args and dispatches to appropriate command
    ABOUTME: Returns exit code for sys.exit()
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    if args.command == "bundle" and args.bundle_command is None:
        args.bundle_command = "list"

    return run_command(args)


if __name__ == "__main__":
    sys.exit(main())
