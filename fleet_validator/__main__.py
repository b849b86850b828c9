"""Command-line entry point for Fleet Validator."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from fleet_validator.actions import check_connectivity, run_ansible_pull
from fleet_validator.actions.ansible_pull import DEFAULT_BRANCH
from fleet_validator.checks import ValidationEngine, default_check_groups
from fleet_validator.config import Settings
from fleet_validator.dependencies import RunContext
from fleet_validator.errors import DestructiveNotAllowedError, FleetValidatorError
from fleet_validator.models import CheckResult
from fleet_validator.utils.console import RunFormatter

logger = logging.getLogger("fleet_validator")

DEFAULT_CONFIG = "hosts.yaml"

NOISY_LOGGERS = ["asyncssh", "botocore", "boto3", "urllib3"]


def configure_logging(settings: Settings) -> None:
    """Configure colorful logging for the fleet_validator package."""
    use_colors = settings.log_colors and sys.stderr.isatty()

    package_logger = logging.getLogger("fleet_validator")
    package_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # Only add handler if not already configured
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(RunFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-validator",
        description="Run commands and validation checks against a rollup fleet.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to the fleet YAML file (default: {DEFAULT_CONFIG})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("check", help="Verify connectivity to all nodes")

    exec_parser = subparsers.add_parser("exec", help="Execute a command on all nodes")
    exec_parser.add_argument("args", nargs=argparse.REMAINDER, help="Command to run")

    validate_parser = subparsers.add_parser("validate", help="Run validation checks")
    validate_parser.add_argument(
        "--destructive",
        action="store_true",
        help="Run destructive checks instead (requires allowDestructive in config)",
    )

    pull_parser = subparsers.add_parser("ansible-pull", help="Run ansible-pull on all nodes")
    pull_parser.add_argument(
        "--ansible-pull-branch",
        default=DEFAULT_BRANCH,
        help=f"Branch for ansible-pull (default: {DEFAULT_BRANCH})",
    )
    return parser


async def cmd_check(ctx: RunContext) -> int:
    print("Checking connectivity to all nodes...\n")
    statuses = await check_connectivity(ctx.executor)

    for status in statuses:
        print(f"  {status.format_line()}")
        if status.stderr:
            print(f"    stderr: {status.stderr}")

    print()
    if all(status.reachable for status in statuses):
        print("All nodes reachable.")
        return 0
    print("Some nodes failed connectivity check.")
    return 1


async def cmd_exec(ctx: RunContext, command: str) -> int:
    print(f"Executing on all nodes: {command}\n")
    results = await ctx.executor.exec_on_all(command)

    for node_name, result in results.items():
        print(f"--- {node_name} (exit {result.exit_code}) ---")
        if result.stdout:
            print(result.stdout)
        if result.stderr:
            print(f"stderr: {result.stderr}")
        print()
    return 0


async def cmd_validate(
    ctx: RunContext,
    destructive: bool,
    engine: ValidationEngine | None = None,
) -> int:
    engine = engine if engine is not None else ValidationEngine(default_check_groups())
    kind = "destructive" if destructive else "validation"

    groups = engine.select(destructive)
    if not groups:
        print(f"No {kind} checks registered.")
        return 0

    count = sum(len(group) for group in groups)
    print(f"Running {count} {kind} check(s)...\n")

    def report(result: CheckResult) -> None:
        print(f"  {result.format_line()}", flush=True)

    try:
        outcome = await engine.run_validation(
            ctx.check_context(), destructive=destructive, on_result=report
        )
    except DestructiveNotAllowedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"\n{outcome.passed} passed, {outcome.failed} failed")
    return 0 if outcome.ok else 1


async def cmd_ansible_pull(ctx: RunContext, branch: str) -> int:
    print(f"Running ansible-pull on all nodes (branch: {branch})...\n")

    def stream(node_name: str, chunk: str) -> None:
        for line in chunk.splitlines():
            print(f"[{node_name}] {line}", flush=True)

    outcome = await run_ansible_pull(ctx.executor, branch, on_output=stream)

    print()
    for node_name in ctx.executor.get_node_names():
        if node_name in outcome.errors:
            print(f"  ✗ {node_name}: {outcome.errors[node_name]}")
            continue
        result = outcome.results[node_name]
        icon = "✓" if result.exit_code == 0 else "✗"
        print(f"  {icon} {node_name}: exit {result.exit_code}")

    print()
    if outcome.success:
        print("ansible-pull completed successfully on all nodes.")
        return 0
    print("ansible-pull failed on some nodes.")
    return 1


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Dispatch a parsed command line. The run context is always closed."""
    if args.command == "exec" and not args.args:
        print("Error: exec requires a command argument", file=sys.stderr)
        return 1

    async with RunContext.create(args.config, settings) as ctx:
        if args.command == "check":
            return await cmd_check(ctx)
        if args.command == "exec":
            return await cmd_exec(ctx, " ".join(args.args))
        if args.command == "validate":
            return await cmd_validate(ctx, args.destructive)
        if args.command == "ansible-pull":
            return await cmd_ansible_pull(ctx, args.ansible_pull_branch)

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the command and return the process exit code."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings)

    try:
        return asyncio.run(run(args, settings))
    except FleetValidatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
