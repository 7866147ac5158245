#!/usr/bin/env python3
"""CLI entry point for the package driver.

Usage:
    package help
    package build [options] [--] [package...]
    package install [options] [--] [package...]
    package list
    package validate

The manifest is read from $PACKAGE_DIRECTORY/PACKAGES (default
/etc/package/PACKAGES).
"""

import argparse
import json
import logging
import sys
from typing import Optional

from config import FAILURE_POLICIES, ConfigError, load_config
from dispatcher import Dispatcher
from manifest import load_entries, validate_manifest

LOG_PREFIX = '\033[1;33mPACKAGE:\033[0m '
STDERR_FD = 2

# Commands shown by 'help'
COMMANDS = {
    "help": "Show this help.",
    "build package...": "Build each package listed, or build every package if none listed.",
    "install package...": "Install each package listed, or install every package if none listed.",
    "list": "List the packages in the manifest.",
    "validate": "Check the manifest for framing errors.",
}

logger = logging.getLogger(__name__)

_handler: Optional[logging.Handler] = None


def configure_logging(verbose: bool = False, stream=None) -> None:
    """Send log lines to stdout (or stream) with the PACKAGE: prefix."""
    global _handler
    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_PREFIX + '%(message)s'))
    root_logger.addHandler(_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def print_usage() -> None:
    """Log the command summary."""
    logger.info("Commands:")
    logger.info("")
    for command, desc in COMMANDS.items():
        logger.info(f"{command:<18} {desc}")


def _operation_parser(operation: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"package {operation}",
        description=f"{operation.capitalize()} each package listed, or every package if none listed",
    )
    parser.add_argument(
        'packages', nargs='*',
        help="Package names (default: all). Put names starting with '-' after '--'"
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the script each package would run without running it'
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs go to stderr)'
    )
    parser.add_argument(
        '--on-failure',
        choices=FAILURE_POLICIES,
        help='What to do when a package script fails (default: from package.yaml, else warn)'
    )
    return parser


def operate(operation: str, argv: list) -> int:
    """Handle 'build' and 'install'.

    Returns:
        Exit code (1 on fatal error or when the stop policy ended the run)
    """
    args = _operation_parser(operation).parse_args(argv)
    configure_logging(args.verbose, sys.stderr if args.json_output else None)

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Error: {e}")
        return 1

    # With --json-output, stdout carries only the report
    dispatcher = Dispatcher(
        config=config,
        operation=operation,
        on_failure=args.on_failure,
        dry_run=args.dry_run,
        stdout=STDERR_FD if args.json_output else None,
    )
    try:
        dispatcher.run(args.packages)
        rc = 1 if dispatcher.stopped else 0
    except ConfigError as e:
        logger.error(f"Error: {e}")
        rc = 1

    if args.json_output:
        print(json.dumps(dispatcher.report.to_dict(), indent=2))

    return rc


def list_packages(_command: str, argv: list) -> int:
    """Handle 'list': print package names in manifest order."""
    parser = argparse.ArgumentParser(prog="package list", description="List manifest packages")
    parser.parse_args(argv)
    try:
        entries = load_entries(load_config().manifest_path)
    except ConfigError as e:
        logger.error(f"Error: {e}")
        return 1
    for entry in entries:
        print(entry.name)
    return 0


def validate(_command: str, argv: list) -> int:
    """Handle 'validate': report manifest framing errors."""
    parser = argparse.ArgumentParser(prog="package validate", description="Validate the manifest")
    parser.parse_args(argv)
    try:
        path = load_config().manifest_path
        errors = validate_manifest(path)
    except ConfigError as e:
        logger.error(f"Error: {e}")
        return 1
    if errors:
        logger.error(f"{path}: {len(errors)} problem(s)")
        for error in errors:
            logger.error(f"  ✗ {error}")
        return 1
    logger.info(f"{path}: OK")
    return 0


HANDLERS = {
    "build": operate,
    "install": operate,
    "list": list_packages,
    "validate": validate,
}


def main(argv: Optional[list] = None) -> int:
    """CLI entry point: dispatch on the first argument."""
    if argv is None:
        argv = sys.argv[1:]
    configure_logging()

    if not argv:
        logger.info("No command!")
        return 1

    command, rest = argv[0], argv[1:]

    if command == "help":
        print_usage()
        return 0
    handler = HANDLERS.get(command)
    if handler is not None:
        try:
            return handler(command, rest)
        except SystemExit as e:
            # argparse exits on --help (0) and on usage errors (2)
            return e.code if isinstance(e.code, int) else 1

    logger.info(f"Unknown command: {command}")
    return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    run()
