#!/usr/bin/env python3
"""Main entry point for the capgains CLI."""

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version


def installed_version():
    """Return the installed capgains version, or "unknown" when running from a checkout."""
    try:
        return version("capgains")
    except PackageNotFoundError:
        return "unknown"


def main(argv=None):
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Args:
        argv: Argument list. Defaults to sys.argv[1:].

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="capgains",
        description="Capital-gains tax calculator for buy/sell stock operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  capgains calculate < input.txt                 Print one JSON result line per batch
  capgains calculate input.txt --workers 4       Evaluate batches concurrently
  capgains calculate input.txt --rounding truncate --decimal-places 1
  capgains report input.txt                      Show a step-by-step table per batch
  capgains --version                             Show the installed version
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {installed_version()}",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    # Import subcommand modules and register them
    from .calculate import register_subcommand as register_calculate
    from .report import register_subcommand as register_report

    register_calculate(subparsers)
    register_report(subparsers)

    args = parser.parse_args(argv)

    # If no command specified, show help
    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
