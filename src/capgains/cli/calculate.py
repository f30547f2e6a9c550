#!/usr/bin/env python3
"""Calculate subcommand - Print the tax of every operation, one JSON line per batch."""

import sys
import warnings

from dotenv import load_dotenv

load_dotenv()

from ..batches import process_input
from ..config import RoundingMode, SymbolTracking, TaxSettings, load_settings
from ..operations import InputFormatError
from rich.console import Console
from rich.markup import escape


def add_tax_arguments(parser):
    """Add the input and tax-rule options shared by calculate and report.

    Args:
        parser: The subcommand parser to extend.
    """
    parser.add_argument(
        "filename",
        nargs="?",
        help="File holding one or more JSON arrays of operations (default: stdin)",
    )
    parser.add_argument(
        "--rounding",
        choices=[mode.value for mode in RoundingMode],
        help="Rounding applied to every currency value (default: half-up, or CAPGAINS_ROUNDING)",
    )
    parser.add_argument(
        "--decimal-places",
        type=int,
        help="Decimal places currency values are rounded to (default: 2, or CAPGAINS_DECIMAL_PLACES)",
    )
    parser.add_argument(
        "--max-errors",
        type=int,
        help="Errors after which the rest of a batch is blocked, 0 disables (default: 3, or CAPGAINS_MAX_ERRORS)",
    )
    parser.add_argument(
        "--per-symbol",
        choices=[tracking.value for tracking in SymbolTracking],
        help="Track positions per symbol (default: auto, or CAPGAINS_PER_SYMBOL)",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress warnings",
    )


def settings_from_args(args) -> TaxSettings:
    """Load settings from the environment and apply command-line overrides.

    Raises:
        ValueError: If the environment or the flags hold invalid values.
    """
    return load_settings().with_overrides(
        rounding=RoundingMode(args.rounding) if args.rounding else None,
        decimal_places=args.decimal_places,
        max_errors=args.max_errors,
        symbol_tracking=SymbolTracking(args.per_symbol) if args.per_symbol else None,
    )


def read_input(filename: str | None) -> str:
    """Read the raw input text from a file, or from stdin when no file is given."""
    if filename is None:
        return sys.stdin.read().strip()
    with open(filename, "r") as f:
        return f.read().strip()


def register_subcommand(subparsers):
    """Register the calculate subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "calculate",
        help="Calculate capital-gains tax for each operation",
        description=(
            "Read one or more JSON arrays of buy/sell operations and print, for each "
            "array, a JSON array with the tax (or error) of every operation."
        ),
    )
    add_tax_arguments(parser)
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Evaluate independent batches on this many threads",
    )
    parser.set_defaults(func=run)


def run(args):
    """Calculate taxes and print one JSON line per input batch.

    Nothing is printed to stdout when the input is invalid.

    Args:
        args: Parsed argparse namespace.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    error_console = Console(stderr=True)

    with warnings.catch_warnings():
        if args.quiet:
            warnings.simplefilter("ignore", UserWarning)
        try:
            settings = settings_from_args(args)
            text = read_input(args.filename)
            lines = process_input(text, settings, max_workers=args.workers)
        except (InputFormatError, ValueError, OSError) as e:
            error_console.print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

    for line in lines:
        sys.stdout.write(line)
        sys.stdout.write("\n")
    return 0
