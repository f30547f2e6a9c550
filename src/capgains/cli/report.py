#!/usr/bin/env python3
"""Report subcommand - Display a step-by-step tax table for each batch."""

import warnings
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

from ..batches import parse_batches
from ..operations import InputFormatError
from ..taxes import TaxEngine, TaxResult
from .calculate import add_tax_arguments, read_input, settings_from_args
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table


def register_subcommand(subparsers):
    """Register the report subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "report",
        help="Display a step-by-step tax report",
        description=(
            "Display, for each batch, every operation with its tax or error, the "
            "position left after it, and the accumulated loss carried forward."
        ),
    )
    add_tax_arguments(parser)
    parser.set_defaults(func=run)


def build_batch_table(engine: TaxEngine, operations, title: str) -> tuple[Table, list[TaxResult]]:
    """Evaluate a batch with the given engine and tabulate each step.

    Args:
        engine: A fresh engine for the batch.
        operations: The batch's operations, in order.
        title: Table title.

    Returns:
        A rich Table with one row per operation, and the results.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Operation")
    table.add_column("Symbol")
    table.add_column("Unit Cost", justify="right")
    table.add_column("Quantity", justify="right")
    table.add_column("Result", justify="right")
    table.add_column("Held", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Accumulated Loss", justify="right")

    results: list[TaxResult] = []
    for index, operation in enumerate(operations, start=1):
        result = engine.process(operation)
        results.append(result)
        position = engine.tracker.position_for(operation)

        if result.is_error:
            result_text = f"[red]{escape(result.error)}[/red]"
        elif result.tax:
            result_text = f"[yellow]{result.tax:,}[/yellow]"
        else:
            result_text = f"[green]{result.tax:,}[/green]"

        table.add_row(
            str(index),
            operation.operation_type.value.upper(),
            operation.symbol or "-",
            f"{operation.unit_cost:,}",
            f"{operation.quantity:,}",
            result_text,
            f"{position.quantity:,}",
            f"{position.weighted_average_cost:,.2f}",
            f"{engine.tracker.accumulated_loss:,}",
        )

    return table, results


def run(args):
    """Display the tax report of every batch.

    Args:
        args: Parsed argparse namespace.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    console = Console()

    with warnings.catch_warnings():
        if args.quiet:
            warnings.simplefilter("ignore", UserWarning)
        try:
            settings = settings_from_args(args)
            batches = parse_batches(read_input(args.filename))
        except (InputFormatError, ValueError, OSError) as e:
            Console(stderr=True).print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

    for position, operations in enumerate(batches, start=1):
        engine = TaxEngine.for_batch(operations, settings)
        table, results = build_batch_table(engine, operations, f"Batch {position}")
        console.print(table)

        total_tax = sum((r.tax for r in results if r.tax is not None), Decimal("0"))
        errors = sum(1 for r in results if r.is_error)
        status = "[red]blocked[/red]" if engine.is_blocked else "[green]active[/green]"
        console.print(f"Total tax: [bold]{total_tax:,}[/bold]   Errors: {errors}   Status: {status}")
        console.print()

    console.print(
        Panel(
            f"Tax rate: {settings.tax_rate:.0%}   Threshold: {settings.tax_threshold:,}   "
            f"Rounding: {settings.rounding.value} to {settings.decimal_places} place(s)   "
            f"Blocking after: {settings.max_errors or 'disabled'}",
            title="Settings",
        )
    )
    return 0
