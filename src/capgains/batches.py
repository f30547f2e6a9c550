"""Splitting free-form input into batches and serializing their results."""

import json
import warnings

from .config import TaxSettings
from .operations import InputFormatError, Operation, operations_from_json, reject_constant
from .taxes import BLOCKED_MESSAGE, TaxResult, calculate_batches


def _scan_arrays(text: str) -> list[str]:
    """Return every top-level ``[...]`` substring of text.

    Brackets inside JSON strings do not count. An unterminated array runs to
    the end of the text so that it is reported as invalid.
    """
    arrays: list[str] = []
    depth = 0
    start = 0
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and depth > 0:
            in_string = True
        elif char == "[":
            if depth == 0:
                start = index
            depth += 1
        elif char == "]" and depth > 0:
            depth -= 1
            if depth == 0:
                arrays.append(text[start:index + 1])

    if depth > 0:
        arrays.append(text[start:])

    return arrays


def extract_json_arrays(text: str) -> list[str]:
    """
    Extract the JSON array literals contained in free-form text.

    Args:
        text: Raw input, possibly holding several arrays separated by
            newlines or other text.

    Returns:
        The array literals in order of appearance.

    Raises:
        InputFormatError: If no array is found, or an array is not valid
            JSON (reported with its 1-based position).
    """
    arrays = _scan_arrays(text)
    if not arrays:
        raise InputFormatError("No valid JSON arrays found in input")

    for position, array in enumerate(arrays, start=1):
        try:
            json.loads(array, parse_constant=reject_constant)
        except ValueError:
            raise InputFormatError(f"Invalid JSON array at position {position}")

    return arrays


def parse_batches(text: str) -> list[list[Operation]]:
    """
    Parse free-form input into batches of operations.

    Parsing is all-or-nothing: the first invalid batch aborts the whole
    input.

    Raises:
        InputFormatError: If any batch cannot be parsed.
    """
    batches: list[list[Operation]] = []
    for position, array in enumerate(extract_json_arrays(text), start=1):
        batch = operations_from_json(array)
        if not batch:
            warnings.warn(f"Batch at position {position} contains no operations.", UserWarning)
        batches.append(batch)
    return batches


def results_to_json(results: list[TaxResult]) -> str:
    """Serialize the results of one batch as a compact JSON array."""
    return json.dumps([result.to_dict() for result in results], separators=(",", ":"))


def process_input(
    text: str,
    settings: TaxSettings | None = None,
    max_workers: int | None = None
) -> list[str]:
    """
    Run the whole pipeline: parse every batch, evaluate them, serialize.

    Args:
        text: Raw input text.
        settings: Tax parameters. Defaults to TaxSettings().
        max_workers: Thread pool size for evaluating batches concurrently.

    Returns:
        One JSON line per input batch, in input order.

    Raises:
        InputFormatError: If the input is invalid; nothing is produced then.
    """
    batches = parse_batches(text)
    all_results = calculate_batches(batches, settings, max_workers=max_workers)

    for position, results in enumerate(all_results, start=1):
        blocked = sum(1 for result in results if result.error == BLOCKED_MESSAGE)
        if blocked:
            warnings.warn(
                f"Batch at position {position} was blocked after repeated errors; "
                f"{blocked} operation(s) were rejected.",
                UserWarning
            )

    return [results_to_json(results) for results in all_results]
