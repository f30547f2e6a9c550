from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

import json

# Upper bound (exclusive) for unit costs and quantities
MAX_MAGNITUDE = Decimal("1E+30")


class InputFormatError(ValueError):
    """Raised when operation input cannot be turned into operations."""


class OperationType(Enum):
    """Enumeration of supported stock operation types."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Operation:
    """A single buy or sell of a stock at a unit cost.

    Operations are immutable and validated on construction; a non-positive
    unit cost or quantity is fatal to the batch that contains it.
    """

    operation_type: OperationType
    unit_cost: Decimal
    quantity: int
    symbol: str | None = None

    def __post_init__(self):
        if not Decimal(self.unit_cost).is_finite():
            raise ValueError("Unit cost must be a finite number")
        if self.unit_cost <= 0:
            raise ValueError("Unit cost must be greater than zero")
        if self.quantity <= 0:
            raise ValueError("Quantity must be greater than zero")
        if self.unit_cost >= MAX_MAGNITUDE:
            raise ValueError(f"Unit cost must be less than {MAX_MAGNITUDE}")
        if self.quantity >= MAX_MAGNITUDE:
            raise ValueError(f"Quantity must be less than {MAX_MAGNITUDE}")

    @property
    def is_buy(self) -> bool:
        return self.operation_type == OperationType.BUY

    @property
    def total_amount(self) -> Decimal:
        """Return the unrounded value of the operation (unit cost x quantity)."""
        return self.unit_cost * self.quantity

    def __repr__(self):
        return f"Operation(type={self.operation_type.value}, unit_cost={self.unit_cost}, quantity={self.quantity}, symbol={self.symbol})"


def reject_constant(token: str):
    """Refuse the NaN and Infinity literals that json.loads accepts by default."""
    raise ValueError(f"Invalid JSON number: {token}")


def _is_number(value: Any) -> bool:
    # bool is an int subclass, but "quantity": true is not a quantity
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return Decimal(str(value)).is_finite()


def operation_from_dict(item: Any) -> Operation:
    """
    Build an Operation from one decoded JSON object.

    Args:
        item: A mapping with "operation", "unit-cost", "quantity" and an
            optional "symbol" key.

    Returns:
        The validated Operation.

    Raises:
        InputFormatError: If a field is missing, has the wrong type, or the
            operation violates its construction invariants.
    """
    if not isinstance(item, dict):
        raise InputFormatError("Invalid operation format")

    kind = item.get("operation")
    unit_cost = item.get("unit-cost")
    quantity = item.get("quantity")
    symbol = item.get("symbol")

    if kind is None or unit_cost is None or quantity is None:
        raise InputFormatError("Invalid operation format")

    try:
        operation_type = OperationType(kind)
    except ValueError:
        raise InputFormatError("Invalid operation format")

    if not _is_number(unit_cost) or not _is_number(quantity):
        raise InputFormatError("Invalid operation format")

    # Integral values such as 100.0 are accepted as quantities
    if Decimal(str(quantity)) != Decimal(str(quantity)).to_integral_value():
        raise InputFormatError("Invalid operation format")

    if symbol is not None and not isinstance(symbol, str):
        raise InputFormatError("Invalid operation format")

    try:
        return Operation(
            operation_type=operation_type,
            unit_cost=Decimal(str(unit_cost)),
            quantity=int(quantity),
            symbol=symbol or None,
        )
    except ValueError as e:
        raise InputFormatError(str(e)) from e


def operations_from_json(text: str) -> list[Operation]:
    """
    Parse one JSON array of operation objects.

    Unit costs are decoded straight into Decimal so that no binary float
    error reaches the tax arithmetic.

    Args:
        text: The JSON array literal.

    Returns:
        The operations in input order.

    Raises:
        InputFormatError: If the text is not a JSON array of valid operations.
    """
    try:
        data = json.loads(text, parse_float=Decimal, parse_constant=reject_constant)
    except ValueError:
        raise InputFormatError("Invalid JSON format in array")

    if not isinstance(data, list):
        raise InputFormatError("Input must be a JSON array")

    return [operation_from_dict(item) for item in data]
