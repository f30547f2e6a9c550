"""Tests for operation construction and parsing of operation JSON."""

from decimal import Decimal

import pytest

from capgains.operations import (
    InputFormatError,
    Operation,
    OperationType,
    operation_from_dict,
    operations_from_json,
)


def test_operation_total_amount():
    """Verify total amount is unit cost times quantity."""
    op = Operation(OperationType.SELL, Decimal("15.50"), 100)
    assert op.total_amount == Decimal("1550.00")
    assert not op.is_buy


def test_operation_rejects_non_positive_unit_cost():
    """A zero or negative unit cost fails construction."""
    with pytest.raises(ValueError, match="Unit cost must be greater than zero"):
        Operation(OperationType.BUY, Decimal("0"), 10)
    with pytest.raises(ValueError, match="Unit cost must be greater than zero"):
        Operation(OperationType.BUY, Decimal("-1"), 10)


def test_operation_rejects_non_positive_quantity():
    """A zero or negative quantity fails construction."""
    with pytest.raises(ValueError, match="Quantity must be greater than zero"):
        Operation(OperationType.BUY, Decimal("10"), 0)


def test_operation_is_immutable():
    """Operations cannot be modified after construction."""
    op = Operation(OperationType.BUY, Decimal("10"), 10)
    with pytest.raises(AttributeError):
        op.quantity = 20  # type: ignore[misc]


class TestOperationFromDict:
    """Tests for operation_from_dict()."""

    def test_buy_with_symbol(self):
        op = operation_from_dict({"operation": "buy", "unit-cost": Decimal("10.00"), "quantity": 100, "symbol": "AAPL"})
        assert op == Operation(OperationType.BUY, Decimal("10.00"), 100, "AAPL")

    def test_float_unit_cost_is_converted_exactly(self):
        op = operation_from_dict({"operation": "sell", "unit-cost": 0.1, "quantity": 3})
        assert op.unit_cost == Decimal("0.1")

    def test_integral_float_quantity_is_accepted(self):
        op = operation_from_dict({"operation": "sell", "unit-cost": 1, "quantity": Decimal("5.0")})
        assert op.quantity == 5

    @pytest.mark.parametrize("item", [
        {"unit-cost": 10, "quantity": 1},
        {"operation": "buy", "quantity": 1},
        {"operation": "buy", "unit-cost": 10},
        {"operation": "hold", "unit-cost": 10, "quantity": 1},
        {"operation": "buy", "unit-cost": "10", "quantity": 1},
        {"operation": "buy", "unit-cost": 10, "quantity": True},
        {"operation": "buy", "unit-cost": 10, "quantity": Decimal("1.5")},
        {"operation": "buy", "unit-cost": 10, "quantity": 1, "symbol": 42},
        {"operation": "buy", "unit-cost": float("nan"), "quantity": 1},
        {"operation": "buy", "unit-cost": float("inf"), "quantity": 1},
        {"operation": "buy", "unit-cost": 10, "quantity": float("inf")},
        {"operation": "buy", "unit-cost": Decimal("NaN"), "quantity": 1},
        ["buy", 10, 1],
    ])
    def test_invalid_format(self, item):
        with pytest.raises(InputFormatError, match="Invalid operation format"):
            operation_from_dict(item)

    def test_non_positive_values_are_input_errors(self):
        with pytest.raises(InputFormatError, match="Unit cost must be greater than zero"):
            operation_from_dict({"operation": "buy", "unit-cost": 0, "quantity": 1})
        with pytest.raises(InputFormatError, match="Quantity must be greater than zero"):
            operation_from_dict({"operation": "buy", "unit-cost": 1, "quantity": -3})

    def test_out_of_range_values_are_input_errors(self):
        with pytest.raises(InputFormatError, match="Unit cost must be less than"):
            operation_from_dict({"operation": "buy", "unit-cost": Decimal("1E+30"), "quantity": 1})
        with pytest.raises(InputFormatError, match="Quantity must be less than"):
            operation_from_dict({"operation": "buy", "unit-cost": 1, "quantity": 10 ** 40})


class TestOperationsFromJson:
    """Tests for operations_from_json()."""

    def test_parses_array_in_order(self):
        ops = operations_from_json(
            '[{"operation":"buy", "unit-cost":10.00, "quantity": 100},'
            '{"operation":"sell", "unit-cost":15.00, "quantity": 50}]'
        )
        assert [op.operation_type for op in ops] == [OperationType.BUY, OperationType.SELL]
        assert ops[1].unit_cost == Decimal("15.00")
        assert ops[1].symbol is None

    def test_empty_array(self):
        assert operations_from_json("[]") == []

    def test_invalid_json(self):
        with pytest.raises(InputFormatError, match="Invalid JSON format in array"):
            operations_from_json('[{"operation": "buy",')

    def test_not_an_array(self):
        with pytest.raises(InputFormatError, match="Input must be a JSON array"):
            operations_from_json('{"operation": "buy", "unit-cost": 1, "quantity": 1}')

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_literals_are_rejected(self, literal):
        """json.loads accepts these tokens by default; they are not valid numbers."""
        with pytest.raises(InputFormatError, match="Invalid JSON format in array"):
            operations_from_json(f'[{{"operation": "buy", "unit-cost": {literal}, "quantity": 1}}]')
