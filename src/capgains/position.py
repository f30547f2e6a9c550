from copy import deepcopy
from decimal import Decimal

from .operations import Operation


class InsufficientSharesError(ValueError):
    """Raised when a sell asks for more shares than the position holds."""

    def __init__(self, message: str = "Insufficient shares to complete the sell operation."):
        super().__init__(message)


class MissingSymbolError(ValueError):
    """Raised when a sell carries no symbol while positions are tracked per symbol."""

    def __init__(self, message: str = "Symbol is required for sell operations."):
        super().__init__(message)


class SymbolPosition():
    """Quantity held and weighted-average unit cost for one symbol."""

    def __init__(self, quantity: int = 0, weighted_average_cost: Decimal = Decimal("0")):
        self.quantity: int = quantity
        self.weighted_average_cost: Decimal = weighted_average_cost

    def __eq__(self, other):
        if not isinstance(other, SymbolPosition):
            return NotImplemented
        return self.quantity == other.quantity and self.weighted_average_cost == other.weighted_average_cost

    def __repr__(self):
        return f"SymbolPosition(quantity={self.quantity}, weighted_average_cost={self.weighted_average_cost})"


class PositionTracker():
    """Cost basis and loss carry-forward for one batch of operations.

    Holdings are kept per symbol when ``per_symbol`` is True, otherwise all
    operations share a single position stored under the ``None`` key. The
    accumulated loss and the error counter are always global to the
    tracker, never per symbol.
    """

    def __init__(self, per_symbol: bool = False):
        """Initialize an empty tracker.

        Args:
            per_symbol: If True, keep an independent position for each symbol
                and reject sells that carry no symbol.
        """
        self.per_symbol = per_symbol
        self.positions: dict[str | None, SymbolPosition] = {}
        self.accumulated_loss: Decimal = Decimal("0")
        self.error_count: int = 0

    def _key(self, operation: Operation) -> str | None:
        return operation.symbol if self.per_symbol else None

    def position_for(self, operation: Operation) -> SymbolPosition:
        """Return the position an operation refers to.

        A symbol that was never bought has zero quantity and zero cost basis;
        the returned object is not stored in that case.
        """
        return self.positions.get(self._key(operation), SymbolPosition())

    def apply_buy(self, operation: Operation) -> None:
        """Add bought shares and recompute the weighted-average cost."""
        position = self.positions.setdefault(self._key(operation), SymbolPosition())

        total_quantity = position.quantity + operation.quantity
        total_cost = (position.quantity * position.weighted_average_cost) + (operation.quantity * operation.unit_cost)

        position.weighted_average_cost = total_cost / total_quantity
        position.quantity = total_quantity

    def apply_sell(self, operation: Operation) -> None:
        """
        Remove sold shares from the position.

        All checks run before anything is mutated, so a failing sell leaves
        the tracker exactly as it was.

        Raises:
            MissingSymbolError: If tracking per symbol and the sell has no symbol.
            InsufficientSharesError: If the sell exceeds the shares held.
        """
        if self.per_symbol and operation.symbol is None:
            raise MissingSymbolError()

        key = self._key(operation)
        position = self.positions.get(key)
        if position is None or operation.quantity > position.quantity:
            raise InsufficientSharesError()

        position.quantity -= operation.quantity
        if position.quantity == 0:
            position.weighted_average_cost = Decimal("0")

    def profit(self, operation: Operation) -> Decimal:
        """Return the (unrounded) profit of a sell against the current cost basis.

        Negative values are losses. The tracker is not modified.
        """
        position = self.position_for(operation)
        return (operation.unit_cost - position.weighted_average_cost) * operation.quantity

    def reset(self) -> None:
        """Clear all positions, the accumulated loss and the error count."""
        self.positions = {}
        self.accumulated_loss = Decimal("0")
        self.error_count = 0

    def snapshot(self) -> "PositionTracker":
        return deepcopy(self)

    def __eq__(self, other):
        if not isinstance(other, PositionTracker):
            return NotImplemented

        # A key holding nothing is the same as an absent key
        def held(tracker: PositionTracker) -> dict[str | None, SymbolPosition]:
            return {k: v for k, v in tracker.positions.items() if v != SymbolPosition()}

        return (
            self.per_symbol == other.per_symbol
            and held(self) == held(other)
            and self.accumulated_loss == other.accumulated_loss
            and self.error_count == other.error_count
        )

    def __repr__(self):
        return (
            f"PositionTracker(per_symbol={self.per_symbol}, positions={self.positions}, "
            f"accumulated_loss={self.accumulated_loss}, error_count={self.error_count})"
        )
