"""Capital-gains tax engine.

Applies the tax rules to a batch of operations in input order against one
PositionTracker, producing exactly one TaxResult per operation:

- Buys update the weighted-average cost and are never taxed.
- A sell worth at most the tax threshold is tax free; a loss on it is
  still carried forward.
- A losing (or break-even) sell above the threshold adds its loss to the
  accumulated loss.
- A profitable sell above the threshold first consumes accumulated loss;
  whatever profit is left is taxed at the tax rate.
- Failed sells become error results. After ``max_errors`` errors every
  remaining operation in the batch is rejected as blocked.

Currency values are rounded after every arithmetic step, not only on
output, because threshold checks and loss bookkeeping depend on it.
"""

import concurrent.futures
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, localcontext

from .config import RoundingMode, SymbolTracking, TaxSettings
from .operations import Operation
from .position import InsufficientSharesError, MissingSymbolError, PositionTracker

BLOCKED_MESSAGE = "User blocked due to excessive errors."

# Significant digits for engine arithmetic. Enough for the largest accepted
# unit cost times quantity at the largest allowed number of decimal places.
PRECISION = 100


@dataclass(frozen=True)
class TaxResult:
    """Outcome of one operation: a tax amount or an error message."""

    tax: Decimal | None = None
    error: str | None = None

    @classmethod
    def of_tax(cls, amount: Decimal) -> "TaxResult":
        return cls(tax=amount)

    @classmethod
    def of_error(cls, message: str) -> "TaxResult":
        return cls(error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, int | float | str]:
        """Return the JSON-ready form, ``{"tax": n}`` or ``{"error": s}``.

        Whole amounts are emitted as integers (``10000``, not ``10000.0``).
        """
        if self.error is not None:
            return {"error": self.error}
        tax = Decimal(self.tax if self.tax is not None else 0)
        if tax == tax.to_integral_value():
            return {"tax": int(tax)}
        return {"tax": float(tax)}


def round_currency(value: Decimal, settings: TaxSettings) -> Decimal:
    """Round a currency value to the configured precision."""
    exponent = Decimal(1).scaleb(-settings.decimal_places)
    rounding = ROUND_DOWN if settings.rounding == RoundingMode.TRUNCATE else ROUND_HALF_UP
    return value.quantize(exponent, rounding=rounding)


def _tracks_symbols(operations: list[Operation], settings: TaxSettings) -> bool:
    if settings.symbol_tracking == SymbolTracking.ON:
        return True
    if settings.symbol_tracking == SymbolTracking.OFF:
        return False
    return any(op.symbol is not None for op in operations)


class TaxEngine():
    """Stateful evaluator for a single batch of operations.

    The engine exclusively owns its tracker; batches must never share an
    engine.
    """

    def __init__(self, settings: TaxSettings | None = None, tracker: PositionTracker | None = None):
        """Initialize the engine.

        Args:
            settings: Tax parameters. Defaults to TaxSettings().
            tracker: Tracker to evaluate against. Defaults to a fresh,
                single-position tracker.
        """
        self.settings = settings or TaxSettings()
        self.tracker = tracker if tracker is not None else PositionTracker()

    @classmethod
    def for_batch(cls, operations: list[Operation], settings: TaxSettings | None = None) -> "TaxEngine":
        """Create an engine whose tracker suits the batch's symbol usage."""
        settings = settings or TaxSettings()
        return cls(settings, PositionTracker(per_symbol=_tracks_symbols(operations, settings)))

    @property
    def is_blocked(self) -> bool:
        max_errors = self.settings.max_errors
        return max_errors > 0 and self.tracker.error_count >= max_errors

    def _round(self, value: Decimal) -> Decimal:
        return round_currency(value, self.settings)

    def process(self, operation: Operation) -> TaxResult:
        """
        Evaluate one operation and update the tracker.

        Args:
            operation: The next operation of the batch.

        Returns:
            The tax owed for the operation, or an error result if the sell
            could not be applied or the batch is blocked.
        """
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return self._evaluate(operation)

    def _evaluate(self, operation: Operation) -> TaxResult:
        if self.is_blocked:
            return TaxResult.of_error(BLOCKED_MESSAGE)

        if operation.is_buy:
            self.tracker.apply_buy(operation)
            return TaxResult.of_tax(self._round(Decimal("0")))

        total_amount = self._round(operation.total_amount)
        profit = self._round(self.tracker.profit(operation))

        try:
            self.tracker.apply_sell(operation)
        except (InsufficientSharesError, MissingSymbolError) as e:
            self.tracker.error_count += 1
            return TaxResult.of_error(str(e))

        if total_amount <= self.settings.tax_threshold:
            if profit < 0:
                self.tracker.accumulated_loss = self._round(self.tracker.accumulated_loss + abs(profit))
            return TaxResult.of_tax(self._round(Decimal("0")))

        if profit <= 0:
            self.tracker.accumulated_loss = self._round(self.tracker.accumulated_loss + abs(profit))
            return TaxResult.of_tax(self._round(Decimal("0")))

        taxable_profit = self._deduct_accumulated_loss(profit)
        return TaxResult.of_tax(self._round(taxable_profit * self.settings.tax_rate))

    def _deduct_accumulated_loss(self, profit: Decimal) -> Decimal:
        """Offset a profit with accumulated loss and return what stays taxable."""
        if self.tracker.accumulated_loss >= profit:
            self.tracker.accumulated_loss = self._round(self.tracker.accumulated_loss - profit)
            return Decimal("0")

        taxable_profit = self._round(profit - self.tracker.accumulated_loss)
        self.tracker.accumulated_loss = Decimal("0")
        return taxable_profit

    def run(self, operations: list[Operation]) -> list[TaxResult]:
        """Evaluate every operation in order and return one result per operation."""
        return [self.process(operation) for operation in operations]

    def reset(self) -> None:
        """Return the engine to its initial, unblocked state."""
        self.tracker.reset()


def calculate_taxes(operations: list[Operation], settings: TaxSettings | None = None) -> list[TaxResult]:
    """
    Calculate the tax for each operation of one batch.

    Args:
        operations: The batch, in chronological order.
        settings: Tax parameters. Defaults to TaxSettings().

    Returns:
        One TaxResult per operation, in the same order.
    """
    return TaxEngine.for_batch(operations, settings).run(operations)


def calculate_batches(
    batches: list[list[Operation]],
    settings: TaxSettings | None = None,
    max_workers: int | None = None
) -> list[list[TaxResult]]:
    """
    Calculate taxes for independent batches.

    Each batch gets its own engine and tracker, so batches can be evaluated
    concurrently. Results are returned in the order of ``batches``.

    Args:
        batches: Batches of operations.
        settings: Tax parameters shared (read-only) by all batches.
        max_workers: If greater than 1, evaluate batches on a thread pool
            of this size.

    Returns:
        The results of each batch.
    """
    if max_workers is None or max_workers <= 1 or len(batches) <= 1:
        return [calculate_taxes(batch, settings) for batch in batches]

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda batch: calculate_taxes(batch, settings), batches))
