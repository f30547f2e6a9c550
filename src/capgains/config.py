"""Tax settings loaded from the environment (and a ``.env`` file, via the CLI)."""

import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum

TAX_RATE = Decimal("0.20")
TAX_THRESHOLD = Decimal("20000")
DECIMAL_PLACES = 2
MAX_DECIMAL_PLACES = 20
MAX_ERRORS = 3


class RoundingMode(Enum):
    """How currency values are brought to a fixed number of decimal places."""

    HALF_UP = "half-up"
    TRUNCATE = "truncate"


class SymbolTracking(Enum):
    """Whether positions are tracked per symbol.

    AUTO turns per-symbol tracking on for a batch as soon as one of its
    operations carries a symbol.
    """

    AUTO = "auto"
    ON = "on"
    OFF = "off"


@dataclass(frozen=True)
class TaxSettings:
    """Parameters of the tax rules.

    Attributes:
        tax_rate: Fraction of taxable profit owed as tax.
        tax_threshold: Sell value at or below which no tax is due.
        decimal_places: Precision every currency value is rounded to.
        rounding: Rounding applied at each currency step.
        max_errors: Errors after which the rest of a batch is blocked.
            Zero disables blocking.
        symbol_tracking: Per-symbol tracking policy.
    """

    tax_rate: Decimal = TAX_RATE
    tax_threshold: Decimal = TAX_THRESHOLD
    decimal_places: int = DECIMAL_PLACES
    rounding: RoundingMode = RoundingMode.HALF_UP
    max_errors: int = MAX_ERRORS
    symbol_tracking: SymbolTracking = SymbolTracking.AUTO

    def __post_init__(self):
        if self.tax_rate < 0 or self.tax_rate > 1:
            raise ValueError(f"Tax rate must be between 0 and 1, got {self.tax_rate}")
        if self.tax_threshold < 0:
            raise ValueError(f"Tax threshold must not be negative, got {self.tax_threshold}")
        if self.decimal_places < 0 or self.decimal_places > MAX_DECIMAL_PLACES:
            raise ValueError(f"Decimal places must be between 0 and {MAX_DECIMAL_PLACES}, got {self.decimal_places}")
        if self.max_errors < 0:
            raise ValueError(f"Max errors must not be negative, got {self.max_errors}")

    def with_overrides(self, **overrides) -> "TaxSettings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{name} must be a decimal number, got '{raw}'")
    if not value.is_finite():
        raise ValueError(f"{name} must be a decimal number, got '{raw}'")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def _enum_env(name: str, enum_cls, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    # true/false are accepted for on/off switches
    if enum_cls is SymbolTracking:
        value = {"true": "on", "false": "off", "1": "on", "0": "off"}.get(value, value)
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{name} must be one of: {choices}; got '{raw}'")


def load_settings() -> TaxSettings:
    """
    Build TaxSettings from CAPGAINS_* environment variables.

    Unset or empty variables fall back to the defaults.

    Returns:
        The loaded settings.

    Raises:
        ValueError: If a variable is set to an invalid value.
    """
    return TaxSettings(
        tax_rate=_decimal_env("CAPGAINS_TAX_RATE", TAX_RATE),
        tax_threshold=_decimal_env("CAPGAINS_TAX_THRESHOLD", TAX_THRESHOLD),
        decimal_places=_int_env("CAPGAINS_DECIMAL_PLACES", DECIMAL_PLACES),
        rounding=_enum_env("CAPGAINS_ROUNDING", RoundingMode, RoundingMode.HALF_UP),
        max_errors=_int_env("CAPGAINS_MAX_ERRORS", MAX_ERRORS),
        symbol_tracking=_enum_env("CAPGAINS_PER_SYMBOL", SymbolTracking, SymbolTracking.AUTO),
    )
