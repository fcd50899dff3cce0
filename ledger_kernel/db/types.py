"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and money helpers shared by models,
    domain and services.
Architecture position: Kernel > DB.  MUST NOT import from upper layers.

Invariants enforced:
    - Every monetary amount is a Decimal with MONEY_DECIMAL_PLACES fractional
      digits, quantized once at intake with ROUND_HALF_UP.  round_money() is
      the ONLY sanctioned rounding function; the ledger never rounds again.

Failure modes:
    - ValueError on a non-numeric string passed to money_from_str().
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount: 12 digits, 2 decimal places
Money = Annotated[Decimal, Numeric(12, 2)]

# Short identifier strings (usernames, names)
ShortText = Annotated[str, String(100)]

# Long text for descriptions
LongText = Annotated[str, String(1000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from a string.

    Raises:
        ValueError: If value cannot be converted to Decimal.
    """
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def round_money(
    value: Decimal | int | str,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Quantize a monetary value to the ledger scale.

    Ints and strings are converted exactly.  Floats are rejected.
    """
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    if not isinstance(value, Decimal):
        value = money_from_str(str(value))
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
