"""Currency precision and display rounding.

Internal amounts keep full Decimal precision; rounding is applied only when
values leave the system (display, register export).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_PRECISION = 2

# ISO 4217 codes with three minor units
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "KWD", "OMR"})

CURRENCY_SYMBOLS: dict[str, str] = {
    "BHD": "BD",
    "KWD": "KD",
    "OMR": "OMR",
    "SAR": "SAR",
    "AED": "AED",
    "QAR": "QR",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Convert a numeric value to Decimal, treating None as zero.

    Floats go through ``str`` to avoid binary artifacts.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def currency_precision(currency: str | None) -> int:
    """Number of minor-unit decimals for a currency code."""
    if currency and currency.upper() in THREE_DECIMAL_CURRENCIES:
        return 3
    return DEFAULT_PRECISION


def round_for_display(amount: Decimal, currency: str | None) -> Decimal:
    """Round half-up to the currency's precision."""
    quantum = Decimal(1).scaleb(-currency_precision(currency))
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency: str | None, with_symbol: bool = True) -> str:
    """Format an amount with thousands separators and the currency symbol."""
    rounded = round_for_display(amount, currency)
    text = f"{rounded:,.{currency_precision(currency)}f}"
    if not with_symbol or not currency:
        return text
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())
    return f"{symbol} {text}"
