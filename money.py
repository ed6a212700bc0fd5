# money.py
"""
Decimal-safe currency arithmetic and formatting.

All amounts are ``decimal.Decimal`` evaluated in a 20-digit, round-half-up
context, so ``add(0.1, 0.2) == Decimal("0.3")``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Dict, List, Union

from config import DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]

CURRENCY_CONTEXT = Context(prec=20, rounding=ROUND_HALF_UP)
ZERO = Decimal("0")


@dataclass(frozen=True)
class Currency:
    """ISO 4217 currency with its display rules."""
    code: str
    symbol: str
    name: str
    symbol_position: str = "before"  # "before" | "after"
    decimal_places: int = 2
    thousands_separator: str = ","
    decimal_separator: str = "."


CURRENCIES: Dict[str, Currency] = {
    c.code: c
    for c in [
        # Major world currencies
        Currency("USD", "$", "US Dollar"),
        Currency("EUR", "€", "Euro", thousands_separator=" ", decimal_separator=","),
        Currency("GBP", "£", "British Pound"),
        Currency("JPY", "¥", "Japanese Yen", decimal_places=0),
        Currency("CNY", "¥", "Chinese Yuan"),
        # European
        Currency("UAH", "₴", "Ukrainian Hryvnia", "after", 2, " ", ","),
        Currency("PLN", "zł", "Polish Złoty", "after", 2, " ", ","),
        Currency("CZK", "Kč", "Czech Koruna", "after", 2, " ", ","),
        Currency("CHF", "CHF", "Swiss Franc", thousands_separator="'"),
        Currency("DKK", "kr", "Danish Krone", "after", 2, ".", ","),
        Currency("HUF", "Ft", "Hungarian Forint", "after", 0, " ", ","),
        Currency("NOK", "kr", "Norwegian Krone", "after", 2, " ", ","),
        Currency("SEK", "kr", "Swedish Krona", "after", 2, " ", ","),
        Currency("RON", "lei", "Romanian Leu", "after", 2, ".", ","),
        # Others
        Currency("CAD", "C$", "Canadian Dollar"),
        Currency("AUD", "A$", "Australian Dollar"),
        Currency("RUB", "₽", "Russian Ruble", "after", 2, " ", ","),
        Currency("INR", "₹", "Indian Rupee"),
        Currency("BRL", "R$", "Brazilian Real", thousands_separator=".", decimal_separator=","),
        Currency("MXN", "MX$", "Mexican Peso"),
        Currency("ZAR", "R", "South African Rand", thousands_separator=" "),
        Currency("SGD", "S$", "Singapore Dollar"),
        Currency("NZD", "NZ$", "New Zealand Dollar"),
        Currency("KRW", "₩", "South Korean Won", decimal_places=0),
        Currency("TRY", "₺", "Turkish Lira", thousands_separator=".", decimal_separator=","),
        Currency("ILS", "₪", "Israeli Shekel"),
    ]
}

# Unknown codes render like this: "$" prefix, 2 decimals.
FALLBACK_CURRENCY = CURRENCIES["USD"]


def to_decimal(value: Amount) -> Decimal:
    """Converts int/float/str to Decimal through str() so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TypeError(f"Expected a numeric amount, got {type(value).__name__}")
    return Decimal(str(value))


def add(*amounts: Amount) -> Decimal:
    total = ZERO
    for amount in amounts:
        total = CURRENCY_CONTEXT.add(total, to_decimal(amount))
    return total


def subtract(a: Amount, b: Amount) -> Decimal:
    return CURRENCY_CONTEXT.subtract(to_decimal(a), to_decimal(b))


def multiply(amount: Amount, multiplier: Amount) -> Decimal:
    return CURRENCY_CONTEXT.multiply(to_decimal(amount), to_decimal(multiplier))


def divide(amount: Amount, divisor: Amount) -> Decimal:
    """Division that returns 0 for a zero divisor instead of raising."""
    d = to_decimal(divisor)
    if d == 0:
        return ZERO
    return CURRENCY_CONTEXT.divide(to_decimal(amount), d)


def round_amount(amount: Amount, decimals: int = 2) -> Decimal:
    exp = Decimal(1).scaleb(-decimals)
    return to_decimal(amount).quantize(exp, rounding=ROUND_HALF_UP, context=CURRENCY_CONTEXT)


def sum_amounts(amounts) -> Decimal:
    return add(*amounts)


def percentage(amount: Amount, percent: Amount) -> Decimal:
    """percentage(100, 15) -> 15"""
    return multiply(amount, divide(percent, 100))


# =========================
# Currency lookup
# =========================
def get_currency(code: str | None) -> Currency:
    if not code:
        return CURRENCIES[DEFAULT_CURRENCY] if DEFAULT_CURRENCY in CURRENCIES else FALLBACK_CURRENCY
    return CURRENCIES.get(code.upper(), FALLBACK_CURRENCY)


def get_currency_symbol(code: str | None) -> str:
    return get_currency(code).symbol


def is_supported_currency(code: str) -> bool:
    return code.upper() in CURRENCIES


def get_supported_currencies() -> List[Currency]:
    return sorted(CURRENCIES.values(), key=lambda c: c.name)


def get_currency_options() -> List[Dict[str, str]]:
    """Options for a currency select: value, label and short label."""
    return [
        {
            "value": c.code,
            "label": f"{c.code} - {c.name}",
            "short_label": f"{c.symbol} {c.code}",
        }
        for c in get_supported_currencies()
    ]


# =========================
# Formatting / parsing
# =========================
def format_currency(amount: Amount, currency_code: str | None = "USD") -> str:
    """
    Renders an amount with the currency's symbol and separators.
    format_currency(1234.56, "USD") -> "$1,234.56"
    format_currency(1234.56, "PLN") -> "1 234,56 zł"
    format_currency(1234, "JPY")    -> "¥1,234"
    """
    currency = get_currency(currency_code)
    value = round_amount(round_amount(amount, 2), currency.decimal_places)
    sign = "-" if value < 0 else ""
    text = f"{abs(value):.{currency.decimal_places}f}"
    integer_part, _, decimal_part = text.partition(".")

    grouped = f"{int(integer_part):,}".replace(",", currency.thousands_separator)
    number = grouped
    if currency.decimal_places > 0 and decimal_part:
        number += currency.decimal_separator + decimal_part

    if currency.symbol_position == "before":
        return f"{sign}{currency.symbol}{number}"
    return f"{sign}{number} {currency.symbol}"


_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"-?(\d+\.?\d*|\.\d+)")


def _parse_cleaned(value: str) -> Decimal | None:
    cleaned = _NON_NUMERIC.sub("", value)
    m = _LEADING_NUMBER.match(cleaned)
    if not m:
        return None
    try:
        return Decimal(m.group(0))
    except InvalidOperation:
        return None


def parse_currency(value: str) -> Decimal:
    """parse_currency("$1,234.56") -> Decimal("1234.56"); unparsable -> 0."""
    parsed = _parse_cleaned(value)
    if parsed is None:
        logger.debug("Unparsable currency input %r, using 0", value)
        return round_amount(ZERO)
    return round_amount(parsed)


def validate_currency_input(value: str) -> Decimal | None:
    """Like parse_currency but returns None for unparsable or negative input."""
    parsed = _parse_cleaned(value)
    if parsed is None or parsed < 0:
        return None
    return round_amount(parsed)


__all__ = [
    "Currency", "CURRENCIES", "to_decimal", "add", "subtract", "multiply", "divide",
    "round_amount", "sum_amounts", "percentage", "get_currency", "get_currency_symbol",
    "is_supported_currency", "get_supported_currencies", "get_currency_options",
    "format_currency", "parse_currency", "validate_currency_input",
]
