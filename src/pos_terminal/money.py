"""Fixed-point money helpers.

Every monetary amount in the package is a :class:`~decimal.Decimal`. Tax and
totals are derived exclusively through :func:`round2` so that the cart, the
payment validator, and the transaction recorder always reconcile.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from . import log
from .constants import DEFAULT_CURRENCY, PaymentMethod
from .errors import ValidationError


MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def to_money(value: MoneyLike) -> Decimal:
    """Convert a user or storage supplied value into a ``Decimal``.

    Floats are routed through ``str`` so that ``3.5`` becomes ``Decimal("3.5")``
    instead of its binary approximation.

    Args:
        value (Decimal | int | float | str): Raw amount.

    Returns:
        Decimal: Parsed, finite amount. The value is not rounded.

    Raises:
        ValidationError: If ``value`` cannot be parsed or is not finite.
    """

    if isinstance(value, bool):
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            log.warning("Rejected monetary amount %r", value)
            raise ValidationError(f"Invalid monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    return amount


def round2(amount: Decimal) -> Decimal:
    """Round to the currency minor unit using half-up rounding."""

    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_tax(subtotal: Decimal, tax_rate: Decimal) -> Decimal:
    """Return ``round2(subtotal * tax_rate)``.

    Args:
        subtotal (Decimal): Sum of the line totals.
        tax_rate (Decimal): Fraction in ``[0, 1]`` taken from the store
            settings.

    Returns:
        Decimal: Tax amount rounded to cents.
    """

    return round2(to_money(subtotal) * to_money(tax_rate))


def calculate_total(subtotal: Decimal, tax: Decimal) -> Decimal:
    """Return ``round2(subtotal + tax)``."""

    return round2(to_money(subtotal) + to_money(tax))


def format_currency(amount: Decimal, currency: str = DEFAULT_CURRENCY) -> str:
    """Render an amount for display without altering its value.

    Args:
        amount (Decimal): Amount to render.
        currency (str): ISO-4217 code. Known codes use their symbol, others
            are prefixed with the code itself.

    Returns:
        str: Text such as ``"$7.56"`` or ``"-CHF 1.00"``.
    """

    value = to_money(amount)
    sign = "-" if value < 0 else ""
    magnitude = f"{round2(abs(value)):,.2f}"
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {magnitude}"
    return f"{sign}{symbol}{magnitude}"


def format_payment_method(method: PaymentMethod) -> str:
    """Return a human label, e.g. ``"Digital Wallet"``."""

    return " ".join(word.capitalize() for word in PaymentMethod(method).value.split("_"))


__all__ = [
    "MoneyLike",
    "CENT",
    "ZERO",
    "to_money",
    "round2",
    "calculate_tax",
    "calculate_total",
    "format_currency",
    "format_payment_method",
]
