"""Payment validation and tender entry.

The validator decides whether a payment may be committed and computes the
change due. Card and digital wallet payments are approved here because the
external terminal is the real authority; only cash is checked numerically.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from . import log
from .constants import PaymentMethod
from .errors import InsufficientTenderError, TenderInputError, ValidationError
from .money import ZERO, round2, to_money


MAX_FRACTION_DIGITS = 2


@dataclass(frozen=True)
class PaymentAuthorization:
    """Outcome of validating a payment against a total.

    ``raw_change`` keeps its sign so callers can tell "short by X" from
    "change due X"; ``change`` is the clamped value shown on the receipt.
    """

    method: PaymentMethod
    total: Decimal
    amount_paid: Decimal
    raw_change: Decimal
    authorized: bool

    @property
    def change(self) -> Decimal:
        return max(self.raw_change, ZERO)

    @property
    def shortfall(self) -> Decimal:
        return max(-self.raw_change, ZERO)


def parse_payment_method(value: Union[str, PaymentMethod]) -> PaymentMethod:
    """Coerce ``value`` into :class:`PaymentMethod`.

    Raises:
        ValidationError: If ``value`` is not one of the supported methods.
    """

    try:
        return PaymentMethod(value)
    except ValueError as exc:
        log.warning("Unsupported payment method provided: %r", value)
        raise ValidationError(f"Unsupported payment method: {value!r}") from exc


def authorize(
    method: Union[str, PaymentMethod],
    total: Decimal,
    tendered: Optional[Decimal] = None,
) -> PaymentAuthorization:
    """Validate a payment attempt.

    Args:
        method (PaymentMethod | str): Payment instrument chosen by the
            customer.
        total (Decimal): Rounded amount due.
        tendered (Decimal | None): Cash offered. Ignored for non-cash
            methods; ``None`` is treated as zero for cash.

    Returns:
        PaymentAuthorization: Authorization flag, amount paid, and signed
            change. For cash ``amount_paid`` is the tender; for other methods
            it equals ``total`` with zero change.
    """

    payment_method = parse_payment_method(method)
    amount_due = round2(to_money(total))
    if payment_method is not PaymentMethod.CASH:
        return PaymentAuthorization(
            method=payment_method,
            total=amount_due,
            amount_paid=amount_due,
            raw_change=ZERO,
            authorized=True,
        )

    offered = to_money(tendered) if tendered is not None else ZERO
    if offered < 0:
        raise ValidationError("Tendered amount cannot be negative")
    if offered != round2(offered):
        raise ValidationError(f"Tendered amount has more than {MAX_FRACTION_DIGITS} decimal places: {offered}")
    raw_change = round2(offered - amount_due)
    authorized = offered >= amount_due
    if not authorized:
        log.info("Cash tender %s does not cover total %s", offered, amount_due)
    return PaymentAuthorization(
        method=payment_method,
        total=amount_due,
        amount_paid=offered,
        raw_change=raw_change,
        authorized=authorized,
    )


def require_authorized(authorization: PaymentAuthorization) -> PaymentAuthorization:
    """Return ``authorization`` or raise when it does not permit a commit."""

    if not authorization.authorized:
        raise InsufficientTenderError(authorization.shortfall)
    return authorization


class TenderInput:
    """Keypad buffer for entering a cash amount one key at a time.

    Keys are the digits ``0``-``9``, ``"."``, ``"clear"`` and ``"backspace"``.
    Input that would make the amount malformed is refused and leaves the
    buffer unchanged.
    """

    CLEAR = "clear"
    BACKSPACE = "backspace"

    def __init__(self, text: str = "") -> None:
        self._text = ""
        if text:
            self.enter(text)

    @property
    def text(self) -> str:
        return self._text

    @property
    def amount(self) -> Decimal:
        """Current value of the buffer; an empty buffer or lone ``.`` is zero."""

        if self._text in ("", "."):
            return ZERO
        return to_money(self._text)

    def press(self, key: str) -> str:
        """Apply a single key and return the resulting text.

        Raises:
            TenderInputError: On a second decimal point, a third fractional
                digit, or an unknown key.
        """

        if key == self.CLEAR:
            self._text = ""
        elif key == self.BACKSPACE:
            self._text = self._text[:-1]
        elif key == ".":
            if "." in self._text:
                raise TenderInputError("Amount already contains a decimal point")
            self._text += key
        elif len(key) == 1 and key.isdigit():
            if "." in self._text and len(self._text.split(".", 1)[1]) >= MAX_FRACTION_DIGITS:
                raise TenderInputError(f"Amount cannot have more than {MAX_FRACTION_DIGITS} decimal places")
            self._text += key
        else:
            raise TenderInputError(f"Unsupported keypad key: {key!r}")
        return self._text

    def enter(self, text: str) -> str:
        """Feed each character of ``text`` through :meth:`press`.

        The whole entry is rejected if any key is refused.
        """

        previous = self._text
        try:
            for char in text:
                self.press(char)
        except TenderInputError:
            self._text = previous
            raise
        return self._text

    def clear(self) -> None:
        self.press(self.CLEAR)


__all__ = [
    "MAX_FRACTION_DIGITS",
    "PaymentAuthorization",
    "parse_payment_method",
    "authorize",
    "require_authorized",
    "TenderInput",
]
