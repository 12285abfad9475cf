"""Transaction recorder: the commit state machine for a payment attempt.

An attempt moves ``idle -> processing -> committed | failed``. While
processing, the cart is locked so the transaction that gets committed is
exactly the cart that was authorized. The confirmation step is pluggable so a
real terminal integration can replace :class:`SimulatedTerminal`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, Optional, Protocol, Union

from . import log
from .auth import Cashier
from .cart import Cart, CartLine
from .constants import PaymentMethod, PaymentState
from .errors import (
    AuthorizationError,
    EmptyCartError,
    IntegrityViolation,
    PaymentDeclinedError,
    PaymentFailedError,
    PaymentStateError,
    PaymentTimeoutError,
)
from .money import ZERO, calculate_tax, calculate_total, round2
from .payment import PaymentAuthorization, authorize, require_authorized
from .settings import StoreSettings
from .transactions import Transaction, TransactionLog, generate_receipt_number, generate_transaction_id


@dataclass(frozen=True)
class PaymentAttempt:
    """Everything that was authorized when the attempt entered processing."""

    lines: tuple[CartLine, ...]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    authorization: PaymentAuthorization
    cashier: Cashier

    @property
    def method(self) -> PaymentMethod:
        return self.authorization.method


class PaymentConfirmer(Protocol):
    """External confirmation step (terminal, gateway, or cash drawer).

    Implementations return normally to approve and raise
    :class:`PaymentDeclinedError` to reject.
    """

    def confirm(self, attempt: PaymentAttempt) -> None:
        ...


class SettingsProvider(Protocol):
    def current_settings(self) -> StoreSettings:
        ...


class CashierProvider(Protocol):
    def current_cashier(self) -> Optional[Cashier]:
        ...


class SimulatedTerminal:
    """Confirmer that waits ``delay`` seconds and then approves or declines."""

    def __init__(
        self,
        delay: float = 1.5,
        *,
        approve: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.delay = delay
        self.approve = approve
        self._sleep = sleep

    def confirm(self, attempt: PaymentAttempt) -> None:
        if self.delay > 0:
            self._sleep(self.delay)
        if not self.approve:
            raise PaymentDeclinedError(f"{attempt.method.value} payment declined by terminal")


class TransactionRecorder:
    """Drive a payment attempt from authorization to a committed transaction.

    Args:
        cart (Cart): Session cart; cleared after a successful commit.
        transactions (TransactionLog): Log receiving committed transactions.
        settings_provider (SettingsProvider): Source of the tax rate.
        auth_provider (CashierProvider): Source of the cashier identity.
        confirmer (PaymentConfirmer): External confirmation step.
        timeout (float | None): Seconds after which a confirmation counts as
            failed even if it eventually approved.
        clock (Callable[[], float]): Monotonic clock used for the timeout.
    """

    def __init__(
        self,
        cart: Cart,
        transactions: TransactionLog,
        settings_provider: SettingsProvider,
        auth_provider: CashierProvider,
        confirmer: PaymentConfirmer,
        *,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cart = cart
        self._transactions = transactions
        self._settings_provider = settings_provider
        self._auth_provider = auth_provider
        self._confirmer = confirmer
        self._timeout = timeout
        self._clock = clock
        self._state = PaymentState.IDLE
        self._attempt: Optional[PaymentAttempt] = None
        self.last_error: Optional[Exception] = None
        self.last_transaction: Optional[Transaction] = None

    @property
    def state(self) -> PaymentState:
        return self._state

    @property
    def attempt(self) -> Optional[PaymentAttempt]:
        return self._attempt

    def begin(self, method: Union[str, PaymentMethod], tendered: Optional[Decimal] = None) -> PaymentAttempt:
        """Validate the commit request and enter ``processing``.

        Args:
            method (PaymentMethod | str): Payment instrument.
            tendered (Decimal | None): Cash offered; only used for cash.

        Returns:
            PaymentAttempt: Snapshot of what is being paid for.

        Raises:
            PaymentStateError: If another attempt is already processing.
            EmptyCartError: If the cart has no lines.
            AuthorizationError: If no cashier is logged in.
            InsufficientTenderError: If the cash tender does not cover the total.
        """

        if self._state is PaymentState.PROCESSING:
            raise PaymentStateError("A payment is already in progress")
        if self._cart.is_empty:
            log.warning("Commit rejected: cart is empty")
            raise EmptyCartError("Cannot take payment for an empty cart")
        cashier = self._auth_provider.current_cashier()
        if cashier is None:
            log.warning("Commit rejected: no cashier logged in")
            raise AuthorizationError("A cashier must be logged in to take payment")

        tax_rate = self._settings_provider.current_settings().tax_rate
        subtotal = self._cart.get_subtotal()
        tax = calculate_tax(subtotal, tax_rate)
        total = calculate_total(subtotal, tax)
        authorization = require_authorized(authorize(method, total, tendered))

        attempt = PaymentAttempt(
            lines=self._cart.lines,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax=tax,
            total=total,
            authorization=authorization,
            cashier=cashier,
        )
        self._cart.lock()
        self._attempt = attempt
        self._state = PaymentState.PROCESSING
        self.last_error = None
        log.info("Payment processing: %s for total %s", authorization.method.value, total)
        return attempt

    def confirm(self) -> Transaction:
        """Run the confirmation step and commit on success.

        Raises:
            PaymentStateError: If no attempt is processing.
            PaymentFailedError: If confirmation is declined, errors, or times
                out. The cart is left untouched.
        """

        if self._state is not PaymentState.PROCESSING or self._attempt is None:
            raise PaymentStateError("No payment is in progress")
        attempt = self._attempt

        started = self._clock()
        try:
            self._confirmer.confirm(attempt)
            elapsed = self._clock() - started
            if self._timeout is not None and elapsed > self._timeout:
                raise PaymentTimeoutError(f"Payment confirmation took {elapsed:.1f}s (limit {self._timeout:.1f}s)")
        except PaymentFailedError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            failure = PaymentFailedError(f"Payment confirmation error: {exc}")
            self._fail(failure)
            raise failure from exc

        try:
            transaction = self._build_transaction(attempt)
            self._cart.unlock()
            self._transactions.add(transaction)
        except IntegrityViolation as exc:
            self._fail(exc)
            raise
        self._cart.clear_cart()
        self._attempt = None
        self._state = PaymentState.COMMITTED
        self.last_transaction = transaction
        return transaction

    def cancel(self) -> None:
        """Abandon the in-flight attempt and return to ``idle``."""

        if self._state is not PaymentState.PROCESSING:
            raise PaymentStateError("No payment is in progress")
        self._cart.unlock()
        self._attempt = None
        self._state = PaymentState.IDLE
        log.info("Payment attempt cancelled")

    def checkout(self, method: Union[str, PaymentMethod], tendered: Optional[Decimal] = None) -> Transaction:
        """Convenience wrapper running :meth:`begin` then :meth:`confirm`."""

        self.begin(method, tendered)
        return self.confirm()

    def _fail(self, error: Exception) -> None:
        self._cart.unlock()
        self._attempt = None
        self._state = PaymentState.FAILED
        self.last_error = error
        log.error("Payment failed: %s", error)

    def _build_transaction(self, attempt: PaymentAttempt) -> Transaction:
        timestamp = datetime.now(UTC)
        receipt_number = generate_receipt_number(timestamp)
        while self._transactions.has_receipt(receipt_number):
            receipt_number = generate_receipt_number(timestamp)

        lines = tuple(attempt.lines)
        subtotal = round2(sum((line.line_total for line in lines), ZERO))
        tax = calculate_tax(subtotal, attempt.tax_rate)
        total = calculate_total(subtotal, tax)
        authorization = attempt.authorization
        if authorization.method is PaymentMethod.CASH:
            amount_paid = authorization.amount_paid
            change = authorization.change
        else:
            amount_paid = total
            change = ZERO

        if total != attempt.total or total != subtotal + tax:
            raise IntegrityViolation(f"Totals do not reconcile: {subtotal} + {tax} != {total}")
        if amount_paid - change != total:
            raise IntegrityViolation(f"Payment does not reconcile: {amount_paid} - {change} != {total}")

        return Transaction(
            id=generate_transaction_id(when=timestamp),
            receipt_number=receipt_number,
            items=lines,
            subtotal=subtotal,
            tax=tax,
            total=total,
            payment_method=authorization.method,
            amount_paid=amount_paid,
            change=change,
            cashier_id=attempt.cashier.id,
            cashier_name=attempt.cashier.name,
            timestamp=timestamp,
        )


__all__ = [
    "PaymentAttempt",
    "PaymentConfirmer",
    "SettingsProvider",
    "CashierProvider",
    "SimulatedTerminal",
    "TransactionRecorder",
]
