"""Exception taxonomy for the POS terminal.

``ValidationError`` covers user-correctable input problems, while
``IntegrityViolation`` flags a broken internal invariant and must never be
swallowed.
"""

from __future__ import annotations

from decimal import Decimal


class PosError(Exception):
    """Base class for every error raised by the package."""


class ValidationError(PosError):
    """Raised when a request can be corrected by the operator."""


class MissingReferenceError(ValidationError):
    """Raised when a referenced product or transaction is unknown."""


class EmptyCartError(ValidationError):
    """Raised when a commit is requested for a cart without lines."""


class InsufficientTenderError(ValidationError):
    """Raised when the cash tendered does not cover the total."""

    def __init__(self, shortfall: Decimal) -> None:
        super().__init__(f"Insufficient tender: short by {shortfall}")
        self.shortfall = shortfall


class TenderInputError(ValidationError):
    """Raised when keypad input would produce a malformed amount."""


class CartLockedError(ValidationError):
    """Raised when the cart is mutated while a payment is in flight."""


class PaymentStateError(ValidationError):
    """Raised when a recorder transition is requested from the wrong state."""


class AuthorizationError(PosError):
    """Raised when no cashier identity is available or credentials fail."""


class PaymentFailedError(PosError):
    """Raised when the external confirmation step does not succeed."""


class PaymentDeclinedError(PaymentFailedError):
    """Raised by a confirmer that rejects the payment."""


class PaymentTimeoutError(PaymentFailedError):
    """Raised when confirmation exceeds the configured timeout."""


class PersistenceError(PosError):
    """Raised when durable storage is unavailable or holds corrupt data."""


class IntegrityViolation(PosError):
    """Raised when an internal invariant no longer holds."""


__all__ = [
    "PosError",
    "ValidationError",
    "MissingReferenceError",
    "EmptyCartError",
    "InsufficientTenderError",
    "TenderInputError",
    "CartLockedError",
    "PaymentStateError",
    "AuthorizationError",
    "PaymentFailedError",
    "PaymentDeclinedError",
    "PaymentTimeoutError",
    "PersistenceError",
    "IntegrityViolation",
]
