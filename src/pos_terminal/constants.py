"""Enumerations and defaults shared across the POS terminal modules.

Centralises domain constants so that the cart engine, the transaction
recorder, the persistence layer, and the CLI rely on a single source of truth
for payment methods, storage keys, and store defaults.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Version of the persisted state layout expected by every layer.
EXPECTED_SCHEMA_VERSION = "1.0.0"

DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_CURRENCY = "USD"
LOW_STOCK_THRESHOLD = 10


class PaymentMethod(str, Enum):
    """Enumerate supported payment instruments."""

    CASH = "cash"
    CARD = "card"
    DIGITAL_WALLET = "digital_wallet"


class PaymentState(str, Enum):
    """States of a single payment attempt inside the transaction recorder."""

    IDLE = "idle"
    PROCESSING = "processing"
    COMMITTED = "committed"
    FAILED = "failed"


class StorageKey(str, Enum):
    """Enumerate the durable storage records managed by the data layer."""

    CART = "cart-storage"
    TRANSACTIONS = "transaction-storage"
    SETTINGS = "settings-storage"
    AUTH = "auth-storage"
    PRODUCTS = "product-storage"


class UserRole(str, Enum):
    """Roles an operator account may hold."""

    ADMIN = "admin"
    CASHIER = "cashier"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_TAX_RATE",
    "DEFAULT_CURRENCY",
    "LOW_STOCK_THRESHOLD",
    "PaymentMethod",
    "PaymentState",
    "StorageKey",
    "UserRole",
]
