"""Immutable transaction records and the append-only transaction log."""

from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from . import log
from .cart import CartLine
from .constants import PaymentMethod
from .errors import IntegrityViolation


RECEIPT_PREFIX = "RCP"
_RECEIPT_ALPHABET = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class Transaction:
    """Committed sale. Never modified once created."""

    id: str
    receipt_number: str
    items: tuple[CartLine, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_method: PaymentMethod
    amount_paid: Decimal
    change: Decimal
    cashier_id: str
    cashier_name: str
    timestamp: datetime

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


def ensure_aware(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes so instants always compare safely."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def generate_transaction_id(*, prefix: str = "T", when: Optional[datetime] = None) -> str:
    """Generate a globally unique, roughly sortable transaction identifier.

    Returns:
        str: ``{prefix}{YYYYMMDDHHMMSSffffff}-{12 hex chars}``; the uuid4
            segment keeps identifiers unique within the same microsecond.
    """

    when = when or datetime.now(UTC)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:12]}"


def generate_receipt_number(when: Optional[datetime] = None) -> str:
    """Generate a human readable receipt number.

    The format is ``RCP-<last six digits of epoch milliseconds>-<four random
    base36 characters>``. Callers that need a hard uniqueness guarantee check
    the result against the existing log (see :meth:`TransactionLog.has_receipt`).
    """

    when = when or datetime.now(UTC)
    millis = int(ensure_aware(when).timestamp() * 1000)
    suffix = "".join(secrets.choice(_RECEIPT_ALPHABET) for _ in range(4))
    return f"{RECEIPT_PREFIX}-{millis % 1_000_000:06d}-{suffix}"


class TransactionLog:
    """Newest-first, append-only collection of transactions.

    Args:
        transactions (Iterable[Transaction]): Existing entries, newest first,
            usually restored from storage.
        on_change (Callable[[TransactionLog], None] | None): Observer invoked
            after each append.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        *,
        on_change: Optional[Callable[["TransactionLog"], None]] = None,
    ) -> None:
        self._entries: List[Transaction] = []
        self._by_id: Dict[str, Transaction] = {}
        self._receipts: set[str] = set()
        for transaction in transactions:
            self._index(transaction)
            self._entries.append(transaction)
        self.on_change = on_change

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(tuple(self._entries))

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(self._entries)

    def add(self, transaction: Transaction) -> Transaction:
        """Prepend ``transaction`` so it becomes the newest entry.

        Raises:
            IntegrityViolation: If the id or receipt number already exists.
        """

        self._index(transaction)
        self._entries.insert(0, transaction)
        log.info(
            "Recorded transaction '%s' (receipt %s, total=%s, method=%s)",
            transaction.id,
            transaction.receipt_number,
            transaction.total,
            transaction.payment_method.value,
        )
        if self.on_change is not None:
            self.on_change(self)
        return transaction

    def by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self._by_id.get(transaction_id)

    def by_receipt_number(self, receipt_number: str) -> Optional[Transaction]:
        for transaction in self._entries:
            if transaction.receipt_number == receipt_number:
                return transaction
        return None

    def has_receipt(self, receipt_number: str) -> bool:
        return receipt_number in self._receipts

    def by_date_range(self, start: datetime, end: datetime) -> List[Transaction]:
        """Return transactions with ``start <= timestamp <= end``, newest first.

        Naive bounds are interpreted as UTC.
        """

        lower = ensure_aware(start)
        upper = ensure_aware(end)
        return [transaction for transaction in self._entries if lower <= transaction.timestamp <= upper]

    def by_payment_method(self, method: Union[str, PaymentMethod]) -> List[Transaction]:
        wanted = PaymentMethod(method)
        return [transaction for transaction in self._entries if transaction.payment_method is wanted]

    def search(self, term: str) -> List[Transaction]:
        """Case-insensitive match on receipt number, cashier name, or item names."""

        needle = term.strip().lower()
        if not needle:
            return list(self._entries)
        return [
            transaction
            for transaction in self._entries
            if needle in transaction.receipt_number.lower()
            or needle in transaction.cashier_name.lower()
            or any(needle in item.name.lower() for item in transaction.items)
        ]

    def recent(self, limit: int = 5) -> List[Transaction]:
        ordered = sorted(self._entries, key=lambda transaction: transaction.timestamp, reverse=True)
        return ordered[:limit]

    def _index(self, transaction: Transaction) -> None:
        if transaction.id in self._by_id:
            log.error("Integrity violation: duplicate transaction id '%s'", transaction.id)
            raise IntegrityViolation(f"Duplicate transaction id: {transaction.id}")
        if transaction.receipt_number in self._receipts:
            log.error("Integrity violation: duplicate receipt number '%s'", transaction.receipt_number)
            raise IntegrityViolation(f"Duplicate receipt number: {transaction.receipt_number}")
        self._by_id[transaction.id] = transaction
        self._receipts.add(transaction.receipt_number)


__all__ = [
    "RECEIPT_PREFIX",
    "Transaction",
    "ensure_aware",
    "generate_transaction_id",
    "generate_receipt_number",
    "TransactionLog",
]
