"""Unit tests for transaction identifiers and the transaction log."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest

from pos_terminal import transactions
from pos_terminal.cart import CartLine
from pos_terminal.constants import PaymentMethod
from pos_terminal.errors import IntegrityViolation
from pos_terminal.transactions import TransactionLog


MOMENT = datetime(2025, 3, 14, 12, 0, 0, 123456, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Identifier generation
# ---------------------------------------------------------------------------


def test_receipt_number_format():
    """Receipt numbers should follow RCP-<6 digits>-<4 base36 chars>."""

    receipt = transactions.generate_receipt_number(MOMENT)
    assert re.fullmatch(r"RCP-\d{6}-[0-9A-Z]{4}", receipt)
    millis = int(MOMENT.timestamp() * 1000)
    assert receipt.split("-")[1] == f"{millis % 1_000_000:06d}"


def test_receipt_numbers_in_same_millisecond_differ():
    """Two receipts generated for the same instant should not collide."""

    generated = {transactions.generate_receipt_number(MOMENT) for _ in range(50)}
    assert len(generated) > 1


def test_transaction_ids_are_unique_within_same_instant():
    """Transaction ids generated for the same instant should differ."""

    first = transactions.generate_transaction_id(when=MOMENT)
    second = transactions.generate_transaction_id(when=MOMENT)
    assert first != second
    assert first.startswith("T20250314120000123456-")


def test_ensure_aware_attaches_utc_to_naive_values():
    """Naive datetimes should be interpreted as UTC."""

    assert transactions.ensure_aware(datetime(2025, 1, 1)).tzinfo is UTC


# ---------------------------------------------------------------------------
# Log behaviour
# ---------------------------------------------------------------------------


def test_add_prepends_and_notifies(transaction_factory):
    """New transactions should become the newest entry."""

    listener = Mock()
    log = TransactionLog(on_change=listener)
    older = log.add(transaction_factory())
    newer = log.add(transaction_factory())
    assert log.transactions == (newer, older)
    assert listener.call_count == 2


def test_duplicate_receipt_number_is_rejected(transaction_factory):
    """The log should refuse two transactions with the same receipt number."""

    log = TransactionLog([transaction_factory(receipt_number="RCP-000001-AAAA")])
    with pytest.raises(IntegrityViolation):
        log.add(transaction_factory(receipt_number="RCP-000001-AAAA"))
    assert len(log) == 1


def test_lookup_by_id_and_receipt(transaction_factory):
    """by_id and by_receipt_number should find the stored entry."""

    entry = transaction_factory(receipt_number="RCP-123456-ABCD")
    log = TransactionLog([entry])
    assert log.by_id(entry.id) is entry
    assert log.by_receipt_number("RCP-123456-ABCD") is entry
    assert log.by_id("missing") is None
    assert log.has_receipt("RCP-123456-ABCD")


def test_by_date_range_is_inclusive_and_accepts_naive_bounds(transaction_factory):
    """Date range queries should include both bounds and treat naive as UTC."""

    inside = transaction_factory(timestamp=datetime(2025, 3, 14, 9, 0, tzinfo=UTC))
    edge = transaction_factory(timestamp=datetime(2025, 3, 15, 0, 0, tzinfo=UTC))
    outside = transaction_factory(timestamp=datetime(2025, 3, 16, 0, 0, tzinfo=UTC))
    log = TransactionLog([outside, edge, inside])
    results = log.by_date_range(datetime(2025, 3, 14), datetime(2025, 3, 15))
    assert results == [edge, inside]


def test_by_date_range_compares_instants_across_offsets(transaction_factory):
    """Timestamps in different offsets should be compared as instants."""

    entry = transaction_factory(timestamp=datetime(2025, 3, 14, 23, 30, tzinfo=UTC))
    log = TransactionLog([entry])
    plus_two = timezone(timedelta(hours=2))
    assert log.by_date_range(
        datetime(2025, 3, 15, 0, 0, tzinfo=plus_two),
        datetime(2025, 3, 15, 2, 0, tzinfo=plus_two),
    ) == [entry]


def test_search_matches_receipt_cashier_and_item_names(transaction_factory):
    """search should look at receipt numbers, cashier names, and items."""

    tea = (CartLine("cart-tea", "4", "Tea - Green", Decimal("2.75"), 1),)
    first = transaction_factory(receipt_number="RCP-111111-AAAA", cashier_name="Alice")
    second = transaction_factory(receipt_number="RCP-222222-BBBB", items=tea)
    log = TransactionLog([second, first])
    assert log.search("111111") == [first]
    assert log.search("alice") == [first]
    assert log.search("green") == [second]
    assert log.search("  ") == [second, first]


def test_by_payment_method_filters(transaction_factory):
    """by_payment_method should only return the requested method."""

    cash = transaction_factory(method=PaymentMethod.CASH)
    card = transaction_factory(method=PaymentMethod.CARD)
    log = TransactionLog([card, cash])
    assert log.by_payment_method("cash") == [cash]


def test_recent_orders_by_timestamp(transaction_factory):
    """recent should return the newest entries by timestamp."""

    base = datetime(2025, 3, 14, tzinfo=UTC)
    entries = [transaction_factory(timestamp=base + timedelta(hours=hour)) for hour in range(7)]
    log = TransactionLog(entries)
    recent = log.recent(3)
    assert [entry.timestamp.hour for entry in recent] == [6, 5, 4]
