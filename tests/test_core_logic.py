"""Unit tests for the business logic layer."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import Mock

import pytest

from pos_terminal import constants, core_logic, data_manager
from pos_terminal.cart import CartLine
from pos_terminal.catalog import DEFAULT_PRODUCTS
from pos_terminal.constants import PaymentMethod, StorageKey
from pos_terminal.errors import (
    AuthorizationError,
    InsufficientTenderError,
    MissingReferenceError,
    PersistenceError,
    ValidationError,
)


def _stored(storage: data_manager.MemoryStorage, key: StorageKey) -> dict:
    return json.loads(storage.records[key.value])


# ---------------------------------------------------------------------------
# Context assembly
# ---------------------------------------------------------------------------


def test_ensure_schema_version_accepts_expected(settings):
    """ensure_schema_version should accept the expected version."""

    core_logic.ensure_schema_version(settings)


def test_ensure_schema_version_rejects_mismatch(settings):
    """ensure_schema_version should raise RuntimeError on mismatch."""

    with pytest.raises(RuntimeError):
        core_logic.ensure_schema_version(replace(settings, schema_version="0.0.1"))


def test_build_runtime_context_uses_default_catalog(context):
    """A fresh backend should expose the starter products."""

    assert [product.id for product in core_logic.list_products(context)] == ["1", "2", "3", "4"]
    assert context.cart.is_empty
    assert len(context.transactions) == 0
    assert context.auth.user is None


def test_build_runtime_context_restores_persisted_state(settings, storage, confirmer, cashier_user, transaction_factory):
    """Persisted cart, log, settings, and session should be rehydrated."""

    entry = transaction_factory()
    data_manager.save_cart(storage, [CartLine("cart-1", "2", "Sandwich - Club", Decimal("8.99"), 3)])
    data_manager.save_transactions(storage, [entry])
    data_manager.save_settings(storage, replace(settings.store_defaults, tax_rate=Decimal("0.10")))
    data_manager.save_auth_session(storage, cashier_user)

    context = core_logic.build_runtime_context(settings, storage, confirmer=confirmer)
    assert context.cart.find_line("2").quantity == 3
    assert context.transactions.by_id(entry.id) == entry
    assert context.settings.current_settings().tax_rate == Decimal("0.10")
    assert context.auth.user == cashier_user


def test_load_runtime_context_reads_config_file(config_factory, confirmer):
    """load_runtime_context should honour the config and use JSON files."""

    bundle = config_factory(store_name="Corner Cafe")
    context = core_logic.load_runtime_context(bundle.config_path, confirmer=confirmer)
    assert isinstance(context.storage, data_manager.JsonFileStorage)
    assert context.storage.directory == bundle.data_dir.resolve()
    assert context.settings.current_settings().store_name == "Corner Cafe"


def test_load_runtime_context_rejects_schema_mismatch(config_factory):
    """A config with another schema version should refuse to load."""

    bundle = config_factory(schema_version="9.9.9")
    with pytest.raises(RuntimeError):
        core_logic.load_runtime_context(bundle.config_path)


# ---------------------------------------------------------------------------
# Persistence wiring
# ---------------------------------------------------------------------------


def test_cart_mutations_are_persisted(context, storage):
    """Each effective cart mutation should rewrite cart-storage."""

    core_logic.add_to_cart(context, "1")
    assert _stored(storage, StorageKey.CART)["items"][0]["productId"] == "1"
    core_logic.set_cart_quantity(context, "1", 4)
    assert _stored(storage, StorageKey.CART)["items"][0]["quantity"] == 4
    core_logic.clear_cart(context)
    assert _stored(storage, StorageKey.CART) == {"items": []}


def test_login_and_settings_are_persisted(context, storage):
    """Session and settings changes should be written to their keys."""

    core_logic.login(context, "admin", "admin")
    assert _stored(storage, StorageKey.AUTH)["isAuthenticated"] is True
    core_logic.update_store_settings(context, store_name="Night Shift")
    assert _stored(storage, StorageKey.SETTINGS)["settings"]["storeName"] == "Night Shift"
    core_logic.logout(context)
    assert _stored(storage, StorageKey.AUTH) == {"user": None, "isAuthenticated": False}


def test_persist_key_logs_and_swallows_storage_failures(monkeypatch):
    """persist_key should report failure without raising."""

    error_log = Mock()
    monkeypatch.setattr(core_logic.log, "error", error_log)
    writer = Mock(side_effect=PersistenceError("disk full"))
    assert core_logic.persist_key(StorageKey.CART, writer) is False
    error_log.assert_called_once()
    assert core_logic.persist_key(StorageKey.CART, Mock()) is True


def test_storage_failure_does_not_undo_in_memory_change(context, monkeypatch):
    """A failing backend should leave the in-memory cart updated."""

    monkeypatch.setattr(context.storage, "write", Mock(side_effect=PersistenceError("read-only")))
    core_logic.add_to_cart(context, "1")
    assert context.cart.find_line("1").quantity == 1


# ---------------------------------------------------------------------------
# Sales workflow
# ---------------------------------------------------------------------------


def test_add_to_cart_with_quantity(context):
    """add_to_cart should support adding several units at once."""

    line = core_logic.add_to_cart(context, "3", quantity=3)
    assert line.quantity == 3
    assert context.cart.item_count == 3


def test_add_to_cart_rejects_unknown_and_inactive_products(settings, confirmer):
    """Unknown ids and inactive products should not be sellable."""

    retired = replace(DEFAULT_PRODUCTS[0], id="9", is_active=False)
    context = core_logic.build_runtime_context(
        settings,
        data_manager.MemoryStorage(),
        confirmer=confirmer,
        default_products=[*DEFAULT_PRODUCTS, retired],
    )
    with pytest.raises(MissingReferenceError):
        core_logic.add_to_cart(context, "missing")
    with pytest.raises(ValidationError):
        core_logic.add_to_cart(context, "9")
    with pytest.raises(ValidationError):
        core_logic.add_to_cart(context, "1", quantity=0)
    assert context.cart.is_empty


def test_cart_totals_follow_store_tax_rate(context):
    """cart_totals should use the current settings tax rate."""

    core_logic.add_to_cart(context, "1", quantity=2)
    totals = core_logic.cart_totals(context)
    assert (totals.subtotal, totals.tax, totals.total) == (Decimal("7.00"), Decimal("0.56"), Decimal("7.56"))
    core_logic.update_store_settings(context, tax_rate=Decimal("0"))
    assert core_logic.cart_totals(context).total == Decimal("7.00")


def test_checkout_commits_and_persists(logged_in_context, storage, confirmer):
    """A checkout should persist the new log entry and the cleared cart."""

    core_logic.add_to_cart(logged_in_context, "1", quantity=2)
    transaction = core_logic.checkout(logged_in_context, "cash", Decimal("10.00"))
    assert transaction.change == Decimal("2.44")
    stored = _stored(storage, StorageKey.TRANSACTIONS)["transactions"]
    assert [record["id"] for record in stored] == [transaction.id]
    assert _stored(storage, StorageKey.CART) == {"items": []}
    assert len(confirmer.attempts) == 1


def test_checkout_requires_login(context):
    """Checking out without a cashier should raise AuthorizationError."""

    core_logic.add_to_cart(context, "1")
    with pytest.raises(AuthorizationError):
        core_logic.checkout(context, PaymentMethod.CARD)


def test_checkout_with_short_cash_leaves_state_untouched(logged_in_context, storage):
    """An insufficient tender should not write a transaction."""

    core_logic.add_to_cart(logged_in_context, "1", quantity=2)
    with pytest.raises(InsufficientTenderError):
        core_logic.checkout(logged_in_context, PaymentMethod.CASH, Decimal("5.00"))
    assert StorageKey.TRANSACTIONS.value not in storage.records
    assert logged_in_context.cart.item_count == 2


def test_transactions_survive_reload(settings, storage, confirmer):
    """A committed sale should be visible after rebuilding the context."""

    first = core_logic.build_runtime_context(settings, storage, confirmer=confirmer)
    core_logic.login(first, "cashier", "cashier")
    core_logic.add_to_cart(first, "2")
    committed = core_logic.checkout(first, PaymentMethod.CARD)

    second = core_logic.build_runtime_context(settings, storage, confirmer=confirmer)
    restored = core_logic.get_transaction(second, committed.receipt_number)
    assert restored == committed
    assert isinstance(restored.timestamp, datetime)
    assert second.auth.user is not None
    assert second.cart.is_empty


# ---------------------------------------------------------------------------
# History and reporting
# ---------------------------------------------------------------------------


def _history_context(context, transaction_factory):
    base = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
    entries = [
        transaction_factory(timestamp=base, method=PaymentMethod.CASH, cashier_name="Alice"),
        transaction_factory(timestamp=base + timedelta(days=1), method=PaymentMethod.CARD),
        transaction_factory(timestamp=base + timedelta(days=2), method=PaymentMethod.CARD),
    ]
    for entry in entries:
        context.transactions.add(entry)
    return entries


def test_filter_transactions_by_range_method_and_search(context, transaction_factory):
    """filter_transactions should combine every criterion and sort newest first."""

    first, second, third = _history_context(context, transaction_factory)
    assert core_logic.filter_transactions(context) == [third, second, first]
    assert core_logic.filter_transactions(context, start=datetime(2025, 3, 11)) == [third, second]
    assert core_logic.filter_transactions(context, end=datetime(2025, 3, 11, 23, 59)) == [second, first]
    assert core_logic.filter_transactions(context, method="card", end=datetime(2025, 3, 11, 23, 59)) == [second]
    assert core_logic.filter_transactions(context, search="alice") == [first]


def test_summarize_transactions(transaction_factory):
    """summarize_transactions should total revenue, tax, and methods."""

    entries = [
        transaction_factory(method=PaymentMethod.CASH),
        transaction_factory(method=PaymentMethod.CARD),
        transaction_factory(method=PaymentMethod.CARD),
    ]
    summary = core_logic.summarize_transactions(entries)
    assert summary.total_transactions == 3
    assert summary.total_revenue == Decimal("22.68")
    assert summary.total_tax == Decimal("1.68")
    assert summary.average_order == Decimal("7.56")
    assert summary.payment_breakdown == {
        PaymentMethod.CASH: Decimal("7.56"),
        PaymentMethod.CARD: Decimal("15.12"),
    }


def test_summarize_empty_transactions():
    """An empty set should summarise to zeros."""

    summary = core_logic.summarize_transactions([])
    assert summary.total_transactions == 0
    assert summary.average_order == Decimal("0.00")
    assert summary.payment_breakdown == {}


def test_daily_and_weekly_metrics(transaction_factory):
    """Dashboard metrics should bucket transactions by UTC day and last week."""

    now = datetime(2025, 3, 14, 18, 0, tzinfo=UTC)
    entries = [
        transaction_factory(timestamp=now - timedelta(hours=2)),
        transaction_factory(timestamp=now - timedelta(days=3)),
        transaction_factory(timestamp=now - timedelta(days=10)),
    ]
    assert core_logic.daily_metrics(entries, date(2025, 3, 14)).total_transactions == 1
    assert core_logic.weekly_metrics(entries, now).total_transactions == 2


def test_top_products_ranks_by_revenue(transaction_factory):
    """top_products should aggregate quantities and revenue per product."""

    sandwich = (CartLine("cart-s", "2", "Sandwich - Club", Decimal("8.99"), 1),)
    entries = [transaction_factory(), transaction_factory(), transaction_factory(items=sandwich)]
    ranking = core_logic.top_products(entries)
    assert [sales.product_id for sales in ranking] == ["1", "2"]
    assert ranking[0].quantity == 4
    assert ranking[0].revenue == Decimal("14.00")
    assert core_logic.top_products(entries, limit=1) == ranking[:1]


def test_export_transactions_defaults_to_whole_log(context, transaction_factory, tmp_path, monkeypatch):
    """export_transactions should pass the full log to the workbook writer."""

    entries = _history_context(context, transaction_factory)
    writer = Mock(return_value=tmp_path / "report.xlsx")
    monkeypatch.setattr(data_manager, "export_transactions_workbook", writer)
    assert core_logic.export_transactions(context, tmp_path / "report.xlsx") == tmp_path / "report.xlsx"
    exported = writer.call_args.args[0]
    assert sorted(entry.id for entry in exported) == sorted(entry.id for entry in entries)


def test_schema_constant_is_semantic_version():
    """The expected schema version should be a dotted version string."""

    assert constants.EXPECTED_SCHEMA_VERSION.count(".") == 2
