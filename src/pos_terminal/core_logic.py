"""Business logic layer for the POS terminal.

This module assembles the session context (catalog, cart, transaction log,
settings, cashier session, and recorder), wires every mutable component to
the data layer so each committed mutation is saved, and exposes the sales and
reporting workflows used by the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from . import data_manager, log
from .auth import AuthSession, User, UserDirectory, development_directory
from .cart import Cart, CartLine
from .catalog import DEFAULT_PRODUCTS, CatalogFilter, InMemoryCatalog, Product
from .constants import EXPECTED_SCHEMA_VERSION, PaymentMethod, StorageKey
from .errors import PersistenceError, ValidationError
from .money import ZERO, round2
from .recorder import PaymentConfirmer, SimulatedTerminal, TransactionRecorder
from .settings import SettingsStore, StoreSettings
from .transactions import Transaction, TransactionLog, ensure_aware


@dataclass(frozen=True)
class RuntimeContext:
    """Container for the collaborators owned by one till session."""

    config: data_manager.ConfigSettings
    storage: data_manager.StateStorage
    catalog: InMemoryCatalog
    cart: Cart
    transactions: TransactionLog
    settings: SettingsStore
    auth: AuthSession
    recorder: TransactionRecorder
    directory: UserDirectory = field(default_factory=development_directory, repr=False, compare=False)


@dataclass(frozen=True)
class CartTotals:
    """Derived cart amounts for a given tax rate."""

    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    item_count: int


@dataclass(frozen=True)
class TransactionSummary:
    """Aggregate figures over a set of transactions."""

    total_revenue: Decimal
    total_transactions: int
    average_order: Decimal
    total_tax: Decimal
    payment_breakdown: Dict[PaymentMethod, Decimal]


@dataclass(frozen=True)
class ProductSales:
    """Units and revenue sold for one product across transactions."""

    product_id: str
    name: str
    quantity: int
    revenue: Decimal


def persist_key(key: StorageKey, writer: Callable[[], None]) -> bool:
    """Run ``writer`` and report whether the save succeeded.

    Storage failures are logged and swallowed: the in-memory operation has
    already happened and the session keeps running, only durability is lost.
    """

    try:
        writer()
    except PersistenceError as exc:
        log.error("Unable to persist '%s': %s", key.value, exc)
        return False
    log.debug("Persisted '%s'", key.value)
    return True


def ensure_schema_version(config: data_manager.ConfigSettings) -> None:
    """Validate state layout compatibility before touching storage.

    Raises:
        RuntimeError: If the configured schema version does not match
            ``EXPECTED_SCHEMA_VERSION``.
    """

    if config.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "State schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            config.schema_version,
        )
        raise RuntimeError(
            "State schema mismatch: expected %s, found %s" % (EXPECTED_SCHEMA_VERSION, config.schema_version)
        )
    log.debug("Schema version '%s' validated", config.schema_version)


def build_runtime_context(
    config: data_manager.ConfigSettings,
    storage: data_manager.StateStorage,
    *,
    confirmer: Optional[PaymentConfirmer] = None,
    directory: Optional[UserDirectory] = None,
    default_products: Iterable[Product] = DEFAULT_PRODUCTS,
) -> RuntimeContext:
    """Rehydrate persisted state and wire the session collaborators.

    Every mutable component receives an observer that saves its storage key
    after each effective mutation.

    Args:
        config (ConfigSettings): Parsed configuration.
        storage (StateStorage): Durable storage backend.
        confirmer (PaymentConfirmer | None): Payment confirmation step;
            defaults to a :class:`SimulatedTerminal` using the configured delay.
        directory (UserDirectory | None): Accounts accepted by ``login``.
        default_products (Iterable[Product]): Catalog used when storage has
            none.

    Returns:
        RuntimeContext: Ready-to-use session context.
    """

    state = data_manager.load_state(storage, config.store_defaults, default_products)

    catalog = InMemoryCatalog(state.products)
    cart = Cart(state.cart_lines)
    transactions = TransactionLog(state.transactions)
    settings = SettingsStore(state.settings)
    auth = AuthSession(state.user)

    cart.on_change = lambda current: persist_key(
        StorageKey.CART, lambda: data_manager.save_cart(storage, current.lines)
    )
    transactions.on_change = lambda current: persist_key(
        StorageKey.TRANSACTIONS, lambda: data_manager.save_transactions(storage, current.transactions)
    )
    settings.on_change = lambda current: persist_key(
        StorageKey.SETTINGS, lambda: data_manager.save_settings(storage, current)
    )
    auth.on_change = lambda current: persist_key(
        StorageKey.AUTH, lambda: data_manager.save_auth_session(storage, current.user)
    )

    recorder = TransactionRecorder(
        cart,
        transactions,
        settings,
        auth,
        confirmer or SimulatedTerminal(config.confirmation_delay),
        timeout=config.confirmation_timeout,
    )
    return RuntimeContext(
        config=config,
        storage=storage,
        catalog=catalog,
        cart=cart,
        transactions=transactions,
        settings=settings,
        auth=auth,
        recorder=recorder,
        directory=directory or development_directory(),
    )


def load_runtime_context(
    config_path: Optional[Path] = None,
    *,
    storage: Optional[data_manager.StateStorage] = None,
    confirmer: Optional[PaymentConfirmer] = None,
) -> RuntimeContext:
    """Load configuration and persisted state for a till session.

    Args:
        config_path (Path | None): Optional override for ``config.ini``. When
            omitted the data layer searches upward from the working directory.
        storage (StateStorage | None): Backend override; defaults to JSON
            files in the configured data directory.
        confirmer (PaymentConfirmer | None): Payment confirmation override.

    Returns:
        RuntimeContext: Fully populated context.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
        RuntimeError: On a schema version mismatch.
    """

    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    config = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    ensure_schema_version(config)
    backend = storage if storage is not None else data_manager.JsonFileStorage(config.data_dir)
    context = build_runtime_context(config, backend, confirmer=confirmer)
    log.info("Loaded runtime context from '%s'", resolved_config)
    return context


# ---------------------------------------------------------------------------
# Sales workflow
# ---------------------------------------------------------------------------


def list_products(
    context: RuntimeContext,
    *,
    search_term: str = "",
    category: str = "",
) -> List[Product]:
    """Return sellable products matching the search term and category."""

    return context.catalog.list_active_products(CatalogFilter(search_term=search_term, category=category))


def add_to_cart(context: RuntimeContext, product_id: str, quantity: int = 1) -> CartLine:
    """Add ``quantity`` units of a catalog product to the cart.

    Raises:
        MissingReferenceError: If the product id is unknown.
        ValidationError: If the product is inactive or ``quantity`` < 1.
    """

    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    product = context.catalog.get_product(product_id)
    if not product.is_active:
        log.warning("Attempted to sell inactive product '%s'", product_id)
        raise ValidationError(f"Product '{product_id}' is inactive")
    line = context.cart.add_item(product)
    if quantity > 1:
        context.cart.update_quantity(product_id, line.quantity + quantity - 1)
        line = context.cart.find_line(product_id) or line
    return line


def remove_from_cart(context: RuntimeContext, product_id: str) -> None:
    context.cart.remove_item(product_id)


def set_cart_quantity(context: RuntimeContext, product_id: str, quantity: int) -> None:
    context.cart.update_quantity(product_id, quantity)


def clear_cart(context: RuntimeContext) -> None:
    context.cart.clear_cart()


def cart_totals(context: RuntimeContext) -> CartTotals:
    """Compute subtotal, tax, and total with the current store tax rate."""

    tax_rate = context.settings.current_settings().tax_rate
    subtotal = context.cart.get_subtotal()
    return CartTotals(
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax=context.cart.get_tax(tax_rate),
        total=context.cart.get_total(tax_rate),
        item_count=context.cart.item_count,
    )


def checkout(
    context: RuntimeContext,
    method: Union[str, PaymentMethod],
    tendered: Optional[Decimal] = None,
) -> Transaction:
    """Take payment for the cart and commit the resulting transaction."""

    return context.recorder.checkout(method, tendered)


def login(context: RuntimeContext, username: str, password: str) -> User:
    return context.auth.login(username, password, context.directory)


def logout(context: RuntimeContext) -> None:
    context.auth.logout()


def update_store_settings(context: RuntimeContext, **changes: Any) -> StoreSettings:
    return context.settings.update_settings(**changes)


# ---------------------------------------------------------------------------
# History and reporting
# ---------------------------------------------------------------------------


def get_transaction(context: RuntimeContext, transaction_id: str) -> Optional[Transaction]:
    """Look up a transaction by id, falling back to its receipt number."""

    return context.transactions.by_id(transaction_id) or context.transactions.by_receipt_number(transaction_id)


def filter_transactions(
    context: RuntimeContext,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: str = "",
    method: Optional[Union[str, PaymentMethod]] = None,
) -> List[Transaction]:
    """Apply the history screen filters and return matches newest first.

    Open-ended ranges are allowed: a missing ``start`` or ``end`` leaves that
    side unbounded.
    """

    log_entries = context.transactions
    results = log_entries.search(search) if search else list(log_entries)
    if start is not None or end is not None:
        lower = ensure_aware(start) if start is not None else datetime.min.replace(tzinfo=UTC)
        upper = ensure_aware(end) if end is not None else datetime.max.replace(tzinfo=UTC)
        in_range = {transaction.id for transaction in log_entries.by_date_range(lower, upper)}
        results = [transaction for transaction in results if transaction.id in in_range]
    if method is not None:
        wanted = PaymentMethod(method)
        results = [transaction for transaction in results if transaction.payment_method is wanted]
    return sorted(results, key=lambda transaction: transaction.timestamp, reverse=True)


def summarize_transactions(transactions: Iterable[Transaction]) -> TransactionSummary:
    """Aggregate revenue, tax, order count, and per-method totals."""

    revenue = ZERO
    tax = ZERO
    count = 0
    breakdown: Dict[PaymentMethod, Decimal] = {}
    for transaction in transactions:
        revenue += transaction.total
        tax += transaction.tax
        count += 1
        breakdown[transaction.payment_method] = breakdown.get(transaction.payment_method, ZERO) + transaction.total
    average = round2(revenue / count) if count else ZERO
    log.debug("Summarised %d transactions: revenue=%s tax=%s", count, revenue, tax)
    return TransactionSummary(
        total_revenue=revenue,
        total_transactions=count,
        average_order=average,
        total_tax=tax,
        payment_breakdown=breakdown,
    )


def daily_metrics(transactions: Iterable[Transaction], day: date) -> TransactionSummary:
    """Summarise transactions whose UTC timestamp falls on ``day``."""

    return summarize_transactions(
        transaction for transaction in transactions if transaction.timestamp.astimezone(UTC).date() == day
    )


def weekly_metrics(transactions: Iterable[Transaction], now: Optional[datetime] = None) -> TransactionSummary:
    """Summarise the transactions of the last seven days up to ``now``."""

    upper = ensure_aware(now or datetime.now(UTC))
    lower = upper - timedelta(days=7)
    return summarize_transactions(
        transaction for transaction in transactions if lower <= transaction.timestamp <= upper
    )


def top_products(transactions: Iterable[Transaction], limit: int = 5) -> List[ProductSales]:
    """Rank products by revenue across the supplied transactions."""

    totals: Dict[str, ProductSales] = {}
    for transaction in transactions:
        for item in transaction.items:
            current = totals.get(item.product_id)
            quantity = item.quantity + (current.quantity if current else 0)
            revenue = item.line_total + (current.revenue if current else ZERO)
            name = current.name if current else item.name
            totals[item.product_id] = ProductSales(item.product_id, name, quantity, revenue)
    ranked = sorted(totals.values(), key=lambda sales: (sales.revenue, sales.quantity), reverse=True)
    return ranked[:limit]


def export_transactions(
    context: RuntimeContext,
    destination: Path,
    transactions: Optional[Iterable[Transaction]] = None,
) -> Path:
    """Export ``transactions`` (default: the whole log) to an Excel workbook."""

    selected = list(transactions) if transactions is not None else list(context.transactions)
    return data_manager.export_transactions_workbook(selected, destination)


__all__ = [
    "RuntimeContext",
    "CartTotals",
    "TransactionSummary",
    "ProductSales",
    "persist_key",
    "ensure_schema_version",
    "build_runtime_context",
    "load_runtime_context",
    "list_products",
    "add_to_cart",
    "remove_from_cart",
    "set_cart_quantity",
    "clear_cart",
    "cart_totals",
    "checkout",
    "login",
    "logout",
    "update_store_settings",
    "get_transaction",
    "filter_transactions",
    "summarize_transactions",
    "daily_metrics",
    "weekly_metrics",
    "top_products",
    "export_transactions",
]
