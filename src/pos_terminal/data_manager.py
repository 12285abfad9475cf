"""Data access layer for the POS terminal.

This module reads and writes durable state. Business rules belong elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Storage backends: one JSON record per :class:`StorageKey`.
3. Record (de)serialization: explicit, typed converters that restore money as
   :class:`~decimal.Decimal` and timestamps as aware :class:`datetime`
   instances, rejecting anything they cannot parse.
4. Reporting output: exporting the transaction log to an Excel workbook.
"""


from __future__ import annotations

import configparser
import json
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, TypeVar, Union

import openpyxl
from openpyxl.styles import Font

from . import log
from .auth import User
from .cart import CartLine
from .catalog import Product
from .constants import PaymentMethod, StorageKey, UserRole
from .errors import PersistenceError, ValidationError
from .money import format_payment_method, to_money
from .settings import StoreSettings, validate_settings
from .transactions import Transaction, ensure_aware


CONFIG_FILE_NAME = "config.ini"
DEFAULT_CONFIRMATION_DELAY = 1.5
DEFAULT_CONFIRMATION_TIMEOUT = 30.0

EXPORT_COLUMNS: Sequence[str] = (
    "Receipt Number",
    "Date",
    "Cashier",
    "Items",
    "Subtotal",
    "Tax",
    "Total",
    "Payment Method",
    "Amount Paid",
    "Change",
)

T = TypeVar("T")
KeyLike = Union[StorageKey, str]


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_dir: Path
    schema_version: str
    store_defaults: StoreSettings = field(default_factory=StoreSettings)
    confirmation_delay: float = DEFAULT_CONFIRMATION_DELAY
    confirmation_timeout: Optional[float] = DEFAULT_CONFIRMATION_TIMEOUT


@dataclass(frozen=True)
class PersistedState:
    """Everything restored from storage at startup."""

    cart_lines: tuple[CartLine, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    settings: StoreSettings = field(default_factory=StoreSettings)
    user: Optional[User] = None
    products: tuple[Product, ...] = ()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file.

    If the caller provides ``explicit_path`` the value is returned immediately
    without verification. Otherwise the search walks up from the current
    working directory toward the filesystem root and returns the first
    ``config.ini`` found.

    Args:
        explicit_path (Path | None): Optional path to use instead of the
            upward search.

    Returns:
        Path: The explicit path or the discovered configuration file.

    Raises:
        FileNotFoundError: If no ``config.ini`` exists in any parent directory.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion
            and resolution.
    """

    config_path = Path(config_path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` must define ``DataDirectory`` and ``SchemaVersion``. The
    ``[Store]`` and ``[Payment]`` sections are optional and fall back to the
    built-in defaults. Relative data directories are anchored at
    ``base_path`` (or the current working directory).

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Anchor for a relative ``DataDirectory``.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required option is missing.
        ValueError: If a numeric option or the store defaults are invalid.
    """

    try:
        data_dir_raw = parser.get("System", "DataDirectory")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_dir = Path(data_dir_raw).expanduser()
    if not data_dir.is_absolute():
        data_dir = ((base_path or Path.cwd()) / data_dir).resolve()

    base = StoreSettings()
    store = parser["Store"] if parser.has_section("Store") else {}
    try:
        store_defaults = validate_settings(
            StoreSettings(
                tax_rate=store.get("TaxRate", str(base.tax_rate)),
                currency=store.get("Currency", base.currency),
                store_name=store.get("StoreName", base.store_name),
                store_address=store.get("StoreAddress", base.store_address),
                store_phone=store.get("StorePhone", base.store_phone),
                receipt_footer=store.get("ReceiptFooter", base.receipt_footer),
            )
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid [Store] configuration: {exc}") from exc

    delay = parser.getfloat("Payment", "ConfirmationDelay", fallback=DEFAULT_CONFIRMATION_DELAY)
    timeout = parser.getfloat("Payment", "ConfirmationTimeout", fallback=DEFAULT_CONFIRMATION_TIMEOUT)

    return ConfigSettings(
        data_dir=data_dir,
        schema_version=schema_version,
        store_defaults=store_defaults,
        confirmation_delay=delay,
        confirmation_timeout=timeout if timeout > 0 else None,
    )


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------


class StateStorage(Protocol):
    """Key/value store holding one JSON object per key."""

    def read(self, key: KeyLike) -> Optional[Dict[str, Any]]:
        ...

    def write(self, key: KeyLike, payload: Mapping[str, Any]) -> None:
        ...

    def delete(self, key: KeyLike) -> None:
        ...


def _key_name(key: KeyLike) -> str:
    return StorageKey(key).value


def _decode_payload(key: str, text: str) -> Dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Stored record '{key}' is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise PersistenceError(f"Stored record '{key}' must be a JSON object")
    return payload


class JsonFileStorage:
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser().resolve()

    def path_for(self, key: KeyLike) -> Path:
        return self.directory / f"{_key_name(key)}.json"

    def read(self, key: KeyLike) -> Optional[Dict[str, Any]]:
        """Return the stored object, or ``None`` when the key was never written.

        Raises:
            PersistenceError: If the file cannot be read or does not contain a
                JSON object.
        """

        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Unable to read '{path}': {exc}") from exc
        return _decode_payload(_key_name(key), text)

    def write(self, key: KeyLike, payload: Mapping[str, Any]) -> None:
        """Atomically replace the stored object for ``key``.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """

        path = self.path_for(key)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write '{path}': {exc}") from exc
        log.debug("Wrote storage record '%s'", path)

    def delete(self, key: KeyLike) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Unable to delete '{self.path_for(key)}': {exc}") from exc


class MemoryStorage:
    """In-process storage that still round-trips payloads through JSON text."""

    def __init__(self, records: Optional[Mapping[str, str]] = None) -> None:
        self.records: Dict[str, str] = dict(records or {})

    def read(self, key: KeyLike) -> Optional[Dict[str, Any]]:
        name = _key_name(key)
        text = self.records.get(name)
        if text is None:
            return None
        return _decode_payload(name, text)

    def write(self, key: KeyLike, payload: Mapping[str, Any]) -> None:
        self.records[_key_name(key)] = json.dumps(payload)

    def delete(self, key: KeyLike) -> None:
        self.records.pop(_key_name(key), None)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require(record: Mapping[str, Any], name: str, kind: str) -> Any:
    if not isinstance(record, Mapping):
        raise PersistenceError(f"Stored {kind} must be an object, got {type(record).__name__}")
    value = record.get(name)
    if value is None:
        raise PersistenceError(f"Stored {kind} is missing required field '{name}'")
    return value


def _money(raw: Any, name: str) -> Decimal:
    try:
        return to_money(raw)
    except ValidationError as exc:
        raise PersistenceError(f"Field '{name}' holds an invalid amount: {raw!r}") from exc


def _integer(raw: Any, name: str) -> int:
    if isinstance(raw, bool):
        raise PersistenceError(f"Field '{name}' must be an integer, got {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().lstrip("-").isdecimal():
        try:
            return int(raw)
        except ValueError as exc:
            raise PersistenceError(f"Field '{name}' must be an integer, got {raw!r}") from exc
    raise PersistenceError(f"Field '{name}' must be an integer, got {raw!r}")


def parse_instant(raw: Any, name: str = "timestamp") -> datetime:
    """Parse a stored ISO-8601 instant into an aware UTC ``datetime``.

    ``Z`` suffixes are accepted and naive values are interpreted as UTC.

    Raises:
        PersistenceError: If ``raw`` is not a parsable ISO-8601 string or
            cannot be expressed in UTC.
    """

    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str):
        try:
            parsed = datetime.fromisoformat(raw.strip())
        except ValueError as exc:
            raise PersistenceError(f"Field '{name}' is not a valid ISO-8601 instant: {raw!r}") from exc
    else:
        raise PersistenceError(f"Field '{name}' must be an ISO-8601 string, got {raw!r}")
    try:
        return ensure_aware(parsed).astimezone(UTC)
    except (ValueError, OverflowError) as exc:
        raise PersistenceError(f"Field '{name}' is outside the supported date range: {raw!r}") from exc


def format_instant(moment: datetime) -> str:
    return ensure_aware(moment).astimezone(UTC).isoformat()


def _optional_text(record: Mapping[str, Any], name: str) -> Optional[str]:
    value = record.get(name)
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Record (de)serialization
# ---------------------------------------------------------------------------


def serialize_cart_line(line: CartLine) -> Dict[str, Any]:
    """Convert a cart line into its stored camelCase shape."""

    return {
        "id": line.id,
        "productId": line.product_id,
        "name": line.name,
        "unitPrice": str(line.unit_price),
        "quantity": line.quantity,
    }


def deserialize_cart_line(record: Mapping[str, Any]) -> CartLine:
    """Rebuild a :class:`CartLine` from storage.

    Records written before ``unitPrice`` existed carry the amount as
    ``price``; both are accepted.

    Raises:
        PersistenceError: If required fields are missing or the quantity is
            not a positive integer.
    """

    price_raw = record.get("unitPrice", record.get("price")) if isinstance(record, Mapping) else None
    if price_raw is None:
        raise PersistenceError("Stored cart line is missing required field 'unitPrice'")
    quantity = _integer(_require(record, "quantity", "cart line"), "quantity")
    if quantity < 1:
        raise PersistenceError(f"Stored cart line has non-positive quantity {quantity}")
    unit_price = _money(price_raw, "unitPrice")
    if unit_price < 0:
        raise PersistenceError(f"Stored cart line has negative unit price {unit_price}")
    return CartLine(
        id=str(_require(record, "id", "cart line")),
        product_id=str(_require(record, "productId", "cart line")),
        name=str(record.get("name") or ""),
        unit_price=unit_price,
        quantity=quantity,
    )


def serialize_transaction(transaction: Transaction) -> Dict[str, Any]:
    """Convert a transaction into its stored shape.

    Monetary values are written as strings to keep their exact decimal
    representation; ``timestamp`` is an ISO-8601 UTC instant.
    """

    return {
        "id": transaction.id,
        "receiptNumber": transaction.receipt_number,
        "items": [serialize_cart_line(item) for item in transaction.items],
        "subtotal": str(transaction.subtotal),
        "tax": str(transaction.tax),
        "total": str(transaction.total),
        "paymentMethod": transaction.payment_method.value,
        "amountPaid": str(transaction.amount_paid),
        "change": str(transaction.change),
        "cashierId": transaction.cashier_id,
        "cashierName": transaction.cashier_name,
        "timestamp": format_instant(transaction.timestamp),
    }


def deserialize_transaction(record: Mapping[str, Any]) -> Transaction:
    """Rebuild a :class:`Transaction`, restoring ``timestamp`` as an instant.

    Raises:
        PersistenceError: If a required field is missing, an amount or the
            payment method is invalid, or the timestamp cannot be parsed.
    """

    kind = "transaction"
    items_raw = _require(record, "items", kind)
    if not isinstance(items_raw, list):
        raise PersistenceError("Stored transaction field 'items' must be a list")
    method_raw = _require(record, "paymentMethod", kind)
    try:
        method = PaymentMethod(method_raw)
    except ValueError as exc:
        raise PersistenceError(f"Stored transaction has unknown payment method {method_raw!r}") from exc

    return Transaction(
        id=str(_require(record, "id", kind)),
        receipt_number=str(_require(record, "receiptNumber", kind)),
        items=tuple(deserialize_cart_line(item) for item in items_raw),
        subtotal=_money(_require(record, "subtotal", kind), "subtotal"),
        tax=_money(_require(record, "tax", kind), "tax"),
        total=_money(_require(record, "total", kind), "total"),
        payment_method=method,
        amount_paid=_money(_require(record, "amountPaid", kind), "amountPaid"),
        change=_money(record.get("change", "0.00"), "change"),
        cashier_id=str(_require(record, "cashierId", kind)),
        cashier_name=str(record.get("cashierName") or ""),
        timestamp=parse_instant(_require(record, "timestamp", kind), "timestamp"),
    )


def serialize_settings(settings: StoreSettings) -> Dict[str, Any]:
    return {
        "taxRate": str(settings.tax_rate),
        "currency": settings.currency,
        "storeName": settings.store_name,
        "storeAddress": settings.store_address,
        "storePhone": settings.store_phone,
        "receiptFooter": settings.receipt_footer,
    }


def deserialize_settings(record: Mapping[str, Any], defaults: StoreSettings) -> StoreSettings:
    """Overlay stored settings onto ``defaults``; missing fields keep the default.

    Raises:
        PersistenceError: If the stored values fail validation.
    """

    if not isinstance(record, Mapping):
        raise PersistenceError("Stored settings must be an object")
    try:
        return validate_settings(
            StoreSettings(
                tax_rate=record.get("taxRate", defaults.tax_rate),
                currency=record.get("currency", defaults.currency),
                store_name=record.get("storeName", defaults.store_name),
                store_address=record.get("storeAddress", defaults.store_address),
                store_phone=record.get("storePhone", defaults.store_phone),
                receipt_footer=record.get("receiptFooter", defaults.receipt_footer),
            )
        )
    except ValidationError as exc:
        raise PersistenceError(f"Stored settings are invalid: {exc}") from exc


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "role": user.role.value,
        "isActive": user.is_active,
        "createdAt": format_instant(user.created_at),
    }


def deserialize_user(record: Mapping[str, Any]) -> User:
    kind = "user"
    role_raw = record.get("role", UserRole.CASHIER.value) if isinstance(record, Mapping) else None
    try:
        role = UserRole(role_raw)
    except ValueError as exc:
        raise PersistenceError(f"Stored user has unknown role {role_raw!r}") from exc
    return User(
        id=str(_require(record, "id", kind)),
        username=str(_require(record, "username", kind)),
        name=str(record.get("name") or ""),
        role=role,
        is_active=bool(record.get("isActive", True)),
        created_at=parse_instant(_require(record, "createdAt", kind), "createdAt"),
    )


def serialize_auth_session(user: Optional[User]) -> Dict[str, Any]:
    return {
        "user": serialize_user(user) if user is not None else None,
        "isAuthenticated": user is not None,
    }


def deserialize_auth_session(record: Mapping[str, Any]) -> Optional[User]:
    """Return the logged-in user, or ``None`` for a signed-out session."""

    user_raw = record.get("user")
    if not record.get("isAuthenticated", user_raw is not None) or user_raw is None:
        return None
    return deserialize_user(user_raw)


def serialize_product(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "price": str(product.price),
        "stock": product.stock,
        "isActive": product.is_active,
        "category": product.category,
        "description": product.description,
        "barcode": product.barcode,
    }


def deserialize_product(record: Mapping[str, Any]) -> Product:
    kind = "product"
    stock = _integer(record.get("stock", 0) if isinstance(record, Mapping) else None, "stock")
    price = _money(_require(record, "price", kind), "price")
    if price < 0 or stock < 0:
        raise PersistenceError(f"Stored product {record.get('id')!r} has a negative price or stock")
    return Product(
        id=str(_require(record, "id", kind)),
        name=str(_require(record, "name", kind)),
        price=price,
        stock=stock,
        is_active=bool(record.get("isActive", True)),
        category=str(record.get("category") or ""),
        description=_optional_text(record, "description"),
        barcode=_optional_text(record, "barcode"),
    )


# ---------------------------------------------------------------------------
# Keyed load / save
# ---------------------------------------------------------------------------


def _list_field(payload: Mapping[str, Any], name: str, key: StorageKey) -> List[Any]:
    value = payload.get(name, [])
    if not isinstance(value, list):
        raise PersistenceError(f"Stored record '{key.value}' field '{name}' must be a list")
    return value


def load_cart_lines(storage: StateStorage) -> List[CartLine]:
    """Strictly load ``cart-storage``; absent storage yields an empty cart.

    Raises:
        PersistenceError: On corrupt records or duplicate product lines.
    """

    payload = storage.read(StorageKey.CART)
    if payload is None:
        return []
    lines = [deserialize_cart_line(item) for item in _list_field(payload, "items", StorageKey.CART)]
    product_ids = [line.product_id for line in lines]
    if len(product_ids) != len(set(product_ids)):
        raise PersistenceError("Stored cart contains duplicate product lines")
    return lines


def load_transactions(storage: StateStorage) -> List[Transaction]:
    """Strictly load ``transaction-storage`` preserving stored (newest-first) order.

    Raises:
        PersistenceError: On corrupt records, unparsable timestamps, or
            duplicate identifiers.
    """

    payload = storage.read(StorageKey.TRANSACTIONS)
    if payload is None:
        return []
    transactions = [
        deserialize_transaction(item) for item in _list_field(payload, "transactions", StorageKey.TRANSACTIONS)
    ]
    ids = [transaction.id for transaction in transactions]
    receipts = [transaction.receipt_number for transaction in transactions]
    if len(ids) != len(set(ids)) or len(receipts) != len(set(receipts)):
        raise PersistenceError("Stored transaction log contains duplicate identifiers")
    return transactions


def load_settings(storage: StateStorage, defaults: StoreSettings) -> StoreSettings:
    payload = storage.read(StorageKey.SETTINGS)
    if payload is None:
        return defaults
    return deserialize_settings(payload.get("settings", {}), defaults)


def load_user(storage: StateStorage) -> Optional[User]:
    payload = storage.read(StorageKey.AUTH)
    if payload is None:
        return None
    return deserialize_auth_session(payload)


def load_products(storage: StateStorage) -> List[Product]:
    payload = storage.read(StorageKey.PRODUCTS)
    if payload is None:
        return []
    products = [deserialize_product(item) for item in _list_field(payload, "products", StorageKey.PRODUCTS)]
    product_ids = [product.id for product in products]
    if len(product_ids) != len(set(product_ids)):
        raise PersistenceError("Stored catalog contains duplicate product ids")
    return products


def _load_or_default(key: StorageKey, loader: Callable[[], T], default: T) -> T:
    try:
        return loader()
    except PersistenceError as exc:
        log.error("Discarding stored '%s' and starting from defaults: %s", key.value, exc)
        return default


def load_state(
    storage: StateStorage,
    default_settings: Optional[StoreSettings] = None,
    default_products: Iterable[Product] = (),
) -> PersistedState:
    """Restore every storage key for startup.

    Each key is loaded independently. A key that is absent yields its default;
    a key that fails to load is logged and replaced by its default so a
    corrupt record never prevents the session from starting.

    Args:
        storage (StateStorage): Backend to read from.
        default_settings (StoreSettings | None): Settings used when none are
            stored.
        default_products (Iterable[Product]): Catalog used when
            ``product-storage`` is absent or unreadable.

    Returns:
        PersistedState: Fully typed state.
    """

    defaults = default_settings or StoreSettings()
    fallback_products = tuple(default_products)
    products = _load_or_default(StorageKey.PRODUCTS, lambda: tuple(load_products(storage)), fallback_products)
    state = PersistedState(
        cart_lines=_load_or_default(StorageKey.CART, lambda: tuple(load_cart_lines(storage)), ()),
        transactions=_load_or_default(StorageKey.TRANSACTIONS, lambda: tuple(load_transactions(storage)), ()),
        settings=_load_or_default(StorageKey.SETTINGS, lambda: load_settings(storage, defaults), defaults),
        user=_load_or_default(StorageKey.AUTH, lambda: load_user(storage), None),
        products=products or fallback_products,
    )
    log.info(
        "Loaded state: %d cart lines, %d transactions, %d products, user=%s",
        len(state.cart_lines),
        len(state.transactions),
        len(state.products),
        state.user.username if state.user else None,
    )
    return state


def save_cart(storage: StateStorage, lines: Iterable[CartLine]) -> None:
    storage.write(StorageKey.CART, {"items": [serialize_cart_line(line) for line in lines]})


def save_transactions(storage: StateStorage, transactions: Iterable[Transaction]) -> None:
    storage.write(
        StorageKey.TRANSACTIONS,
        {"transactions": [serialize_transaction(transaction) for transaction in transactions]},
    )


def save_settings(storage: StateStorage, settings: StoreSettings) -> None:
    storage.write(StorageKey.SETTINGS, {"settings": serialize_settings(settings)})


def save_auth_session(storage: StateStorage, user: Optional[User]) -> None:
    storage.write(StorageKey.AUTH, serialize_auth_session(user))


def save_products(storage: StateStorage, products: Iterable[Product]) -> None:
    storage.write(StorageKey.PRODUCTS, {"products": [serialize_product(product) for product in products]})


# ---------------------------------------------------------------------------
# Workbook export
# ---------------------------------------------------------------------------


def serialize_export_row(transaction: Transaction) -> list[object]:
    """Convert a transaction into the export column ordering.

    Numeric fields remain :class:`~decimal.Decimal` instances so Excel keeps
    their precision; the timestamp is written as a naive UTC datetime because
    worksheets cannot store time zones.
    """

    return [
        transaction.receipt_number,
        ensure_aware(transaction.timestamp).astimezone(UTC).replace(tzinfo=None),
        transaction.cashier_name,
        transaction.item_count,
        transaction.subtotal,
        transaction.tax,
        transaction.total,
        format_payment_method(transaction.payment_method),
        transaction.amount_paid,
        transaction.change,
    ]


def export_transactions_workbook(transactions: Iterable[Transaction], destination: Path) -> Path:
    """Write ``transactions`` to an ``.xlsx`` report at ``destination``.

    Parent directories are created on demand and an existing file is
    replaced.

    Returns:
        Path: Resolved path of the written workbook.
    """

    dest = Path(destination).expanduser().resolve()
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Transactions"

    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(EXPORT_COLUMNS, start=1):
        cell = sheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font

    count = 0
    for transaction in transactions:
        sheet.append(serialize_export_row(transaction))
        count += 1

    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)
    log.info("Exported %d transactions to '%s'", count, dest)
    return dest


__all__ = [
    "CONFIG_FILE_NAME",
    "EXPORT_COLUMNS",
    "ConfigSettings",
    "PersistedState",
    "find_config_file",
    "read_config",
    "parse_settings",
    "StateStorage",
    "JsonFileStorage",
    "MemoryStorage",
    "parse_instant",
    "format_instant",
    "serialize_cart_line",
    "deserialize_cart_line",
    "serialize_transaction",
    "deserialize_transaction",
    "serialize_settings",
    "deserialize_settings",
    "serialize_user",
    "deserialize_user",
    "serialize_auth_session",
    "deserialize_auth_session",
    "serialize_product",
    "deserialize_product",
    "load_cart_lines",
    "load_transactions",
    "load_settings",
    "load_user",
    "load_products",
    "load_state",
    "save_cart",
    "save_transactions",
    "save_settings",
    "save_auth_session",
    "save_products",
    "serialize_export_row",
    "export_transactions_workbook",
]
