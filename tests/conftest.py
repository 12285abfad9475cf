"""Shared pytest fixtures and utilities for POS terminal tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, List

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from pos_terminal import auth, cli, constants, core_logic, data_manager  # noqa: E402
from pos_terminal.cart import CartLine  # noqa: E402
from pos_terminal.catalog import DEFAULT_PRODUCTS, Product  # noqa: E402
from pos_terminal.recorder import PaymentAttempt  # noqa: E402
from pos_terminal.transactions import Transaction  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataDirectory = {data_dir}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Store]\n"
    "TaxRate = {tax_rate}\n"
    "StoreName = {store_name}\n\n"
    "[Payment]\n"
    "ConfirmationDelay = 0\n"
    "ConfirmationTimeout = 30\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_dir: Path
    schema_version: str
    store_name: str


class RecordingConfirmer:
    """Payment confirmer double that records attempts and can decline."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.attempts: List[PaymentAttempt] = []

    def confirm(self, attempt: PaymentAttempt) -> None:
        self.attempts.append(attempt)
        if self.error is not None:
            raise self.error


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/data directory bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        store_name: str = "Test Store",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        tax_rate: str = "0.08",
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        data_dir = bundle_dir / "data"
        data_dir_entry = "data" if make_relative else str(data_dir)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_dir=data_dir_entry,
                schema_version=schema_version,
                tax_rate=tax_rate,
                store_name=store_name,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            data_dir=data_dir,
            schema_version=schema_version,
            store_name=store_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load a file-backed runtime context through the public API."""

    return core_logic.load_runtime_context(config_file, confirmer=RecordingConfirmer())


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="pos-cli", description="POS CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_dir=tmp_path / "data",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        confirmation_delay=0.0,
    )


@pytest.fixture
def storage() -> data_manager.MemoryStorage:
    """Return an empty in-memory storage backend."""

    return data_manager.MemoryStorage()


@pytest.fixture
def confirmer() -> RecordingConfirmer:
    """Return an approving payment confirmer double."""

    return RecordingConfirmer()


@pytest.fixture
def context(
    settings: data_manager.ConfigSettings,
    storage: data_manager.MemoryStorage,
    confirmer: RecordingConfirmer,
) -> core_logic.RuntimeContext:
    """Assemble a memory-backed runtime context with the default catalog."""

    return core_logic.build_runtime_context(settings, storage, confirmer=confirmer)


@pytest.fixture
def logged_in_context(context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    """Runtime context with the development cashier signed in."""

    core_logic.login(context, "cashier", "cashier")
    return context


@pytest.fixture
def coffee() -> Product:
    """Return the 3.50 coffee from the starter catalog."""

    return DEFAULT_PRODUCTS[0]


@pytest.fixture
def cashier_user() -> auth.User:
    """Return a fixed cashier account."""

    return auth.User("2", "cashier", "Cashier User", constants.UserRole.CASHIER, True, datetime(2025, 1, 1, tzinfo=UTC))


@pytest.fixture
def transaction_factory() -> Callable[..., Transaction]:
    """Build committed transactions with sensible defaults."""

    def _create(
        *,
        receipt_number: str | None = None,
        timestamp: datetime | None = None,
        method: constants.PaymentMethod = constants.PaymentMethod.CARD,
        items: tuple[CartLine, ...] | None = None,
        cashier_name: str = "Cashier User",
    ) -> Transaction:
        token = uuid.uuid4().hex
        lines = items or (CartLine(f"cart-{token}", "1", "Coffee - Americano", Decimal("3.50"), 2),)
        subtotal = sum((line.line_total for line in lines), Decimal("0.00"))
        tax = (subtotal * Decimal("0.08")).quantize(Decimal("0.01"))
        total = subtotal + tax
        return Transaction(
            id=f"T-{token}",
            receipt_number=receipt_number or f"RCP-{token[:6]}-TEST",
            items=lines,
            subtotal=subtotal,
            tax=tax,
            total=total,
            payment_method=method,
            amount_paid=total,
            change=Decimal("0.00"),
            cashier_id="2",
            cashier_name=cashier_name,
            timestamp=timestamp or datetime(2025, 3, 14, 12, 0, tzinfo=UTC),
        )

    return _create
