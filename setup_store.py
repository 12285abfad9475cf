"""Utility for initializing the POS terminal's data directory.

The module doubles as a script (``python setup_store.py``) and as a library
used by tests or other tooling. It seeds ``product-storage`` with the starter
catalog so a fresh till has something to sell.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, Sequence
import sys

from pos_terminal.catalog import DEFAULT_PRODUCTS, Product
from pos_terminal.constants import StorageKey
from pos_terminal.data_manager import JsonFileStorage, parse_settings, read_config, save_products
from pos_terminal.errors import PersistenceError

CONFIG_FILE = "config.ini"


def seed_product_storage(
    data_dir: Path,
    *,
    products: Iterable[Product] = DEFAULT_PRODUCTS,
    overwrite: bool = False,
) -> Path:
    """Write the starter catalog into ``data_dir``.

    Parameters are overridable to facilitate testing. When ``overwrite`` is
    ``False`` (the default) this function raises ``FileExistsError`` if
    ``product-storage`` already exists.
    """

    storage = JsonFileStorage(data_dir)
    destination = storage.path_for(StorageKey.PRODUCTS)
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing product storage: {destination}")

    save_products(storage, products)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Resolve the data directory from ``config_path`` and seed it."""

    config_path = Path(config_path).expanduser().resolve()
    settings = parse_settings(read_config(config_path), base_path=config_path.parent)
    return seed_product_storage(settings.data_dir, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize POS terminal data directory")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the product storage if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- POS Terminal Setup Script ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except (KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (OSError, PersistenceError) as exc:
        print(f"\n[ERROR] Unable to write product storage: {exc}")
        return 1

    print(f"\n[SUCCESS] Seeded product catalog at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
