"""Unit tests for the read-only catalog view."""

from __future__ import annotations

from decimal import Decimal

import pytest

from pos_terminal.catalog import DEFAULT_PRODUCTS, CatalogFilter, InMemoryCatalog, Product
from pos_terminal.errors import MissingReferenceError


def _catalog_with_inactive() -> InMemoryCatalog:
    retired = Product("9", "Coffee - Retired Blend", Decimal("4.00"), 3, False, "Beverages")
    scarce = Product("5", "Cookie - Oat", Decimal("1.50"), 4, True, "Bakery")
    return InMemoryCatalog([*DEFAULT_PRODUCTS, retired, scarce])


def test_list_active_products_excludes_inactive():
    """Inactive products should never be offered for sale."""

    catalog = _catalog_with_inactive()
    ids = [product.id for product in catalog.list_active_products()]
    assert "9" not in ids
    assert ids == ["1", "2", "3", "4", "5"]


def test_search_term_matches_name_case_insensitively():
    """A search term should match product names regardless of case."""

    catalog = InMemoryCatalog(DEFAULT_PRODUCTS)
    results = catalog.list_active_products(CatalogFilter(search_term="COFFEE"))
    assert [product.id for product in results] == ["1"]


def test_search_term_matches_description():
    """A search term should also match product descriptions."""

    catalog = InMemoryCatalog(DEFAULT_PRODUCTS)
    results = catalog.list_active_products(CatalogFilter(search_term="turkey"))
    assert [product.id for product in results] == ["2"]


def test_category_filter_limits_results():
    """A category filter should return only products in that category."""

    catalog = InMemoryCatalog(DEFAULT_PRODUCTS)
    results = catalog.list_active_products(CatalogFilter(category="Beverages"))
    assert {product.id for product in results} == {"1", "4"}


def test_get_product_unknown_id_raises():
    """Resolving an unknown id should raise MissingReferenceError."""

    with pytest.raises(MissingReferenceError):
        InMemoryCatalog(DEFAULT_PRODUCTS).get_product("missing")


def test_duplicate_product_ids_are_rejected():
    """The catalog should refuse two products with the same id."""

    with pytest.raises(ValueError):
        InMemoryCatalog([DEFAULT_PRODUCTS[0], DEFAULT_PRODUCTS[0]])


def test_categories_are_sorted_and_distinct():
    """categories should list active categories once, alphabetically."""

    assert InMemoryCatalog(DEFAULT_PRODUCTS).categories() == ["Bakery", "Beverages", "Food"]


def test_low_stock_flags_active_products_under_threshold():
    """low_stock should only report active products at or below the threshold."""

    catalog = _catalog_with_inactive()
    assert [product.id for product in catalog.low_stock()] == ["5"]
    assert [product.id for product in catalog.low_stock(threshold=30)] == ["2", "3", "5"]
