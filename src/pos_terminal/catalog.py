"""Read-only catalog view over an externally supplied product set.

Product maintenance lives outside the POS core. This module only filters and
looks up records; it never mutates a :class:`Product`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from . import log
from .constants import LOW_STOCK_THRESHOLD
from .errors import MissingReferenceError


@dataclass(frozen=True)
class Product:
    """Catalog record as supplied by the product collaborator."""

    id: str
    name: str
    price: Decimal
    stock: int
    is_active: bool
    category: str = ""
    description: Optional[str] = None
    barcode: Optional[str] = None


@dataclass(frozen=True)
class CatalogFilter:
    """Criteria applied when listing sellable products."""

    search_term: str = ""
    category: str = ""

    def matches(self, product: Product) -> bool:
        term = self.search_term.strip().lower()
        if term:
            haystacks = [product.name.lower()]
            if product.description:
                haystacks.append(product.description.lower())
            if not any(term in text for text in haystacks):
                return False
        if self.category and product.category != self.category:
            return False
        return True


class CatalogProvider(Protocol):
    """Interface consumed by the sales workflow."""

    def list_active_products(self, catalog_filter: Optional[CatalogFilter] = None) -> List[Product]:
        ...

    def get_product(self, product_id: str) -> Product:
        ...


class InMemoryCatalog:
    """Catalog backed by a fixed sequence of products, kept in supplied order."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: List[Product] = list(products)
        self._by_id: Dict[str, Product] = {}
        for product in self._products:
            if product.id in self._by_id:
                raise ValueError(f"Duplicate product id: {product.id}")
            self._by_id[product.id] = product
        log.debug("Catalog initialised with %d products", len(self._products))

    def __len__(self) -> int:
        return len(self._products)

    def list_active_products(self, catalog_filter: Optional[CatalogFilter] = None) -> List[Product]:
        """Return active products matching ``catalog_filter``.

        Inactive products are excluded regardless of the filter, mirroring
        what the sales screen is allowed to sell.

        Args:
            catalog_filter (CatalogFilter | None): Search and category
                criteria. ``None`` lists every active product.

        Returns:
            list[Product]: Matching products in catalog order.
        """

        criteria = catalog_filter or CatalogFilter()
        return [product for product in self._products if product.is_active and criteria.matches(product)]

    def get_product(self, product_id: str) -> Product:
        """Resolve a product by id.

        Raises:
            MissingReferenceError: If the catalog does not contain ``product_id``.
        """

        try:
            return self._by_id[product_id]
        except KeyError as exc:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise MissingReferenceError(f"Unknown product id: {product_id}") from exc

    def categories(self) -> List[str]:
        """Return the distinct non-empty categories of active products, sorted."""

        return sorted({product.category for product in self._products if product.is_active and product.category})

    def low_stock(self, threshold: int = LOW_STOCK_THRESHOLD, limit: Optional[int] = 5) -> List[Product]:
        """Return active products whose stock is at or below ``threshold``."""

        flagged = [product for product in self._products if product.is_active and product.stock <= threshold]
        return flagged if limit is None else flagged[:limit]


DEFAULT_PRODUCTS: tuple[Product, ...] = (
    Product(
        id="1",
        name="Coffee - Americano",
        price=Decimal("3.50"),
        stock=50,
        is_active=True,
        category="Beverages",
        description="Rich and bold americano coffee",
    ),
    Product(
        id="2",
        name="Sandwich - Club",
        price=Decimal("8.99"),
        stock=30,
        is_active=True,
        category="Food",
        description="Delicious club sandwich with turkey and bacon",
    ),
    Product(
        id="3",
        name="Muffin - Blueberry",
        price=Decimal("2.99"),
        stock=25,
        is_active=True,
        category="Bakery",
        description="Fresh baked blueberry muffin",
    ),
    Product(
        id="4",
        name="Tea - Green",
        price=Decimal("2.75"),
        stock=40,
        is_active=True,
        category="Beverages",
        description="Premium green tea",
    ),
)


__all__ = [
    "Product",
    "CatalogFilter",
    "CatalogProvider",
    "InMemoryCatalog",
    "DEFAULT_PRODUCTS",
]
