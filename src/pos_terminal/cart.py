"""Cart engine for the single session owned by a till.

The cart is an ordered collection of :class:`CartLine` records. Lines are
immutable; quantity changes replace the line in place so that snapshots
handed to the transaction recorder can never be altered afterwards.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from . import log
from .catalog import Product
from .errors import CartLockedError, IntegrityViolation
from .money import ZERO, calculate_tax, calculate_total, round2, to_money


@dataclass(frozen=True)
class CartLine:
    """One product entry in the cart with the price captured when added."""

    id: str
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def generate_line_id() -> str:
    """Return an opaque identifier for a new cart line."""

    return f"cart-{uuid.uuid4().hex}"


class Cart:
    """Mutable line collection with derived totals.

    Args:
        lines (Iterable[CartLine]): Initial lines, typically restored from
            storage. They are validated like any other mutation.
        on_change (Callable[[Cart], None] | None): Observer invoked after each
            effective mutation. The application context uses it to persist
            the cart.
    """

    def __init__(
        self,
        lines: Iterable[CartLine] = (),
        *,
        on_change: Optional[Callable[["Cart"], None]] = None,
    ) -> None:
        self._lines: List[CartLine] = list(lines)
        self._locked = False
        self.on_change = on_change
        self._check_invariants()

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> tuple[CartLine, ...]:
        """Snapshot of the current lines in display order."""

        return tuple(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        """Total number of units across all lines."""

        return sum(line.quantity for line in self._lines)

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        """Reject further mutations until :meth:`unlock` is called."""

        self._locked = True
        log.debug("Cart locked with %d lines", len(self._lines))

    def unlock(self) -> None:
        self._locked = False
        log.debug("Cart unlocked")

    def find_line(self, product_id: str) -> Optional[CartLine]:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def add_item(self, product: Product) -> CartLine:
        """Add one unit of ``product``.

        An existing line for the product has its quantity incremented and
        keeps the price captured when it was first added. Otherwise a new line
        is appended at ``product.price``. Stock levels are not checked here.

        Args:
            product (Product): Catalog record being sold.

        Returns:
            CartLine: The line as it stands after the operation.

        Raises:
            CartLockedError: If a payment is in flight.
        """

        self._require_unlocked()
        index = self._index_of(product.id)
        if index is None:
            line = CartLine(
                id=generate_line_id(),
                product_id=product.id,
                name=product.name,
                unit_price=to_money(product.price),
                quantity=1,
            )
            self._lines.append(line)
        else:
            line = replace(self._lines[index], quantity=self._lines[index].quantity + 1)
            self._lines[index] = line
        log.info("Cart add: product '%s' now at quantity %d", product.id, line.quantity)
        self._changed()
        return line

    def remove_item(self, product_id: str) -> None:
        """Delete the line for ``product_id``; absent ids are ignored."""

        self._require_unlocked()
        index = self._index_of(product_id)
        if index is None:
            log.debug("Cart remove ignored: no line for product '%s'", product_id)
            return
        del self._lines[index]
        log.info("Cart remove: product '%s'", product_id)
        self._changed()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Set the quantity of an existing line to exactly ``quantity``.

        A quantity of zero or below removes the line. Updating a product that
        has no line is a no-op and never creates one.

        Raises:
            CartLockedError: If a payment is in flight.
            IntegrityViolation: If ``quantity`` is not an integer.
        """

        self._require_unlocked()
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise IntegrityViolation(f"Quantity must be an integer, got {quantity!r}")
        if quantity <= 0:
            self.remove_item(product_id)
            return
        index = self._index_of(product_id)
        if index is None:
            log.debug("Cart update ignored: no line for product '%s'", product_id)
            return
        self._lines[index] = replace(self._lines[index], quantity=quantity)
        log.info("Cart update: product '%s' set to quantity %d", product_id, quantity)
        self._changed()

    def clear_cart(self) -> None:
        self._require_unlocked()
        if not self._lines:
            return
        self._lines.clear()
        log.info("Cart cleared")
        self._changed()

    def get_subtotal(self) -> Decimal:
        """Sum of ``unit_price * quantity`` over the lines; zero when empty."""

        return round2(sum((line.line_total for line in self._lines), ZERO))

    def get_tax(self, tax_rate: Decimal) -> Decimal:
        return calculate_tax(self.get_subtotal(), tax_rate)

    def get_total(self, tax_rate: Decimal) -> Decimal:
        subtotal = self.get_subtotal()
        return calculate_total(subtotal, calculate_tax(subtotal, tax_rate))

    def _index_of(self, product_id: str) -> Optional[int]:
        for index, line in enumerate(self._lines):
            if line.product_id == product_id:
                return index
        return None

    def _require_unlocked(self) -> None:
        if self._locked:
            log.warning("Rejected cart mutation while a payment is in flight")
            raise CartLockedError("Cart cannot be modified while a payment is in progress")

    def _changed(self) -> None:
        self._check_invariants()
        if self.on_change is not None:
            self.on_change(self)

    def _check_invariants(self) -> None:
        seen = set()
        for line in self._lines:
            if line.product_id in seen:
                log.error("Integrity violation: duplicate cart line for product '%s'", line.product_id)
                raise IntegrityViolation(f"Duplicate cart line for product {line.product_id}")
            seen.add(line.product_id)
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
                log.error(
                    "Integrity violation: product '%s' has quantity %r",
                    line.product_id,
                    line.quantity,
                )
                raise IntegrityViolation(f"Invalid quantity {line.quantity!r} for product {line.product_id}")
            if line.unit_price < 0:
                raise IntegrityViolation(f"Negative unit price for product {line.product_id}")


__all__ = ["CartLine", "Cart", "generate_line_id"]
