"""Plain-text receipt rendering."""

from __future__ import annotations

from typing import List

from .money import format_currency, format_payment_method
from .settings import StoreSettings
from .transactions import Transaction


RECEIPT_WIDTH = 40


def _row(label: str, value: str, width: int = RECEIPT_WIDTH) -> str:
    gap = max(width - len(label) - len(value), 1)
    return f"{label}{' ' * gap}{value}"


def render_receipt(transaction: Transaction, settings: StoreSettings, *, width: int = RECEIPT_WIDTH) -> str:
    """Render ``transaction`` as a fixed-width text receipt.

    Amounts are formatted with the store currency; the stored values are not
    changed.
    """

    currency = settings.currency
    rule = "-" * width
    lines: List[str] = [
        settings.store_name.center(width).rstrip(),
        settings.store_address.center(width).rstrip(),
        settings.store_phone.center(width).rstrip(),
        rule,
        f"Receipt: {transaction.receipt_number}",
        f"Date: {transaction.timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}",
        f"Cashier: {transaction.cashier_name}",
        rule,
    ]
    for item in transaction.items:
        lines.append(item.name[:width])
        lines.append(
            _row(
                f"  {item.quantity} x {format_currency(item.unit_price, currency)}",
                format_currency(item.line_total, currency),
                width,
            )
        )
    lines.extend(
        [
            rule,
            _row("Subtotal:", format_currency(transaction.subtotal, currency), width),
            _row("Tax:", format_currency(transaction.tax, currency), width),
            _row("Total:", format_currency(transaction.total, currency), width),
            rule,
            _row("Payment:", format_payment_method(transaction.payment_method), width),
            _row("Amount Paid:", format_currency(transaction.amount_paid, currency), width),
            _row("Change:", format_currency(transaction.change, currency), width),
            rule,
            settings.receipt_footer.center(width).rstrip(),
        ]
    )
    return "\n".join(lines)


__all__ = ["RECEIPT_WIDTH", "render_receipt"]
