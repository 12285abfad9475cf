"""Store settings consumed by pricing and receipts."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Optional

from . import log
from .constants import DEFAULT_CURRENCY, DEFAULT_TAX_RATE
from .errors import ValidationError
from .money import to_money


@dataclass(frozen=True)
class StoreSettings:
    """Read-mostly store configuration."""

    tax_rate: Decimal = DEFAULT_TAX_RATE
    currency: str = DEFAULT_CURRENCY
    store_name: str = "My Store"
    store_address: str = "123 Main Street, City, State 12345"
    store_phone: str = "(555) 123-4567"
    receipt_footer: str = "Thank you for your business!"


def validate_settings(settings: StoreSettings) -> StoreSettings:
    """Normalise and validate ``settings``.

    Returns:
        StoreSettings: Copy with ``tax_rate`` as ``Decimal`` and an upper-case
            currency code.

    Raises:
        ValidationError: If the tax rate is outside ``[0, 1]`` or the currency
            is not a three letter code.
    """

    tax_rate = to_money(settings.tax_rate)
    if not Decimal("0") <= tax_rate <= Decimal("1"):
        raise ValidationError(f"Tax rate must be between 0 and 1, got {tax_rate}")
    currency = str(settings.currency).strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError(f"Currency must be a three letter ISO code, got {settings.currency!r}")
    return replace(settings, tax_rate=tax_rate, currency=currency)


class SettingsStore:
    """Holds the active :class:`StoreSettings` for the session."""

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        *,
        on_change: Optional[Callable[[StoreSettings], None]] = None,
    ) -> None:
        self._settings = validate_settings(settings or StoreSettings())
        self.on_change = on_change

    def current_settings(self) -> StoreSettings:
        return self._settings

    def update_settings(self, **changes: Any) -> StoreSettings:
        """Apply partial updates, e.g. ``update_settings(tax_rate="0.07")``.

        Raises:
            ValidationError: If a field is unknown or the result is invalid.
        """

        unknown = set(changes) - set(StoreSettings.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        updated = validate_settings(replace(self._settings, **changes))
        self._settings = updated
        log.info("Store settings updated: %s", ", ".join(sorted(changes)))
        if self.on_change is not None:
            self.on_change(updated)
        return updated


__all__ = ["StoreSettings", "validate_settings", "SettingsStore"]
