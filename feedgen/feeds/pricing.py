"""Regular vs. sale price resolution for feed items."""

from dataclasses import dataclass
from typing import Optional

from feedgen.models.schemas import DEFAULT_CURRENCY_CODE


@dataclass(frozen=True)
class PriceFields:
    """Formatted price values of one feed item."""
    price: str
    sale_price: Optional[str] = None

    @property
    def on_sale(self) -> bool:
        return self.sale_price is not None


def format_money(value: float, currency_code: Optional[str] = None) -> str:
    """Format an amount as '<value with 2 decimals> <currency>', e.g. '19.90 BRL'."""
    return f"{value:.2f} {currency_code or DEFAULT_CURRENCY_CODE}"


def is_on_sale(current_price: float, compare_at_price: Optional[float]) -> bool:
    return compare_at_price is not None and compare_at_price > current_price


def resolve_price(
    current_price: float,
    compare_at_price: Optional[float] = None,
    currency_code: Optional[str] = None,
) -> PriceFields:
    """
    Decide the price fields of a sellable unit.

    When the compare-at price is above the current price the item is on sale:
    `price` carries the original (compare-at) amount and `sale_price` the
    current one. Otherwise only `price` is set.

    Args:
        current_price: Price the customer pays now.
        compare_at_price: Original price, if the store tracks one.
        currency_code: ISO currency code, BRL when unset.

    Returns:
        PriceFields with formatted values.
    """
    if is_on_sale(current_price, compare_at_price):
        return PriceFields(
            price=format_money(compare_at_price, currency_code),
            sale_price=format_money(current_price, currency_code),
        )
    return PriceFields(price=format_money(current_price, currency_code))
