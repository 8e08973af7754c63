"""Order and quote pricing."""

from bakery_orders.services.pricing.engine import (
    DiscountType,
    LineItemData,
    PricingEngine,
    Totals,
    compute_totals,
    get_pricing_engine,
    to_money,
)

__all__ = [
    "DiscountType",
    "LineItemData",
    "PricingEngine",
    "Totals",
    "compute_totals",
    "get_pricing_engine",
    "to_money",
]
