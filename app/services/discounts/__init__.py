"""Discount code validation, redemption and administration."""

from app.services.discounts.catalog import DiscountCatalog
from app.services.discounts.engine import DiscountEngine, DiscountQuote, compute_discount

__all__ = [
    "DiscountCatalog",
    "DiscountEngine",
    "DiscountQuote",
    "compute_discount",
]
