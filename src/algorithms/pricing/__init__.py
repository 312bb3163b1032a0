"""
Dynamic pricing: time decay with capped surge on top.
"""

from .engine import FLOOR_EPSILON, PriceQuote, PricingEngine, format_price

__all__ = [
    "PricingEngine",
    "PriceQuote",
    "FLOOR_EPSILON",
    "format_price",
]
