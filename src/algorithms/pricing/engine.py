"""
Pricing engine: time decay plus capped surge.

All functions are pure over (Item, now, surge_count). Items are validated at
construction, so nothing here raises for valid inputs.

Decay:
    price = floor + (start - floor) * decay_base ** hours_elapsed
    decay_base = 0.2 ** (1 / half_life_hours)

so after half_life_hours the price sits 20% of the way from floor back to the
starting price. Once the listing duration has elapsed the price is the floor.

Surge:
    multiplier = surge_multiplier ** min(surge_count, max_surge_count)
    max_surge_count = floor(log(max_surge_multiplier) / log(surge_multiplier))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from models.config import PricingConfig
from models.item import Item


FLOOR_EPSILON = 0.01
TIME_TO_FLOOR_TARGET_PERCENT = 0.01


@dataclass(frozen=True)
class PriceQuote:
    """
    Derived prices for one item at one instant.

    Attributes:
        decay_price: Time-decayed base price.
        final_price: Displayed price (decay with surge, never below floor).
        surge_count: Surge count used for the quote.
        surge_multiplier: Capped compound multiplier.
        surge_offset: Amount surge adds on top of the decay price.
        discount_percentage: Discount of the final price from the starting price.
        at_floor: Whether the decay price has reached the floor.
        time_to_floor: Estimated time until the decay price is near floor.
        computed_at: Effective time the quote was computed for.
    """
    decay_price: float
    final_price: float
    surge_count: int
    surge_multiplier: float
    surge_offset: float
    discount_percentage: float
    at_floor: bool
    time_to_floor: Optional[timedelta]
    computed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decay_price": round(self.decay_price, 2),
            "final_price": round(self.final_price, 2),
            "surge_count": self.surge_count,
            "surge_multiplier": self.surge_multiplier,
            "surge_offset": round(self.surge_offset, 2),
            "discount_percentage": round(self.discount_percentage, 2),
            "at_floor": self.at_floor,
            "time_to_floor_seconds": (
                self.time_to_floor.total_seconds() if self.time_to_floor is not None else None
            ),
            "computed_at": self.computed_at.isoformat(),
        }


class PricingEngine:
    """
    Stateless price calculator bound to a PricingConfig.

    The decay base and surge cap are derived once from the configuration.
    """

    def __init__(self, config: PricingConfig):
        self._config = config
        self._decay_base = config.decay_base
        self._max_surge_count = config.max_surge_count

    @property
    def config(self) -> PricingConfig:
        return self._config

    @property
    def decay_base(self) -> float:
        return self._decay_base

    @property
    def max_surge_count(self) -> int:
        return self._max_surge_count

    def decay_price(self, item: Item, now: datetime) -> float:
        """Time-decayed price; floor once the listing has expired."""
        if item.is_expired(now):
            return item.floor_price

        hours_elapsed = max(0.0, item.get_hours_elapsed(now))
        price_range = item.starting_price - item.floor_price
        decayed = item.floor_price + price_range * math.pow(self._decay_base, hours_elapsed)
        return max(decayed, item.floor_price)

    def surge_multiplier(self, surge_count: int) -> float:
        if surge_count <= 0:
            return 1.0
        capped = min(surge_count, self._max_surge_count)
        return math.pow(self._config.surge_multiplier, capped)

    def surge_price(self, decay_price: float, surge_count: int) -> float:
        return decay_price * self.surge_multiplier(surge_count)

    def surge_offset(self, decay_price: float, surge_count: int) -> float:
        """How much surge adds on top of the decay price."""
        return self.surge_price(decay_price, surge_count) - decay_price

    def final_price(self, item: Item, surge_count: int, now: datetime) -> float:
        """Displayed price: decay with surge applied, floor as absolute minimum."""
        surged = self.surge_price(self.decay_price(item, now), surge_count)
        return max(surged, item.floor_price)

    @staticmethod
    def discount_percentage(item: Item, current_price: float) -> float:
        """Percentage discount from the starting price, clamped to [0, 100]."""
        if item.starting_price <= 0:
            return 0.0
        discount = (item.starting_price - current_price) / item.starting_price
        return min(max(discount * 100.0, 0.0), 100.0)

    @staticmethod
    def is_at_floor(price: float, floor_price: float) -> bool:
        """Whether price is within one cent of the floor."""
        return abs(price - floor_price) < FLOOR_EPSILON

    def estimate_time_to_floor(self, item: Item, now: datetime) -> Optional[timedelta]:
        """
        Estimate time until the decay price is within 1% of the range above floor.

        Decay is asymptotic, so the target is floor + 1% of the price range.
        Returns timedelta(0) once at floor. Surge is ignored.
        """
        current = self.decay_price(item, now)
        if self.is_at_floor(current, item.floor_price):
            return timedelta(0)

        price_range = item.starting_price - item.floor_price
        if price_range <= 0:
            return timedelta(0)

        # target = floor + range * base ** hours  =>  hours = log(ratio) / log(base)
        ratio = TIME_TO_FLOOR_TARGET_PERCENT
        hours_to_target = math.log(ratio) / math.log(self._decay_base)
        hours_remaining = hours_to_target - max(0.0, item.get_hours_elapsed(now))
        if hours_remaining <= 0:
            return timedelta(0)
        return timedelta(minutes=round(hours_remaining * 60))

    def quote(self, item: Item, surge_count: int, now: datetime) -> PriceQuote:
        """Compute every derived price for the item at now."""
        decay = self.decay_price(item, now)
        final = max(self.surge_price(decay, surge_count), item.floor_price)
        return PriceQuote(
            decay_price=decay,
            final_price=final,
            surge_count=surge_count,
            surge_multiplier=self.surge_multiplier(surge_count),
            surge_offset=self.surge_offset(decay, surge_count),
            discount_percentage=self.discount_percentage(item, final),
            at_floor=self.is_at_floor(decay, item.floor_price),
            time_to_floor=self.estimate_time_to_floor(item, now),
            computed_at=now,
        )


def format_price(price: float, show_cents: bool = True) -> str:
    """Format a price for display, e.g. "$94.00" or "$94"."""
    if show_cents:
        return f"${price:.2f}"
    return f"${round(price)}"
