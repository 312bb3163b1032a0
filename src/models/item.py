"""
Item model for a listing displayed on the locker kiosk.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional


DEFAULT_LISTING_DURATION = timedelta(days=7)


@dataclass(frozen=True)
class Item:
    """
    A listed item whose displayed price decays over the listing lifetime.

    Attributes:
        id: Backend identifier.
        name: Display name.
        description: Free-text description.
        starting_price: Price at listing time.
        floor_price: Seller-set minimum acceptable price.
        listed_at: When the listing started.
        listing_duration: Lifetime after which the price stays at floor.
        payment_link: Optional payment URL shown on the kiosk.
    """
    id: str
    name: str
    description: str
    starting_price: float
    floor_price: float
    listed_at: datetime
    listing_duration: timedelta = DEFAULT_LISTING_DURATION
    payment_link: Optional[str] = None

    def __post_init__(self) -> None:
        if self.floor_price < 0:
            raise ValueError("floor_price must be non-negative")
        if self.floor_price > self.starting_price:
            raise ValueError(
                f"floor_price ({self.floor_price}) must not exceed starting_price ({self.starting_price})"
            )
        if self.listing_duration <= timedelta(0):
            raise ValueError("listing_duration must be positive")

    @property
    def listing_duration_days(self) -> float:
        return self.listing_duration.total_seconds() / 86400.0

    def get_age(self, now: datetime) -> timedelta:
        """How long the item has been listed."""
        return now - self.listed_at

    def get_hours_elapsed(self, now: datetime) -> float:
        return self.get_age(now).total_seconds() / 3600.0

    def get_days_elapsed(self, now: datetime) -> float:
        return self.get_age(now).total_seconds() / 86400.0

    def is_expired(self, now: datetime) -> bool:
        return self.get_age(now) >= self.listing_duration

    def get_time_remaining(self, now: datetime) -> timedelta:
        age = self.get_age(now)
        if age >= self.listing_duration:
            return timedelta(0)
        return self.listing_duration - age

    def get_listing_progress(self, now: datetime) -> float:
        """Fraction of the listing lifetime elapsed, clamped to [0, 1]."""
        progress = self.get_age(now) / self.listing_duration
        return min(max(progress, 0.0), 1.0)

    def format_time_remaining(self, now: datetime) -> str:
        remaining = self.get_time_remaining(now)
        if remaining == timedelta(0):
            return "Expired"

        days = remaining.days
        hours = remaining.seconds // 3600
        minutes = (remaining.seconds // 60) % 60

        if days > 0:
            return f"{days} day{'' if days == 1 else 's'} {hours}h remaining"
        if hours > 0:
            return f"{hours}h {minutes}m remaining"
        return f"{minutes}m remaining"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Item":
        """
        Adapter: Create from a stored or API dictionary.

        listed_at is ISO-8601; an offset-aware value is converted to naive local
        time. listing_duration_days may be fractional.
        Raises ValueError/KeyError/TypeError on malformed input.
        """
        listed_at = d["listed_at"]
        if isinstance(listed_at, str):
            listed_at = datetime.fromisoformat(listed_at)
        if listed_at.tzinfo is not None:
            listed_at = listed_at.astimezone().replace(tzinfo=None)
        return cls(
            id=str(d["id"]),
            name=str(d["name"]),
            description=str(d.get("description", "")),
            starting_price=float(d["starting_price"]),
            floor_price=float(d["floor_price"]),
            listed_at=listed_at,
            listing_duration=timedelta(days=float(d.get("listing_duration_days", 7))),
            payment_link=d.get("payment_link"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization and persistence."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "starting_price": self.starting_price,
            "floor_price": self.floor_price,
            "listed_at": self.listed_at.isoformat(),
            "listing_duration_days": self.listing_duration_days,
            "payment_link": self.payment_link,
        }
