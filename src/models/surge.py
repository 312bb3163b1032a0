"""
Surge counter and surge event models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


SOURCE_PHYSICAL = "physical"
SOURCE_ONLINE = "online"


@dataclass(frozen=True)
class SurgeCounters:
    """
    Surge event counts since the last completed cooldown.

    total is always physical + online.
    """
    physical: int = 0
    online: int = 0

    def __post_init__(self) -> None:
        if self.physical < 0 or self.online < 0:
            raise ValueError("surge counts must be non-negative")

    @property
    def total(self) -> int:
        return self.physical + self.online

    def increment(self, source: str) -> "SurgeCounters":
        """Return counters with one more event from the given source."""
        if source == SOURCE_PHYSICAL:
            return SurgeCounters(physical=self.physical + 1, online=self.online)
        if source == SOURCE_ONLINE:
            return SurgeCounters(physical=self.physical, online=self.online + 1)
        raise ValueError(f"Unknown surge source: {source}")

    @property
    def label(self) -> str:
        """Which sources contributed: "none", "physical", "online" or "both"."""
        if self.physical > 0 and self.online > 0:
            return "both"
        if self.physical > 0:
            return SOURCE_PHYSICAL
        if self.online > 0:
            return SOURCE_ONLINE
        return "none"

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "physical": self.physical,
            "online": self.online,
        }


@dataclass(frozen=True)
class SurgeEvent:
    """
    A surge applied to the displayed price.

    Attributes:
        source: SOURCE_PHYSICAL or SOURCE_ONLINE.
        timestamp: Unix timestamp of the event.
        surge_count: Total surge count after this event.
        price: Final price after this event.
        tracking_id: Face tracking id for physical surges.
    """
    source: str
    timestamp: float
    surge_count: int
    price: float
    tracking_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "timestamp": self.timestamp,
            "surge_count": self.surge_count,
            "price": self.price,
            "tracking_id": self.tracking_id,
        }
