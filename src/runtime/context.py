from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from algorithms.presence import PresenceTracker
from algorithms.pricing import PriceQuote, format_price
from analytics.online_interest import OnlineInterest, OnlineInterestSimulator
from models.config import Config
from models.presence import PresenceState
from observation.face_feed import FaceObservationFeed
from runtime.surge_controller import SurgeController
from storage.database import Database


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    db: Optional[Database]
    feed: FaceObservationFeed
    tracker: PresenceTracker
    controller: SurgeController
    web_state: Any = None
    interest: Optional[OnlineInterestSimulator] = None

    # Observability
    system_stats: dict = field(default_factory=dict)

    def publish_frame(self, timestamp: float) -> None:
        self.system_stats["last_frame_ts"] = timestamp
        if hasattr(self.web_state, "mark_frame"):
            self.web_state.mark_frame(timestamp)

    def publish_presence(self, presence: PresenceState) -> None:
        if hasattr(self.web_state, "update_presence"):
            self.web_state.update_presence(presence.to_dict())

    def publish_price(self, quote: PriceQuote) -> None:
        """Push a recomputed price to the web state (registered as a controller listener)."""
        item = self.controller.item
        if item is None or not hasattr(self.web_state, "update_price"):
            return
        now = self.controller.pricing_now()
        price = dict(quote.to_dict())
        price.update({
            "item_id": item.id,
            "item_name": item.name,
            "starting_price": item.starting_price,
            "floor_price": item.floor_price,
            "display_price": format_price(quote.final_price),
            "time_remaining": item.format_time_remaining(now),
        })
        counters = self.controller.counters
        surge_counts = dict(counters.to_dict())
        surge_counts["label"] = counters.label
        self.web_state.update_price(price, item.to_dict(), surge_counts)

    def publish_online_interest(self, interest: OnlineInterest) -> None:
        if hasattr(self.web_state, "update_online_interest"):
            self.web_state.update_online_interest(interest.to_dict())

    def get_system_stats_copy(self):
        return dict(self.system_stats)
