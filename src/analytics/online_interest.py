"""
Online interest signal for the listed item.

There is no storefront backend yet, so OnlineInterestSimulator produces
plausible metrics (time-of-day peaks, occasional spikes) and decides online
surges with a fixed probability per poll.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from models.config import OnlineInterestConfig


# Peak activity windows (inclusive hours)
PEAK_HOURS = ((10, 14), (18, 21))
PEAK_ACTIVITY_MULTIPLIER = 2.0
SPIKE_PROBABILITY = 0.1
SPIKE_MULTIPLIER = 3.0


@dataclass(frozen=True)
class OnlineInterest:
    """
    Online interest metrics for one item.

    Attributes:
        page_views: Listing page views.
        click_count: Clicks through to the listing.
        wishlist_adds: Wishlist additions.
        last_activity: Time of the most recent interaction.
    """
    page_views: int
    click_count: int
    wishlist_adds: int
    last_activity: datetime

    def is_recent(self, now: datetime, config: OnlineInterestConfig) -> bool:
        return now - self.last_activity <= timedelta(seconds=config.activity_window_seconds)

    def should_trigger_surge(self, now: datetime, config: OnlineInterestConfig) -> bool:
        """High recent interest on any metric."""
        if not self.is_recent(now, config):
            return False
        return (
            self.click_count >= config.click_threshold
            or self.page_views >= config.view_threshold
            or self.wishlist_adds >= config.wishlist_threshold
        )

    def total_score(self) -> int:
        """Weighted interest score."""
        return self.click_count * 3 + self.page_views + self.wishlist_adds * 5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_views": self.page_views,
            "click_count": self.click_count,
            "wishlist_adds": self.wishlist_adds,
            "last_activity": self.last_activity.isoformat(),
            "score": self.total_score(),
        }


def is_peak_hour(hour: int) -> bool:
    return any(start <= hour <= end for start, end in PEAK_HOURS)


class OnlineInterestSimulator:
    """
    Simulated online interest feed.

    Example:
        simulator = OnlineInterestSimulator(config, rng=random.Random(7))
        interest, surge = simulator.poll(datetime.now())
        if surge:
            controller.register_online_interest()
    """

    def __init__(self, config: OnlineInterestConfig, rng: Optional[random.Random] = None):
        self._config = config
        self._rng = rng or random.Random()
        self._last_interest: Optional[OnlineInterest] = None

    @property
    def config(self) -> OnlineInterestConfig:
        return self._config

    @property
    def last_interest(self) -> Optional[OnlineInterest]:
        return self._last_interest

    def sample(self, now: datetime) -> OnlineInterest:
        """Draw metrics that follow time-of-day patterns with occasional spikes."""
        activity = PEAK_ACTIVITY_MULTIPLIER if is_peak_hour(now.hour) else 1.0

        base_views = self._rng.randint(10, 39) * activity
        base_clicks = self._rng.randint(2, 11) * activity
        base_wishlist = self._rng.randint(0, 2)

        spike = SPIKE_MULTIPLIER if self._rng.random() < SPIKE_PROBABILITY else 1.0

        return OnlineInterest(
            page_views=round(base_views * spike),
            click_count=round(base_clicks * spike),
            wishlist_adds=base_wishlist,
            last_activity=now - timedelta(seconds=self._rng.randint(0, 59)),
        )

    def should_surge(self) -> bool:
        return self._rng.random() < self._config.surge_probability

    def poll(self, now: datetime) -> Tuple[OnlineInterest, bool]:
        """
        Sample current interest and decide whether it causes an online surge.

        Returns:
            (interest, surge) where surge is True when a surge should be registered.
        """
        interest = self.sample(now)
        self._last_interest = interest
        surge = self.should_surge()
        if surge:
            logging.info(
                f"[SURGE] Online interest: views={interest.page_views}, "
                f"clicks={interest.click_count}, wishlist={interest.wishlist_adds}"
            )
        else:
            logging.debug(f"Online interest polled: score={interest.total_score()}")
        return interest, surge
