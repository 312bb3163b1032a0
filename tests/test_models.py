"""
Tests for typed models.
"""

from datetime import datetime, timedelta

import pytest

from models.config import Config, PricingConfig, PRESENCE_PROFILES
from models.item import Item
from models.presence import (
    Cooldown,
    CooldownWindow,
    Idle,
    PresenceSession,
    PriceIncreased,
    Tracking,
    tracker_state_from_dict,
    tracker_state_to_dict,
)
from models.surge import SOURCE_ONLINE, SOURCE_PHYSICAL, SurgeCounters


class TestItem:
    """Tests for Item validation and helpers."""

    def test_floor_above_start_rejected(self, listed_at):
        with pytest.raises(ValueError):
            Item("x", "X", "", starting_price=50.0, floor_price=60.0, listed_at=listed_at)

    def test_negative_floor_rejected(self, listed_at):
        with pytest.raises(ValueError):
            Item("x", "X", "", starting_price=50.0, floor_price=-1.0, listed_at=listed_at)

    def test_non_positive_duration_rejected(self, listed_at):
        with pytest.raises(ValueError):
            Item("x", "X", "", 50.0, 10.0, listed_at, listing_duration=timedelta(0))

    def test_floor_equal_to_start_allowed(self, listed_at):
        item = Item("x", "X", "", 50.0, 50.0, listed_at)

        assert item.floor_price == item.starting_price

    def test_time_helpers(self, item, listed_at):
        now = listed_at + timedelta(days=2, hours=3)

        assert item.get_hours_elapsed(now) == pytest.approx(51.0)
        assert item.get_days_elapsed(now) == pytest.approx(51.0 / 24)
        assert item.get_time_remaining(now) == timedelta(days=4, hours=21)
        assert item.format_time_remaining(now) == "4 days 21h remaining"
        assert item.is_expired(now) is False

    def test_expired_helpers(self, item, listed_at):
        now = listed_at + timedelta(days=9)

        assert item.is_expired(now)
        assert item.get_listing_progress(now) == 1.0
        assert item.format_time_remaining(now) == "Expired"

    def test_round_trip_dict(self, item):
        restored = Item.from_dict(item.to_dict())

        assert restored == item


class TestPricingConfig:
    """Tests for PricingConfig profiles and validation."""

    def test_profiles_differ_only_in_presence_timing(self):
        production = PricingConfig.for_profile("production")
        test = PricingConfig.for_profile("test")

        assert production.presence_threshold_seconds == 15.0
        assert production.cooldown_duration_seconds == 300.0
        assert test.presence_threshold_seconds == 5.0
        assert test.cooldown_duration_seconds == 5.0
        assert production.decay_half_life_hours == test.decay_half_life_hours
        assert production.surge_multiplier == test.surge_multiplier

    def test_unknown_profile_rejected(self):
        with pytest.raises(ValueError):
            PricingConfig.for_profile("staging")

    def test_negative_duration_rejected(self):
        with pytest.raises(ValueError):
            PricingConfig(cooldown_duration_seconds=-1.0)

    def test_cap_below_one_rejected(self):
        with pytest.raises(ValueError):
            PricingConfig(max_surge_multiplier=0.9)

    def test_from_dict_applies_profile_then_overrides(self):
        config = PricingConfig.from_dict({"profile": "production", "cooldown_duration_seconds": 60})

        assert config.presence_threshold_seconds == PRESENCE_PROFILES["production"]["presence_threshold_seconds"]
        assert config.cooldown_duration_seconds == 60.0

    def test_app_config_from_dict(self, valid_config):
        config = Config.from_dict(valid_config)

        assert config.pricing.presence_threshold_seconds == 5.0
        assert config.camera.resolution == [640, 480]
        assert config.storage.local_database_path == "data/test.sqlite"
        assert config.to_dict()["log_level"] == "INFO"


class TestSurgeCounters:
    """Tests for SurgeCounters."""

    def test_total_is_sum(self):
        counters = SurgeCounters().increment(SOURCE_PHYSICAL).increment(SOURCE_ONLINE).increment(SOURCE_PHYSICAL)

        assert counters.physical == 2
        assert counters.online == 1
        assert counters.total == 3
        assert counters.label == "both"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            SurgeCounters(physical=-1)

    def test_unknown_source_rejected(self):
        with pytest.raises(ValueError):
            SurgeCounters().increment("radio")


class TestTrackerStateSerialization:
    """Tests for tracker_state_to_dict / tracker_state_from_dict."""

    @pytest.mark.parametrize("state", [
        Idle(),
        Tracking(session=PresenceSession(tracking_id=3, started_at=1.0, last_seen_at=2.0), surge_pending=True),
        PriceIncreased(session=PresenceSession(3, 1.0, triggered_at=6.0, last_seen_at=6.0, absent_since=7.0)),
        Cooldown(window=CooldownWindow(started_at=10.0, paused_at=12.0, accumulated=2.0, owner_tracking_id=3)),
    ])
    def test_round_trip(self, state):
        assert tracker_state_from_dict(tracker_state_to_dict(state)) == state

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            tracker_state_from_dict({"status": "sleeping"})
