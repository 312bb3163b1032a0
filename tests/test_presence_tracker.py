"""
Tests for PresenceTracker (throttling, in-flight guard, callbacks).
"""

import pytest
from unittest.mock import MagicMock

from algorithms.presence import PresenceTracker
from models.config import PricingConfig
from models.presence import (
    Cooldown,
    CooldownWindow,
    Idle,
    PresenceSession,
    PresenceStatus,
    PriceIncreased,
    Tracking,
)


def observe_span(tracker, tracking_id, start, end, step):
    snapshot = None
    t = start
    while t <= end + 1e-9:
        snapshot = tracker.observe(tracking_id, now=round(t, 6))
        t += step
    return snapshot


class TestObserve:
    """Tests for observe() and the price-increase callback."""

    def test_price_increase_fires_once_with_throttle(self):
        """Calls every 50ms for 60s, throttled to 200ms, fire one increase."""
        config = PricingConfig.for_profile("test")
        on_increase = MagicMock()
        tracker = PresenceTracker(config, on_price_increase=on_increase, clock=lambda: 0.0)

        snapshot = observe_span(tracker, 42, 0.0, 60.0, 0.05)

        assert snapshot.status == PresenceStatus.PRICE_INCREASED
        on_increase.assert_called_once_with(42)

    def test_none_tracking_id_is_absence(self, pricing_config):
        """A face without a tracking id never starts a session."""
        tracker = PresenceTracker(pricing_config, clock=lambda: 0.0)

        snapshot = tracker.observe(None, now=1.0)

        assert snapshot.is_idle
        assert isinstance(tracker.state, Idle)

    def test_cooldown_complete_callback(self, pricing_config):
        on_complete = MagicMock()
        tracker = PresenceTracker(pricing_config, on_cooldown_complete=on_complete, clock=lambda: 0.0)
        tracker.restore(Cooldown(window=CooldownWindow(started_at=0.0)), now=0.0)

        tracker.observe(None, now=2.0)
        on_complete.assert_not_called()

        snapshot = tracker.observe(None, now=5.5)

        assert snapshot.is_idle
        on_complete.assert_called_once_with()

    def test_callback_errors_are_isolated(self, pricing_config):
        """A failing listener does not break the state machine."""
        on_increase = MagicMock(side_effect=RuntimeError("display offline"))
        tracker = PresenceTracker(pricing_config, on_price_increase=on_increase, clock=lambda: 0.0)

        observe_span(tracker, 1, 0.0, 5.0, 0.5)

        assert isinstance(tracker.state, PriceIncreased)
        on_increase.assert_called_once_with(1)


class TestBackpressure:
    """Tests for the processing interval and the in-flight guard."""

    def test_calls_inside_interval_return_last_snapshot(self):
        config = PricingConfig.for_profile("test", processing_interval_seconds=0.2)
        tracker = PresenceTracker(config, clock=lambda: 0.0)

        first = tracker.observe(5, now=10.0)
        throttled = tracker.observe(None, now=10.1)

        assert throttled is first
        assert isinstance(tracker.state, Tracking)

        processed = tracker.observe(None, now=10.3)
        assert processed.is_idle

    def test_throttled_call_skips_detection(self):
        config = PricingConfig.for_profile("test", processing_interval_seconds=0.2)
        tracker = PresenceTracker(config, clock=lambda: 0.0)
        detect = MagicMock(return_value=3)

        tracker.process(detect, now=1.0)
        tracker.process(detect, now=1.05)

        assert detect.call_count == 1

    def test_reentrant_call_is_dropped(self, pricing_config):
        """An observation arriving while one is in flight is dropped."""
        tracker = PresenceTracker(pricing_config, clock=lambda: 0.0)
        inner = {}

        def detect():
            inner["snapshot"] = tracker.observe(9, now=2.0)
            inner["busy"] = tracker.is_processing
            return 4

        snapshot = tracker.process(detect, now=1.0)

        assert inner["busy"] is True
        assert inner["snapshot"].is_idle
        assert snapshot.tracking_id == 4
        assert tracker.is_processing is False

    def test_detector_error_returns_last_state(self, pricing_config):
        tracker = PresenceTracker(pricing_config, clock=lambda: 0.0)
        tracker.observe(6, now=1.0)

        def detect():
            raise RuntimeError("camera busy")

        snapshot = tracker.process(detect, now=2.0)

        assert snapshot.is_tracking
        assert snapshot.details == "Error: camera busy"
        assert isinstance(tracker.state, Tracking)
        assert tracker.is_processing is False


class TestLifecycle:
    """Tests for tick(), restore() and reset()."""

    def test_tick_completes_cooldown_without_frames(self, pricing_config):
        on_complete = MagicMock()
        tracker = PresenceTracker(pricing_config, on_cooldown_complete=on_complete, clock=lambda: 0.0)
        tracker.restore(Cooldown(window=CooldownWindow(started_at=100.0)), now=100.0)

        assert tracker.tick(now=103.0).is_in_cooldown
        snapshot = tracker.tick(now=105.0)

        assert snapshot.is_idle
        assert snapshot.details == "Cooldown complete"
        on_complete.assert_called_once()

    def test_tick_ends_grace_window_without_frames(self, pricing_config):
        on_complete = MagicMock()
        tracker = PresenceTracker(pricing_config, on_cooldown_complete=on_complete, clock=lambda: 0.0)
        session = PresenceSession(tracking_id=42, started_at=0.0, triggered_at=5.0, absent_since=6.0)
        tracker.restore(PriceIncreased(session=session), now=6.0)

        assert tracker.tick(now=8.0).is_price_increased
        snapshot = tracker.tick(now=9.0)

        assert snapshot.is_in_cooldown
        assert isinstance(tracker.state, Cooldown)
        on_complete.assert_not_called()

    def test_reset_returns_to_idle(self, pricing_config):
        tracker = PresenceTracker(pricing_config, clock=lambda: 50.0)
        tracker.restore(Cooldown(window=CooldownWindow(started_at=0.0).pause(1.0)), now=1.0)

        tracker.reset()

        assert isinstance(tracker.state, Idle)
        assert tracker.last_snapshot.is_idle
        assert tracker.is_processing is False

    def test_reset_clears_throttle(self):
        config = PricingConfig.for_profile("test", processing_interval_seconds=1.0)
        tracker = PresenceTracker(config, clock=lambda: 0.0)
        tracker.observe(1, now=10.0)

        tracker.reset()
        snapshot = tracker.observe(2, now=10.1)

        assert snapshot.tracking_id == 2

    def test_current_reports_live_cooldown_remaining(self, pricing_config):
        tracker = PresenceTracker(pricing_config, clock=lambda: 0.0)
        tracker.restore(Cooldown(window=CooldownWindow(started_at=0.0)), now=0.0)

        assert tracker.current(now=1.5).cooldown_remaining == pytest.approx(3.5)
