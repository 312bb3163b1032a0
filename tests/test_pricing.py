"""
Tests for the pricing engine (decay, surge cap, floor invariant).
"""

import math
from datetime import timedelta

import pytest

from algorithms.pricing import FLOOR_EPSILON, PricingEngine, format_price
from models.config import PricingConfig


@pytest.fixture
def engine():
    return PricingEngine(PricingConfig())


class TestDecay:
    """Tests for decay_price."""

    def test_decay_at_half_life(self, engine, item, listed_at):
        """150 -> 80 with an 84h half-life sits at 94.0 after 84h."""
        price = engine.decay_price(item, listed_at + timedelta(hours=84))

        assert price == pytest.approx(94.0)

    def test_starting_price_at_listing(self, engine, item, listed_at):
        assert engine.decay_price(item, listed_at) == pytest.approx(150.0)

    def test_before_listing_uses_starting_price(self, engine, item, listed_at):
        """A clock behind listed_at never pushes the price above start."""
        assert engine.decay_price(item, listed_at - timedelta(hours=3)) == pytest.approx(150.0)

    def test_floor_after_listing_expires(self, engine, item, listed_at):
        assert engine.decay_price(item, listed_at + timedelta(days=7)) == 80.0
        assert engine.decay_price(item, listed_at + timedelta(days=30)) == 80.0

    def test_decay_is_non_increasing(self, engine, item, listed_at):
        prices = [
            engine.decay_price(item, listed_at + timedelta(minutes=m))
            for m in range(0, 8 * 24 * 60, 37)
        ]

        assert all(later <= earlier for earlier, later in zip(prices, prices[1:]))
        assert prices[-1] == 80.0

    def test_decay_base_from_half_life(self, engine):
        assert engine.decay_base ** 84 == pytest.approx(0.2)


class TestSurge:
    """Tests for surge multiplier and cap."""

    def test_no_surge_is_identity(self, engine):
        assert engine.surge_multiplier(0) == 1.0
        assert engine.surge_multiplier(-3) == 1.0

    def test_surge_compounds(self, engine):
        assert engine.surge_multiplier(3) == pytest.approx(1.01 ** 3)

    def test_max_surge_count_from_cap(self, engine):
        expected = math.floor(math.log(1.5) / math.log(1.01))

        assert engine.max_surge_count == expected == 40

    def test_surge_cap_is_exact(self, engine):
        """surge_multiplier(1000) equals surge_multiplier(max_surge_count)."""
        assert engine.surge_multiplier(1000) == engine.surge_multiplier(engine.max_surge_count)
        assert engine.surge_multiplier(1000) <= 1.5

    def test_surge_offset(self, engine):
        assert engine.surge_offset(100.0, 1) == pytest.approx(1.0)


class TestFinalPrice:
    """Tests for final_price and the floor invariant."""

    def test_final_price_applies_surge_to_decay(self, engine, item, listed_at):
        now = listed_at + timedelta(hours=84)

        assert engine.final_price(item, 2, now) == pytest.approx(94.0 * 1.01 ** 2)

    @pytest.mark.parametrize("surge_count", [0, 1, 5, 40, 41, 1000])
    @pytest.mark.parametrize("hours", [-5, 0, 1, 84, 167.9, 168, 500])
    def test_never_below_floor(self, engine, item, listed_at, surge_count, hours):
        now = listed_at + timedelta(hours=hours)

        assert engine.final_price(item, surge_count, now) >= item.floor_price

    def test_surge_on_expired_listing(self, engine, item, listed_at):
        """Surge still applies on top of the floor once expired."""
        now = listed_at + timedelta(days=10)

        assert engine.final_price(item, 1, now) == pytest.approx(80.8)


class TestAuxiliary:
    """Tests for discount, at-floor and time-to-floor helpers."""

    def test_discount_percentage(self, engine, item):
        assert engine.discount_percentage(item, 94.0) == pytest.approx(100 * 56 / 150)
        assert engine.discount_percentage(item, 160.0) == 0.0

    def test_is_at_floor_uses_epsilon(self, engine):
        assert engine.is_at_floor(80.0 + FLOOR_EPSILON / 2, 80.0)
        assert not engine.is_at_floor(80.0 + FLOOR_EPSILON * 2, 80.0)

    def test_time_to_floor_closed_form(self, engine, item, listed_at):
        """Hours until within 1% of the range: log(0.01) / log(decay_base)."""
        expected_hours = math.log(0.01) / math.log(engine.decay_base) - 84

        remaining = engine.estimate_time_to_floor(item, listed_at + timedelta(hours=84))

        assert remaining == timedelta(minutes=round(expected_hours * 60))

    def test_time_to_floor_zero_at_floor(self, engine, item, listed_at):
        assert engine.estimate_time_to_floor(item, listed_at + timedelta(days=8)) == timedelta(0)

    def test_quote(self, engine, item, listed_at):
        now = listed_at + timedelta(hours=84)

        quote = engine.quote(item, 1, now)

        assert quote.decay_price == pytest.approx(94.0)
        assert quote.final_price == pytest.approx(94.94)
        assert quote.surge_offset == pytest.approx(0.94)
        assert quote.at_floor is False
        assert quote.to_dict()["final_price"] == 94.94

    def test_format_price(self):
        assert format_price(94.0) == "$94.00"
        assert format_price(94.4, show_cents=False) == "$94"
