"""
Tests for the kiosk engine.
"""

from datetime import datetime
from typing import Optional

import numpy as np
import pytest
from unittest.mock import MagicMock, patch

from algorithms.presence import PresenceTracker
from algorithms.pricing import PricingEngine
from analytics.online_interest import OnlineInterest
from models.config import Config
from models.frame import FrameData
from models.presence import Cooldown, CooldownWindow, Idle, PresenceSession, PriceIncreased, Tracking
from observation.base import ObservationConfig, ObservationSource
from observation.opencv_source import OpenCVSource
from pipeline.engine import EngineConfig, KioskEngine, create_engine_from_config
from runtime.context import RuntimeContext
from runtime.surge_controller import SurgeController
from storage.database import Database
from web.state import KioskState


class MockObservationSource(ObservationSource):
    """Mock source for testing."""

    def __init__(self, config: ObservationConfig, max_frames: int = 10, fail: bool = False):
        super().__init__(config)
        self._max_frames = max_frames
        self._fail = fail
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._fail:
            return None
        if self._pos >= self._max_frames:
            raise KeyboardInterrupt
        self._pos += 1
        self._frame_index += 1
        return FrameData.from_numpy(
            np.zeros((480, 640, 3), dtype=np.uint8),
            timestamp=float(self._frame_index),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class SteppingClock:
    """Float clock advancing a fixed step on every call."""

    def __init__(self, start: float = 0.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def db(temp_db):
    database = Database(temp_db)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def ctx(pricing_config, db, fake_clock, item):
    controller = SurgeController(PricingEngine(pricing_config), db, clock=fake_clock)
    tracker = PresenceTracker(
        pricing_config,
        on_price_increase=controller.handle_price_increase,
        on_cooldown_complete=controller.handle_cooldown_complete,
        clock=lambda: 0.0,
    )
    feed = MagicMock()
    feed.first_tracking_id.return_value = 7
    context = RuntimeContext(
        config=Config(pricing=pricing_config),
        db=db,
        feed=feed,
        tracker=tracker,
        controller=controller,
        web_state=KioskState(),
    )
    controller.add_listener(context.publish_price)
    controller.load(item, now=0.0)
    return context


def make_frame(ts: float = 1.0) -> FrameData:
    return FrameData.from_numpy(np.zeros((480, 640, 3), dtype=np.uint8), timestamp=ts)


def make_engine(ctx, source=None, config=None, clock=None) -> KioskEngine:
    source = source or MockObservationSource(ObservationConfig(source_id="test"), max_frames=3)
    return KioskEngine(source, ctx, config or EngineConfig(online_enabled=False), clock=clock or SteppingClock())


class TestEngineConfig:
    def test_default_values(self):
        config = EngineConfig()
        assert config.max_consecutive_failures == 10
        assert config.stats_log_interval == 60.0
        assert config.price_update_interval == 10.0

    def test_from_config(self, valid_config):
        config = EngineConfig.from_config(Config.from_dict(valid_config))

        assert config.online_poll_interval == 5.0
        assert config.online_enabled is True


class TestStep:
    """Tests for single-frame processing."""

    def test_step_starts_tracking_and_persists(self, ctx, db):
        engine = make_engine(ctx)

        presence = engine.step(make_frame(), now=100.0)

        assert presence.is_tracking
        assert presence.tracking_id == 7
        assert db.load_presence_state()["status"] == "tracking"
        assert ctx.web_state.get_snapshot()["presence"]["status"] == "tracking"

    def test_sustained_presence_surges_price(self, ctx, db):
        engine = make_engine(ctx)
        base = ctx.controller.last_quote.final_price

        for i in range(26):
            engine.step(make_frame(), now=100.0 + i * 0.2)

        assert isinstance(ctx.tracker.state, PriceIncreased)
        assert ctx.controller.counters.physical == 1
        assert ctx.controller.last_quote.final_price == pytest.approx(base * 1.01)
        assert db.load_presence_state()["status"] == "priceIncreased"
        assert ctx.web_state.get_snapshot()["surge_counts"]["label"] == "physical"

    def test_detector_error_keeps_state(self, ctx):
        engine = make_engine(ctx)
        engine.step(make_frame(), now=100.0)
        ctx.feed.first_tracking_id.side_effect = RuntimeError("camera busy")

        presence = engine.step(make_frame(), now=100.5)

        assert presence.details == "Error: camera busy"
        assert isinstance(ctx.tracker.state, Tracking)

    def test_step_marks_frame(self, ctx):
        engine = make_engine(ctx)

        engine.step(make_frame(ts=42.0), now=1.0)

        stats = ctx.web_state.get_snapshot()["system_stats"]
        assert stats["last_frame_ts"] == 42.0
        assert stats["frames_processed"] == 1


class TestRun:
    """Tests for the main loop."""

    def test_engine_processes_frames(self, ctx):
        source = MockObservationSource(ObservationConfig(source_id="test"), max_frames=3)
        engine = make_engine(ctx, source=source)

        engine.run()

        assert engine.stats.frame_count == 3
        assert ctx.feed.first_tracking_id.call_count == 3
        assert source.closed

    def test_cleanup_resets_presence(self, ctx, db):
        """Stopping drops the in-memory session but keeps the persisted snapshot."""
        engine = make_engine(ctx)

        engine.run()

        assert isinstance(ctx.tracker.state, Idle)
        ctx.feed.reset.assert_called_once()
        assert db.load_presence_state()["status"] == "tracking"

    def test_engine_stops_on_failures(self, ctx):
        source = MockObservationSource(ObservationConfig(source_id="test"), fail=True)
        engine = make_engine(ctx, source=source, config=EngineConfig(max_consecutive_failures=3, online_enabled=False))

        with patch("time.sleep"):
            engine.run()

        assert engine.stats.consecutive_failures >= 3
        assert engine.is_running is False

    def test_engine_callbacks(self, ctx):
        calls = []
        engine = make_engine(ctx)
        engine.add_callback(lambda frame_data, presence: calls.append((frame_data.frame_index, presence.status.value)))

        engine.run()

        assert [c[0] for c in calls] == [1, 2, 3]

    def test_callback_error_does_not_stop_loop(self, ctx):
        engine = make_engine(ctx)
        engine.add_callback(MagicMock(side_effect=ValueError("boom")))

        engine.run()

        assert engine.stats.frame_count == 3


class TestPeriodicTasks:
    """Tests for cooldown ticks, price ticks and the online poll."""

    def test_tick_completes_cooldown(self, ctx, db):
        engine = make_engine(ctx)
        ctx.controller.handle_price_increase(7)
        ctx.tracker.restore(Cooldown(window=CooldownWindow(started_at=0.0)), now=0.0)

        engine._handle_periodic_tasks(now=6.0)

        assert isinstance(ctx.tracker.state, Idle)
        assert ctx.controller.counters.total == 0
        assert db.load_presence_state() == {"status": "idle"}

    def test_tick_moves_lapsed_grace_to_cooldown(self, ctx, db):
        engine = make_engine(ctx)
        ctx.controller.handle_price_increase(7)
        session = PresenceSession(tracking_id=7, started_at=0.0, triggered_at=5.0, absent_since=6.0)
        ctx.tracker.restore(PriceIncreased(session=session), now=6.0)

        engine._handle_periodic_tasks(now=9.5)

        assert isinstance(ctx.tracker.state, Cooldown)
        assert ctx.controller.counters.physical == 1
        assert db.load_presence_state()["status"] == "cooldown"

    def test_price_tick_recalculates(self, ctx):
        engine = make_engine(ctx)
        ctx.controller.recalculate = MagicMock(wraps=ctx.controller.recalculate)

        engine._handle_periodic_tasks(now=5.0)
        ctx.controller.recalculate.assert_not_called()

        engine._handle_periodic_tasks(now=10.0)
        ctx.controller.recalculate.assert_called_once()

    def test_online_poll_registers_surge(self, ctx):
        interest = OnlineInterest(40, 12, 1, last_activity=datetime(2024, 3, 4, 12))
        ctx.interest = MagicMock()
        ctx.interest.poll.return_value = (interest, True)
        engine = make_engine(ctx, config=EngineConfig(online_poll_interval=5.0))

        engine._handle_periodic_tasks(now=5.0)

        assert ctx.controller.counters.online == 1
        assert ctx.web_state.get_snapshot()["online_interest"]["click_count"] == 12

    def test_online_poll_respects_interval(self, ctx):
        ctx.interest = MagicMock()
        ctx.interest.poll.return_value = (OnlineInterest(1, 1, 0, datetime(2024, 3, 4)), False)
        engine = make_engine(ctx, config=EngineConfig(online_poll_interval=5.0))

        engine._handle_periodic_tasks(now=2.0)
        engine._handle_periodic_tasks(now=5.0)
        engine._handle_periodic_tasks(now=7.0)

        assert ctx.interest.poll.call_count == 1
        assert ctx.controller.counters.online == 0


class TestCreateEngineFromConfig:
    def test_creates_engine(self, ctx, valid_config):
        """Factory creates an engine with an OpenCV source (not opened)."""
        config = Config.from_dict(valid_config)

        engine = create_engine_from_config(config, ctx)

        assert isinstance(engine.source, OpenCVSource)
        assert engine.source.source_id == "locker-cam"
        assert engine.config.online_poll_interval == 5.0
