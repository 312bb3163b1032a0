"""
Kiosk engine: the cooperative main loop of the locker kiosk.

Each iteration reads a camera frame, feeds the first face's tracking id to
the presence tracker (throttled), persists presence changes, and runs the
periodic tasks: cooldown completion, the price decay tick and the online
interest poll.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from models.config import Config
from models.frame import FrameData
from models.presence import PresenceState
from observation import ObservationSource, create_source_from_config
from runtime.context import RuntimeContext


@dataclass
class EngineConfig:
    """
    Configuration for the kiosk engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        stats_log_interval: Seconds between status log messages.
        price_update_interval: Seconds between price decay recalculations.
        online_poll_interval: Seconds between online interest polls.
        online_enabled: Poll the online interest signal.
        retry_delay: Seconds to wait after a failed frame read.
    """
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    price_update_interval: float = 10.0
    online_poll_interval: float = 5.0
    online_enabled: bool = True
    retry_delay: float = 0.5

    @classmethod
    def from_config(cls, config: Config) -> "EngineConfig":
        return cls(
            price_update_interval=config.pricing.decay_update_interval_seconds,
            online_poll_interval=config.online_interest.poll_interval_seconds,
            online_enabled=config.online_interest.enabled,
        )


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""
    frame_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    last_price_update_time: float = field(default_factory=time.time)
    last_online_poll_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0


class KioskEngine:
    """
    Main processing engine for the kiosk.

    Example:
        engine = create_engine_from_config(config, ctx)
        engine.run()        # until stop() or the source is exhausted
    """

    def __init__(
        self,
        source: ObservationSource,
        ctx: RuntimeContext,
        config: EngineConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.ctx = ctx
        self.config = config
        self._clock = clock
        self.stats = EngineStats(
            start_time=clock(),
            last_stats_log_time=clock(),
            last_price_update_time=clock(),
            last_online_poll_time=clock(),
        )
        self._running = False
        self._callbacks: List[Callable[[FrameData, PresenceState], None]] = []

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: Callable[[FrameData, PresenceState], None]) -> None:
        """
        Add a callback to be called after each frame is processed.

        Args:
            callback: Function taking (frame_data, presence_state) as arguments.
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run the main loop.

        Opens the observation source, processes frames until stopped or
        exhausted, then closes resources and resets presence tracking.
        """
        self._running = True

        try:
            self.source.open()
            logging.info(f"Kiosk engine started: source={self.source.source_id}")

            while self._running:
                frame_data = self.source.read()

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    self._handle_periodic_tasks()
                    time.sleep(self.config.retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                presence = self.step(frame_data)

                for callback in self._callbacks:
                    try:
                        callback(frame_data, presence)
                    except Exception as e:
                        logging.warning(f"Callback error: {e}")

                self._handle_periodic_tasks()

        except KeyboardInterrupt:
            logging.info("Kiosk engine interrupted by user")
        except Exception as e:
            logging.exception(f"Kiosk engine error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the engine to stop after the current frame."""
        self._running = False

    def step(self, frame_data: FrameData, now: Optional[float] = None) -> PresenceState:
        """
        Process a single frame: first-face lookup, then a throttled observation.

        Returns the presence snapshot after the observation.
        """
        if now is None:
            now = self._clock()
        self.stats.frame_count += 1
        self.ctx.publish_frame(frame_data.timestamp)

        tracker = self.ctx.tracker
        previous = tracker.state
        presence = tracker.process(lambda: self.ctx.feed.first_tracking_id(frame_data), now)
        self._persist_if_changed(previous)
        self.ctx.publish_presence(presence)
        return presence

    def fast_forward_days(self, days: float) -> None:
        """Advance the pricing clock (demo mode)."""
        self.ctx.controller.fast_forward(days)

    def _persist_if_changed(self, previous) -> None:
        current = self.ctx.tracker.state
        if current != previous:
            self.ctx.controller.persist_presence(current)

    def _handle_periodic_tasks(self, now: Optional[float] = None) -> None:
        """Run periodic tasks (cooldown completion, price tick, online poll, logging)."""
        if now is None:
            now = self._clock()

        # Grace and cooldown timers advance even while no frames arrive
        previous = self.ctx.tracker.state
        presence = self.ctx.tracker.tick(now)
        if self.ctx.tracker.state != previous:
            self.ctx.controller.persist_presence(self.ctx.tracker.state)
            self.ctx.publish_presence(presence)

        if now - self.stats.last_price_update_time >= self.config.price_update_interval:
            self.ctx.controller.recalculate()
            self.stats.last_price_update_time = now

        if (
            self.config.online_enabled
            and self.ctx.interest is not None
            and now - self.stats.last_online_poll_time >= self.config.online_poll_interval
        ):
            interest, surge = self.ctx.interest.poll(datetime.fromtimestamp(now))
            self.ctx.publish_online_interest(interest)
            if surge:
                self.ctx.controller.register_online_interest()
            self.stats.last_online_poll_time = now

        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            quote = self.ctx.controller.last_quote
            counters = self.ctx.controller.counters
            price = f"{quote.final_price:.2f}" if quote is not None else "n/a"
            logging.info(
                f"Kiosk stats: frames={self.stats.frame_count}, "
                f"presence={self.ctx.tracker.state.status.value}, "
                f"surge={counters.total} ({counters.label}), price={price}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        """Clean up resources and drop any in-flight presence session."""
        self._running = False

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        # The persisted snapshot is left as is so a restart can resume it.
        self.ctx.tracker.reset()
        self.ctx.feed.reset()

        logging.info("Kiosk engine stopped")


def create_engine_from_config(config: Config, ctx: RuntimeContext) -> KioskEngine:
    """
    Factory function to create a KioskEngine from the typed app config.

    Args:
        config: Full application config.
        ctx: RuntimeContext with db, feed, tracker, controller, etc.
    """
    source = create_source_from_config(config.camera, source_id="locker-cam")
    return KioskEngine(source, ctx, EngineConfig.from_config(config))
