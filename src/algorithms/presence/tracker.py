"""
Presence tracker: throttled, callback-driven wrapper around the state machine.

The tracker owns the single mutable presence state. Observations arriving
faster than the processing interval, or while a previous observation is still
being processed, are dropped and the last computed snapshot is returned.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, List, Optional

from models.config import PricingConfig
from models.presence import (
    CooldownCompleteEvent,
    Idle,
    PresenceEvent,
    PresenceState,
    PriceIncreaseEvent,
    TrackerState,
)
from .state_machine import describe, expire_cooldown, expire_grace, reduce


class PresenceTracker:
    """
    Tracks a single customer in front of the locker.

    Fires on_price_increase(tracking_id) once per session when the presence
    threshold is crossed, and on_cooldown_complete() when a surge has fully
    cooled down.

    Example:
        tracker = PresenceTracker(config, on_price_increase=controller.handle_price_increase)
        state = tracker.observe(face_id)        # face_id may be None
    """

    def __init__(
        self,
        config: PricingConfig,
        on_price_increase: Optional[Callable[[int], None]] = None,
        on_cooldown_complete: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._on_price_increase = on_price_increase
        self._on_cooldown_complete = on_cooldown_complete
        self._clock = clock
        self._state: TrackerState = Idle()
        self._last_snapshot: PresenceState = describe(self._state, clock(), config)
        self._last_process_time: Optional[float] = None
        self._is_processing = False

    @property
    def config(self) -> PricingConfig:
        return self._config

    @property
    def state(self) -> TrackerState:
        """Current tracker state variant."""
        return self._state

    @property
    def last_snapshot(self) -> PresenceState:
        """Snapshot computed by the most recent processed observation."""
        return self._last_snapshot

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def observe(self, tracking_id: Optional[int], now: Optional[float] = None) -> PresenceState:
        """
        Feed one observation (tracking id of the first face, or None).

        Returns:
            The new snapshot, or the previous one unchanged when throttled.
        """
        return self.process(lambda: tracking_id, now)

    def process(
        self,
        detect: Callable[[], Optional[int]],
        now: Optional[float] = None,
    ) -> PresenceState:
        """
        Run a face lookup under the throttle and in-flight guard, then observe.

        Args:
            detect: Returns the tracking id of the first face, or None.
                Only invoked when the observation is not throttled.
            now: Observation time; defaults to the injected clock.
        """
        if now is None:
            now = self._clock()

        if (
            self._last_process_time is not None
            and now - self._last_process_time < self._config.processing_interval_seconds
        ):
            return self._last_snapshot

        if self._is_processing:
            return self._last_snapshot

        self._is_processing = True
        self._last_process_time = now
        try:
            try:
                tracking_id = detect()
            except Exception as e:
                logging.warning(f"Face lookup failed: {e}")
                return replace(self._last_snapshot, details=f"Error: {e}")

            next_state, events = reduce(self._state, tracking_id, now, self._config)
            self._state = next_state
            self._last_snapshot = describe(next_state, now, self._config)
            self._dispatch(events)
            return self._last_snapshot
        finally:
            self._is_processing = False

    def tick(self, now: Optional[float] = None) -> PresenceState:
        """
        Advance time-driven transitions without an observation.

        An elapsed grace window starts cooldown and an expired cooldown
        completes, even when the camera feed is quiet or failing.
        """
        if now is None:
            now = self._clock()
        next_state = expire_grace(self._state, now, self._config)
        next_state, events = expire_cooldown(next_state, now, self._config)
        if next_state != self._state:
            self._state = next_state
            details = "Cooldown complete" if events else None
            self._last_snapshot = describe(next_state, now, self._config, details=details)
            self._dispatch(events)
        return self._last_snapshot

    def current(self, now: Optional[float] = None) -> PresenceState:
        """Snapshot of the current state at now, without observing."""
        if now is None:
            now = self._clock()
        return describe(self._state, now, self._config)

    def restore(self, state: TrackerState, now: Optional[float] = None) -> None:
        """Install a previously persisted state (already resolved by the caller)."""
        if now is None:
            now = self._clock()
        self._state = state
        self._last_snapshot = describe(state, now, self._config)
        logging.info(f"Presence tracker restored: status={state.status.value}")

    def reset(self) -> None:
        """Drop any session or cooldown and return to idle (e.g., when monitoring stops)."""
        logging.info(f"Resetting presence tracker (was {self._state.status.value})")
        self._state = Idle()
        self._last_snapshot = describe(self._state, self._clock(), self._config)
        self._last_process_time = None
        self._is_processing = False

    def _dispatch(self, events: List[PresenceEvent]) -> None:
        for event in events:
            try:
                if isinstance(event, PriceIncreaseEvent) and self._on_price_increase:
                    self._on_price_increase(event.tracking_id)
                elif isinstance(event, CooldownCompleteEvent) and self._on_cooldown_complete:
                    self._on_cooldown_complete()
            except Exception as e:
                logging.warning(f"Presence callback error: {e}")
