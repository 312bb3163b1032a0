"""
Surge controller: owns the surge counters and bridges presence events to pricing.

Every mutation (price increase, online interest, cooldown completion, item
change) goes through recalculate(), the single place the displayed price is
derived. Counters and the item snapshot are persisted after each mutation so
a restart resumes mid-surge.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from algorithms.pricing import PriceQuote, PricingEngine, format_price
from models.config import PricingConfig
from models.item import Item
from models.presence import (
    Cooldown,
    CooldownWindow,
    Idle,
    PriceIncreased,
    Tracking,
    TrackerState,
    tracker_state_from_dict,
    tracker_state_to_dict,
)
from models.surge import SOURCE_ONLINE, SOURCE_PHYSICAL, SurgeCounters, SurgeEvent
from storage.database import Database


PriceListener = Callable[[PriceQuote], None]


def resolve_persisted_state(
    state: TrackerState,
    now: float,
    config: PricingConfig,
) -> Tuple[TrackerState, bool]:
    """
    Resolve a tracker state read back after a restart.

    Nobody can be standing at the locker across a restart, so any session is
    treated as departed at its last known timestamp. A surge-bearing session
    becomes a cooldown that started when the person left (after the grace
    period for a triggered session). A cooldown whose active time already
    covers the cooldown duration resolves to idle.

    Returns:
        (resolved_state, cooldown_completed). When cooldown_completed is True
        the caller must reset the surge counters.
    """
    cooldown = config.cooldown_duration_seconds

    if isinstance(state, Cooldown):
        window = state.window
        if window.is_complete(now, cooldown):
            return Idle(), True
        # A paused window was paused by a face that is no longer there.
        return Cooldown(window.resume(now)), False

    if isinstance(state, PriceIncreased):
        session = state.session
        departed_at = _first_set(
            session.absent_since,
            session.last_seen_at,
            session.triggered_at,
            session.started_at,
        )
        window = CooldownWindow(
            started_at=departed_at + config.absence_grace_period_seconds,
            owner_tracking_id=session.tracking_id,
        )
        if window.is_complete(now, cooldown):
            return Idle(), True
        return Cooldown(window), False

    if isinstance(state, Tracking) and state.surge_pending:
        session = state.session
        window = CooldownWindow(started_at=_first_set(session.last_seen_at, session.started_at))
        if window.is_complete(now, cooldown):
            return Idle(), True
        return Cooldown(window), False

    return Idle(), False


def _first_set(*values: Optional[float]) -> float:
    return next(v for v in values if v is not None)


class SurgeController:
    """
    Owns the current item and surge counters, and recomputes the price.

    Example:
        controller = SurgeController(PricingEngine(pricing_config), db)
        presence = controller.load(fallback_item, now=time.time())
        tracker.restore(presence)
        controller.handle_price_increase(42)
    """

    def __init__(
        self,
        engine: PricingEngine,
        db: Optional[Database] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._engine = engine
        self._db = db
        self._clock = clock
        self._item: Optional[Item] = None
        self._counters = SurgeCounters()
        self._last_quote: Optional[PriceQuote] = None
        self._time_offset = timedelta(0)
        self._listeners: List[PriceListener] = []

    @property
    def engine(self) -> PricingEngine:
        return self._engine

    @property
    def item(self) -> Optional[Item]:
        return self._item

    @property
    def counters(self) -> SurgeCounters:
        return self._counters

    @property
    def last_quote(self) -> Optional[PriceQuote]:
        return self._last_quote

    @property
    def time_offset(self) -> timedelta:
        """Fast-forward offset applied to the pricing clock (demo mode)."""
        return self._time_offset

    def add_listener(self, listener: PriceListener) -> None:
        """Register a callback invoked with every recomputed PriceQuote."""
        self._listeners.append(listener)

    def pricing_now(self) -> datetime:
        """Clock used for pricing, including any fast-forward offset."""
        return self._clock() + self._time_offset

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load(self, fallback_item: Item, now: Optional[float] = None) -> TrackerState:
        """
        Restore item, counters and presence state from storage.

        Args:
            fallback_item: Item to list when nothing valid is saved.
            now: Unix time used to resolve the persisted presence state.

        Returns:
            The resolved presence state to install into the tracker.
        """
        if now is None:
            now = self._clock().timestamp()

        item = self._db.load_item() if self._db is not None else None
        if item is None:
            logging.info(f"No saved item, listing {fallback_item.name}")
            self._item = fallback_item
            self._counters = SurgeCounters()
            self._persist_item()
            self._persist_counters()
            self.persist_presence(Idle())
            self.recalculate()
            return Idle()

        self._item = item
        self._counters = self._db.load_surge_counts()

        state: TrackerState = Idle()
        raw_state = self._db.load_presence_state()
        if raw_state is not None:
            try:
                state = tracker_state_from_dict(raw_state)
            except (KeyError, TypeError, ValueError) as e:
                logging.warning(f"Saved presence state is malformed, starting idle: {e}")

        resolved, completed = resolve_persisted_state(state, now, self._engine.config)
        if completed:
            logging.info("[COOLDOWN] Saved cooldown already complete, resetting surge")
            self._counters = SurgeCounters()
            self._persist_counters()
        self.persist_presence(resolved)

        logging.info(
            f"Restored item {item.id}: surge={self._counters.total} "
            f"(physical={self._counters.physical}, online={self._counters.online}), "
            f"presence={resolved.status.value}"
        )
        self.recalculate()
        return resolved

    def set_item(self, item: Item) -> PriceQuote:
        """List a new item; surge counters start from zero."""
        logging.info(f"Listing item {item.id} ({item.name}) at {format_price(item.starting_price)}")
        self._item = item
        self._counters = SurgeCounters()
        self._persist_item()
        self._persist_counters()
        return self.recalculate()

    def fast_forward(self, days: float) -> PriceQuote:
        """Advance the pricing clock by days (demo mode)."""
        self._time_offset += timedelta(days=days)
        logging.info(f"Fast-forwarded pricing clock by {days} day(s), offset={self._time_offset}")
        return self.recalculate()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def handle_price_increase(self, tracking_id: int) -> PriceQuote:
        """Presence threshold crossed by tracking_id."""
        return self._apply_surge(SOURCE_PHYSICAL, tracking_id)

    def register_online_interest(self) -> PriceQuote:
        """Online interest crossed its thresholds."""
        return self._apply_surge(SOURCE_ONLINE, None)

    def handle_cooldown_complete(self) -> PriceQuote:
        """Cooldown finished: drop all surge and fall back to decay pricing."""
        logging.info(f"[COOLDOWN] Complete, resetting surge (was {self._counters.total})")
        self._counters = SurgeCounters()
        self._persist_counters()
        return self.recalculate()

    def _apply_surge(self, source: str, tracking_id: Optional[int]) -> PriceQuote:
        self._require_item()
        self._counters = self._counters.increment(source)
        self._persist_counters()
        quote = self.recalculate()

        logging.info(
            f"[SURGE] {source} surge #{self._counters.total}"
            f"{f' (person {tracking_id})' if tracking_id is not None else ''}: "
            f"price now {format_price(quote.final_price)}"
        )
        if self._db is not None:
            self._db.add_surge_event(SurgeEvent(
                source=source,
                timestamp=self._clock().timestamp(),
                surge_count=self._counters.total,
                price=quote.final_price,
                tracking_id=tracking_id,
            ))
        return quote

    # -------------------------------------------------------------------------
    # Recalculation
    # -------------------------------------------------------------------------

    def recalculate(self) -> PriceQuote:
        """
        Recompute the displayed price from the item, surge count and clock.

        Called from both the periodic price tick and every surge event.
        """
        item = self._require_item()
        quote = self._engine.quote(item, self._counters.total, self.pricing_now())
        self._last_quote = quote

        if self._db is not None:
            self._db.save_last_price_update(self._clock())

        for listener in self._listeners:
            try:
                listener(quote)
            except Exception as e:
                logging.warning(f"Price listener error: {e}")
        return quote

    def _require_item(self) -> Item:
        if self._item is None:
            raise RuntimeError("No item listed; call load() or set_item() first")
        return self._item

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def persist_presence(self, state: TrackerState) -> None:
        if self._db is not None:
            self._db.save_presence_state(tracker_state_to_dict(state))

    def _persist_item(self) -> None:
        if self._db is not None and self._item is not None:
            self._db.save_item(self._item)

    def _persist_counters(self) -> None:
        if self._db is not None:
            self._db.save_surge_counts(self._counters)
