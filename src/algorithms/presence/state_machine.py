"""
Presence state machine.

reduce(state, tracking_id, now, config) is a pure transition function: it
takes the current tracker state, one face observation (a tracking id, or None
when no usable face is present) and the injected clock value, and returns the
next state plus the events the transition fired. All grace, pause and resume
arithmetic lives here so it can be exercised without real timers.

Transitions:
    idle            + face            -> tracking (new session)
    tracking        + same id         -> tracking, or priceIncreased once the
                                         threshold is crossed (fires once)
    tracking        + other id        -> tracking (fresh session)
    tracking        + no face         -> idle, or cooldown if an earlier
                                         surge is still pending
    priceIncreased  + same id         -> priceIncreased
    priceIncreased  + other id        -> tracking (fresh session, surge pending)
    priceIncreased  + no face         -> priceIncreased during the grace
                                         window, then cooldown
    priceIncreased  + face in grace   -> priceIncreased (original session)
    cooldown        + face            -> cooldown (paused)
    cooldown        + no face         -> cooldown (resumed)
    cooldown        complete          -> idle (fires cooldown-complete)
    priceIncreased  grace elapsed     -> cooldown (also without a new frame)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from models.config import PricingConfig
from models.presence import (
    Cooldown,
    CooldownCompleteEvent,
    CooldownWindow,
    Idle,
    PresenceEvent,
    PresenceSession,
    PresenceState,
    PriceIncreased,
    PriceIncreaseEvent,
    Tracking,
    TrackerState,
)


def expire_cooldown(
    state: TrackerState,
    now: float,
    config: PricingConfig,
) -> Tuple[TrackerState, List[PresenceEvent]]:
    """Resolve a cooldown whose active time has reached the configured duration."""
    if isinstance(state, Cooldown) and state.window.is_complete(now, config.cooldown_duration_seconds):
        logging.info(
            f"[COOLDOWN] complete: active={state.window.elapsed(now):.1f}s "
            f"owner={state.window.owner_tracking_id}"
        )
        return Idle(), [CooldownCompleteEvent(timestamp=now, owner_tracking_id=state.window.owner_tracking_id)]
    return state, []


def expire_grace(state: TrackerState, now: float, config: PricingConfig) -> TrackerState:
    """Commit a price-increased session to cooldown once its absence grace window has run out."""
    if (
        isinstance(state, PriceIncreased)
        and state.session.absent_since is not None
        and now - state.session.absent_since >= config.absence_grace_period_seconds
    ):
        return _on_absence(state, now, config)
    return state


def reduce(
    state: TrackerState,
    tracking_id: Optional[int],
    now: float,
    config: PricingConfig,
) -> Tuple[TrackerState, List[PresenceEvent]]:
    """
    Apply one observation to the tracker state.

    Args:
        state: Current tracker state.
        tracking_id: Tracking id of the first observed face, or None for no usable face.
        now: Observation time in seconds.
        config: Pricing configuration (threshold, grace, cooldown).

    Returns:
        Tuple of (next state, events fired by this transition).
    """
    state, events = expire_cooldown(state, now, config)

    if tracking_id is None:
        return _on_absence(state, now, config), events
    return _on_face(state, tracking_id, now, config, events), events


def _new_session(tracking_id: int, now: float) -> PresenceSession:
    return PresenceSession(tracking_id=tracking_id, started_at=now, last_seen_at=now)


def _on_face(
    state: TrackerState,
    tracking_id: int,
    now: float,
    config: PricingConfig,
    events: List[PresenceEvent],
) -> TrackerState:
    if isinstance(state, Cooldown):
        # Presence only stalls the cooldown; it never opens a billable session.
        if not state.window.is_paused:
            logging.debug(f"[COOLDOWN] paused by face id={tracking_id}")
        return Cooldown(window=state.window.pause(now))

    if isinstance(state, Idle):
        logging.debug(f"[PRESENCE] tracking started id={tracking_id}")
        return Tracking(session=_new_session(tracking_id, now))

    if isinstance(state, Tracking):
        session = state.session
        if tracking_id != session.tracking_id:
            logging.debug(f"[PRESENCE] new customer id={tracking_id} replaces id={session.tracking_id}")
            return Tracking(session=_new_session(tracking_id, now), surge_pending=state.surge_pending)

        session = replace(session, last_seen_at=now)
        if session.duration(now) >= config.presence_threshold_seconds:
            session = replace(session, triggered_at=now)
            events.append(PriceIncreaseEvent(tracking_id=tracking_id, timestamp=now))
            logging.info(
                f"[PRESENCE] threshold crossed id={tracking_id} "
                f"duration={session.duration(now):.1f}s"
            )
            return PriceIncreased(session=session)
        return Tracking(session=session, surge_pending=state.surge_pending)

    # PriceIncreased
    session = state.session
    if session.absent_since is not None:
        # Face back inside the grace window: same presence, whatever id the
        # detector assigned after losing the face.
        logging.debug(f"[PRESENCE] face reacquired within grace id={tracking_id}")
        return PriceIncreased(session=replace(session, absent_since=None, last_seen_at=now))
    if tracking_id == session.tracking_id:
        return PriceIncreased(session=replace(session, last_seen_at=now))

    logging.debug(f"[PRESENCE] new customer id={tracking_id} after surge by id={session.tracking_id}")
    return Tracking(session=_new_session(tracking_id, now), surge_pending=True)


def _on_absence(state: TrackerState, now: float, config: PricingConfig) -> TrackerState:
    if isinstance(state, Idle):
        return state

    if isinstance(state, Cooldown):
        if state.window.is_paused:
            logging.debug(f"[COOLDOWN] resumed, accumulated={state.window.accumulated:.1f}s")
        return Cooldown(window=state.window.resume(now))

    if isinstance(state, Tracking):
        if state.surge_pending:
            logging.info(f"[COOLDOWN] started, id={state.session.tracking_id} left before threshold")
            return Cooldown(window=CooldownWindow(started_at=now, owner_tracking_id=state.session.tracking_id))
        logging.debug(f"[PRESENCE] id={state.session.tracking_id} left before threshold")
        return Idle()

    # PriceIncreased: wait out the grace window before committing to cooldown.
    session = state.session
    absent_since = session.absent_since if session.absent_since is not None else now
    if now - absent_since >= config.absence_grace_period_seconds:
        logging.info(
            f"[COOLDOWN] started, id={session.tracking_id} absent {now - absent_since:.1f}s"
        )
        return Cooldown(window=CooldownWindow(started_at=now, owner_tracking_id=session.tracking_id))
    if session.absent_since is None:
        return PriceIncreased(session=replace(session, absent_since=now))
    return state


def describe(
    state: TrackerState,
    now: float,
    config: PricingConfig,
    details: Optional[str] = None,
) -> PresenceState:
    """Build the caller-facing snapshot for a tracker state."""
    if isinstance(state, Tracking):
        duration = state.session.duration(now)
        return PresenceState(
            status=state.status,
            timestamp=now,
            tracking_id=state.session.tracking_id,
            presence_duration=duration,
            details=details or f"Tracking: {int(duration)}s / {int(config.presence_threshold_seconds)}s",
        )

    if isinstance(state, PriceIncreased):
        session = state.session
        if details is None:
            if session.absent_since is not None:
                left = config.absence_grace_period_seconds - (now - session.absent_since)
                details = f"Face lost ({max(0, int(left))}s grace period)"
            else:
                details = "Price increased"
        return PresenceState(
            status=state.status,
            timestamp=now,
            tracking_id=session.tracking_id,
            presence_duration=session.duration(now),
            triggered_at=session.triggered_at,
            details=details,
        )

    if isinstance(state, Cooldown):
        window = state.window
        if details is None:
            details = "Cooldown paused (customer present)" if window.is_paused else "Cooldown active"
        return PresenceState(
            status=state.status,
            timestamp=now,
            tracking_id=window.owner_tracking_id,
            cooldown_remaining=window.remaining(now, config.cooldown_duration_seconds),
            cooldown_paused=window.is_paused,
            details=details,
        )

    return PresenceState(status=state.status, timestamp=now, details=details or "Waiting for customer")
