"""
Presence models: tracker state variants, sessions, cooldown windows and events.

The tracker state is a tagged union of four frozen variants (Idle, Tracking,
PriceIncreased, Cooldown). Every transition produces a new value; nothing is
mutated in place. PresenceState is the snapshot reported to callers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Optional, Union


class PresenceStatus(str, enum.Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    PRICE_INCREASED = "priceIncreased"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class PresenceSession:
    """
    Continuous interval during which one tracked person is in front of the locker.

    Attributes:
        tracking_id: Face tracking id of the person.
        started_at: When the person was first observed.
        triggered_at: When the presence threshold was crossed, if it was.
        last_seen_at: Most recent observation of this person.
        absent_since: First face-less observation after a trigger (grace window start).
    """
    tracking_id: int
    started_at: float
    triggered_at: Optional[float] = None
    last_seen_at: Optional[float] = None
    absent_since: Optional[float] = None

    @property
    def triggered(self) -> bool:
        return self.triggered_at is not None

    def duration(self, now: float) -> float:
        return max(0.0, now - self.started_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracking_id": self.tracking_id,
            "started_at": self.started_at,
            "triggered_at": self.triggered_at,
            "last_seen_at": self.last_seen_at,
            "absent_since": self.absent_since,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PresenceSession":
        return cls(
            tracking_id=int(d["tracking_id"]),
            started_at=float(d["started_at"]),
            triggered_at=_opt_float(d.get("triggered_at")),
            last_seen_at=_opt_float(d.get("last_seen_at")),
            absent_since=_opt_float(d.get("absent_since")),
        )


@dataclass(frozen=True)
class CooldownWindow:
    """
    Pausable cooldown progress.

    accumulated holds the sum of finished unpaused intervals. While unpaused,
    the running interval is now - started_at. While paused (a face is present)
    nothing advances.
    """
    started_at: float
    paused_at: Optional[float] = None
    accumulated: float = 0.0
    owner_tracking_id: Optional[int] = None

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    def elapsed(self, now: float) -> float:
        """Total active cooldown time up to now."""
        if self.paused_at is not None:
            return self.accumulated
        return self.accumulated + max(0.0, now - self.started_at)

    def remaining(self, now: float, duration: float) -> float:
        return max(0.0, duration - self.elapsed(now))

    def is_complete(self, now: float, duration: float) -> bool:
        return self.elapsed(now) >= duration

    def pause(self, now: float) -> "CooldownWindow":
        if self.paused_at is not None:
            return self
        return replace(
            self,
            accumulated=self.accumulated + max(0.0, now - self.started_at),
            paused_at=now,
        )

    def resume(self, now: float) -> "CooldownWindow":
        if self.paused_at is None:
            return self
        return replace(self, started_at=now, paused_at=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "paused_at": self.paused_at,
            "accumulated": self.accumulated,
            "owner_tracking_id": self.owner_tracking_id,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CooldownWindow":
        owner = d.get("owner_tracking_id")
        return cls(
            started_at=float(d["started_at"]),
            paused_at=_opt_float(d.get("paused_at")),
            accumulated=float(d.get("accumulated", 0.0)),
            owner_tracking_id=int(owner) if owner is not None else None,
        )


# Tracker state variants


@dataclass(frozen=True)
class Idle:
    status: ClassVar[PresenceStatus] = PresenceStatus.IDLE

    @property
    def tracking_id(self) -> Optional[int]:
        return None


@dataclass(frozen=True)
class Tracking:
    """
    A person is present but has not crossed the threshold yet.

    surge_pending is set when an earlier person triggered a surge that has not
    cooled down; departure then goes straight to cooldown instead of idle.
    """
    session: PresenceSession
    surge_pending: bool = False
    status: ClassVar[PresenceStatus] = PresenceStatus.TRACKING

    @property
    def tracking_id(self) -> Optional[int]:
        return self.session.tracking_id


@dataclass(frozen=True)
class PriceIncreased:
    session: PresenceSession
    status: ClassVar[PresenceStatus] = PresenceStatus.PRICE_INCREASED

    @property
    def tracking_id(self) -> Optional[int]:
        return self.session.tracking_id

    @property
    def in_grace(self) -> bool:
        return self.session.absent_since is not None


@dataclass(frozen=True)
class Cooldown:
    window: CooldownWindow
    status: ClassVar[PresenceStatus] = PresenceStatus.COOLDOWN

    @property
    def tracking_id(self) -> Optional[int]:
        return self.window.owner_tracking_id


TrackerState = Union[Idle, Tracking, PriceIncreased, Cooldown]


def tracker_state_to_dict(state: TrackerState) -> Dict[str, Any]:
    """Serialize a tracker state variant for persistence."""
    d: Dict[str, Any] = {"status": state.status.value}
    if isinstance(state, Tracking):
        d["session"] = state.session.to_dict()
        d["surge_pending"] = state.surge_pending
    elif isinstance(state, PriceIncreased):
        d["session"] = state.session.to_dict()
    elif isinstance(state, Cooldown):
        d["window"] = state.window.to_dict()
    return d


def tracker_state_from_dict(d: Dict[str, Any]) -> TrackerState:
    """
    Inverse of tracker_state_to_dict.

    Raises ValueError/KeyError/TypeError on malformed input.
    """
    status = PresenceStatus(d["status"])
    if status == PresenceStatus.TRACKING:
        return Tracking(
            session=PresenceSession.from_dict(d["session"]),
            surge_pending=bool(d.get("surge_pending", False)),
        )
    if status == PresenceStatus.PRICE_INCREASED:
        return PriceIncreased(session=PresenceSession.from_dict(d["session"]))
    if status == PresenceStatus.COOLDOWN:
        return Cooldown(window=CooldownWindow.from_dict(d["window"]))
    return Idle()


# Events


@dataclass(frozen=True)
class PriceIncreaseEvent:
    tracking_id: int
    timestamp: float


@dataclass(frozen=True)
class CooldownCompleteEvent:
    timestamp: float
    owner_tracking_id: Optional[int] = None


PresenceEvent = Union[PriceIncreaseEvent, CooldownCompleteEvent]


@dataclass(frozen=True)
class PresenceState:
    """
    Snapshot reported by the presence tracker after each observation.

    Attributes:
        status: Current presence status.
        tracking_id: Tracked person, or cooldown owner while cooling down.
        presence_duration: Seconds the current session has lasted.
        triggered_at: When the current session crossed the threshold.
        cooldown_remaining: Active seconds left before cooldown completes.
        cooldown_paused: Whether cooldown progress is stalled by a present face.
        details: Human-readable explanation for the kiosk UI.
        timestamp: When the snapshot was computed.
    """
    status: PresenceStatus
    timestamp: float
    tracking_id: Optional[int] = None
    presence_duration: float = 0.0
    triggered_at: Optional[float] = None
    cooldown_remaining: Optional[float] = None
    cooldown_paused: bool = False
    details: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.status == PresenceStatus.IDLE

    @property
    def is_tracking(self) -> bool:
        return self.status == PresenceStatus.TRACKING

    @property
    def is_price_increased(self) -> bool:
        return self.status == PresenceStatus.PRICE_INCREASED

    @property
    def is_in_cooldown(self) -> bool:
        return self.status == PresenceStatus.COOLDOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "tracking_id": self.tracking_id,
            "presence_duration": self.presence_duration,
            "triggered_at": self.triggered_at,
            "cooldown_remaining": self.cooldown_remaining,
            "cooldown_paused": self.cooldown_paused,
            "details": self.details,
        }


def _opt_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None
