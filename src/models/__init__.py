"""
Typed models for the locker kiosk.

Frozen dataclasses validate their invariants at construction; use the
from_dict/to_dict adapters to move between persisted dicts and models.
"""

from .frame import FrameData
from .item import Item
from .surge import SOURCE_ONLINE, SOURCE_PHYSICAL, SurgeCounters, SurgeEvent
from .presence import (
    Cooldown,
    CooldownCompleteEvent,
    CooldownWindow,
    Idle,
    PresenceSession,
    PresenceState,
    PresenceStatus,
    PriceIncreased,
    PriceIncreaseEvent,
    Tracking,
    TrackerState,
)
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    OnlineInterestConfig,
    PricingConfig,
    StorageConfig,
    TrackingConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Item and surge
    "Item",
    "SurgeCounters",
    "SurgeEvent",
    "SOURCE_PHYSICAL",
    "SOURCE_ONLINE",
    # Presence
    "PresenceStatus",
    "PresenceSession",
    "CooldownWindow",
    "Idle",
    "Tracking",
    "PriceIncreased",
    "Cooldown",
    "TrackerState",
    "PriceIncreaseEvent",
    "CooldownCompleteEvent",
    "PresenceState",
    # Config
    "Config",
    "PricingConfig",
    "OnlineInterestConfig",
    "CameraConfig",
    "DetectionConfig",
    "TrackingConfig",
    "StorageConfig",
    "WebConfig",
]
