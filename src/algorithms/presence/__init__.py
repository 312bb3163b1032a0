"""
Presence tracking for the locker kiosk.

The state machine is a pure reducer over tracker state variants; the tracker
adds throttling, the in-flight guard and event callbacks on top of it.
"""

from .state_machine import describe, expire_cooldown, expire_grace, reduce
from .tracker import PresenceTracker

__all__ = [
    "PresenceTracker",
    "reduce",
    "expire_cooldown",
    "expire_grace",
    "describe",
]
