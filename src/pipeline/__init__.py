"""
Pipeline module for the locker kiosk.

The engine orchestrates the full processing flow:
- Frame acquisition from the camera source
- Face lookup and presence tracking
- Periodic price recalculation and online interest polling
- Persistence and web state updates
"""

from .engine import EngineConfig, KioskEngine, create_engine_from_config

__all__ = [
    "KioskEngine",
    "EngineConfig",
    "create_engine_from_config",
]
