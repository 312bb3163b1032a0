import threading
import time
from typing import Any, Dict, Optional


class KioskState:
    """
    Latest kiosk snapshot shared between the engine loop and the web server.

    The engine thread writes; API handlers read copies. Every access goes
    through the lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.database = None
        self._presence: Optional[Dict[str, Any]] = None
        self._price: Optional[Dict[str, Any]] = None
        self._item: Optional[Dict[str, Any]] = None
        self._surge_counts: Dict[str, Any] = {"total": 0, "physical": 0, "online": 0, "label": "none"}
        self._online_interest: Optional[Dict[str, Any]] = None
        self.system_stats: Dict[str, Any] = {
            "start_time": time.time(),
            "last_frame_ts": None,
            "frames_processed": 0,
        }

    def set_database(self, db) -> None:
        self.database = db

    def update_presence(self, presence: Dict[str, Any]) -> None:
        with self._lock:
            self._presence = dict(presence)

    def update_price(self, price: Dict[str, Any], item: Dict[str, Any], surge_counts: Dict[str, Any]) -> None:
        with self._lock:
            self._price = dict(price)
            self._item = dict(item)
            self._surge_counts = dict(surge_counts)

    def update_online_interest(self, interest: Dict[str, Any]) -> None:
        with self._lock:
            self._online_interest = dict(interest)

    def mark_frame(self, timestamp: Optional[float] = None) -> None:
        with self._lock:
            self.system_stats["last_frame_ts"] = timestamp if timestamp is not None else time.time()
            self.system_stats["frames_processed"] += 1

    def get_snapshot(self) -> Dict[str, Any]:
        """Shallow copy of everything the API serves."""
        with self._lock:
            return {
                "presence": dict(self._presence) if self._presence else None,
                "price": dict(self._price) if self._price else None,
                "item": dict(self._item) if self._item else None,
                "surge_counts": dict(self._surge_counts),
                "online_interest": dict(self._online_interest) if self._online_interest else None,
                "system_stats": dict(self.system_stats),
            }


# Global instance
state = KioskState()
