"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.config import PricingConfig  # noqa: E402
from models.item import Item  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
pricing:
  profile: "test"
  decay_half_life_hours: 84
  surge_multiplier: 1.01
  max_surge_multiplier: 1.5

camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 15

storage:
  local_database_path: "data/test.sqlite"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "pricing": {
            "profile": "test",
            "decay_half_life_hours": 84,
            "listing_duration_days": 7,
            "surge_multiplier": 1.01,
            "max_surge_multiplier": 1.5,
        },
        "online_interest": {
            "enabled": True,
            "poll_interval_seconds": 5,
            "surge_probability": 0.01,
        },
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [640, 480],
            "fps": 15,
        },
        "detection": {
            "scale_factor": 1.1,
            "min_neighbors": 5,
        },
        "tracking": {
            "max_frames_since_seen": 5,
            "iou_threshold": 0.3,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    yield path
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def pricing_config():
    """Test profile: 5s threshold, 5s cooldown, 3s grace, no throttle."""
    return PricingConfig.for_profile("test", processing_interval_seconds=0.0)


@pytest.fixture
def listed_at():
    return datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def item(listed_at):
    return Item(
        id="item_001",
        name="Bose QuietComfort 35 II",
        description="Wireless noise-cancelling headphones.",
        starting_price=150.0,
        floor_price=80.0,
        listed_at=listed_at,
        listing_duration=timedelta(days=7),
    )


class FakeClock:
    """Manually advanced datetime clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock(listed_at):
    return FakeClock(listed_at + timedelta(hours=84))
