"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


# Presence timing presets. Profiles differ only in these three values.
PRESENCE_PROFILES: Dict[str, Dict[str, float]] = {
    "production": {
        "presence_threshold_seconds": 15.0,
        "cooldown_duration_seconds": 300.0,
        "absence_grace_period_seconds": 3.0,
    },
    "test": {
        "presence_threshold_seconds": 5.0,
        "cooldown_duration_seconds": 5.0,
        "absence_grace_period_seconds": 3.0,
    },
}


@dataclass(frozen=True)
class PricingConfig:
    """
    Process-wide pricing and presence settings, read-only after startup.

    Attributes:
        decay_half_life_hours: Hours after which the decayed price sits 20% of
            the way from floor back toward the starting price.
        listing_duration_days: Default listing lifetime for new items.
        surge_multiplier: Compound multiplier applied per surge event.
        max_surge_multiplier: Ceiling on the compounded surge multiplier.
        presence_threshold_seconds: Dwell time that triggers a physical surge.
        cooldown_duration_seconds: Active (unpaused) quiet time before surge resets.
        absence_grace_period_seconds: Tolerated face loss before cooldown starts.
        decay_update_interval_seconds: Period of the price recalculation tick.
        processing_interval_seconds: Minimum spacing between face observations.
    """
    decay_half_life_hours: float = 84.0
    listing_duration_days: float = 7.0
    surge_multiplier: float = 1.01
    max_surge_multiplier: float = 1.50
    presence_threshold_seconds: float = 5.0
    cooldown_duration_seconds: float = 5.0
    absence_grace_period_seconds: float = 3.0
    decay_update_interval_seconds: float = 10.0
    processing_interval_seconds: float = 0.2

    def __post_init__(self) -> None:
        if not self.decay_half_life_hours > 0:
            raise ValueError("decay_half_life_hours must be positive")
        if not self.listing_duration_days > 0:
            raise ValueError("listing_duration_days must be positive")
        if not self.surge_multiplier > 0:
            raise ValueError("surge_multiplier must be positive")
        if self.max_surge_multiplier < 1.0:
            raise ValueError("max_surge_multiplier must be at least 1.0")
        for name in (
            "presence_threshold_seconds",
            "cooldown_duration_seconds",
            "absence_grace_period_seconds",
            "processing_interval_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not self.decay_update_interval_seconds > 0:
            raise ValueError("decay_update_interval_seconds must be positive")

    @property
    def decay_base(self) -> float:
        """Per-hour decay factor: 0.2 ** (1 / half_life)."""
        return math.pow(0.2, 1.0 / self.decay_half_life_hours)

    @property
    def max_surge_count(self) -> int:
        """Largest surge count whose compounded multiplier stays under the cap."""
        if self.surge_multiplier <= 1.0:
            return 0
        return int(math.floor(math.log(self.max_surge_multiplier) / math.log(self.surge_multiplier)))

    @classmethod
    def for_profile(cls, profile: str, **overrides: Any) -> "PricingConfig":
        """Build a config from a named presence profile ("production" or "test")."""
        if profile not in PRESENCE_PROFILES:
            raise ValueError(f"Unknown pricing profile: {profile}")
        values: Dict[str, Any] = dict(PRESENCE_PROFILES[profile])
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PricingConfig":
        """Adapter: Create from config dictionary, applying the profile first."""
        profile = d.get("profile", "test")
        base = PRESENCE_PROFILES.get(profile, PRESENCE_PROFILES["test"])
        return cls(
            decay_half_life_hours=float(d.get("decay_half_life_hours", 84.0)),
            listing_duration_days=float(d.get("listing_duration_days", 7.0)),
            surge_multiplier=float(d.get("surge_multiplier", 1.01)),
            max_surge_multiplier=float(d.get("max_surge_multiplier", 1.50)),
            presence_threshold_seconds=float(
                d.get("presence_threshold_seconds", base["presence_threshold_seconds"])
            ),
            cooldown_duration_seconds=float(
                d.get("cooldown_duration_seconds", base["cooldown_duration_seconds"])
            ),
            absence_grace_period_seconds=float(
                d.get("absence_grace_period_seconds", base["absence_grace_period_seconds"])
            ),
            decay_update_interval_seconds=float(d.get("decay_update_interval_seconds", 10.0)),
            processing_interval_seconds=float(d.get("processing_interval_seconds", 0.2)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decay_half_life_hours": self.decay_half_life_hours,
            "listing_duration_days": self.listing_duration_days,
            "surge_multiplier": self.surge_multiplier,
            "max_surge_multiplier": self.max_surge_multiplier,
            "presence_threshold_seconds": self.presence_threshold_seconds,
            "cooldown_duration_seconds": self.cooldown_duration_seconds,
            "absence_grace_period_seconds": self.absence_grace_period_seconds,
            "decay_update_interval_seconds": self.decay_update_interval_seconds,
            "processing_interval_seconds": self.processing_interval_seconds,
        }


@dataclass
class OnlineInterestConfig:
    """Simulated online-interest polling."""
    enabled: bool = True
    poll_interval_seconds: float = 5.0
    surge_probability: float = 0.01
    click_threshold: int = 10
    view_threshold: int = 15
    wishlist_threshold: int = 3
    activity_window_seconds: float = 300.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OnlineInterestConfig":
        return cls(
            enabled=d.get("enabled", True),
            poll_interval_seconds=float(d.get("poll_interval_seconds", 5.0)),
            surge_probability=float(d.get("surge_probability", 0.01)),
            click_threshold=int(d.get("click_threshold", 10)),
            view_threshold=int(d.get("view_threshold", 15)),
            wishlist_threshold=int(d.get("wishlist_threshold", 3)),
            activity_window_seconds=float(d.get("activity_window_seconds", 300.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "poll_interval_seconds": self.poll_interval_seconds,
            "surge_probability": self.surge_probability,
            "click_threshold": self.click_threshold,
            "view_threshold": self.view_threshold,
            "wishlist_threshold": self.wishlist_threshold,
            "activity_window_seconds": self.activity_window_seconds,
        }


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [640, 480])
    fps: int = 15
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [640, 480]),
            fps=d.get("fps", 15),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class DetectionConfig:
    """Haar-cascade face detection configuration."""
    scale_factor: float = 1.1
    min_neighbors: int = 5
    min_face_size: int = 60

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            scale_factor=float(d.get("scale_factor", 1.1)),
            min_neighbors=int(d.get("min_neighbors", 5)),
            min_face_size=int(d.get("min_face_size", 60)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scale_factor": self.scale_factor,
            "min_neighbors": self.min_neighbors,
            "min_face_size": self.min_face_size,
        }


@dataclass
class TrackingConfig:
    """Face tracking configuration."""
    max_frames_since_seen: int = 5
    iou_threshold: float = 0.3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackingConfig":
        return cls(
            max_frames_since_seen=d.get("max_frames_since_seen", 5),
            iou_threshold=d.get("iou_threshold", 0.3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_frames_since_seen": self.max_frames_since_seen,
            "iou_threshold": self.iou_threshold,
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/kiosk.sqlite"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/kiosk.sqlite"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_database_path": self.local_database_path,
        }


@dataclass
class WebConfig:
    """Status API configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    pricing: PricingConfig = field(default_factory=PricingConfig)
    online_interest: OnlineInterestConfig = field(default_factory=OnlineInterestConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/kiosk.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            pricing=PricingConfig.from_dict(d.get("pricing", {}) or {}),
            online_interest=OnlineInterestConfig.from_dict(d.get("online_interest", {}) or {}),
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            tracking=TrackingConfig.from_dict(d.get("tracking", {}) or {}),
            storage=StorageConfig.from_dict(d.get("storage", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/kiosk.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "pricing": self.pricing.to_dict(),
            "online_interest": self.online_interest.to_dict(),
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "tracking": self.tracking.to_dict(),
            "storage": self.storage.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
