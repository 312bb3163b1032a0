"""
Observation layer for the locker camera.

Sources implement the ObservationSource interface and return FrameData;
FaceObservationFeed reduces each frame to the tracking id the presence
tracker consumes.
"""

from .base import ObservationSource, ObservationConfig
from .face_feed import FaceObservationFeed
from .opencv_source import OpenCVSource, OpenCVSourceConfig, create_source_from_config

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "FaceObservationFeed",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
