"""
Locker Kiosk - Detection Module

This module handles face detection and tracking in camera frames.
"""

from .base import Detection, Detector, detections_to_array
from .face_detector import HaarFaceDetector
from .tracker import FaceTracker, TrackedFace, create_face_tracker_from_config

__all__ = [
    'Detection',
    'Detector',
    'detections_to_array',
    'HaarFaceDetector',
    'FaceTracker',
    'TrackedFace',
    'create_face_tracker_from_config',
]
