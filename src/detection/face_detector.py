"""
Face detection using OpenCV's bundled Haar cascade.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from models.config import DetectionConfig
from .base import Detection, Detector


DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"


class HaarFaceDetector(Detector):
    """
    Frontal face detector.

    Faces are returned largest first, so the first detection is the person
    closest to the locker.
    """

    def __init__(self, config: Optional[DetectionConfig] = None, cascade_path: Optional[str] = None):
        self.config = config or DetectionConfig()
        path = cascade_path or cv2.data.haarcascades + DEFAULT_CASCADE
        self._classifier = cv2.CascadeClassifier(path)
        if self._classifier.empty():
            raise RuntimeError(f"Failed to load face cascade from {path}")
        logging.info(f"Face detector initialized: cascade={path}")

    def detect(self, frame: np.ndarray) -> List[Detection]:
        if frame is None or frame.size == 0:
            return []

        gray = frame if frame.ndim == 2 else cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        gray = cv2.equalizeHist(gray)

        min_size = int(self.config.min_face_size)
        faces = self._classifier.detectMultiScale(
            gray,
            scaleFactor=self.config.scale_factor,
            minNeighbors=self.config.min_neighbors,
            minSize=(min_size, min_size),
        )

        detections = [
            Detection(x1=float(x), y1=float(y), x2=float(x + w), y2=float(y + h))
            for (x, y, w, h) in faces
        ]
        detections.sort(key=lambda d: d.area, reverse=True)
        return detections
