"""
Detection interfaces.

Kept lightweight so the face backend can be swapped (Haar cascade on the
kiosk, a DNN model later) without touching the tracker or presence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np


@dataclass(frozen=True)
class Detection:
    """
    A single face detection.

    bbox is in pixel coordinates in the original frame.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float = 1.0
    class_name: Optional[str] = "face"

    @property
    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)


class Detector:
    """Detector interface returning detections in pixel-space."""

    def detect(self, frame: np.ndarray) -> List[Detection]:
        raise NotImplementedError


def detections_to_array(detections: List[Detection]) -> np.ndarray:
    """Stack detections as an (N, 4) array of [x1, y1, x2, y2]."""
    if not detections:
        return np.empty((0, 4), dtype=float)
    return np.array([[d.x1, d.y1, d.x2, d.y2] for d in detections], dtype=float)
