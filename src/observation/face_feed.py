"""
Face observation feed: turns camera frames into presence observations.

Only the first (largest) face is considered; the kiosk follows a single
customer at a time.
"""

from __future__ import annotations

import logging
from typing import Optional

from detection.base import Detector, detections_to_array
from detection.tracker import FaceTracker
from models.frame import FrameData


class FaceObservationFeed:
    """
    Detector plus tracker producing one tracking id per frame.

    Example:
        feed = FaceObservationFeed(HaarFaceDetector(), FaceTracker())
        tracker.process(lambda: feed.first_tracking_id(frame_data))
    """

    def __init__(self, detector: Detector, tracker: FaceTracker):
        self.detector = detector
        self.tracker = tracker
        self.frames_processed = 0
        self.last_face_count = 0

    def first_tracking_id(self, frame_data: FrameData) -> Optional[int]:
        """
        Tracking id of the first face in the frame, or None when no face.

        Detector errors propagate to the caller.
        """
        detections = self.detector.detect(frame_data.frame)
        ids = self.tracker.update(detections_to_array(detections))
        self.frames_processed += 1

        if len(detections) != self.last_face_count:
            logging.debug(f"[TRACK] faces={len(detections)} ids={ids}")
        self.last_face_count = len(detections)

        return ids[0] if ids else None

    def reset(self) -> None:
        self.tracker.reset()
        self.last_face_count = 0
