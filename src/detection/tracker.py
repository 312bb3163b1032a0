"""
Face tracking module for keeping a stable id per person across frames.

This module implements a simple IoU-based tracking system. The presence
tracker only needs an id that stays the same while one person stands in
front of the locker and changes when someone else steps in.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from models.config import TrackingConfig


@dataclass
class TrackedFace:
    """Represents a tracked face across frames."""
    face_id: int
    bbox: Tuple[float, float, float, float]  # (x1, y1, x2, y2)
    frames_since_seen: int
    hits: int = 1


class FaceTracker:
    """
    Tracks faces across frames using IoU-based matching.

    This tracker is responsible for:
    - Matching detections to existing tracks using IoU
    - Assigning new ids to unmatched detections
    - Removing stale tracks
    """

    def __init__(self, max_frames_since_seen: int = 5, iou_threshold: float = 0.3):
        """
        Initialize the face tracker.

        Args:
            max_frames_since_seen: Maximum frames a face can be missing
                                   before its track is dropped
            iou_threshold: Minimum IoU value to match detections across frames
        """
        self.max_frames_since_seen = max_frames_since_seen
        self.iou_threshold = iou_threshold

        self.tracked_faces: Dict[int, TrackedFace] = {}
        self.next_face_id = 1

        logging.info("Face tracker initialized")

    def update(self, detections: np.ndarray) -> List[Optional[int]]:
        """
        Update tracker with new detections.

        Args:
            detections: Array of detections, each as [x1, y1, x2, y2]

        Returns:
            Face id assigned to each detection, in detection order.
        """
        assigned: List[Optional[int]] = [None] * len(detections)

        self._match_existing_tracks(detections, assigned)
        self._add_new_tracks(detections, assigned)
        self._remove_old_tracks()

        return assigned

    def reset(self) -> None:
        self.tracked_faces.clear()

    @staticmethod
    def _calculate_iou(bbox1: Tuple[float, ...], bbox2: Tuple[float, ...]) -> float:
        """
        Calculate Intersection over Union (IoU) between two bounding boxes.

        Returns:
            IoU value between 0 and 1
        """
        x1_1, y1_1, x2_1, y2_1 = bbox1
        x1_2, y1_2, x2_2, y2_2 = bbox2

        x1_i = max(x1_1, x1_2)
        y1_i = max(y1_1, y1_2)
        x2_i = min(x2_1, x2_2)
        y2_i = min(y2_1, y2_2)

        if x2_i <= x1_i or y2_i <= y1_i:
            return 0.0

        intersection = (x2_i - x1_i) * (y2_i - y1_i)
        area1 = (x2_1 - x1_1) * (y2_1 - y1_1)
        area2 = (x2_2 - x1_2) * (y2_2 - y1_2)
        union = area1 + area2 - intersection

        if union <= 0:
            return 0.0

        return intersection / union

    def _match_existing_tracks(self, detections: np.ndarray, assigned: List[Optional[int]]) -> None:
        """Greedily match each existing track to its best unmatched detection."""
        for face in self.tracked_faces.values():
            best_iou = 0.0
            best_idx = None

            for idx, detection in enumerate(detections):
                if assigned[idx] is not None:
                    continue
                iou = self._calculate_iou(face.bbox, tuple(detection[:4]))
                if iou > best_iou and iou >= self.iou_threshold:
                    best_iou = iou
                    best_idx = idx

            if best_idx is not None:
                face.bbox = tuple(float(v) for v in detections[best_idx][:4])
                face.frames_since_seen = 0
                face.hits += 1
                assigned[best_idx] = face.face_id
            else:
                face.frames_since_seen += 1

    def _add_new_tracks(self, detections: np.ndarray, assigned: List[Optional[int]]) -> None:
        for idx, detection in enumerate(detections):
            if assigned[idx] is not None:
                continue
            face = TrackedFace(
                face_id=self.next_face_id,
                bbox=tuple(float(v) for v in detection[:4]),
                frames_since_seen=0,
            )
            self.tracked_faces[face.face_id] = face
            assigned[idx] = face.face_id
            logging.debug(f"[TRACK] New face id={face.face_id}")
            self.next_face_id += 1

    def _remove_old_tracks(self) -> None:
        """Remove tracked faces that haven't been seen for too long."""
        stale = [
            face_id for face_id, face in self.tracked_faces.items()
            if face.frames_since_seen > self.max_frames_since_seen
        ]
        for face_id in stale:
            del self.tracked_faces[face_id]

    def get_active_tracks(self) -> List[TrackedFace]:
        """Faces matched in the most recent frame."""
        return [f for f in self.tracked_faces.values() if f.frames_since_seen == 0]


def create_face_tracker_from_config(config: TrackingConfig) -> FaceTracker:
    return FaceTracker(
        max_frames_since_seen=config.max_frames_since_seen,
        iou_threshold=config.iou_threshold,
    )
