"""
OpenCV-based observation source for the locker camera.

Supports a USB webcam (device_id as int) or a recorded clip (device_id as a
file path) for demos and offline runs.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union

import cv2
import numpy as np

from models.config import CameraConfig
from models.frame import FrameData
from .base import ObservationConfig, ObservationSource


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV capture.

    Attributes:
        device_id: Camera index (int) or video file path (str).
        buffer_size: Capture buffer size; 1 keeps the live feed current.
        max_retries: Attempts to open the device before giving up.
        swap_rb: Swap R/B channels.
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Mirror the frame.
        flip_vertical: Flip the frame upside down.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera: CameraConfig, source_id: str = "locker-cam") -> "OpenCVSourceConfig":
        """Adapter: build from the typed camera section of the app config."""
        resolution = tuple(camera.resolution) if camera.resolution else None
        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera.fps,
            device_id=camera.device_id,
            swap_rb=camera.swap_rb,
            rotate=camera.rotate or 0,
            flip_horizontal=camera.flip_horizontal,
            flip_vertical=camera.flip_vertical,
        )


class OpenCVSource(ObservationSource):
    """
    Wraps cv2.VideoCapture and yields FrameData.

    Example:
        with OpenCVSource(OpenCVSourceConfig(device_id=0)) as source:
            frame_data = source.read()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._cv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._cv_config.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return

        for attempt in range(1, self._cv_config.max_retries + 1):
            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            self._cap.release()
            self._cap = None
            logging.warning(
                f"Failed to open camera {self.device_id} "
                f"(attempt {attempt}/{self._cv_config.max_retries})"
            )
            if attempt < self._cv_config.max_retries:
                time.sleep(min(2 ** attempt, 10))
        else:
            raise RuntimeError(
                f"Failed to open camera {self.device_id} after {self._cv_config.max_retries} attempts"
            )

        if isinstance(self.device_id, int) and self._cv_config.resolution:
            w, h = self._cv_config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._cv_config.fps:
                self._cap.set(cv2.CAP_PROP_FPS, self._cv_config.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._cv_config.buffer_size)

        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, device={self.device_id}, "
            f"resolution={self._cv_config.resolution}"
        )

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            if self.is_file:
                logging.info("End of video file reached")
            return None

        frame = self._apply_transforms(frame)
        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Apply configured rotate, flip and channel swap."""
        cfg = self._cv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal and cfg.flip_vertical:
            frame = cv2.flip(frame, -1)
        elif cfg.flip_horizontal:
            frame = cv2.flip(frame, 1)
        elif cfg.flip_vertical:
            frame = cv2.flip(frame, 0)

        if cfg.swap_rb:
            frame = frame[..., ::-1].copy()

        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")


def create_source_from_config(camera: CameraConfig, source_id: str = "locker-cam") -> ObservationSource:
    """Factory: observation source for the configured camera backend."""
    if camera.backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {camera.backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera, source_id=source_id))
