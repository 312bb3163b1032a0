"""
ObservationSource interface for the kiosk camera.

The presence pipeline reads frames through this contract so a USB webcam, a
recorded clip or a scripted test source are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Identifier for this source (e.g., "locker-cam").
        resolution: Target resolution as (width, height). None = source default.
        fps: Target frames per second. None = source default.
    """
    source_id: str = "locker-cam"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle: open(), then read() until it returns None or the caller stops,
    then close(). Also usable as a context manager.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Next frame, or None when no frame is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
