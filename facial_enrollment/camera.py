# facial_enrollment/camera.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .config import settings
from .errors import AcquisitionError
from .logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CameraConstraints:
    facing: str = "user"
    width: int = 640
    height: int = 480


class CameraStream(Protocol):
    def read(self) -> np.ndarray:
        ...


class Camera(Protocol):
    def acquire(self, constraints: CameraConstraints) -> CameraStream:
        ...

    def release(self, stream: CameraStream) -> None:
        ...


class OpenCVStream:
    def __init__(self, capture):
        self.capture = capture

    def read(self) -> np.ndarray:
        import cv2

        ret, frame = self.capture.read()
        if not ret or frame is None:
            raise AcquisitionError("Could not read a frame from the camera")
        # OpenCV delivers BGR; extractors expect RGB.
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


class OpenCVCamera:
    """
    Local webcam via OpenCV. ``facing`` is ignored: a device index selects the camera.
    """

    def __init__(self, index: int | None = None):
        self.index = settings.camera_index if index is None else index

    def acquire(self, constraints: CameraConstraints) -> OpenCVStream:
        try:
            import cv2
        except ImportError as exc:
            raise AcquisitionError("opencv-python is required for camera access") from exc

        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            logger.error("Failed to open camera %s", self.index)
            raise AcquisitionError()
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        logger.info("Camera %s acquired (%dx%d)", self.index, constraints.width, constraints.height)
        return OpenCVStream(cap)

    def release(self, stream: OpenCVStream) -> None:
        stream.capture.release()
        logger.info("Camera %s released", self.index)
