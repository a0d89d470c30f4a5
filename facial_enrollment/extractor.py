# facial_enrollment/extractor.py
from __future__ import annotations

import enum
import threading
from typing import Callable, Optional, Protocol

import numpy as np

from .config import settings
from .errors import ModelUnavailable
from .face_types import BoundingBox, Extraction
from .logging_utils import get_logger

logger = get_logger(__name__)


class DescriptorExtractor(Protocol):
    def extract(self, frame: np.ndarray) -> Extraction:
        ...


class ExtractorState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class FaceRecognitionExtractor:
    """
    dlib-based backend through the ``face_recognition`` package.

    Frames are RGB uint8 arrays (H, W, 3). Produces 128-d descriptors. When
    more than one face is found, the largest one is used.
    """

    def __init__(self, detection_model: str | None = None):
        try:
            import face_recognition
        except ImportError as exc:
            raise ImportError(
                "face_recognition is required. Install with: pip install 'facial-enrollment[face]'"
            ) from exc
        self._fr = face_recognition
        self.detection_model = detection_model or settings.face_detection_model

    def extract(self, frame: np.ndarray) -> Extraction:
        locations = self._fr.face_locations(frame, model=self.detection_model)
        if not locations:
            return Extraction.no_face()

        # (top, right, bottom, left); pick largest face
        top, right, bottom, left = max(
            locations, key=lambda loc: (loc[1] - loc[3]) * (loc[2] - loc[0])
        )
        box = BoundingBox(x=left, y=top, width=right - left, height=bottom - top)
        encodings = self._fr.face_encodings(frame, known_face_locations=[(top, right, bottom, left)])
        descriptor = tuple(float(v) for v in encodings[0]) if encodings else None
        return Extraction(detected=True, box=box, descriptor=descriptor)


class ExtractorHandle:
    """
    Capability handle around a descriptor backend.

    ``initialize()`` loads the backend once. A failure is logged once and
    remembered: the handle stays FAILED and every later call raises the same
    ModelUnavailable without touching the backend again.
    """

    def __init__(self, factory: Callable[[], DescriptorExtractor]):
        self._factory = factory
        self._backend: Optional[DescriptorExtractor] = None
        self._error: Optional[ModelUnavailable] = None
        self._lock = threading.Lock()
        self.state = ExtractorState.UNINITIALIZED

    @property
    def ready(self) -> bool:
        return self.state is ExtractorState.READY

    @property
    def error(self) -> Optional[ModelUnavailable]:
        return self._error

    def initialize(self) -> "ExtractorHandle":
        with self._lock:
            if self.state is ExtractorState.UNINITIALIZED:
                try:
                    self._backend = self._factory()
                    self.state = ExtractorState.READY
                    logger.info("Face model ready")
                except Exception as e:
                    self._error = ModelUnavailable(f"Face model could not be loaded: {e}")
                    self.state = ExtractorState.FAILED
                    logger.error("Face model failed to initialize: %s", e)
            if self.state is ExtractorState.FAILED:
                raise self._error
        return self

    def extract(self, frame: np.ndarray) -> Extraction:
        if self.state is not ExtractorState.READY:
            raise self._error or ModelUnavailable("Face model is not initialized")
        return self._backend.extract(frame)


# Lazy init so import is fast
_shared_handle: Optional[ExtractorHandle] = None
_shared_lock = threading.Lock()


def get_extractor(factory: Callable[[], DescriptorExtractor] = FaceRecognitionExtractor) -> ExtractorHandle:
    """
    Process-wide handle shared by all sessions, created on first use.

    Not initialized here: callers check ``handle.state`` or call
    ``initialize()`` and handle ModelUnavailable themselves.
    """
    global _shared_handle
    with _shared_lock:
        if _shared_handle is None:
            _shared_handle = ExtractorHandle(factory)
        return _shared_handle
