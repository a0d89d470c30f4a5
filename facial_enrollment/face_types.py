# facial_enrollment/face_types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

# Fixed-length descriptor vector (128-d for the dlib model). Immutable once captured.
FaceDescriptor = Tuple[float, ...]


@dataclass(frozen=True)
class BoundingBox:
    # Top-left corner and size in frame pixels.
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Extraction:
    detected: bool
    box: Optional[BoundingBox] = None
    descriptor: Optional[FaceDescriptor] = None

    @classmethod
    def no_face(cls) -> "Extraction":
        return cls(detected=False)


@dataclass(frozen=True)
class DetectionSnapshot:
    """What the UI layer sees after each detection tick."""

    detected: bool
    centered: bool
    message: str


@dataclass(frozen=True)
class CaptureFrame:
    # Raw image sample, not persisted.
    image: Any
    box: Optional[BoundingBox]
    centered: bool
    descriptor: Optional[FaceDescriptor]


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    # 0..100, derived from the descriptor distance.
    confidence: int
    distance: float
