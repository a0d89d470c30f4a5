# facial_enrollment/face_service.py
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from sqlalchemy.orm import Session

from . import crud
from .config import MATCH_THRESHOLD, MAX_VERIFICATION_FAILURES
from .errors import NoSample, ProfileNotFound
from .face_types import VerificationResult
from .logging_utils import get_logger

logger = get_logger(__name__)


def euclidean(vec1, vec2) -> float:
    """Compute Euclidean distance between two embedding vectors."""
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)
    if v1.shape != v2.shape:
        raise ValueError("Descriptor shape mismatch")
    return float(np.linalg.norm(v1 - v2))


def confidence_for(distance: float) -> int:
    return int(round(min(100.0, max(0.0, (1.0 - distance) * 100.0))))


def compare_descriptors(profile_descriptor: Sequence[float], sample_descriptor: Sequence[float]) -> VerificationResult:
    dist = euclidean(profile_descriptor, sample_descriptor)
    return VerificationResult(
        verified=dist < MATCH_THRESHOLD,
        confidence=confidence_for(dist),
        distance=dist,
    )


class Matcher:
    """Verifies a fresh sample against the employee's active profile. Read-only."""

    def __init__(self, db: Session):
        self.db = db

    def verify(self, employee_id: str, sample_descriptor: Optional[Sequence[float]]) -> VerificationResult:
        profile = crud.get_active_profile(self.db, employee_id)
        if profile is None:
            raise ProfileNotFound()
        if sample_descriptor is None or len(sample_descriptor) == 0:
            raise NoSample()

        result = compare_descriptors(profile.descriptor, sample_descriptor)
        logger.info(
            "Verification for %s: verified=%s confidence=%d distance=%.4f",
            employee_id,
            result.verified,
            result.confidence,
            result.distance,
        )
        return result


class VerificationAttempts:
    """
    Counts consecutive failed verifications during one clock-in.

    Once ``max_failures`` is reached the caller must switch to password
    authentication for that record.
    """

    def __init__(self, max_failures: int = MAX_VERIFICATION_FAILURES):
        self.max_failures = max_failures
        self.failures = 0

    def record(self, result: VerificationResult) -> bool:
        """Returns True when the password fallback is now required."""
        if result.verified:
            self.failures = 0
            return False
        self.failures += 1
        return self.fallback_required

    @property
    def fallback_required(self) -> bool:
        return self.failures >= self.max_failures

    @property
    def remaining(self) -> int:
        return max(0, self.max_failures - self.failures)
