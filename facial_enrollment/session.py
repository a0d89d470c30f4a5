# facial_enrollment/session.py
"""
Remote enrollment flow for one employee on one device.

    LOADING -> INVALID | EXPIRED | USED | READY
    READY -> CAPTURING -> CONFIRMING -> SAVING -> SUCCESS
                 ^            |            |
                 +-- retry ---+            |
                 +-- write failed ---------+

The camera is held only while CAPTURING.
"""
from __future__ import annotations

import enum
from typing import Any, List, Optional

from .camera import Camera, CameraConstraints, CameraStream
from .config import DETECTION_INTERVAL_SECONDS
from .credentials import CredentialStore, ValidationResult, ValidationStatus
from .detection_loop import DetectionLoop, Subscriber
from .errors import (
    AcquisitionError,
    DetectionError,
    EnrollmentError,
    InvalidTransition,
    ModelUnavailable,
    PersistenceError,
    TokenExpired,
    TokenInvalid,
    TokenUsed,
)
from .extractor import ExtractorHandle
from .face_types import DetectionSnapshot, FaceDescriptor
from .logging_utils import get_logger
from .profiles import ProfileStore

logger = get_logger(__name__)

DEFAULT_GREETING_NAME = "Employee"


class SessionState(str, enum.Enum):
    LOADING = "loading"
    INVALID = "invalid"
    EXPIRED = "expired"
    USED = "used"
    READY = "ready"
    CAPTURING = "capturing"
    CONFIRMING = "confirming"
    SAVING = "saving"
    SUCCESS = "success"


TERMINAL_STATES = frozenset(
    {SessionState.INVALID, SessionState.EXPIRED, SessionState.USED, SessionState.SUCCESS}
)

STATE_MESSAGES = {
    SessionState.LOADING: "Validating your session...",
    SessionState.INVALID: TokenInvalid.message,
    SessionState.EXPIRED: TokenExpired.message,
    SessionState.USED: TokenUsed.message,
    SessionState.READY: "Ready to register. Face the camera in a well-lit place.",
    SessionState.CAPTURING: "Position your face",
    SessionState.CONFIRMING: "Check that the image is sharp and your face is clearly visible.",
    SessionState.SAVING: "Saving profile...",
    SessionState.SUCCESS: "Your facial biometrics were registered. You can now clock in with facial recognition.",
}

_VALIDATION_STATES = {
    ValidationStatus.VALID: SessionState.READY,
    ValidationStatus.INVALID: SessionState.INVALID,
    ValidationStatus.EXPIRED: SessionState.EXPIRED,
    ValidationStatus.USED: SessionState.USED,
}


class EnrollmentSession:
    def __init__(
        self,
        employee_id: str,
        token: str | None,
        credentials: CredentialStore,
        profiles: ProfileStore,
        extractor: ExtractorHandle,
        camera: Camera,
        constraints: CameraConstraints = CameraConstraints(),
        interval: float = DETECTION_INTERVAL_SECONDS,
        autostart_loop: bool = True,
    ):
        self.employee_id = employee_id
        self.token = token
        self.credentials = credentials
        self.profiles = profiles
        self.extractor = extractor
        self.camera = camera
        self.constraints = constraints
        self.interval = interval
        # off: the caller drives detection.tick() itself
        self.autostart_loop = autostart_loop

        self.state = SessionState.LOADING
        self.validation: Optional[ValidationResult] = None
        self.error: Optional[str] = None
        self.preview: Any = None
        self.descriptor: Optional[FaceDescriptor] = None

        self._stream: Optional[CameraStream] = None
        self._loop: Optional[DetectionLoop] = None
        self._subscribers: List[Subscriber] = []

    # ---------------- VIEW ----------------
    @property
    def greeting_name(self) -> str:
        if self.validation and self.validation.employee_name:
            return self.validation.employee_name
        return DEFAULT_GREETING_NAME

    @property
    def detection(self) -> Optional[DetectionLoop]:
        return self._loop

    @property
    def last_snapshot(self) -> Optional[DetectionSnapshot]:
        return self._loop.last if self._loop else None

    @property
    def camera_held(self) -> bool:
        return self._stream is not None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if self.state is SessionState.CAPTURING and self.last_snapshot is not None:
            return self.last_snapshot.message
        return STATE_MESSAGES[self.state]

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)
        if self._loop is not None:
            self._loop.subscribe(callback)

    # ---------------- TRANSITIONS ----------------
    def _require(self, operation: str, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransition(f"Cannot {operation} while {self.state.value}")

    def _transition(self, state: SessionState) -> None:
        logger.info("Enrollment session %s: %s -> %s", self.employee_id, self.state.value, state.value)
        self.state = state

    def open(self) -> SessionState:
        self._require("validate", SessionState.LOADING)
        self.validation = self.credentials.validate(self.employee_id, self.token)
        self._transition(_VALIDATION_STATES[self.validation.status])
        return self.state

    def start_capture(self) -> bool:
        self._require("start capture", SessionState.READY)
        return self._begin_capture()

    def _begin_capture(self) -> bool:
        """Acquire camera and start detection. On failure the session sits in READY."""
        self.error = None
        try:
            self.extractor.initialize()
        except ModelUnavailable as e:
            self.error = e.message
            self._transition(SessionState.READY)
            return False
        try:
            stream = self.camera.acquire(self.constraints)
        except AcquisitionError as e:
            logger.warning("Camera acquisition failed for %s: %s", self.employee_id, e)
            self.error = e.message
            self._transition(SessionState.READY)
            return False

        loop = DetectionLoop(
            stream, self.extractor, interval=self.interval, on_error=self._detection_failed
        )
        for callback in self._subscribers:
            loop.subscribe(callback)
        if self.autostart_loop:
            try:
                loop.start()
            except RuntimeError as e:
                # no running event loop to schedule detection on
                logger.error("Detection loop could not start for %s: %s", self.employee_id, e)
                self.camera.release(stream)
                self.error = DetectionError.message
                self._transition(SessionState.READY)
                return False

        self._stream = stream
        self._loop = loop
        self._transition(SessionState.CAPTURING)
        return True

    def _detection_failed(self, error: Exception) -> None:
        """Camera or extractor failure while capturing: release and fall back to READY."""
        if self.state is not SessionState.CAPTURING:
            return
        logger.error("Detection failed for %s: %s", self.employee_id, error)
        self._teardown()
        self.error = error.message if isinstance(error, EnrollmentError) else DetectionError.message
        self._transition(SessionState.READY)

    def capture(self) -> bool:
        """
        Take the descriptor. Only accepted when the last published tick was
        centered; otherwise nothing changes and False is returned.
        """
        self._require("capture", SessionState.CAPTURING)
        last = self._loop.last
        if last is None or not last.centered:
            return False

        try:
            frame = self._loop.grab()
        except Exception as e:
            self._detection_failed(e)
            return False
        if frame is None or frame.descriptor is None:
            # face lost since the last tick; grab() already published it
            return False

        self._teardown()
        self.preview = frame.image
        self.descriptor = frame.descriptor
        self._transition(SessionState.CONFIRMING)
        return True

    def retry(self) -> bool:
        self._require("retry", SessionState.CONFIRMING)
        self.preview = None
        self.descriptor = None
        return self._begin_capture()

    def confirm(self) -> SessionState:
        self._require("confirm", SessionState.CONFIRMING)
        self._transition(SessionState.SAVING)
        company_id = self.validation.company_id if self.validation else None
        try:
            self.profiles.save(
                self.employee_id, self.descriptor, company_id=company_id, token=self.token
            )
        except PersistenceError as e:
            logger.error("Saving biometric profile failed for %s: %s", self.employee_id, e)
            self.preview = None
            self.descriptor = None
            if self._begin_capture():
                self.error = e.message
            return self.state

        self._transition(SessionState.SUCCESS)
        return self.state

    def cancel(self) -> None:
        """Leave capture without taking a sample."""
        self._require("cancel", SessionState.CAPTURING)
        self._teardown()
        self._transition(SessionState.READY)

    def close(self) -> None:
        """Navigation away. Safe in any state."""
        self._teardown()
        if self.state is SessionState.CAPTURING:
            self._transition(SessionState.READY)

    def _teardown(self) -> None:
        if self._loop is not None:
            self._loop.stop()
            self._loop = None
        if self._stream is not None:
            stream, self._stream = self._stream, None
            self.camera.release(stream)
