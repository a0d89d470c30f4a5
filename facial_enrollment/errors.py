# facial_enrollment/errors.py
"""Failure taxonomy for enrollment and verification."""


class EnrollmentError(Exception):
    message = "Biometric enrollment failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class ModelUnavailable(EnrollmentError):
    """Extraction backend failed to initialize. Not retryable without reload."""

    message = "Face model could not be loaded"


class AcquisitionError(EnrollmentError):
    """Camera permission or hardware failure. Retryable by requesting again."""

    message = "Could not access the camera"


class DetectionError(EnrollmentError):
    """The live detection loop stopped on an unexpected backend failure."""

    message = "Face detection stopped unexpectedly. Try again."


class NoFaceDetected(EnrollmentError):
    """Transient. Shown as live status text, never raised to the user."""

    message = "Face not detected"


class NotCentered(EnrollmentError):
    message = "Center your face"


class TokenInvalid(EnrollmentError):
    message = "This link is invalid. Please request a new link from your manager or HR."


class TokenExpired(EnrollmentError):
    message = "For security, enrollment links expire after 24 hours. Request a new link to continue."


class TokenUsed(EnrollmentError):
    message = "Your biometric profile has already been registered."


class PersistenceError(EnrollmentError):
    message = "Could not save biometric data"


class ProfileNotFound(EnrollmentError):
    message = "Biometric profile not found"


class NoSample(EnrollmentError):
    message = "No face sample was provided"


class EmployeeNotFound(EnrollmentError):
    message = "Employee not found"


class InvalidTransition(EnrollmentError):
    message = "Operation not allowed in the current session state"
