# facial_enrollment/credentials.py
from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from sqlalchemy.orm import Session

from . import crud
from .config import CREDENTIAL_TTL_HOURS, settings
from .errors import EmployeeNotFound, TokenExpired, TokenInvalid, TokenUsed
from .logging_utils import get_logger
from .models import CredentialState

logger = get_logger(__name__)

CREDENTIAL_TTL = timedelta(hours=CREDENTIAL_TTL_HOURS)
ENROLLMENT_PATH = "biometria-remota"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_enrollment_link(base_url: str, employee_id: str, token: str) -> str:
    """{baseUrl}/biometria-remota/{employeeId}?token={token}"""
    return f"{base_url.rstrip('/')}/{ENROLLMENT_PATH}/{quote(employee_id, safe='')}?{urlencode({'token': token})}"


class ValidationStatus(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    USED = "used"


_STATUS_ERRORS = {
    ValidationStatus.INVALID: TokenInvalid,
    ValidationStatus.EXPIRED: TokenExpired,
    ValidationStatus.USED: TokenUsed,
}


@dataclass(frozen=True)
class ValidationResult:
    status: ValidationStatus
    # resolved whenever the employee exists, whatever the status
    employee_name: Optional[str] = None
    company_id: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.status is ValidationStatus.VALID

    def raise_for_status(self) -> "ValidationResult":
        error = _STATUS_ERRORS.get(self.status)
        if error is not None:
            raise error()
        return self


@dataclass(frozen=True)
class IssuedCredential:
    employee_id: str
    token: str
    issued_at: datetime
    expires_at: datetime
    link: str


class CredentialStore:
    """
    One-time enrollment tokens, one live row per employee.

    ``allow_tokenless_enrollment`` lets an employee with no credential row at
    all enroll without a token, as long as no Active profile exists. A token
    that does not match the employee's row never validates.
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = utcnow,
        allow_tokenless_enrollment: bool | None = None,
        base_url: str | None = None,
    ):
        self.db = db
        self.clock = clock
        self.allow_tokenless_enrollment = (
            settings.allow_tokenless_enrollment
            if allow_tokenless_enrollment is None
            else allow_tokenless_enrollment
        )
        self.base_url = base_url or settings.enrollment_base_url

    def issue(self, employee_id: str) -> str:
        return self.issue_link(employee_id).token

    def issue_link(self, employee_id: str) -> IssuedCredential:
        if crud.get_employee(self.db, employee_id) is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")

        token = secrets.token_urlsafe(32)
        issued_at = self.clock()
        expires_at = issued_at + CREDENTIAL_TTL
        crud.upsert_credential(
            self.db,
            employee_id=employee_id,
            token=token,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        logger.info("Enrollment credential issued for %s, expires %s", employee_id, expires_at.isoformat())
        return IssuedCredential(
            employee_id=employee_id,
            token=token,
            issued_at=issued_at,
            expires_at=expires_at,
            link=build_enrollment_link(self.base_url, employee_id, token),
        )

    def validate(self, employee_id: str, token: str | None) -> ValidationResult:
        employee = crud.get_employee(self.db, employee_id) if employee_id else None
        if employee is None:
            return ValidationResult(ValidationStatus.INVALID)

        def result(status: ValidationStatus) -> ValidationResult:
            logger.info("Credential validation for %s: %s", employee_id, status.value)
            return ValidationResult(status, employee_name=employee.name, company_id=employee.company_id)

        has_active_profile = crud.get_active_profile(self.db, employee_id) is not None
        row = crud.get_credential(self.db, employee_id, token) if token else None

        if row is None:
            if has_active_profile:
                return result(ValidationStatus.USED)
            if self.allow_tokenless_enrollment and crud.get_credential_for_employee(self.db, employee_id) is None:
                return result(ValidationStatus.VALID)
            return result(ValidationStatus.INVALID)

        if as_utc(row.expires_at) < self.clock():
            return result(ValidationStatus.EXPIRED)
        if has_active_profile or row.state == CredentialState.CONSUMED:
            return result(ValidationStatus.USED)
        return result(ValidationStatus.VALID)

    def require_valid(self, employee_id: str, token: str | None) -> ValidationResult:
        return self.validate(employee_id, token).raise_for_status()

    def consume(self, employee_id: str, token: str | None) -> None:
        """Idempotent. A missing row (tokenless enrollment) is a no-op."""
        if not token:
            return
        if not crud.mark_credential_consumed(self.db, employee_id, token):
            logger.warning("No credential to consume for %s", employee_id)
            return
        logger.info("Enrollment credential consumed for %s", employee_id)
