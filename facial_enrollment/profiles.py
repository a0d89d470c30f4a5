# facial_enrollment/profiles.py
from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy.orm import Session

from . import crud
from .config import DEFAULT_PLATFORM
from .credentials import Clock, utcnow
from .errors import NoSample, ProfileNotFound
from .logging_utils import get_logger
from .models import BiometricProfile, ProfileStatus

logger = get_logger(__name__)


class ProfileStore:
    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def get_active(self, employee_id: str) -> Optional[BiometricProfile]:
        return crud.get_active_profile(self.db, employee_id)

    def save(
        self,
        employee_id: str,
        descriptor: Optional[Sequence[float]],
        company_id: str | None = None,
        platform: str = DEFAULT_PLATFORM,
        token: str | None = None,
    ) -> BiometricProfile:
        """
        Insert or overwrite the employee's profile as Active.

        With a ``token`` the matching enrollment credential is consumed in the
        same transaction, so a failed write leaves both untouched.
        """
        if descriptor is None or len(descriptor) == 0:
            raise NoSample()
        values = dict(
            employee_id=employee_id,
            descriptor=descriptor,
            status=ProfileStatus.ACTIVE,
            captured_at=self.clock(),
            company_id=company_id,
            platform=platform,
        )
        if token:
            profile, consumed = crud.upsert_profile_and_consume(self.db, token=token, **values)
            if not consumed:
                logger.warning("No credential to consume for %s", employee_id)
        else:
            profile = crud.upsert_profile(self.db, **values)
        logger.info("Biometric profile saved for %s (%d values)", employee_id, len(descriptor))
        return profile

    def disable(self, employee_id: str) -> None:
        if not crud.set_profile_status(self.db, employee_id, ProfileStatus.INACTIVE):
            raise ProfileNotFound()
        logger.info("Biometric profile disabled for %s", employee_id)
