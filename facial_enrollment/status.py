# facial_enrollment/status.py
"""
Single tagged biometric status.

The employee registry reports the status as one record, a list of records,
or nothing, with its own labels. ``normalize_biometric_status`` folds all of
those into a BiometricStatus before anything else looks at it.
"""
from __future__ import annotations

import enum
from collections import Counter
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from . import crud
from .credentials import as_utc, utcnow
from .logging_utils import get_logger
from .models import CredentialState, ProfileStatus

logger = get_logger(__name__)


class BiometricStatus(str, enum.Enum):
    NOT_ENROLLED = "not_enrolled"
    LINK_SENT = "link_sent"
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


_LABELS = {
    "sem_cadastro": BiometricStatus.NOT_ENROLLED,
    "link_enviado": BiometricStatus.LINK_SENT,
    "pendente_validacao": BiometricStatus.PENDING,
    "ativo": BiometricStatus.ACTIVE,
    "inativo": BiometricStatus.INACTIVE,
}
_LABELS.update({s.value: s for s in BiometricStatus})
_LABELS.update({
    ProfileStatus.ACTIVE.value.lower(): BiometricStatus.ACTIVE,
    ProfileStatus.INACTIVE.value.lower(): BiometricStatus.INACTIVE,
})


def _from_label(label: Optional[str]) -> BiometricStatus:
    if not label:
        return BiometricStatus.NOT_ENROLLED
    status = _LABELS.get(str(label).strip().lower())
    if status is None:
        logger.warning("Unknown biometric status label %r", label)
        return BiometricStatus.NOT_ENROLLED
    return status


def _from_record(record: Any) -> BiometricStatus:
    if isinstance(record, Mapping):
        return _from_label(record.get("status"))
    return _from_label(getattr(record, "status", None))


def normalize_biometric_status(raw: Any) -> BiometricStatus:
    if raw is None:
        return BiometricStatus.NOT_ENROLLED
    if isinstance(raw, BiometricStatus):
        return raw
    if isinstance(raw, str):
        return _from_label(raw)
    if isinstance(raw, (list, tuple)):
        records = [r for r in raw if r]
        if not records:
            return BiometricStatus.NOT_ENROLLED
        # an Active record wins, otherwise the first one
        for record in records:
            if _from_record(record) is BiometricStatus.ACTIVE:
                return BiometricStatus.ACTIVE
        return _from_record(records[0])
    return _from_record(raw)


def employee_status(db: Session, employee_id: str, now: datetime | None = None) -> BiometricStatus:
    """Status derived from this core's own credential and profile rows."""
    now = now or utcnow()
    profile = crud.get_profile(db, employee_id)
    if profile is not None and profile.status == ProfileStatus.ACTIVE:
        return BiometricStatus.ACTIVE

    if crud.get_credential_state(db, employee_id) == CredentialState.ISSUED:
        credential = crud.get_credential_for_employee(db, employee_id)
        if as_utc(credential.expires_at) >= now:
            return BiometricStatus.LINK_SENT

    if profile is not None:
        return BiometricStatus.INACTIVE
    return BiometricStatus.NOT_ENROLLED


def summarize_statuses(statuses: Iterable[BiometricStatus]) -> Dict[BiometricStatus, int]:
    counts = Counter(statuses)
    return {status: counts.get(status, 0) for status in BiometricStatus}
