# facial_enrollment/crud.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .logging_utils import get_logger
from .models import (
    BiometricProfile,
    CredentialState,
    Employee,
    EnrollmentCredential,
    ProfileStatus,
)

logger = get_logger(__name__)


def _insert_for(db: Session):
    """Dialect insert that supports ON CONFLICT ... DO UPDATE."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"Atomic upsert is not supported on {dialect}")
    return insert


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Commit failed while %s: %s", what, e)
        raise PersistenceError(f"Could not save {what}") from e


# ---------------- EMPLOYEES ----------------
def get_employee(db: Session, employee_id: str) -> Optional[Employee]:
    return db.execute(select(Employee).where(Employee.employee_id == employee_id)).scalar_one_or_none()

def list_employees(db: Session, company_id: str | None = None) -> List[Employee]:
    stmt = select(Employee).order_by(Employee.name)
    if company_id is not None:
        stmt = stmt.where(Employee.company_id == company_id)
    return list(db.execute(stmt).scalars())


# ---------------- CREDENTIALS ----------------
def get_credential(db: Session, employee_id: str, token: str) -> Optional[EnrollmentCredential]:
    return db.execute(
        select(EnrollmentCredential).where(
            EnrollmentCredential.employee_id == employee_id,
            EnrollmentCredential.token == token,
        )
    ).scalar_one_or_none()

def get_credential_for_employee(db: Session, employee_id: str) -> Optional[EnrollmentCredential]:
    return db.execute(
        select(EnrollmentCredential).where(EnrollmentCredential.employee_id == employee_id)
    ).scalar_one_or_none()

def upsert_credential(
    db: Session,
    *,
    employee_id: str,
    token: str,
    issued_at: datetime,
    expires_at: datetime,
) -> EnrollmentCredential:
    values = dict(
        employee_id=employee_id,
        token=token,
        issued_at=issued_at,
        expires_at=expires_at,
        state=CredentialState.ISSUED,
    )
    insert = _insert_for(db)
    stmt = insert(EnrollmentCredential).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[EnrollmentCredential.employee_id],
        set_={k: v for k, v in values.items() if k != "employee_id"},
    )
    try:
        db.execute(stmt)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Credential upsert failed for %s: %s", employee_id, e)
        raise PersistenceError("Could not save enrollment credential") from e
    _commit(db, "enrollment credential")
    db.expire_all()
    return get_credential_for_employee(db, employee_id)

def get_credential_state(db: Session, employee_id: str) -> CredentialState:
    credential = get_credential_for_employee(db, employee_id)
    return credential.state if credential is not None else CredentialState.NOT_ISSUED

def _consume_stmt(employee_id: str, token: str):
    return (
        update(EnrollmentCredential)
        .where(
            EnrollmentCredential.employee_id == employee_id,
            EnrollmentCredential.token == token,
        )
        .values(state=CredentialState.CONSUMED)
    )

def mark_credential_consumed(db: Session, employee_id: str, token: str) -> bool:
    """Returns True if a row matched. Already-consumed rows stay consumed."""
    try:
        result = db.execute(_consume_stmt(employee_id, token))
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Could not consume enrollment credential") from e
    _commit(db, "enrollment credential")
    db.expire_all()
    return result.rowcount > 0


# ---------------- PROFILES ----------------
def get_profile(db: Session, employee_id: str) -> Optional[BiometricProfile]:
    return db.execute(select(BiometricProfile).where(BiometricProfile.employee_id == employee_id)).scalar_one_or_none()

def get_active_profile(db: Session, employee_id: str) -> Optional[BiometricProfile]:
    return db.execute(
        select(BiometricProfile).where(
            BiometricProfile.employee_id == employee_id,
            BiometricProfile.status == ProfileStatus.ACTIVE,
        )
    ).scalar_one_or_none()

def _profile_upsert_stmt(
    db: Session,
    *,
    employee_id: str,
    descriptor: Sequence[float],
    status: ProfileStatus,
    captured_at: datetime,
    company_id: str | None = None,
    platform: str | None = None,
):
    values = dict(
        employee_id=employee_id,
        descriptor=[float(v) for v in descriptor],
        status=status,
        captured_at=captured_at,
        company_id=company_id,
        platform=platform,
    )
    insert = _insert_for(db)
    stmt = insert(BiometricProfile).values(**values)
    update_values = {k: v for k, v in values.items() if k != "employee_id"}
    update_values["updated_at"] = func.now()
    if company_id is None:
        # keep the company already on record
        update_values.pop("company_id")
    return stmt.on_conflict_do_update(
        index_elements=[BiometricProfile.employee_id],
        set_=update_values,
    )

def upsert_profile(db: Session, **values) -> BiometricProfile:
    employee_id = values["employee_id"]
    try:
        db.execute(_profile_upsert_stmt(db, **values))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Profile upsert failed for %s: %s", employee_id, e)
        raise PersistenceError() from e
    _commit(db, "biometric profile")
    db.expire_all()
    return get_profile(db, employee_id)

def upsert_profile_and_consume(db: Session, *, token: str, **values) -> Tuple[BiometricProfile, bool]:
    """
    Write the profile and consume the enrollment credential in one commit.
    Either both land or neither does. Returns the profile and whether a
    credential row matched.
    """
    employee_id = values["employee_id"]
    try:
        db.execute(_profile_upsert_stmt(db, **values))
        consumed = db.execute(_consume_stmt(employee_id, token)).rowcount > 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Enrollment write failed for %s: %s", employee_id, e)
        raise PersistenceError() from e
    _commit(db, "biometric profile")
    db.expire_all()
    return get_profile(db, employee_id), consumed

def set_profile_status(db: Session, employee_id: str, status: ProfileStatus) -> bool:
    try:
        result = db.execute(
            update(BiometricProfile)
            .where(BiometricProfile.employee_id == employee_id)
            .values(status=status, updated_at=func.now())
        )
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Could not update biometric profile") from e
    _commit(db, "biometric profile")
    db.expire_all()
    return result.rowcount > 0
