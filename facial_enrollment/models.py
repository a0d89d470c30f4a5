# facial_enrollment/models.py
import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class CredentialState(str, enum.Enum):
    NOT_ISSUED = "NotIssued"
    ISSUED = "Issued"
    CONSUMED = "Consumed"


class ProfileStatus(str, enum.Enum):
    INACTIVE = "Inactive"
    ACTIVE = "Active"


class Employee(Base):
    """Read-only mirror of the external employee registry."""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(64), unique=True, nullable=False)
    name = Column(String(256), nullable=False)
    company_id = Column(String(64), nullable=True, index=True)


class EnrollmentCredential(Base):
    __tablename__ = "enrollment_credentials"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(64), ForeignKey("employees.employee_id"), nullable=False)
    token = Column(String(128), nullable=False, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    state = Column(
        Enum(CredentialState, name="credential_state", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CredentialState.ISSUED,
    )

    # one live credential per employee; reissue overwrites the row
    __table_args__ = (
        UniqueConstraint("employee_id", name="uq_credential_employee"),
    )


class BiometricProfile(Base):
    __tablename__ = "biometric_profiles"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(64), ForeignKey("employees.employee_id"), nullable=False)
    company_id = Column(String(64), nullable=True)

    # fixed-length float vector, replaced wholesale on re-enrollment
    descriptor = Column(JSON, nullable=False)
    status = Column(
        Enum(ProfileStatus, name="profile_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProfileStatus.ACTIVE,
    )
    platform = Column(String(32), nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("employee_id", name="uq_profile_employee"),
    )
