# facial_enrollment/main.py
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import MATCH_THRESHOLD, settings
from .credentials import CredentialStore
from .db import get_db, init_db
from .errors import (
    EmployeeNotFound,
    EnrollmentError,
    NoSample,
    PersistenceError,
    ProfileNotFound,
    TokenExpired,
    TokenInvalid,
    TokenUsed,
)
from .face_service import Matcher
from .logging_utils import create_logging_middleware, get_logger
from .profiles import ProfileStore
from .schemas import (
    DisableOut,
    EnrollIn,
    EnrollOut,
    LinkIn,
    LinkOut,
    SummaryOut,
    ValidationOut,
    VerifyIn,
    VerifyOut,
)
from .status import employee_status, summarize_statuses
from . import crud

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if they don't exist (dev only; use Alembic in prod)
    init_db()
    yield


# ---------------- FASTAPI APP ----------------
APP = FastAPI(title="Facial Enrollment Backend", version="0.1.0", lifespan=lifespan)

APP.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
create_logging_middleware(APP, logger)

_STATUS_CODES = {
    TokenInvalid: 403,
    TokenExpired: 410,
    TokenUsed: 409,
    EmployeeNotFound: 404,
    ProfileNotFound: 404,
    NoSample: 422,
    PersistenceError: 503,
}


def _http_error(e: EnrollmentError) -> HTTPException:
    return HTTPException(status_code=_STATUS_CODES.get(type(e), 400), detail=e.message)


# ---------------- HEALTH ----------------
@APP.get("/api/health/db")
def health_db(db: Session = Depends(get_db)):
    try:
        val = db.execute(text("SELECT 1")).scalar_one()
        return {"db": "ok", "result": val}
    except Exception as e:
        raise HTTPException(
            status_code=503, detail=f"db error: {e.__class__.__name__}: {e}"
        )


@APP.get("/api/health")
def health():
    return {"ok": True, "threshold": MATCH_THRESHOLD}


# ---------------- LINKS ----------------
@APP.post("/api/biometrics/links", response_model=LinkOut)
def issue_link(payload: LinkIn, db: Session = Depends(get_db)):
    try:
        issued = CredentialStore(db).issue_link(payload.employeeId)
    except EnrollmentError as e:
        raise _http_error(e)
    return LinkOut(
        employeeId=issued.employee_id,
        token=issued.token,
        link=issued.link,
        expiresAt=issued.expires_at,
    )


@APP.get("/api/biometrics/links/{employee_id}", response_model=ValidationOut)
def validate_link(employee_id: str, token: str | None = Query(None), db: Session = Depends(get_db)):
    result = CredentialStore(db).validate(employee_id, token)
    return ValidationOut(
        status=result.status,
        employeeName=result.employee_name,
        companyId=result.company_id,
    )


# ---------------- ENROLL ----------------
@APP.post("/api/biometrics/enroll", response_model=EnrollOut)
def enroll(payload: EnrollIn, db: Session = Depends(get_db)):
    try:
        validation = CredentialStore(db).require_valid(payload.employeeId, payload.token)
        profile = ProfileStore(db).save(
            payload.employeeId,
            payload.descriptor,
            company_id=validation.company_id,
            platform=payload.platform,
            token=payload.token,
        )
    except EnrollmentError as e:
        raise _http_error(e)
    return EnrollOut(
        ok=True,
        employeeId=profile.employee_id,
        status=profile.status.value,
        capturedAt=profile.captured_at,
    )


# ---------------- VERIFY ----------------
@APP.post("/api/biometrics/verify", response_model=VerifyOut)
def verify(payload: VerifyIn, db: Session = Depends(get_db)):
    try:
        result = Matcher(db).verify(payload.employeeId, payload.descriptor)
    except EnrollmentError as e:
        raise _http_error(e)
    except ValueError as e:
        # descriptor length differs from the stored one
        raise HTTPException(status_code=422, detail=str(e))
    return VerifyOut(
        verified=result.verified,
        confidence=result.confidence,
        distance=result.distance,
        threshold=MATCH_THRESHOLD,
    )


# ---------------- ADMIN ----------------
@APP.post("/api/biometrics/{employee_id}/disable", response_model=DisableOut)
def disable(employee_id: str, db: Session = Depends(get_db)):
    try:
        ProfileStore(db).disable(employee_id)
    except EnrollmentError as e:
        raise _http_error(e)
    return DisableOut(ok=True, employeeId=employee_id, status=employee_status(db, employee_id).value)


@APP.get("/api/biometrics/summary", response_model=SummaryOut)
def summary(companyId: str | None = Query(None), db: Session = Depends(get_db)):
    employees = crud.list_employees(db, company_id=companyId)
    counts = summarize_statuses(employee_status(db, e.employee_id) for e in employees)
    return SummaryOut(
        total=len(employees),
        counts={status.value: n for status, n in counts.items()},
    )
