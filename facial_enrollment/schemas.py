from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .credentials import ValidationStatus


class LinkIn(BaseModel):
    employeeId: str = Field(min_length=1)

class LinkOut(BaseModel):
    employeeId: str
    token: str
    link: str
    expiresAt: datetime

class ValidationOut(BaseModel):
    status: ValidationStatus
    employeeName: Optional[str] = None
    companyId: Optional[str] = None

class EnrollIn(BaseModel):
    employeeId: str = Field(min_length=1)
    token: Optional[str] = None
    descriptor: List[float] = Field(min_length=64)  # 128 is typical
    platform: str = "Web"

class EnrollOut(BaseModel):
    ok: bool
    employeeId: str
    status: str
    capturedAt: datetime

class VerifyIn(BaseModel):
    employeeId: str = Field(min_length=1)
    # absent when extraction failed on the client
    descriptor: Optional[List[float]] = None

class VerifyOut(BaseModel):
    verified: bool
    confidence: int
    distance: float
    threshold: float

class DisableOut(BaseModel):
    ok: bool
    employeeId: str
    status: str

class SummaryOut(BaseModel):
    total: int
    counts: Dict[str, int]
