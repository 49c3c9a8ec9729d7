from __future__ import annotations
from typing import Annotated, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

Str128 = Annotated[str, Field(min_length=1, max_length=128)]
Str255 = Annotated[str, Field(min_length=1, max_length=255)]

# ---- Registrations ----
class RegistrationCreate(BaseModel):
    event_id: Str128
    name: Str255
    email: Annotated[str, Field(min_length=1, max_length=255, pattern=r"\S+@\S+\.\S+")]
    phone: Annotated[str, Field(min_length=1, max_length=32, pattern=r"^\+?[\d\s()-]+$")]

    @field_validator("name", "email", "phone", mode="before")
    @classmethod
    def _strip(cls, v):
        # blank after stripping fails min_length
        return v.strip() if isinstance(v, str) else v

class RegistrationApprove(BaseModel):
    user_id: Str128 | None = None

class RegistrationRead(BaseModel):
    id: UUID
    event_id: str
    name: str
    email: str
    phone: str
    status: Literal["pending", "approved", "rejected"]
    user_id: str | None = None
    issued_at: int | None = None
    qr_code: str | None = None
    is_used: bool = False
    created_at: datetime
    updated_at: datetime

# ---- Check-in ----
class ScanCreate(BaseModel):
    raw_text: str  # whatever the scanner decoded
    station: Annotated[str | None, Field(max_length=64)] = None

class ScanRead(BaseModel):
    outcome: Literal["DECODE_FAILED", "MALFORMED", "EXPIRED", "ALREADY_CONSUMED", "ADMITTED"]
    admitted: bool
    message: str
    registration_id: str | None = None
    event_id: str | None = None
    user_id: str | None = None
    checked_at: int | None = None

class ScanAttemptRead(BaseModel):
    id: UUID
    outcome: str
    message: str
    registration_id: str | None = None
    user_id: str | None = None
    station: str | None = None
    scanned_at: datetime
