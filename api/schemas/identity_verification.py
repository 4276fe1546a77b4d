"""Pydantic schemas for identity verification submissions."""

from __future__ import annotations
import uuid
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    PASSPORT = "passport"
    NATIONAL_ID = "national_id"
    DRIVER_LICENSE = "driver_license"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class IdentityVerificationDetails(BaseModel):
    """Document information typed by the provider before the uploads."""
    document_type: DocumentType = DocumentType.NATIONAL_ID
    document_number: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: date
    nationality: str = Field(..., min_length=1, max_length=100)
    expiry_date: date | None = None

    class Config:
        str_strip_whitespace = True


class IdentityVerificationResponse(BaseModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    document_type: str
    document_number: str
    document_front_url: str
    document_back_url: str | None
    selfie_url: str
    full_name: str
    date_of_birth: date
    nationality: str
    expiry_date: date | None
    status: str
    admin_note: str | None
    reviewed_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class VerificationAccess(BaseModel):
    """Outcome of the pre-entry guard."""
    allowed: bool
    status: VerificationStatus | None = None
    redirect_to: str | None = None


class CapturePreview(BaseModel):
    slot: str
    filename: str | None
    content_type: str
    size: int
    preview: str
