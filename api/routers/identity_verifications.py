"""Identity Verification API — pre-entry guard, capture preview and KYC submission."""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from models.profile import Profile
from routers.deps import get_provider_profile
from schemas.identity_verification import (
    CapturePreview,
    IdentityVerificationDetails,
    IdentityVerificationResponse,
    VerificationAccess,
)
from services import bot_notifier
from services.document_capture import BACK, FRONT, SELFIE, DocumentCapture
from services.errors import GuardViolation, MissingRequiredFile, PersistenceFailure, UploadFailure
from services.identity_verification import (
    check_verification_access,
    get_verification,
    submit_verification,
)
from services.object_store import StorageClient, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Form readers ──────────────────────────────────────────

async def read_details(
    document_type: str = Form("national_id"),
    document_number: str = Form(""),
    full_name: str = Form(""),
    date_of_birth: str = Form(""),
    nationality: str = Form(""),
    expiry_date: str | None = Form(None),
) -> IdentityVerificationDetails:
    """Typed document fields of a multipart submission."""
    try:
        return IdentityVerificationDetails(
            document_type=document_type,
            document_number=document_number,
            full_name=full_name,
            date_of_birth=date_of_birth or None,
            nationality=nationality,
            expiry_date=expiry_date or None,
        )
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=[
                {"field": str(err["loc"][-1]) if err.get("loc") else None, "message": err["msg"]}
                for err in e.errors()
            ],
        ) from e


async def read_capture(
    document_front: UploadFile | None = File(None),
    document_back: UploadFile | None = File(None),
    selfie: UploadFile | None = File(None),
) -> DocumentCapture:
    """Uploaded photos as a DocumentCapture; empty parts count as not captured."""
    capture = DocumentCapture()
    for slot, upload in ((FRONT, document_front), (BACK, document_back), (SELFIE, selfie)):
        if upload is None or not upload.filename:
            continue
        content = await upload.read()
        try:
            capture = capture.capture(slot, content, upload.content_type, upload.filename)
        except ValueError as e:
            raise HTTPException(status_code=422, detail={"message": str(e), "slot": slot}) from e
    return capture


# ── GET /api/identity-verifications/{provider_id}/access ─

@router.get("/{provider_id}/access", response_model=VerificationAccess)
async def get_access(
    provider_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_provider_profile),
):
    """Whether the capture screen may be shown (approved providers go to the dashboard)."""
    return await check_verification_access(db, provider_id)


# ── GET /api/identity-verifications/{provider_id} ────────

@router.get("/{provider_id}", response_model=IdentityVerificationResponse | None)
async def get_provider_verification(
    provider_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_provider_profile),
):
    """Existing record (any status) or null."""
    return await get_verification(db, provider_id)


# ── POST /api/identity-verifications/{provider_id} ───────

@router.post("/{provider_id}", response_model=IdentityVerificationResponse, status_code=201)
async def submit_identity_verification(
    provider_id: uuid.UUID,
    details: IdentityVerificationDetails = Depends(read_details),
    capture: DocumentCapture = Depends(read_capture),
    db: AsyncSession = Depends(get_db),
    store: StorageClient = Depends(get_storage),
    profile: Profile = Depends(get_provider_profile),
):
    """Standalone submission or resubmission after a rejection."""
    access = await check_verification_access(db, provider_id)
    if not access.allowed:
        return RedirectResponse(access.redirect_to, status_code=303)

    telegram_id = profile.telegram_id
    try:
        record = await submit_verification(db, store, provider_id, details, capture)
    except MissingRequiredFile as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "missing": e.slots},
        ) from e
    except UploadFailure as e:
        await bot_notifier.notify_step_failed(telegram_id, "Could not upload your documents")
        raise HTTPException(
            status_code=502, detail={"message": f"Could not upload {e.slot}", "slot": e.slot},
        ) from e
    except PersistenceFailure as e:
        await bot_notifier.notify_step_failed(telegram_id, "Could not save your verification")
        raise HTTPException(
            status_code=502, detail={"message": "Could not save your verification", "step": e.step},
        ) from e
    except GuardViolation:
        return RedirectResponse(settings.DASHBOARD_PATH, status_code=303)

    await bot_notifier.notify_verification_submitted(telegram_id)
    return record


# ── POST /api/identity-verifications/{provider_id}/preview

@router.post("/{provider_id}/preview", response_model=list[CapturePreview])
async def preview_capture(
    provider_id: uuid.UUID,
    capture: DocumentCapture = Depends(read_capture),
):
    """Echo the captured photos back as local previews; nothing is stored."""
    return [
        CapturePreview(
            slot=slot,
            filename=captured.filename,
            content_type=captured.content_type,
            size=captured.size,
            preview=captured.preview,
        )
        for slot, captured in capture.files.items()
    ]
