"""
Identity Verification Submission Pipeline.

Steps (sequential, one batch timestamp per attempt):
  1. Check captured files (front + selfie, back unless passport)
  2. Upload front   → identity-documents/{provider}/document-front-{ts}.jpg
  3. Upload back    → identity-documents/{provider}/document-back-{ts}.jpg (if captured)
  4. Upload selfie  → identity-selfies/{provider}/selfie-{ts}.jpg
  5. Write the identity_verifications row with status "pending"

A failure at any step aborts the attempt. Objects uploaded earlier in the
same attempt are left in the store; a retry gets a new timestamp and never
collides with them.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.identity_verification import IdentityVerification
from schemas.identity_verification import (
    IdentityVerificationDetails,
    VerificationAccess,
    VerificationStatus,
)
from services.document_capture import BACK, FRONT, SELFIE, DocumentCapture
from services.errors import GuardViolation, MissingRequiredFile, PersistenceFailure, UploadFailure
from services.object_store import StorageClient, StorageError

logger = logging.getLogger(__name__)


async def get_verification(
    db: AsyncSession, provider_id: uuid.UUID,
) -> IdentityVerification | None:
    result = await db.execute(
        select(IdentityVerification).where(IdentityVerification.provider_id == provider_id)
    )
    return result.scalar_one_or_none()


# ── Pre-entry Guard ───────────────────────────────────────

async def check_verification_access(
    db: AsyncSession, provider_id: uuid.UUID,
) -> VerificationAccess:
    """Read-only check run before any capture UI is shown."""
    existing = await get_verification(db, provider_id)
    if existing is None:
        return VerificationAccess(allowed=True)

    status = VerificationStatus(existing.status)
    if status == VerificationStatus.APPROVED:
        return VerificationAccess(
            allowed=False, status=status, redirect_to=settings.DASHBOARD_PATH,
        )
    return VerificationAccess(allowed=True, status=status)


# ── Submission ────────────────────────────────────────────

def batch_timestamp(now: datetime | None = None) -> int:
    """Milliseconds since epoch, shared by every object of one attempt."""
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)


async def submit_verification(
    db: AsyncSession,
    store: StorageClient,
    provider_id: uuid.UUID,
    details: IdentityVerificationDetails,
    capture: DocumentCapture,
    now: datetime | None = None,
) -> IdentityVerification:
    """Upload the captured documents and record one pending verification."""
    missing = capture.missing_for(details.document_type)
    if missing:
        raise MissingRequiredFile(missing)

    existing = await get_verification(db, provider_id)
    if existing is not None and existing.status == VerificationStatus.APPROVED.value:
        raise GuardViolation("Identity already verified")

    timestamp = batch_timestamp(now)
    uploaded: list[str] = []

    async def _upload(slot: str, bucket: str, name: str) -> str:
        captured = capture.get(slot)
        path = f"{provider_id}/{name}-{timestamp}.jpg"
        try:
            stored = await store.upload(bucket, path, captured.content, captured.content_type)
        except StorageError as e:
            if uploaded:
                logger.warning(
                    "Verification upload aborted, orphaned objects: provider_id=%s objects=%s",
                    provider_id, uploaded,
                )
            raise UploadFailure(slot, list(uploaded), e) from e
        uploaded.append(f"{bucket}/{stored}")
        return store.get_public_url(bucket, stored)

    front_url = await _upload(FRONT, settings.DOCUMENTS_BUCKET, "document-front")
    back_url = None
    if capture.get(BACK) is not None:
        back_url = await _upload(BACK, settings.DOCUMENTS_BUCKET, "document-back")
    selfie_url = await _upload(SELFIE, settings.SELFIES_BUCKET, "selfie")

    fields = {
        "document_type": details.document_type.value,
        "document_number": details.document_number,
        "document_front_url": front_url,
        "document_back_url": back_url,
        "selfie_url": selfie_url,
        "full_name": details.full_name,
        "date_of_birth": details.date_of_birth,
        "nationality": details.nationality,
        "expiry_date": details.expiry_date,
        "status": VerificationStatus.PENDING.value,
    }

    if existing is not None:
        # Pending or rejected: the resubmission replaces the previous one
        for key, value in fields.items():
            setattr(existing, key, value)
        existing.admin_note = None
        existing.reviewed_by = None
        existing.reviewed_at = None
        record = existing
    else:
        record = IdentityVerification(provider_id=provider_id, **fields)
        db.add(record)

    try:
        await db.commit()
        await db.refresh(record)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Verification record write failed: provider_id=%s objects=%s error=%s",
            provider_id, uploaded, e,
        )
        raise PersistenceFailure("identity verification", e) from e

    logger.info(
        "Identity verification submitted: provider_id=%s document_type=%s batch=%s",
        provider_id, details.document_type.value, timestamp,
    )
    return record
