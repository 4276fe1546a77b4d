"""Admin API endpoints — onboarding consistency checks."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas.onboarding import MissingPrimaryService
from services.onboarding_persistence import find_missing_primary_services

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/onboarding/missing-primary-services", response_model=list[MissingPrimaryService])
async def list_missing_primary_services(db: AsyncSession = Depends(get_db)):
    """Providers whose service data was partially saved (no pet_masters row)."""
    missing = await find_missing_primary_services(db)
    if missing:
        logger.warning("Providers without primary service: count=%s", len(missing))
    return missing
