"""Shared router dependencies."""

import uuid

from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from models.profile import Profile


async def get_provider_profile(
    provider_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Resolve the acting provider from the path (auth lives upstream)."""
    result = await db.execute(select(Profile).where(Profile.id == provider_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Provider not found")
    return profile
