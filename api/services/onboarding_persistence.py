"""
Onboarding Persistence — turns a finished Collect Service Data step into rows.

Order for the selected service, one committed statement per step:
  1. provider_services   — new offering, inactive until managed elsewhere
  2. business_verifications — businesses only
  3. profiles.business_type
  4. pet_masters         — upsert of the primary-service mirror

There is no transaction spanning the steps. When a later step fails the
earlier rows stay; the failing step is reported via PersistenceFailure.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.business_verification import BusinessVerification
from models.identity_verification import IdentityVerification
from models.pet_master import PetMaster
from models.profile import Profile
from models.provider_service import ProviderService
from schemas.onboarding import (
    BusinessType,
    MissingPrimaryService,
    OnboardingSession,
)
from services.errors import GuardViolation, PersistenceFailure
from services.onboarding_flow import needs_identity_verification, validate_drafts

logger = logging.getLogger(__name__)


async def _commit(db: AsyncSession, step: str, statement=None) -> None:
    try:
        if statement is not None:
            await db.execute(statement)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Onboarding step failed: step=%s error=%s", step, e)
        raise PersistenceFailure(step, e) from e


def primary_service_upsert(provider_id, session: OnboardingSession):
    """INSERT … ON CONFLICT (id) DO UPDATE for the pet_masters mirror row."""
    draft = session.drafts[session.selected_service]
    values = {
        "service_type": session.selected_service.value,
        "address": draft.address.strip(),
        "city": draft.city.strip(),
        "country": draft.country.strip() or None,
        "latitude": draft.latitude,
        "longitude": draft.longitude,
    }
    stmt = pg_insert(PetMaster).values(id=provider_id, **values)
    return stmt.on_conflict_do_update(
        index_elements=[PetMaster.id],
        set_={**values, "updated_at": func.now()},
    )


async def persist_service_data(
    db: AsyncSession, profile: Profile, session: OnboardingSession,
) -> ProviderService:
    """Run steps 1–4 for the session's selected service."""
    validate_drafts(session)
    service = session.selected_service
    draft = session.drafts[service]

    # Step 1: offering
    offering = ProviderService(
        provider_id=profile.id,
        service_type=service.value,
        address=draft.address.strip(),
        city=draft.city.strip(),
        country=draft.country.strip() or None,
        latitude=draft.latitude,
        longitude=draft.longitude,
        is_active=False,
        **draft.details.model_dump(exclude={"service_type"}),
    )
    db.add(offering)
    await _commit(db, "service offering")
    logger.info(
        "Offering created: provider_id=%s service_type=%s", profile.id, service.value,
    )

    # Step 2: business record
    if session.business_type == BusinessType.BUSINESS:
        business = session.business
        db.add(BusinessVerification(
            provider_id=profile.id,
            business_name=business.business_name if business else "",
            business_tax_id=business.business_tax_id if business else "",
        ))
        await _commit(db, "business details")
        logger.info("Business record created: provider_id=%s", profile.id)

    # Step 3: profile classification
    profile.business_type = session.business_type.value
    await _commit(db, "profile")

    # Step 4: primary-service mirror
    await _commit(db, "primary service", primary_service_upsert(profile.id, session))
    logger.info(
        "Service data saved: provider_id=%s business_type=%s service_type=%s",
        profile.id, session.business_type.value, service.value,
    )
    return offering


async def ensure_service_data_saved(db: AsyncSession, profile: Profile) -> PetMaster:
    """Stored primary service of a provider whose service data step succeeded."""
    mirror = (await db.execute(
        select(PetMaster).where(PetMaster.id == profile.id)
    )).scalar_one_or_none()
    if mirror is None or profile.business_type is None:
        raise GuardViolation("Service data has not been saved")
    return mirror


async def ensure_ready_for_completion(db: AsyncSession, profile: Profile) -> None:
    """Refuse completion until service data (and verification, if due) is stored."""
    mirror = await ensure_service_data_saved(db, profile)

    if needs_identity_verification(profile.business_type, mirror.service_type):
        verification = (await db.execute(
            select(IdentityVerification.id).where(IdentityVerification.provider_id == profile.id)
        )).scalar_one_or_none()
        if verification is None:
            raise GuardViolation("Identity verification has not been submitted")


async def complete_onboarding(db: AsyncSession, profile: Profile) -> None:
    """Set the completion flag — the only durable marker of a finished onboarding."""
    profile.onboarding_completed = True
    try:
        await _commit(db, "onboarding completion")
    except PersistenceFailure:
        profile.onboarding_completed = False
        raise
    logger.info("Onboarding completed: provider_id=%s", profile.id)


async def find_missing_primary_services(db: AsyncSession) -> list[MissingPrimaryService]:
    """Profiles classified during onboarding that never got a pet_masters row."""
    result = await db.execute(
        select(Profile, func.count(ProviderService.id))
        .outerjoin(PetMaster, PetMaster.id == Profile.id)
        .outerjoin(ProviderService, ProviderService.provider_id == Profile.id)
        .where(
            Profile.business_type.is_not(None),
            Profile.onboarding_completed.is_(False),
            PetMaster.id.is_(None),
        )
        .group_by(Profile.id)
        .order_by(Profile.created_at.desc())
    )
    return [
        MissingPrimaryService(
            provider_id=profile.id,
            email=profile.email,
            business_type=profile.business_type,
            offerings=count,
        )
        for profile, count in result.all()
    ]
