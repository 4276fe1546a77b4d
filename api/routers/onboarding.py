"""Provider Onboarding API — wizard transitions, service data and completion."""

import logging
import uuid

from fastapi import APIRouter, Depends, Form, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from models.profile import Profile
from routers.deps import get_provider_profile
from routers.identity_verifications import read_capture, read_details
from schemas.identity_verification import IdentityVerificationDetails
from schemas.onboarding import (
    BusinessType,
    OnboardingSession,
    OnboardingStep,
    ServiceType,
    StepsResponse,
    TransitionAction,
    TransitionRequest,
    TransitionResponse,
)
from services import bot_notifier, maps
from services.document_capture import DocumentCapture
from services.errors import (
    GeolocationUnavailable,
    GuardViolation,
    MissingRequiredFile,
    PersistenceFailure,
    UploadFailure,
    ValidationError,
)
from services.identity_verification import check_verification_access, submit_verification
from services.object_store import StorageClient, get_storage
from services.onboarding_flow import (
    advance,
    apply_location,
    available_services,
    choose_business_type,
    confirm_identity_submitted,
    go_back,
    needs_identity_verification,
    select_service,
    step_number,
    steps_for,
    update_business_details,
    update_service_draft,
)
from services.onboarding_persistence import (
    complete_onboarding,
    ensure_ready_for_completion,
    ensure_service_data_saved,
    persist_service_data,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SAVE_FAILED = "Could not save your information"
ONBOARDING_PATH = "/onboarding"


def _response(
    session: OnboardingSession,
    message: str | None = None,
    redirect_to: str | None = None,
) -> TransitionResponse:
    return TransitionResponse(
        session=session,
        steps=steps_for(session.business_type, session.selected_service),
        step_number=step_number(session),
        available_services=available_services(session.business_type),
        message=message,
        redirect_to=redirect_to,
    )


def _validation_error(e: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"message": str(e), "field": e.field, "service": e.service},
    )


def _dashboard() -> RedirectResponse:
    return RedirectResponse(settings.DASHBOARD_PATH, status_code=303)


async def _finish(db: AsyncSession, profile: Profile, session: OnboardingSession) -> TransitionResponse:
    """Completion routine: set the flag, then send the provider onward."""
    try:
        await complete_onboarding(db, profile)
    except PersistenceFailure as e:
        await bot_notifier.notify_step_failed(profile.telegram_id, "Could not complete your setup")
        raise HTTPException(
            status_code=502,
            detail={"message": "Could not complete your setup", "step": e.step},
        ) from e

    await bot_notifier.notify_onboarding_completed(profile.telegram_id)
    return _response(
        session,
        message="Setup completed, now configure your services",
        redirect_to=settings.MANAGE_OFFERINGS_PATH,
    )


# ── GET /api/onboarding/steps ────────────────────────────

@router.get("/steps", response_model=StepsResponse)
async def get_steps(
    business_type: BusinessType = Query(BusinessType.INDIVIDUAL),
    service_type: ServiceType | None = Query(None),
):
    """Progress indicator data for a classification × service combination."""
    steps = steps_for(business_type, service_type)
    return StepsResponse(
        steps=steps,
        total=len(steps),
        available_services=available_services(business_type),
        requires_identity_verification=needs_identity_verification(business_type, service_type),
    )


# ── POST /api/onboarding/{provider_id}/transition ────────

@router.post("/{provider_id}/transition", response_model=TransitionResponse)
async def transition(
    provider_id: uuid.UUID,
    data: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_provider_profile),
):
    """Apply one wizard action to the client-held session."""
    if profile.onboarding_completed:
        return _dashboard()

    session = data.session
    action = data.action
    telegram_id = profile.telegram_id

    try:
        if action == TransitionAction.CHOOSE_BUSINESS_TYPE:
            if data.business_type is None:
                raise ValidationError("Choose individual or business", field="business_type")
            return _response(choose_business_type(session, data.business_type))

        if action == TransitionAction.UPDATE_BUSINESS:
            return _response(update_business_details(
                session, data.business_name, data.business_tax_id,
            ))

        if action == TransitionAction.SELECT_SERVICE:
            if data.service_type is None:
                raise ValidationError("Select a service", field="service_type")
            return _response(select_service(session, data.service_type))

        if action == TransitionAction.UPDATE_DRAFT:
            return _response(update_service_draft(session, **data.changes))

        if action == TransitionAction.LOCATE:
            if data.latitude is not None and data.longitude is not None:
                coords = (data.latitude, data.longitude)
            else:
                draft = session.drafts.get(session.selected_service) if session.selected_service else None
                if draft is None:
                    raise ValidationError("Select a service first", field="service_type")
                coords = await maps.locate(draft.address, draft.city, draft.country)
            located = apply_location(session, *coords)
            await bot_notifier.notify_location(telegram_id, found=True)
            return _response(located, message="Location saved")

        if action == TransitionAction.BACK:
            return _response(go_back(session))

        # NEXT
        next_session = advance(session)
        if session.step != OnboardingStep.COLLECT_SERVICE_DATA:
            return _response(next_session)

        await persist_service_data(db, profile, session)

    except ValidationError as e:
        raise _validation_error(e) from e
    except GeolocationUnavailable as e:
        await bot_notifier.notify_location(telegram_id, found=False)
        raise HTTPException(status_code=503, detail={"message": str(e)}) from e
    except GuardViolation as e:
        logger.warning(
            "Onboarding transition ignored: provider_id=%s action=%s reason=%s",
            provider_id, action.value, e,
        )
        return _response(session)
    except PersistenceFailure as e:
        await bot_notifier.notify_step_failed(telegram_id, SAVE_FAILED)
        raise HTTPException(
            status_code=502, detail={"message": SAVE_FAILED, "step": e.step},
        ) from e

    verify = next_session.step == OnboardingStep.VERIFY_IDENTITY
    await bot_notifier.notify_service_data_saved(telegram_id, needs_verification=verify)
    if verify:
        return _response(next_session, message="Service saved, verify your identity to finish")
    return await _finish(db, profile, next_session)


# ── POST /api/onboarding/{provider_id}/identity ──────────

@router.post("/{provider_id}/identity", response_model=TransitionResponse)
async def submit_onboarding_identity(
    provider_id: uuid.UUID,
    session_json: str = Form(..., alias="session"),
    details: IdentityVerificationDetails = Depends(read_details),
    capture: DocumentCapture = Depends(read_capture),
    db: AsyncSession = Depends(get_db),
    store: StorageClient = Depends(get_storage),
    profile: Profile = Depends(get_provider_profile),
):
    """Verify Identity step: run the submission pipeline, then complete."""
    if profile.onboarding_completed:
        return _dashboard()

    try:
        session = OnboardingSession.model_validate_json(session_json)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid session"}) from e

    try:
        completed = confirm_identity_submitted(session)
    except GuardViolation as e:
        logger.warning("Identity step ignored: provider_id=%s reason=%s", provider_id, e)
        return _response(session)

    access = await check_verification_access(db, provider_id)
    if not access.allowed:
        return RedirectResponse(access.redirect_to, status_code=303)

    try:
        mirror = await ensure_service_data_saved(db, profile)
        if not needs_identity_verification(profile.business_type, mirror.service_type):
            raise GuardViolation("Stored service does not require identity verification")
    except GuardViolation as e:
        logger.warning("Identity step refused: provider_id=%s reason=%s", provider_id, e)
        return RedirectResponse(ONBOARDING_PATH, status_code=303)

    try:
        await submit_verification(db, store, provider_id, details, capture)
    except MissingRequiredFile as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "missing": e.slots},
        ) from e
    except UploadFailure as e:
        await bot_notifier.notify_step_failed(profile.telegram_id, "Could not upload your documents")
        raise HTTPException(
            status_code=502, detail={"message": f"Could not upload {e.slot}", "slot": e.slot},
        ) from e
    except PersistenceFailure as e:
        await bot_notifier.notify_step_failed(profile.telegram_id, SAVE_FAILED)
        raise HTTPException(
            status_code=502, detail={"message": SAVE_FAILED, "step": e.step},
        ) from e
    except GuardViolation:
        return _dashboard()

    await bot_notifier.notify_verification_submitted(profile.telegram_id)
    return await _finish(db, profile, completed)


# ── POST /api/onboarding/{provider_id}/complete ──────────

@router.post("/{provider_id}/complete", response_model=TransitionResponse)
async def retry_completion(
    provider_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(get_provider_profile),
):
    """Re-run the completion routine after a failed attempt."""
    if profile.onboarding_completed:
        return _dashboard()

    try:
        await ensure_ready_for_completion(db, profile)
    except GuardViolation as e:
        logger.warning("Completion refused: provider_id=%s reason=%s", provider_id, e)
        return RedirectResponse(ONBOARDING_PATH, status_code=303)

    session = OnboardingSession(
        step=OnboardingStep.COMPLETE,
        business_type=BusinessType(profile.business_type),
    )
    return await _finish(db, profile, session)
