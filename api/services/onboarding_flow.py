"""
Provider Onboarding State Machine — pure transitions over OnboardingSession.

Flow:
  1. Classify Self (individual / business) → 2. Select Service
  → 3. Collect Service Data → [4. Verify Identity] → Complete

Step 4 exists only for individual dog walkers. Every function takes a session
and returns a new one; nothing here touches the database, storage or network.
Side effects of leaving step 3 and step 4 are run by the caller.
"""

from pydantic import ValidationError as PydanticValidationError

from schemas.onboarding import (
    BusinessDetails,
    BusinessType,
    DETAILS_BY_SERVICE,
    OnboardingSession,
    OnboardingStep,
    ServiceOfferingDraft,
    ServiceType,
)
from services.errors import GuardViolation, ValidationError

SERVICES_BY_BUSINESS_TYPE = {
    BusinessType.INDIVIDUAL: [ServiceType.WALKER],
    BusinessType.BUSINESS: [ServiceType.HOTEL, ServiceType.VET],
}

SHARED_DRAFT_FIELDS = {"address", "city", "country", "latitude", "longitude"}

BACKWARD = {
    OnboardingStep.SELECT_SERVICE: OnboardingStep.CLASSIFY_SELF,
    OnboardingStep.COLLECT_SERVICE_DATA: OnboardingStep.SELECT_SERVICE,
}


def available_services(business_type: BusinessType) -> list[ServiceType]:
    """Services a provider of this classification may offer."""
    return list(SERVICES_BY_BUSINESS_TYPE[BusinessType(business_type)])


def needs_identity_verification(
    business_type: BusinessType, service: ServiceType | None,
) -> bool:
    """Only individual dog walkers go through identity verification."""
    return business_type == BusinessType.INDIVIDUAL and service == ServiceType.WALKER


def steps_for(
    business_type: BusinessType, service: ServiceType | None,
) -> list[OnboardingStep]:
    """Ordered data-entry steps for a classification × service combination."""
    steps = [
        OnboardingStep.CLASSIFY_SELF,
        OnboardingStep.SELECT_SERVICE,
        OnboardingStep.COLLECT_SERVICE_DATA,
    ]
    if needs_identity_verification(business_type, service):
        steps.append(OnboardingStep.VERIFY_IDENTITY)
    return steps


def step_number(session: OnboardingSession) -> int | None:
    """1-based position of the current step, None once complete."""
    steps = steps_for(session.business_type, session.selected_service)
    if session.step not in steps:
        return None
    return steps.index(session.step) + 1


def default_draft(service: ServiceType) -> ServiceOfferingDraft:
    return ServiceOfferingDraft(details=DETAILS_BY_SERVICE[service]())


def _require_step(session: OnboardingSession, *allowed: OnboardingStep) -> None:
    if session.step not in allowed:
        raise GuardViolation(
            f"Action not allowed in step {session.step.value}"
        )


def _selected_draft(session: OnboardingSession) -> ServiceOfferingDraft:
    if session.selected_service is None:
        raise ValidationError("Select a service first", field="service_type")
    return session.drafts.get(session.selected_service) or default_draft(session.selected_service)


# ── Step 1: Classify Self ─────────────────────────────────

def start_session() -> OnboardingSession:
    return OnboardingSession()


def choose_business_type(
    session: OnboardingSession, business_type: BusinessType,
) -> OnboardingSession:
    """Switch classification. A change drops every service-scoped choice."""
    _require_step(session, OnboardingStep.CLASSIFY_SELF)
    business_type = BusinessType(business_type)
    if business_type == session.business_type:
        return session

    return session.model_copy(update={
        "business_type": business_type,
        "selected_service": None,
        "drafts": {},
        "business": None,
    })


def update_business_details(
    session: OnboardingSession,
    business_name: str | None = None,
    business_tax_id: str | None = None,
) -> OnboardingSession:
    _require_step(session, OnboardingStep.CLASSIFY_SELF)
    if session.business_type != BusinessType.BUSINESS:
        raise ValidationError(
            "Business details only apply to businesses", field="business_type",
        )

    current = session.business or BusinessDetails()
    business = current.model_copy(update={
        k: v.strip() for k, v in {
            "business_name": business_name,
            "business_tax_id": business_tax_id,
        }.items() if v is not None
    })
    return session.model_copy(update={"business": business})


# ── Step 2: Select Service ────────────────────────────────

def select_service(session: OnboardingSession, service: ServiceType) -> OnboardingSession:
    """Radio-style selection, restricted by classification."""
    _require_step(session, OnboardingStep.SELECT_SERVICE)
    service = ServiceType(service)
    if service not in available_services(session.business_type):
        raise ValidationError(
            f"{service.value} is not available for {session.business_type.value} providers",
            field="service_type",
            service=service.value,
        )

    drafts = dict(session.drafts)
    drafts.setdefault(service, default_draft(service))
    return session.model_copy(update={"selected_service": service, "drafts": drafts})


# ── Step 3: Collect Service Data ──────────────────────────

def update_service_draft(session: OnboardingSession, **changes) -> OnboardingSession:
    """Apply shared and service-specific field changes to the selected draft."""
    _require_step(session, OnboardingStep.COLLECT_SERVICE_DATA)
    draft = _selected_draft(session)
    if "service_type" in changes:
        raise ValidationError(
            "The service of a draft cannot be changed, select another service instead",
            field="service_type",
            service=session.selected_service.value,
        )

    shared = {k: v for k, v in changes.items() if k in SHARED_DRAFT_FIELDS}
    specific = {k: v for k, v in changes.items() if k not in SHARED_DRAFT_FIELDS}

    data = draft.model_dump()
    data.update(shared)
    data["details"].update(specific)
    try:
        updated = ServiceOfferingDraft.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][-1]) if error.get("loc") else None
        raise ValidationError(
            f"Invalid value for {field}: {error['msg']}",
            field=field,
            service=session.selected_service.value,
        ) from e

    drafts = dict(session.drafts)
    drafts[session.selected_service] = updated
    return session.model_copy(update={"drafts": drafts})


def apply_location(
    session: OnboardingSession, latitude: float, longitude: float,
) -> OnboardingSession:
    """Store coordinates on the selected service's draft only."""
    return update_service_draft(session, latitude=latitude, longitude=longitude)


def validate_drafts(session: OnboardingSession) -> None:
    """Every selected service needs an address and a city before saving."""
    draft = _selected_draft(session)
    if session.selected_service not in available_services(session.business_type):
        raise ValidationError(
            "Selected service does not match your provider type",
            field="service_type",
            service=session.selected_service.value,
        )
    if draft.details.service_type != session.selected_service.value:
        raise ValidationError(
            "Draft fields do not belong to the selected service",
            field="service_type",
            service=session.selected_service.value,
        )
    for field in ("address", "city"):
        if not getattr(draft, field).strip():
            raise ValidationError(
                f"Complete the {field} of your {session.selected_service.value} service",
                field=field,
                service=session.selected_service.value,
            )


# ── Navigation ────────────────────────────────────────────

def advance(session: OnboardingSession) -> OnboardingSession:
    """Forward transition. Guards raise before any state changes."""
    if session.step == OnboardingStep.CLASSIFY_SELF:
        return session.model_copy(update={"step": OnboardingStep.SELECT_SERVICE})

    if session.step == OnboardingStep.SELECT_SERVICE:
        if session.selected_service is None:
            raise ValidationError("Select a service", field="service_type")
        return session.model_copy(update={"step": OnboardingStep.COLLECT_SERVICE_DATA})

    if session.step == OnboardingStep.COLLECT_SERVICE_DATA:
        validate_drafts(session)
        next_step = (
            OnboardingStep.VERIFY_IDENTITY
            if needs_identity_verification(session.business_type, session.selected_service)
            else OnboardingStep.COMPLETE
        )
        return session.model_copy(update={"step": next_step})

    raise GuardViolation(f"No forward transition from {session.step.value}")


def go_back(session: OnboardingSession) -> OnboardingSession:
    """One step back from Select Service or Collect Service Data."""
    previous = BACKWARD.get(session.step)
    if previous is None:
        raise GuardViolation(f"Cannot go back from {session.step.value}")
    return session.model_copy(update={"step": previous})


def confirm_identity_submitted(session: OnboardingSession) -> OnboardingSession:
    """Verify Identity → Complete, once the submission pipeline succeeded."""
    _require_step(session, OnboardingStep.VERIFY_IDENTITY)
    if not needs_identity_verification(session.business_type, session.selected_service):
        raise GuardViolation("Identity verification only applies to individual walkers")
    return session.model_copy(update={"step": OnboardingStep.COMPLETE})
