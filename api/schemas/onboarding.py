"""Pydantic schemas for the provider onboarding wizard."""

from __future__ import annotations
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field


class BusinessType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class ServiceType(str, Enum):
    WALKER = "walker"
    HOTEL = "hotel"
    VET = "vet"


class OnboardingStep(str, Enum):
    CLASSIFY_SELF = "classify_self"
    SELECT_SERVICE = "select_service"
    COLLECT_SERVICE_DATA = "collect_service_data"
    VERIFY_IDENTITY = "verify_identity"
    COMPLETE = "complete"


# ── Service-specific draft fields ──────────────────────────

class WalkerDetails(BaseModel):
    service_type: Literal["walker"] = "walker"
    hourly_rate: float = Field(15, ge=0)
    service_radius: int = Field(5000, ge=0, description="Meters")

    class Config:
        frozen = True
        extra = "forbid"


class HotelDetails(BaseModel):
    service_type: Literal["hotel"] = "hotel"
    price_per_night: float = Field(30, ge=0)
    capacity: int = Field(10, ge=0)

    class Config:
        frozen = True
        extra = "forbid"


class VetDetails(BaseModel):
    service_type: Literal["vet"] = "vet"

    class Config:
        frozen = True
        extra = "forbid"


ServiceDetails = Annotated[
    Union[WalkerDetails, HotelDetails, VetDetails],
    Field(discriminator="service_type"),
]

DETAILS_BY_SERVICE: dict[ServiceType, type[BaseModel]] = {
    ServiceType.WALKER: WalkerDetails,
    ServiceType.HOTEL: HotelDetails,
    ServiceType.VET: VetDetails,
}


class ServiceOfferingDraft(BaseModel):
    """Everything collected for one service before it is persisted."""
    address: str = ""
    city: str = ""
    country: str = "Colombia"
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    details: ServiceDetails

    class Config:
        frozen = True
        extra = "forbid"


class BusinessDetails(BaseModel):
    business_name: str = ""
    business_tax_id: str = ""

    class Config:
        frozen = True


class OnboardingSession(BaseModel):
    """Wizard state, returned anew by every transition."""
    step: OnboardingStep = OnboardingStep.CLASSIFY_SELF
    business_type: BusinessType = BusinessType.INDIVIDUAL
    selected_service: ServiceType | None = None
    drafts: dict[ServiceType, ServiceOfferingDraft] = Field(default_factory=dict)
    business: BusinessDetails | None = None

    class Config:
        frozen = True


# ── API payloads ───────────────────────────────────────────

class TransitionAction(str, Enum):
    CHOOSE_BUSINESS_TYPE = "choose_business_type"
    UPDATE_BUSINESS = "update_business"
    SELECT_SERVICE = "select_service"
    UPDATE_DRAFT = "update_draft"
    LOCATE = "locate"
    NEXT = "next"
    BACK = "back"


class TransitionRequest(BaseModel):
    session: OnboardingSession = Field(default_factory=OnboardingSession)
    action: TransitionAction
    business_type: BusinessType | None = None
    service_type: ServiceType | None = None
    business_name: str | None = None
    business_tax_id: str | None = None
    changes: dict[str, Any] = Field(default_factory=dict)
    latitude: float | None = None
    longitude: float | None = None


class TransitionResponse(BaseModel):
    session: OnboardingSession
    steps: list[OnboardingStep]
    step_number: int | None
    available_services: list[ServiceType]
    message: str | None = None
    redirect_to: str | None = None


class StepsResponse(BaseModel):
    steps: list[OnboardingStep]
    total: int
    available_services: list[ServiceType]
    requires_identity_verification: bool


class MissingPrimaryService(BaseModel):
    provider_id: uuid.UUID
    email: str
    business_type: BusinessType
    offerings: int
