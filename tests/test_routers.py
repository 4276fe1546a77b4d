"""HTTP tests for the onboarding and identity verification routers (no DB required)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import json
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from db.database import get_db
from main import app
from models.profile import Profile
from routers.deps import get_provider_profile
from schemas.identity_verification import VerificationAccess, VerificationStatus
from schemas.onboarding import BusinessType, OnboardingSession, OnboardingStep, ServiceType
from services.errors import GeolocationUnavailable, GuardViolation, PersistenceFailure
from services.object_store import StorageError, get_storage
from services.onboarding_flow import (
    advance,
    choose_business_type,
    select_service,
    start_session,
    update_service_draft,
)

PROVIDER_ID = uuid.UUID("5f1e2d3c-4b5a-4978-8c6d-1e2f3a4b5c6d")
BASE = f"/api/onboarding/{PROVIDER_ID}"
JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest.fixture
def profile():
    return Profile(
        id=PROVIDER_ID, email="walker@doggywalk.app", full_name="Ana Gómez",
        telegram_id=None, onboarding_completed=False,
    )


@pytest.fixture
def db():
    db = AsyncMock()
    db.add = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    db.execute.return_value = result
    return db


@pytest.fixture
def client(db, profile):
    async def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_provider_profile] = lambda: profile
    app.dependency_overrides[get_storage] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


def _collecting(business_type, service):
    session = choose_business_type(start_session(), business_type)
    session = select_service(advance(session), service)
    session = advance(session)
    return update_service_draft(session, address="Calle 10 #5-20", city="Bogotá")


def _payload(session, action, **extra):
    return {"session": session.model_dump(mode="json"), "action": action, **extra}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


# ── Steps ─────────────────────────────────────────────────

def test_steps_for_individual_walker(client):
    resp = client.get("/api/onboarding/steps", params={"business_type": "individual", "service_type": "walker"})
    body = resp.json()
    assert body["total"] == 4
    assert body["requires_identity_verification"] is True
    assert body["steps"][-1] == "verify_identity"


def test_steps_for_business(client):
    resp = client.get("/api/onboarding/steps", params={"business_type": "business"})
    body = resp.json()
    assert body["total"] == 3
    assert body["available_services"] == ["hotel", "vet"]


# ── Transitions ───────────────────────────────────────────

def test_choose_business_type(client):
    resp = client.post(f"{BASE}/transition", json=_payload(start_session(), "choose_business_type", business_type="business"))
    body = resp.json()
    assert resp.status_code == 200
    assert body["session"]["business_type"] == "business"
    assert body["available_services"] == ["hotel", "vet"]
    assert body["step_number"] == 1


def test_completed_provider_redirected_to_dashboard(client, profile):
    """Finished onboarding never re-enters the wizard."""
    profile.onboarding_completed = True
    resp = client.post(f"{BASE}/transition", json=_payload(start_session(), "next"), follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"


def test_invalid_service_selection_returns_422(client):
    session = advance(start_session())
    resp = client.post(f"{BASE}/transition", json=_payload(session, "select_service", service_type="hotel"))
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "service_type"


def test_guard_violation_returns_unchanged_session(client):
    """Going back from the first step is ignored, not an error."""
    session = start_session()
    resp = client.post(f"{BASE}/transition", json=_payload(session, "back"))
    assert resp.status_code == 200
    assert resp.json()["session"]["step"] == "classify_self"


def test_locate_uses_geocoder(client):
    session = _collecting(BusinessType.BUSINESS, ServiceType.VET)
    with patch("routers.onboarding.maps.locate", AsyncMock(return_value=(4.6097, -74.0817))) as locate:
        resp = client.post(f"{BASE}/transition", json=_payload(session, "locate"))
    assert resp.status_code == 200
    draft = resp.json()["session"]["drafts"]["vet"]
    assert (draft["latitude"], draft["longitude"]) == (4.6097, -74.0817)
    locate.assert_awaited_once_with("Calle 10 #5-20", "Bogotá", "Colombia")


def test_locate_unavailable_returns_503(client):
    session = _collecting(BusinessType.BUSINESS, ServiceType.VET)
    with patch("routers.onboarding.maps.locate", AsyncMock(side_effect=GeolocationUnavailable("down"))):
        resp = client.post(f"{BASE}/transition", json=_payload(session, "locate"))
    assert resp.status_code == 503


def test_hotel_next_persists_and_completes(client):
    """Business hotel: saving service data completes onboarding directly."""
    session = _collecting(BusinessType.BUSINESS, ServiceType.HOTEL)
    with patch("routers.onboarding.persist_service_data", AsyncMock()) as persist, \
         patch("routers.onboarding.complete_onboarding", AsyncMock()) as complete:
        resp = client.post(f"{BASE}/transition", json=_payload(session, "next"))

    body = resp.json()
    assert resp.status_code == 200
    assert body["session"]["step"] == "complete"
    assert body["redirect_to"] == "/manage-offerings"
    persist.assert_awaited_once()
    complete.assert_awaited_once()


def test_walker_next_moves_to_identity_step(client):
    session = _collecting(BusinessType.INDIVIDUAL, ServiceType.WALKER)
    with patch("routers.onboarding.persist_service_data", AsyncMock()), \
         patch("routers.onboarding.complete_onboarding", AsyncMock()) as complete:
        resp = client.post(f"{BASE}/transition", json=_payload(session, "next"))

    body = resp.json()
    assert body["session"]["step"] == "verify_identity"
    assert body["step_number"] == 4
    assert body["redirect_to"] is None
    complete.assert_not_awaited()


def test_persistence_failure_returns_502(client):
    session = _collecting(BusinessType.BUSINESS, ServiceType.HOTEL)
    failure = PersistenceFailure("primary service")
    with patch("routers.onboarding.persist_service_data", AsyncMock(side_effect=failure)):
        resp = client.post(f"{BASE}/transition", json=_payload(session, "next"))

    assert resp.status_code == 502
    assert resp.json()["detail"]["message"] == "Could not save your information"
    assert resp.json()["detail"]["step"] == "primary service"


# ── Identity step ─────────────────────────────────────────

IDENTITY_FORM = {
    "document_type": "national_id",
    "document_number": "CC1020304050",
    "full_name": "Ana Gómez",
    "date_of_birth": "1992-05-14",
    "nationality": "Colombian",
}

IDENTITY_FILES = {
    "document_front": ("front.jpg", JPEG, "image/jpeg"),
    "document_back": ("back.jpg", JPEG, "image/jpeg"),
    "selfie": ("selfie.jpg", JPEG, "image/jpeg"),
}


def _verifying_form(**overrides):
    session = advance(_collecting(BusinessType.INDIVIDUAL, ServiceType.WALKER))
    return {**IDENTITY_FORM, **overrides, "session": json.dumps(session.model_dump(mode="json"))}


def _walker_saved():
    return patch(
        "routers.onboarding.ensure_service_data_saved",
        AsyncMock(return_value=SimpleNamespace(service_type="walker")),
    )


def test_identity_submission_completes_onboarding(client, profile):
    profile.business_type = "individual"
    form = _verifying_form()
    with _walker_saved(), \
         patch("routers.onboarding.check_verification_access", AsyncMock(return_value=VerificationAccess(allowed=True))), \
         patch("routers.onboarding.submit_verification", AsyncMock()) as submit, \
         patch("routers.onboarding.complete_onboarding", AsyncMock()) as complete:
        resp = client.post(f"{BASE}/identity", data=form, files=IDENTITY_FILES)

    body = resp.json()
    assert resp.status_code == 200
    assert body["session"]["step"] == "complete"
    assert body["redirect_to"] == "/manage-offerings"
    capture = submit.await_args.args[4]
    assert sorted(capture.files) == ["document_back", "document_front", "selfie"]
    complete.assert_awaited_once()


def test_identity_submission_approved_redirects(client):
    session = advance(_collecting(BusinessType.INDIVIDUAL, ServiceType.WALKER))
    form = {**IDENTITY_FORM, "session": json.dumps(session.model_dump(mode="json"))}
    access = VerificationAccess(allowed=False, status=VerificationStatus.APPROVED, redirect_to="/dashboard")
    with patch("routers.onboarding.check_verification_access", AsyncMock(return_value=access)), \
         patch("routers.onboarding.submit_verification", AsyncMock()) as submit:
        resp = client.post(f"{BASE}/identity", data=form, files=IDENTITY_FILES, follow_redirects=False)

    assert resp.status_code == 303
    submit.assert_not_awaited()


def test_business_session_cannot_use_identity_step(client, profile):
    """A business session placed at Verify Identity is refused; the flag stays false."""
    forged = OnboardingSession(step=OnboardingStep.VERIFY_IDENTITY, business_type=BusinessType.BUSINESS)
    form = {**IDENTITY_FORM, "session": json.dumps(forged.model_dump(mode="json"))}
    with patch("routers.onboarding.submit_verification", AsyncMock()) as submit, \
         patch("routers.onboarding.complete_onboarding", AsyncMock()) as complete:
        resp = client.post(f"{BASE}/identity", data=form, files=IDENTITY_FILES, follow_redirects=False)

    assert resp.status_code == 200
    assert resp.json()["session"]["step"] == "verify_identity"
    submit.assert_not_awaited()
    complete.assert_not_awaited()
    assert profile.onboarding_completed is False


def test_identity_step_requires_saved_service_data(client, profile, db):
    """A walker session without stored service data is sent back to the wizard."""
    form = _verifying_form()
    with patch("routers.onboarding.submit_verification", AsyncMock()) as submit:
        resp = client.post(f"{BASE}/identity", data=form, files=IDENTITY_FILES, follow_redirects=False)

    assert resp.status_code == 303
    assert resp.headers["location"] == "/onboarding"
    submit.assert_not_awaited()
    db.add.assert_not_called()
    assert profile.onboarding_completed is False


def test_identity_step_missing_back_keeps_flag_false(client, profile, db):
    """National ID without a back photo: 422, nothing written, onboarding not complete."""
    profile.business_type = "individual"
    files = {k: v for k, v in IDENTITY_FILES.items() if k != "document_back"}
    with _walker_saved():
        resp = client.post(f"{BASE}/identity", data=_verifying_form(), files=files)

    assert resp.status_code == 422
    assert resp.json()["detail"]["missing"] == ["document_back"]
    db.add.assert_not_called()
    db.commit.assert_not_awaited()
    assert profile.onboarding_completed is False


def test_identity_step_upload_failure_keeps_flag_false(client, profile, db):
    profile.business_type = "individual"
    store = MagicMock()
    store.upload = AsyncMock(side_effect=StorageError("503 Service Unavailable"))
    app.dependency_overrides[get_storage] = lambda: store
    with _walker_saved():
        resp = client.post(f"{BASE}/identity", data=_verifying_form(), files=IDENTITY_FILES)

    assert resp.status_code == 502
    assert resp.json()["detail"]["slot"] == "document_front"
    db.commit.assert_not_awaited()
    assert profile.onboarding_completed is False


def test_standalone_submission_missing_back_returns_422(client):
    files = {k: v for k, v in IDENTITY_FILES.items() if k != "document_back"}
    resp = client.post(f"/api/identity-verifications/{PROVIDER_ID}", data=IDENTITY_FORM, files=files)
    assert resp.status_code == 422
    assert resp.json()["detail"]["missing"] == ["document_back"]


def test_standalone_submission_invalid_details_returns_422(client):
    form = {**IDENTITY_FORM, "document_number": "  "}
    resp = client.post(f"/api/identity-verifications/{PROVIDER_ID}", data=form, files=IDENTITY_FILES)
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["field"] == "document_number"


def test_capture_rejects_non_image(client):
    files = {"document_front": ("front.pdf", b"%PDF-1.7", "application/pdf")}
    resp = client.post(f"/api/identity-verifications/{PROVIDER_ID}/preview", files=files)
    assert resp.status_code == 422
    assert resp.json()["detail"]["slot"] == "document_front"


def test_capture_preview(client):
    files = {"selfie": ("selfie.png", b"abc", "image/png")}
    resp = client.post(f"/api/identity-verifications/{PROVIDER_ID}/preview", files=files)
    assert resp.status_code == 200
    assert resp.json() == [{
        "slot": "selfie",
        "filename": "selfie.png",
        "content_type": "image/png",
        "size": 3,
        "preview": "data:image/png;base64,YWJj",
    }]


def test_verification_lookup_unknown_provider_returns_404(client):
    app.dependency_overrides.pop(get_provider_profile)
    resp = client.get(f"/api/identity-verifications/{PROVIDER_ID}")
    assert resp.status_code == 404


def test_verification_lookup_without_record_returns_null(client):
    resp = client.get(f"/api/identity-verifications/{PROVIDER_ID}")
    assert resp.status_code == 200
    assert resp.json() is None


def test_access_endpoint_without_record(client):
    resp = client.get(f"/api/identity-verifications/{PROVIDER_ID}/access")
    assert resp.json() == {"allowed": True, "status": None, "redirect_to": None}


# ── Completion retry and admin ────────────────────────────

def test_complete_refused_before_service_data(client):
    with patch("routers.onboarding.ensure_ready_for_completion", AsyncMock(side_effect=GuardViolation("no data"))):
        resp = client.post(f"{BASE}/complete", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/onboarding"


def test_complete_retry_succeeds(client, profile):
    profile.business_type = "business"
    with patch("routers.onboarding.ensure_ready_for_completion", AsyncMock()), \
         patch("routers.onboarding.complete_onboarding", AsyncMock()):
        resp = client.post(f"{BASE}/complete")
    assert resp.status_code == 200
    assert resp.json()["redirect_to"] == "/manage-offerings"


def test_admin_lists_missing_primary_services(client):
    with patch("routers.admin.find_missing_primary_services", AsyncMock(return_value=[])):
        resp = client.get("/api/admin/onboarding/missing-primary-services")
    assert resp.status_code == 200
    assert resp.json() == []
