"""Tests for service data persistence and onboarding completion (mocked DB)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError

from models.business_verification import BusinessVerification
from models.profile import Profile
from models.provider_service import ProviderService
from schemas.onboarding import BusinessType, HotelDetails, ServiceType
from services.errors import GuardViolation, PersistenceFailure, ValidationError
from services.onboarding_flow import (
    advance,
    choose_business_type,
    select_service,
    start_session,
    update_business_details,
    update_service_draft,
)
from services.onboarding_persistence import (
    complete_onboarding,
    ensure_ready_for_completion,
    find_missing_primary_services,
    persist_service_data,
    primary_service_upsert,
)

PROVIDER_ID = uuid.UUID("0e4a9b8c-3f1d-4c2e-8a7b-6d5c4b3a2f10")


def _profile(**overrides):
    fields = dict(
        id=PROVIDER_ID, email="hola@happypaws.co", full_name="Happy Paws",
        telegram_id=None, onboarding_completed=False,
    )
    fields.update(overrides)
    return Profile(**fields)


def _db(*results):
    db = AsyncMock()
    db.add = MagicMock()
    if results:
        db.execute.side_effect = list(results)
    return db


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _hotel_session():
    session = choose_business_type(start_session(), BusinessType.BUSINESS)
    session = update_business_details(session, business_name="Happy Paws", business_tax_id="900123456")
    session = select_service(advance(session), ServiceType.HOTEL)
    session = advance(session)
    return update_service_draft(
        session, address="Calle 123", city="Bogotá",
        latitude=4.6351, longitude=-74.0703, price_per_night=45, capacity=8,
    )


def _walker_session():
    session = select_service(advance(start_session()), ServiceType.WALKER)
    return update_service_draft(advance(session), address="Av 9", city="Medellín", hourly_rate=20)


# ── Service data ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_business_hotel_persists_all_four_steps():
    """Business hotel: every step is written, then completion sets the flag."""
    db, profile = _db(), _profile()

    offering = await persist_service_data(db, profile, _hotel_session())

    added = [call.args[0] for call in db.add.call_args_list]
    assert isinstance(added[0], ProviderService)
    assert isinstance(added[1], BusinessVerification)
    assert added[1].business_name == "Happy Paws"
    assert added[1].business_tax_id == "900123456"

    assert offering.service_type == "hotel"
    assert offering.capacity == 8
    assert offering.price_per_night == 45
    assert offering.hourly_rate is None
    assert offering.is_active is False

    assert profile.business_type == "business"
    assert profile.onboarding_completed is False
    assert db.commit.await_count == 4
    db.execute.assert_awaited_once()

    await complete_onboarding(db, profile)
    assert profile.onboarding_completed is True


@pytest.mark.asyncio
async def test_individual_walker_skips_business_record():
    db, profile = _db(), _profile()

    offering = await persist_service_data(db, profile, _walker_session())

    assert db.add.call_count == 1
    assert offering.hourly_rate == 20
    assert offering.service_radius == 5000
    assert profile.business_type == "individual"


@pytest.mark.asyncio
async def test_primary_service_failure_keeps_earlier_rows():
    """Step 4 failing reports the step; steps 1-3 stay committed, flag stays false."""
    db, profile = _db(), _profile()
    db.execute.side_effect = SQLAlchemyError("deadlock detected")

    with pytest.raises(PersistenceFailure) as exc:
        await persist_service_data(db, profile, _hotel_session())

    assert exc.value.step == "primary service"
    assert db.commit.await_count == 3
    db.rollback.assert_awaited_once()
    assert profile.onboarding_completed is False


@pytest.mark.asyncio
async def test_incomplete_draft_never_reaches_database():
    db, profile = _db(), _profile()
    session = update_service_draft(_walker_session(), city="")

    with pytest.raises(ValidationError):
        await persist_service_data(db, profile, session)

    db.add.assert_not_called()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_mismatched_draft_variant_never_reaches_database():
    """Hotel fields on a vet offering are refused before any write."""
    session = choose_business_type(start_session(), BusinessType.BUSINESS)
    session = advance(select_service(advance(session), ServiceType.VET))
    session = update_service_draft(session, address="Calle 50", city="Cali")
    draft = session.drafts[ServiceType.VET].model_copy(update={"details": HotelDetails()})
    tampered = session.model_copy(update={"drafts": {ServiceType.VET: draft}})
    db, profile = _db(), _profile()

    with pytest.raises(ValidationError):
        await persist_service_data(db, profile, tampered)

    db.add.assert_not_called()
    db.commit.assert_not_awaited()


def test_primary_service_upsert_targets_provider_id():
    """pet_masters is keyed by provider id and updated on conflict."""
    stmt = primary_service_upsert(PROVIDER_ID, _hotel_session())
    compiled = stmt.compile(dialect=postgresql.dialect())

    sql = str(compiled)
    assert "INSERT INTO pet_masters" in sql
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert compiled.params["id"] == PROVIDER_ID
    assert compiled.params["service_type"] == "hotel"
    assert compiled.params["city"] == "Bogotá"


# ── Completion ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_complete_onboarding_sets_flag():
    db, profile = _db(), _profile(business_type="business")

    await complete_onboarding(db, profile)

    assert profile.onboarding_completed is True
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_complete_onboarding_failure_leaves_flag_false():
    db, profile = _db(), _profile(business_type="business")
    db.commit.side_effect = SQLAlchemyError("connection lost")

    with pytest.raises(PersistenceFailure):
        await complete_onboarding(db, profile)

    assert profile.onboarding_completed is False


@pytest.mark.asyncio
async def test_completion_refused_without_primary_service():
    db = _db(_result(None))
    with pytest.raises(GuardViolation):
        await ensure_ready_for_completion(db, _profile(business_type="business"))


@pytest.mark.asyncio
async def test_walker_completion_requires_verification():
    """Individual walkers cannot complete before identity verification exists."""
    mirror = SimpleNamespace(service_type="walker")
    db = _db(_result(mirror), _result(None))

    with pytest.raises(GuardViolation):
        await ensure_ready_for_completion(db, _profile(business_type="individual"))


@pytest.mark.asyncio
async def test_hotel_completion_allowed_after_service_data():
    db = _db(_result(SimpleNamespace(service_type="hotel")))
    await ensure_ready_for_completion(db, _profile(business_type="business"))
    assert db.execute.await_count == 1


# ── Reconciliation ────────────────────────────────────────

@pytest.mark.asyncio
async def test_find_missing_primary_services():
    profile = _profile(business_type="business")
    result = MagicMock()
    result.all.return_value = [(profile, 2)]
    db = _db(result)

    missing = await find_missing_primary_services(db)

    assert len(missing) == 1
    assert missing[0].provider_id == PROVIDER_ID
    assert missing[0].business_type == BusinessType.BUSINESS
    assert missing[0].offerings == 2
