import pytest

from app.models.enums import MaintenancePriority, ListingStatus as S
from app.models.listing import Listing
from app.schemas.listing import ListingCreate
from app.schemas.maintenance import MaintenanceModeConfig
from fixtures_seed import (
    ACTOR,
    add_lease,
    add_maintenance_request,
    fetch_audit,
    fetch_listing,
    utc_days,
)


async def _listed_unit(services, seed_org, make_unit, **data):
    unit_id = await make_unit()
    result = await services.listings.create_listing(unit_id, ListingCreate(**data), ACTOR, seed_org["organization_id"])
    assert result.success, result.message
    return unit_id, result.data["listing_id"]


@pytest.mark.asyncio
async def test_round_trip_restores_previous_status(services, session_factory, seed_org, make_unit):
    unit_id, listing_id = await _listed_unit(services, seed_org, make_unit)
    await services.listings.update_status(listing_id, S.SUSPENDED, ACTOR)

    started = await services.listings.start_maintenance_mode(
        MaintenanceModeConfig(unit_id=unit_id, reason="Boiler replacement", estimated_end_date=utc_days(2)),
        ACTOR,
    )
    assert started.success, started.message
    assert started.data["previous_status"] == "SUSPENDED"

    start_entry = (await fetch_audit(session_factory, unit_id))[-1]
    assert start_entry.action == "MAINTENANCE_START"
    assert start_entry.previous_status == "SUSPENDED"

    status = await services.listings.get_maintenance_status(unit_id)
    assert status.data.is_in_maintenance
    assert status.data.previous_status is S.SUSPENDED
    assert status.data.reason == "Boiler replacement"

    ended = await services.listings.end_maintenance_mode(unit_id, ACTOR)
    assert ended.success, ended.message
    assert ended.data["status"] == start_entry.previous_status
    assert (await fetch_listing(session_factory, unit_id)).status == "SUSPENDED"

    end_entry = (await fetch_audit(session_factory, unit_id))[-1]
    assert (end_entry.action, end_entry.previous_status, end_entry.new_status) == ("MAINTENANCE_END", "MAINTENANCE", "SUSPENDED")
    assert not (await services.listings.get_maintenance_status(unit_id)).data.is_in_maintenance


@pytest.mark.asyncio
async def test_end_with_explicit_restore_status(services, session_factory, seed_org, make_unit):
    unit_id, _ = await _listed_unit(services, seed_org, make_unit)
    await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id=unit_id, reason="Inspection"), ACTOR)

    ended = await services.listings.end_maintenance_mode(unit_id, ACTOR, restore_status=S.PRIVATE)
    assert ended.success
    assert (await fetch_listing(session_factory, unit_id)).status == "PRIVATE"

    bad = await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id=unit_id, reason="Again"), ACTOR)
    assert bad.error == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_maintenance_rejections(services, seed_org, make_unit):
    coming_soon, _ = await _listed_unit(services, seed_org, make_unit, availability_date=utc_days(4))
    result = await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id=coming_soon, reason="x"), ACTOR)
    assert result.error == "INVALID_TRANSITION"

    unlisted = await make_unit()
    result = await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id=unlisted, reason="x"), ACTOR)
    assert result.error == "LISTING_NOT_FOUND"

    result = await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id="unt_missing", reason="x"), ACTOR)
    assert result.error == "UNIT_NOT_FOUND"

    active, _ = await _listed_unit(services, seed_org, make_unit)
    result = await services.listings.start_maintenance_mode(
        MaintenanceModeConfig(unit_id=active, reason="x", maintenance_request_id="mnt_missing"), ACTOR,
    )
    assert result.error == "VALIDATION_FAILED"

    result = await services.listings.end_maintenance_mode(active, ACTOR)
    assert result.error == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_start_notifies_tenants_with_active_leases(services, session_factory, notifier, seed_org, make_unit):
    unit_id, _ = await _listed_unit(services, seed_org, make_unit)
    await add_lease(session_factory, unit_id, email="tenant@test.com")

    result = await services.listings.start_maintenance_mode(
        MaintenanceModeConfig(unit_id=unit_id, reason="Electrical work", notify_tenants=True), ACTOR,
    )
    assert result.success
    sent = [n for n in notifier.sent if n["template"] == "unit_maintenance"]
    assert [n["recipient"] for n in sent] == ["tenant@test.com"]
    assert sent[0]["context"]["reason"] == "Electrical work"


@pytest.mark.asyncio
async def test_status_falls_back_to_audit_trail(services, session_factory, seed_org, make_unit):
    unit_id, listing_id = await _listed_unit(services, seed_org, make_unit)
    await services.listings.start_maintenance_mode(MaintenanceModeConfig(unit_id=unit_id, reason="Legacy"), ACTOR)

    # simulate a row written before the window columns existed
    async with session_factory() as db:
        async with db.begin():
            listing = await db.get(Listing, listing_id)
            listing.maintenance_started_at = None
            listing.maintenance_previous_status = None
            listing.maintenance_reason = None
    services.cache.clear()

    status = await services.listings.get_maintenance_status(unit_id)
    assert status.data.is_in_maintenance
    assert status.data.previous_status is S.ACTIVE
    assert status.data.reason == "Legacy"

    ended = await services.listings.end_maintenance_mode(unit_id, ACTOR)
    assert ended.data["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_serious_request_starts_and_completion_ends_maintenance(services, session_factory, seed_org, make_unit):
    unit_id, _ = await _listed_unit(services, seed_org, make_unit)
    request_id = await add_maintenance_request(session_factory, unit_id, priority=MaintenancePriority.URGENT)

    started = await services.listings.handle_maintenance_request_created(request_id)
    assert started is not None and started.success
    listing = await fetch_listing(session_factory, unit_id)
    assert listing.status == "MAINTENANCE"
    assert listing.maintenance_request_id == request_id

    other = await add_maintenance_request(session_factory, unit_id, priority=MaintenancePriority.LOW)
    assert await services.listings.handle_maintenance_request_completed(other) is None
    assert (await fetch_listing(session_factory, unit_id)).status == "MAINTENANCE"

    ended = await services.listings.handle_maintenance_request_completed(request_id)
    assert ended is not None and ended.success
    assert (await fetch_listing(session_factory, unit_id)).status == "ACTIVE"


@pytest.mark.asyncio
async def test_minor_request_is_ignored_unless_unit_unavailable(services, session_factory, seed_org, make_unit):
    unit_id, _ = await _listed_unit(services, seed_org, make_unit)
    minor = await add_maintenance_request(
        session_factory, unit_id, priority=MaintenancePriority.LOW, description="Squeaky door hinge",
    )
    assert await services.listings.handle_maintenance_request_created(minor) is None
    assert (await fetch_listing(session_factory, unit_id)).status == "ACTIVE"

    offline = await add_maintenance_request(
        session_factory, unit_id, priority=MaintenancePriority.LOW, description="Unit is offline, no power",
    )
    result = await services.listings.handle_maintenance_request_created(offline)
    assert result.success
    assert (await fetch_listing(session_factory, unit_id)).status == "MAINTENANCE"

    assert await services.listings.handle_maintenance_request_created("mnt_missing") is None
