import pytest

from app.models.enums import ApplicationStatus
from app.schemas.listing import ListingCreate
from fixtures_seed import ACTOR, add_application, fetch_applications, fetch_audit, fetch_listing, utc_days


async def _create(services, seed_org, unit_id, **data):
    result = await services.listings.create_listing(unit_id, ListingCreate(**data), ACTOR, seed_org["organization_id"])
    assert result.success, result.message
    return result.data


@pytest.mark.asyncio
async def test_activation_is_idempotent(services, session_factory, seed_org, make_unit):
    unit_id = await make_unit()
    await _create(services, seed_org, unit_id, availability_date=utc_days(2), expiration_date=utc_days(10))
    untouched = await make_unit()
    await _create(services, seed_org, untouched, availability_date=utc_days(5))

    when = utc_days(3)
    first = await services.listings.process_time_based_transitions(now=when)
    assert first == {"processed": 1, "activated": 1, "expired": 0, "errors": []}
    assert (await fetch_listing(session_factory, unit_id)).status == "ACTIVE"
    assert (await fetch_listing(session_factory, untouched)).status == "COMING_SOON"

    entry = (await fetch_audit(session_factory, unit_id))[-1]
    assert (entry.action, entry.actor_id) == ("AUTO_ACTIVATE", "system")

    second = await services.listings.process_time_based_transitions(now=when)
    assert second == {"processed": 0, "activated": 0, "expired": 0, "errors": []}


@pytest.mark.asyncio
async def test_expiry_rejects_applications_and_notifies_manager(
    services, session_factory, notifier, seed_org, make_unit
):
    unit_id = await make_unit()
    listing_id = (await _create(services, seed_org, unit_id, expiration_date=utc_days(2)))["listing_id"]
    application_id = await add_application(session_factory, unit_id)

    summary = await services.listings.process_time_based_transitions(now=utc_days(3))
    assert summary["expired"] == 1
    assert (await fetch_listing(session_factory, unit_id)).status == "EXPIRED"

    (application,) = await fetch_applications(session_factory, unit_id)
    assert application.id == application_id
    assert application.status == ApplicationStatus.REJECTED.value
    assert application.decision_reason == "Listing expired"

    expired_notices = [n for n in notifier.sent if n["template"] == "listing_expired"]
    assert expired_notices == [{
        "recipient": "manager@test.com",
        "template": "listing_expired",
        "context": {"listing_id": listing_id, "unit_id": unit_id},
    }]

    again = await services.listings.process_time_based_transitions(now=utc_days(3))
    assert again["processed"] == 0


@pytest.mark.asyncio
async def test_listing_can_activate_and_expire_in_one_sweep(services, session_factory, seed_org, make_unit):
    unit_id = await make_unit()
    await _create(services, seed_org, unit_id, availability_date=utc_days(1), expiration_date=utc_days(2))

    summary = await services.listings.process_time_based_transitions(now=utc_days(5))
    assert summary == {"processed": 2, "activated": 1, "expired": 1, "errors": []}

    actions = [e.action for e in await fetch_audit(session_factory, unit_id)]
    assert actions[-2:] == ["AUTO_ACTIVATE", "AUTO_EXPIRE"]


@pytest.mark.asyncio
async def test_sweep_with_nothing_due(services, seed_org, make_unit):
    unit_id = await make_unit()
    await _create(services, seed_org, unit_id)
    summary = await services.listings.process_time_based_transitions()
    assert summary == {"processed": 0, "activated": 0, "expired": 0, "errors": []}
