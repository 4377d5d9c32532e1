import csv
import json
from io import StringIO

import pytest

from app.models.enums import ListingAction, ListingStatus as S
from app.schemas.audit import AuditFilter, ExportFormat
from app.schemas.listing import ListingCreate
from fixtures_seed import ACTOR, utc_days


async def _seed_activity(services, seed_org, make_unit, seed_other_org):
    """Two listings in the caller's organization, one suspended, plus noise in another organization."""
    org = seed_org["organization_id"]
    first, second = await make_unit(), await make_unit()
    created = await services.listings.create_listing(first, ListingCreate(title="Corner studio"), ACTOR, org)
    await services.listings.create_listing(second, ListingCreate(), "usr_second", org)
    await services.listings.update_status(created.data["listing_id"], S.SUSPENDED, ACTOR, "Owner request")
    await services.listings.create_listing(
        seed_other_org["unit_id"], ListingCreate(), "usr_elsewhere", seed_other_org["organization_id"],
    )
    return first, second


@pytest.mark.asyncio
async def test_trail_is_scoped_to_the_organization(services, seed_org, make_unit, seed_other_org):
    first, second = await _seed_activity(services, seed_org, make_unit, seed_other_org)

    result = await services.audit.get_audit_trail(AuditFilter(), seed_org["organization_id"])

    assert result.success
    page = result.data
    assert page.total == 3
    assert page.has_more is False
    assert page.next_offset is None
    assert {e["unit_id"] for e in page.entries} == {first, second}
    # newest first
    assert page.entries[0]["action"] == "SUSPEND"


@pytest.mark.asyncio
async def test_trail_filters(services, seed_org, make_unit, seed_other_org):
    first, _ = await _seed_activity(services, seed_org, make_unit, seed_other_org)
    org = seed_org["organization_id"]
    trail = services.audit.get_audit_trail

    by_unit = (await trail(AuditFilter(unit_id=first), org)).data
    assert [e["action"] for e in by_unit.entries] == ["SUSPEND", "CREATE"]

    by_actor = (await trail(AuditFilter(actor_id="usr_second"), org)).data
    assert by_actor.total == 1

    by_action = (await trail(AuditFilter(action=ListingAction.CREATE), org)).data
    assert by_action.total == 2

    by_status = (await trail(AuditFilter(status=S.SUSPENDED), org)).data
    assert [e["reason"] for e in by_status.entries] == ["Owner request"]

    by_property = (await trail(AuditFilter(property_id=seed_org["property_id"]), org)).data
    assert by_property.total == 3

    future = (await trail(AuditFilter(date_from=utc_days(1)), org)).data
    assert future.total == 0
    assert future.entries == []


@pytest.mark.asyncio
async def test_trail_pagination(services, seed_org, make_unit, seed_other_org):
    await _seed_activity(services, seed_org, make_unit, seed_other_org)
    org = seed_org["organization_id"]

    first_page = (await services.audit.get_audit_trail(AuditFilter(limit=2), org)).data
    assert len(first_page.entries) == 2
    assert first_page.has_more is True
    assert first_page.next_offset == 2

    rest = (await services.audit.get_audit_trail(AuditFilter(limit=2, offset=2), org)).data
    assert len(rest.entries) == 1
    assert rest.has_more is False
    assert {e["id"] for e in first_page.entries}.isdisjoint({e["id"] for e in rest.entries})


@pytest.mark.asyncio
async def test_inverted_date_range_is_rejected(services, seed_org):
    result = await services.audit.get_audit_trail(
        AuditFilter(date_from=utc_days(1), date_to=utc_days(-1)), seed_org["organization_id"],
    )
    assert result.error == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_statistics(services, seed_org, make_unit, seed_other_org):
    await _seed_activity(services, seed_org, make_unit, seed_other_org)

    result = await services.audit.get_audit_statistics(AuditFilter(), seed_org["organization_id"])

    assert result.success
    stats = result.data
    assert stats.total_entries == 3
    assert stats.action_breakdown == {"CREATE": 2, "SUSPEND": 1}
    assert stats.status_breakdown == {"ACTIVE": 2, "SUSPENDED": 1}
    assert [(a.actor_id, a.action_count) for a in stats.actor_activity] == [(ACTOR, 2), ("usr_second", 1)]
    assert sum(p.count for p in stats.timeline) == 3


@pytest.mark.asyncio
async def test_property_history(services, seed_org, make_unit, seed_other_org):
    first, second = await _seed_activity(services, seed_org, make_unit, seed_other_org)
    org = seed_org["organization_id"]

    result = await services.audit.get_property_audit_history(seed_org["property_id"], org)
    assert result.success
    assert {e["unit_id"] for e in result.data} == {first, second}

    denied = await services.audit.get_property_audit_history(seed_other_org["property_id"], org)
    assert denied.error == "PERMISSION_DENIED"

    missing = await services.audit.get_property_audit_history("prp_missing", org)
    assert missing.error == "PROPERTY_NOT_FOUND"


@pytest.mark.asyncio
async def test_csv_export(services, seed_org, make_unit, seed_other_org):
    await _seed_activity(services, seed_org, make_unit, seed_other_org)

    result = await services.audit.export_audit_data(
        AuditFilter(limit=1), seed_org["organization_id"], ExportFormat.CSV, include_metadata=True,
    )

    rows = list(csv.DictReader(StringIO(result.data)))
    # export ignores pagination
    assert len(rows) == 3
    assert list(rows[0]) == [
        "id", "unit_id", "listing_id", "action", "previous_status",
        "new_status", "actor_id", "timestamp", "reason", "metadata",
    ]
    suspend = rows[0]
    assert suspend["action"] == "SUSPEND"
    assert suspend["previous_status"] == "ACTIVE"
    created = [r for r in rows if r["action"] == "CREATE"]
    assert all(r["previous_status"] == "PRIVATE" for r in created)
    assert json.loads(created[0]["metadata"])["organization_id"] == seed_org["organization_id"]


@pytest.mark.asyncio
async def test_json_export_metadata_is_opt_in(services, seed_org, make_unit, seed_other_org):
    await _seed_activity(services, seed_org, make_unit, seed_other_org)
    org = seed_org["organization_id"]

    plain = json.loads((await services.audit.export_audit_data(AuditFilter(), org)).data)
    assert len(plain) == 3
    assert all("metadata" not in row for row in plain)
    assert plain[0]["timestamp"].endswith("+00:00")

    full = json.loads((await services.audit.export_audit_data(AuditFilter(), org, include_metadata=True)).data)
    assert any("metadata" in row for row in full)
