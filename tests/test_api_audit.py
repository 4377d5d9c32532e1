import pytest

from fixtures_seed import add_application, add_lease


async def _list_unit(client, headers, unit_id, **body):
    r = await client.post(f"/v1/units/{unit_id}/listing", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["listing_id"]


@pytest.mark.asyncio
async def test_audit_trail_and_statistics_over_http(client, seed_org, make_unit):
    headers = seed_org["headers"]
    unit_id = await make_unit()
    listing_id = await _list_unit(client, headers, unit_id, title="Loft")
    r = await client.patch(f"/v1/listings/{listing_id}/status", json={"status": "SUSPENDED"}, headers=headers)
    assert r.status_code == 200

    r = await client.get("/v1/audit/trail", params={"unit_id": unit_id, "limit": 1}, headers=headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["total"] == 2
    assert data["has_more"] is True
    assert data["next_offset"] == 1
    assert data["entries"][0]["action"] == "SUSPEND"

    r = await client.get("/v1/audit/trail", params={"action": "CREATE"}, headers=headers)
    assert r.json()["data"]["total"] == 1

    r = await client.get("/v1/audit/statistics", headers=headers)
    assert r.status_code == 200
    stats = r.json()["data"]
    assert stats["total_entries"] == 2
    assert stats["action_breakdown"] == {"CREATE": 1, "SUSPEND": 1}


@pytest.mark.asyncio
async def test_audit_query_validation(client, seed_org):
    headers = seed_org["headers"]

    r = await client.get("/v1/audit/trail", params={"action": "DELETE"}, headers=headers)
    assert r.status_code == 422
    assert r.json()["error"] == "VALIDATION_FAILED"

    r = await client.get("/v1/audit/trail", params={"limit": 0}, headers=headers)
    assert r.status_code == 422

    r = await client.get(
        "/v1/audit/trail",
        params={"date_from": "2026-02-01T00:00:00Z", "date_to": "2026-01-01T00:00:00Z"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_INPUT"

    r = await client.get("/v1/audit/trail")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_audit_export_over_http(client, seed_org, make_unit):
    headers = seed_org["headers"]
    await _list_unit(client, headers, await make_unit())

    r = await client.get("/v1/audit/export", params={"format": "csv"}, headers=headers)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="listing-audit.csv"' in r.headers["content-disposition"]
    lines = r.text.strip().splitlines()
    assert lines[0].startswith("id,unit_id,listing_id,action")
    assert len(lines) == 2

    r = await client.get("/v1/audit/export", headers=headers)
    assert r.headers["content-type"].startswith("application/json")
    assert r.json()[0]["action"] == "CREATE"


@pytest.mark.asyncio
async def test_property_audit_history_over_http(client, seed_org, make_unit, seed_other_org):
    headers = seed_org["headers"]
    unit_id = await make_unit()
    await _list_unit(client, headers, unit_id)

    r = await client.get(f"/v1/properties/{seed_org['property_id']}/audit-history", headers=headers)
    assert r.status_code == 200
    assert [e["unit_id"] for e in r.json()["data"]] == [unit_id]

    r = await client.get(f"/v1/properties/{seed_other_org['property_id']}/audit-history", headers=headers)
    assert r.status_code == 403

    r = await client.get("/v1/properties/prp_missing/audit-history", headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "PROPERTY_NOT_FOUND"


@pytest.mark.asyncio
async def test_application_integrity_over_http(client, session_factory, seed_org, make_unit, seed_other_org):
    headers = seed_org["headers"]
    listed = await make_unit()
    await _list_unit(client, headers, listed)
    healthy = await add_application(session_factory, listed)
    orphan = await add_application(session_factory, await make_unit())

    r = await client.get("/v1/applications/integrity-report", headers=headers)
    assert r.status_code == 200
    report = r.json()["data"]
    assert report["summary"]["total_applications"] == 2
    assert report["summary"]["orphaned_applications"] == 1
    assert [i["application_id"] for i in report["issues"]] == [orphan]

    r = await client.post(
        "/v1/applications/integrity-check",
        json={"application_ids": [healthy, orphan, "app_missing"]},
        headers=headers,
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["summary"] == {"total": 3, "valid": 1, "invalid": 2}
    assert data["results"][2]["issues"][0]["type"] == "APPLICATION_NOT_FOUND"

    r = await client.post("/v1/applications/integrity-check", json={"application_ids": []}, headers=headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_eligibility_over_http(client, session_factory, seed_org, make_unit, seed_other_org):
    headers = seed_org["headers"]
    open_unit = await make_unit()
    await _list_unit(client, headers, open_unit)
    leased = await make_unit()
    await _list_unit(client, headers, leased)
    await add_lease(session_factory, leased)

    r = await client.post("/v1/applications/eligibility", json={"unit_ids": [open_unit, leased]}, headers=headers)
    assert r.status_code == 200
    assert [u["is_eligible"] for u in r.json()["data"]] == [True, False]

    r = await client.post(
        "/v1/applications/eligibility", json={"unit_ids": [open_unit, seed_other_org["unit_id"]]}, headers=headers,
    )
    assert r.status_code == 403

    r = await client.get("/v1/applications/eligible-units", headers=headers)
    assert [u["unit_id"] for u in r.json()["data"]] == [open_unit]
