"""
API tests for:
  GET    /api/v1/rotation-patterns
  GET    /api/v1/rotation-patterns/{id}
  POST   /api/v1/rotation-patterns
  PUT    /api/v1/rotation-patterns/{id}
  DELETE /api/v1/rotation-patterns/{id}
"""
import uuid

import pytest
from sqlalchemy import select, func

from tests.conftest import auth_headers, make_tenant, make_user, make_team
from shiftrota.core.security import create_access_token
from shiftrota.models.rotation import RotationAssignment, RotationPattern

RP_BASE = "/api/v1/rotation-patterns"


def _alternate_payload(**overrides) -> dict:
    payload = {
        "name": "Früh/Spät Wechsel",
        "pattern_type": "alternate_fs",
        "pattern_config": {"weekType": "F", "skipWeekends": True},
        "starts_at": "2025-01-06",
    }
    payload.update(overrides)
    return payload


async def _create(client, token, **overrides) -> dict:
    resp = await client.post(RP_BASE, json=_alternate_payload(**overrides), headers=auth_headers(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["pattern"]


# ── Create ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_alternate_fs(client, admin_token, admin_user):
    resp = await client.post(RP_BASE, json=_alternate_payload(), headers=auth_headers(admin_token))
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    p = body["data"]["pattern"]
    assert p["pattern_type"] == "alternate_fs"
    assert p["cycle_length_weeks"] == 2
    assert p["pattern_config"] == {"skipWeekends": True, "ignoreNightShift": False, "weekType": 1}
    assert p["created_by"] == str(admin_user.id)
    assert p["is_active"] is True


@pytest.mark.asyncio
async def test_create_custom_derives_cycle(client, admin_token):
    p = await _create(
        client, admin_token,
        pattern_type="custom",
        pattern_config={"pattern": [{"week": 1, "shift": "F"}, {"week": 2, "shift": "S"}, {"week": 3, "shift": "N"}]},
    )
    assert p["cycle_length_weeks"] == 3


@pytest.mark.asyncio
async def test_create_with_team(client, db, tenant, admin_token):
    team = await make_team(db, tenant)
    p = await _create(client, admin_token, team_id=str(team.id))
    assert p["team_id"] == str(team.id)


@pytest.mark.asyncio
async def test_create_with_foreign_team_404(client, db, admin_token):
    other = await make_tenant(db, "Andere GmbH")
    team = await make_team(db, other)
    resp = await client.post(
        RP_BASE, json=_alternate_payload(team_id=str(team.id)), headers=auth_headers(admin_token)
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "TEAM_NOT_FOUND"


@pytest.mark.asyncio
async def test_create_invalid_config_envelope(client, admin_token, db):
    resp = await client.post(
        RP_BASE,
        json=_alternate_payload(pattern_config={"weekType": 7}),
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_PATTERN_CONFIG"
    assert body["error"]["details"][0]["field"] == "pattern_config.weekType"
    count = await db.scalar(select(func.count()).select_from(RotationPattern))
    assert count == 0


@pytest.mark.asyncio
async def test_create_unsupported_type(client, admin_token):
    resp = await client.post(
        RP_BASE, json=_alternate_payload(pattern_type="dupont"), headers=auth_headers(admin_token)
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "UNSUPPORTED_PATTERN_TYPE"


@pytest.mark.asyncio
async def test_create_empty_custom(client, admin_token):
    resp = await client.post(
        RP_BASE,
        json=_alternate_payload(pattern_type="custom", pattern_config={"pattern": []}),
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "EMPTY_CUSTOM_PATTERN"


@pytest.mark.asyncio
async def test_create_missing_field_is_422(client, admin_token):
    resp = await client.post(RP_BASE, json={"name": "x"}, headers=auth_headers(admin_token))
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["error"]["details"]}
    assert "body.pattern_type" in fields


@pytest.mark.asyncio
async def test_create_requires_admin(client, employee_token, manager_token):
    for token in (employee_token, manager_token):
        resp = await client.post(RP_BASE, json=_alternate_payload(), headers=auth_headers(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_create_requires_auth(client):
    resp = await client.post(RP_BASE, json=_alternate_payload())
    assert resp.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token_401(client):
    resp = await client.get(RP_BASE, headers=auth_headers("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


# ── List / Get ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_active_only_by_default(client, admin_token, employee_token):
    await _create(client, admin_token, name="aktiv")
    await _create(client, admin_token, name="inaktiv", is_active=False)

    resp = await client.get(RP_BASE, headers=auth_headers(employee_token))
    assert resp.status_code == 200
    names = [p["name"] for p in resp.json()["data"]["patterns"]]
    assert names == ["aktiv"]

    resp = await client.get(RP_BASE + "?active_only=false", headers=auth_headers(employee_token))
    assert len(resp.json()["data"]["patterns"]) == 2


@pytest.mark.asyncio
async def test_tenant_isolation(client, db, admin_token):
    p = await _create(client, admin_token)
    other = await make_tenant(db, "Fremd GmbH")
    stranger = await make_user(db, other, "admin")
    token = create_access_token(stranger.id, other.id, "admin")

    resp = await client.get(f"{RP_BASE}/{p['id']}", headers=auth_headers(token))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "PATTERN_NOT_FOUND"

    resp = await client.get(RP_BASE, headers=auth_headers(token))
    assert resp.json()["data"]["patterns"] == []


@pytest.mark.asyncio
async def test_get_pattern(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.get(f"{RP_BASE}/{p['id']}", headers=auth_headers(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["pattern"]["id"] == p["id"]


@pytest.mark.asyncio
async def test_get_unknown_404(client, admin_token):
    resp = await client.get(f"{RP_BASE}/{uuid.uuid4()}", headers=auth_headers(admin_token))
    assert resp.status_code == 404


# ── Update ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_update_name_keeps_structure(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.put(
        f"{RP_BASE}/{p['id']}", json={"name": "Umbenannt"}, headers=auth_headers(admin_token)
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]["pattern"]
    assert updated["name"] == "Umbenannt"
    assert updated["pattern_config"] == p["pattern_config"]
    assert updated["cycle_length_weeks"] == 2


@pytest.mark.asyncio
async def test_update_switches_type(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.put(
        f"{RP_BASE}/{p['id']}",
        json={"pattern_type": "fixed_n", "pattern_config": {}},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]["pattern"]
    assert updated["pattern_type"] == "fixed_n"
    assert updated["cycle_length_weeks"] == 1


@pytest.mark.asyncio
async def test_update_type_without_matching_config_rejected(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.put(
        f"{RP_BASE}/{p['id']}", json={"pattern_type": "fixed_n"}, headers=auth_headers(admin_token)
    )
    # stored alternate_fs config carries weekType, which fixed_n does not accept
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_PATTERN_CONFIG"


@pytest.mark.asyncio
async def test_update_invalid_range(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.put(
        f"{RP_BASE}/{p['id']}", json={"ends_at": "2025-01-01"}, headers=auth_headers(admin_token)
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_DATE_RANGE"


@pytest.mark.asyncio
async def test_update_null_starts_at_keeps_stored(client, admin_token):
    p = await _create(client, admin_token, ends_at="2025-06-30")
    resp = await client.put(
        f"{RP_BASE}/{p['id']}",
        json={"starts_at": None, "ends_at": "2025-12-31"},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 200, resp.text
    updated = resp.json()["data"]["pattern"]
    assert updated["starts_at"] == "2025-01-06"
    assert updated["ends_at"] == "2025-12-31"


@pytest.mark.asyncio
async def test_update_empty_body(client, admin_token):
    p = await _create(client, admin_token)
    resp = await client.put(f"{RP_BASE}/{p['id']}", json={}, headers=auth_headers(admin_token))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


# ── Delete ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_pattern_cascades(client, db, admin_token, employee_user):
    p = await _create(client, admin_token)
    resp = await client.post(
        f"{RP_BASE}/{p['id']}/assignments",
        json={"user_ids": [str(employee_user.id)], "default_shift_group": "F", "starts_at": "2025-01-06"},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 201
    await client.post(
        f"{RP_BASE}/{p['id']}/generate",
        json={"start_date": "2025-01-06", "end_date": "2025-01-19"},
        headers=auth_headers(admin_token),
    )

    resp = await client.delete(f"{RP_BASE}/{p['id']}", headers=auth_headers(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["deleted"] is True

    resp = await client.get(f"{RP_BASE}/{p['id']}", headers=auth_headers(admin_token))
    assert resp.status_code == 404
    count = await db.scalar(select(func.count()).select_from(RotationAssignment))
    assert count == 0


@pytest.mark.asyncio
async def test_delete_requires_admin(client, admin_token, manager_token):
    p = await _create(client, admin_token)
    resp = await client.delete(f"{RP_BASE}/{p['id']}", headers=auth_headers(manager_token))
    assert resp.status_code == 403
