import uuid

import pytest
from sqlalchemy import update

from app.models.integration import Integration
from tests.utils import delivery_integration_body, make_headers


@pytest.mark.asyncio
async def test_requires_session(client):
    resp = await client.get("/api/integrations")
    assert resp.status_code == 401

    resp = await client.get("/api/integrations", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_session_cookie_is_accepted(client, user, settings):
    token = make_headers(user)["Authorization"].split(" ", 1)[1]
    client.cookies.set(settings.SESSION_COOKIE_NAME, token)

    resp = await client.get("/api/integrations")

    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_crud_flow(client, user):
    headers = make_headers(user)

    resp = await client.post("/api/integrations", json=delivery_integration_body(), headers=headers)
    assert resp.status_code == 201
    created = resp.json()
    assert created["provider"] == "UberDirect"
    assert created["is_active"] is True
    assert created["credential_fields"] == ["client_id", "client_secret", "customer_id"]
    assert "credentials" not in created
    integration_id = created["id"]

    resp = await client.patch(
        f"/api/integrations/{integration_id}",
        json={"isActive": False, "environment": "live"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    assert resp.json()["environment"] == "live"
    assert resp.json()["settings"]["pickup"]["address"] == "123 Main St"

    resp = await client.get("/api/integrations", params={"type": "delivery"}, headers=headers)
    assert [i["id"] for i in resp.json()] == [integration_id]

    resp = await client.delete(f"/api/integrations/{integration_id}", headers=headers)
    assert resp.status_code == 200

    resp = await client.get(f"/api/integrations/{integration_id}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_other_users_integration_is_404(client, user, other_user):
    resp = await client.post("/api/integrations", json=delivery_integration_body(), headers=make_headers(user))
    integration_id = resp.json()["id"]

    resp = await client.get(f"/api/integrations/{integration_id}", headers=make_headers(other_user))
    assert resp.status_code == 404

    resp = await client.get(f"/api/integrations/{uuid.uuid4()}", headers=make_headers(user))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_body_is_400(client, user):
    resp = await client.post(
        "/api/integrations",
        json={"type": "teleport", "provider": "Beam"},
        headers=make_headers(user),
    )

    assert resp.status_code == 400
    assert "type" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_connection_test_endpoint(client, user, fake_delivery):
    headers = make_headers(user)
    resp = await client.post("/api/integrations", json=delivery_integration_body(), headers=headers)

    resp = await client.post(f"/api/integrations/{resp.json()['id']}/test", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["success"] is True


@pytest.mark.asyncio
async def test_connection_test_reports_bad_pickup_setting(client, user):
    headers = make_headers(user)
    resp = await client.post(
        "/api/integrations",
        json=delivery_integration_body(settings={"pickup": {"name": "no address"}}),
        headers=headers,
    )

    resp = await client.post(f"/api/integrations/{resp.json()['id']}/test", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert "pickup" in resp.json()["message"]


@pytest.mark.asyncio
async def test_unreadable_credentials_do_not_break_listing(client, user, db):
    headers = make_headers(user)
    broken_id = (
        await client.post("/api/integrations", json=delivery_integration_body(), headers=headers)
    ).json()["id"]
    await client.post("/api/integrations", json=delivery_integration_body(provider="JetGo"), headers=headers)

    await db.execute(
        update(Integration)
        .where(Integration.id == uuid.UUID(broken_id))
        .values(credentials_encrypted=b"not-a-fernet-token")
    )
    await db.commit()

    resp = await client.get("/api/integrations", headers=headers)

    assert resp.status_code == 200
    by_id = {i["id"]: i for i in resp.json()}
    assert len(by_id) == 2
    assert by_id[broken_id]["credential_fields"] == []
