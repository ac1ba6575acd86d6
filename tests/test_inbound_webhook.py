import json

import pytest

from app.services.webhook.webhook_service import WebhookService
from tests.utils import delivery_integration_body, make_headers, shopify_order

WEBHOOK_BODY = {
    "name": "Shopify to Uber",
    "sourceType": "ecommerce",
    "sourceProvider": "Shopify",
    "destinationType": "delivery",
    "destinationProvider": "UberDirect",
    "eventTypes": ["order.created"],
    "isActive": True,
}


async def _setup(client, user, integration_active=True):
    headers = make_headers(user)
    await client.post(
        "/api/integrations",
        json=delivery_integration_body(is_active=integration_active),
        headers=headers,
    )
    webhook = (await client.post("/api/webhooks", json=WEBHOOK_BODY, headers=headers)).json()
    return headers, webhook


async def _logs(client, headers, webhook):
    return (await client.get(f"/api/webhooks/{webhook['id']}/logs", headers=headers)).json()


@pytest.mark.asyncio
async def test_order_created_creates_delivery(client, user):
    headers, webhook = await _setup(client, user)

    resp = await client.post(
        f"/api/webhook/{webhook['secret_key']}",
        json={"event_type": "order.created", "payload": shopify_order()},
    )

    assert resp.status_code == 200
    assert resp.json()["matched"] == 1
    assert resp.json()["succeeded"] == 1

    logs = await _logs(client, headers, webhook)
    assert len(logs) == 1
    assert logs[0]["status_code"] in (200, 201)
    assert logs[0]["response_payload"]["delivery"]["id"]
    assert logs[0]["error_message"] is None


@pytest.mark.asyncio
async def test_inactive_integration_logs_failure(client, user):
    headers, webhook = await _setup(client, user, integration_active=False)

    resp = await client.post(
        f"/api/webhook/{webhook['secret_key']}",
        json={"event_type": "order.created", "payload": shopify_order()},
    )

    assert resp.status_code == 200
    assert resp.json()["failed"] == 1

    logs = await _logs(client, headers, webhook)
    assert len(logs) == 1
    assert not 200 <= logs[0]["status_code"] < 300
    assert logs[0]["error_message"]


@pytest.mark.asyncio
async def test_bad_secret_is_401_without_logs(client, user):
    headers, webhook = await _setup(client, user)

    resp = await client.post("/api/webhook/wrong-secret", json={"event_type": "order.created"})
    assert resp.status_code == 401

    resp = await client.post("/api/webhook/wrong-secret", content=b"not json")
    assert resp.status_code == 401

    assert await _logs(client, headers, webhook) == []


@pytest.mark.asyncio
async def test_shopify_topic_header_and_signature(client, user):
    headers, webhook = await _setup(client, user)
    raw = json.dumps(shopify_order()).encode()

    resp = await client.post(
        f"/api/webhook/{webhook['secret_key']}",
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Topic": "orders/create",
            "X-Webhook-Signature": WebhookService.sign_payload(raw, webhook["secret_key"]),
        },
    )

    assert resp.status_code == 200
    assert resp.json()["event_type"] == "order.created"
    assert resp.json()["succeeded"] == 1


@pytest.mark.asyncio
async def test_invalid_json_and_unknown_event_are_400(client, user):
    _, webhook = await _setup(client, user)

    resp = await client.post(f"/api/webhook/{webhook['secret_key']}", content=b"{broken")
    assert resp.status_code == 400

    resp = await client.post(f"/api/webhook/{webhook['secret_key']}", json={"event_type": "pizza.thrown"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_replay_with_event_id_is_not_forwarded_twice(client, user, fake_delivery):
    headers, webhook = await _setup(client, user)
    body = {"event_type": "order.created", "event_id": "order-1001", "payload": shopify_order()}

    first = await client.post(f"/api/webhook/{webhook['secret_key']}", json=body)
    second = await client.post(f"/api/webhook/{webhook['secret_key']}", json=body)

    assert first.json()["results"][0]["duplicate"] is False
    assert second.json()["results"][0]["duplicate"] is True
    assert len(await _logs(client, headers, webhook)) == 1
    assert sum(1 for name, _ in fake_delivery.calls if name == "create_delivery") == 1


@pytest.mark.asyncio
async def test_inactive_webhook_is_not_matched(client, user):
    headers, webhook = await _setup(client, user)
    await client.patch(f"/api/webhooks/{webhook['id']}", json={"isActive": False}, headers=headers)

    resp = await client.post(
        f"/api/webhook/{webhook['secret_key']}",
        json={"event_type": "order.created", "payload": shopify_order()},
    )

    assert resp.status_code == 200
    assert resp.json()["matched"] == 0


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_body_that_is_not_utf8_is_400(client, user):
    headers, webhook = await _setup(client, user)

    resp = await client.post(
        f"/api/webhook/{webhook['secret_key']}",
        content=b'{"event_type":"order.created","x":"\xff\xfe"}',
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert await _logs(client, headers, webhook) == []


@pytest.mark.asyncio
async def test_non_string_source_fields_are_400(client, user):
    headers, webhook = await _setup(client, user)
    url = f"/api/webhook/{webhook['secret_key']}"

    resp = await client.post(url, json={"event_type": "order.created", "source_type": 5, "payload": shopify_order()})
    assert resp.status_code == 400
    assert "source type" in resp.json()["detail"]

    resp = await client.post(url, json={"event_type": "order.created", "source_type": "fax", "payload": shopify_order()})
    assert resp.status_code == 400

    resp = await client.post(
        url, json={"event_type": "order.created", "source_provider": ["Shopify"], "payload": shopify_order()}
    )
    assert resp.status_code == 400

    assert await _logs(client, headers, webhook) == []
