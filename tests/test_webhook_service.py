from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import WebhookLog
from app.services.integration.integration_service import IntegrationService
from app.services.webhook.webhook_log_service import WebhookLogService
from app.services.webhook.webhook_service import WebhookService


@pytest.fixture
def service(db):
    return WebhookService(db)


async def _create(service, user_id, **overrides):
    values = dict(
        name="Shopify orders",
        source_type="ecommerce",
        source_provider="Shopify",
        destination_type="delivery",
        destination_provider="UberDirect",
        event_types=["order.created"],
    )
    values.update(overrides)
    return await service.create(user_id, **values)


@pytest.mark.asyncio
async def test_create_generates_unique_secret(service, user):
    first = await _create(service, user.id)
    second = await _create(service, user.id)

    assert len(first.secret_key) >= 32
    assert first.secret_key != second.secret_key
    assert (await service.get_by_secret(first.secret_key)).id == first.id
    assert await service.get_by_secret("nope") is None


@pytest.mark.asyncio
async def test_event_types_must_be_known_and_non_empty(service, user):
    with pytest.raises(ValidationError):
        await _create(service, user.id, event_types=[])
    with pytest.raises(ValidationError):
        await _create(service, user.id, event_types=["order.teleported"])
    with pytest.raises(ValidationError):
        await _create(service, user.id, source_type="fax")


@pytest.mark.asyncio
async def test_update_keeps_unsent_fields(service, user):
    webhook = await _create(service, user.id)

    updated = await service.update(user.id, webhook.id, {"event_types": ["order.created", "order.cancelled"]})

    assert updated.event_types == ["order.created", "order.cancelled"]
    assert updated.name == "Shopify orders"
    with pytest.raises(ValidationError):
        await service.update(user.id, webhook.id, {"event_types": []})


@pytest.mark.asyncio
async def test_cross_user_access_and_admin_override(service, user, other_user, admin_user):
    webhook = await _create(service, user.id)

    with pytest.raises(NotFoundError):
        await service.get(other_user.id, webhook.id)
    assert (await service.get(admin_user.id, webhook.id, is_admin=True)).id == webhook.id

    await _create(service, other_user.id)
    assert len(await service.list_by_user(user.id)) == 1
    assert len(await service.list_all()) == 2


@pytest.mark.asyncio
async def test_delete_removes_logs(service, db, user):
    webhook = await _create(service, user.id)
    await WebhookLogService(db).record(webhook.id, "order.created", 201)

    await service.delete(user.id, webhook.id)

    count = await db.scalar(select(func.count()).select_from(WebhookLog))
    assert count == 0


def test_callback_url_embeds_secret(service):
    class Stub:
        secret_key = "abc123"

    assert service.build_callback_url(Stub(), "https://bridge.example.com/") == (
        "https://bridge.example.com/api/webhook/abc123"
    )


def test_signature_round_trip():
    body = b'{"event_type": "order.created"}'
    signature = WebhookService.sign_payload(body, "secret")

    assert signature.startswith("sha256=")
    assert WebhookService.verify_signature(body, signature, "secret")
    assert not WebhookService.verify_signature(body, signature, "other")


@pytest.mark.asyncio
async def test_setup_provider_webhook_requires_active_integration(service, db, registry, user):
    integrations = IntegrationService(db, registry)

    with pytest.raises(ValidationError):
        await service.setup_provider_webhook(integrations, user.id, "UberDirect")

    await integrations.create(user.id, "delivery", "UberDirect", {"customer_id": "c"}, is_active=True)
    webhook = await service.setup_provider_webhook(integrations, user.id, "uberdirect")

    assert webhook.source_type == "ecommerce"
    assert webhook.source_provider == "Shopify"
    assert webhook.destination_provider == "UberDirect"
    assert webhook.event_types == ["order.created"]


@pytest.mark.asyncio
async def test_logs_are_listed_newest_first(service, db, user):
    webhook = await _create(service, user.id)
    logs = WebhookLogService(db)
    base = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    for minutes, event_id in ((0, "first"), (2, "third"), (1, "second")):
        log = await logs.record(webhook.id, "order.created", 201, event_id=event_id)
        log.created_at = base + timedelta(minutes=minutes)
    await db.commit()

    listed = await logs.list_by_webhook(webhook.id)

    assert [log.event_id for log in listed] == ["third", "second", "first"]
    assert await logs.has_success(webhook.id, "first")
    assert not await logs.has_success(webhook.id, "missing")
