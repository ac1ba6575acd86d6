import uuid

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.integration.integration_service import IntegrationService

CREDENTIALS = {"customer_id": "cust-123", "client_id": "client-abc", "client_secret": "s3cr3t"}


@pytest.fixture
def service(db, registry):
    return IntegrationService(db, registry)


@pytest.mark.asyncio
async def test_credentials_are_encrypted_at_rest(service, user):
    integration = await service.create(user.id, "delivery", "UberDirect", CREDENTIALS)

    assert integration.is_active is False
    assert integration.environment == "sandbox"
    assert b"s3cr3t" not in integration.credentials_encrypted
    assert service.get_credentials(integration) == CREDENTIALS
    assert service.credential_fields(integration) == ["client_id", "client_secret", "customer_id"]


@pytest.mark.asyncio
async def test_invalid_type_is_rejected(service, user):
    with pytest.raises(ValidationError):
        await service.create(user.id, "carrier-pigeon", "Coo", {})


@pytest.mark.asyncio
async def test_other_users_integration_is_not_found(service, user, other_user):
    integration = await service.create(user.id, "delivery", "UberDirect", CREDENTIALS)

    with pytest.raises(NotFoundError):
        await service.get(other_user.id, integration.id)
    with pytest.raises(NotFoundError):
        await service.delete(other_user.id, integration.id)
    with pytest.raises(NotFoundError):
        await service.get(user.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_update_merges_fields_and_replaces_credentials(service, user):
    integration = await service.create(
        user.id, "delivery", "UberDirect", CREDENTIALS, settings={"quote_first": True}
    )

    updated = await service.update(
        user.id, integration.id, {"credentials": {"customer_id": "new"}, "is_active": True}
    )

    assert updated.is_active is True
    assert updated.settings == {"quote_first": True}
    assert service.get_credentials(updated) == {"customer_id": "new"}


@pytest.mark.asyncio
async def test_find_active_matches_provider_case_insensitively(service, user):
    await service.create(user.id, "delivery", "UberDirect", CREDENTIALS, is_active=False)
    assert await service.find_active(user.id, "delivery", "UberDirect") is None

    active = await service.create(user.id, "delivery", "UberDirect", CREDENTIALS, is_active=True)
    found = await service.find_active(user.id, "delivery", "uberdirect")

    assert found is not None
    assert found.id == active.id
    assert await service.find_active(user.id, "pos", "UberDirect") is None


@pytest.mark.asyncio
async def test_list_by_user_filters_by_type(service, user, other_user):
    await service.create(user.id, "delivery", "UberDirect", CREDENTIALS)
    await service.create(user.id, "ecommerce", "Shopify", {"api_key": "k"})
    await service.create(other_user.id, "delivery", "UberDirect", CREDENTIALS)

    assert len(await service.list_by_user(user.id)) == 2
    assert [i.provider for i in await service.list_by_user(user.id, "ecommerce")] == ["Shopify"]


@pytest.mark.asyncio
async def test_connection_test_uses_provider_client(service, user, fake_delivery):
    integration = await service.create(user.id, "delivery", "UberDirect", CREDENTIALS)

    result = await service.test(user.id, integration.id)

    assert result["success"] is True
    assert [name for name, _ in fake_delivery.calls] == ["authenticate", "get_quote"]


@pytest.mark.asyncio
async def test_connection_test_reports_provider_failure(service, user):
    integration = await service.create(
        user.id, "delivery", "UberDirect", {**CREDENTIALS, "fail_with": 401}
    )

    result = await service.test(user.id, integration.id)

    assert result["success"] is False
    assert "simulated failure" in result["message"]


@pytest.mark.asyncio
async def test_connection_test_for_store_checks_credentials(service, user):
    empty = await service.create(user.id, "ecommerce", "Shopify", {})
    configured = await service.create(user.id, "ecommerce", "Shopify", {"api_key": "k"})

    assert (await service.test(user.id, empty.id))["success"] is False
    assert (await service.test(user.id, configured.id))["success"] is True
