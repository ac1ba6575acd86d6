import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.core.exceptions import IntegrationFailure, ValidationError
from app.schemas.delivery import DeliveryRequest, Location
from app.services.delivery.base import ProviderConfig
from app.services.delivery.jetgo import JetGoClient

CONFIG = ProviderConfig(base_url="https://api.jetgo.test", timeout_seconds=5.0)


def _iso(delta_minutes: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(minutes=delta_minutes)).isoformat()


@pytest.fixture
def jetgo_requests():
    return []


@pytest.fixture
async def jetgo(jetgo_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        jetgo_requests.append(request)
        path = request.url.path
        if path == "/v1/auth/token":
            return httpx.Response(200, json={"token": "jet-token", "expires_in": 600})
        if path == "/v1/quotes":
            return httpx.Response(200, json={
                "quote_id": "jq_1",
                "fee": 6.25,
                "eta_minutes": 28,
                "created_at": _iso(0),
                "expires_at": _iso(10),
            })
        if path == "/v1/deliveries":
            return httpx.Response(201, json={
                "delivery_id": "jd_1",
                "status": "assigned",
                "fee": 6.25,
                "created_at": _iso(0),
                "pickup_eta": _iso(12),
                "dropoff_eta": _iso(30),
            })
        if path == "/v1/deliveries/jd_1":
            return httpx.Response(200, json={"delivery_id": "jd_1", "status": "in_progress"})
        if path == "/v1/deliveries/jd_404":
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(500)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = JetGoClient({"api_key": "jk", "merchant_id": "m-9"}, CONFIG, http_client=http_client)
    yield client
    await http_client.aclose()


def _request() -> DeliveryRequest:
    return DeliveryRequest(
        pickup=Location(name="Bistro 9", address="123 Main St"),
        dropoff=Location(address="456 Elm St", latitude=37.76, longitude=-122.42),
        order_value=25.99,
    )


@pytest.mark.asyncio
async def test_quote_and_create(jetgo, jetgo_requests):
    quote = await jetgo.get_quote(_request())
    delivery = await jetgo.create_delivery(_request(), quote.id)

    assert quote.fee == 6.25
    assert quote.eta == 28
    assert delivery.id == "jd_1"
    assert delivery.status == "processing"

    create_body = json.loads(jetgo_requests[-1].content)
    assert create_body["merchant_id"] == "m-9"
    assert create_body["quote_id"] == "jq_1"
    assert create_body["dropoff"]["lat"] == 37.76
    assert create_body["pickup"]["name"] == "Bistro 9"
    # one token for both calls
    assert sum(1 for r in jetgo_requests if r.url.path == "/v1/auth/token") == 1


@pytest.mark.asyncio
async def test_status_mapping(jetgo):
    status = await jetgo.get_delivery_status("jd_1")

    assert status.status == "delivering"


@pytest.mark.asyncio
async def test_provider_error_keeps_http_status(jetgo):
    with pytest.raises(IntegrationFailure) as exc_info:
        await jetgo.get_delivery_status("jd_404")

    assert exc_info.value.provider_status == 404
    assert exc_info.value.provider == "JetGo"


def test_credentials_are_required():
    with pytest.raises(ValidationError):
        JetGoClient({"api_key": "jk"}, CONFIG)
