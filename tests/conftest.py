import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from cryptography.fernet import Fernet

# Settings are read on first import of the app package
os.environ.setdefault("CREDENTIALS_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

import httpx
import pytest
from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.api.dependencies import get_dispatcher, get_registry
from app.config.database import get_db
from app.config.settings import get_settings
from app.core.exceptions import IntegrationFailure
from app.main import app as fastapi_app
from app.models import Base, User
from app.schemas.delivery import Delivery, DeliveryQuote, DeliveryRequest, DeliveryStatus
from app.services.delivery.base import DeliveryProviderClient, ProviderConfig
from app.services.delivery.registry import DeliveryClientRegistry, ProviderEndpoints
from app.services.webhook.dispatcher import WebhookDispatcher


class FakeDeliveryClient(DeliveryProviderClient):
    """
    In-process provider used in place of UberDirect in tests.

    Put "fail_with": <http status> in the integration credentials to make
    every provider call fail with that status.
    """

    provider_name = "FakeDelivery"

    STATUS_MAP = {s: s for s in ("processing", "picking_up", "picked_up", "delivering", "delivered", "canceled")}

    # delivery id -> raw status, shared by every instance
    deliveries: Dict[str, str] = {}
    calls: List[Tuple[str, object]] = []

    def _maybe_fail(self, operation: str):
        status = self.credentials.get("fail_with")
        if status:
            raise IntegrationFailure(self.provider_name, operation, "simulated failure", provider_status=int(status))

    async def _fetch_token(self) -> Tuple[str, Optional[int]]:
        self.calls.append(("authenticate", None))
        return "fake-token", 3600

    async def _request_quote(self, token: str, request: DeliveryRequest) -> DeliveryQuote:
        self.calls.append(("get_quote", request))
        self._maybe_fail("get_quote")
        now = datetime.now(timezone.utc)
        return DeliveryQuote(
            id=f"quote-{uuid.uuid4().hex[:8]}",
            fee=7.5,
            eta=30,
            currency=request.currency,
            created_at=now,
            expires_at=now + timedelta(minutes=15),
        )

    async def _request_create(self, token: str, request: DeliveryRequest, quote_id: Optional[str]) -> Delivery:
        self.calls.append(("create_delivery", request))
        self._maybe_fail("create_delivery")
        now = datetime.now(timezone.utc)
        delivery_id = f"del-{uuid.uuid4().hex[:8]}"
        self.deliveries[delivery_id] = "processing"
        return Delivery(
            id=delivery_id,
            status="processing",
            tracking_url=f"https://track.example.com/{delivery_id}",
            fee=7.5,
            currency=request.currency,
            created_at=now,
            pickup_eta=now + timedelta(minutes=10),
            dropoff_eta=now + timedelta(minutes=30),
            quote_id=quote_id,
        )

    async def _request_status(self, token: str, delivery_id: str) -> DeliveryStatus:
        self.calls.append(("get_delivery_status", delivery_id))
        self._maybe_fail("get_delivery_status")
        if delivery_id not in self.deliveries:
            raise IntegrationFailure(self.provider_name, "get_delivery_status", "not found", provider_status=404)
        return DeliveryStatus(id=delivery_id, status=self.normalize_status(self.deliveries[delivery_id]))

    async def _request_cancel(self, token: str, delivery_id: str) -> None:
        self.calls.append(("cancel_delivery", delivery_id))
        self._maybe_fail("cancel_delivery")
        self.deliveries[delivery_id] = "canceled"


FAKE_ENDPOINTS = ProviderEndpoints(live_url="https://fake.test", sandbox_url="https://fake.test")


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_delivery():
    FakeDeliveryClient.deliveries = {}
    FakeDeliveryClient.calls = []
    return FakeDeliveryClient


@pytest.fixture
async def registry(settings, fake_delivery):
    registry = DeliveryClientRegistry(settings)
    registry.register("UberDirect", fake_delivery, FAKE_ENDPOINTS, aliases=("UberEats",))
    yield registry
    await registry.close()


@pytest.fixture
def forwarded():
    """Requests received by the mocked internal webhook endpoints"""
    return []


@pytest.fixture
async def forward_client(forwarded):
    def handler(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        if "fail" in request.url.path:
            return httpx.Response(500, text="receiver exploded")
        return httpx.Response(200, json={"received": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    yield client
    await client.aclose()


@pytest.fixture
def dispatcher(db, registry, forward_client):
    return WebhookDispatcher(db, registry, http_client=forward_client)


async def _create_user(db, email: str, is_admin: bool = False) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), is_admin=is_admin)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def user(db):
    return await _create_user(db, "owner@bistro.test")


@pytest.fixture
async def other_user(db):
    return await _create_user(db, "someone@else.test")


@pytest.fixture
async def admin_user(db):
    return await _create_user(db, "admin@platform.test", is_admin=True)


@pytest.fixture
async def client(session_factory, registry, forward_client):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_dispatcher(db=Depends(get_db)):
        yield WebhookDispatcher(db, registry, http_client=forward_client)

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_registry] = lambda: registry
    fastapi_app.dependency_overrides[get_dispatcher] = override_get_dispatcher

    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def provider_config():
    return ProviderConfig(
        base_url="https://provider.test/v1",
        auth_url="https://auth.provider.test/oauth/token",
        timeout_seconds=5.0,
        token_ttl_seconds=3600,
    )
