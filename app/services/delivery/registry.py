# app/services/delivery/registry.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type
from uuid import UUID

import httpx

from app.config.settings import Settings
from app.core.exceptions import UnsupportedProviderError
from app.models.integration import Integration
from app.services.delivery.base import DeliveryProviderClient, ProviderConfig
from app.services.delivery.jetgo import JetGoClient
from app.services.delivery.uber_direct import UberDirectClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEndpoints:
    live_url: str
    sandbox_url: str
    auth_url: Optional[str] = None


class DeliveryClientRegistry:
    """
    Maps provider names to client implementations and keeps one client per
    integration, so a client's token cache is reused across requests.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client
        self._implementations: Dict[str, Tuple[Type[DeliveryProviderClient], ProviderEndpoints]] = {}
        self._aliases: Dict[str, str] = {}
        self._cache: Dict[UUID, Tuple[datetime, DeliveryProviderClient]] = {}
        # Replaced clients may still be in use by in-flight requests
        self._retired: List[DeliveryProviderClient] = []

        self.register(
            "UberDirect",
            UberDirectClient,
            ProviderEndpoints(
                live_url=settings.UBER_DIRECT_LIVE_URL,
                sandbox_url=settings.UBER_DIRECT_SANDBOX_URL,
                auth_url=settings.UBER_DIRECT_AUTH_URL,
            ),
            aliases=("UberEats", "Uber"),
        )
        self.register(
            "JetGo",
            JetGoClient,
            ProviderEndpoints(
                live_url=settings.JETGO_LIVE_URL,
                sandbox_url=settings.JETGO_SANDBOX_URL,
            ),
        )

    def register(
            self,
            name: str,
            client_cls: Type[DeliveryProviderClient],
            endpoints: ProviderEndpoints,
            aliases: Iterable[str] = ()
    ):
        """Register (or replace) the implementation behind a provider name"""
        self._implementations[name] = (client_cls, endpoints)
        for alias in (name, *aliases):
            self._aliases[alias.lower()] = name

    def canonical_name(self, provider: str) -> str:
        name = self._aliases.get((provider or "").lower())
        if name is None:
            raise UnsupportedProviderError(provider)
        return name

    def supports(self, provider: str) -> bool:
        return (provider or "").lower() in self._aliases

    def provider_config(self, provider: str, environment: str) -> ProviderConfig:
        _, endpoints = self._implementations[self.canonical_name(provider)]
        return ProviderConfig(
            base_url=endpoints.live_url if environment == "live" else endpoints.sandbox_url,
            auth_url=endpoints.auth_url,
            timeout_seconds=self.settings.PROVIDER_REQUEST_TIMEOUT_SECONDS,
            token_ttl_seconds=self.settings.PROVIDER_TOKEN_TTL_SECONDS,
        )

    def build(
            self,
            provider: str,
            credentials: Dict[str, Any],
            environment: str = "sandbox"
    ) -> DeliveryProviderClient:
        """New, uncached client instance"""
        client_cls, _ = self._implementations[self.canonical_name(provider)]
        return client_cls(
            credentials,
            self.provider_config(provider, environment),
            http_client=self._http_client,
        )

    async def client_for(
            self,
            integration: Integration,
            credentials: Dict[str, Any]
    ) -> DeliveryProviderClient:
        """Cached client for an integration; rebuilt once the integration changes"""
        cached = self._cache.get(integration.id)
        if cached is not None:
            version, client = cached
            if version == integration.updated_at:
                return client
            self._retired.append(client)

        client = self.build(integration.provider, credentials, integration.environment)
        self._cache[integration.id] = (integration.updated_at, client)
        logger.info(f"Built {client.provider_name} client for integration {integration.id}")
        return client

    async def discard(self, integration_id: UUID):
        cached = self._cache.pop(integration_id, None)
        if cached is not None:
            self._retired.append(cached[1])

    async def close(self):
        for _, client in self._cache.values():
            await client.close()
        for client in self._retired:
            await client.close()
        self._cache.clear()
        self._retired.clear()
