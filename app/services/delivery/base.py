# app/services/delivery/base.py
"""
Delivery provider client interface.

Each provider implementation only knows how to fetch a token and how to
shape / parse its own HTTP calls. Token caching, request normalization,
timeouts and the mapping of transport problems to IntegrationFailure live
here so every provider behaves the same way.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.exceptions import (
    DeliveryNotCancellableError,
    IntegrationFailure,
    ProviderAuthenticationError,
    ValidationError,
)
from app.schemas.delivery import (
    CancelResult,
    Delivery,
    DeliveryQuote,
    DeliveryRequest,
    DeliveryStatus,
    Location,
)

logger = logging.getLogger(__name__)

# Normalized delivery status vocabulary
DELIVERY_STATUSES = (
    "processing",
    "picking_up",
    "picked_up",
    "delivering",
    "delivered",
    "canceled",
)
TERMINAL_STATUSES = frozenset({"delivered", "canceled"})

# Used when the caller does not send coordinates (San Francisco)
DEFAULT_PICKUP_COORDINATES = (37.7749, -122.4194)
DEFAULT_DROPOFF_COORDINATES = (37.7833, -122.4167)


@dataclass(frozen=True)
class ProviderConfig:
    """Everything a client needs besides credentials; built from settings"""
    base_url: str
    auth_url: Optional[str] = None
    timeout_seconds: float = 15.0
    token_ttl_seconds: int = 3600


def normalize_location(location: Optional[Location], role: str) -> Location:
    """Fill optional contact/geo fields so providers never see missing values"""
    if location is None:
        raise ValidationError(f"{role} location is required")

    if role == "pickup":
        default_name, (default_lat, default_lng) = "Pickup", DEFAULT_PICKUP_COORDINATES
    else:
        default_name, (default_lat, default_lng) = "Customer", DEFAULT_DROPOFF_COORDINATES

    latitude, longitude = location.latitude, location.longitude
    if latitude is None or longitude is None:
        latitude, longitude = default_lat, default_lng

    return Location(
        name=location.name or default_name,
        address=location.address,
        phone_number=location.phone_number or "",
        instructions=location.instructions or "",
        latitude=latitude,
        longitude=longitude,
    )


def normalize_request(request: DeliveryRequest) -> DeliveryRequest:
    return DeliveryRequest(
        pickup=normalize_location(request.pickup, "pickup"),
        dropoff=normalize_location(request.dropoff, "dropoff"),
        items=list(request.items),
        order_value=request.order_value,
        currency=(request.currency or "USD").upper(),
    )


def parse_timestamp(value: Any) -> datetime:
    """Parse provider ISO-8601 timestamps, always returning an aware datetime"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DeliveryProviderClient(ABC):
    """quote / create / status / cancel against one external delivery API"""

    provider_name = "unknown"

    # Maps the provider's own status strings onto DELIVERY_STATUSES
    STATUS_MAP: Dict[str, str] = {}

    def __init__(
            self,
            credentials: Dict[str, Any],
            config: ProviderConfig,
            http_client: Optional[httpx.AsyncClient] = None
    ):
        self.credentials = credentials
        self.config = config
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds,
            follow_redirects=True
        )
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _token_is_valid(self) -> bool:
        return (
            self._token is not None
            and self._token_expires_at is not None
            and self._token_expires_at > datetime.now(timezone.utc)
        )

    async def authenticate(self) -> str:
        """
        Return a bearer token, fetching a new one only when the cached one
        has expired. Concurrent callers wait on the same refresh.
        """
        if self._token_is_valid():
            return self._token

        async with self._auth_lock:
            if self._token_is_valid():
                return self._token

            try:
                token, expires_in = await self._call("authenticate", self._fetch_token())
            except ProviderAuthenticationError:
                raise
            except IntegrationFailure as e:
                raise ProviderAuthenticationError(
                    self.provider_name, e.reason, e.provider_status
                ) from e
            if not token:
                raise ProviderAuthenticationError(self.provider_name, "no access token in response")

            ttl = expires_in or self.config.token_ttl_seconds
            self._token = token
            self._token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            logger.info(f"{self.provider_name} authentication successful, token expires in {ttl} seconds")
            return token

    def invalidate_token(self):
        self._token = None
        self._token_expires_at = None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_quote(self, request: DeliveryRequest) -> DeliveryQuote:
        normalized = normalize_request(request)
        token = await self.authenticate()
        logger.info(
            f"Getting {self.provider_name} quote from {normalized.pickup.address} "
            f"to {normalized.dropoff.address}"
        )
        requested_at = datetime.now(timezone.utc)
        quote = await self._call("get_quote", self._request_quote(token, normalized))
        if quote.expires_at <= requested_at:
            raise IntegrationFailure(
                self.provider_name, "get_quote", "quote already expired on arrival"
            )
        if quote.fee < 0 or quote.eta <= 0:
            raise IntegrationFailure(self.provider_name, "get_quote", "quote has invalid fee or eta")
        return quote

    async def create_delivery(
            self,
            request: DeliveryRequest,
            quote_id: Optional[str] = None
    ) -> Delivery:
        normalized = normalize_request(request)
        token = await self.authenticate()
        logger.info(
            f"Creating {self.provider_name} delivery from {normalized.pickup.name} "
            f"to {normalized.dropoff.name} (quote: {quote_id or 'none'})"
        )
        delivery = await self._call(
            "create_delivery", self._request_create(token, normalized, quote_id)
        )
        if delivery.pickup_eta >= delivery.dropoff_eta:
            raise IntegrationFailure(
                self.provider_name, "create_delivery", "pickup ETA is not before dropoff ETA"
            )
        # Newly created deliveries always start in the first status
        return delivery.model_copy(update={"status": "processing"})

    async def get_delivery_status(self, delivery_id: str) -> DeliveryStatus:
        if not delivery_id:
            raise ValidationError("delivery id is required")
        token = await self.authenticate()
        return await self._call("get_delivery_status", self._request_status(token, delivery_id))

    async def cancel_delivery(self, delivery_id: str) -> CancelResult:
        current = await self.get_delivery_status(delivery_id)
        if current.status in TERMINAL_STATUSES:
            raise DeliveryNotCancellableError(self.provider_name, delivery_id, current.status)

        token = await self.authenticate()
        logger.info(f"Canceling {self.provider_name} delivery {delivery_id} (status: {current.status})")
        await self._call("cancel_delivery", self._request_cancel(token, delivery_id))
        return CancelResult(
            success=True,
            delivery_id=delivery_id,
            status="canceled",
            message="Delivery canceled",
        )

    async def close(self):
        """Close the HTTP client."""
        if self._owns_http_client:
            await self.http_client.aclose()

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def normalize_status(self, raw_status: Any) -> str:
        status = self.STATUS_MAP.get(str(raw_status).lower())
        if status is None:
            raise ValueError(f"unknown delivery status {raw_status!r}")
        return status

    async def _call(self, operation: str, coro):
        """Run one provider operation, turning every failure into IntegrationFailure"""
        try:
            return await coro
        except IntegrationFailure:
            raise
        except httpx.TimeoutException as e:
            raise IntegrationFailure(
                self.provider_name, operation, f"request timeout ({self.config.timeout_seconds}s)"
            ) from e
        except httpx.RequestError as e:
            raise IntegrationFailure(self.provider_name, operation, f"request error: {str(e)[:200]}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise IntegrationFailure(self.provider_name, operation, f"malformed response: {e}") from e

    async def _send(
            self,
            operation: str,
            method: str,
            url: str,
            token: Optional[str] = None,
            **kwargs
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body of a 2xx answer"""
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await self.http_client.request(method, url, headers=headers, **kwargs)

        if response.status_code == 401 and token:
            # token revoked early; next call re-authenticates
            self.invalidate_token()
        if not 200 <= response.status_code < 300:
            raise IntegrationFailure(
                self.provider_name,
                operation,
                f"HTTP {response.status_code}: {response.text[:200]}",
                provider_status=response.status_code,
            )
        if not response.content:
            return {}
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("expected a JSON object")
        return body

    # ------------------------------------------------------------------
    # Provider specific
    # ------------------------------------------------------------------

    @abstractmethod
    async def _fetch_token(self) -> Tuple[str, Optional[int]]:
        """Return (access_token, expires_in_seconds)"""

    @abstractmethod
    async def _request_quote(self, token: str, request: DeliveryRequest) -> DeliveryQuote:
        ...

    @abstractmethod
    async def _request_create(
            self,
            token: str,
            request: DeliveryRequest,
            quote_id: Optional[str]
    ) -> Delivery:
        ...

    @abstractmethod
    async def _request_status(self, token: str, delivery_id: str) -> DeliveryStatus:
        ...

    @abstractmethod
    async def _request_cancel(self, token: str, delivery_id: str) -> None:
        ...
