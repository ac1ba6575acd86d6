# app/services/delivery/jetgo.py
from datetime import datetime, timezone
from typing import Optional, Tuple

from app.core.exceptions import ValidationError
from app.schemas.delivery import Delivery, DeliveryQuote, DeliveryRequest, DeliveryStatus
from app.services.delivery.base import DeliveryProviderClient, parse_timestamp


class JetGoClient(DeliveryProviderClient):
    """JetGo courier API client. Credentials: api_key and merchant_id."""

    provider_name = "JetGo"

    STATUS_MAP = {
        "created": "processing",
        "assigned": "picking_up",
        "picked_up": "picked_up",
        "in_progress": "delivering",
        "delivered": "delivered",
        "canceled": "canceled",
        "cancelled": "canceled",
    }

    def __init__(self, credentials, config, http_client=None):
        self.api_key = credentials.get("api_key")
        self.merchant_id = credentials.get("merchant_id")
        if not self.api_key or not self.merchant_id:
            raise ValidationError("JetGo credentials require api_key and merchant_id")
        super().__init__(credentials, config, http_client)

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/v1{path}"

    async def _fetch_token(self) -> Tuple[str, Optional[int]]:
        body = await self._send(
            "authenticate",
            "POST",
            self.config.auth_url or self._url("/auth/token"),
            json={"api_key": self.api_key, "merchant_id": self.merchant_id},
        )
        return body.get("token"), body.get("expires_in")

    @staticmethod
    def _stop(location) -> dict:
        return {
            "name": location.name,
            "address": location.address,
            "phone": location.phone_number,
            "notes": location.instructions,
            "lat": location.latitude,
            "lng": location.longitude,
        }

    def _order(self, request: DeliveryRequest) -> dict:
        return {
            "merchant_id": self.merchant_id,
            "pickup": self._stop(request.pickup),
            "dropoff": self._stop(request.dropoff),
            "items": [item.model_dump() for item in request.items],
            "order_value": request.order_value,
            "currency": request.currency,
        }

    async def _request_quote(self, token: str, request: DeliveryRequest) -> DeliveryQuote:
        body = await self._send(
            "get_quote", "POST", self._url("/quotes"), token=token, json=self._order(request)
        )
        return DeliveryQuote(
            id=body["quote_id"],
            fee=float(body["fee"]),
            eta=int(body["eta_minutes"]),
            currency=body.get("currency", request.currency),
            created_at=parse_timestamp(body.get("created_at") or datetime.now(timezone.utc)),
            expires_at=parse_timestamp(body["expires_at"]),
        )

    async def _request_create(
            self,
            token: str,
            request: DeliveryRequest,
            quote_id: Optional[str]
    ) -> Delivery:
        payload = self._order(request)
        if quote_id:
            payload["quote_id"] = quote_id
        body = await self._send(
            "create_delivery", "POST", self._url("/deliveries"), token=token, json=payload
        )
        return Delivery(
            id=body["delivery_id"],
            status=self.normalize_status(body.get("status", "created")),
            tracking_url=body.get("tracking_url"),
            fee=float(body["fee"]),
            currency=body.get("currency", request.currency),
            created_at=parse_timestamp(body["created_at"]),
            pickup_eta=parse_timestamp(body["pickup_eta"]),
            dropoff_eta=parse_timestamp(body["dropoff_eta"]),
            quote_id=quote_id,
        )

    async def _request_status(self, token: str, delivery_id: str) -> DeliveryStatus:
        body = await self._send(
            "get_delivery_status", "GET", self._url(f"/deliveries/{delivery_id}"), token=token
        )
        return DeliveryStatus(
            id=body.get("delivery_id", delivery_id),
            status=self.normalize_status(body["status"]),
            tracking_url=body.get("tracking_url"),
        )

    async def _request_cancel(self, token: str, delivery_id: str) -> None:
        await self._send(
            "cancel_delivery", "POST", self._url(f"/deliveries/{delivery_id}/cancel"), token=token
        )
