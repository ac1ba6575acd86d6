# app/services/delivery/uber_direct.py
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from app.core.exceptions import ValidationError
from app.schemas.delivery import (
    Delivery,
    DeliveryQuote,
    DeliveryRequest,
    DeliveryStatus,
    Location,
)
from app.services.delivery.base import DeliveryProviderClient, parse_timestamp


class UberDirectClient(DeliveryProviderClient):
    """
    Uber Direct (DaaS) API client.

    Credentials: customer_id (stored as developer_id by the dashboard),
    client_id and client_secret. Fees come back in cents.
    """

    provider_name = "UberDirect"
    SCOPE = "eats.deliveries"

    STATUS_MAP = {
        "pending": "processing",
        "pickup": "picking_up",
        "pickup_complete": "picked_up",
        "dropoff": "delivering",
        "delivered": "delivered",
        "canceled": "canceled",
        "returned": "canceled",
    }

    def __init__(self, credentials, config, http_client=None):
        self.customer_id = credentials.get("customer_id") or credentials.get("developer_id")
        self.client_id = credentials.get("client_id") or credentials.get("key_id")
        self.client_secret = credentials.get("client_secret") or credentials.get("signing_secret")
        missing = [
            name for name, value in (
                ("customer_id", self.customer_id),
                ("client_id", self.client_id),
                ("client_secret", self.client_secret),
            ) if not value
        ]
        if missing:
            raise ValidationError(f"UberDirect credentials missing: {', '.join(missing)}")
        super().__init__(credentials, config, http_client)

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/customers/{self.customer_id}{path}"

    async def _fetch_token(self) -> Tuple[str, Optional[int]]:
        body = await self._send(
            "authenticate",
            "POST",
            self.config.auth_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
                "scope": self.SCOPE,
            },
        )
        return body.get("access_token"), body.get("expires_in")

    @staticmethod
    def _address(location: Location) -> str:
        # Uber expects the structured address as a JSON encoded string
        return json.dumps({"street_address": [location.address]})

    def _location_fields(self, prefix: str, location: Location) -> Dict[str, Any]:
        return {
            f"{prefix}_name": location.name,
            f"{prefix}_address": self._address(location),
            f"{prefix}_phone_number": location.phone_number,
            f"{prefix}_notes": location.instructions,
            f"{prefix}_latitude": location.latitude,
            f"{prefix}_longitude": location.longitude,
        }

    async def _request_quote(self, token: str, request: DeliveryRequest) -> DeliveryQuote:
        payload = {
            "pickup_address": self._address(request.pickup),
            "dropoff_address": self._address(request.dropoff),
            "pickup_latitude": request.pickup.latitude,
            "pickup_longitude": request.pickup.longitude,
            "dropoff_latitude": request.dropoff.latitude,
            "dropoff_longitude": request.dropoff.longitude,
            "pickup_phone_number": request.pickup.phone_number,
            "dropoff_phone_number": request.dropoff.phone_number,
            "manifest_total_value": int(round(request.order_value * 100)),
        }
        body = await self._send(
            "get_quote", "POST", self._url("/delivery_quotes"), token=token, json=payload
        )
        return DeliveryQuote(
            id=body["id"],
            fee=body["fee"] / 100,
            eta=int(body["duration"]),
            currency=(body.get("currency_type") or body.get("currency") or request.currency).upper(),
            created_at=parse_timestamp(body.get("created") or datetime.now(timezone.utc)),
            expires_at=parse_timestamp(body["expires"]),
        )

    async def _request_create(
            self,
            token: str,
            request: DeliveryRequest,
            quote_id: Optional[str]
    ) -> Delivery:
        payload = {
            **self._location_fields("pickup", request.pickup),
            **self._location_fields("dropoff", request.dropoff),
            "manifest_items": [
                {"name": item.name, "quantity": item.quantity, "price": int(round(item.price * 100))}
                for item in request.items
            ],
            "manifest_total_value": int(round(request.order_value * 100)),
        }
        if quote_id:
            payload["quote_id"] = quote_id

        body = await self._send(
            "create_delivery", "POST", self._url("/deliveries"), token=token, json=payload
        )
        return Delivery(
            id=body["id"],
            status=self.normalize_status(body.get("status", "pending")),
            tracking_url=body.get("tracking_url"),
            fee=body["fee"] / 100,
            currency=(body.get("currency") or request.currency).upper(),
            created_at=parse_timestamp(body["created"]),
            pickup_eta=parse_timestamp(body["pickup_eta"]),
            dropoff_eta=parse_timestamp(body["dropoff_eta"]),
            quote_id=body.get("quote_id") or quote_id,
        )

    async def _request_status(self, token: str, delivery_id: str) -> DeliveryStatus:
        body = await self._send(
            "get_delivery_status", "GET", self._url(f"/deliveries/{delivery_id}"), token=token
        )
        return DeliveryStatus(
            id=body.get("id", delivery_id),
            status=self.normalize_status(body["status"]),
            tracking_url=body.get("tracking_url"),
        )

    async def _request_cancel(self, token: str, delivery_id: str) -> None:
        await self._send(
            "cancel_delivery", "POST", self._url(f"/deliveries/{delivery_id}/cancel"), token=token
        )
