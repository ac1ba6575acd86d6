# app/services/webhook/translators.py
"""
Turns raw inbound webhook bodies into normalized events, and ecommerce
order payloads into provider-neutral delivery requests.
"""
from typing import Any, Dict, List, Mapping, Optional

import pydantic

from app.core.exceptions import ValidationError
from app.models.webhook import Webhook
from app.schemas.delivery import DeliveryItem, DeliveryRequest, Location
from app.schemas.webhook import InboundEvent
from app.services.webhook.events import ENDPOINT_TYPES, is_known_event_type, normalize_event_type

EVENT_TYPE_HEADERS = ("x-event-type", "x-shopify-topic")
EVENT_ID_HEADERS = ("x-webhook-event-id", "x-shopify-webhook-id")


def _lower_keys(headers: Mapping[str, str]) -> Dict[str, str]:
    return {k.lower(): v for k, v in (headers or {}).items()}


def parse_inbound_event(
        webhook: Webhook,
        headers: Mapping[str, str],
        body: Dict[str, Any]
) -> InboundEvent:
    """Read event type, id and payload from body first, then headers"""
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object")
    headers = _lower_keys(headers)

    raw_type = body.get("event_type") or body.get("event")
    if not raw_type:
        raw_type = next((headers[h] for h in EVENT_TYPE_HEADERS if headers.get(h)), None)
    if not raw_type or not isinstance(raw_type, str):
        raise ValidationError("Missing event type")

    event_type = normalize_event_type(raw_type)
    if not is_known_event_type(event_type):
        raise ValidationError(f"Unknown event type: {raw_type}")

    event_id = next((headers[h] for h in EVENT_ID_HEADERS if headers.get(h)), None)
    if event_id is None and body.get("event_id") is not None:
        event_id = str(body["event_id"])

    payload = body.get("payload")
    if payload is None:
        payload = body.get("data")
    if payload is None:
        payload = body
    if not isinstance(payload, dict):
        raise ValidationError("Event payload must be a JSON object")

    source_type = body.get("source_type") or webhook.source_type
    source_provider = body.get("source_provider") or webhook.source_provider
    if not isinstance(source_type, str) or source_type not in ENDPOINT_TYPES:
        raise ValidationError(f"Invalid source type: {source_type}")
    if not isinstance(source_provider, str):
        raise ValidationError("Source provider must be a string")

    return InboundEvent(
        source_type=source_type,
        source_provider=source_provider,
        event_type=event_type,
        event_id=event_id,
        payload=payload,
    )


# ============================================================================
# Order -> delivery
# ============================================================================

def _shopify_address(address: Dict[str, Any]) -> Dict[str, Any]:
    name = address.get("name") or " ".join(
        p for p in (address.get("first_name"), address.get("last_name")) if p
    )
    region = " ".join(p for p in (address.get("province_code") or address.get("province"), address.get("zip")) if p)
    street = ", ".join(
        p for p in (address.get("address1"), address.get("address2"), address.get("city"), region) if p
    )
    return {
        "name": name or None,
        "address": street,
        "phone_number": address.get("phone"),
        "latitude": address.get("latitude"),
        "longitude": address.get("longitude"),
    }


def _location(value: Any, role: str) -> Optional[Location]:
    if value is None:
        return None
    if isinstance(value, str):
        value = {"address": value}
    if not isinstance(value, dict):
        raise ValidationError(f"Invalid {role} location")
    try:
        return Location.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {role} location: {e.errors()[0]['msg']}") from e


def _items(payload: Dict[str, Any]) -> List[DeliveryItem]:
    raw_items = payload.get("items") or payload.get("line_items") or []
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        try:
            items.append(DeliveryItem(
                name=raw.get("name") or raw.get("title") or "Item",
                quantity=int(raw.get("quantity") or 1),
                price=float(raw.get("price") or 0),
            ))
        except (TypeError, ValueError, pydantic.ValidationError) as e:
            raise ValidationError(f"Invalid order item: {raw}") from e
    return items


def order_to_delivery_request(
        payload: Dict[str, Any],
        destination_settings: Optional[Dict[str, Any]] = None
) -> DeliveryRequest:
    """
    Build a DeliveryRequest from an order payload.

    Accepts our own shape (pickup / dropoff / items / order_value) as well as
    Shopify's order body (shipping_address / line_items / total_price). The
    pickup falls back to the restaurant address saved on the delivery
    integration.
    """
    destination_settings = destination_settings or {}

    pickup = _location(
        payload.get("pickup") or payload.get("store") or destination_settings.get("pickup"),
        "pickup",
    )

    dropoff_raw = payload.get("dropoff") or payload.get("customer")
    if dropoff_raw is None and isinstance(payload.get("shipping_address"), dict):
        dropoff_raw = _shopify_address(payload["shipping_address"])
    dropoff = _location(dropoff_raw, "dropoff")

    if pickup is None:
        raise ValidationError("Order has no pickup location and none is configured")
    if dropoff is None:
        raise ValidationError("Order has no dropoff location")

    raw_value = payload.get("order_value")
    if raw_value is None:
        raw_value = payload.get("total_price")
    if raw_value is None:
        raw_value = payload.get("total")
    items = _items(payload)
    try:
        order_value = float(raw_value) if raw_value is not None else sum(i.price * i.quantity for i in items)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid order value: {raw_value}") from e

    currency = payload.get("currency") or destination_settings.get("currency") or "USD"
    try:
        return DeliveryRequest(
            pickup=pickup,
            dropoff=dropoff,
            items=items,
            order_value=order_value,
            currency=str(currency).upper(),
        )
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid order: {e.errors()[0]['msg']}") from e
