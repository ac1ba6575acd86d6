# app/services/webhook/events.py
"""Event and endpoint catalogs shared by the webhook registry and dispatcher."""

ENDPOINT_TYPES = ("ecommerce", "delivery", "pos", "internal")

EVENT_TYPES = (
    # Ecommerce events
    "order.created",
    "order.updated",
    "order.cancelled",
    "order.fulfilled",
    "order.delivered",
    "product.created",
    "product.updated",
    "product.deleted",
    # Delivery events
    "delivery.assigned",
    "delivery.pickup",
    "delivery.completed",
    "delivery.cancelled",
    "delivery.status",
    "courier.update",
    # Payment events
    "payment.succeeded",
    "payment.failed",
    "payment.refunded",
    # Internal events
    "subscription.created",
    "subscription.updated",
    "subscription.cancelled",
)

# Shopify sends its topic in X-Shopify-Topic ("orders/create")
SHOPIFY_TOPICS = {
    "orders/create": "order.created",
    "orders/updated": "order.updated",
    "orders/cancelled": "order.cancelled",
    "orders/fulfilled": "order.fulfilled",
    "products/create": "product.created",
    "products/update": "product.updated",
    "products/delete": "product.deleted",
}


def normalize_event_type(value: str) -> str:
    value = (value or "").strip()
    return SHOPIFY_TOPICS.get(value.lower(), value)


def is_known_event_type(value: str) -> bool:
    return value in EVENT_TYPES
