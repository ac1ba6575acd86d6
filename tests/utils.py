from typing import Any, Dict, Optional

from app.api.dependencies import create_access_token
from app.models import User


def make_headers(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def shopify_order(**overrides: Any) -> Dict[str, Any]:
    """Trimmed Shopify orders/create body"""
    order: Dict[str, Any] = {
        "id": 820982911946154508,
        "total_price": "25.99",
        "currency": "USD",
        "line_items": [
            {"title": "Margherita Pizza", "quantity": 1, "price": "18.99"},
            {"title": "Garlic Knots", "quantity": 2, "price": "3.50"},
        ],
        "shipping_address": {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "address1": "456 Elm St",
            "city": "San Francisco",
            "province_code": "CA",
            "zip": "94110",
            "phone": "+14155550123",
        },
    }
    order.update(overrides)
    return order


def delivery_integration_body(
        provider: str = "UberDirect",
        is_active: bool = True,
        settings: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {
        "type": "delivery",
        "provider": provider,
        "isActive": is_active,
        "credentials": {
            "customer_id": "cust-123",
            "client_id": "client-abc",
            "client_secret": "s3cr3t",
        },
        "settings": settings if settings is not None else {
            "pickup": {"name": "Bistro 9", "address": "123 Main St", "phone_number": "+14155550100"}
        },
    }
