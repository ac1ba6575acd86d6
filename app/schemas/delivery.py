"""
Pydantic schemas for delivery requests and normalized provider responses
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


# ============================================================================
# Request Schemas
# ============================================================================

class Location(BaseModel):
    """Pickup or dropoff point"""
    name: Optional[str] = None
    address: str = Field(..., min_length=1)
    phone_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("phone_number", "phoneNumber", "phone")
    )
    instructions: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class DeliveryItem(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    price: float = Field(0, ge=0)


class DeliveryRequest(BaseModel):
    """
    Provider-neutral delivery request.
    pickup/dropoff are optional here so the provider client can reject
    them with its own error instead of a schema error.
    """
    pickup: Optional[Location] = None
    dropoff: Optional[Location] = None
    items: List[DeliveryItem] = Field(default_factory=list)
    order_value: float = Field(
        0, ge=0, validation_alias=AliasChoices("order_value", "orderValue")
    )
    currency: str = Field("USD", min_length=3, max_length=3)


class DeliveryActionRequest(DeliveryRequest):
    """Body of /api/delivery/quote"""
    integration_id: Optional[UUID] = Field(
        None, validation_alias=AliasChoices("integration_id", "integrationId")
    )
    provider: Optional[str] = None


class CreateDeliveryRequest(DeliveryActionRequest):
    """Body of /api/delivery/create"""
    quote_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("quote_id", "quoteId")
    )


# ============================================================================
# Response Schemas
# ============================================================================

class DeliveryQuote(BaseModel):
    id: str
    fee: float
    eta: int = Field(..., description="Minutes until dropoff")
    currency: str
    created_at: datetime
    expires_at: datetime


class Delivery(BaseModel):
    id: str
    status: str
    tracking_url: Optional[str] = None
    fee: float
    currency: str
    created_at: datetime
    pickup_eta: datetime
    dropoff_eta: datetime
    quote_id: Optional[str] = None


class DeliveryStatus(BaseModel):
    id: str
    status: str
    tracking_url: Optional[str] = None


class CancelResult(BaseModel):
    success: bool
    delivery_id: str
    status: Optional[str] = None
    message: str
