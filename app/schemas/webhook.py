from __future__ import annotations
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Literal, Optional
from datetime import datetime
from uuid import UUID

from app.services.webhook.events import EVENT_TYPES

EndpointTypeName = Literal["ecommerce", "delivery", "pos", "internal"]


def _check_event_types(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    unknown = [e for e in value if e not in EVENT_TYPES]
    if unknown:
        raise ValueError(f"Unknown event types: {unknown}")
    # keep order, drop duplicates
    return list(dict.fromkeys(value))


class WebhookCreateRequest(BaseModel):
    """Routing rule definition sent by the dashboard"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    endpoint_url: Optional[str] = Field(
        None, max_length=500, validation_alias=AliasChoices("endpoint_url", "endpointUrl")
    )
    source_type: EndpointTypeName = Field(..., validation_alias=AliasChoices("source_type", "sourceType"))
    source_provider: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("source_provider", "sourceProvider")
    )
    destination_type: EndpointTypeName = Field(
        ..., validation_alias=AliasChoices("destination_type", "destinationType")
    )
    destination_provider: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("destination_provider", "destinationProvider")
    )
    event_types: List[str] = Field(
        ..., min_length=1, validation_alias=AliasChoices("event_types", "eventTypes")
    )
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))

    @field_validator("event_types")
    @classmethod
    def validate_event_types(cls, v: List[str]) -> List[str]:
        return _check_event_types(v)


class WebhookUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    endpoint_url: Optional[str] = Field(
        None, max_length=500, validation_alias=AliasChoices("endpoint_url", "endpointUrl")
    )
    source_type: Optional[EndpointTypeName] = Field(
        None, validation_alias=AliasChoices("source_type", "sourceType")
    )
    source_provider: Optional[str] = Field(
        None, min_length=1, validation_alias=AliasChoices("source_provider", "sourceProvider")
    )
    destination_type: Optional[EndpointTypeName] = Field(
        None, validation_alias=AliasChoices("destination_type", "destinationType")
    )
    destination_provider: Optional[str] = Field(
        None, min_length=1, validation_alias=AliasChoices("destination_provider", "destinationProvider")
    )
    event_types: Optional[List[str]] = Field(
        None, min_length=1, validation_alias=AliasChoices("event_types", "eventTypes")
    )
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("is_active", "isActive"))

    @field_validator("event_types")
    @classmethod
    def validate_event_types(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_event_types(v)


class ProviderWebhookSetupRequest(BaseModel):
    """One-click setup: forward store orders to an existing delivery integration"""
    source_type: EndpointTypeName = Field(
        "ecommerce", validation_alias=AliasChoices("source_type", "sourceType")
    )
    source_provider: str = Field(
        "Shopify", min_length=1, validation_alias=AliasChoices("source_provider", "sourceProvider")
    )
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class WebhookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    secret_key: str
    endpoint_url: Optional[str] = None
    callback_url: Optional[str] = None
    source_type: str
    source_provider: str
    destination_type: str
    destination_provider: str
    event_types: List[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class WebhookLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    webhook_id: UUID
    event_type: str
    event_id: Optional[str] = None
    request_payload: Optional[Any] = None
    response_payload: Optional[Any] = None
    status_code: int
    error_message: Optional[str] = None
    processing_time_ms: int
    created_at: datetime


class InboundEvent(BaseModel):
    """Normalized inbound event handed to the dispatcher"""
    source_type: str
    source_provider: str
    event_type: str
    event_id: Optional[str] = None
    payload: dict = Field(default_factory=dict)


class WebhookDispatchOutcome(BaseModel):
    webhook_id: UUID
    webhook_name: str
    success: bool
    status_code: int
    response_payload: Optional[Any] = None
    error_message: Optional[str] = None
    processing_time_ms: int = 0
    log_id: Optional[UUID] = None
    duplicate: bool = False


class DispatchResult(BaseModel):
    event_type: str
    event_id: Optional[str] = None
    matched: int
    succeeded: int
    failed: int
    results: List[WebhookDispatchOutcome] = Field(default_factory=list)


class WebhookTestResponse(BaseModel):
    success: bool
    message: str
    result: Optional[DispatchResult] = None
