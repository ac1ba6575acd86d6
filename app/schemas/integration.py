"""
Pydantic schemas for Integration validation and serialization
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

IntegrationTypeName = Literal["delivery", "pos", "ecommerce"]
EnvironmentName = Literal["sandbox", "live"]


class IntegrationCreateRequest(BaseModel):
    type: IntegrationTypeName
    provider: str = Field(..., min_length=1, max_length=100)
    credentials: Dict[str, Any] = Field(default_factory=dict)
    environment: EnvironmentName = "sandbox"
    is_active: bool = Field(False, validation_alias=AliasChoices("is_active", "isActive"))
    webhook_url: Optional[str] = Field(
        None, max_length=500, validation_alias=AliasChoices("webhook_url", "webhookUrl")
    )
    settings: Dict[str, Any] = Field(default_factory=dict)


class IntegrationUpdateRequest(BaseModel):
    """
    Partial update. Only send what you want to change.
    credentials, when sent, replace the stored set entirely.
    """
    provider: Optional[str] = Field(None, min_length=1, max_length=100)
    credentials: Optional[Dict[str, Any]] = None
    environment: Optional[EnvironmentName] = None
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    webhook_url: Optional[str] = Field(
        None, max_length=500, validation_alias=AliasChoices("webhook_url", "webhookUrl")
    )
    settings: Optional[Dict[str, Any]] = None


class IntegrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    type: str
    provider: str
    environment: str
    is_active: bool
    webhook_url: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    credential_fields: List[str] = Field(
        default_factory=list, description="Names of stored credential fields, never values"
    )
    created_at: datetime
    updated_at: datetime


class IntegrationTestResponse(BaseModel):
    success: bool
    message: str
