# ============================================================================
# FILE: app/api/v1/dashboard/delivery.py
# Direct delivery operations against the user's delivery integration
# ============================================================================
from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from uuid import UUID
import logging

from app.api.dependencies import get_current_user, get_integration_service, get_registry
from app.config.settings import settings
from app.core.exceptions import DeliveryNotCancellableError, ValidationError
from app.models.integration import IntegrationType
from app.models.user import User
from app.schemas.delivery import (
    CancelResult,
    CreateDeliveryRequest,
    Delivery,
    DeliveryActionRequest,
    DeliveryQuote,
    DeliveryRequest,
    DeliveryStatus,
)
from app.services.delivery.base import DeliveryProviderClient
from app.services.delivery.registry import DeliveryClientRegistry
from app.services.integration.integration_service import IntegrationService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["dashboard-delivery"])


async def resolve_client(
        user: User,
        integrations: IntegrationService,
        registry: DeliveryClientRegistry,
        integration_id: Optional[UUID] = None,
        provider: Optional[str] = None
) -> DeliveryProviderClient:
    """Pick the integration by id, else the active one for the provider"""
    if integration_id:
        integration = await integrations.get(user.id, integration_id)
        if integration.type != IntegrationType.DELIVERY:
            raise ValidationError("Integration is not a delivery integration")
        if not integration.is_active:
            raise ValidationError(f"{integration.provider} integration is not active")
    else:
        provider = provider or settings.DEFAULT_DELIVERY_PROVIDER
        integration = await integrations.find_active(user.id, IntegrationType.DELIVERY, provider)
        if integration is None:
            raise ValidationError(f"No active {provider} delivery integration configured")

    return await registry.client_for(integration, integrations.get_credentials(integration))


def _delivery_request(request: DeliveryRequest) -> DeliveryRequest:
    return DeliveryRequest(
        pickup=request.pickup,
        dropoff=request.dropoff,
        items=request.items,
        order_value=request.order_value,
        currency=request.currency,
    )


@router.post("/quote", response_model=DeliveryQuote)
async def get_quote(
        request: DeliveryActionRequest,
        current_user: User = Depends(get_current_user),
        integrations: IntegrationService = Depends(get_integration_service),
        registry: DeliveryClientRegistry = Depends(get_registry)
):
    client = await resolve_client(
        current_user, integrations, registry, request.integration_id, request.provider
    )
    return await client.get_quote(_delivery_request(request))


@router.post("/create", response_model=Delivery, status_code=status.HTTP_201_CREATED)
async def create_delivery(
        request: CreateDeliveryRequest,
        current_user: User = Depends(get_current_user),
        integrations: IntegrationService = Depends(get_integration_service),
        registry: DeliveryClientRegistry = Depends(get_registry)
):
    client = await resolve_client(
        current_user, integrations, registry, request.integration_id, request.provider
    )
    delivery = await client.create_delivery(_delivery_request(request), request.quote_id)
    logger.info(f"User {current_user.id} created {client.provider_name} delivery {delivery.id}")
    return delivery


@router.get("/{delivery_id}/status", response_model=DeliveryStatus)
async def get_delivery_status(
        delivery_id: str,
        integration_id: Optional[UUID] = Query(None, alias="integrationId"),
        provider: Optional[str] = Query(None),
        current_user: User = Depends(get_current_user),
        integrations: IntegrationService = Depends(get_integration_service),
        registry: DeliveryClientRegistry = Depends(get_registry)
):
    client = await resolve_client(current_user, integrations, registry, integration_id, provider)
    return await client.get_delivery_status(delivery_id)


@router.post("/{delivery_id}/cancel", response_model=CancelResult)
async def cancel_delivery(
        delivery_id: str,
        integration_id: Optional[UUID] = Query(None, alias="integrationId"),
        provider: Optional[str] = Query(None),
        current_user: User = Depends(get_current_user),
        integrations: IntegrationService = Depends(get_integration_service),
        registry: DeliveryClientRegistry = Depends(get_registry)
):
    """
    Cancel a delivery. A delivery that already finished (delivered or
    canceled) is answered with success=false instead of an error.
    """
    client = await resolve_client(current_user, integrations, registry, integration_id, provider)
    try:
        return await client.cancel_delivery(delivery_id)
    except DeliveryNotCancellableError as e:
        return CancelResult(
            success=False,
            delivery_id=delivery_id,
            status=e.status,
            message=e.message,
        )
