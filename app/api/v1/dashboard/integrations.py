# ============================================================================
# FILE: app/api/v1/dashboard/integrations.py
# Session authenticated endpoints - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID

from app.api.dependencies import get_current_user, get_integration_service
from app.core.exceptions import AppError
from app.models.integration import Integration
from app.models.user import User
from app.schemas.integration import (
    IntegrationCreateRequest,
    IntegrationResponse,
    IntegrationTestResponse,
    IntegrationUpdateRequest,
)
from app.services.integration.integration_service import IntegrationService

router = APIRouter(tags=["dashboard-integrations"])


def _to_response(service: IntegrationService, integration: Integration) -> IntegrationResponse:
    response = IntegrationResponse.model_validate(integration)
    try:
        response.credential_fields = service.credential_fields(integration)
    except AppError:
        # Unreadable credentials must not hide the rest of the listing
        response.credential_fields = []
    return response


@router.get("", response_model=List[IntegrationResponse])
async def list_integrations(
        type: Optional[str] = Query(None, description="delivery, pos or ecommerce"),
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    integrations = await service.list_by_user(current_user.id, type)
    return [_to_response(service, i) for i in integrations]


@router.post("", response_model=IntegrationResponse, status_code=status.HTTP_201_CREATED)
async def create_integration(
        request: IntegrationCreateRequest,
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    integration = await service.create(
        user_id=current_user.id,
        type=request.type,
        provider=request.provider,
        credentials=request.credentials,
        settings=request.settings,
        environment=request.environment,
        is_active=request.is_active,
        webhook_url=request.webhook_url,
    )
    return _to_response(service, integration)


@router.get("/{integration_id}", response_model=IntegrationResponse)
async def get_integration(
        integration_id: UUID,
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    integration = await service.get(current_user.id, integration_id)
    return _to_response(service, integration)


@router.patch("/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
        integration_id: UUID,
        request: IntegrationUpdateRequest,
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    integration = await service.update(
        current_user.id,
        integration_id,
        request.model_dump(exclude_unset=True),
    )
    return _to_response(service, integration)


@router.delete("/{integration_id}")
async def delete_integration(
        integration_id: UUID,
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    await service.delete(current_user.id, integration_id)
    return {"success": True}


@router.post("/{integration_id}/test", response_model=IntegrationTestResponse)
async def test_integration(
        integration_id: UUID,
        current_user: User = Depends(get_current_user),
        service: IntegrationService = Depends(get_integration_service)
):
    """Check credentials against the provider without saving anything"""
    return await service.test(current_user.id, integration_id)
