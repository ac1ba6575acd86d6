# ============================================================================
# FILE: app/api/v1/dashboard/webhooks.py
# Session authenticated endpoints - thin HTTP layer
# IMPORTANT: Specific routes MUST come before parameterized routes
# ============================================================================
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID

from app.api.dependencies import (
    get_current_user,
    get_dispatcher,
    get_integration_service,
    get_webhook_log_service,
    get_webhook_service,
)
from app.models.user import User
from app.models.webhook import Webhook
from app.schemas.webhook import (
    ProviderWebhookSetupRequest,
    WebhookCreateRequest,
    WebhookLogResponse,
    WebhookResponse,
    WebhookTestResponse,
    WebhookUpdateRequest,
)
from app.services.integration.integration_service import IntegrationService
from app.services.webhook.dispatcher import WebhookDispatcher
from app.services.webhook.webhook_log_service import WebhookLogService
from app.services.webhook.webhook_service import WebhookService

router = APIRouter(tags=["dashboard-webhooks"])


def to_response(webhook: Webhook, origin: Optional[str] = None) -> WebhookResponse:
    response = WebhookResponse.model_validate(webhook)
    response.callback_url = WebhookService.build_callback_url(webhook, origin)
    return response


@router.get("", response_model=List[WebhookResponse])
async def list_webhooks(
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service)
):
    return [to_response(w) for w in await service.list_by_user(current_user.id)]


@router.post("", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
async def create_webhook(
        request: WebhookCreateRequest,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service)
):
    webhook = await service.create(user_id=current_user.id, **request.model_dump())
    return to_response(webhook)


# ========== PROVIDER SETUP ==========

@router.post(
    "/setup/{provider}",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED
)
async def setup_provider_webhook(
        provider: str,
        request: Optional[ProviderWebhookSetupRequest] = None,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service),
        integrations: IntegrationService = Depends(get_integration_service)
):
    """
    Create the store -> delivery webhook for an active delivery integration.
    The returned callback_url is what gets pasted into the store admin.
    """
    request = request or ProviderWebhookSetupRequest()
    webhook = await service.setup_provider_webhook(
        integrations,
        current_user.id,
        provider,
        source_type=request.source_type,
        source_provider=request.source_provider,
        name=request.name,
    )
    return to_response(webhook)


# ========== SINGLE WEBHOOK ==========

@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
        webhook_id: UUID,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service)
):
    webhook = await service.get(current_user.id, webhook_id, current_user.is_admin)
    return to_response(webhook)


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
        webhook_id: UUID,
        request: WebhookUpdateRequest,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service)
):
    webhook = await service.update(
        current_user.id,
        webhook_id,
        request.model_dump(exclude_unset=True),
        current_user.is_admin,
    )
    return to_response(webhook)


@router.delete("/{webhook_id}")
async def delete_webhook(
        webhook_id: UUID,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service)
):
    await service.delete(current_user.id, webhook_id, current_user.is_admin)
    return {"success": True}


@router.post("/{webhook_id}/test", response_model=WebhookTestResponse)
async def test_webhook(
        webhook_id: UUID,
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service),
        dispatcher: WebhookDispatcher = Depends(get_dispatcher)
):
    """Send a sample event through the real forwarding path; the attempt is logged"""
    webhook = await service.get(current_user.id, webhook_id, current_user.is_admin)
    return await dispatcher.test_webhook(webhook)


@router.get("/{webhook_id}/logs", response_model=List[WebhookLogResponse])
async def get_webhook_logs(
        webhook_id: UUID,
        limit: int = Query(100, ge=1, le=1000),
        current_user: User = Depends(get_current_user),
        service: WebhookService = Depends(get_webhook_service),
        logs: WebhookLogService = Depends(get_webhook_log_service)
):
    webhook = await service.get(current_user.id, webhook_id, current_user.is_admin)
    return await logs.list_by_webhook(webhook.id, limit)
