# ============================================================================
# FILE: app/api/v1/admin/webhooks.py
# Admin-only overview of every user's webhooks
# ============================================================================
from fastapi import APIRouter, Depends, Query
from typing import List

from app.api.dependencies import get_webhook_service, require_admin
from app.api.v1.dashboard.webhooks import to_response
from app.models.user import User
from app.schemas.webhook import WebhookResponse
from app.services.webhook.webhook_service import WebhookService

router = APIRouter(prefix="/admin/webhooks", tags=["admin-webhooks"])


@router.get("", response_model=List[WebhookResponse])
async def list_all_webhooks(
        limit: int = Query(500, ge=1, le=5000),
        admin: User = Depends(require_admin),
        service: WebhookService = Depends(get_webhook_service)
):
    return [to_response(w) for w in await service.list_all(limit)]
