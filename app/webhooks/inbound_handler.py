# app/webhooks/inbound_handler.py
"""Inbound webhook receiver - authenticated by the secret in the URL"""
import json
import logging
from fastapi import APIRouter, Depends, Request

from app.api.dependencies import get_dispatcher
from app.core.exceptions import ValidationError
from app.schemas.webhook import DispatchResult
from app.services.webhook.dispatcher import WebhookDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{secret_key}", response_model=DispatchResult)
async def handle_inbound_webhook(
        secret_key: str,
        request: Request,
        dispatcher: WebhookDispatcher = Depends(get_dispatcher)
):
    """
    Receive an event from a store, POS or delivery provider and forward it
    to every matching webhook. Per-webhook failures are reported in the
    result and the webhook logs, not as an HTTP error.
    """
    raw_body = await request.body()
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        # Covers bad JSON and bad UTF-8; a bad secret is still a 401
        await dispatcher.authenticate(secret_key)
        raise ValidationError("Webhook body must be valid JSON")

    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.info(f"Inbound webhook call received (correlation id: {correlation_id})")

    return await dispatcher.dispatch_inbound(
        secret_key,
        dict(request.headers),
        body,
        raw_body=raw_body,
    )
