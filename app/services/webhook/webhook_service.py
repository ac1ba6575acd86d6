# app/services/webhook/webhook_service.py
import hashlib
import hmac
import logging
import secrets
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.integration import IntegrationType
from app.models.webhook import Webhook
from app.models.webhook_log import WebhookLog
from app.services.integration.integration_service import IntegrationService
from app.services.webhook.events import ENDPOINT_TYPES, EVENT_TYPES

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "endpoint_url",
    "source_type",
    "source_provider",
    "destination_type",
    "destination_provider",
    "event_types",
    "is_active",
)


class WebhookService:
    """Service for managing webhook routing rules and their secrets"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _validate(
            source_type: Optional[str] = None,
            destination_type: Optional[str] = None,
            event_types: Optional[List[str]] = None,
            check_events: bool = False
    ):
        for label, value in (("source", source_type), ("destination", destination_type)):
            if value is not None and value not in ENDPOINT_TYPES:
                raise ValidationError(f"Invalid {label} type: {value}")

        if check_events or event_types is not None:
            if not event_types:
                raise ValidationError("At least one event type is required")
            invalid = [e for e in event_types if e not in EVENT_TYPES]
            if invalid:
                raise ValidationError(f"Invalid event types: {invalid}")

    @staticmethod
    def generate_secret() -> str:
        return secrets.token_urlsafe(32)

    async def create(
            self,
            user_id: UUID,
            name: str,
            source_type: str,
            source_provider: str,
            destination_type: str,
            destination_provider: str,
            event_types: List[str],
            description: Optional[str] = None,
            endpoint_url: Optional[str] = None,
            is_active: bool = True
    ) -> Webhook:
        self._validate(source_type, destination_type, event_types, check_events=True)
        if not name:
            raise ValidationError("name is required")

        webhook = Webhook(
            user_id=user_id,
            name=name,
            description=description,
            secret_key=self.generate_secret(),
            endpoint_url=endpoint_url,
            source_type=source_type,
            source_provider=source_provider,
            destination_type=destination_type,
            destination_provider=destination_provider,
            event_types=list(dict.fromkeys(event_types)),
            is_active=is_active,
        )
        self.db.add(webhook)
        await self.db.commit()
        await self.db.refresh(webhook)

        logger.info(
            f"Created webhook {webhook.id} {source_type}/{source_provider} -> "
            f"{destination_type}/{destination_provider} for user {user_id}"
        )
        return webhook

    async def get(self, user_id: UUID, webhook_id: UUID, is_admin: bool = False) -> Webhook:
        webhook = await self.db.get(Webhook, webhook_id)
        if webhook is None:
            raise NotFoundError("Webhook not found")
        if webhook.user_id != user_id and not is_admin:
            raise AuthorizationError("Webhook not found")
        return webhook

    async def list_by_user(self, user_id: UUID) -> List[Webhook]:
        result = await self.db.execute(
            select(Webhook)
            .where(Webhook.user_id == user_id)
            .order_by(Webhook.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self, limit: int = 500) -> List[Webhook]:
        """Every user's webhooks, for the admin overview"""
        result = await self.db.execute(
            select(Webhook).order_by(Webhook.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_active_for_source(self, user_id: UUID, source_type: str) -> List[Webhook]:
        result = await self.db.execute(
            select(Webhook).where(
                Webhook.user_id == user_id,
                Webhook.source_type == source_type,
                Webhook.is_active == True
            ).order_by(Webhook.created_at)
        )
        return list(result.scalars().all())

    async def update(
            self,
            user_id: UUID,
            webhook_id: UUID,
            fields: Dict[str, Any],
            is_admin: bool = False
    ) -> Webhook:
        webhook = await self.get(user_id, webhook_id, is_admin)
        self._validate(
            fields.get("source_type"),
            fields.get("destination_type"),
            fields.get("event_types"),
        )

        for name in UPDATABLE_FIELDS:
            if name in fields and fields[name] is not None:
                setattr(webhook, name, fields[name])

        await self.db.commit()
        await self.db.refresh(webhook)
        logger.info(f"Updated webhook {webhook.id}")
        return webhook

    async def toggle_active(
            self,
            user_id: UUID,
            webhook_id: UUID,
            is_active: bool,
            is_admin: bool = False
    ) -> Webhook:
        return await self.update(user_id, webhook_id, {"is_active": is_active}, is_admin)

    async def delete(self, user_id: UUID, webhook_id: UUID, is_admin: bool = False):
        webhook = await self.get(user_id, webhook_id, is_admin)
        # Explicit so SQLite (no FK enforcement) behaves like Postgres
        await self.db.execute(delete(WebhookLog).where(WebhookLog.webhook_id == webhook.id))
        await self.db.delete(webhook)
        await self.db.commit()
        logger.info(f"Deleted webhook {webhook_id} and its logs")

    async def get_by_secret(self, secret_key: str) -> Optional[Webhook]:
        if not secret_key:
            return None
        result = await self.db.execute(
            select(Webhook).where(Webhook.secret_key == secret_key)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def build_callback_url(webhook: Webhook, origin: Optional[str] = None) -> str:
        origin = (origin or get_settings().PUBLIC_BASE_URL).rstrip("/")
        return f"{origin}/api/webhook/{webhook.secret_key}"

    async def setup_provider_webhook(
            self,
            integrations: IntegrationService,
            user_id: UUID,
            provider: str,
            source_type: str = "ecommerce",
            source_provider: str = "Shopify",
            name: Optional[str] = None
    ) -> Webhook:
        """
        One-click routing from a store to a delivery provider. The delivery
        integration must already exist and be active.
        """
        integration = await integrations.find_active(user_id, IntegrationType.DELIVERY, provider)
        if integration is None:
            raise ValidationError(f"No active {provider} delivery integration configured")

        return await self.create(
            user_id=user_id,
            name=name or f"{source_provider} orders to {integration.provider}",
            description=f"Creates a {integration.provider} delivery for every new {source_provider} order",
            source_type=source_type,
            source_provider=source_provider,
            destination_type=IntegrationType.DELIVERY,
            destination_provider=integration.provider,
            event_types=["order.created"],
        )

    @staticmethod
    def sign_payload(payload: bytes, secret: str) -> str:
        """
        Sign the payload using HMAC-SHA256.
        Receivers verify it to know the call came from us.
        """
        signature = hmac.new(
            secret.encode(),
            payload,
            hashlib.sha256
        ).hexdigest()

        return f"sha256={signature}"

    @staticmethod
    def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
        """Verify an inbound X-Webhook-Signature header"""
        expected_signature = WebhookService.sign_payload(payload, secret)
        return hmac.compare_digest(signature, expected_signature)
