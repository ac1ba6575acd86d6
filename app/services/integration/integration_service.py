# app/services/integration/integration_service.py
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import pydantic
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.core.exceptions import (
    AppError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from app.models.integration import Integration, IntegrationType
from app.schemas.delivery import DeliveryItem, DeliveryRequest, Location
from app.services.delivery.registry import DeliveryClientRegistry
from app.utils.encryption import CredentialCipher

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("sandbox", "live")

UPDATABLE_FIELDS = ("provider", "environment", "is_active", "webhook_url", "settings")


class IntegrationService:
    """Per-user provider credentials, encrypted at rest"""

    def __init__(
            self,
            db: AsyncSession,
            registry: Optional[DeliveryClientRegistry] = None,
            cipher: Optional[CredentialCipher] = None
    ):
        self.db = db
        self.registry = registry
        self._cipher = cipher

    @property
    def cipher(self) -> CredentialCipher:
        if self._cipher is None:
            self._cipher = CredentialCipher(get_settings().CREDENTIALS_ENCRYPTION_KEY)
        return self._cipher

    @staticmethod
    def _validate(type_: Optional[str] = None, environment: Optional[str] = None):
        if type_ is not None and type_ not in IntegrationType.ALL:
            raise ValidationError(f"Invalid integration type: {type_}")
        if environment is not None and environment not in ENVIRONMENTS:
            raise ValidationError(f"Invalid environment: {environment}")

    async def create(
            self,
            user_id: UUID,
            type: str,
            provider: str,
            credentials: Optional[Dict[str, Any]] = None,
            settings: Optional[Dict[str, Any]] = None,
            environment: str = "sandbox",
            is_active: bool = False,
            webhook_url: Optional[str] = None
    ) -> Integration:
        self._validate(type, environment)
        if not provider:
            raise ValidationError("provider is required")

        integration = Integration(
            user_id=user_id,
            type=type,
            provider=provider,
            environment=environment,
            is_active=is_active,
            credentials_encrypted=self.cipher.encrypt(credentials),
            webhook_url=webhook_url,
            settings=settings or {},
        )
        self.db.add(integration)
        await self.db.commit()
        await self.db.refresh(integration)

        logger.info(f"Created {type} integration {integration.id} ({provider}) for user {user_id}")
        return integration

    async def get(self, user_id: UUID, integration_id: UUID) -> Integration:
        integration = await self.db.get(Integration, integration_id)
        if integration is None:
            raise NotFoundError("Integration not found")
        if integration.user_id != user_id:
            # Same answer as missing, never leak other tenants' ids
            raise AuthorizationError("Integration not found")
        return integration

    async def list_by_user(self, user_id: UUID, type: Optional[str] = None) -> List[Integration]:
        query = select(Integration).where(Integration.user_id == user_id)
        if type:
            self._validate(type)
            query = query.where(Integration.type == type)
        query = query.order_by(Integration.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update(
            self,
            user_id: UUID,
            integration_id: UUID,
            fields: Dict[str, Any]
    ) -> Integration:
        """Merge update; credentials, when given, replace the stored set"""
        integration = await self.get(user_id, integration_id)
        self._validate(environment=fields.get("environment"))

        for name in UPDATABLE_FIELDS:
            if name in fields and fields[name] is not None:
                setattr(integration, name, fields[name])
        if fields.get("credentials") is not None:
            integration.credentials_encrypted = self.cipher.encrypt(fields["credentials"])

        await self.db.commit()
        await self.db.refresh(integration)
        logger.info(f"Updated integration {integration.id}")
        return integration

    async def toggle_active(
            self,
            user_id: UUID,
            integration_id: UUID,
            is_active: bool
    ) -> Integration:
        return await self.update(user_id, integration_id, {"is_active": is_active})

    async def delete(self, user_id: UUID, integration_id: UUID):
        integration = await self.get(user_id, integration_id)
        await self.db.delete(integration)
        await self.db.commit()
        if self.registry is not None:
            await self.registry.discard(integration_id)
        logger.info(f"Deleted integration {integration_id}")

    async def find_active(
            self,
            user_id: UUID,
            type: str,
            provider: str
    ) -> Optional[Integration]:
        """Most recently updated active integration, provider matched case-insensitively"""
        query = select(Integration).where(
            and_(
                Integration.user_id == user_id,
                Integration.type == type,
                Integration.is_active == True
            )
        ).order_by(Integration.updated_at.desc())

        result = await self.db.execute(query)
        wanted = (provider or "").lower()
        for integration in result.scalars().all():
            if integration.provider.lower() == wanted:
                return integration
        return None

    async def find_latest(
            self,
            user_id: UUID,
            type: str,
            provider: str
    ) -> Optional[Integration]:
        """Like find_active, but inactive rows count too"""
        result = await self.db.execute(
            select(Integration).where(
                and_(Integration.user_id == user_id, Integration.type == type)
            ).order_by(Integration.updated_at.desc())
        )
        wanted = (provider or "").lower()
        return next(
            (i for i in result.scalars().all() if i.provider.lower() == wanted),
            None
        )

    def get_credentials(self, integration: Integration) -> Dict[str, Any]:
        try:
            return self.cipher.decrypt(integration.credentials_encrypted)
        except ValueError as e:
            logger.error(f"Credentials of integration {integration.id} are unreadable: {e}")
            raise AppError("Stored credentials could not be decrypted") from e

    def credential_fields(self, integration: Integration) -> List[str]:
        return sorted(self.get_credentials(integration).keys())

    async def test(self, user_id: UUID, integration_id: UUID) -> Dict[str, Any]:
        """
        Check an integration's credentials against its provider.

        Delivery integrations get a throwaway client that authenticates and
        asks for a quote on sample addresses; nothing is persisted. Other
        types only report whether credentials are stored.
        """
        integration = await self.get(user_id, integration_id)
        credentials = self.get_credentials(integration)

        if integration.type != IntegrationType.DELIVERY:
            if credentials:
                return {"success": True, "message": f"{integration.provider} credentials are configured"}
            return {"success": False, "message": f"{integration.provider} has no credentials configured"}

        if self.registry is None:
            raise AppError("Delivery client registry is not configured")

        try:
            request = self._sample_request(integration)
        except pydantic.ValidationError as e:
            return {"success": False, "message": f"Invalid pickup location in settings: {e.errors()[0]['msg']}"}

        try:
            client = self.registry.build(integration.provider, credentials, integration.environment)
        except ValidationError as e:
            return {"success": False, "message": e.message}

        try:
            await client.authenticate()
            quote = await client.get_quote(request)
        except AppError as e:
            logger.warning(f"Integration test failed for {integration.id}: {e.message}")
            return {"success": False, "message": e.message}
        finally:
            await client.close()

        return {
            "success": True,
            "message": (
                f"{integration.provider} connection successful "
                f"(sample quote {quote.fee:.2f} {quote.currency}, eta {quote.eta} min)"
            ),
        }

    @staticmethod
    def _sample_request(integration: Integration) -> DeliveryRequest:
        pickup = (integration.settings or {}).get("pickup") or {
            "name": "Test Restaurant",
            "address": "1 Market St, San Francisco, CA 94105",
        }
        return DeliveryRequest(
            pickup=Location.model_validate(pickup),
            dropoff=Location(name="Test Customer", address="500 Howard St, San Francisco, CA 94105"),
            items=[DeliveryItem(name="Test item", quantity=1, price=10.0)],
            order_value=10.0,
        )
