# app/services/webhook/webhook_log_service.py
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.webhook_log import WebhookLog


class WebhookLogService:
    """Append-only dispatch history. Rows are never updated."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
            self,
            webhook_id: UUID,
            event_type: str,
            status_code: int,
            request_payload: Any = None,
            response_payload: Any = None,
            error_message: Optional[str] = None,
            processing_time_ms: int = 0,
            event_id: Optional[str] = None,
            commit: bool = True
    ) -> WebhookLog:
        log = WebhookLog(
            webhook_id=webhook_id,
            event_type=event_type,
            event_id=event_id,
            request_payload=request_payload,
            response_payload=response_payload,
            status_code=status_code,
            error_message=error_message,
            processing_time_ms=max(0, int(processing_time_ms)),
        )
        self.db.add(log)
        if commit:
            await self.db.commit()
            await self.db.refresh(log)
        else:
            await self.db.flush()
        return log

    async def list_by_webhook(self, webhook_id: UUID, limit: int = 100) -> List[WebhookLog]:
        """Delivery logs for a webhook, newest first"""
        query = select(WebhookLog).where(
            WebhookLog.webhook_id == webhook_id
        ).order_by(WebhookLog.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def has_success(self, webhook_id: UUID, event_id: str) -> bool:
        """True when this event was already handled successfully by the webhook"""
        result = await self.db.execute(
            select(WebhookLog.id).where(
                and_(
                    WebhookLog.webhook_id == webhook_id,
                    WebhookLog.event_id == event_id,
                    WebhookLog.status_code >= 200,
                    WebhookLog.status_code < 300
                )
            ).limit(1)
        )
        return result.first() is not None
