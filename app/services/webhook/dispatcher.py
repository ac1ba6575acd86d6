# app/services/webhook/dispatcher.py
"""
Inbound webhook dispatch.

An inbound call is authenticated by its secret, parsed into an event and
matched against the owner's active webhooks. Each match is resolved to its
destination (delivery integration or internal endpoint), then all matches
are forwarded concurrently. Forwarding tasks never touch the database
session; log rows are written afterwards, one per match, in match order.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.core.exceptions import (
    AppError,
    AuthenticationError,
    DeliveryNotCancellableError,
    IntegrationFailure,
    ValidationError,
)
from app.models.integration import IntegrationType
from app.models.webhook import Webhook
from app.schemas.webhook import DispatchResult, InboundEvent, WebhookDispatchOutcome
from app.services.delivery.registry import DeliveryClientRegistry
from app.services.integration.integration_service import IntegrationService
from app.services.webhook.translators import order_to_delivery_request, parse_inbound_event
from app.services.webhook.webhook_log_service import WebhookLogService
from app.services.webhook.webhook_service import WebhookService

logger = logging.getLogger(__name__)

# Sources whose orders can be turned into deliveries
ORDER_SOURCES = (IntegrationType.ECOMMERCE, IntegrationType.POS)


@dataclass
class _Job:
    """One matched webhook, resolved and ready to forward"""
    webhook: Webhook
    action: Optional[Callable[[], Awaitable[Dict[str, Any]]]] = None
    success_status: int = 200
    status_code: Optional[int] = None
    response_payload: Any = None
    error_message: Optional[str] = None
    duplicate: bool = False
    started: float = field(default_factory=time.perf_counter)
    elapsed_ms: int = 0


class WebhookDispatcher:
    """Routes inbound events to delivery providers and internal endpoints"""

    def __init__(
            self,
            db: AsyncSession,
            registry: DeliveryClientRegistry,
            http_client: Optional[httpx.AsyncClient] = None
    ):
        self.db = db
        self.registry = registry
        self.settings = get_settings()
        self.webhooks = WebhookService(db)
        self.integrations = IntegrationService(db, registry)
        self.logs = WebhookLogService(db)
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=self.settings.WEBHOOK_FORWARD_TIMEOUT_SECONDS,
            follow_redirects=True
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def authenticate(
            self,
            secret_key: str,
            raw_body: Optional[bytes] = None,
            signature: Optional[str] = None
    ) -> Webhook:
        """Find the webhook owning this secret; check the signature when one is sent"""
        webhook = await self.webhooks.get_by_secret(secret_key)
        if webhook is None:
            raise AuthenticationError("Invalid webhook secret")

        if signature is not None:
            if raw_body is None or not WebhookService.verify_signature(raw_body, signature, webhook.secret_key):
                raise AuthenticationError("Invalid webhook signature")
        return webhook

    async def dispatch_inbound(
            self,
            secret_key: str,
            headers: Mapping[str, str],
            body: Dict[str, Any],
            raw_body: Optional[bytes] = None
    ) -> DispatchResult:
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        webhook = await self.authenticate(secret_key, raw_body, lowered.get("x-webhook-signature"))
        event = parse_inbound_event(webhook, lowered, body)

        logger.info(
            f"Inbound {event.event_type} from {event.source_type}/{event.source_provider} "
            f"via webhook {webhook.id} (event id: {event.event_id or 'none'})"
        )
        return await self.dispatch(webhook.user_id, event)

    async def dispatch(
            self,
            user_id: UUID,
            event: InboundEvent,
            only: Optional[List[Webhook]] = None
    ) -> DispatchResult:
        webhooks = only if only is not None else await self._matching_webhooks(user_id, event)

        jobs = []
        for webhook in webhooks:
            jobs.append(await self._resolve(webhook, event))

        # Concurrent forwarding, each task keeps its own failure
        await asyncio.gather(*(self._run(job) for job in jobs if job.action is not None))

        results = []
        for job in jobs:
            outcome = WebhookDispatchOutcome(
                webhook_id=job.webhook.id,
                webhook_name=job.webhook.name,
                success=job.duplicate or 200 <= (job.status_code or 0) < 300,
                status_code=job.status_code or 500,
                response_payload=job.response_payload,
                error_message=job.error_message,
                processing_time_ms=job.elapsed_ms,
                duplicate=job.duplicate,
            )
            if not job.duplicate:
                log = await self.logs.record(
                    webhook_id=job.webhook.id,
                    event_type=event.event_type,
                    event_id=event.event_id,
                    status_code=outcome.status_code,
                    request_payload=event.payload,
                    response_payload=job.response_payload,
                    error_message=self._truncate(job.error_message),
                    processing_time_ms=job.elapsed_ms,
                    commit=False,
                )
                outcome.log_id = log.id
            results.append(outcome)
        await self.db.commit()

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            f"Dispatched {event.event_type}: {len(results)} matched, "
            f"{succeeded} succeeded, {len(results) - succeeded} failed"
        )
        return DispatchResult(
            event_type=event.event_type,
            event_id=event.event_id,
            matched=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )

    async def test_webhook(self, webhook: Webhook) -> Dict[str, Any]:
        """Send a sample event for the webhook's first event type through the normal path"""
        event_type = webhook.event_types[0]
        event = InboundEvent(
            source_type=webhook.source_type,
            source_provider=webhook.source_provider,
            event_type=event_type,
            payload=self._sample_payload(event_type),
        )
        result = await self.dispatch(webhook.user_id, event, only=[webhook])
        outcome = result.results[0]
        if outcome.success:
            message = f"Test {event_type} event delivered (HTTP {outcome.status_code})"
        else:
            message = f"Test {event_type} event failed (HTTP {outcome.status_code}): {outcome.error_message}"
        return {"success": outcome.success, "message": message, "result": result}

    async def close(self):
        """Close the HTTP client."""
        if self._owns_http_client:
            await self.http_client.aclose()

    # ------------------------------------------------------------------
    # Matching and resolution (sequential, may use the session)
    # ------------------------------------------------------------------

    async def _matching_webhooks(self, user_id: UUID, event: InboundEvent) -> List[Webhook]:
        candidates = await self.webhooks.list_active_for_source(user_id, event.source_type)
        provider = event.source_provider.lower()
        return [
            w for w in candidates
            if w.source_provider.lower() == provider and event.event_type in (w.event_types or [])
        ]

    async def _resolve(self, webhook: Webhook, event: InboundEvent) -> _Job:
        job = _Job(webhook=webhook)

        if event.event_id and await self.logs.has_success(webhook.id, event.event_id):
            job.duplicate = True
            job.status_code = 200
            job.response_payload = {"duplicate": True, "event_id": event.event_id}
            logger.info(f"Skipping replayed event {event.event_id} for webhook {webhook.id}")
            return job

        try:
            if webhook.destination_type == "internal":
                self._plan_internal(job, event)
            elif webhook.destination_type == IntegrationType.DELIVERY and webhook.source_type in ORDER_SOURCES:
                await self._plan_delivery(job, event)
            else:
                self._fail(job, 501, f"No route from {webhook.source_type} to {webhook.destination_type}")
        except AppError as e:
            self._fail(job, e.status_code, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error resolving webhook {webhook.id}")
            self._fail(job, 500, f"Unexpected error: {str(e)[:200]}")
        return job

    def _fail(self, job: _Job, status_code: int, message: str):
        job.status_code = status_code
        job.error_message = message
        job.elapsed_ms = int((time.perf_counter() - job.started) * 1000)
        logger.warning(f"Webhook {job.webhook.id} not forwarded ({status_code}): {message}")

    async def _plan_delivery(self, job: _Job, event: InboundEvent):
        webhook = job.webhook
        integration = await self.integrations.find_active(
            webhook.user_id, IntegrationType.DELIVERY, webhook.destination_provider
        )
        if integration is None:
            existing = await self.integrations.find_latest(
                webhook.user_id, IntegrationType.DELIVERY, webhook.destination_provider
            )
            if existing is None:
                self._fail(job, 404, f"No {webhook.destination_provider} delivery integration configured")
            else:
                self._fail(job, 409, f"{webhook.destination_provider} delivery integration is inactive")
            return

        if event.event_type == "order.created":
            request = order_to_delivery_request(event.payload, integration.settings)
            client = await self.registry.client_for(integration, self.integrations.get_credentials(integration))
            quote_first = bool((integration.settings or {}).get("quote_first"))

            async def create():
                response = {}
                quote_id = event.payload.get("quote_id")
                if quote_first and not quote_id:
                    quote = await client.get_quote(request)
                    quote_id = quote.id
                    response["quote"] = quote.model_dump(mode="json")
                delivery = await client.create_delivery(request, quote_id)
                response["delivery"] = delivery.model_dump(mode="json")
                return response

            job.action = create
            job.success_status = 201

        elif event.event_type == "order.cancelled":
            delivery_id = event.payload.get("delivery_id")
            if not delivery_id:
                raise ValidationError("order.cancelled event carries no delivery_id")
            client = await self.registry.client_for(integration, self.integrations.get_credentials(integration))

            async def cancel():
                result = await client.cancel_delivery(str(delivery_id))
                return result.model_dump(mode="json")

            job.action = cancel

        else:
            self._fail(job, 501, f"{event.event_type} cannot be forwarded to a delivery provider")

    def _plan_internal(self, job: _Job, event: InboundEvent):
        webhook = job.webhook
        if not webhook.endpoint_url:
            async def acknowledge():
                return {"accepted": True, "event_type": event.event_type}

            job.action = acknowledge
            job.success_status = 202
            return

        body = json.dumps({
            "event": event.event_type,
            "event_id": event.event_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": {"type": event.source_type, "provider": event.source_provider},
            "data": event.payload,
        }).encode()

        async def forward():
            return await self._forward(webhook, event, body)

        job.action = forward

    async def _forward(self, webhook: Webhook, event: InboundEvent, body: bytes) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Signature": WebhookService.sign_payload(body, webhook.secret_key),
            "X-Webhook-Event": event.event_type,
            "X-Webhook-Id": str(webhook.id),
            "User-Agent": f"{self.settings.APP_NAME}-Webhook/1.0",
        }
        if event.event_id:
            headers["X-Webhook-Event-Id"] = event.event_id

        try:
            response = await self.http_client.post(webhook.endpoint_url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise IntegrationFailure(
                "internal", "forward", f"request timeout ({self.settings.WEBHOOK_FORWARD_TIMEOUT_SECONDS}s)"
            ) from e
        except httpx.RequestError as e:
            raise IntegrationFailure("internal", "forward", f"request error: {str(e)[:200]}") from e

        if not 200 <= response.status_code < 300:
            raise IntegrationFailure(
                "internal",
                "forward",
                f"HTTP {response.status_code}: {response.text[:200]}",
                provider_status=response.status_code,
            )
        return {"status_code": response.status_code, "body": response.text[:self.settings.WEBHOOK_LOG_BODY_LIMIT]}

    # ------------------------------------------------------------------
    # Forwarding (concurrent, no session access)
    # ------------------------------------------------------------------

    async def _run(self, job: _Job):
        try:
            job.response_payload = await job.action()
            job.status_code = job.success_status
            if job.response_payload and "status_code" in job.response_payload:
                job.status_code = job.response_payload["status_code"]
        except DeliveryNotCancellableError as e:
            job.status_code = 409
            job.error_message = e.message
            job.response_payload = {"success": False, "status": e.status}
        except IntegrationFailure as e:
            job.status_code = e.provider_status or 502
            if 200 <= job.status_code < 400:
                job.status_code = 502
            job.error_message = e.message
        except ValidationError as e:
            job.status_code = 400
            job.error_message = e.message
        except Exception as e:
            logger.exception(f"Unexpected error forwarding webhook {job.webhook.id}")
            job.status_code = 500
            job.error_message = f"Unexpected error: {str(e)[:200]}"
        finally:
            job.elapsed_ms = int((time.perf_counter() - job.started) * 1000)

        if job.error_message:
            logger.warning(f"Webhook {job.webhook.id} forwarding failed ({job.status_code}): {job.error_message}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _truncate(self, message: Optional[str]) -> Optional[str]:
        if message is None:
            return None
        return message[:self.settings.WEBHOOK_LOG_BODY_LIMIT]

    @staticmethod
    def _sample_payload(event_type: str) -> Dict[str, Any]:
        if event_type == "order.created":
            return {
                "order_id": "test-order",
                "pickup": {"name": "Test Restaurant", "address": "1 Market St, San Francisco, CA 94105"},
                "dropoff": {
                    "name": "Test Customer",
                    "address": "500 Howard St, San Francisco, CA 94105",
                    "phone_number": "+14155550100",
                },
                "items": [{"name": "Test item", "quantity": 1, "price": 10.0}],
                "order_value": 10.0,
                "currency": "USD",
            }
        return {"test": True, "event_type": event_type}
