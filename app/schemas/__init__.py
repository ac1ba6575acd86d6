# app/schemas/__init__.py
from .delivery import (
    Location,
    DeliveryItem,
    DeliveryRequest,
    DeliveryActionRequest,
    CreateDeliveryRequest,
    DeliveryQuote,
    Delivery,
    DeliveryStatus,
    CancelResult
)

from .integration import (
    IntegrationCreateRequest,
    IntegrationUpdateRequest,
    IntegrationResponse,
    IntegrationTestResponse
)

from .webhook import (
    WebhookCreateRequest,
    WebhookUpdateRequest,
    ProviderWebhookSetupRequest,
    WebhookResponse,
    WebhookLogResponse,
    InboundEvent,
    WebhookDispatchOutcome,
    DispatchResult,
    WebhookTestResponse
)
