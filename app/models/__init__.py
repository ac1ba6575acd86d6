# app/models/__init__.py
from .base import Base
from .user import User
from .integration import Integration, IntegrationType
from .webhook import Webhook
from .webhook_log import WebhookLog

__all__ = [
    "Base",
    "User",
    "Integration",
    "IntegrationType",
    "Webhook",
    "WebhookLog",
]
