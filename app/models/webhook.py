# ===== app/models/webhook.py =====
from sqlalchemy import Column, String, DateTime, Boolean, JSON, ForeignKey, Index, Uuid
import uuid
from app.models.base import Base, utcnow


class Webhook(Base):
    """Routing rule from one event source to one destination integration"""
    __tablename__ = "webhooks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(String(500))

    # Security: inbound bearer proof, also embedded in the callback URL
    secret_key = Column(String(128), nullable=False, unique=True, index=True)

    # Optional custom destination for internal forwarding
    endpoint_url = Column(String(500))

    # Routing (destination integration is resolved by type + provider at dispatch time)
    source_type = Column(String(20), nullable=False)  # ecommerce, delivery, pos, internal
    source_provider = Column(String(100), nullable=False)
    destination_type = Column(String(20), nullable=False)
    destination_provider = Column(String(100), nullable=False)

    # Events to listen for
    event_types = Column(JSON, nullable=False, default=list)  # ["order.created"]

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # Metadata
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_webhooks_user_source', 'user_id', 'source_type', 'source_provider'),
    )
