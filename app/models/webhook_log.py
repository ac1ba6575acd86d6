# ===== app/models/webhook_log.py =====
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey, Index, Uuid
import uuid
from app.models.base import Base, utcnow


class WebhookLog(Base):
    """Append-only record of one dispatch attempt"""
    __tablename__ = "webhook_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    webhook_id = Column(Uuid(as_uuid=True), ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False)

    # Event details
    event_type = Column(String(50), nullable=False)  # "order.created"
    event_id = Column(String(200))  # provider-supplied id, used to skip replays

    # Request / response
    request_payload = Column(JSON)
    response_payload = Column(JSON)
    status_code = Column(Integer, nullable=False)

    # Error tracking
    error_message = Column(Text)
    processing_time_ms = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_webhook_logs_webhook_created', 'webhook_id', 'created_at'),
        Index('ix_webhook_logs_webhook_event', 'webhook_id', 'event_id'),
    )
