# ===== app/models/integration.py =====
from sqlalchemy import Column, String, Boolean, DateTime, LargeBinary, ForeignKey, JSON, Index, Uuid
import uuid
from app.models.base import Base, utcnow


class IntegrationType:
    DELIVERY = "delivery"
    POS = "pos"
    ECOMMERCE = "ecommerce"

    ALL = (DELIVERY, POS, ECOMMERCE)


class Integration(Base):
    """One provider credential set for one user"""
    __tablename__ = "integrations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    type = Column(String(20), nullable=False)  # 'delivery', 'pos', 'ecommerce'
    provider = Column(String(100), nullable=False)  # 'UberDirect', 'JetGo', 'Shopify'
    environment = Column(String(20), nullable=False, default="sandbox")  # 'sandbox', 'live'
    is_active = Column(Boolean, default=False, nullable=False)

    # developerId/clientId/clientSecret or apiKey/apiSecret, Fernet encrypted JSON
    credentials_encrypted = Column(LargeBinary)

    webhook_url = Column(String(500))

    # Provider-specific config (pickup location, quote_first, ...)
    settings = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_integrations_user_type_provider', 'user_id', 'type', 'provider'),
    )
