# ============================================================================
# FILE: app/models/user.py
# Owner of integrations and webhooks. Accounts are managed by the auth
# service; this table only carries what the integration layer reads.
# ============================================================================
from sqlalchemy import Column, String, Boolean, DateTime, Uuid
import uuid
from app.models.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    # Status flags
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.email}>"
