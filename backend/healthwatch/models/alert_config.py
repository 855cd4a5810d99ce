"""AlertConfig model - per-tenant notification channel settings."""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class AlertConfig(Base):
    """Notification settings for one channel of one tenant.

    A missing row means the channel is disabled.
    """

    __tablename__ = "alert_configs"
    __table_args__ = (
        UniqueConstraint("tenant_id", "channel", name="uq_alert_configs_tenant_channel"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(String, nullable=False)  # email, sms
    enabled = Column(Boolean, nullable=False, default=True)
    recipients = Column(JSON, nullable=False, default=list)  # addresses or phone numbers
    cooldown_minutes = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime, default=utcnow)

    # Relationship
    tenant = relationship("Tenant", back_populates="alert_configs")
