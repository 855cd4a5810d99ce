"""AlertEvent model - cooldown ledger of the last successful send."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base


class AlertEvent(Base):
    """Last successful notification per (tenant, device, event type).

    Exactly one row per key; writes are upserts.
    """

    __tablename__ = "alert_events"
    __table_args__ = (
        UniqueConstraint("tenant_id", "device_id", "event_type", name="uq_alert_events_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    device_id = Column(String(36), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String, nullable=False)  # notify_down, notify_up, sms_down, sms_up
    last_sent = Column(DateTime, nullable=False)

    # Relationship
    device = relationship("Device", back_populates="alert_events")
