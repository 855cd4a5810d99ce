"""Device model - endpoints being monitored."""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class Device(Base):
    """A monitored endpoint.

    Probe selection: url set -> HTTP, port set -> TCP, otherwise ICMP with
    TCP 443/80 fallback. status, packet_loss and last_check are written by
    the scheduler only.
    """

    __tablename__ = "devices"
    __table_args__ = (
        Index("ix_devices_last_check", "last_check"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    host = Column(String, nullable=False)  # IP or hostname
    port = Column(Integer, nullable=True)
    url = Column(String, nullable=True)
    check_interval = Column(Integer, nullable=False, default=7200)  # seconds, from plan tier
    last_check = Column(DateTime, nullable=True)  # NULL = never checked, due now
    status = Column(String, nullable=False, default="unknown")  # unknown, up, down, warning, maintenance
    packet_loss = Column(Integer, nullable=True)
    maintenance_start = Column(DateTime, nullable=True)
    maintenance_end = Column(DateTime, nullable=True)  # NULL = until cleared
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    group = relationship("Group", back_populates="devices")
    history = relationship("HistorySample", back_populates="device", cascade="all, delete-orphan")
    alert_events = relationship("AlertEvent", back_populates="device", cascade="all, delete-orphan")
