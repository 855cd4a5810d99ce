"""HistorySample model - append-only check results per device."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from ..database import Base


class HistorySample(Base):
    """One row per check. Purged after the retention horizon."""

    __tablename__ = "device_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(36), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    status = Column(String, nullable=False)
    packet_loss = Column(Integer, nullable=True)
    latency_ms = Column(Integer, nullable=True)  # NULL when the probe does not measure it
    detail = Column(JSON, nullable=True)

    # Relationship
    device = relationship("Device", back_populates="history")
