"""Tenant model - account owners that scope all device and alert state."""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow


class Tenant(Base):
    """An account owner. Plan tier drives check intervals and project limits."""

    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, nullable=False)
    plan = Column(String, nullable=False, default="free")  # free, premium
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    groups = relationship("Group", back_populates="tenant", cascade="all, delete-orphan")
    alert_configs = relationship("AlertConfig", back_populates="tenant", cascade="all, delete-orphan")
