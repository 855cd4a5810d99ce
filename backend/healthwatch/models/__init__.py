"""Database models."""
from .tenant import Tenant
from .group import Group
from .device import Device
from .device_history import HistorySample
from .alert_config import AlertConfig
from .alert_event import AlertEvent

__all__ = ["Tenant", "Group", "Device", "HistorySample", "AlertConfig", "AlertEvent"]
