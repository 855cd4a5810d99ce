"""Maintenance window evaluation.

A window is active from its start onwards until its end; a window without
an end stays active until a tenant clears it. A group window that is
active suppresses the device regardless of the device's own window.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class MaintenanceWindow:
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        return is_in_window(now, self.start, self.end)


NO_WINDOW = MaintenanceWindow()


def is_in_window(now: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is None or now < start:
        return False
    if end is None:
        return True
    return now <= end


def is_suppressed(
    device_window: MaintenanceWindow,
    group_window: MaintenanceWindow,
    now: datetime,
) -> bool:
    """Return True if alerting for the device is silenced at ``now``."""
    if group_window.is_active(now):
        return True
    return device_window.is_active(now)
