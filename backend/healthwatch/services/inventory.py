"""Tenant-side device actions and plan limits.

Check intervals are fixed from the tenant's plan when a device is created
and are not re-evaluated when the plan changes later.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Device, Group, Tenant
from ..utils.db_utils import utcnow

logger = logging.getLogger(__name__)

PLAN_FREE = "free"
PLAN_PREMIUM = "premium"

PLAN_LIMITS = {
    PLAN_FREE: {"projects": 3, "devices_per_project": 15},
    PLAN_PREMIUM: {"projects": 10, "devices_per_project": 15},
}

# Seconds between checks
PLAN_CHECK_INTERVALS = {
    PLAN_FREE: 7200,
    PLAN_PREMIUM: 900,
}


class PlanLimitExceeded(Exception):
    """The tenant's plan does not allow another project or device."""

    def __init__(self, resource: str, limit: int):
        super().__init__(f"Plan limit reached: at most {limit} {resource}")
        self.resource = resource
        self.limit = limit


def normalize_plan(plan: Optional[str]) -> str:
    value = (plan or "").strip().lower()
    return PLAN_PREMIUM if value == PLAN_PREMIUM else PLAN_FREE


def get_plan_limits(plan: Optional[str]) -> dict:
    return PLAN_LIMITS[normalize_plan(plan)]


def check_interval_for_plan(plan: Optional[str]) -> int:
    return PLAN_CHECK_INTERVALS[normalize_plan(plan)]


async def register_group(session: AsyncSession, tenant: Tenant, name: str, location: Optional[str] = None) -> Group:
    """Create a monitoring project, enforcing the plan's project limit."""
    max_projects = get_plan_limits(tenant.plan)["projects"]
    count = await session.scalar(
        select(func.count()).select_from(Group).where(Group.tenant_id == tenant.id)
    )
    if count >= max_projects:
        raise PlanLimitExceeded("projects", max_projects)

    group = Group(tenant_id=tenant.id, name=name, location=location)
    session.add(group)
    await session.flush()
    return group


async def register_device(
    session: AsyncSession,
    tenant: Tenant,
    group: Group,
    name: str,
    host: str,
    port: Optional[int] = None,
    url: Optional[str] = None,
) -> Device:
    """Create a device in a project with the plan's check interval.

    The new device has never been checked, so it is due on the next tick.
    """
    if group.tenant_id != tenant.id:
        raise ValueError("Group does not belong to tenant")

    max_devices = get_plan_limits(tenant.plan)["devices_per_project"]
    count = await session.scalar(
        select(func.count()).select_from(Device).where(Device.group_id == group.id)
    )
    if count >= max_devices:
        raise PlanLimitExceeded("devices per project", max_devices)

    device = Device(
        tenant_id=tenant.id,
        group_id=group.id,
        name=name,
        host=host,
        port=port,
        url=url,
        check_interval=check_interval_for_plan(tenant.plan),
        status="unknown",
    )
    session.add(device)
    await session.flush()
    logger.info(f"Registered device {name} ({host}) for tenant {tenant.id}, interval {device.check_interval}s")
    return device


def set_device_maintenance(device: Device, start: Optional[datetime] = None, end: Optional[datetime] = None):
    """Open a maintenance window. Without an end it lasts until cleared."""
    device.maintenance_start = start or utcnow()
    device.maintenance_end = end


def clear_device_maintenance(device: Device):
    device.maintenance_start = None
    device.maintenance_end = None


def set_group_maintenance(group: Group, start: Optional[datetime] = None, end: Optional[datetime] = None):
    group.maintenance_start = start or utcnow()
    group.maintenance_end = end


def clear_group_maintenance(group: Group):
    group.maintenance_start = None
    group.maintenance_end = None


def request_recheck(device: Device):
    """Make the device due on the next tick."""
    device.last_check = None
