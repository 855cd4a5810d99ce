"""Due-set selection - which devices need a check now."""
import calendar
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Integer, Interval, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import Device, Group, Tenant
from .checker import ProbeStrategy
from .maintenance import MaintenanceWindow, is_suppressed

# Never-checked devices sort as if last checked at the epoch
EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class DueDevice:
    """Immutable view of a device row taken at selection time."""
    id: str
    tenant_id: str
    group_id: str
    name: str
    group_name: str
    host: str
    status: str
    check_interval: int
    last_check: Optional[datetime]
    strategy: ProbeStrategy
    maintenance: MaintenanceWindow
    group_maintenance: MaintenanceWindow
    tenant_email: Optional[str] = None

    def is_suppressed(self, now: datetime) -> bool:
        return is_suppressed(self.maintenance, self.group_maintenance, now)


def _interval_elapsed(dialect: str, now: datetime):
    """SQL predicate: last_check + check_interval <= now."""
    if dialect == "postgresql":
        next_check = Device.last_check + func.make_interval(0, 0, 0, 0, 0, 0, Device.check_interval, type_=Interval)
        return next_check <= now
    # SQLite stores DateTime as ISO text, compare in epoch seconds
    last_epoch = cast(func.strftime("%s", Device.last_check), Integer)
    return last_epoch + Device.check_interval <= calendar.timegm(now.timetuple())


class DueSetSelector:
    """Selects devices whose next check time has passed, stalest first."""

    def __init__(self, batch_size: Optional[int] = None):
        self.batch_size = batch_size or settings.due_batch_size

    async def select(self, session: AsyncSession, now: datetime, limit: Optional[int] = None) -> List[DueDevice]:
        dialect = session.get_bind().dialect.name
        result = await session.execute(
            select(
                Device,
                Group.name,
                Group.maintenance_start,
                Group.maintenance_end,
                Tenant.email,
            )
            .join(Group, (Group.id == Device.group_id) & (Group.tenant_id == Device.tenant_id))
            .join(Tenant, Tenant.id == Device.tenant_id)
            .where(or_(Device.last_check.is_(None), _interval_elapsed(dialect, now)))
            .order_by(func.coalesce(Device.last_check, EPOCH).asc(), Device.id.asc())
            .limit(limit or self.batch_size)
        )

        return [
            DueDevice(
                id=device.id,
                tenant_id=device.tenant_id,
                group_id=device.group_id,
                name=device.name,
                group_name=group_name,
                host=device.host,
                status=device.status,
                check_interval=device.check_interval,
                last_check=device.last_check,
                strategy=ProbeStrategy.for_device(device.host, device.port, device.url),
                maintenance=MaintenanceWindow(device.maintenance_start, device.maintenance_end),
                group_maintenance=MaintenanceWindow(group_start, group_end),
                tenant_email=tenant_email,
            )
            for device, group_name, group_start, group_end, tenant_email in result.all()
        ]
