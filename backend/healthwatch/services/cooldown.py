"""Alert cooldown ledger - last successful send per (tenant, device, event type)."""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import AlertEvent
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

LedgerKey = Tuple[str, str, str]


class CooldownLedger:
    """Gates notifications on the time elapsed since the last send.

    Subclasses provide storage. One row per key; ``record_sent`` overwrites.
    """

    async def last_sent(self, tenant_id: str, device_id: str, event_type: str) -> Optional[datetime]:
        raise NotImplementedError

    async def record_sent(self, tenant_id: str, device_id: str, event_type: str, sent_at: datetime) -> None:
        raise NotImplementedError

    async def allows(
        self,
        tenant_id: str,
        device_id: str,
        event_type: str,
        cooldown_minutes: int,
        now: datetime,
    ) -> bool:
        """True if nothing was sent yet or the cooldown has fully elapsed."""
        last = await self.last_sent(tenant_id, device_id, event_type)
        if last is None:
            return True
        return now - last >= timedelta(minutes=cooldown_minutes)


class InMemoryCooldownLedger(CooldownLedger):
    """Process-local ledger, used by tests and dry runs."""

    def __init__(self):
        self._entries: Dict[LedgerKey, datetime] = {}

    async def last_sent(self, tenant_id: str, device_id: str, event_type: str) -> Optional[datetime]:
        return self._entries.get((tenant_id, device_id, event_type))

    async def record_sent(self, tenant_id: str, device_id: str, event_type: str, sent_at: datetime) -> None:
        self._entries[(tenant_id, device_id, event_type)] = sent_at

    def __len__(self) -> int:
        return len(self._entries)


class SqlCooldownLedger(CooldownLedger):
    """Ledger persisted in the ``alert_events`` table."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def last_sent(self, tenant_id: str, device_id: str, event_type: str) -> Optional[datetime]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AlertEvent.last_sent).where(
                    AlertEvent.tenant_id == tenant_id,
                    AlertEvent.device_id == device_id,
                    AlertEvent.event_type == event_type,
                )
            )
            return result.scalar_one_or_none()

    async def record_sent(self, tenant_id: str, device_id: str, event_type: str, sent_at: datetime) -> None:
        async with self._session_factory() as session:
            await session.execute(self._upsert(session, tenant_id, device_id, event_type, sent_at))
            await retry_on_lock(session.commit)
        logger.debug(f"Recorded {event_type} for device {device_id} at {sent_at.isoformat()}")

    @staticmethod
    def _upsert(session: AsyncSession, tenant_id: str, device_id: str, event_type: str, sent_at: datetime):
        dialect = session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(AlertEvent).values(
            tenant_id=tenant_id,
            device_id=device_id,
            event_type=event_type,
            last_sent=sent_at,
        )
        return stmt.on_conflict_do_update(
            index_elements=["tenant_id", "device_id", "event_type"],
            set_={"last_sent": stmt.excluded.last_sent},
        )
