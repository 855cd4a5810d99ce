from datetime import timedelta

import pytest
from sqlalchemy import func, select

from healthwatch.models import AlertEvent, Device
from healthwatch.services.cooldown import InMemoryCooldownLedger, SqlCooldownLedger

from conftest import NOW

KEY = ("tenant-1", "device-1", "notify_down")


@pytest.fixture
async def sql_ledger(session_factory, add_device):
    await add_device("device-1")
    return SqlCooldownLedger(session_factory)


@pytest.fixture(params=["memory", "sql"])
async def ledger(request, session_factory, add_device):
    if request.param == "memory":
        return InMemoryCooldownLedger()
    await add_device("device-1")
    return SqlCooldownLedger(session_factory)


async def test_no_record_means_allowed(ledger):
    assert await ledger.last_sent(*KEY) is None
    assert await ledger.allows(*KEY, cooldown_minutes=30, now=NOW) is True


async def test_cooldown_blocks_until_elapsed(ledger):
    await ledger.record_sent(*KEY, NOW)

    assert await ledger.allows(*KEY, cooldown_minutes=30, now=NOW + timedelta(minutes=29)) is False
    assert await ledger.allows(*KEY, cooldown_minutes=30, now=NOW + timedelta(minutes=30)) is True
    assert await ledger.allows(*KEY, cooldown_minutes=30, now=NOW + timedelta(minutes=31)) is True


async def test_keys_are_independent(ledger):
    await ledger.record_sent(*KEY, NOW)

    assert await ledger.last_sent("tenant-1", "device-1", "notify_up") is None
    assert await ledger.allows("tenant-1", "device-1", "notify_up", cooldown_minutes=30, now=NOW) is True


async def test_later_write_wins(ledger):
    await ledger.record_sent(*KEY, NOW)
    await ledger.record_sent(*KEY, NOW + timedelta(minutes=45))

    assert await ledger.last_sent(*KEY) == NOW + timedelta(minutes=45)


async def test_sql_upsert_keeps_one_row_per_key(sql_ledger, session_factory):
    await sql_ledger.record_sent(*KEY, NOW)
    await sql_ledger.record_sent(*KEY, NOW + timedelta(minutes=5))

    async with session_factory() as session:
        rows = (await session.execute(select(AlertEvent))).scalars().all()

    assert len(rows) == 1
    assert rows[0].last_sent == NOW + timedelta(minutes=5)


async def test_ledger_rows_go_with_their_device(sql_ledger, session_factory):
    await sql_ledger.record_sent(*KEY, NOW)
    async with session_factory() as session:
        device = await session.get(Device, "device-1")
        await session.delete(device)
        await session.commit()

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(AlertEvent))
    assert count == 0
