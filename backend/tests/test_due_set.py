from datetime import timedelta

from sqlalchemy import update

from healthwatch.models import Group
from healthwatch.services.checker import PROBE_HTTP, PROBE_REACHABILITY, PROBE_TCP
from healthwatch.services.due_set import DueSetSelector

from conftest import NOW


async def select_due(session_factory, limit=None):
    async with session_factory() as session:
        return await DueSetSelector(batch_size=100).select(session, NOW, limit=limit)


async def test_never_checked_device_sorts_first(session_factory, add_device):
    await add_device("b", last_check=NOW - timedelta(hours=1), check_interval=1800)
    await add_device("a", last_check=None, check_interval=1800)

    due = await select_due(session_factory)

    assert [device.id for device in due] == ["a", "b"]


async def test_devices_within_interval_are_not_due(session_factory, add_device):
    await add_device("fresh", last_check=NOW - timedelta(minutes=10), check_interval=1800)
    await add_device("stale", last_check=NOW - timedelta(minutes=31), check_interval=1800)

    due = await select_due(session_factory)

    assert [device.id for device in due] == ["stale"]


async def test_device_is_due_exactly_at_its_interval(session_factory, add_device):
    await add_device("edge", last_check=NOW - timedelta(seconds=900), check_interval=900)

    due = await select_due(session_factory)

    assert [device.id for device in due] == ["edge"]


async def test_batch_is_bounded_and_stalest_first(session_factory, add_device):
    await add_device("newest", last_check=NOW - timedelta(hours=1), check_interval=60)
    await add_device("oldest", last_check=NOW - timedelta(hours=5), check_interval=60)
    await add_device("middle", last_check=NOW - timedelta(hours=3), check_interval=60)

    due = await select_due(session_factory, limit=2)

    assert [device.id for device in due] == ["oldest", "middle"]


async def test_snapshot_carries_strategy_and_windows(session_factory, add_device):
    await add_device("web", url="https://shop.example.com", status="up")
    await add_device("rdp", port=3389)
    await add_device("router")
    async with session_factory() as session:
        await session.execute(
            update(Group).where(Group.id == "group-1").values(maintenance_start=NOW - timedelta(hours=1))
        )
        await session.commit()

    due = {device.id: device for device in await select_due(session_factory)}

    assert due["web"].strategy.kind == PROBE_HTTP
    assert due["web"].status == "up"
    assert due["rdp"].strategy.kind == PROBE_TCP
    assert due["router"].strategy.kind == PROBE_REACHABILITY
    assert due["router"].group_name == "Store 12"
    assert due["router"].tenant_email == "owner@example.com"
    assert due["router"].group_maintenance.start == NOW - timedelta(hours=1)
    assert due["router"].is_suppressed(NOW) is True
