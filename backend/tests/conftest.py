"""Shared fixtures: in-memory SQLite store, seeded tenant, fake transports."""
from datetime import datetime

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from healthwatch.database import Base
from healthwatch.models import AlertConfig, Device, Group, Tenant
from healthwatch.services.checker import ProbeStrategy
from healthwatch.services.due_set import DueDevice
from healthwatch.services.maintenance import NO_WINDOW

NOW = datetime(2026, 10, 17, 12, 0, 0)


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def tenant_group(session_factory):
    """A premium tenant owning one project."""
    tenant = Tenant(id="tenant-1", email="owner@example.com", plan="premium")
    group = Group(id="group-1", tenant_id=tenant.id, name="Store 12")
    async with session_factory() as session:
        session.add_all([tenant, group])
        await session.commit()
    return tenant, group


@pytest.fixture
def add_device(session_factory, tenant_group):
    """Insert a device into the seeded project."""
    tenant, group = tenant_group

    async def _add(device_id: str, **fields) -> Device:
        values = dict(
            id=device_id,
            tenant_id=tenant.id,
            group_id=group.id,
            name=f"Device {device_id}",
            host="10.0.0.1",
            check_interval=900,
            status="unknown",
        )
        values.update(fields)
        device = Device(**values)
        async with session_factory() as session:
            session.add(device)
            await session.commit()
        return device

    return _add


@pytest.fixture
def add_alert_config(session_factory, tenant_group):
    tenant, _ = tenant_group

    async def _add(channel: str = "email", **fields) -> AlertConfig:
        values = dict(tenant_id=tenant.id, channel=channel, enabled=True, recipients=[], cooldown_minutes=30)
        values.update(fields)
        config = AlertConfig(**values)
        async with session_factory() as session:
            session.add(config)
            await session.commit()
        return config

    return _add


@pytest.fixture
def make_due_device():
    def _make(**overrides) -> DueDevice:
        values = dict(
            id="device-1",
            tenant_id="tenant-1",
            group_id="group-1",
            name="Core switch",
            group_name="Store 12",
            host="10.0.0.1",
            status="up",
            check_interval=900,
            last_check=None,
            strategy=ProbeStrategy.for_device("10.0.0.1"),
            maintenance=NO_WINDOW,
            group_maintenance=NO_WINDOW,
            tenant_email="owner@example.com",
        )
        values.update(overrides)
        return DueDevice(**values)

    return _make


class FakeEmailSender:
    """Records sends instead of talking SMTP."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    async def send_email(self, recipients, subject, body):
        self.sent.append({"recipients": list(recipients), "subject": subject, "body": body})
        return self.succeed


@pytest.fixture
def email_sender():
    return FakeEmailSender()
