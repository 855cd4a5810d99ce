"""Alerter service - sends email and SMS notifications on status transitions."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AlertConfig
from ..utils.db_utils import utcnow
from .checker import STATUS_DOWN, STATUS_UP
from .cooldown import CooldownLedger
from .due_set import DueDevice
from .email_sender import EmailSenderService
from .sms_sender import SmsDeliveryError, SmsSenderService

logger = logging.getLogger(__name__)

CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"

DEFAULT_COOLDOWN_MINUTES = 30

# Down and up use separate keys so a recovery is never held back by a
# down alert's cooldown, and the other way round.
EVENT_TYPES = {
    (CHANNEL_EMAIL, STATUS_DOWN): "notify_down",
    (CHANNEL_EMAIL, STATUS_UP): "notify_up",
    (CHANNEL_SMS, STATUS_DOWN): "sms_down",
    (CHANNEL_SMS, STATUS_UP): "sms_up",
}


def event_type_for(channel: str, new_status: str) -> Optional[str]:
    """Ledger key for a transition into ``new_status``; None if it never notifies."""
    return EVENT_TYPES.get((channel, new_status))


@dataclass(frozen=True)
class AlertSettings:
    """Snapshot of one AlertConfig row."""
    channel: str
    enabled: bool = True
    recipients: Tuple[str, ...] = ()
    cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES


async def load_alert_configs(session: AsyncSession, tenant_id: str) -> List[AlertSettings]:
    """Get the tenant's alert channel configuration."""
    result = await session.execute(
        select(AlertConfig).where(AlertConfig.tenant_id == tenant_id)
    )
    return [
        AlertSettings(
            channel=config.channel,
            enabled=bool(config.enabled),
            recipients=tuple(config.recipients or ()),
            cooldown_minutes=config.cooldown_minutes if config.cooldown_minutes is not None else DEFAULT_COOLDOWN_MINUTES,
        )
        for config in result.scalars().all()
    ]


class AlerterService:
    """Decides whether a status transition notifies anyone, and sends it.

    Order of checks: maintenance, channel configuration, transition,
    cooldown. A send is recorded in the ledger only after the transport
    reports success, so a failed delivery never starts a cooldown.
    """

    def __init__(
        self,
        ledger: CooldownLedger,
        email_sender: Optional[EmailSenderService] = None,
        sms_sender: Optional[SmsSenderService] = None,
    ):
        self.ledger = ledger
        self.email_sender = email_sender or EmailSenderService()
        self.sms_sender = sms_sender or SmsSenderService()

    async def dispatch(
        self,
        device: DueDevice,
        previous_status: Optional[str],
        new_status: str,
        alert_configs: List[AlertSettings],
        now: Optional[datetime] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """Notify about a transition. Returns the event types actually sent."""
        now = now or utcnow()

        if device.is_suppressed(now):
            logger.debug(f"Alert suppressed for {device.name}: maintenance window active")
            return []

        enabled = [config for config in alert_configs if config.enabled]
        if not enabled:
            return []

        if previous_status == new_status:
            return []

        sent = []
        for config in enabled:
            event_type = event_type_for(config.channel, new_status)
            if event_type is None:
                continue

            allowed = await self.ledger.allows(
                device.tenant_id, device.id, event_type, config.cooldown_minutes, now
            )
            if not allowed:
                logger.debug(f"Alert suppressed for {device.name}: {event_type} cooling down")
                continue

            try:
                delivered = await self._deliver(config, device, new_status, now, detail)
            except Exception:
                logger.exception(f"{config.channel} alert for {device.name} failed")
                delivered = False

            if not delivered:
                continue

            sent.append(event_type)
            try:
                await self.ledger.record_sent(device.tenant_id, device.id, event_type, now)
            except Exception:
                logger.exception(f"Failed to record {event_type} for {device.name}")

        return sent

    async def _deliver(
        self,
        config: AlertSettings,
        device: DueDevice,
        new_status: str,
        now: datetime,
        detail: Optional[Dict[str, Any]],
    ) -> bool:
        if config.channel == CHANNEL_EMAIL:
            return await self._send_email_alert(config, device, new_status, now, detail)
        if config.channel == CHANNEL_SMS:
            return await self._send_sms_alert(config, device, new_status, now)
        logger.warning(f"Unknown alert channel '{config.channel}' for tenant {device.tenant_id}")
        return False

    async def _send_email_alert(
        self,
        config: AlertSettings,
        device: DueDevice,
        new_status: str,
        now: datetime,
        detail: Optional[Dict[str, Any]],
    ) -> bool:
        recipients = list(config.recipients)
        if not recipients and device.tenant_email:
            recipients = [device.tenant_email]

        subject = self._build_email_subject(device, new_status)
        body = self._build_email_body(device, new_status, now, detail)
        return await self.email_sender.send_email(recipients, subject, body)

    async def _send_sms_alert(
        self,
        config: AlertSettings,
        device: DueDevice,
        new_status: str,
        now: datetime,
    ) -> bool:
        if not config.recipients:
            logger.warning(f"SMS alert for {device.name} not sent: no recipients configured")
            return False

        body = self._build_sms_body(device, new_status, now)
        delivered = False
        for number in config.recipients:
            try:
                receipt = await self.sms_sender.send_sms(number, body)
            except SmsDeliveryError as e:
                logger.error(f"SMS alert for {device.name} to {number} failed: {e}")
                continue
            delivered = True
            logger.info(f"SMS alert sent for {device.name} ({new_status}) id={receipt.id} test_mode={receipt.test_mode}")
        return delivered

    def _build_email_subject(self, device: DueDevice, new_status: str) -> str:
        return f"{new_status.upper()} - {device.name} - {device.group_name}"

    def _build_email_body(
        self,
        device: DueDevice,
        new_status: str,
        now: datetime,
        detail: Optional[Dict[str, Any]],
    ) -> str:
        lines = [
            f"Healthwatch {new_status.upper()} Report",
            "=" * 40,
            "",
            f"Device: {device.name}",
            f"Project: {device.group_name}",
            f"Host: {device.host}",
            f"Probe: {device.strategy.kind}",
            f"Status: {new_status.upper()}",
            f"Time: {now.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]

        if detail:
            details = ", ".join(f"{key}={value}" for key, value in detail.items())
            lines.append(f"Details: {details}")

        lines.append("")
        lines.append("--")
        lines.append("Healthwatch Monitoring")

        return "\n".join(lines)

    def _build_sms_body(self, device: DueDevice, new_status: str, now: datetime) -> str:
        return f"{device.name} ({device.group_name}) is {new_status.upper()} as of {now.strftime('%H:%M UTC')}"
