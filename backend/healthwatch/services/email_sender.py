"""Email sender service - sends alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import List
from dataclasses import dataclass

from ..config import settings

logger = logging.getLogger(__name__)

SMTPS_PORT = 465


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            use_tls=settings.smtp_use_tls,
            from_address=settings.smtp_from,
        )

    @property
    def sender(self) -> str:
        return self.from_address or self.username

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)


class EmailSenderService:
    """Service for sending email alerts via SMTP.

    An unconfigured transport is a normal state: sends are skipped and
    reported as unsuccessful.
    """

    def __init__(self, config: EmailConfig | None = None):
        self.config = config or EmailConfig.from_settings()

    @staticmethod
    def _clean_recipients(recipients: List[str]) -> List[str]:
        return [addr.strip() for addr in recipients if addr and addr.strip()]

    async def send_email(self, recipients: List[str], subject: str, body: str) -> bool:
        """Send a plain-text email. Returns True on success, False on failure."""
        if not self.config.is_configured:
            logger.info(f"Email not sent (SMTP not configured): {subject}")
            return False

        to_addrs = self._clean_recipients(recipients)
        if not to_addrs:
            logger.warning(f"Email not sent (no recipients): {subject}")
            return False

        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = self.config.sender
        msg["To"] = ", ".join(to_addrs)

        # smtplib is blocking
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, to_addrs, msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{self.config.username}': {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to reach SMTP server {self.config.host}:{self.config.port}: {e}")
            return False

        logger.info(f"Email sent to {len(to_addrs)} recipient(s): {subject}")
        return True

    def _deliver(self, to_addrs: List[str], message: str) -> None:
        config = self.config
        context = ssl.create_default_context()
        if config.port == SMTPS_PORT:
            server = smtplib.SMTP_SSL(config.host, config.port, timeout=30, context=context)
        else:
            server = smtplib.SMTP(config.host, config.port, timeout=30)
        with server:
            if config.use_tls and config.port != SMTPS_PORT:
                server.starttls(context=context)
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(config.sender, to_addrs, message)
