"""SMS sender service - sends alerts through the Twilio REST API.

Supports API key auth (TWILIO_API_KEY_SID + TWILIO_API_KEY_SECRET) with an
auth token fallback (TWILIO_AUTH_TOKEN). With SMS_TEST_MODE enabled nothing
leaves the process and a stub receipt is returned.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

PROVIDER = "twilio"
TEST_MODE_ID = "TEST_MODE"
TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SmsDeliveryError(Exception):
    """SMS could not be handed to the provider."""


@dataclass
class SmsConfig:
    """Twilio configuration."""
    account_sid: str = ""
    auth_token: str = ""
    api_key_sid: str = ""
    api_key_secret: str = ""
    from_number: str = ""
    test_mode: bool = False

    @classmethod
    def from_settings(cls) -> "SmsConfig":
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            api_key_sid=settings.twilio_api_key_sid,
            api_key_secret=settings.twilio_api_key_secret,
            from_number=settings.twilio_from,
            test_mode=settings.sms_test_mode,
        )

    def credentials(self) -> Tuple[str, str]:
        if not self.account_sid:
            raise SmsDeliveryError("TWILIO_ACCOUNT_SID is not set")
        if self.api_key_sid and self.api_key_secret:
            return (self.api_key_sid, self.api_key_secret)
        if self.auth_token:
            return (self.account_sid, self.auth_token)
        raise SmsDeliveryError("Twilio credentials not set (need TWILIO_API_KEY_SID/SECRET or TWILIO_AUTH_TOKEN)")


@dataclass(frozen=True)
class SmsReceipt:
    provider: str
    id: str
    test_mode: bool


class SmsSenderService:
    """Service for sending SMS alerts."""

    def __init__(
        self,
        config: Optional[SmsConfig] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.config = config or SmsConfig.from_settings()
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=10))

    async def send_sms(self, to: str, body: str) -> SmsReceipt:
        """Send one SMS. Raises SmsDeliveryError on any failure."""
        from_number = (self.config.from_number or "").strip()
        if not from_number:
            raise SmsDeliveryError("TWILIO_FROM is not set")
        if not to:
            raise SmsDeliveryError("SMS recipient is required")
        if not body:
            raise SmsDeliveryError("SMS body is required")

        if self.config.test_mode:
            logger.info(f"[SMS][TEST_MODE] to={to} from={from_number} body={body[:120]}")
            return SmsReceipt(provider=PROVIDER, id=TEST_MODE_ID, test_mode=True)

        auth = self.config.credentials()
        url = f"{TWILIO_API_BASE}/Accounts/{self.config.account_sid}/Messages.json"
        try:
            async with self._client_factory() as client:
                response = await client.post(
                    url,
                    data={"To": to, "From": from_number, "Body": body},
                    auth=auth,
                )
        except httpx.HTTPError as e:
            raise SmsDeliveryError(f"Twilio request failed: {e}") from e

        if response.status_code >= 400:
            raise SmsDeliveryError(f"Twilio returned {response.status_code}: {response.text[:200]}")

        try:
            sid = response.json().get("sid", "")
        except (ValueError, AttributeError) as e:
            raise SmsDeliveryError(f"Twilio returned an unreadable response: {response.text[:200]}") from e
        logger.info(f"SMS sent to {to} (sid={sid})")
        return SmsReceipt(provider=PROVIDER, id=sid, test_mode=False)
