"""Outbound SMS delivery providers."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from services.errors import DispatchError
from settings import Settings

logger = logging.getLogger(__name__)


class SmsGateway(Protocol):
    def send(self, to: str, body: str) -> None:
        """Deliver ``body`` to ``to``; raise on failure."""
        ...


def normalize_recipient(device_id: str, country_code: str) -> str:
    """Return an E.164-style address, prefixing ``country_code`` when missing."""
    number = device_id.strip()
    if number.startswith("+"):
        return number
    prefix = country_code.strip()
    if prefix and not prefix.startswith("+"):
        prefix = f"+{prefix}"
    return f"{prefix}{number}"


class TwilioSmsGateway:
    """Sends messages through the Twilio Messages REST endpoint."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.account_sid = account_sid
        self.from_number = from_number
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=(account_sid, auth_token),
            timeout=timeout,
            transport=transport,
        )

    def send(self, to: str, body: str) -> None:
        try:
            response = self._client.post(
                f"/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                data={"To": to, "From": self.from_number, "Body": body},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DispatchError(
                f"SMS gateway rejected message to {to} with status {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(f"SMS gateway unreachable while sending to {to}: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class LoggingSmsGateway:
    """Stand-in used when no SMS credentials are configured."""

    def send(self, to: str, body: str) -> None:
        logger.info("SMS delivery not configured; would send: %s", body, extra={"recipient": to})

    def close(self) -> None:
        return None


def build_sms_gateway(settings: Settings) -> SmsGateway:
    if not settings.twilio_configured:
        logger.warning("Twilio credentials missing; SMS alerts will only be logged.")
        return LoggingSmsGateway()
    return TwilioSmsGateway(
        account_sid=settings.twilio_account_sid or "",
        auth_token=settings.twilio_auth_token or "",
        from_number=settings.twilio_phone_number or "",
        base_url=settings.twilio_base_url,
        timeout=settings.sms_timeout_seconds,
    )
