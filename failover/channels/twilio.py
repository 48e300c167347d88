"""Twilio WhatsApp channel and the Twilio plumbing shared with SMS."""

from __future__ import annotations

import logging
from typing import Any

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout as RequestsTimeout
from twilio.base.exceptions import TwilioRestException  # type: ignore[import-untyped]
from twilio.http.http_client import TwilioHttpClient  # type: ignore[import-untyped]
from twilio.rest import Client  # type: ignore[import-untyped]

from failover.phone import mask_phone
from failover.types import (
    Channel,
    ChannelAttempt,
    DeliveryStatus,
    FailureReason,
    NormalizedRecipient,
    StatusReport,
    TwilioWhatsAppConfig,
    utcnow,
)

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 1532
DEFAULT_TIMEOUT_SECONDS = 10.0

# https://www.twilio.com/docs/api/errors
_AUTH_ERROR_CODES = frozenset({20003, 20005, 20008})
_RATE_LIMIT_ERROR_CODES = frozenset({20429, 14107, 63018})
_RECIPIENT_ERROR_CODES = frozenset({21211, 21214, 21408, 21610, 21612, 21614, 63003, 63024})

_FAILED_STATUSES = frozenset({"failed", "undelivered", "canceled"})


class _TwilioChannel:
    """Shared request/response handling for channels backed by Twilio Messages."""

    channel: Channel
    works_offline: bool = False

    def __init__(self, account_sid: str, auth_token: str, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        http_client = TwilioHttpClient(timeout=timeout)
        self._client = Client(account_sid, auth_token, http_client=http_client)

    def fetch_status(self, provider_identifier: str) -> StatusReport | None:
        """Poll Twilio for current message status."""
        try:
            msg = self._client.messages(provider_identifier).fetch()
            return StatusReport(
                status=map_twilio_status(getattr(msg, "status", None)),
                provider_identifier=msg.sid,
                error_code=str(msg.error_code) if msg.error_code else None,
                error_message=msg.error_message,
            )
        except TwilioRestException as exc:
            logger.error("Failed to fetch %s status for %s: %s", self.channel.value, provider_identifier, exc)
            return StatusReport(
                status=DeliveryStatus.FAILED,
                provider_identifier=provider_identifier,
                error_code=str(exc.code) if exc.code else None,
                error_message=str(exc.msg),
            )
        except Exception as exc:
            logger.error("Failed to fetch %s status for %s: %s", self.channel.value, provider_identifier, exc)
            return None

    def _create_message(self, params: dict[str, Any]) -> ChannelAttempt:
        started = utcnow()
        try:
            msg = self._client.messages.create(**params)
        except TwilioRestException as exc:
            reason = classify_twilio_error(exc)
            logger.error(
                "Twilio %s API error: code=%s status=%s msg=%s",
                self.channel.value,
                exc.code,
                exc.status,
                exc.msg,
            )
            return ChannelAttempt.failure(self.channel, reason, str(exc.msg), attempted_at=started)
        except RequestsTimeout as exc:
            logger.error("Twilio %s request timed out: %s", self.channel.value, exc)
            return ChannelAttempt.failure(self.channel, FailureReason.TIMEOUT, str(exc), attempted_at=started)
        except RequestsConnectionError as exc:
            logger.error("Twilio %s unreachable: %s", self.channel.value, exc)
            return ChannelAttempt.failure(self.channel, FailureReason.PROVIDER_OUTAGE, str(exc), attempted_at=started)
        except Exception as exc:
            logger.error("Twilio %s send failed: %s", self.channel.value, exc)
            return ChannelAttempt.failure(self.channel, FailureReason.PROVIDER_OUTAGE, str(exc), attempted_at=started)

        status = (getattr(msg, "status", None) or "").lower()
        if status in _FAILED_STATUSES:
            detail = getattr(msg, "error_message", None) or f"Twilio returned status {status}"
            logger.warning(
                "Twilio %s rejected message to %s: %s",
                self.channel.value,
                mask_phone(params.get("to")),
                detail,
            )
            return ChannelAttempt.failure(self.channel, FailureReason.RECIPIENT_REJECTED, detail, attempted_at=started)

        return ChannelAttempt.success(self.channel, getattr(msg, "sid", None), attempted_at=started)


class TwilioWhatsAppChannel(_TwilioChannel):
    """Sends WhatsApp text messages via the Twilio REST API."""

    channel = Channel.WHATSAPP
    works_offline = False

    def __init__(self, config: TwilioWhatsAppConfig, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        if not config.whatsapp_number:
            raise ValueError("TwilioWhatsAppConfig.whatsapp_number is required for message delivery")
        self._config = config
        super().__init__(config.account_sid, config.auth_token, timeout=timeout)

    def send(self, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        body = body.strip()
        if len(body) > MAX_BODY_CHARS:
            body = body[:MAX_BODY_CHARS]

        params: dict[str, Any] = {
            "to": f"whatsapp:{recipient}",
            "from_": _whatsapp_address(self._config.whatsapp_number),
            "body": body,
        }
        if self._config.status_callback:
            params["status_callback"] = self._config.status_callback

        return self._create_message(params)


def classify_twilio_error(exc: TwilioRestException) -> FailureReason:
    """Map a Twilio REST error onto a transport failure reason."""
    code = exc.code
    status = exc.status
    if code in _AUTH_ERROR_CODES or status in (401, 403):
        return FailureReason.AUTHENTICATION_FAILURE
    if code in _RATE_LIMIT_ERROR_CODES or status == 429:
        return FailureReason.RATE_LIMITED
    if code in _RECIPIENT_ERROR_CODES:
        return FailureReason.RECIPIENT_REJECTED
    return FailureReason.PROVIDER_OUTAGE


def map_twilio_status(twilio_status: str | None) -> DeliveryStatus:
    """Map a Twilio message status string to our DeliveryStatus enum."""
    mapping: dict[str, DeliveryStatus] = {
        "queued": DeliveryStatus.QUEUED,
        "sent": DeliveryStatus.SENT,
        "delivered": DeliveryStatus.DELIVERED,
        "read": DeliveryStatus.READ,
        "failed": DeliveryStatus.FAILED,
        "undelivered": DeliveryStatus.UNDELIVERED,
        "accepted": DeliveryStatus.QUEUED,
        "sending": DeliveryStatus.QUEUED,
        "scheduled": DeliveryStatus.QUEUED,
        "canceled": DeliveryStatus.FAILED,
    }
    if not twilio_status:
        # A SID without a status means Twilio accepted it.
        return DeliveryStatus.QUEUED

    normalized_status = twilio_status.lower()
    if normalized_status in mapping:
        return mapping[normalized_status]

    logger.warning("Unknown Twilio message status received: %s", twilio_status)
    return DeliveryStatus.FAILED


def _whatsapp_address(number: str) -> str:
    return number if number.lower().startswith("whatsapp:") else f"whatsapp:{number}"
