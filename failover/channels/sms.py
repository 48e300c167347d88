"""Twilio SMS channel."""

from __future__ import annotations

from typing import Any

from failover.channels.twilio import DEFAULT_TIMEOUT_SECONDS, _TwilioChannel
from failover.types import Channel, ChannelAttempt, NormalizedRecipient, TwilioSMSConfig

MAX_SMS_CHARS = 1600


class TwilioSMSChannel(_TwilioChannel):
    """Sends SMS messages via the Twilio REST API.

    SMS reaches handsets without a data connection, so this is the channel
    preferred while the network monitor reports offline.
    """

    channel = Channel.SMS
    works_offline = True

    def __init__(self, config: TwilioSMSConfig, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        if not config.from_number:
            raise ValueError("TwilioSMSConfig.from_number is required for SMS delivery")
        self._config = config
        super().__init__(config.account_sid, config.auth_token, timeout=timeout)

    def send(self, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        body = body.strip()
        if len(body) > MAX_SMS_CHARS:
            body = body[:MAX_SMS_CHARS]

        params: dict[str, Any] = {
            "to": str(recipient),
            "from_": self._config.from_number,
            "body": body,
        }
        if self._config.status_callback:
            params["status_callback"] = self._config.status_callback

        return self._create_message(params)
