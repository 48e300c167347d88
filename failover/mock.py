"""Mock channel for testing.

Records every send and returns configurable results. Useful for unit
testing code that depends on delivery without hitting real providers.
"""

from __future__ import annotations

import random
import threading
import time
import uuid
from dataclasses import dataclass

from .types import Channel, ChannelAttempt, DeliveryStatus, FailureReason, NormalizedRecipient, StatusReport


@dataclass
class SentMessage:
    """Record of a send made through the MockChannel."""

    recipient: NormalizedRecipient
    body: str
    attempt: ChannelAttempt | None


class MockChannel:
    """Test channel that records sends and returns configurable results.

    Usage::

        sms = MockChannel(Channel.SMS)
        attempt = sms.send(NormalizedRecipient("+27821234567"), "hi")
        assert attempt.succeeded
        assert sms.sent[0].body == "hi"

    Configure failures::

        MockChannel(Channel.WHATSAPP, fail_with=FailureReason.PROVIDER_OUTAGE)
        MockChannel(Channel.WHATSAPP, raises=RateLimited("slow down"))
        MockChannel(Channel.WHATSAPP, failure_rate=0.5)

    ``delay`` makes each send block, for exercising timeouts.
    """

    def __init__(
        self,
        channel: Channel = Channel.SMS,
        *,
        works_offline: bool | None = None,
        fail_with: FailureReason | None = None,
        raises: BaseException | None = None,
        failure_rate: float = 0.0,
        identifier: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self.channel = channel
        self.works_offline = channel == Channel.SMS if works_offline is None else works_offline
        self.fail_with = fail_with
        self.raises = raises
        self.failure_rate = failure_rate
        self.identifier = identifier
        self.delay = delay
        self.sent: list[SentMessage] = []
        self._lock = threading.Lock()

    def send(self, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        if self.delay:
            time.sleep(self.delay)

        if self.raises is not None:
            self._record(SentMessage(recipient=recipient, body=body, attempt=None))
            raise self.raises

        if self.fail_with is not None:
            attempt = ChannelAttempt.failure(self.channel, self.fail_with, f"Simulated {self.fail_with.value}")
        elif self.failure_rate > 0 and random.random() < self.failure_rate:  # noqa: S311
            attempt = ChannelAttempt.failure(self.channel, FailureReason.PROVIDER_OUTAGE, "Simulated failure")
        else:
            identifier = self.identifier if self.identifier is not None else f"SM{uuid.uuid4().hex}"
            attempt = ChannelAttempt.success(self.channel, identifier)

        self._record(SentMessage(recipient=recipient, body=body, attempt=attempt))
        return attempt

    def fetch_status(self, provider_identifier: str) -> StatusReport | None:
        for record in self.sent:
            if record.attempt is not None and record.attempt.provider_identifier == provider_identifier:
                return StatusReport(status=DeliveryStatus.SENT, provider_identifier=provider_identifier)
        return None

    def reset(self) -> None:
        """Clear all recorded sends."""
        with self._lock:
            self.sent.clear()

    def _record(self, sent: SentMessage) -> None:
        with self._lock:
            self.sent.append(sent)
