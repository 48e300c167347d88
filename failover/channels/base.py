"""Base protocol for delivery channels."""

from __future__ import annotations

from typing import Protocol

from failover.types import Channel, ChannelAttempt, NormalizedRecipient, StatusReport


class ChannelAdapter(Protocol):
    """Interface that every concrete transport must implement.

    Adapters make exactly one provider call per ``send`` and never retry;
    retry and failover policy belongs to the orchestrator.
    """

    channel: Channel
    works_offline: bool

    def send(self, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        """Send *body* and return the attempt.

        Failures are either returned as a failed attempt or raised as a
        :class:`failover.errors.TransportError`.
        """
        ...

    def fetch_status(self, provider_identifier: str) -> StatusReport | None:
        """Fetch current delivery status for a previously sent message.

        Returns None if the provider doesn't support status polling or
        the message is not found.
        """
        ...
