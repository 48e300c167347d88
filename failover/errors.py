"""Exception hierarchy for the failover library."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .types import FailureReason

if TYPE_CHECKING:
    from .types import DeliveryRecord


class MessageRejected(ValueError):
    """A submitted message is unusable; no channel was attempted."""

    code = "MessageRejected"


class InvalidRecipient(MessageRejected):
    """The recipient could not be normalized."""

    code = "InvalidRecipient"

    def __init__(self, raw: str | None, detail: str = "Recipient is not a valid phone number") -> None:
        super().__init__(detail)
        self.raw = raw


class EmptyBody(MessageRejected):
    code = "EmptyBody"

    def __init__(self) -> None:
        super().__init__("Message body is required")


class TransportError(RuntimeError):
    """A channel could not deliver a message.

    Adapters may raise these instead of returning a failed attempt; the
    orchestrator converts them either way.
    """

    reason = FailureReason.PROVIDER_OUTAGE

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class ChannelTimeout(TransportError):
    reason = FailureReason.TIMEOUT


class AuthenticationFailure(TransportError):
    reason = FailureReason.AUTHENTICATION_FAILURE


class RecipientRejected(TransportError):
    reason = FailureReason.RECIPIENT_REJECTED


class RateLimited(TransportError):
    reason = FailureReason.RATE_LIMITED


class ProviderOutage(TransportError):
    reason = FailureReason.PROVIDER_OUTAGE


class HistoryError(RuntimeError):
    """The delivery history store failed."""


class DuplicateRecordError(HistoryError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"Delivery record {record_id} already exists")
        self.record_id = record_id


class AuditWriteError(RuntimeError):
    """Delivery finished but its record could not be written to history.

    ``record`` holds the sealed outcome so callers can still report whether
    the message itself went out.
    """

    code = "AuditWriteFailed"

    def __init__(self, record: DeliveryRecord, cause: BaseException) -> None:
        super().__init__(f"Failed to write delivery record {record.id}: {cause}")
        self.record = record
        self.cause = cause


class ConfigurationError(RuntimeError):
    """Settings do not allow any message to be sent."""
