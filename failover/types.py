"""Core types for the failover delivery library."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(str, Enum):
    """Transports a message can be delivered through."""

    WHATSAPP = "whatsapp"
    SMS = "sms"


DEFAULT_CHANNEL_ORDER: tuple[Channel, ...] = (Channel.WHATSAPP, Channel.SMS)


class Category(str, Enum):
    """Informational tag on a message. Does not affect routing."""

    EMERGENCY = "emergency"
    NOTIFICATION = "notification"
    REMINDER = "reminder"
    INFO = "info"

    @property
    def body_prefix(self) -> str:
        return _CATEGORY_PREFIXES[self]


_CATEGORY_PREFIXES: dict[Category, str] = {
    Category.EMERGENCY: "🚨 EMERGENCY: ",
    Category.REMINDER: "⏰ REMINDER: ",
    Category.INFO: "ℹ️ INFO: ",
    Category.NOTIFICATION: "📱 ",
}


class AttemptOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FinalOutcome(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Transport-level cause of a failed channel attempt."""

    TIMEOUT = "Timeout"
    AUTHENTICATION_FAILURE = "AuthenticationFailure"
    RECIPIENT_REJECTED = "RecipientRejected"
    RATE_LIMITED = "RateLimited"
    PROVIDER_OUTAGE = "ProviderOutage"


class IdentifierIssue(str, Enum):
    """Why a provider identifier failed lexical validation."""

    EMPTY_IDENTIFIER = "EmptyIdentifier"
    WRONG_LENGTH = "WrongLength"
    WRONG_PREFIX = "WrongPrefix"
    NON_HEX_CHARACTER = "NonHexCharacter"


ALL_CHANNELS_FAILED = "AllChannelsFailed"


class DeliveryStatus(str, Enum):
    """Provider-side status of a message that was accepted for delivery."""

    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    UNDELIVERED = "undelivered"

    @property
    def precedence(self) -> int:
        """Higher values are further along; negative values are terminal failures."""
        return _STATUS_PRECEDENCE[self]


_STATUS_PRECEDENCE: dict[DeliveryStatus, int] = {
    DeliveryStatus.QUEUED: 1,
    DeliveryStatus.SENT: 4,
    DeliveryStatus.DELIVERED: 5,
    DeliveryStatus.READ: 6,
    DeliveryStatus.FAILED: -1,
    DeliveryStatus.UNDELIVERED: -2,
}


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Status polled from a provider for a previously sent message."""

    status: DeliveryStatus
    provider_identifier: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class NormalizedRecipient(str):
    """A recipient phone number in ``+<country-code><subscriber>`` form.

    Only :class:`failover.phone.PhoneNumberNormalizer` should build these.
    """

    __slots__ = ()


# ── Message ───────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Message:
    """A unit of work submitted by a caller."""

    recipient: str
    body: str
    category: Category = Category.NOTIFICATION
    preferred_channel: Channel | None = None

    def rendered_body(self) -> str:
        """Body with the category marker the recipient sees."""
        return f"{self.category.body_prefix}{self.body}"


# ── Attempts and records ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Result of checking a provider identifier against its grammar."""

    is_valid: bool
    reason: str
    issue: IdentifierIssue | None = None

    @classmethod
    def ok(cls, reason: str = "Valid identifier") -> ValidationResult:
        return cls(is_valid=True, reason=reason)

    @classmethod
    def invalid(cls, issue: IdentifierIssue, reason: str) -> ValidationResult:
        return cls(is_valid=False, reason=reason, issue=issue)


@dataclass(frozen=True, slots=True)
class ChannelAttempt:
    """One try against one channel."""

    channel: Channel
    outcome: AttemptOutcome
    provider_identifier: str | None = None
    failure_reason: FailureReason | None = None
    failure_detail: str | None = None
    identifier_issue: IdentifierIssue | None = None
    attempted_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCEEDED

    @classmethod
    def success(
        cls,
        channel: Channel,
        provider_identifier: str | None,
        *,
        attempted_at: datetime | None = None,
    ) -> ChannelAttempt:
        return cls(
            channel=channel,
            outcome=AttemptOutcome.SUCCEEDED,
            provider_identifier=provider_identifier,
            attempted_at=attempted_at or utcnow(),
            completed_at=utcnow(),
        )

    @classmethod
    def failure(
        cls,
        channel: Channel,
        reason: FailureReason,
        detail: str | None = None,
        *,
        attempted_at: datetime | None = None,
    ) -> ChannelAttempt:
        return cls(
            channel=channel,
            outcome=AttemptOutcome.FAILED,
            failure_reason=reason,
            failure_detail=detail,
            attempted_at=attempted_at or utcnow(),
            completed_at=utcnow(),
        )


@dataclass(frozen=True, slots=True)
class DeliveryRecord:
    """Sealed audit result of one message's failover sequence."""

    id: str
    recipient: NormalizedRecipient
    body: str
    category: Category
    attempts: tuple[ChannelAttempt, ...]
    final_outcome: FinalOutcome
    final_channel: Channel | None
    created_at: datetime
    completed_at: datetime

    @property
    def delivered(self) -> bool:
        return self.final_outcome == FinalOutcome.DELIVERED

    @property
    def used_fallback(self) -> bool:
        return self.delivered and len(self.attempts) > 1

    @property
    def failure_reasons(self) -> tuple[FailureReason, ...]:
        return tuple(a.failure_reason for a in self.attempts if a.failure_reason is not None)

    @property
    def failure_code(self) -> str | None:
        """``AllChannelsFailed`` when every attempted channel failed."""
        if self.delivered:
            return None
        if len(self.attempts) > 1:
            return ALL_CHANNELS_FAILED
        reasons = self.failure_reasons
        return reasons[0].value if reasons else ALL_CHANNELS_FAILED


@dataclass(slots=True)
class RecordDraft:
    """Mutable delivery record used while a failover sequence is running."""

    id: str
    recipient: NormalizedRecipient
    body: str
    category: Category
    created_at: datetime = field(default_factory=utcnow)
    attempts: list[ChannelAttempt] = field(default_factory=list)

    def append(self, attempt: ChannelAttempt) -> None:
        self.attempts.append(attempt)

    def seal(self) -> DeliveryRecord:
        delivered = next((a for a in self.attempts if a.succeeded), None)
        return DeliveryRecord(
            id=self.id,
            recipient=self.recipient,
            body=self.body,
            category=self.category,
            attempts=tuple(self.attempts),
            final_outcome=FinalOutcome.DELIVERED if delivered else FinalOutcome.FAILED,
            final_channel=delivered.channel if delivered else None,
            created_at=self.created_at,
            completed_at=utcnow(),
        )


# ── Provider configuration ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TwilioWhatsAppConfig:
    """Configuration for the Twilio WhatsApp channel."""

    account_sid: str
    auth_token: str
    whatsapp_number: str  # Must be formatted as whatsapp:+E.164
    status_callback: str | None = None


@dataclass(frozen=True, slots=True)
class TwilioSMSConfig:
    """Configuration for the Twilio SMS channel."""

    account_sid: str
    auth_token: str
    from_number: str  # E.164
    status_callback: str | None = None
