"""
failover: two-channel message delivery with automatic fallback.

Delivers a text message to a phone by trying a preferred channel (WhatsApp
via Twilio) and falling back to plain SMS when the first attempt fails.
Provider message SIDs are validated, and every send ends up as a sealed
``DeliveryRecord`` in an append-only history.

Quick start::

    from failover import (
        Channel, FailoverOrchestrator, InMemoryHistoryStore, Message,
        NetworkStateMonitor, TwilioSMSChannel, TwilioSMSConfig,
        TwilioWhatsAppChannel, TwilioWhatsAppConfig,
    )

    orchestrator = FailoverOrchestrator(
        {
            Channel.WHATSAPP: TwilioWhatsAppChannel(TwilioWhatsAppConfig(
                account_sid="AC...", auth_token="...", whatsapp_number="whatsapp:+14155238886",
            )),
            Channel.SMS: TwilioSMSChannel(TwilioSMSConfig(
                account_sid="AC...", auth_token="...", from_number="+14155238886",
            )),
        },
        history=InMemoryHistoryStore(),
        network=NetworkStateMonitor(),
    )
    record = orchestrator.dispatch(Message(recipient="082 123 4567", body="Your ride is 5 minutes away"))
    if record.delivered:
        print(f"Sent via {record.final_channel.value}: {record.attempts[-1].provider_identifier}")

Offline handling::

    orchestrator.network.mark_offline()   # SMS is tried first until marked online again

Identifier checks::

    from failover import validate_identifier

    validate_identifier("AC4c1234567890abcdef1234567890abcd").reason
    # 'Identifier must start with "SM", got "AC"'

For testing::

    from failover import MockChannel

    sms = MockChannel(Channel.SMS)
    whatsapp = MockChannel(Channel.WHATSAPP, fail_with=FailureReason.PROVIDER_OUTAGE)

Running the HTTP service::

    FAILOVER_TWILIO_ACCOUNT_SID=AC... FAILOVER_TWILIO_AUTH_TOKEN=... \\
    FAILOVER_SMS_FROM_NUMBER=+14155238886 python -m failover

Module overview
---------------
- ``types``         - Enums, Message, ChannelAttempt, DeliveryRecord, provider configs
- ``errors``        - Rejection, transport and audit exceptions
- ``phone``         - Recipient normalization (South African numbering by default)
- ``validation``    - Provider identifier (message SID) validation
- ``channels/``     - TwilioWhatsAppChannel, TwilioSMSChannel, RateLimitedChannel
- ``network``       - NetworkStateMonitor and ConnectivityProbe
- ``orchestrator``  - FailoverOrchestrator
- ``history``       - DeliveryHistoryStore protocol, InMemoryHistoryStore, usage summaries
- ``sql``           - SQLHistoryStore (SQLAlchemy)
- ``pricing``       - Per-channel cost estimates
- ``config``        - Settings from FAILOVER_* environment variables
- ``bootstrap``     - Builds an orchestrator from Settings
- ``api``           - Flask app factory and routes
- ``mock``          - MockChannel for tests
"""

from .channels import ChannelAdapter, RateLimitedChannel, SlidingWindowLimiter, TwilioSMSChannel, TwilioWhatsAppChannel
from .errors import (
    AuditWriteError,
    AuthenticationFailure,
    ChannelTimeout,
    ConfigurationError,
    DuplicateRecordError,
    EmptyBody,
    HistoryError,
    InvalidRecipient,
    MessageRejected,
    ProviderOutage,
    RateLimited,
    RecipientRejected,
    TransportError,
)
from .history import DeliveryHistoryStore, InMemoryHistoryStore, UsageSummary
from .mock import MockChannel
from .network import ConnectivityProbe, NetworkState, NetworkStateMonitor
from .orchestrator import DeliveryEvent, DeliveryState, FailoverOrchestrator, PendingSend, resolve_channel_order
from .phone import PhoneNumberNormalizer, mask_phone, normalize_phone, phones_match
from .pricing import CHANNEL_PRICING, calculate_message_cost
from .sql import SQLHistoryStore
from .types import (
    AttemptOutcome,
    Category,
    Channel,
    ChannelAttempt,
    DeliveryRecord,
    DeliveryStatus,
    FailureReason,
    FinalOutcome,
    IdentifierIssue,
    Message,
    NormalizedRecipient,
    StatusReport,
    TwilioSMSConfig,
    TwilioWhatsAppConfig,
    ValidationResult,
)
from .validation import IdentifierValidator, validate_identifier

__all__ = [
    # Orchestration
    "FailoverOrchestrator",
    "PendingSend",
    "DeliveryEvent",
    "DeliveryState",
    "resolve_channel_order",
    # Channels
    "ChannelAdapter",
    "TwilioWhatsAppChannel",
    "TwilioSMSChannel",
    "RateLimitedChannel",
    "SlidingWindowLimiter",
    "MockChannel",
    # Network
    "NetworkState",
    "NetworkStateMonitor",
    "ConnectivityProbe",
    # History
    "DeliveryHistoryStore",
    "InMemoryHistoryStore",
    "SQLHistoryStore",
    "UsageSummary",
    # Types
    "AttemptOutcome",
    "Category",
    "Channel",
    "ChannelAttempt",
    "DeliveryRecord",
    "DeliveryStatus",
    "FailureReason",
    "FinalOutcome",
    "IdentifierIssue",
    "Message",
    "NormalizedRecipient",
    "StatusReport",
    "TwilioSMSConfig",
    "TwilioWhatsAppConfig",
    "ValidationResult",
    # Errors
    "AuditWriteError",
    "AuthenticationFailure",
    "ChannelTimeout",
    "ConfigurationError",
    "DuplicateRecordError",
    "EmptyBody",
    "HistoryError",
    "InvalidRecipient",
    "MessageRejected",
    "ProviderOutage",
    "RateLimited",
    "RecipientRejected",
    "TransportError",
    # Phone
    "PhoneNumberNormalizer",
    "mask_phone",
    "normalize_phone",
    "phones_match",
    # Validation
    "IdentifierValidator",
    "validate_identifier",
    # Pricing
    "CHANNEL_PRICING",
    "calculate_message_cost",
]
