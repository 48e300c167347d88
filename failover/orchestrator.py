"""Failover orchestrator: the main entry point for sending messages.

The orchestrator owns the whole life of one message: normalize the
recipient, pick a channel order, try the primary channel, fall back to the
secondary on failure, validate the provider identifier, seal the record and
write it to history. At most two provider calls are made per message.

Usage::

    from failover import Channel, FailoverOrchestrator, InMemoryHistoryStore, Message, NetworkStateMonitor

    orchestrator = FailoverOrchestrator(
        {Channel.WHATSAPP: whatsapp, Channel.SMS: sms},
        history=InMemoryHistoryStore(),
        network=NetworkStateMonitor(),
    )
    record = orchestrator.dispatch(Message(recipient="082 123 4567", body="Your taxi is here"))
    if record.delivered:
        print(f"Sent via {record.final_channel.value}")
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
import uuid
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from enum import Enum

from .channels.base import ChannelAdapter
from .errors import AuditWriteError, EmptyBody, InvalidRecipient, TransportError
from .history import DeliveryHistoryStore
from .network import NetworkState, NetworkStateMonitor
from .phone import PhoneNumberNormalizer, mask_phone
from .types import (
    DEFAULT_CHANNEL_ORDER,
    Channel,
    ChannelAttempt,
    DeliveryRecord,
    FailureReason,
    Message,
    NormalizedRecipient,
    RecordDraft,
    StatusReport,
    utcnow,
)
from .validation import IdentifierValidator

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2
DEFAULT_ADAPTER_TIMEOUT_SECONDS = 15.0


class DeliveryState(str, Enum):
    SUBMITTED = "submitted"
    NORMALIZING = "normalizing"
    ATTEMPTING_PRIMARY = "attempting_primary"
    ATTEMPTING_SECONDARY = "attempting_secondary"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DeliveryEvent:
    """Structured progress notification for presentation layers."""

    state: DeliveryState
    record_id: str
    channel: Channel | None = None
    record: DeliveryRecord | None = None


EventListener = Callable[[DeliveryEvent], None]


class PendingSend:
    """Handle for a message dispatched in the background.

    ``cancel()`` succeeds only while the primary channel call has not begun.
    Once a provider has been called the sequence runs to completion and is
    recorded, since the message may already be on its way.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started = False
        self._cancelled = False
        self._future: Future[DeliveryRecord] | None = None

    def cancel(self) -> bool:
        with self._lock:
            if self._started:
                return False
            self._cancelled = True
        if self._future is not None:
            self._future.cancel()
        return True

    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: float | None = None) -> DeliveryRecord:
        """Block until the record is sealed. Raises ``CancelledError`` if cancelled."""
        if self._future is None:
            raise RuntimeError("Send has not been scheduled")
        return self._future.result(timeout)

    def _begin_primary(self) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._started = True
            return True


def resolve_channel_order(
    available: Sequence[Channel],
    *,
    network_state: NetworkState,
    offline_capable: set[Channel] | frozenset[Channel],
    preferred: Channel | None = None,
    default_order: Sequence[Channel] = DEFAULT_CHANNEL_ORDER,
) -> tuple[Channel, ...]:
    """Decide which channels to try, in order, for one message.

    Offline forces offline-capable channels to the front regardless of
    preference. Online, the caller's preference leads, then the default
    order. Channels without an adapter are dropped.
    """
    order = [c for c in default_order if c in available]
    order += [c for c in available if c not in order]

    if preferred is not None and preferred in order:
        order.remove(preferred)
        order.insert(0, preferred)

    if network_state == NetworkState.OFFLINE:
        order = [c for c in order if c in offline_capable] + [c for c in order if c not in offline_capable]

    return tuple(order[:MAX_ATTEMPTS])


def _start_call(adapter: ChannelAdapter, recipient: NormalizedRecipient, body: str) -> Future[ChannelAttempt]:
    """Run ``adapter.send`` on its own daemon thread.

    Each call gets a fresh thread, so the caller's timeout measures the
    provider call alone and never time spent queued behind other messages.
    A provider that hangs past the timeout is abandoned, not interrupted.
    """
    future: Future[ChannelAttempt] = Future()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(adapter.send(recipient, body))
        except BaseException as exc:
            future.set_exception(exc)

    threading.Thread(target=run, name=f"failover-call-{adapter.channel.value}", daemon=True).start()
    return future


class FailoverOrchestrator:
    """Sends messages with ordered two-channel failover.

    Args:
        adapters: One adapter per configured channel. A single adapter means
            degraded, single-channel operation.
        history: Where sealed records are appended.
        network: Connectivity monitor consulted once per message.
        normalizer: Recipient normalizer (South African rules by default).
        validator: Provider identifier validator (Twilio SIDs by default).
        default_order: Channel order when neither network state nor caller
            preference decides.
        timeout: Hard limit in seconds for each adapter call.
        prefix_bodies: Prepend the category marker to outgoing bodies.
        max_workers: Size of the background dispatch pool used by ``submit``.
    """

    def __init__(
        self,
        adapters: Mapping[Channel, ChannelAdapter],
        *,
        history: DeliveryHistoryStore,
        network: NetworkStateMonitor | None = None,
        normalizer: PhoneNumberNormalizer | None = None,
        validator: IdentifierValidator | None = None,
        default_order: Sequence[Channel] = DEFAULT_CHANNEL_ORDER,
        timeout: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS,
        prefix_bodies: bool = True,
        max_workers: int = 8,
    ) -> None:
        if not adapters:
            raise ValueError("At least one channel adapter is required")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        for channel, adapter in adapters.items():
            if adapter.channel != channel:
                raise ValueError(f"Adapter for {channel.value} reports channel {adapter.channel.value}")

        self._adapters = dict(adapters)
        self._history = history
        self._network = network or NetworkStateMonitor()
        self._normalizer = normalizer or PhoneNumberNormalizer()
        self._validator = validator or IdentifierValidator()
        self._default_order = tuple(default_order)
        self._timeout = timeout
        self._prefix_bodies = prefix_bodies
        self._offline_capable = frozenset(c for c, a in self._adapters.items() if a.works_offline)
        self._listeners: list[EventListener] = []
        self._listeners_lock = threading.Lock()
        self._dispatch_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="failover-dispatch")

    # ── Properties ────────────────────────────────────────────────

    @property
    def channels(self) -> tuple[Channel, ...]:
        return tuple(self._adapters)

    @property
    def degraded(self) -> bool:
        """True when only one channel is configured, so there is nothing to fail over to."""
        return len(self._adapters) < MAX_ATTEMPTS

    @property
    def network(self) -> NetworkStateMonitor:
        return self._network

    @property
    def history(self) -> DeliveryHistoryStore:
        return self._history

    @property
    def normalizer(self) -> PhoneNumberNormalizer:
        return self._normalizer

    @property
    def validator(self) -> IdentifierValidator:
        return self._validator

    # ── Public API ────────────────────────────────────────────────

    def dispatch(self, message: Message) -> DeliveryRecord:
        """Run the full failover sequence for *message* and return its sealed record.

        Raises:
            InvalidRecipient: The recipient is empty or cannot be normalized.
                No channel is attempted and nothing is written to history.
            EmptyBody: The message body is blank.
            AuditWriteError: Delivery finished but the history write failed.
        """
        record_id, recipient = self._accept(message)
        return self._execute(message, record_id, recipient)

    def submit(self, message: Message) -> PendingSend:
        """Validate *message* now and dispatch it on the background pool."""
        record_id, recipient = self._accept(message)
        pending = PendingSend()
        pending._future = self._dispatch_pool.submit(
            self._execute, message, record_id, recipient, pending._begin_primary
        )
        return pending

    async def dispatch_async(self, message: Message) -> DeliveryRecord:
        """Dispatch from asyncio code (runs the sync sequence in a thread)."""
        return await asyncio.to_thread(self.dispatch, message)

    def channel_order(self, message: Message, network_state: NetworkState | None = None) -> tuple[Channel, ...]:
        return resolve_channel_order(
            self.channels,
            network_state=network_state if network_state is not None else self._network.state,
            offline_capable=self._offline_capable,
            preferred=message.preferred_channel,
            default_order=self._default_order,
        )

    def fetch_status(self, channel: Channel, provider_identifier: str) -> StatusReport | None:
        """Ask the channel that sent a message for its current status."""
        adapter = self._adapters.get(channel)
        if adapter is None:
            return None
        return adapter.fetch_status(provider_identifier)

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a progress listener; returns a callable that removes it."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def close(self, wait: bool = True) -> None:
        self._dispatch_pool.shutdown(wait=wait)

    def __enter__(self) -> FailoverOrchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Sequence ──────────────────────────────────────────────────

    def _accept(self, message: Message) -> tuple[str, NormalizedRecipient]:
        if not message.recipient or not message.recipient.strip():
            raise InvalidRecipient(message.recipient, "Recipient is empty")
        if not message.body or not message.body.strip():
            raise EmptyBody()

        record_id = str(uuid.uuid4())
        self._emit(DeliveryEvent(DeliveryState.SUBMITTED, record_id))
        self._emit(DeliveryEvent(DeliveryState.NORMALIZING, record_id))
        try:
            recipient = self._normalizer.normalize(message.recipient)
        except InvalidRecipient:
            logger.info("Rejected message %s: recipient %s cannot be normalized", record_id, mask_phone(message.recipient))
            raise
        return record_id, recipient

    def _execute(
        self,
        message: Message,
        record_id: str,
        recipient: NormalizedRecipient,
        begin_primary: Callable[[], bool] | None = None,
    ) -> DeliveryRecord:
        # One snapshot per message; the state may flip while we are sending.
        network_state = self._network.state
        order = self.channel_order(message, network_state)
        body = message.rendered_body() if self._prefix_bodies else message.body

        draft = RecordDraft(id=record_id, recipient=recipient, body=message.body, category=message.category)

        for position, channel in enumerate(order):
            if position == 0:
                if begin_primary is not None and not begin_primary():
                    logger.info("Message %s cancelled before dispatch", record_id)
                    raise CancelledError()
                state = DeliveryState.ATTEMPTING_PRIMARY
            else:
                state = DeliveryState.ATTEMPTING_SECONDARY
                logger.info(
                    "Failing over message %s from %s to %s",
                    record_id,
                    order[position - 1].value,
                    channel.value,
                )
            self._emit(DeliveryEvent(state, record_id, channel=channel))

            attempt = self._check_identifier(record_id, self._attempt(channel, recipient, body))
            draft.append(attempt)
            if attempt.succeeded:
                break
            logger.warning(
                "Channel %s failed for message %s: %s (%s)",
                channel.value,
                record_id,
                attempt.failure_reason.value if attempt.failure_reason else "unknown",
                attempt.failure_detail,
            )

        record = draft.seal()
        if record.delivered:
            logger.info(
                "Message %s delivered to %s via %s after %d attempt(s)",
                record.id,
                mask_phone(record.recipient),
                record.final_channel.value if record.final_channel else "-",
                len(record.attempts),
            )
        else:
            logger.error(
                "Message %s to %s failed on all channels: %s",
                record.id,
                mask_phone(record.recipient),
                ", ".join(reason.value for reason in record.failure_reasons),
            )

        try:
            self._history.append(record)
        except Exception as exc:
            logger.exception("Delivery record %s could not be written to history", record.id)
            raise AuditWriteError(record, exc) from exc

        final_state = DeliveryState.DELIVERED if record.delivered else DeliveryState.FAILED
        self._emit(DeliveryEvent(final_state, record.id, channel=record.final_channel, record=record))
        return record

    def _attempt(self, channel: Channel, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        adapter = self._adapters[channel]
        started = utcnow()
        future = _start_call(adapter, recipient, body)
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeoutError:
            logger.warning("Channel %s did not answer within %.1fs", channel.value, self._timeout)
            return ChannelAttempt.failure(
                channel,
                FailureReason.TIMEOUT,
                f"No response within {self._timeout:g}s",
                attempted_at=started,
            )
        except TransportError as exc:
            return ChannelAttempt.failure(channel, exc.reason, str(exc), attempted_at=started)
        except Exception as exc:
            logger.exception("Unexpected error from %s channel", channel.value)
            return ChannelAttempt.failure(channel, FailureReason.PROVIDER_OUTAGE, str(exc), attempted_at=started)

    def _check_identifier(self, record_id: str, attempt: ChannelAttempt) -> ChannelAttempt:
        """Annotate a successful attempt whose identifier looks wrong.

        Transport success stands: a malformed identifier does not mean the
        message was not delivered, so this never triggers failover.
        """
        if not attempt.succeeded:
            return attempt
        result = self._validator.validate(attempt.provider_identifier)
        if result.is_valid:
            return attempt
        logger.warning(
            "Data quality: %s returned malformed identifier %r for message %s: %s",
            attempt.channel.value,
            attempt.provider_identifier,
            record_id,
            result.reason,
        )
        return dataclasses.replace(attempt, identifier_issue=result.issue)

    def _emit(self, event: DeliveryEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Delivery event listener failed")
