"""Builds a ready-to-use orchestrator from :class:`~failover.config.Settings`."""

from __future__ import annotations

import logging

from .channels import RateLimitedChannel, SlidingWindowLimiter, TwilioSMSChannel, TwilioWhatsAppChannel
from .channels.base import ChannelAdapter
from .config import Settings
from .errors import ConfigurationError
from .history import DeliveryHistoryStore, InMemoryHistoryStore
from .network import ConnectivityProbe, NetworkStateMonitor
from .orchestrator import FailoverOrchestrator
from .phone import PhoneNumberNormalizer
from .sql import SQLHistoryStore
from .types import Channel
from .validation import IdentifierValidator

logger = logging.getLogger(__name__)


def build_adapters(settings: Settings) -> dict[Channel, ChannelAdapter]:
    """Create an adapter for every channel with complete credentials.

    A channel whose credentials are missing is skipped and the remaining
    channel carries all traffic; this is logged once here.
    """
    adapters: dict[Channel, ChannelAdapter] = {}

    whatsapp = settings.whatsapp_config()
    if whatsapp is not None:
        adapters[Channel.WHATSAPP] = TwilioWhatsAppChannel(whatsapp, timeout=settings.adapter_timeout_seconds)

    sms = settings.sms_config()
    if sms is not None:
        adapters[Channel.SMS] = TwilioSMSChannel(sms, timeout=settings.adapter_timeout_seconds)

    if not adapters:
        raise ConfigurationError("No delivery channel has complete Twilio credentials")

    missing = [c.value for c in Channel if c not in adapters]
    if missing:
        logger.warning(
            "Credentials missing for %s; running in degraded %s-only mode without failover",
            ", ".join(missing),
            ", ".join(c.value for c in adapters),
        )

    for channel, adapter in list(adapters.items()):
        limit = settings.rate_limit_for(channel)
        if limit:
            adapters[channel] = RateLimitedChannel(adapter, SlidingWindowLimiter(limit, 60.0))

    return adapters


def build_history(settings: Settings) -> DeliveryHistoryStore:
    if settings.database_url:
        return SQLHistoryStore.from_url(settings.database_url, pool_pre_ping=True)
    logger.info("No database configured; delivery history is kept in memory")
    return InMemoryHistoryStore()


def build_orchestrator(
    settings: Settings,
    *,
    adapters: dict[Channel, ChannelAdapter] | None = None,
    history: DeliveryHistoryStore | None = None,
    network: NetworkStateMonitor | None = None,
) -> FailoverOrchestrator:
    """Wire an orchestrator; any collaborator can be passed in to override the default."""
    return FailoverOrchestrator(
        adapters if adapters is not None else build_adapters(settings),
        history=history if history is not None else build_history(settings),
        network=network or NetworkStateMonitor(),
        normalizer=PhoneNumberNormalizer(
            country_code=settings.country_code,
            trunk_prefix=settings.trunk_prefix,
            subscriber_digits=settings.subscriber_digits,
        ),
        validator=IdentifierValidator(prefix=settings.identifier_prefix, length=settings.identifier_length),
        default_order=settings.default_order,
        timeout=settings.adapter_timeout_seconds,
        prefix_bodies=settings.category_prefixes,
        max_workers=settings.max_workers,
    )


def build_probe(settings: Settings, network: NetworkStateMonitor) -> ConnectivityProbe | None:
    if not settings.connectivity_probe_url:
        return None
    return ConnectivityProbe(
        network,
        settings.connectivity_probe_url,
        interval=settings.connectivity_probe_interval_seconds,
    )
