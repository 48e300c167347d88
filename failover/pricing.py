"""Per-channel message cost estimates.

Rates are South African rand per outbound message as quoted by the
providers (WhatsApp utility conversation vs. a single SMS segment).
"""

from decimal import Decimal

from .types import Channel, DeliveryRecord

CHANNEL_PRICING: dict[Channel, Decimal] = {
    Channel.SMS: Decimal("1.56"),
    Channel.WHATSAPP: Decimal("1.09"),
}


def calculate_message_cost(channel: Channel | None) -> Decimal:
    """Estimated cost of one delivered message on *channel* (zero when nothing went out)."""
    if channel is None:
        return Decimal("0")
    return CHANNEL_PRICING[channel]


def estimate_record_cost(record: DeliveryRecord) -> Decimal:
    """Only the attempt that succeeded is billed."""
    return calculate_message_cost(record.final_channel)
