"""Delivery channels."""

from .base import ChannelAdapter
from .ratelimit import RateLimitedChannel, SlidingWindowLimiter
from .sms import TwilioSMSChannel
from .twilio import TwilioWhatsAppChannel

__all__ = [
    "ChannelAdapter",
    "RateLimitedChannel",
    "SlidingWindowLimiter",
    "TwilioSMSChannel",
    "TwilioWhatsAppChannel",
]
