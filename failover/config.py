"""Process configuration, read from ``FAILOVER_*`` environment variables."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import DEFAULT_CHANNEL_ORDER, Channel, TwilioSMSConfig, TwilioWhatsAppConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FAILOVER_", env_file=".env", extra="ignore")

    # Twilio account shared by both channels unless overridden per channel.
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None

    whatsapp_account_sid: str | None = None
    whatsapp_auth_token: str | None = None
    whatsapp_number: str | None = None

    sms_account_sid: str | None = None
    sms_auth_token: str | None = None
    sms_from_number: str | None = None

    status_callback: str | None = None

    default_order: list[Channel] = Field(default_factory=lambda: list(DEFAULT_CHANNEL_ORDER))
    adapter_timeout_seconds: float = Field(default=15.0, ge=1.0, le=60.0)

    # Zero disables the local limiter for that channel.
    whatsapp_rate_limit_per_minute: int = Field(default=0, ge=0)
    sms_rate_limit_per_minute: int = Field(default=0, ge=0)

    country_code: str = "27"
    trunk_prefix: str = "0"
    subscriber_digits: int = Field(default=9, gt=0)

    identifier_prefix: str = "SM"
    identifier_length: int = 34

    category_prefixes: bool = True
    max_workers: int = Field(default=8, ge=1)

    database_url: str | None = None
    connectivity_probe_url: str | None = None
    connectivity_probe_interval_seconds: float = Field(default=30.0, gt=0)

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @field_validator("default_order")
    @classmethod
    def _unique_channels(cls, value: list[Channel]) -> list[Channel]:
        if not value:
            raise ValueError("default_order must name at least one channel")
        if len(set(value)) != len(value):
            raise ValueError("default_order must not repeat a channel")
        return value

    def whatsapp_config(self) -> TwilioWhatsAppConfig | None:
        """Config for the WhatsApp channel, or None when credentials are incomplete."""
        sid = self.whatsapp_account_sid or self.twilio_account_sid
        token = self.whatsapp_auth_token or self.twilio_auth_token
        if not (sid and token and self.whatsapp_number):
            return None
        return TwilioWhatsAppConfig(
            account_sid=sid,
            auth_token=token,
            whatsapp_number=self.whatsapp_number,
            status_callback=self.status_callback,
        )

    def sms_config(self) -> TwilioSMSConfig | None:
        """Config for the SMS channel, or None when credentials are incomplete."""
        sid = self.sms_account_sid or self.twilio_account_sid
        token = self.sms_auth_token or self.twilio_auth_token
        if not (sid and token and self.sms_from_number):
            return None
        return TwilioSMSConfig(
            account_sid=sid,
            auth_token=token,
            from_number=self.sms_from_number,
            status_callback=self.status_callback,
        )

    def rate_limit_for(self, channel: Channel) -> int:
        limits = {
            Channel.WHATSAPP: self.whatsapp_rate_limit_per_minute,
            Channel.SMS: self.sms_rate_limit_per_minute,
        }
        return limits[channel]
