"""Tests for settings and orchestrator wiring."""

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from failover import (
    Channel,
    ConfigurationError,
    InMemoryHistoryStore,
    Message,
    MockChannel,
    RateLimitedChannel,
    SQLHistoryStore,
)
from failover.errors import ConfigurationError as ErrorsConfigurationError
from failover.bootstrap import build_adapters, build_history, build_orchestrator, build_probe
from failover.config import Settings
from failover.network import NetworkStateMonitor

FULL = {
    "twilio_account_sid": "ACtest123",
    "twilio_auth_token": "test_token_456",
    "whatsapp_number": "whatsapp:+14155238886",
    "sms_from_number": "+14155238886",
}


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{**FULL, **overrides})


@pytest.fixture(autouse=True)
def _mock_twilio():
    with patch("failover.channels.twilio.Client"), \
         patch("failover.channels.twilio.TwilioHttpClient"):
        yield


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.default_order == [Channel.WHATSAPP, Channel.SMS]
        assert settings.adapter_timeout_seconds == 15.0
        assert settings.country_code == "27"
        assert settings.whatsapp_config() is None
        assert settings.sms_config() is None

    def test_reads_environment(self):
        env = {
            "FAILOVER_TWILIO_ACCOUNT_SID": "ACenv",
            "FAILOVER_TWILIO_AUTH_TOKEN": "envtoken",
            "FAILOVER_SMS_FROM_NUMBER": "+27870000000",
            "FAILOVER_DEFAULT_ORDER": '["sms", "whatsapp"]',
            "FAILOVER_ADAPTER_TIMEOUT_SECONDS": "20",
            "FAILOVER_SMS_RATE_LIMIT_PER_MINUTE": "30",
        }
        with patch.dict(os.environ, env):
            settings = Settings(_env_file=None)

        assert settings.default_order == [Channel.SMS, Channel.WHATSAPP]
        assert settings.adapter_timeout_seconds == 20.0
        assert settings.rate_limit_for(Channel.SMS) == 30
        assert settings.sms_config().account_sid == "ACenv"

    def test_per_channel_credentials_override_shared(self):
        settings = _settings(whatsapp_account_sid="ACwa", whatsapp_auth_token="watoken")
        assert settings.whatsapp_config().account_sid == "ACwa"
        assert settings.sms_config().account_sid == "ACtest123"

    @pytest.mark.parametrize("order", [[], ["sms", "sms"], ["email"]])
    def test_rejects_bad_default_order(self, order):
        with pytest.raises(ValidationError):
            _settings(default_order=order)

    @pytest.mark.parametrize("timeout", [0, 0.5, 61])
    def test_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            _settings(adapter_timeout_seconds=timeout)


class TestBuildAdapters:
    def test_both_channels(self):
        adapters = build_adapters(_settings())
        assert set(adapters) == {Channel.WHATSAPP, Channel.SMS}
        assert adapters[Channel.SMS].works_offline

    def test_missing_whatsapp_degrades_to_sms(self, caplog):
        with caplog.at_level(logging.WARNING, logger="failover.bootstrap"):
            adapters = build_adapters(_settings(whatsapp_number=None))

        assert set(adapters) == {Channel.SMS}
        degraded = [r for r in caplog.records if "degraded" in r.getMessage()]
        assert len(degraded) == 1
        assert "whatsapp" in degraded[0].getMessage()

    def test_no_channels_is_an_error(self):
        with pytest.raises(ConfigurationError):
            build_adapters(Settings(_env_file=None))

    def test_configuration_error_lives_with_the_other_errors(self):
        assert ConfigurationError is ErrorsConfigurationError
        with pytest.raises(RuntimeError, match="complete Twilio credentials"):
            build_orchestrator(Settings(_env_file=None))

    def test_rate_limits_wrap_adapters(self):
        adapters = build_adapters(_settings(whatsapp_rate_limit_per_minute=10))
        assert isinstance(adapters[Channel.WHATSAPP], RateLimitedChannel)
        assert not isinstance(adapters[Channel.SMS], RateLimitedChannel)


class TestBuildOrchestrator:
    def test_uses_settings(self):
        settings = _settings(
            country_code="55",
            subscriber_digits=11,
            default_order=["sms", "whatsapp"],
            category_prefixes=False,
        )
        sms = MockChannel(Channel.SMS)
        adapters = {Channel.WHATSAPP: MockChannel(Channel.WHATSAPP), Channel.SMS: sms}
        with build_orchestrator(settings, adapters=adapters, history=InMemoryHistoryStore()) as orchestrator:
            record = orchestrator.dispatch(Message(recipient="011 99999 9999", body="Olá"))

        assert record.recipient == "+5511999999999"
        assert record.final_channel == Channel.SMS
        assert sms.sent[0].body == "Olá"

    def test_degraded_orchestrator(self):
        with build_orchestrator(_settings(sms_from_number=None)) as orchestrator:
            assert orchestrator.degraded
            assert orchestrator.channels == (Channel.WHATSAPP,)

    def test_history_backend(self, tmp_path):
        assert isinstance(build_history(_settings()), InMemoryHistoryStore)
        store = build_history(_settings(database_url=f"sqlite:///{tmp_path / 'h.db'}"))
        assert isinstance(store, SQLHistoryStore)

    def test_probe_only_when_configured(self):
        network = NetworkStateMonitor()
        assert build_probe(_settings(), network) is None
        probe = build_probe(_settings(connectivity_probe_url="https://example.com/ping"), network)
        assert probe is not None
        probe.close()
