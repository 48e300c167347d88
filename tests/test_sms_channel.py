"""Tests for the Twilio SMS channel."""

from unittest.mock import MagicMock, patch

import pytest
from twilio.base.exceptions import TwilioRestException

from failover import Channel, DeliveryStatus, FailureReason, NormalizedRecipient, TwilioSMSChannel, TwilioSMSConfig

RECIPIENT = NormalizedRecipient("+27821234567")


def _make_channel(config: TwilioSMSConfig) -> TwilioSMSChannel:
    """Create a TwilioSMSChannel with a mocked Client."""
    with patch("failover.channels.twilio.Client"), \
         patch("failover.channels.twilio.TwilioHttpClient"):
        return TwilioSMSChannel(config)


def _sent(sid: str = "SM123", status: str = "queued") -> MagicMock:
    return MagicMock(sid=sid, status=status, error_code=None, error_message=None)


class TestTwilioSMSSend:
    def test_send_success(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(return_value=_sent())

        attempt = channel.send(RECIPIENT, "Hello via SMS")

        assert attempt.succeeded
        assert attempt.channel == Channel.SMS
        assert attempt.provider_identifier == "SM123"
        call_kwargs = channel._client.messages.create.call_args
        assert call_kwargs.kwargs["body"] == "Hello via SMS"
        assert call_kwargs.kwargs["to"] == "+27821234567"
        assert call_kwargs.kwargs["from_"] == "+14155238886"

    def test_truncates_long_body(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(return_value=_sent())

        channel.send(RECIPIENT, "x" * 2000)

        call_kwargs = channel._client.messages.create.call_args
        assert len(call_kwargs.kwargs["body"]) == 1600

    def test_works_offline(self, twilio_sms_config: TwilioSMSConfig):
        assert _make_channel(twilio_sms_config).works_offline

    def test_failed_status_is_recipient_rejection(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(
            return_value=MagicMock(sid="SM123", status="undelivered", error_code=30005, error_message="Unknown handset")
        )

        attempt = channel.send(RECIPIENT, "Hi")

        assert not attempt.succeeded
        assert attempt.failure_reason == FailureReason.RECIPIENT_REJECTED
        assert attempt.failure_detail == "Unknown handset"


class TestTwilioSMSErrorHandling:
    def test_invalid_number(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(
            side_effect=TwilioRestException(400, "https://api.twilio.com", msg="Invalid 'To' Phone Number", code=21211)
        )

        attempt = channel.send(RECIPIENT, "Hi")
        assert not attempt.succeeded
        assert attempt.failure_reason == FailureReason.RECIPIENT_REJECTED
        assert "Invalid" in (attempt.failure_detail or "")

    def test_authentication_error(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(
            side_effect=TwilioRestException(401, "https://api.twilio.com", msg="Authenticate", code=20003)
        )

        assert channel.send(RECIPIENT, "Hi").failure_reason == FailureReason.AUTHENTICATION_FAILURE

    def test_requests_timeout(self, twilio_sms_config: TwilioSMSConfig):
        import requests

        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(side_effect=requests.exceptions.ReadTimeout("read timed out"))

        assert channel.send(RECIPIENT, "Hi").failure_reason == FailureReason.TIMEOUT

    def test_generic_exception(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(side_effect=RuntimeError("boom"))

        attempt = channel.send(RECIPIENT, "Hi")
        assert not attempt.succeeded
        assert attempt.failure_reason == FailureReason.PROVIDER_OUTAGE
        assert "boom" in (attempt.failure_detail or "")


class TestTwilioSMSStatusCallback:
    def test_status_callback_included(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages.create = MagicMock(return_value=_sent())

        channel.send(RECIPIENT, "Hello")
        call_kwargs = channel._client.messages.create.call_args
        assert call_kwargs.kwargs["status_callback"] == "https://example.com/webhook/sms-status"

    def test_no_status_callback_when_none(self):
        config = TwilioSMSConfig(
            account_sid="AC123",
            auth_token="token",
            from_number="+14155238886",
            status_callback=None,
        )
        channel = _make_channel(config)
        channel._client.messages.create = MagicMock(return_value=_sent())

        channel.send(RECIPIENT, "Hello")
        call_kwargs = channel._client.messages.create.call_args
        assert "status_callback" not in call_kwargs.kwargs


class TestTwilioSMSFetchStatus:
    def test_fetch_status_success(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages = MagicMock(
            return_value=MagicMock(fetch=MagicMock(return_value=_sent(status="delivered")))
        )

        report = channel.fetch_status("SM123")
        assert report is not None
        assert report.status == DeliveryStatus.DELIVERED
        assert report.provider_identifier == "SM123"

    def test_fetch_status_twilio_error(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages = MagicMock(
            return_value=MagicMock(
                fetch=MagicMock(side_effect=TwilioRestException(404, "https://api.twilio.com", msg="Message not found"))
            )
        )

        report = channel.fetch_status("SM_nonexistent")
        assert report is not None
        assert report.status == DeliveryStatus.FAILED

    def test_fetch_status_unknown_error_returns_none(self, twilio_sms_config: TwilioSMSConfig):
        channel = _make_channel(twilio_sms_config)
        channel._client.messages = MagicMock(
            return_value=MagicMock(fetch=MagicMock(side_effect=RuntimeError("unexpected")))
        )

        assert channel.fetch_status("SM123") is None


class TestTwilioSMSInit:
    def test_validates_from_number(self):
        with pytest.raises(ValueError, match="from_number"):
            with patch("failover.channels.twilio.Client"), \
                 patch("failover.channels.twilio.TwilioHttpClient"):
                TwilioSMSChannel(TwilioSMSConfig(
                    account_sid="AC123",
                    auth_token="token",
                    from_number="",
                ))
