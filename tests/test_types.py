"""Tests for core types."""

import dataclasses
from datetime import timedelta

import pytest

from failover import (
    AttemptOutcome,
    Category,
    Channel,
    ChannelAttempt,
    DeliveryStatus,
    FailureReason,
    FinalOutcome,
    Message,
    NormalizedRecipient,
)
from failover.types import ALL_CHANNELS_FAILED, RecordDraft

RECIPIENT = NormalizedRecipient("+27821234567")


def _draft() -> RecordDraft:
    return RecordDraft(id="rec-1", recipient=RECIPIENT, body="Hi", category=Category.INFO)


class TestChannelAttempt:
    def test_success_factory(self):
        attempt = ChannelAttempt.success(Channel.SMS, "SM123")
        assert attempt.succeeded
        assert attempt.outcome == AttemptOutcome.SUCCEEDED
        assert attempt.provider_identifier == "SM123"
        assert attempt.failure_reason is None
        assert attempt.completed_at is not None
        assert attempt.completed_at >= attempt.attempted_at

    def test_failure_factory(self):
        attempt = ChannelAttempt.failure(Channel.WHATSAPP, FailureReason.RATE_LIMITED, "slow down")
        assert not attempt.succeeded
        assert attempt.provider_identifier is None
        assert attempt.failure_reason == FailureReason.RATE_LIMITED
        assert attempt.failure_detail == "slow down"

    def test_is_immutable(self):
        attempt = ChannelAttempt.success(Channel.SMS, "SM123")
        with pytest.raises(dataclasses.FrozenInstanceError):
            attempt.provider_identifier = "other"  # type: ignore[misc]


class TestRecordDraft:
    def test_seal_delivered_on_first(self):
        draft = _draft()
        draft.append(ChannelAttempt.success(Channel.WHATSAPP, "SM1"))
        record = draft.seal()

        assert record.delivered
        assert record.final_outcome == FinalOutcome.DELIVERED
        assert record.final_channel == Channel.WHATSAPP
        assert not record.used_fallback
        assert record.failure_code is None

    def test_seal_delivered_after_fallback(self):
        draft = _draft()
        draft.append(ChannelAttempt.failure(Channel.WHATSAPP, FailureReason.PROVIDER_OUTAGE))
        draft.append(ChannelAttempt.success(Channel.SMS, "SM1"))
        record = draft.seal()

        assert record.delivered
        assert record.final_channel == Channel.SMS
        assert record.used_fallback
        assert record.failure_reasons == (FailureReason.PROVIDER_OUTAGE,)

    def test_seal_failed_keeps_both_reasons(self):
        draft = _draft()
        draft.append(ChannelAttempt.failure(Channel.WHATSAPP, FailureReason.TIMEOUT))
        draft.append(ChannelAttempt.failure(Channel.SMS, FailureReason.RATE_LIMITED))
        record = draft.seal()

        assert record.final_outcome == FinalOutcome.FAILED
        assert record.final_channel is None
        assert record.failure_code == ALL_CHANNELS_FAILED
        assert record.failure_reasons == (FailureReason.TIMEOUT, FailureReason.RATE_LIMITED)

    def test_single_channel_failure_code_is_reason(self):
        draft = _draft()
        draft.append(ChannelAttempt.failure(Channel.SMS, FailureReason.AUTHENTICATION_FAILURE))
        assert draft.seal().failure_code == "AuthenticationFailure"

    def test_sealed_record_is_detached_from_draft(self):
        draft = _draft()
        draft.append(ChannelAttempt.failure(Channel.WHATSAPP, FailureReason.TIMEOUT))
        record = draft.seal()
        draft.append(ChannelAttempt.success(Channel.SMS, "SM1"))

        assert len(record.attempts) == 1
        assert isinstance(record.attempts, tuple)

    def test_completed_after_created(self):
        draft = _draft()
        draft.created_at = draft.created_at - timedelta(seconds=1)
        draft.append(ChannelAttempt.success(Channel.SMS, "SM1"))
        record = draft.seal()
        assert record.completed_at > record.created_at


class TestMessage:
    def test_defaults(self):
        message = Message(recipient="0821234567", body="Hi")
        assert message.category == Category.NOTIFICATION
        assert message.preferred_channel is None

    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            (Category.EMERGENCY, "🚨 EMERGENCY: Flooding on N2"),
            (Category.REMINDER, "⏰ REMINDER: Flooding on N2"),
            (Category.INFO, "ℹ️ INFO: Flooding on N2"),
            (Category.NOTIFICATION, "📱 Flooding on N2"),
        ],
    )
    def test_rendered_body(self, category, expected):
        assert Message(recipient="0821234567", body="Flooding on N2", category=category).rendered_body() == expected

    def test_every_category_has_prefix(self):
        for category in Category:
            assert category.body_prefix


class TestDeliveryStatusPrecedence:
    def test_positive_statuses_are_ordered(self):
        assert DeliveryStatus.QUEUED.precedence < DeliveryStatus.SENT.precedence
        assert DeliveryStatus.SENT.precedence < DeliveryStatus.DELIVERED.precedence
        assert DeliveryStatus.DELIVERED.precedence < DeliveryStatus.READ.precedence

    def test_failure_statuses_are_negative(self):
        assert DeliveryStatus.FAILED.precedence < 0
        assert DeliveryStatus.UNDELIVERED.precedence < 0


class TestEnums:
    def test_string_values(self):
        assert Channel("sms") is Channel.SMS
        assert Category("emergency") is Category.EMERGENCY
        assert FailureReason("Timeout") is FailureReason.TIMEOUT
