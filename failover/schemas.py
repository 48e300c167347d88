"""Request models and JSON rendering for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .history import UsageSummary
from .network import NetworkState
from .types import Category, Channel, ChannelAttempt, DeliveryRecord, Message, StatusReport, ValidationResult


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient: str
    body: str
    category: Category = Category.NOTIFICATION
    preferred_channel: Channel | None = Field(default=None, alias="preferredChannel")

    def to_message(self) -> Message:
        return Message(
            recipient=self.recipient,
            body=self.body,
            category=self.category,
            preferred_channel=self.preferred_channel,
        )


class ValidateIdentifierRequest(BaseModel):
    sid: str


class NetworkStateRequest(BaseModel):
    state: NetworkState


def attempt_to_dict(attempt: ChannelAttempt) -> dict[str, Any]:
    return {
        "channel": attempt.channel.value,
        "outcome": attempt.outcome.value,
        "providerIdentifier": attempt.provider_identifier,
        "failureReason": attempt.failure_reason.value if attempt.failure_reason else None,
        "failureDetail": attempt.failure_detail,
        "identifierIssue": attempt.identifier_issue.value if attempt.identifier_issue else None,
        "attemptedAt": attempt.attempted_at.isoformat(),
        "completedAt": attempt.completed_at.isoformat() if attempt.completed_at else None,
    }


def record_to_dict(record: DeliveryRecord) -> dict[str, Any]:
    return {
        "deliveryRecordId": record.id,
        "recipient": str(record.recipient),
        "body": record.body,
        "category": record.category.value,
        "finalOutcome": record.final_outcome.value,
        "finalChannel": record.final_channel.value if record.final_channel else None,
        "failure": record.failure_code,
        "createdAt": record.created_at.isoformat(),
        "completedAt": record.completed_at.isoformat(),
        "attempts": [attempt_to_dict(a) for a in record.attempts],
    }


def validation_to_dict(result: ValidationResult) -> dict[str, Any]:
    return {
        "isValid": result.is_valid,
        "reason": result.reason,
        "issue": result.issue.value if result.issue else None,
    }


def summary_to_dict(summary: UsageSummary) -> dict[str, Any]:
    return {
        "total": summary.total,
        "delivered": summary.delivered,
        "failed": summary.failed,
        "fallbacks": summary.fallbacks,
        "estimatedCost": str(summary.estimated_cost),
        "byCategory": summary.by_category,
        "byChannel": summary.by_channel,
    }


def status_to_dict(report: StatusReport) -> dict[str, Any]:
    return {
        "status": report.status.value,
        "providerIdentifier": report.provider_identifier,
        "errorCode": report.error_code,
        "errorMessage": report.error_message,
    }
