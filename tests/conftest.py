"""Shared test fixtures for the failover library."""

from collections.abc import Iterator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from failover import (
    Channel,
    FailoverOrchestrator,
    InMemoryHistoryStore,
    MockChannel,
    NetworkStateMonitor,
    TwilioSMSConfig,
    TwilioWhatsAppConfig,
)
from failover.api import create_app

VALID_SID = "SM4c1234567890abcdef1234567890abcd"


@pytest.fixture
def twilio_whatsapp_config() -> TwilioWhatsAppConfig:
    return TwilioWhatsAppConfig(
        account_sid="ACtest123",
        auth_token="test_token_456",
        whatsapp_number="whatsapp:+14155238886",
        status_callback="https://example.com/webhook/status",
    )


@pytest.fixture
def twilio_sms_config() -> TwilioSMSConfig:
    return TwilioSMSConfig(
        account_sid="ACtest123",
        auth_token="test_token_456",
        from_number="+14155238886",
        status_callback="https://example.com/webhook/sms-status",
    )


@pytest.fixture
def whatsapp() -> MockChannel:
    return MockChannel(Channel.WHATSAPP)


@pytest.fixture
def sms() -> MockChannel:
    return MockChannel(Channel.SMS)


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def network() -> NetworkStateMonitor:
    return NetworkStateMonitor()


@pytest.fixture
def orchestrator(
    whatsapp: MockChannel,
    sms: MockChannel,
    history: InMemoryHistoryStore,
    network: NetworkStateMonitor,
) -> Iterator[FailoverOrchestrator]:
    orch = FailoverOrchestrator(
        {Channel.WHATSAPP: whatsapp, Channel.SMS: sms},
        history=history,
        network=network,
        timeout=2.0,
    )
    yield orch
    orch.close()


@pytest.fixture
def app(orchestrator: FailoverOrchestrator) -> Flask:
    app = create_app(orchestrator)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
