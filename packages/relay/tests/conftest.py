"""Shared fixtures for the relay action tests."""

import pytest

from fakes import RecordingInvoker, SleepRecorder
from relay.models import DispatcherConfig


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("ALERT_WEBHOOK_URL", raising=False)
    monkeypatch.delenv("RELAY_BINDINGS", raising=False)
    monkeypatch.delenv("PROVISION_MAX_ATTEMPTS", raising=False)


@pytest.fixture
def invoker():
    return RecordingInvoker()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def config():
    return DispatcherConfig(deploy_name="acme")
