"""
Shared fixtures: deterministic clock, recording delivery providers and an
in-memory wired application.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from starlette.testclient import TestClient

from memberauth_core.api import Services, create_app
from memberauth_core.config import AuthConfig
from memberauth_core.delivery import DeliveryProvider, DeliveryRegistry
from memberauth_core.errors import DeliveryError
from memberauth_core.identifiers import Channel
from memberauth_core.otp import OTPService
from memberauth_core.stores import (
    InMemoryChallengeStore,
    InMemoryMemberStore,
    InMemoryProfileStore,
)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDelivery(DeliveryProvider):
    """Keeps every code it is asked to send; can be told to fail."""

    def __init__(self, channel: Channel):
        super().__init__()
        self.channel = channel
        self.name = f"recording-{channel.value}"
        self.sent: List[tuple] = []
        self.fail = False

    async def send_code(self, identifier: str, code: str) -> None:
        if self.fail:
            raise DeliveryError(provider=self.name, details="provider down")
        self.sent.append((identifier, code))

    def last_code(self, identifier: str) -> str:
        for sent_to, code in reversed(self.sent):
            if sent_to == identifier:
                return code
        raise AssertionError(f"no code sent to {identifier}")


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        otp_secret="test-otp-secret",
        session_secret="test-session-secret",
        environment="test",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def providers() -> Dict[Channel, RecordingDelivery]:
    return {channel: RecordingDelivery(channel) for channel in Channel}


@pytest.fixture
def registry(providers) -> DeliveryRegistry:
    registry = DeliveryRegistry()
    for provider in providers.values():
        registry.register(provider)
    return registry


@pytest.fixture
def challenges() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture
def members() -> InMemoryMemberStore:
    return InMemoryMemberStore()


@pytest.fixture
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def otp_service(config, challenges, members, registry, clock) -> OTPService:
    return OTPService(config, challenges, members, registry, clock=clock)


@pytest.fixture
def services(config, challenges, members, profiles, registry) -> Services:
    return Services.build(
        config,
        challenges=challenges,
        members=members,
        profiles=profiles,
        delivery=registry,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as test_client:
        yield test_client
