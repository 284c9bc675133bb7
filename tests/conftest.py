"""Shared fixtures: deterministic clock, fake provider gateway, settings."""

from __future__ import annotations

from typing import Callable

import pytest

from vipps_login.broker.errors import ProviderExchangeError, ProviderProfileError
from vipps_login.broker.models import ProfileRecord, ProviderTokens
from vipps_login.broker.provider import VippsGateway
from vipps_login.broker.service import LoginBrokerService
from vipps_login.broker.store import InMemorySessionStore
from vipps_login.config import BrokerSettings

START = 1_672_531_200.0  # 2023-01-01T00:00:00Z
CREDENTIAL_SECRET = "test-credential-secret"


class FakeClock:
    """Mutable clock; call to read, :meth:`advance` to move forward."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """In-memory stand-in for :class:`VippsGateway` recording its calls."""

    def __init__(self) -> None:
        self.inner = VippsGateway(
            api_url="https://vipps.example.test",
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="https://broker.example.test/auth/vipps/callback",
        )
        self.userinfo: dict = {"sub": "sub-123", "name": "Ada Lovelace"}
        self.exchange_error: Exception | None = None
        self.profile_error: Exception | None = None
        self.exchanged_codes: list[str] = []
        self.profile_tokens: list[str] = []
        self.before_profile: Callable[[], None] | None = None

    def build_authorization_url(self, state: str) -> str:
        return self.inner.build_authorization_url(state)

    def exchange_code_for_tokens(self, code: str) -> ProviderTokens:
        self.exchanged_codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return ProviderTokens(access_token=f"at-{code}", refresh_token=f"rt-{code}")

    def fetch_profile(self, access_token: str) -> ProfileRecord:
        self.profile_tokens.append(access_token)
        if self.before_profile:
            self.before_profile()
        if self.profile_error:
            raise self.profile_error
        return ProfileRecord.from_userinfo(self.userinfo)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def service(store: InMemorySessionStore, gateway: FakeGateway, clock: FakeClock) -> LoginBrokerService:
    return LoginBrokerService(
        store=store,
        gateway=gateway,
        credential_secret=CREDENTIAL_SECRET,
        clock=clock,
    )


@pytest.fixture()
def settings() -> BrokerSettings:
    return BrokerSettings(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="https://broker.example.test/auth/vipps/callback",
        api_url="https://vipps.example.test",
        subscription_key="sub-key",
        credential_secret=CREDENTIAL_SECRET,
        app_redirect_scheme="myapp",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring integration with real services"
    )
    config.addinivalue_line(
        "markers", "ci_safe: integration test that stubs all external calls"
    )


def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )
