"""
Pytest configuration and fixtures for agent authentication tests.

Provides fixtures for:
- Session store and network monitor
- Provider configuration and a controllable fake provider
- Service container and HTTP test client
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from agent_auth.config.settings import Settings
from agent_auth.container import ServiceContainer, build_container
from agent_auth.core.auth.configuration import AuthConfiguration, SimulatedAuthConfig
from agent_auth.core.auth.errors import AuthProviderError, AuthProviderErrorType
from agent_auth.core.auth.provider import (
    AuthProvider,
    ProviderCapabilities,
    ProviderDebugInfo,
    ProviderDescriptor,
    ProviderHealthStatus,
)
from agent_auth.domain.models.auth import AgentUser, AuthType, LoginResult
from agent_auth.infrastructure.network.monitor import NetworkStatusMonitor
from agent_auth.infrastructure.session.store import MemorySessionStore


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider(AuthProvider):
    """Provider with scripted behaviour for factory tests"""

    descriptor = ProviderDescriptor(
        type=AuthType.SIMULATED,
        name="Fake Provider",
        description="Scripted provider",
        version="0.0.1",
        capabilities=ProviderCapabilities(
            supports_offline=True,
            supports_token_refresh=True,
            requires_network=False,
            supports_multiple_users=True,
            has_session_persistence=False,
            supports_role_based_auth=False,
        ),
    )

    def __init__(self, provider_type: AuthType = AuthType.SIMULATED):
        super().__init__()
        self.provider_type = provider_type
        self.healthy = True
        self.health_raises = False
        self.init_error: Optional[BaseException] = None
        self.cleanup_error: Optional[BaseException] = None
        self.cleaned_up = False
        self.authenticated = False
        self.refresh_result = True

    @property
    def type(self) -> AuthType:
        return self.provider_type

    async def initialize(self) -> None:
        if self.init_error is not None:
            raise self.init_error
        self._initialized = True

    async def login(self, identifier: str, secret: str) -> LoginResult:
        self.authenticated = True
        return LoginResult(
            success=True,
            message="Login successful",
            provider=self.provider_type,
            user_data=AgentUser(user_id="fake-1", email=identifier, name="Fake"),
        )

    async def logout(self) -> None:
        self.authenticated = False

    async def is_authenticated(self) -> bool:
        return self.authenticated

    async def get_current_user(self) -> Optional[AgentUser]:
        return AgentUser(user_id="fake-1", email="fake@example.com", name="Fake") if self.authenticated else None

    async def refresh_token(self) -> bool:
        return self.refresh_result

    async def health_check(self) -> ProviderHealthStatus:
        if self.health_raises:
            raise RuntimeError("health probe exploded")
        return ProviderHealthStatus(
            is_healthy=self.healthy,
            issues=[] if self.healthy else ["scripted failure"],
        )

    def get_debug_info(self) -> ProviderDebugInfo:
        return self._debug_info(has_active_session=self.authenticated, configuration={})

    async def cleanup(self) -> None:
        self.cleaned_up = True
        if self.cleanup_error is not None:
            raise self.cleanup_error


class ProviderRecorder:
    """Builder that records every provider it creates"""

    def __init__(self, provider_type: AuthType = AuthType.SIMULATED):
        self.provider_type = provider_type
        self.created: List[FakeProvider] = []
        self.init_error: Optional[BaseException] = None

    def __call__(self, config: AuthConfiguration) -> FakeProvider:
        provider = FakeProvider(self.provider_type)
        provider.init_error = self.init_error
        self.created.append(provider)
        return provider


def initialization_error(provider_type: AuthType) -> AuthProviderError:
    return AuthProviderError(
        AuthProviderErrorType.INITIALIZATION_FAILED,
        "backend unreachable",
        provider_type,
        original_error=ConnectionError("backend unreachable"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def network_monitor() -> NetworkStatusMonitor:
    return NetworkStatusMonitor(online=True)


@pytest.fixture
def simulated_config() -> SimulatedAuthConfig:
    """Simulated backend without artificial latency"""
    return SimulatedAuthConfig(mock_delay_ms=0)


@pytest.fixture
def auth_config(simulated_config: SimulatedAuthConfig) -> AuthConfiguration:
    return AuthConfiguration(
        current_type=AuthType.SIMULATED,
        fallback_type=AuthType.PRODUCTION,
        simulated=simulated_config,
        switch_cooldown=timedelta(0),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings for API tests: simulated provider, no latency, no redis"""
    return Settings(
        _env_file=None,
        auth_provider=AuthType.SIMULATED,
        auth_fallback_provider=None,
        simulated_mock_delay_ms=0,
        simulated_allowed_users=["agent@example.com", "lead@example.com"],
        simulated_user_roles={"lead@example.com": "supervisor"},
        production_base_url="https://identity.example.com",
        switch_cooldown_seconds=0,
        redis_enabled=False,
    )


@pytest_asyncio.fixture
async def container(
    test_settings: Settings,
    network_monitor: NetworkStatusMonitor,
    session_store: MemorySessionStore,
) -> AsyncGenerator[ServiceContainer, None]:
    container = await build_container(
        test_settings,
        network_monitor=network_monitor,
        session_store=session_store,
    )
    await container.start()
    yield container
    await container.shutdown()


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test container"""
    from agent_auth.main import create_app

    app = create_app()
    app.state.container = container
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
