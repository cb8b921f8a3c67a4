"""Unit tests for ProviderFactory

Tests provider caching, health gating, switching and teardown with
scripted providers.
"""

import asyncio
from datetime import timedelta

import pytest

from agent_auth.core.auth.configuration import AuthConfiguration
from agent_auth.core.auth.errors import AuthProviderError, AuthProviderErrorType
from agent_auth.core.auth.factory import ProviderFactory, SwitchReason
from agent_auth.domain.models.auth import AuthType
from conftest import FakeProvider, ProviderRecorder, initialization_error


@pytest.fixture
def simulated_builder():
    return ProviderRecorder(AuthType.SIMULATED)


@pytest.fixture
def production_builder():
    return ProviderRecorder(AuthType.PRODUCTION)


@pytest.fixture
def factory(simulated_builder, production_builder, auth_config, clock):
    factory = ProviderFactory(
        builders={
            AuthType.SIMULATED: simulated_builder,
            AuthType.PRODUCTION: production_builder,
        },
        clock=clock,
    )
    factory.initialize(auth_config)
    return factory


@pytest.mark.unit
class TestCreateProvider:
    """Test provider creation and caching"""

    @pytest.mark.asyncio
    async def test_returns_cached_instance(self, factory, simulated_builder):
        first = await factory.create_provider(AuthType.SIMULATED)
        second = await factory.create_provider(AuthType.SIMULATED)

        assert first is second
        assert len(simulated_builder.created) == 1
        assert first.is_initialized is True

    @pytest.mark.asyncio
    async def test_concurrent_creation_builds_once(self, factory, simulated_builder):
        results = await asyncio.gather(
            *(factory.create_provider(AuthType.SIMULATED) for _ in range(5))
        )

        assert len(simulated_builder.created) == 1
        assert all(provider is results[0] for provider in results)

    @pytest.mark.asyncio
    async def test_unhealthy_instance_is_replaced(self, factory, simulated_builder):
        first = await factory.create_provider(AuthType.SIMULATED)
        first.healthy = False

        second = await factory.create_provider(AuthType.SIMULATED)

        assert second is not first
        assert first.cleaned_up is True
        assert len(simulated_builder.created) == 2
        assert factory.get_provider(AuthType.SIMULATED) is second

    @pytest.mark.asyncio
    async def test_health_check_exception_counts_as_unhealthy(self, factory, simulated_builder):
        first = await factory.create_provider(AuthType.SIMULATED)
        first.health_raises = True

        second = await factory.create_provider(AuthType.SIMULATED)

        assert second is not first
        assert await factory.is_provider_healthy(AuthType.SIMULATED) is True

    @pytest.mark.asyncio
    async def test_initialization_failure_is_wrapped(self, factory, simulated_builder):
        simulated_builder.init_error = OSError("storage offline")

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.create_provider(AuthType.SIMULATED)

        assert exc_info.value.error_type == AuthProviderErrorType.INITIALIZATION_FAILED
        assert isinstance(exc_info.value.original_error, OSError)
        assert simulated_builder.created[0].cleaned_up is True
        assert factory.get_cached_providers() == []

    @pytest.mark.asyncio
    async def test_unregistered_type(self, auth_config, clock):
        factory = ProviderFactory(builders={AuthType.SIMULATED: ProviderRecorder()}, clock=clock)
        factory.initialize(auth_config)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.create_provider(AuthType.PRODUCTION)

        assert exc_info.value.error_type == AuthProviderErrorType.CONFIGURATION_ERROR

        recorder = ProviderRecorder(AuthType.PRODUCTION)
        factory.register_builder(AuthType.PRODUCTION, recorder)

        provider = await factory.create_provider(AuthType.PRODUCTION)
        assert provider is recorder.created[0]

    @pytest.mark.asyncio
    async def test_builder_failure_is_configuration_error(self, auth_config):
        def broken_builder(config):
            raise ValueError("bad base url")

        factory = ProviderFactory(builders={AuthType.SIMULATED: broken_builder})
        factory.initialize(auth_config)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.create_provider(AuthType.SIMULATED)

        assert exc_info.value.error_type == AuthProviderErrorType.CONFIGURATION_ERROR
        assert "bad base url" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_requires_initialize(self):
        factory = ProviderFactory(builders={AuthType.SIMULATED: ProviderRecorder()})

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.create_provider(AuthType.SIMULATED)

        assert exc_info.value.error_type == AuthProviderErrorType.CONFIGURATION_ERROR

    def test_initialize_copies_configuration(self, auth_config):
        factory = ProviderFactory()
        factory.initialize(auth_config)

        auth_config.max_switches_per_hour = 99

        assert factory.configuration.max_switches_per_hour == 10
        assert factory.current_type == AuthType.SIMULATED


@pytest.mark.unit
class TestSwitchProvider:
    """Test provider switching and rate limits"""

    @pytest.mark.asyncio
    async def test_switch_tears_down_previous(self, factory):
        previous = await factory.create_provider(AuthType.SIMULATED)

        provider = await factory.switch_provider(AuthType.PRODUCTION)

        assert provider.type == AuthType.PRODUCTION
        assert factory.current_type == AuthType.PRODUCTION
        assert factory.get_current_provider() is provider
        assert previous.cleaned_up is True
        assert factory.get_provider(AuthType.SIMULATED) is None

        event = factory.get_switch_history()[0]
        assert event.success is True
        assert event.from_type == AuthType.SIMULATED
        assert event.to_type == AuthType.PRODUCTION
        assert event.reason == SwitchReason.USER_REQUEST

    @pytest.mark.asyncio
    async def test_failed_switch_keeps_previous_provider(self, factory, production_builder):
        previous = await factory.create_provider(AuthType.SIMULATED)
        production_builder.init_error = initialization_error(AuthType.PRODUCTION)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.switch_provider(AuthType.PRODUCTION)

        assert exc_info.value.error_type == AuthProviderErrorType.INITIALIZATION_FAILED
        assert factory.current_type == AuthType.SIMULATED
        assert factory.get_current_provider() is previous
        assert previous.cleaned_up is False

        event = factory.get_switch_history()[0]
        assert event.success is False
        assert event.error == "backend unreachable"

    @pytest.mark.asyncio
    async def test_switch_to_current_type_is_not_recorded(self, factory, simulated_builder):
        provider = await factory.switch_provider(AuthType.SIMULATED)

        assert provider is factory.get_current_provider()
        assert factory.get_switch_history() == []
        assert len(simulated_builder.created) == 1

    @pytest.mark.asyncio
    async def test_switch_disabled(self, auth_config):
        auth_config.allow_runtime_switch = False
        factory = ProviderFactory(builders={AuthType.PRODUCTION: ProviderRecorder(AuthType.PRODUCTION)})
        factory.initialize(auth_config)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.switch_provider(AuthType.PRODUCTION)

        assert exc_info.value.error_type == AuthProviderErrorType.SWITCH_FAILED
        assert factory.current_type == AuthType.SIMULATED

    @pytest.mark.asyncio
    async def test_switch_cooldown(self, factory, auth_config, clock):
        auth_config.switch_cooldown = timedelta(minutes=1)
        factory.initialize(auth_config)

        await factory.switch_provider(AuthType.PRODUCTION)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.switch_provider(AuthType.SIMULATED)
        assert exc_info.value.error_type == AuthProviderErrorType.SWITCH_FAILED
        assert "cooldown" in exc_info.value.message
        assert factory.current_type == AuthType.PRODUCTION

        clock.advance(minutes=2)
        await factory.switch_provider(AuthType.SIMULATED)
        assert factory.current_type == AuthType.SIMULATED

    @pytest.mark.asyncio
    async def test_hourly_switch_limit(self, factory, auth_config, clock):
        auth_config.max_switches_per_hour = 2
        factory.initialize(auth_config)

        await factory.switch_provider(AuthType.PRODUCTION)
        await factory.switch_provider(AuthType.SIMULATED)

        with pytest.raises(AuthProviderError) as exc_info:
            await factory.switch_provider(AuthType.PRODUCTION)
        assert "limit" in exc_info.value.message

        clock.advance(minutes=61)
        await factory.switch_provider(AuthType.PRODUCTION)
        assert factory.current_type == AuthType.PRODUCTION

    @pytest.mark.asyncio
    async def test_history_most_recent_first(self, factory):
        await factory.switch_provider(AuthType.PRODUCTION)
        await factory.switch_provider(AuthType.SIMULATED)

        history = factory.get_switch_history()
        assert [event.to_type for event in history] == [AuthType.SIMULATED, AuthType.PRODUCTION]
        assert len(factory.get_switch_history(limit=1)) == 1


@pytest.mark.unit
class TestEnsureActiveProvider:
    """Test automatic fallback when the current provider fails"""

    @pytest.fixture
    def production_first(self, auth_config):
        auth_config.current_type = AuthType.PRODUCTION
        auth_config.fallback_type = AuthType.SIMULATED
        auth_config.auto_switch_on_failure = True
        return auth_config

    @pytest.mark.asyncio
    async def test_falls_back_on_initialization_failure(
        self, factory, production_first, production_builder, clock
    ):
        factory.initialize(production_first)
        production_builder.init_error = initialization_error(AuthType.PRODUCTION)

        provider = await factory.ensure_active_provider()

        assert provider.type == AuthType.SIMULATED
        assert factory.current_type == AuthType.SIMULATED
        event = factory.get_switch_history()[0]
        assert event.reason == SwitchReason.AUTO_FALLBACK
        assert event.success is True

    @pytest.mark.asyncio
    async def test_fallback_ignores_cooldown(self, factory, production_first, production_builder):
        production_first.current_type = AuthType.SIMULATED
        production_first.switch_cooldown = timedelta(hours=1)
        production_first.max_switches_per_hour = 1
        factory.initialize(production_first)
        production = await factory.switch_provider(AuthType.PRODUCTION)

        production.healthy = False
        production_builder.init_error = initialization_error(AuthType.PRODUCTION)
        provider = await factory.ensure_active_provider()

        assert provider.type == AuthType.SIMULATED
        assert production.cleaned_up is True

    @pytest.mark.asyncio
    async def test_no_fallback_when_disabled(self, factory, production_first, production_builder):
        production_first.auto_switch_on_failure = False
        factory.initialize(production_first)
        production_builder.init_error = initialization_error(AuthType.PRODUCTION)

        with pytest.raises(AuthProviderError):
            await factory.ensure_active_provider()

        assert factory.current_type == AuthType.PRODUCTION
        assert factory.get_current_provider() is None


@pytest.mark.unit
class TestCleanup:
    """Test provider teardown and factory reset"""

    @pytest.mark.asyncio
    async def test_cleanup_provider_evicts_on_teardown_failure(self, factory):
        provider = await factory.create_provider(AuthType.SIMULATED)
        provider.cleanup_error = RuntimeError("socket already closed")

        result = await factory.cleanup_provider(AuthType.SIMULATED)

        assert result.success is False
        assert result.error == "socket already closed"
        assert factory.get_provider(AuthType.SIMULATED) is None

    @pytest.mark.asyncio
    async def test_cleanup_provider_not_cached(self, factory):
        result = await factory.cleanup_provider(AuthType.PRODUCTION)

        assert result.success is True
        assert result.message == "Provider not cached"

    @pytest.mark.asyncio
    async def test_cleanup_resets_factory(self, factory):
        simulated = await factory.create_provider(AuthType.SIMULATED)
        production = await factory.create_provider(AuthType.PRODUCTION)
        production.cleanup_error = RuntimeError("teardown failed")

        await factory.cleanup()

        assert simulated.cleaned_up is True
        assert production.cleaned_up is True
        assert factory.is_initialized is False
        assert factory.current_type is None
        assert factory.get_cached_providers() == []
        with pytest.raises(AuthProviderError) as exc_info:
            await factory.create_provider(AuthType.SIMULATED)
        assert exc_info.value.error_type == AuthProviderErrorType.CONFIGURATION_ERROR

    @pytest.mark.asyncio
    async def test_cleanup_during_creation_discards_provider(self, auth_config):
        started = asyncio.Event()
        release = asyncio.Event()
        created = []

        def slow_builder(config: AuthConfiguration) -> FakeProvider:
            provider = FakeProvider()

            async def initialize():
                started.set()
                await release.wait()
                provider._initialized = True

            provider.initialize = initialize
            created.append(provider)
            return provider

        factory = ProviderFactory(builders={AuthType.SIMULATED: slow_builder})
        factory.initialize(auth_config)

        pending = asyncio.ensure_future(factory.create_provider(AuthType.SIMULATED))
        await started.wait()
        await factory.cleanup()
        release.set()

        with pytest.raises(AuthProviderError) as exc_info:
            await pending

        assert exc_info.value.error_type == AuthProviderErrorType.CONFIGURATION_ERROR
        assert created[0].cleaned_up is True
        assert factory.get_cached_providers() == []

    @pytest.mark.asyncio
    async def test_debug_info(self, factory):
        await factory.create_provider(AuthType.SIMULATED)

        info = factory.get_debug_info()

        assert info["initialized"] is True
        assert info["current_type"] == "simulated"
        assert set(info["available"]) == {"simulated", "production"}
        assert "simulated" in info["cached"]
