"""Default recovery strategies.

Priority, high to low: network reconnection (10), session restoration (9),
token refresh (8), storage cleanup (7), data recovery (6), cache clear (5).
Service restart is opt-in through ``service_restart_strategy``.
"""

import logging
from datetime import timedelta
from typing import Callable, List, Optional

from agent_auth.core.auth.factory import ProviderFactory
from agent_auth.core.auth.provider import AuthProvider
from agent_auth.domain.models.auth import utc_now
from agent_auth.domain.models.recovery import RecoveryKind, RecoveryResult, RecoveryStrategy
from agent_auth.infrastructure.network.monitor import NetworkMonitor
from agent_auth.infrastructure.session.store import SessionStore

logger = logging.getLogger(__name__)

ProviderSource = Callable[[], Optional[AuthProvider]]


def _result(kind: RecoveryKind, success: bool, message: str, **details) -> RecoveryResult:
    return RecoveryResult(success=success, kind=kind, message=message, timestamp=utc_now(), details=details)


def network_reconnection_strategy(
    network_monitor: NetworkMonitor,
    wait_timeout: float = 15.0,
) -> RecoveryStrategy:
    async def condition() -> bool:
        return not network_monitor.is_online()

    async def execute() -> RecoveryResult:
        connected = await network_monitor.wait_for_connection(wait_timeout)
        if connected:
            return _result(
                RecoveryKind.NETWORK_RECONNECTION, True, "Network connection restored",
                quality=network_monitor.get_quality().value,
            )
        return _result(
            RecoveryKind.NETWORK_RECONNECTION, False,
            f"No network connection after {wait_timeout:.0f}s",
            timeout_seconds=wait_timeout,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.NETWORK_RECONNECTION,
        priority=10,
        condition=condition,
        execute=execute,
        max_attempts=3,
        cooldown=timedelta(seconds=5),
    )


def session_restoration_strategy(provider_source: ProviderSource) -> RecoveryStrategy:
    async def condition() -> bool:
        provider = provider_source()
        return provider is not None and not await provider.is_authenticated()

    async def execute() -> RecoveryResult:
        provider = provider_source()
        if provider is None:
            return _result(RecoveryKind.SESSION_RESTORATION, False, "No active provider")
        # is_authenticated reloads a persisted session when one exists
        if await provider.is_authenticated():
            user = await provider.get_current_user()
            return _result(
                RecoveryKind.SESSION_RESTORATION, True, "Session restored",
                provider=provider.type.value, user_id=user.user_id if user else None,
            )
        return _result(
            RecoveryKind.SESSION_RESTORATION, False, "No restorable session",
            provider=provider.type.value,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.SESSION_RESTORATION,
        priority=9,
        condition=condition,
        execute=execute,
        max_attempts=2,
        cooldown=timedelta(seconds=10),
    )


def token_refresh_strategy(
    provider_source: ProviderSource,
    network_monitor: NetworkMonitor,
) -> RecoveryStrategy:
    async def condition() -> bool:
        provider = provider_source()
        if provider is None or not provider.get_capabilities().supports_token_refresh:
            return False
        return network_monitor.is_online() and await provider.is_authenticated()

    async def execute() -> RecoveryResult:
        provider = provider_source()
        if provider is None:
            return _result(RecoveryKind.TOKEN_REFRESH, False, "No active provider")
        refreshed = await provider.refresh_token()
        return _result(
            RecoveryKind.TOKEN_REFRESH, refreshed,
            "Token refreshed" if refreshed else "Token refresh failed",
            provider=provider.type.value,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.TOKEN_REFRESH,
        priority=8,
        condition=condition,
        execute=execute,
        max_attempts=2,
        cooldown=timedelta(seconds=60),
    )


def storage_cleanup_strategy(session_store: SessionStore) -> RecoveryStrategy:
    async def condition() -> bool:
        return session_store.stats.failed_operations > 0

    async def execute() -> RecoveryResult:
        purged = await session_store.purge_expired()
        reachable = await session_store.ping()
        return _result(
            RecoveryKind.STORAGE_CLEANUP, reachable,
            f"Purged {purged} expired entries" if reachable else "Storage still unreachable",
            purged=purged,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.STORAGE_CLEANUP,
        priority=7,
        condition=condition,
        execute=execute,
        max_attempts=2,
        cooldown=timedelta(seconds=30),
    )


def data_recovery_strategy(session_store: SessionStore) -> RecoveryStrategy:
    async def condition() -> bool:
        return session_store.stats.corrupted_entries > 0

    async def execute() -> RecoveryResult:
        discarded = await session_store.discard_corrupted()
        return _result(
            RecoveryKind.DATA_RECOVERY, True,
            f"Discarded {discarded} corrupted entries",
            discarded=discarded,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.DATA_RECOVERY,
        priority=6,
        condition=condition,
        execute=execute,
        max_attempts=1,
        cooldown=timedelta(seconds=120),
    )


def cache_clear_strategy(session_store: SessionStore) -> RecoveryStrategy:
    async def condition() -> bool:
        return True

    async def execute() -> RecoveryResult:
        cleared = await session_store.clear_cache()
        return _result(
            RecoveryKind.CACHE_CLEAR, True, f"Cleared {cleared} cached entries",
            cleared=cleared,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.CACHE_CLEAR,
        priority=5,
        condition=condition,
        execute=execute,
        max_attempts=1,
        cooldown=timedelta(seconds=300),
    )


def service_restart_strategy(factory: ProviderFactory, priority: int = 4) -> RecoveryStrategy:
    """Rebuild the current provider through the factory."""

    async def condition() -> bool:
        return factory.current_type is not None

    async def execute() -> RecoveryResult:
        provider_type = factory.current_type
        if provider_type is None:
            return _result(RecoveryKind.SERVICE_RESTART, False, "Factory has no current provider")
        cleanup = await factory.cleanup_provider(provider_type)
        provider = await factory.create_provider(provider_type)
        return _result(
            RecoveryKind.SERVICE_RESTART, True, f"Restarted {provider.name}",
            provider=provider_type.value, previous_cleanup_succeeded=cleanup.success,
        )

    return RecoveryStrategy(
        kind=RecoveryKind.SERVICE_RESTART,
        priority=priority,
        condition=condition,
        execute=execute,
        max_attempts=1,
        cooldown=timedelta(minutes=5),
    )


def default_strategies(
    factory: ProviderFactory,
    network_monitor: NetworkMonitor,
    session_store: SessionStore,
    network_wait_timeout: float = 15.0,
    enable_service_restart: bool = False,
) -> List[RecoveryStrategy]:
    """Build the default strategy set bound to the given collaborators."""
    strategies = [
        network_reconnection_strategy(network_monitor, network_wait_timeout),
        session_restoration_strategy(factory.get_current_provider),
        token_refresh_strategy(factory.get_current_provider, network_monitor),
        storage_cleanup_strategy(session_store),
        data_recovery_strategy(session_store),
        cache_clear_strategy(session_store),
    ]
    if enable_service_restart:
        strategies.append(service_restart_strategy(factory))
    return strategies
