"""Authentication provider factory.

Creates, health-gates, caches and switches providers. At most one instance
per provider type is cached; concurrent requests for the same type share a
single in-flight creation.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .configuration import AuthConfiguration
from .errors import AuthProviderError, AuthProviderErrorType
from .provider import AuthProvider
from agent_auth.domain.models.auth import AuthType, utc_now

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[AuthConfiguration], AuthProvider]

MAX_SWITCH_HISTORY = 50


class SwitchReason(str, Enum):
    USER_REQUEST = "user_request"
    AUTO_FALLBACK = "auto_fallback"
    CONFIGURATION_CHANGE = "configuration_change"
    HEALTH_CHECK_FAILURE = "health_check_failure"


class ProviderCleanupResult(BaseModel):
    """Outcome of tearing down one cached provider."""
    success: bool
    provider: AuthType
    duration_ms: float = 0.0
    message: str
    error: Optional[str] = None
    resources_freed: List[str] = Field(default_factory=list)


class ProviderSwitchEvent(BaseModel):
    """One switch attempt, successful or not."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    from_type: Optional[AuthType] = None
    to_type: AuthType
    timestamp: datetime = Field(default_factory=utc_now)
    reason: SwitchReason
    success: bool
    duration_ms: float = 0.0
    error: Optional[str] = None


class ProviderFactory:
    """Lifecycle manager for authentication providers.

    Per type the cache moves absent -> creating -> healthy, and back to
    creating when a health check fails. ``switch_provider`` builds the new
    provider before the previous one is torn down, so a failed switch
    leaves the previous provider active.

    Example:
        factory = ProviderFactory(builders={AuthType.SIMULATED: build_simulated})
        factory.initialize(config)
        provider = await factory.create_provider(AuthType.SIMULATED)
    """

    def __init__(
        self,
        builders: Optional[Mapping[AuthType, ProviderBuilder]] = None,
        clock: Callable[[], datetime] = utc_now,
        max_switch_history: int = MAX_SWITCH_HISTORY,
    ):
        """Initialize provider factory.

        Args:
            builders: Provider constructor per type
            clock: Time source for switch rate limiting
            max_switch_history: Number of switch events kept
        """
        self._builders: Dict[AuthType, ProviderBuilder] = dict(builders or {})
        self._clock = clock
        self._config: Optional[AuthConfiguration] = None
        self._current_type: Optional[AuthType] = None
        self._providers: Dict[AuthType, AuthProvider] = {}
        self._creating: Dict[AuthType, "asyncio.Future[AuthProvider]"] = {}
        self._switch_lock = asyncio.Lock()
        self._generation = 0
        self._switch_history: Deque[ProviderSwitchEvent] = deque(maxlen=max_switch_history)
        self._last_switch_at: Optional[datetime] = None

    # Configuration

    def initialize(self, config: AuthConfiguration) -> None:
        """Store a private copy of ``config`` and select its current type."""
        self._config = config.model_copy(deep=True)
        self._current_type = self._config.current_type
        logger.info(
            f"Provider factory initialized: current={self._current_type.value} "
            f"fallback={self._config.fallback_type.value if self._config.fallback_type else None}"
        )

    @property
    def is_initialized(self) -> bool:
        return self._config is not None

    @property
    def current_type(self) -> Optional[AuthType]:
        return self._current_type

    @property
    def configuration(self) -> Optional[AuthConfiguration]:
        return self._config.model_copy(deep=True) if self._config else None

    def register_builder(self, provider_type: AuthType, builder: ProviderBuilder) -> None:
        self._builders[provider_type] = builder

    # Creation

    async def create_provider(self, provider_type: AuthType) -> AuthProvider:
        """Return a healthy provider of ``provider_type``, creating one if needed.

        Raises:
            AuthProviderError: CONFIGURATION_ERROR for an unknown type or an
                uninitialized factory, INITIALIZATION_FAILED when the new
                provider fails to initialize
        """
        config = self._require_config(provider_type)

        cached = self._providers.get(provider_type)
        if cached is not None:
            if await self._passes_health_check(cached):
                return cached
            logger.warning(f"Cached {provider_type.value} provider is unhealthy, recreating")
            if self._providers.get(provider_type) is cached:
                await self.cleanup_provider(provider_type)

        pending = self._creating.get(provider_type)
        if pending is None:
            pending = asyncio.ensure_future(
                self._create(provider_type, config, self._generation)
            )
            self._creating[provider_type] = pending
            pending.add_done_callback(
                lambda task, t=provider_type: self._creation_done(t, task)
            )
        return await asyncio.shield(pending)

    async def _create(
        self, provider_type: AuthType, config: AuthConfiguration, generation: int
    ) -> AuthProvider:
        builder = self._builders.get(provider_type)
        if builder is None:
            raise AuthProviderError(
                AuthProviderErrorType.CONFIGURATION_ERROR,
                f"No provider registered for type: {provider_type.value}",
                provider_type,
            )

        try:
            provider = builder(config)
        except AuthProviderError:
            raise
        except Exception as e:
            raise AuthProviderError(
                AuthProviderErrorType.CONFIGURATION_ERROR,
                f"Failed to instantiate {provider_type.value} provider: {e}",
                provider_type,
                original_error=e,
            ) from e

        start = time.perf_counter()
        try:
            await provider.initialize()
        except Exception as e:
            await self._teardown(provider_type, provider)
            if isinstance(e, AuthProviderError) and e.error_type == AuthProviderErrorType.INITIALIZATION_FAILED:
                raise
            raise AuthProviderError(
                AuthProviderErrorType.INITIALIZATION_FAILED,
                f"Failed to initialize {provider_type.value} provider: {e}",
                provider_type,
                original_error=e,
            ) from e

        if generation != self._generation:
            await self._teardown(provider_type, provider)
            raise AuthProviderError(
                AuthProviderErrorType.CONFIGURATION_ERROR,
                "Provider factory was reset while the provider was being created",
                provider_type,
            )

        self._providers[provider_type] = provider
        logger.info(
            f"Created {provider_type.value} provider: {provider.name} v{provider.version} "
            f"({(time.perf_counter() - start) * 1000:.0f}ms)"
        )
        return provider

    def _creation_done(self, provider_type: AuthType, task: "asyncio.Future[AuthProvider]") -> None:
        if self._creating.get(provider_type) is task:
            del self._creating[provider_type]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Provider creation failed for {provider_type.value}: {task.exception()}")

    async def _passes_health_check(self, provider: AuthProvider) -> bool:
        try:
            status = await provider.health_check()
        except Exception as e:
            logger.warning(f"Health check raised for {provider.type.value}: {e}")
            return False
        if not status.is_healthy:
            logger.warning(f"Health check failed for {provider.type.value}: {status.issues}")
        return status.is_healthy

    # Switching

    async def switch_provider(
        self,
        new_type: AuthType,
        reason: SwitchReason = SwitchReason.USER_REQUEST,
    ) -> AuthProvider:
        """Make ``new_type`` the current provider.

        The new provider is created first; the previous one is torn down
        only after that succeeds.

        Raises:
            AuthProviderError: SWITCH_FAILED when switching is disabled or
                rate limited; creation errors propagate unchanged
        """
        config = self._require_config(new_type)
        if not config.allow_runtime_switch:
            raise AuthProviderError(
                AuthProviderErrorType.SWITCH_FAILED,
                "Runtime provider switching is disabled",
                new_type,
            )

        async with self._switch_lock:
            previous = self._current_type
            if previous == new_type:
                return await self.create_provider(new_type)

            if reason != SwitchReason.AUTO_FALLBACK:
                self._check_switch_rate(config, previous, new_type, reason)

            start = time.perf_counter()
            try:
                provider = await self.create_provider(new_type)
            except Exception as e:
                self._record_switch(previous, new_type, reason, False, start, error=str(e))
                logger.error(f"Provider switch {previous} -> {new_type.value} failed: {e}")
                raise

            self._current_type = new_type
            self._last_switch_at = self._clock()
            if previous is not None and previous in self._providers:
                result = await self.cleanup_provider(previous)
                if not result.success:
                    logger.warning(f"Teardown of previous provider {previous.value} failed: {result.error}")

            self._record_switch(previous, new_type, reason, True, start)
            logger.info(
                f"Switched provider {previous.value if previous else None} -> {new_type.value} "
                f"({reason.value})"
            )
            return provider

    async def ensure_active_provider(self) -> AuthProvider:
        """Return the current provider, falling back when it cannot be initialized."""
        config = self._require_config(self._current_type or AuthType.PRODUCTION)
        current = self._current_type
        try:
            return await self.create_provider(current)
        except AuthProviderError as e:
            fallback = config.fallback_type
            if (
                e.error_type != AuthProviderErrorType.INITIALIZATION_FAILED
                or not config.auto_switch_on_failure
                or fallback is None
                or fallback == current
            ):
                raise
            logger.warning(f"{current.value} provider unavailable, falling back to {fallback.value}: {e}")
            return await self.switch_provider(fallback, reason=SwitchReason.AUTO_FALLBACK)

    def _check_switch_rate(
        self,
        config: AuthConfiguration,
        previous: Optional[AuthType],
        new_type: AuthType,
        reason: SwitchReason,
    ) -> None:
        now = self._clock()
        error = None
        if self._last_switch_at is not None and now - self._last_switch_at < config.switch_cooldown:
            remaining = config.switch_cooldown - (now - self._last_switch_at)
            error = f"Provider switch cooldown active ({remaining.total_seconds():.0f}s remaining)"
        else:
            hour_ago = now - timedelta(hours=1)
            recent = sum(
                1 for event in self._switch_history
                if event.success and event.timestamp > hour_ago
            )
            if recent >= config.max_switches_per_hour:
                error = f"Provider switch limit reached ({config.max_switches_per_hour} per hour)"

        if error is not None:
            self._switch_history.append(ProviderSwitchEvent(
                from_type=previous, to_type=new_type, timestamp=now,
                reason=reason, success=False, error=error,
            ))
            raise AuthProviderError(AuthProviderErrorType.SWITCH_FAILED, error, new_type)

    def _record_switch(
        self,
        previous: Optional[AuthType],
        new_type: AuthType,
        reason: SwitchReason,
        success: bool,
        start: float,
        error: Optional[str] = None,
    ) -> None:
        self._switch_history.append(ProviderSwitchEvent(
            from_type=previous,
            to_type=new_type,
            timestamp=self._clock(),
            reason=reason,
            success=success,
            duration_ms=(time.perf_counter() - start) * 1000,
            error=error,
        ))

    # Queries

    def get_current_provider(self) -> Optional[AuthProvider]:
        """Cached provider of the current type, if any."""
        if self._current_type is None:
            return None
        return self._providers.get(self._current_type)

    async def is_provider_healthy(self, provider_type: AuthType) -> bool:
        provider = self._providers.get(provider_type)
        if provider is None:
            return False
        return await self._passes_health_check(provider)

    def get_provider(self, provider_type: AuthType) -> Optional[AuthProvider]:
        return self._providers.get(provider_type)

    def get_available_providers(self) -> List[AuthType]:
        return list(self._builders)

    def get_cached_providers(self) -> List[AuthType]:
        return list(self._providers)

    def get_switch_history(self, limit: Optional[int] = None) -> List[ProviderSwitchEvent]:
        """Switch events, most recent first."""
        events = list(reversed(self._switch_history))
        return events[:limit] if limit is not None else events

    def get_debug_info(self) -> Dict[str, Any]:
        return {
            "initialized": self.is_initialized,
            "current_type": self._current_type.value if self._current_type else None,
            "available": [t.value for t in self._builders],
            "cached": {
                t.value: provider.get_debug_info().model_dump(mode="json")
                for t, provider in self._providers.items()
            },
            "creating": [t.value for t in self._creating],
            "last_switch_at": self._last_switch_at.isoformat() if self._last_switch_at else None,
            "switch_count": len(self._switch_history),
            "configuration": self._config.model_dump(mode="json") if self._config else None,
        }

    # Teardown

    async def cleanup_provider(self, provider_type: AuthType) -> ProviderCleanupResult:
        """Tear down and evict the cached provider of ``provider_type``.

        The instance is evicted even when its teardown fails.
        """
        provider = self._providers.pop(provider_type, None)
        if provider is None:
            return ProviderCleanupResult(
                success=True,
                provider=provider_type,
                message="Provider not cached",
            )
        return await self._teardown(provider_type, provider)

    async def cleanup(self) -> None:
        """Tear down every cached provider and reset the factory.

        Reuse requires another ``initialize(config)``.
        """
        providers = list(self._providers.items())
        self._providers.clear()
        self._creating.clear()
        self._generation += 1
        self._config = None
        self._current_type = None
        self._last_switch_at = None
        self._switch_history.clear()

        results = await asyncio.gather(
            *(self._teardown(t, p) for t, p in providers),
            return_exceptions=True,
        )
        failed = [r for r in results if isinstance(r, BaseException) or not r.success]
        logger.info(f"Provider factory cleaned up: {len(providers)} providers, {len(failed)} teardown failures")

    async def _teardown(self, provider_type: AuthType, provider: AuthProvider) -> ProviderCleanupResult:
        start = time.perf_counter()
        try:
            await provider.cleanup()
        except Exception as e:
            logger.warning(f"Cleanup of {provider_type.value} provider failed: {e}")
            return ProviderCleanupResult(
                success=False,
                provider=provider_type,
                duration_ms=(time.perf_counter() - start) * 1000,
                message="Provider evicted, teardown failed",
                error=str(e),
            )
        return ProviderCleanupResult(
            success=True,
            provider=provider_type,
            duration_ms=(time.perf_counter() - start) * 1000,
            message="Provider cleaned up",
            resources_freed=["provider_instance", "session_state"],
        )

    def _require_config(self, provider_type: AuthType) -> AuthConfiguration:
        if self._config is None:
            raise AuthProviderError(
                AuthProviderErrorType.CONFIGURATION_ERROR,
                "Provider factory is not initialized",
                provider_type,
            )
        return self._config
