"""Service container

Builds the provider factory, error classifier and recovery orchestrator
once per process and owns their shared collaborators (session store,
network monitor, redis connection). Routes reach it through
``request.app.state.container``.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

import httpx
from fastapi import Request

from agent_auth.config.settings import Settings
from agent_auth.core.auth.configuration import AuthConfiguration
from agent_auth.core.auth.factory import ProviderBuilder, ProviderFactory
from agent_auth.core.auth.production import ProductionAuthProvider
from agent_auth.core.auth.simulated import SimulatedAuthProvider
from agent_auth.core.errors.classifier import ErrorClassifier, UserPrompt
from agent_auth.core.recovery.orchestrator import RecoveryOrchestrator
from agent_auth.core.recovery.strategies import default_strategies
from agent_auth.domain.models.auth import AuthType
from agent_auth.infrastructure.audit.logger import (
    LoggingAuditLogger,
    LoggingSuspiciousActivityReporter,
)
from agent_auth.infrastructure.backend.http_adapter import HttpIdentityAdapter
from agent_auth.infrastructure.network.monitor import NetworkMonitor, NetworkStatusMonitor
from agent_auth.infrastructure.redis.client import RedisClient
from agent_auth.infrastructure.session.store import (
    MemorySessionStore,
    RedisSessionStore,
    SessionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Process-wide services"""
    settings: Settings
    factory: ProviderFactory
    classifier: ErrorClassifier
    orchestrator: RecoveryOrchestrator
    session_store: SessionStore
    network_monitor: NetworkMonitor
    redis_client: Optional[RedisClient] = None

    async def start(self) -> None:
        """Select the configured provider, falling back when allowed.

        A provider that cannot start does not stop the service; the failure
        is logged and the next request retries creation.
        """
        try:
            provider = await self.factory.ensure_active_provider()
            logger.info(f"Active provider: {provider.name} v{provider.version}")
        except Exception as e:
            logger.error(f"No active provider at startup: {e}")

    async def shutdown(self) -> None:
        await self.factory.cleanup()
        if self.redis_client is not None:
            await self.redis_client.disconnect()


def provider_builders(
    session_store: SessionStore,
    network_monitor: NetworkMonitor,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[AuthType, ProviderBuilder]:
    """Provider constructors bound to the shared collaborators"""

    def build_production(config: AuthConfiguration) -> ProductionAuthProvider:
        adapter = HttpIdentityAdapter(
            config.production,
            session_store=session_store,
            network_monitor=network_monitor,
            transport=transport,
        )
        return ProductionAuthProvider(config.production, adapter, network_monitor=network_monitor)

    def build_simulated(config: AuthConfiguration) -> SimulatedAuthProvider:
        return SimulatedAuthProvider(config.simulated, session_store, network_monitor=network_monitor)

    return {
        AuthType.PRODUCTION: build_production,
        AuthType.SIMULATED: build_simulated,
    }


async def build_container(
    settings: Settings,
    network_monitor: Optional[NetworkMonitor] = None,
    session_store: Optional[SessionStore] = None,
    prompt: Optional[UserPrompt] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """Wire every service from ``settings``.

    Args:
        settings: Application settings
        network_monitor: Connectivity source (defaults to an online ``NetworkStatusMonitor``)
        session_store: Session persistence (defaults to redis or memory per settings)
        prompt: Alert surface for the classifier
        transport: httpx transport for the production backend (tests)
    """
    redis_client = None
    if session_store is None:
        if settings.redis_enabled:
            redis_client = RedisClient(settings)
            await redis_client.connect()
            session_store = RedisSessionStore(redis_client.get_client())
        else:
            logger.warning("Redis disabled, sessions are kept in memory for this process only")
            session_store = MemorySessionStore()

    network_monitor = network_monitor or NetworkStatusMonitor()

    factory = ProviderFactory(builders=provider_builders(session_store, network_monitor, transport))
    factory.initialize(settings.build_auth_configuration())

    orchestrator = RecoveryOrchestrator(
        strategies=default_strategies(
            factory,
            network_monitor,
            session_store,
            network_wait_timeout=settings.recovery_network_wait_seconds,
            enable_service_restart=settings.recovery_enable_service_restart,
        ),
        history_max_age=timedelta(hours=settings.recovery_history_hours),
    )

    classifier = ErrorClassifier(
        audit_logger=LoggingAuditLogger(),
        suspicious_reporter=LoggingSuspiciousActivityReporter(),
        recovery=orchestrator,
        prompt=prompt,
        suspicious_threshold=settings.suspicious_error_threshold,
        suspicious_window=timedelta(minutes=settings.suspicious_error_window_minutes),
        history_max_age=timedelta(hours=settings.error_history_hours),
        alert_operations=settings.alert_operations,
    )

    return ServiceContainer(
        settings=settings,
        factory=factory,
        classifier=classifier,
        orchestrator=orchestrator,
        session_store=session_store,
        network_monitor=network_monitor,
        redis_client=redis_client,
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the process container"""
    return request.app.state.container
