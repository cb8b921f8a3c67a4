"""Abstract authentication provider interface.

This module defines the contract that all authentication providers must
implement. Callers branch on the capabilities a provider declares, never on
which provider they hold.
"""

import logging
import traceback
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agent_auth.domain.models.auth import AgentUser, AuthType, LoginResult, utc_now

MAX_RECENT_ERRORS = 10


class ProviderCapabilities(BaseModel):
    """Capabilities a provider declares statically.

    Attributes:
        supports_offline: Keeps serving a session without connectivity
        supports_token_refresh: ``refresh_token`` can renew a session
        requires_network: Login needs connectivity
        supports_multiple_users: Several agents may use the provider on one device
        has_session_persistence: Sessions survive a restart
        supports_role_based_auth: Users carry an application role
    """
    model_config = ConfigDict(frozen=True)

    supports_offline: bool
    supports_token_refresh: bool
    requires_network: bool
    supports_multiple_users: bool
    has_session_persistence: bool
    supports_role_based_auth: bool


class ProviderDescriptor(BaseModel):
    """Immutable identity of a provider kind."""
    model_config = ConfigDict(frozen=True)

    type: AuthType
    name: str
    description: str
    version: str
    capabilities: ProviderCapabilities


class PerformanceSnapshot(BaseModel):
    """Provider performance as seen by a health check."""
    average_login_ms: float = 0.0
    success_rate: float = 1.0
    last_successful_operation: Optional[datetime] = None
    total_operations: int = 0


class ProviderHealthStatus(BaseModel):
    """Result of a provider self-diagnostic."""
    is_healthy: bool
    last_check: datetime = Field(default_factory=utc_now)
    issues: List[str] = Field(default_factory=list)
    performance: PerformanceSnapshot = Field(default_factory=PerformanceSnapshot)
    network_online: Optional[bool] = None


class ProviderErrorRecord(BaseModel):
    message: str
    timestamp: datetime
    stack: Optional[str] = None


class ProviderMetrics(BaseModel):
    login_attempts: int = 0
    successful_logins: int = 0
    failed_logins: int = 0
    total_login_ms: float = 0.0
    last_activity: Optional[datetime] = None


class ProviderDebugInfo(BaseModel):
    """Diagnostic snapshot of a provider."""
    type: AuthType
    name: str
    version: str
    is_initialized: bool
    has_active_session: bool
    last_activity: Optional[datetime] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)
    metrics: ProviderMetrics
    recent_errors: List[str] = Field(default_factory=list)
    error_count: int = 0
    last_error: Optional[ProviderErrorRecord] = None


class AuthProvider(ABC):
    """Abstract interface for authentication providers.

    Concrete providers set ``descriptor`` and implement the lifecycle and
    authentication methods. The base class keeps login metrics and a short
    list of recent errors for health checks and debug output.

    Example:
        provider = await factory.create_provider(AuthType.SIMULATED)
        if provider.get_capabilities().supports_token_refresh:
            await provider.refresh_token()
    """

    descriptor: ClassVar[ProviderDescriptor]

    def __init__(self, enable_debug_logging: bool = False):
        self._initialized = False
        self._metrics = ProviderMetrics()
        self._recent_errors: List[str] = []
        self._last_error: Optional[ProviderErrorRecord] = None
        self._debug_logging = enable_debug_logging
        self._logger = logging.getLogger(type(self).__module__)

    @property
    def type(self) -> AuthType:
        return self.descriptor.type

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def version(self) -> str:
        return self.descriptor.version

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def get_capabilities(self) -> ProviderCapabilities:
        """Capabilities declared by this provider kind."""
        return self.descriptor.capabilities

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the provider for use. Idempotent.

        Raises:
            AuthProviderError: INITIALIZATION_FAILED wrapping the backend failure
        """
        pass

    @abstractmethod
    async def login(self, identifier: str, secret: str) -> LoginResult:
        """Authenticate an agent.

        Failures are reported in the returned result, not raised.
        """
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Best-effort logout.

        Local session state is always cleared. A remote failure is recorded
        and never propagated.
        """
        pass

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """Whether a valid session exists. Never raises."""
        pass

    @abstractmethod
    async def get_current_user(self) -> Optional[AgentUser]:
        """Authenticated agent, or None. Never raises."""
        pass

    @abstractmethod
    async def refresh_token(self) -> bool:
        """Renew the session token. Returns False on any failure."""
        pass

    @abstractmethod
    async def health_check(self) -> ProviderHealthStatus:
        """Decide whether this instance may keep serving."""
        pass

    @abstractmethod
    def get_debug_info(self) -> ProviderDebugInfo:
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release resources. The instance is unusable afterwards."""
        pass

    # Shared bookkeeping

    def _record_login(self, success: bool, duration_ms: float) -> None:
        self._metrics.login_attempts += 1
        self._metrics.total_login_ms += duration_ms
        if success:
            self._metrics.successful_logins += 1
            self._metrics.last_activity = utc_now()
        else:
            self._metrics.failed_logins += 1

    def _touch(self) -> None:
        self._metrics.last_activity = utc_now()

    def _record_error(self, message: str, error: Optional[BaseException] = None) -> None:
        stack = None
        if error is not None:
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self._last_error = ProviderErrorRecord(message=message, timestamp=utc_now(), stack=stack)
        self._recent_errors.insert(0, message)
        del self._recent_errors[MAX_RECENT_ERRORS:]

        if self._debug_logging:
            self._logger.error(f"[{self.type.value}] {message}: {error}")

    def _performance(self) -> PerformanceSnapshot:
        attempts = self._metrics.login_attempts
        return PerformanceSnapshot(
            average_login_ms=self._metrics.total_login_ms / attempts if attempts else 0.0,
            success_rate=self._metrics.successful_logins / attempts if attempts else 1.0,
            last_successful_operation=self._metrics.last_activity,
            total_operations=attempts,
        )

    def _debug_info(self, has_active_session: bool, configuration: Dict[str, Any]) -> ProviderDebugInfo:
        return ProviderDebugInfo(
            type=self.type,
            name=self.name,
            version=self.version,
            is_initialized=self._initialized,
            has_active_session=has_active_session,
            last_activity=self._metrics.last_activity,
            configuration=configuration,
            metrics=self._metrics.model_copy(),
            recent_errors=list(self._recent_errors),
            error_count=len(self._recent_errors),
            last_error=self._last_error.model_copy() if self._last_error else None,
        )
