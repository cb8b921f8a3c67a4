"""Simulated authentication provider.

Local backend for development, field training and fallback scenarios.
Credentials are validated by format (and an optional allow-list); sessions
are persisted in the session store with an explicit expiry.
"""

import asyncio
import random
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from .configuration import SimulatedAuthConfig
from .errors import AuthProviderError, AuthProviderErrorType
from .provider import (
    AuthProvider,
    ProviderCapabilities,
    ProviderDebugInfo,
    ProviderDescriptor,
    ProviderHealthStatus,
)
from agent_auth.domain.models.auth import (
    AgentUser,
    AuthType,
    LoginResult,
    SessionData,
    UserRole,
    utc_now,
)
from agent_auth.infrastructure.network.monitor import NetworkMonitor
from agent_auth.infrastructure.session.store import SessionStore

SESSION_KEY = "simulated:current"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class SimulatedAuthProvider(AuthProvider):
    """Simulated username/password authentication.

    Features:
    - Artificial login latency (``mock_delay_ms``)
    - Optional identifier allow-list and per-user role overrides
    - Injected network failures at ``failure_rate``
    - Session persistence with expiry through ``SessionStore``

    Configuration:
        SIMULATED_MOCK_DELAY_MS=1000 (default)
        SIMULATED_ALLOWED_USERS=["agent@example.com"]
        SIMULATED_FAILURE_RATE=0.0 (default)
        SIMULATED_OFFLINE_MODE=true (default; false makes login require connectivity)
    """

    descriptor = ProviderDescriptor(
        type=AuthType.SIMULATED,
        name="Simulated Authentication",
        description="Simulated authentication for development and testing",
        version="1.0.0",
        capabilities=ProviderCapabilities(
            supports_offline=True,
            supports_token_refresh=False,
            requires_network=False,
            supports_multiple_users=True,
            has_session_persistence=True,
            supports_role_based_auth=True,
        ),
    )

    def __init__(
        self,
        config: SimulatedAuthConfig,
        session_store: SessionStore,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        network_monitor: Optional[NetworkMonitor] = None,
    ):
        """Initialize simulated auth provider.

        Args:
            config: Simulated backend configuration (copied)
            session_store: Where sessions are persisted
            rng: Random source for failure injection
            clock: Time source for session expiry
            network_monitor: Connectivity signal, consulted when offline mode is disabled
        """
        super().__init__(enable_debug_logging=config.enable_debug_logging)
        self.config = config.model_copy(deep=True)
        self.session_store = session_store
        self._rng = rng or random.Random()
        self._clock = clock
        self.network_monitor = network_monitor
        self._session: Optional[SessionData] = None

        self._logger.info(
            f"Simulated provider created: delay={self.config.mock_delay_ms}ms "
            f"allowed_users={len(self.config.allowed_users)} offline_mode={self.config.offline_mode}"
        )

    def get_capabilities(self) -> ProviderCapabilities:
        if self.config.offline_mode:
            return self.descriptor.capabilities
        return self.descriptor.capabilities.model_copy(
            update={"supports_offline": False, "requires_network": True}
        )

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            await self._restore_session()
        except Exception as e:
            self._record_error("Initialization failed", e)
            raise AuthProviderError(
                AuthProviderErrorType.INITIALIZATION_FAILED,
                "Failed to initialize simulated authentication provider",
                AuthType.SIMULATED,
                original_error=e,
            ) from e
        self._initialized = True
        self._logger.info("Simulated provider initialized")

    async def login(self, identifier: str, secret: str) -> LoginResult:
        start = time.perf_counter()
        try:
            if self.config.mock_delay_ms > 0:
                await asyncio.sleep(self.config.mock_delay_ms / 1000)

            if self.config.failure_rate > 0 and self._rng.random() < self.config.failure_rate:
                raise AuthProviderError(
                    AuthProviderErrorType.NETWORK_ERROR,
                    "Simulated network error",
                    AuthType.SIMULATED,
                )

            if self.get_capabilities().requires_network and not self._is_online():
                raise AuthProviderError(
                    AuthProviderErrorType.NETWORK_ERROR,
                    "Login requires a network connection (offline mode disabled)",
                    AuthType.SIMULATED,
                )

            if not self._valid_credentials(identifier, secret):
                duration_ms = (time.perf_counter() - start) * 1000
                self._record_login(False, duration_ms)
                self._record_error(INVALID_CREDENTIALS_MESSAGE)
                self._logger.warning(f"Login failed: invalid credentials (email: {identifier})")
                return LoginResult(
                    success=False,
                    message=INVALID_CREDENTIALS_MESSAGE,
                    provider=AuthType.SIMULATED,
                    error=AuthProviderError(
                        AuthProviderErrorType.LOGIN_FAILED,
                        INVALID_CREDENTIALS_MESSAGE,
                        AuthType.SIMULATED,
                    ),
                    duration_ms=duration_ms,
                )

            user = self._create_user(identifier)
            session = await self._create_session(user)
            self._session = session

            duration_ms = (time.perf_counter() - start) * 1000
            self._record_login(True, duration_ms)
            self._logger.info(f"Login successful: {identifier} ({duration_ms:.0f}ms)")
            return LoginResult(
                success=True,
                message="Login successful",
                provider=AuthType.SIMULATED,
                user_data=user,
                duration_ms=duration_ms,
            )

        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self._record_login(False, duration_ms)
            self._record_error(str(e) or "Login failed", e)
            self._logger.error(f"Login failed for {identifier}: {e}")
            return LoginResult(
                success=False,
                message=str(e) or "Login failed",
                provider=AuthType.SIMULATED,
                error=e,
                duration_ms=duration_ms,
            )

    async def logout(self) -> None:
        self._session = None
        self._touch()
        try:
            await self.session_store.delete(SESSION_KEY)
            self._logger.info("Logout completed")
        except Exception as e:
            self._record_error("Logout failed", e)
            self._logger.warning(f"Failed to clear stored session on logout: {e}")

    async def is_authenticated(self) -> bool:
        try:
            now = self._clock()
            if self._session is not None:
                if not self._session.is_expired(now):
                    return True
                self._session = None
                await self.session_store.delete(SESSION_KEY)

            session = await self._load_session()
            if session is not None and not session.is_expired(now):
                self._session = session
                return True
            return False
        except Exception as e:
            self._record_error("Authentication check failed", e)
            return False

    async def get_current_user(self) -> Optional[AgentUser]:
        try:
            if await self.is_authenticated():
                return self._session.user if self._session else None
            return None
        except Exception as e:
            self._record_error("Get current user failed", e)
            return None

    async def refresh_token(self) -> bool:
        # Simulated sessions carry no token
        return False

    async def health_check(self) -> ProviderHealthStatus:
        issues = []
        if not self._initialized:
            issues.append("Provider not initialized")

        try:
            if not await self.session_store.ping():
                issues.append("Storage access failed")
        except Exception as e:
            self._record_error("Storage health check failed", e)
            issues.append("Storage access failed")

        if self._session is not None and self._session.is_expired(self._clock()):
            issues.append("Current session expired")

        return ProviderHealthStatus(
            is_healthy=not issues,
            issues=issues,
            performance=self._performance(),
        )

    def get_debug_info(self) -> ProviderDebugInfo:
        return self._debug_info(
            has_active_session=self._session is not None,
            configuration={
                "mock_delay_ms": self.config.mock_delay_ms,
                "allowed_users_count": len(self.config.allowed_users),
                "failure_rate": self.config.failure_rate,
                "offline_mode": self.config.offline_mode,
                "session_duration_seconds": self.config.session_duration.total_seconds(),
            },
        )

    async def cleanup(self) -> None:
        self._session = None
        self._initialized = False
        self._logger.info("Simulated provider cleanup completed")

    # Internals

    def _is_online(self) -> bool:
        return self.network_monitor is None or self.network_monitor.is_online()

    def _valid_credentials(self, identifier: str, secret: str) -> bool:
        if "@" not in identifier or "." not in identifier:
            return False
        if len(secret) < 4:
            return False
        if self.config.allowed_users:
            return identifier in self.config.allowed_users
        return True

    def _create_user(self, identifier: str) -> AgentUser:
        local_part = identifier.split("@")[0]
        name = local_part.replace(".", " ").replace("_", " ").title()
        now = self._clock()
        return AgentUser(
            user_id=f"simulated-{uuid.uuid4().hex[:12]}",
            email=identifier,
            name=name,
            role=self.config.mock_user_roles.get(identifier, UserRole.AGENT),
            profile={
                "provider": AuthType.SIMULATED.value,
                "session_type": "mock",
                "last_login": now.isoformat(),
                "allowed_user": identifier in self.config.allowed_users,
            },
        )

    async def _create_session(self, user: AgentUser) -> SessionData:
        now = self._clock()
        session = SessionData(
            session_id=f"simulated-session-{uuid.uuid4()}",
            user=user,
            created_at=now,
            last_activity=now,
            expires_at=now + self.config.session_duration,
        )
        await self.session_store.set(SESSION_KEY, session.to_dict(), ttl=self.config.session_duration)
        return session

    async def _load_session(self) -> Optional[SessionData]:
        data = await self.session_store.get(SESSION_KEY)
        if data is None:
            return None
        try:
            return SessionData.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            self._record_error("Stored session unreadable", e)
            return None

    async def _restore_session(self) -> None:
        session = await self._load_session()
        if session is not None and not session.is_expired(self._clock()):
            self._session = session
            self._logger.info("Existing session restored")
