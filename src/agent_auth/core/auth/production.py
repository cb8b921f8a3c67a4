"""Production identity service provider.

Wraps a ``BackendAdapter`` (HTTP in production) behind the uniform provider
contract. Login calls are retried on transient backend failures through the
shared retry policy.
"""

import time
from typing import List, Optional

from .backend import BackendAdapter, BackendSession
from .configuration import ProductionAuthConfig
from .errors import AuthProviderError, AuthProviderErrorType
from .provider import (
    AuthProvider,
    ProviderCapabilities,
    ProviderDebugInfo,
    ProviderDescriptor,
    ProviderHealthStatus,
)
from agent_auth.core.retry import RetryPolicy, execute_with_retry
from agent_auth.domain.models.auth import AgentUser, AuthType, LoginResult, UserRole
from agent_auth.infrastructure.network.monitor import NetworkMonitor


def map_backend_roles(roles: List[str], supervisor_roles: List[str]) -> UserRole:
    """Map backend role strings to an application role.

    A backend role containing any supervisor fragment (case-insensitive)
    makes the user a supervisor; everyone else is an agent.
    """
    fragments = [fragment.upper() for fragment in supervisor_roles]
    for role in roles:
        upper = role.upper()
        if any(fragment in upper for fragment in fragments):
            return UserRole.SUPERVISOR
    return UserRole.AGENT


class ProductionAuthProvider(AuthProvider):
    """Production identity service authentication.

    This provider delegates every call to its backend adapter and converts
    backend sessions to ``AgentUser`` profiles.

    Configuration:
        AUTH_PROVIDER=production (default)
        PRODUCTION_BASE_URL=https://identity.example.com
        PRODUCTION_TIMEOUT_SECONDS=30 (default)
        PRODUCTION_RETRY_ATTEMPTS=3 (default)
    """

    descriptor = ProviderDescriptor(
        type=AuthType.PRODUCTION,
        name="Production Identity Service",
        description="Network-bound authentication against the production identity service",
        version="2.0.0",
        capabilities=ProviderCapabilities(
            supports_offline=True,
            supports_token_refresh=True,
            requires_network=True,
            supports_multiple_users=False,
            has_session_persistence=True,
            supports_role_based_auth=True,
        ),
    )

    def __init__(
        self,
        config: ProductionAuthConfig,
        adapter: BackendAdapter,
        network_monitor: Optional[NetworkMonitor] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize production auth provider.

        Args:
            config: Production backend configuration (copied)
            adapter: Backend adapter performing the real calls
            network_monitor: Connectivity signal used by health checks
            retry_policy: Login retry policy (defaults to ``retry_attempts`` attempts)
        """
        super().__init__(enable_debug_logging=config.enable_debug_logging)
        self.config = config.model_copy(deep=True)
        self.adapter = adapter
        self.network_monitor = network_monitor
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=self.config.retry_attempts)
        self._has_session = False

        if not self.config.base_url.startswith("https://"):
            self._logger.warning(f"Production base URL is not https: {self.config.base_url}")

    async def initialize(self) -> None:
        if self._initialized:
            return
        try:
            await self.adapter.initialize()
        except Exception as e:
            self._record_error("Initialization failed", e)
            raise AuthProviderError(
                AuthProviderErrorType.INITIALIZATION_FAILED,
                "Failed to initialize production authentication provider",
                AuthType.PRODUCTION,
                original_error=e,
            ) from e
        self._initialized = True
        self._logger.info("Production provider initialized")

    async def login(self, identifier: str, secret: str) -> LoginResult:
        start = time.perf_counter()

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            self._record_error(f"Login attempt {attempt + 1} failed", error)

        try:
            session = await execute_with_retry(
                lambda: self.adapter.login(identifier, secret),
                self.retry_policy,
                on_retry=on_retry,
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self._record_login(False, duration_ms)
            self._record_error(str(e) or "Login failed", e)
            self._logger.warning(f"Login failed for {identifier}: {e}")
            error = AuthProviderError(
                AuthProviderErrorType.LOGIN_FAILED,
                f"Login failed: {e}",
                AuthType.PRODUCTION,
                original_error=e,
            )
            return LoginResult(
                success=False,
                message=str(e) or "Login failed",
                provider=AuthType.PRODUCTION,
                error=error,
                duration_ms=duration_ms,
            )

        user = self._to_agent_user(session)
        self._has_session = True
        duration_ms = (time.perf_counter() - start) * 1000
        self._record_login(True, duration_ms)
        self._logger.info(f"Login successful: {identifier} ({duration_ms:.0f}ms)")
        return LoginResult(
            success=True,
            message="Login successful",
            provider=AuthType.PRODUCTION,
            user_data=user,
            duration_ms=duration_ms,
        )

    async def logout(self) -> None:
        try:
            await self.adapter.logout()
            self._logger.info("Logout completed")
        except Exception as e:
            self._record_error("Logout failed", e)
            self._logger.warning(f"Remote logout failed, local session cleared: {e}")
        finally:
            self._has_session = False
            self._touch()

    async def is_authenticated(self) -> bool:
        try:
            authenticated = await self.adapter.is_authenticated()
            if authenticated:
                self._touch()
            return authenticated
        except Exception as e:
            self._record_error("Authentication check failed", e)
            return False

    async def get_current_user(self) -> Optional[AgentUser]:
        try:
            session = await self.adapter.get_current_session()
            return self._to_agent_user(session) if session else None
        except Exception as e:
            self._record_error("Get current user failed", e)
            return None

    async def refresh_token(self) -> bool:
        try:
            refreshed = await self.adapter.refresh_token()
        except Exception as e:
            self._record_error("Token refresh error", e)
            return False
        if refreshed:
            self._touch()
            self._logger.info("Token refreshed")
        else:
            self._record_error("Token refresh failed")
        return refreshed

    async def health_check(self) -> ProviderHealthStatus:
        issues = []
        if not self._initialized:
            issues.append("Provider not initialized")

        online = self.network_monitor.is_online() if self.network_monitor else None
        if online is False:
            issues.append("Network connection required but not available")

        try:
            issues.extend(await self.adapter.health())
        except Exception as e:
            self._record_error("Backend health check failed", e)
            issues.append(f"Backend health check failed: {e}")

        return ProviderHealthStatus(
            is_healthy=not issues,
            issues=issues,
            performance=self._performance(),
            network_online=online,
        )

    def get_debug_info(self) -> ProviderDebugInfo:
        return self._debug_info(
            has_active_session=self._has_session,
            configuration={
                "base_url": self.config.base_url,
                "timeout_seconds": self.config.timeout_seconds,
                "retry_attempts": self.config.retry_attempts,
                "require_https": self.config.require_https,
                "enable_offline_mode": self.config.enable_offline_mode,
            },
        )

    async def cleanup(self) -> None:
        self._initialized = False
        try:
            await self.adapter.close()
        except Exception as e:
            self._record_error("Cleanup failed", e)
            raise
        finally:
            self._logger.info("Production provider cleanup completed")

    def _to_agent_user(self, session: BackendSession) -> AgentUser:
        name = f"{session.names} {session.last_names}".strip() or session.email
        return AgentUser(
            user_id=session.user_id,
            email=session.email,
            name=name,
            role=map_backend_roles(session.roles, self.config.supervisor_roles),
            profile={
                "provider": AuthType.PRODUCTION.value,
                "names": session.names,
                "last_names": session.last_names,
                "roles": list(session.roles),
                "session_id": session.session_id,
            },
        )
