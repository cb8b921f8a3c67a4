"""Provider configuration models.

The factory consumes an ``AuthConfiguration``; ``Settings`` builds one from
the environment (see ``agent_auth.config.settings``).
"""

from datetime import timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from agent_auth.domain.models.auth import AuthType, UserRole


class SimulatedAuthConfig(BaseModel):
    """Simulated backend configuration

    Attributes:
        mock_delay_ms: Artificial latency added to every login
        allowed_users: Identifier allow-list (empty accepts any well-formed identifier)
        failure_rate: Probability in [0, 1] of an injected network failure per login
        offline_mode: Backend works without connectivity
        session_duration: Lifetime of a persisted session
        mock_user_roles: Per-identifier role overrides
        enable_debug_logging: Log every recorded provider error
    """

    mock_delay_ms: int = Field(default=1000, ge=0)
    allowed_users: List[str] = Field(default_factory=list)
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    offline_mode: bool = True
    session_duration: timedelta = timedelta(hours=24)
    mock_user_roles: Dict[str, UserRole] = Field(default_factory=dict)
    enable_debug_logging: bool = False


class ProductionAuthConfig(BaseModel):
    """Production identity service configuration

    Attributes:
        base_url: Identity service root URL
        timeout_seconds: Per-request HTTP timeout
        retry_attempts: Total login attempts for transient backend failures
        require_https: Reject non-https base URLs
        allowed_domains: Host allow-list (empty allows any host)
        enable_offline_mode: Keep serving a persisted session while offline
        token_secret: Key used to verify access tokens (unverified decode when empty)
        token_algorithms: Accepted token signing algorithms
        supervisor_roles: Backend role fragments mapped to the supervisor role
        enable_debug_logging: Log every recorded provider error
    """

    base_url: str = "https://identity.example.com"
    timeout_seconds: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    require_https: bool = True
    allowed_domains: List[str] = Field(default_factory=list)
    enable_offline_mode: bool = True
    token_secret: Optional[str] = None
    token_algorithms: List[str] = Field(default_factory=lambda: ["HS256"])
    supervisor_roles: List[str] = Field(
        default_factory=lambda: ["SUPERVISOR", "MANAGER", "ADMIN"]
    )
    enable_debug_logging: bool = False

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class AuthConfiguration(BaseModel):
    """Factory configuration

    Attributes:
        current_type: Provider served by default
        fallback_type: Provider used when the current one cannot be initialized
        auto_switch_on_failure: Switch to ``fallback_type`` automatically
        allow_runtime_switch: Permit ``switch_provider``
        switch_cooldown: Minimum time between two successful switches
        max_switches_per_hour: Upper bound on successful switches per rolling hour
    """

    current_type: AuthType = AuthType.PRODUCTION
    fallback_type: Optional[AuthType] = AuthType.SIMULATED
    auto_switch_on_failure: bool = False

    simulated: SimulatedAuthConfig = Field(default_factory=SimulatedAuthConfig)
    production: ProductionAuthConfig = Field(default_factory=ProductionAuthConfig)

    allow_runtime_switch: bool = True
    switch_cooldown: timedelta = timedelta(minutes=1)
    max_switches_per_hour: int = Field(default=10, ge=1)
