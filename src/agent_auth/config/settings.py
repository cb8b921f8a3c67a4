"""Configuration Settings for Agent Auth

Manages environment variables and application configuration.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_auth.core.auth.configuration import (
    AuthConfiguration,
    ProductionAuthConfig,
    SimulatedAuthConfig,
)
from agent_auth.domain.models.auth import AuthType, UserRole


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Service info
    service_name: str = "agent-auth"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Redis configuration (in-memory session store when disabled)
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # CORS configuration
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    # Provider selection
    auth_provider: AuthType = AuthType.PRODUCTION
    auth_fallback_provider: Optional[AuthType] = AuthType.SIMULATED
    auth_auto_switch_on_failure: bool = False

    # Simulated provider
    simulated_mock_delay_ms: int = 1000
    simulated_allowed_users: list[str] = []
    simulated_failure_rate: float = 0.0
    simulated_offline_mode: bool = True
    simulated_session_hours: float = 24.0
    simulated_user_roles: Dict[str, UserRole] = {}
    simulated_debug_logging: bool = False

    # Production provider
    production_base_url: str = "https://identity.example.com"
    production_timeout_seconds: float = 30.0
    production_retry_attempts: int = 3
    production_require_https: bool = True
    production_allowed_domains: list[str] = []
    production_offline_mode: bool = True
    production_token_secret: Optional[str] = None
    production_token_algorithms: list[str] = ["HS256"]
    production_supervisor_roles: list[str] = ["SUPERVISOR", "MANAGER", "ADMIN"]
    production_debug_logging: bool = False

    # Provider switching
    allow_runtime_switch: bool = True
    switch_cooldown_seconds: int = 60
    max_switches_per_hour: int = 10

    # Error handling
    suspicious_error_threshold: int = 3
    suspicious_error_window_minutes: int = 5
    error_history_hours: int = 24
    alert_operations: list[str] = ["login"]

    # Recovery
    recovery_network_wait_seconds: float = 15.0
    recovery_enable_service_restart: bool = False
    recovery_history_hours: int = 24

    def build_auth_configuration(self) -> AuthConfiguration:
        """Provider factory configuration derived from these settings"""
        return AuthConfiguration(
            current_type=self.auth_provider,
            fallback_type=self.auth_fallback_provider,
            auto_switch_on_failure=self.auth_auto_switch_on_failure,
            simulated=SimulatedAuthConfig(
                mock_delay_ms=self.simulated_mock_delay_ms,
                allowed_users=self.simulated_allowed_users,
                failure_rate=self.simulated_failure_rate,
                offline_mode=self.simulated_offline_mode,
                session_duration=timedelta(hours=self.simulated_session_hours),
                mock_user_roles=self.simulated_user_roles,
                enable_debug_logging=self.simulated_debug_logging,
            ),
            production=ProductionAuthConfig(
                base_url=self.production_base_url,
                timeout_seconds=self.production_timeout_seconds,
                retry_attempts=self.production_retry_attempts,
                require_https=self.production_require_https,
                allowed_domains=self.production_allowed_domains,
                enable_offline_mode=self.production_offline_mode,
                token_secret=self.production_token_secret,
                token_algorithms=self.production_token_algorithms,
                supervisor_roles=self.production_supervisor_roles,
                enable_debug_logging=self.production_debug_logging,
            ),
            allow_runtime_switch=self.allow_runtime_switch,
            switch_cooldown=timedelta(seconds=self.switch_cooldown_seconds),
            max_switches_per_hour=self.max_switches_per_hour,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()
