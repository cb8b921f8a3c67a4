"""Domain models for Agent Auth"""

from agent_auth.domain.models.api_auth import (
    ErrorAlert,
    ErrorSummary,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    ProviderSummary,
    RefreshResponse,
    SwitchProviderRequest,
    UserProfile,
)
from agent_auth.domain.models.auth import (
    AgentUser,
    AuthType,
    LoginResult,
    SessionData,
    UserRole,
    parse_utc_timestamp,
    to_json_compatible,
    utc_now,
)
from agent_auth.domain.models.errors import (
    ClassifiedError,
    ErrorCategory,
    ErrorContext,
    ErrorHandlingOptions,
    ErrorHandlingResult,
    ErrorSeverity,
    UserAction,
    UserAlert,
)
from agent_auth.domain.models.recovery import (
    RecoveryAttemptState,
    RecoveryKind,
    RecoveryResult,
    RecoveryStrategy,
)

__all__ = [
    # Auth models
    "AgentUser",
    "AuthType",
    "LoginResult",
    "SessionData",
    "UserRole",
    "parse_utc_timestamp",
    "to_json_compatible",
    "utc_now",
    # Error models
    "ClassifiedError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorHandlingOptions",
    "ErrorHandlingResult",
    "ErrorSeverity",
    "UserAction",
    "UserAlert",
    # Recovery models
    "RecoveryAttemptState",
    "RecoveryKind",
    "RecoveryResult",
    "RecoveryStrategy",
    # API models
    "ErrorAlert",
    "ErrorSummary",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "ProviderSummary",
    "RefreshResponse",
    "SwitchProviderRequest",
    "UserProfile",
]
