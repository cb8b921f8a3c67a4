"""Authentication error types.

Two families:
- AuthProviderError: raised by the provider layer and the factory, always
  identifying the provider type it originated from.
- BackendAuthError: tagged failures raised by backend adapters. The tag is
  what the error classifier looks up first.
"""

from enum import Enum
from typing import Any, Dict, Optional

from agent_auth.domain.models.auth import AuthType


class AuthProviderErrorType(str, Enum):
    """Provider layer failure kinds"""
    INITIALIZATION_FAILED = "initialization_failed"
    LOGIN_FAILED = "login_failed"
    LOGOUT_FAILED = "logout_failed"
    SESSION_INVALID = "session_invalid"
    NETWORK_ERROR = "network_error"
    CONFIGURATION_ERROR = "configuration_error"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    SWITCH_FAILED = "switch_failed"
    HEALTH_CHECK_FAILED = "health_check_failed"
    UNKNOWN_ERROR = "unknown_error"


class AuthProviderError(Exception):
    """Provider layer failure.

    Attributes:
        error_type: Failure kind
        provider: Provider type the failure originated from
        original_error: Wrapped cause, if any
        metadata: Extra diagnostic data
    """

    def __init__(
        self,
        error_type: AuthProviderErrorType,
        message: str,
        provider: AuthType,
        original_error: Optional[BaseException] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.provider = provider
        self.original_error = original_error
        self.metadata = metadata or {}
        if original_error is not None and self.__cause__ is None:
            self.__cause__ = original_error

    def __repr__(self) -> str:
        return (
            f"AuthProviderError(type={self.error_type.value}, "
            f"provider={self.provider.value}, message={self.message!r})"
        )


class BackendErrorType(str, Enum):
    """Known production backend failure modes"""
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    OFFLINE_LOGIN_ATTEMPT = "OFFLINE_LOGIN_ATTEMPT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    DECRYPTION_ERROR = "DECRYPTION_ERROR"
    DOMAIN_NOT_ALLOWED = "DOMAIN_NOT_ALLOWED"
    HTTPS_REQUIRED = "HTTPS_REQUIRED"


class BackendAuthError(Exception):
    """Tagged failure raised by a backend adapter."""

    def __init__(
        self,
        error_type: BackendErrorType,
        message: str,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.original_error = original_error
        if original_error is not None and self.__cause__ is None:
            self.__cause__ = original_error

    def __repr__(self) -> str:
        return f"BackendAuthError(type={self.error_type.value}, message={self.message!r})"
