"""Classification rules.

Backend-tagged failures map through an exhaustive table; untagged failures
are matched by message keywords in order; anything else uses the fallback.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from agent_auth.core.auth.errors import BackendErrorType
from agent_auth.domain.models.errors import ErrorCategory, ErrorSeverity


@dataclass(frozen=True)
class ErrorRule:
    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    recoverable: bool
    retryable: bool
    suggested_actions: List[str] = field(default_factory=list)


BACKEND_ERROR_RULES: Dict[BackendErrorType, ErrorRule] = {
    BackendErrorType.OFFLINE_LOGIN_ATTEMPT: ErrorRule(
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        code="BACKEND_OFFLINE_LOGIN",
        message="Offline login attempt",
        user_message="An internet connection is required to sign in",
        recoverable=False,
        retryable=True,
        suggested_actions=[
            "Check your internet connection",
            "Try connecting to a WiFi network",
            "Make sure mobile data is enabled",
        ],
    ),
    BackendErrorType.INVALID_CREDENTIALS: ErrorRule(
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.MEDIUM,
        code="BACKEND_INVALID_CREDENTIALS",
        message="Invalid credentials",
        user_message="Incorrect email or password",
        recoverable=False,
        retryable=True,
        suggested_actions=[
            "Check your email and password",
            "Make sure Caps Lock is off",
            "Contact your supervisor if you forgot your password",
        ],
    ),
    BackendErrorType.NETWORK_ERROR: ErrorRule(
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.HIGH,
        code="BACKEND_NETWORK_ERROR",
        message="Network error",
        user_message="Could not connect to the server",
        recoverable=True,
        retryable=True,
        suggested_actions=[
            "Check your internet connection",
            "Try again in a few moments",
            "Contact the administrator if the problem persists",
        ],
    ),
    BackendErrorType.SERVER_ERROR: ErrorRule(
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.HIGH,
        code="BACKEND_SERVER_ERROR",
        message="Server error",
        user_message="The authentication server reported an error",
        recoverable=False,
        retryable=True,
        suggested_actions=[
            "Try again in a few moments",
            "The problem may be temporary",
            "Contact the administrator if it persists",
        ],
    ),
    BackendErrorType.DECRYPTION_ERROR: ErrorRule(
        category=ErrorCategory.SECURITY,
        severity=ErrorSeverity.CRITICAL,
        code="BACKEND_DECRYPTION_ERROR",
        message="Decryption error",
        user_message="A security error occurred during authentication",
        recoverable=False,
        retryable=False,
        suggested_actions=[
            "Close and reopen the application",
            "Contact the administrator immediately",
            "Do not share this information",
        ],
    ),
    BackendErrorType.DOMAIN_NOT_ALLOWED: ErrorRule(
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        code="BACKEND_DOMAIN_NOT_ALLOWED",
        message="Domain not allowed",
        user_message="Server configuration error",
        recoverable=False,
        retryable=False,
        suggested_actions=[
            "Contact the system administrator",
            "Check the application configuration",
        ],
    ),
    BackendErrorType.HTTPS_REQUIRED: ErrorRule(
        category=ErrorCategory.SECURITY,
        severity=ErrorSeverity.CRITICAL,
        code="BACKEND_HTTPS_REQUIRED",
        message="HTTPS required",
        user_message="A secure connection is required",
        recoverable=False,
        retryable=False,
        suggested_actions=[
            "Contact the system administrator",
            "Avoid unsecured public networks",
        ],
    ),
}

KEYWORD_RULES: List[Tuple[Tuple[str, ...], ErrorRule]] = [
    (
        ("network", "timeout", "connection"),
        ErrorRule(
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM,
            code="NETWORK_ERROR",
            message="Network error",
            user_message="Connection problem. Check your network and try again",
            recoverable=True,
            retryable=True,
            suggested_actions=[
                "Check your internet connection",
                "Try again in a few moments",
            ],
        ),
    ),
    (
        ("storage", "disk", "quota"),
        ErrorRule(
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code="STORAGE_ERROR",
            message="Storage error",
            user_message="Local storage problem",
            recoverable=True,
            retryable=False,
            suggested_actions=[
                "Free up space on the device",
                "Restart the application",
            ],
        ),
    ),
    (
        ("validation", "invalid", "format"),
        ErrorRule(
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            code="VALIDATION_ERROR",
            message="Validation error",
            user_message="The provided data is not valid",
            recoverable=False,
            retryable=True,
            suggested_actions=[
                "Check the entered data",
                "Correct the highlighted fields",
            ],
        ),
    ),
    (
        ("permission", "unauthorized", "forbidden"),
        ErrorRule(
            category=ErrorCategory.SECURITY,
            severity=ErrorSeverity.HIGH,
            code="PERMISSION_ERROR",
            message="Permission error",
            user_message="You do not have permission to perform this action",
            recoverable=False,
            retryable=False,
            suggested_actions=[
                "Contact your supervisor",
                "Sign in again",
            ],
        ),
    ),
]

FALLBACK_RULE = ErrorRule(
    category=ErrorCategory.SYSTEM,
    severity=ErrorSeverity.MEDIUM,
    code="UNKNOWN_ERROR",
    message="Unexpected error",
    user_message="An unexpected error occurred",
    recoverable=True,
    retryable=True,
    suggested_actions=[
        "Try again",
        "Restart the application if it persists",
        "Contact technical support",
    ],
)

ALERT_TITLES: Dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: "Connection Error",
    ErrorCategory.AUTHENTICATION: "Authentication Error",
    ErrorCategory.STORAGE: "Storage Error",
    ErrorCategory.VALIDATION: "Validation Error",
    ErrorCategory.SECURITY: "Security Error",
    ErrorCategory.CONFIGURATION: "Configuration Error",
    ErrorCategory.SYSTEM: "System Error",
    ErrorCategory.USER_INPUT: "Input Error",
}
CRITICAL_ALERT_TITLE = "Critical Error"
