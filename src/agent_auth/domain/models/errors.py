"""Error classification models

Structured records produced by the error classifier and the options/results
that drive ``ErrorClassifier.handle_error``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from agent_auth.domain.models.auth import to_json_compatible


class ErrorCategory(str, Enum):
    """Error categories"""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    STORAGE = "storage"
    VALIDATION = "validation"
    SECURITY = "security"
    CONFIGURATION = "configuration"
    SYSTEM = "system"
    USER_INPUT = "user_input"


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UserAction(str, Enum):
    """Resolution of a handled error"""
    RETRY = "retry"
    CANCEL = "cancel"
    IGNORE = "ignore"
    RECOVERED = "recovered"


@dataclass
class ErrorContext:
    """Where a failure happened

    ``timestamp`` is filled in by the classifier when left empty.
    """
    operation: str = "unknown"
    component: str = "unknown"
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    additional_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "component": self.component,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "timestamp": to_json_compatible(self.timestamp),
            "additional_data": self.additional_data,
        }


@dataclass
class ClassifiedError:
    """Structured diagnosis of a raw failure

    Attributes:
        id: Unique error identifier
        category: Error category
        severity: Error severity
        code: Stable error code (e.g. BACKEND_NETWORK_ERROR)
        message: Short English summary
        technical_message: Raw failure message
        user_message: Message safe to show to the agent
        recoverable: Automatic recovery may be attempted
        retryable: The failed operation may be retried as-is
        suggested_actions: Ordered remediation hints
        context: Operation context
        timestamp: Classification time
        origin_error: The raw failure
    """
    id: str
    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    technical_message: str
    user_message: str
    recoverable: bool
    retryable: bool
    suggested_actions: list[str]
    context: ErrorContext
    timestamp: datetime
    origin_error: Optional[BaseException] = None
    stack_trace: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (origin error omitted)"""
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "technical_message": self.technical_message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "suggested_actions": list(self.suggested_actions),
            "context": self.context.to_dict(),
            "timestamp": to_json_compatible(self.timestamp),
        }


@dataclass
class UserAlert:
    """Decision presented to the agent"""
    title: str
    message: str
    buttons: list[UserAction]


@dataclass
class ErrorHandlingOptions:
    """Per-call switches for ``handle_error``

    ``show_user_alert`` and ``allow_retry`` default to ``None`` which means
    "decide from policy": alerts follow the classifier's alert operations,
    retry follows the classification's retryable flag.
    """
    show_user_alert: Optional[bool] = None
    log_error: bool = True
    report_suspicious: bool = False
    attempt_recovery: bool = True
    allow_retry: Optional[bool] = None
    custom_message: Optional[str] = None


@dataclass
class ErrorHandlingResult:
    """Outcome of ``handle_error``"""
    handled: bool
    recovered: bool
    user_action: UserAction
    message: Optional[str] = None
    suspicious: bool = False
    alert: Optional[UserAlert] = None
    error: Optional[ClassifiedError] = None
