"""Audit and suspicious-activity sinks.

The error classifier reports through these protocols. The default
implementations write to dedicated stdlib loggers so a deployment can route
them separately (``agent_auth.audit`` / ``agent_auth.security``).
"""

import logging
from typing import Any, Dict, Optional, Protocol

from agent_auth.domain.models.errors import ErrorCategory, ErrorSeverity

audit_logger = logging.getLogger("agent_auth.audit")
security_logger = logging.getLogger("agent_auth.security")

_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class AuditLogger(Protocol):
    async def log_event(
        self,
        event_type: str,
        severity: ErrorSeverity,
        message: str,
        metadata: Dict[str, Any],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None: ...


class SuspiciousActivityReporter(Protocol):
    async def record(
        self,
        category: ErrorCategory,
        recoverable: bool,
        metadata: Dict[str, Any],
    ) -> None: ...


class LoggingAuditLogger:
    """Audit sink backed by the ``agent_auth.audit`` logger"""

    async def log_event(
        self,
        event_type: str,
        severity: ErrorSeverity,
        message: str,
        metadata: Dict[str, Any],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        audit_logger.log(
            _LEVELS.get(severity, logging.WARNING),
            f"[{event_type}] {message}",
            extra={
                "event_type": event_type,
                "severity": severity.value,
                "user_id": user_id,
                "session_id": session_id,
                "audit_metadata": metadata,
            },
        )


class LoggingSuspiciousActivityReporter:
    """Suspicious-activity sink backed by the ``agent_auth.security`` logger"""

    async def record(
        self,
        category: ErrorCategory,
        recoverable: bool,
        metadata: Dict[str, Any],
    ) -> None:
        security_logger.warning(
            f"Suspicious activity: category={category.value} code={metadata.get('code')}",
            extra={
                "category": category.value,
                "recoverable": recoverable,
                "security_metadata": metadata,
            },
        )
