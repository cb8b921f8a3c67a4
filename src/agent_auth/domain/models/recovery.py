"""Recovery models

Strategy definitions, per-strategy attempt state and recorded outcomes used
by the recovery orchestrator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from agent_auth.domain.models.auth import to_json_compatible


class RecoveryKind(str, Enum):
    """Remediation kinds"""
    NETWORK_RECONNECTION = "network_reconnection"
    STORAGE_CLEANUP = "storage_cleanup"
    SESSION_RESTORATION = "session_restoration"
    TOKEN_REFRESH = "token_refresh"
    DATA_RECOVERY = "data_recovery"
    CACHE_CLEAR = "cache_clear"
    SERVICE_RESTART = "service_restart"


@dataclass
class RecoveryResult:
    """Outcome of one strategy execution"""
    success: bool
    kind: RecoveryKind
    message: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "timestamp": to_json_compatible(self.timestamp),
        }


@dataclass
class RecoveryStrategy:
    """Prioritized, rate-limited remediation routine

    Attributes:
        kind: Remediation kind (one registered strategy per kind)
        priority: Higher runs first
        condition: Async predicate deciding whether the strategy applies now
        execute: Async routine performing the remediation
        max_attempts: Consecutive failures allowed before the strategy is skipped
        cooldown: Minimum time between two attempts
    """
    kind: RecoveryKind
    priority: int
    condition: Callable[[], Awaitable[bool]]
    execute: Callable[[], Awaitable[RecoveryResult]]
    max_attempts: int = 1
    cooldown: timedelta = timedelta(0)


@dataclass
class RecoveryAttemptState:
    """Attempt counters for one strategy kind"""
    attempts: int = 0
    last_attempt: Optional[datetime] = None
