"""Recovery orchestration and default remediation strategies."""

from .orchestrator import RecoveryOrchestrator
from .strategies import default_strategies, service_restart_strategy

__all__ = [
    "RecoveryOrchestrator",
    "default_strategies",
    "service_restart_strategy",
]
