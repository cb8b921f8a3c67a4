"""Authentication provider abstraction layer.

Supports interchangeable identity backends via pluggable providers:
- production: Network-bound production identity service
- simulated: Local simulated backend (development, training, fallback)
"""

from .configuration import AuthConfiguration, ProductionAuthConfig, SimulatedAuthConfig
from .errors import AuthProviderError, AuthProviderErrorType, BackendAuthError, BackendErrorType
from .factory import ProviderCleanupResult, ProviderFactory, ProviderSwitchEvent, SwitchReason
from .provider import AuthProvider, ProviderCapabilities, ProviderHealthStatus

__all__ = [
    "AuthConfiguration",
    "AuthProvider",
    "AuthProviderError",
    "AuthProviderErrorType",
    "BackendAuthError",
    "BackendErrorType",
    "ProductionAuthConfig",
    "ProviderCapabilities",
    "ProviderCleanupResult",
    "ProviderFactory",
    "ProviderHealthStatus",
    "ProviderSwitchEvent",
    "SimulatedAuthConfig",
    "SwitchReason",
]
