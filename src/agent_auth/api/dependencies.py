"""Shared route dependencies"""

import logging

from fastapi import Depends, HTTPException

from agent_auth.container import ServiceContainer, get_container
from agent_auth.core.auth.errors import AuthProviderError, AuthProviderErrorType
from agent_auth.core.auth.provider import AuthProvider

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR_TYPE = {
    AuthProviderErrorType.CONFIGURATION_ERROR: 409,
    AuthProviderErrorType.SWITCH_FAILED: 409,
    AuthProviderErrorType.INITIALIZATION_FAILED: 503,
    AuthProviderErrorType.PROVIDER_UNAVAILABLE: 503,
}


def provider_http_error(error: AuthProviderError) -> HTTPException:
    """Map a provider layer failure to an HTTP error"""
    status_code = _STATUS_BY_ERROR_TYPE.get(error.error_type, 500)
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.error_type.value,
            "provider": error.provider.value,
            "message": error.message,
        },
    )


async def get_active_provider(
    container: ServiceContainer = Depends(get_container),
) -> AuthProvider:
    """Current provider, created (or replaced by the fallback) on demand"""
    try:
        return await container.factory.ensure_active_provider()
    except AuthProviderError as e:
        logger.error(f"No active provider: {e}")
        raise provider_http_error(e) from e
