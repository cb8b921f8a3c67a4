"""Provider Management Routes

Key Endpoints:
- GET /providers: Available, cached and current providers
- POST /providers/switch: Runtime provider switch
- GET /providers/current/debug: Debug snapshot of the current provider
- GET /providers/{provider_type}/health: Health check of a cached provider
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from agent_auth.api.dependencies import provider_http_error
from agent_auth.container import ServiceContainer, get_container
from agent_auth.core.auth.errors import AuthProviderError
from agent_auth.core.auth.provider import ProviderDebugInfo, ProviderHealthStatus
from agent_auth.domain.models import AuthType, ProviderSummary, SwitchProviderRequest

router = APIRouter(prefix="/api/v1/providers", tags=["providers"])
logger = logging.getLogger(__name__)


def _summary(container: ServiceContainer) -> ProviderSummary:
    factory = container.factory
    capabilities = {}
    for provider_type in factory.get_cached_providers():
        provider = factory.get_provider(provider_type)
        if provider is not None:
            capabilities[provider_type.value] = provider.get_capabilities().model_dump()
    return ProviderSummary(
        available=[t.value for t in factory.get_available_providers()],
        cached=[t.value for t in factory.get_cached_providers()],
        current=factory.current_type.value if factory.current_type else None,
        capabilities=capabilities,
    )


@router.get("", response_model=ProviderSummary)
async def list_providers(container: ServiceContainer = Depends(get_container)) -> ProviderSummary:
    return _summary(container)


@router.post("/switch", response_model=ProviderSummary)
async def switch_provider(
    request: SwitchProviderRequest,
    container: ServiceContainer = Depends(get_container),
) -> ProviderSummary:
    """Switch the active provider; the previous one stays active on failure"""
    try:
        await container.factory.switch_provider(request.provider)
    except AuthProviderError as e:
        logger.warning(f"Provider switch to {request.provider.value} rejected: {e}")
        raise provider_http_error(e) from e
    return _summary(container)


@router.get("/current/debug", response_model=ProviderDebugInfo)
async def current_provider_debug(
    container: ServiceContainer = Depends(get_container),
) -> ProviderDebugInfo:
    provider = container.factory.get_current_provider()
    if provider is None:
        raise HTTPException(status_code=404, detail="No active provider")
    return provider.get_debug_info()


@router.get("/{provider_type}/health", response_model=ProviderHealthStatus)
async def provider_health(
    provider_type: AuthType,
    container: ServiceContainer = Depends(get_container),
) -> ProviderHealthStatus:
    provider = container.factory.get_provider(provider_type)
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Provider not active: {provider_type.value}")
    return await provider.health_check()
