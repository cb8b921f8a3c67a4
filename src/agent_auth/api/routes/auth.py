"""Authentication Routes

Purpose: FastAPI routes for agent authentication through the active provider

Key Endpoints:
- POST /auth/login: Login; failures are classified and returned with the alert
- POST /auth/logout: Best-effort logout
- POST /auth/refresh: Token refresh
- GET /auth/me: Current agent profile
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from agent_auth.api.dependencies import get_active_provider
from agent_auth.container import ServiceContainer, get_container
from agent_auth.core.auth.provider import AuthProvider
from agent_auth.domain.models import (
    ErrorContext,
    ErrorSummary,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RefreshResponse,
    UserProfile,
)

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse, status_code=200)
async def login(
    request: LoginRequest,
    provider: AuthProvider = Depends(get_active_provider),
    container: ServiceContainer = Depends(get_container),
) -> LoginResponse:
    """Login through the active provider

    A failed login is still a 200 response; ``error`` carries the
    classification, the recovery outcome and the alert offered to the agent.
    """
    correlation_id = str(uuid.uuid4())
    result = await provider.login(request.email, request.password)

    if result.success and result.user_data is not None:
        logger.info(
            f"Login succeeded: {request.email} via {provider.type.value} "
            f"(correlation: {correlation_id})"
        )
        return LoginResponse(
            success=True,
            message=result.message,
            provider=provider.type.value,
            duration_ms=result.duration_ms,
            user=UserProfile.from_user(result.user_data),
        )

    handling = await container.classifier.handle_error(
        result.error or result.message,
        ErrorContext(
            operation="login",
            component=f"{provider.type.value}_provider",
            additional_data={"email": request.email, "correlation_id": correlation_id},
        ),
    )
    logger.info(
        f"Login failed: {request.email} via {provider.type.value} "
        f"action={handling.user_action.value} (correlation: {correlation_id})"
    )
    return LoginResponse(
        success=False,
        message=result.message,
        provider=provider.type.value,
        duration_ms=result.duration_ms,
        error=ErrorSummary.from_handling(handling),
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(provider: AuthProvider = Depends(get_active_provider)) -> LogoutResponse:
    """Logout; local session state is always cleared"""
    await provider.logout()
    return LogoutResponse(provider=provider.type.value)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(provider: AuthProvider = Depends(get_active_provider)) -> RefreshResponse:
    """Renew the session token when the provider supports it"""
    if not provider.get_capabilities().supports_token_refresh:
        return RefreshResponse(refreshed=False, provider=provider.type.value)
    refreshed = await provider.refresh_token()
    return RefreshResponse(refreshed=refreshed, provider=provider.type.value)


@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(
    provider: AuthProvider = Depends(get_active_provider),
) -> UserProfile:
    """Current agent profile"""
    user = await provider.get_current_user()
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Please log in to access this resource.",
        )
    return UserProfile.from_user(user)
