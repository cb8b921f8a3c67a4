"""Authentication API Models

Purpose: Request/response models for the agent authentication endpoints

Key Components:
- LoginRequest: Credential input
- LoginResponse: Login outcome, including the classified failure when it fails
- UserProfile: Public agent information
- SwitchProviderRequest / ProviderSummary: Provider management
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agent_auth.domain.models.auth import AgentUser, AuthType
from agent_auth.domain.models.errors import ErrorHandlingResult


class LoginRequest(BaseModel):
    """Request model for agent login

    Credential rules are enforced by the active provider, not here, so that
    rejections flow through the same classification path as backend failures.
    """

    email: str = Field(
        ...,
        min_length=1,
        max_length=254,
        description="Agent login identifier",
        examples=["agent@example.com"],
    )
    password: str = Field(..., min_length=1, max_length=256, description="Agent secret")


class UserProfile(BaseModel):
    """Public agent profile"""

    user_id: str = Field(..., description="Backend user identifier")
    email: str = Field(..., description="Login identifier")
    name: str = Field(..., description="Display name")
    role: str = Field(..., description="Application role", examples=["agent", "supervisor"])
    provider: Optional[str] = Field(None, description="Provider that authenticated the agent")

    @classmethod
    def from_user(cls, user: AgentUser) -> "UserProfile":
        return cls(
            user_id=user.user_id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            provider=user.profile.get("provider"),
        )


class ErrorAlert(BaseModel):
    """Decision offered to the agent for an unrecovered failure"""

    title: str
    message: str
    buttons: List[str]


class ErrorSummary(BaseModel):
    """Classified failure as exposed over the API"""

    code: str
    category: str
    severity: str
    user_message: str
    retryable: bool
    recoverable: bool
    suggested_actions: List[str] = Field(default_factory=list)
    recovered: bool = False
    user_action: str = "cancel"
    suspicious: bool = False
    alert: Optional[ErrorAlert] = None

    @classmethod
    def from_handling(cls, handling: ErrorHandlingResult) -> "ErrorSummary":
        classified = handling.error
        alert = None
        if handling.alert is not None:
            alert = ErrorAlert(
                title=handling.alert.title,
                message=handling.alert.message,
                buttons=[button.value for button in handling.alert.buttons],
            )
        return cls(
            code=classified.code if classified else "UNKNOWN_ERROR",
            category=classified.category.value if classified else "system",
            severity=classified.severity.value if classified else "medium",
            user_message=handling.message or "",
            retryable=classified.retryable if classified else False,
            recoverable=classified.recoverable if classified else False,
            suggested_actions=list(classified.suggested_actions) if classified else [],
            recovered=handling.recovered,
            user_action=handling.user_action.value,
            suspicious=handling.suspicious,
            alert=alert,
        )


class LoginResponse(BaseModel):
    """Response model for login"""

    success: bool
    message: str
    provider: Optional[str] = None
    duration_ms: float = 0.0
    user: Optional[UserProfile] = None
    error: Optional[ErrorSummary] = None


class LogoutResponse(BaseModel):
    """Response model for logout"""

    message: str = Field(default="Logged out successfully")
    provider: Optional[str] = None


class RefreshResponse(BaseModel):
    """Response model for token refresh"""

    refreshed: bool
    provider: Optional[str] = None


class SwitchProviderRequest(BaseModel):
    """Request model for a runtime provider switch"""

    provider: AuthType = Field(..., description="Target provider type", examples=["simulated"])


class ProviderSummary(BaseModel):
    """Provider overview"""

    available: List[str]
    cached: List[str]
    current: Optional[str] = None
    capabilities: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
