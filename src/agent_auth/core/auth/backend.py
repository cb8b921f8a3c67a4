"""Backend adapter contract.

A backend adapter performs the real identity-service calls for the
production provider. Adapters report known failure modes as
``BackendAuthError`` so the classifier can map them without guessing.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class BackendSession(BaseModel):
    """Session returned by the identity service.

    Attributes:
        user_id: Backend user identifier
        email: Login identifier
        names: Given names
        last_names: Family names
        roles: Raw backend role strings
        session_id: Backend session identifier
        access_token: Bearer token for subsequent calls
        refresh_token: Token used to renew ``access_token``
        expires_at: Access token expiry
    """
    user_id: str
    email: str
    names: str = ""
    last_names: str = ""
    roles: List[str] = Field(default_factory=list)
    session_id: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class BackendAdapter(ABC):
    """Client for one identity backend."""

    @abstractmethod
    async def initialize(self) -> None:
        """Validate configuration and restore any persisted session.

        Raises:
            BackendAuthError: HTTPS_REQUIRED or DOMAIN_NOT_ALLOWED on bad configuration
        """

    @abstractmethod
    async def login(self, identifier: str, secret: str) -> BackendSession:
        """Authenticate against the backend.

        Raises:
            BackendAuthError: Tagged with the failure mode
        """

    @abstractmethod
    async def logout(self) -> None:
        """Invalidate the backend session."""

    @abstractmethod
    async def refresh_token(self) -> bool:
        """Renew the access token. Returns False when no session can be renewed."""

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """Whether a usable session exists."""

    @abstractmethod
    async def get_current_session(self) -> Optional[BackendSession]:
        """Current session, if any."""

    @abstractmethod
    async def health(self) -> List[str]:
        """Return backend issues; an empty list means healthy."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
