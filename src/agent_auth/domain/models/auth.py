"""Authentication Data Models

Purpose: Define data structures for agents, sessions and login outcomes

Key Components:
- AuthType: Identity backend kinds served by the provider layer
- AgentUser: Authenticated field agent profile
- SessionData: Locally persisted session with explicit expiry
- LoginResult: Uniform login outcome returned by every provider
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def parse_utc_timestamp(timestamp_str: str) -> datetime:
    """Parse UTC timestamp string to datetime object"""
    if isinstance(timestamp_str, datetime):
        return timestamp_str
    return datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))


def to_json_compatible(value):
    """Convert datetime to JSON-compatible ISO format string"""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class AuthType(str, Enum):
    """Identity backend kinds"""
    PRODUCTION = "production"
    SIMULATED = "simulated"


class UserRole(str, Enum):
    """Application roles for field staff"""
    AGENT = "agent"
    SUPERVISOR = "supervisor"


@dataclass
class AgentUser:
    """Authenticated field agent

    Attributes:
        user_id: Backend user identifier
        email: Login identifier
        name: Display name
        role: Application role derived from backend roles
        profile: Provider-specific profile data
    """
    user_id: str
    email: str
    name: str
    role: UserRole = UserRole.AGENT
    profile: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "profile": self.profile,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AgentUser':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            user_id=data["user_id"],
            email=data["email"],
            name=data.get("name", data["email"]),
            role=UserRole(data.get("role", UserRole.AGENT.value)),
            profile=data.get("profile") or {},
        )


@dataclass
class SessionData:
    """Locally persisted session

    Attributes:
        session_id: Unique session identifier
        user: Session owner
        created_at: Session creation timestamp
        last_activity: Last time the session was used
        expires_at: Hard expiry; the session is invalid from this instant on
    """
    session_id: str
    user: AgentUser
    created_at: datetime
    last_activity: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "session_id": self.session_id,
            "user": self.user.to_dict(),
            "created_at": to_json_compatible(self.created_at),
            "last_activity": to_json_compatible(self.last_activity),
            "expires_at": to_json_compatible(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SessionData':
        """Create from dictionary (JSON deserialization)"""
        return cls(
            session_id=data["session_id"],
            user=AgentUser.from_dict(data["user"]),
            created_at=parse_utc_timestamp(data["created_at"]),
            last_activity=parse_utc_timestamp(data["last_activity"]),
            expires_at=parse_utc_timestamp(data["expires_at"]),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the session has passed its expiry"""
        return (now or utc_now()) >= self.expires_at


@dataclass
class LoginResult:
    """Outcome of a provider login

    Failed logins carry the failure in ``error`` instead of raising.
    """
    success: bool
    message: str
    provider: Optional[AuthType] = None
    user_data: Optional[AgentUser] = None
    error: Optional[BaseException] = None
    duration_ms: float = 0.0
