"""HTTP adapter for the production identity service.

Endpoints (relative to ``base_url``):
- POST /auth/login    {"username", "password"} -> token response
- POST /auth/refresh  {"refresh_token"}        -> token response
- POST /auth/logout   (Bearer access token)
- GET  /health

Token response: {"access_token", "refresh_token"?, "session_id"?}. User
claims (sub, email, names, last_names, roles, exp) are read from the access
token with python-jose.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from jose import JWTError, jwt

from agent_auth.core.auth.backend import BackendAdapter, BackendSession
from agent_auth.core.auth.configuration import ProductionAuthConfig
from agent_auth.core.auth.errors import BackendAuthError, BackendErrorType
from agent_auth.domain.models.auth import utc_now
from agent_auth.infrastructure.network.monitor import NetworkMonitor
from agent_auth.infrastructure.session.store import SessionStore

logger = logging.getLogger(__name__)

SESSION_KEY = "production:current"
DEFAULT_SESSION_TTL = timedelta(hours=24)


class HttpIdentityAdapter(BackendAdapter):
    """httpx client for the production identity service.

    Failures are raised as ``BackendAuthError`` tagged with the failure
    mode. With offline mode enabled the last session is persisted in the
    session store and keeps the agent signed in while offline.
    """

    def __init__(
        self,
        config: ProductionAuthConfig,
        session_store: Optional[SessionStore] = None,
        network_monitor: Optional[NetworkMonitor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.session_store = session_store
        self.network_monitor = network_monitor
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._session: Optional[BackendSession] = None

    async def initialize(self) -> None:
        self._validate_base_url()
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        if self.config.enable_offline_mode and self.session_store is not None:
            stored = await self.session_store.get(SESSION_KEY)
            if stored:
                try:
                    self._session = BackendSession.model_validate(stored)
                    logger.info(f"Restored persisted session for {self._session.email}")
                except ValueError as e:
                    logger.warning(f"Discarding unreadable persisted session: {e}")
                    await self.session_store.delete(SESSION_KEY)

    async def login(self, identifier: str, secret: str) -> BackendSession:
        if self.network_monitor is not None and not self.network_monitor.is_online():
            raise BackendAuthError(
                BackendErrorType.OFFLINE_LOGIN_ATTEMPT,
                "Login requires a network connection",
            )

        response = await self._request(
            "POST", "/auth/login", json={"username": identifier, "password": secret}
        )
        if response.status_code in (401, 403):
            raise BackendAuthError(
                BackendErrorType.INVALID_CREDENTIALS,
                "Invalid credentials",
            )
        self._raise_for_status(response, "Login")

        session = self._session_from_tokens(response.json(), fallback_email=identifier)
        self._session = session
        await self._persist(session)
        logger.info(f"Identity service login succeeded for {session.email}")
        return session

    async def logout(self) -> None:
        session = self._session
        self._session = None
        if self.session_store is not None:
            await self.session_store.delete(SESSION_KEY)
        if session is None:
            return

        response = await self._request(
            "POST",
            "/auth/logout",
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
        self._raise_for_status(response, "Logout")

    async def refresh_token(self) -> bool:
        if self._session is None or not self._session.refresh_token:
            return False
        try:
            response = await self._request(
                "POST", "/auth/refresh", json={"refresh_token": self._session.refresh_token}
            )
            if response.status_code != 200:
                logger.warning(f"Token refresh rejected: {response.status_code}")
                return False
            tokens = response.json()
            tokens.setdefault("refresh_token", self._session.refresh_token)
            tokens.setdefault("session_id", self._session.session_id)
            session = self._session_from_tokens(tokens, fallback_email=self._session.email)
        except BackendAuthError as e:
            logger.warning(f"Token refresh failed: {e}")
            return False

        self._session = session
        await self._persist(session)
        return True

    async def is_authenticated(self) -> bool:
        if self._session is None:
            return False
        if self._session.expires_at is None or self._session.expires_at > utc_now():
            return True
        offline = self.network_monitor is not None and not self.network_monitor.is_online()
        return offline and self.config.enable_offline_mode

    async def get_current_session(self) -> Optional[BackendSession]:
        return self._session

    async def health(self) -> List[str]:
        if self._client is None:
            return ["HTTP client not initialized"]
        if self.network_monitor is not None and not self.network_monitor.is_online():
            return []
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as e:
            return [f"Identity service unreachable: {e}"]
        if response.status_code != 200:
            return [f"Identity service unhealthy: HTTP {response.status_code}"]
        return []

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Internals

    def _validate_base_url(self) -> None:
        parsed = urlparse(self.config.base_url)
        if self.config.require_https and parsed.scheme != "https":
            raise BackendAuthError(
                BackendErrorType.HTTPS_REQUIRED,
                f"HTTPS is required for the identity service: {self.config.base_url}",
            )
        host = (parsed.hostname or "").lower()
        allowed = [domain.lower() for domain in self.config.allowed_domains]
        if allowed and not any(host == d or host.endswith("." + d) for d in allowed):
            raise BackendAuthError(
                BackendErrorType.DOMAIN_NOT_ALLOWED,
                f"Domain not allowed: {host}",
            )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is None:
            raise BackendAuthError(BackendErrorType.SERVER_ERROR, "Adapter not initialized")
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise BackendAuthError(
                BackendErrorType.NETWORK_ERROR,
                f"Network error contacting identity service: {e}",
                original_error=e,
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.status_code >= 500:
            raise BackendAuthError(
                BackendErrorType.SERVER_ERROR,
                f"{operation} failed: identity service returned {response.status_code}",
            )
        if response.status_code >= 400:
            raise BackendAuthError(
                BackendErrorType.SERVER_ERROR,
                f"{operation} rejected: {response.status_code}",
            )

    def _decode_claims(self, token: str) -> Dict[str, Any]:
        try:
            if self.config.token_secret:
                return jwt.decode(
                    token,
                    self.config.token_secret,
                    algorithms=self.config.token_algorithms,
                    # expiry is tracked on the session, see is_authenticated
                    options={"verify_aud": False, "verify_exp": False},
                )
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            raise BackendAuthError(
                BackendErrorType.DECRYPTION_ERROR,
                f"Unable to decode access token: {e}",
                original_error=e,
            ) from e

    def _session_from_tokens(self, tokens: Dict[str, Any], fallback_email: str) -> BackendSession:
        access_token = tokens.get("access_token")
        if not access_token:
            raise BackendAuthError(BackendErrorType.SERVER_ERROR, "Token response without access_token")

        claims = self._decode_claims(access_token)
        expires_at = None
        if claims.get("exp") is not None:
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)

        return BackendSession(
            user_id=str(claims.get("sub", "")),
            email=claims.get("email", fallback_email),
            names=claims.get("names", ""),
            last_names=claims.get("last_names", ""),
            roles=list(claims.get("roles", [])),
            session_id=tokens.get("session_id"),
            access_token=access_token,
            refresh_token=tokens.get("refresh_token"),
            expires_at=expires_at,
        )

    async def _persist(self, session: BackendSession) -> None:
        if not self.config.enable_offline_mode or self.session_store is None:
            return
        ttl = DEFAULT_SESSION_TTL
        if session.expires_at is not None:
            ttl = max(session.expires_at - utc_now(), DEFAULT_SESSION_TTL)
        try:
            await self.session_store.set(SESSION_KEY, session.model_dump(mode="json"), ttl=ttl)
        except Exception as e:
            # The backend session stays valid; only offline reuse is lost
            logger.warning(f"Failed to persist session for offline use: {e}")
