"""Core service for the dashboard authentication flow.

Owns the session token: stores it on login, validates it against the
backend, and clears it on logout. All calls go through the ApiClient.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from dashlink.core.services.api_client import ApiClient
from dashlink.domain.models.api import ResponseEnvelope

logger = logging.getLogger(__name__)

CURRENT_USER_PATH = "/auth/me"
AUTH_URL_PATH = "/auth/discord"
AUTH_CALLBACK_PATH = "/auth/discord/callback"
DEV_LOGIN_PATH = "/auth/dev-login"


class AuthService:
    """Login, logout and session validation."""

    def __init__(self, api_client: ApiClient):
        self.api_client = api_client
        self.current_user: Optional[Dict[str, Any]] = None
        self._login_task: Optional["asyncio.Future[ResponseEnvelope[Any]]"] = None
        self._login_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None and self.api_client.is_authenticated()

    async def login(self, token: str) -> ResponseEnvelope[Any]:
        """Stores the token and loads the current user.

        Concurrent logins with the same token share one attempt. On failure
        the session is cleared and the failed envelope is returned.
        """
        if self._login_task is None or self._login_task.done() or self._login_token != token:
            self._login_token = token
            self._login_task = asyncio.ensure_future(self._login(token))
        return await asyncio.shield(self._login_task)

    async def _login(self, token: str) -> ResponseEnvelope[Any]:
        self.api_client.set_auth_token(token)
        envelope = await self.api_client.get(CURRENT_USER_PATH)
        if envelope.success and envelope.data:
            self.current_user = envelope.data
            logger.info(f"Logged in as {self._username()}")
            return envelope

        error = envelope.error or "Failed to get user data"
        logger.warning(f"Login failed: {error}")
        self.logout()
        return ResponseEnvelope.fail(error)

    async def check_auth(self) -> bool:
        """Validates a stored token; clears it when the backend rejects it."""
        if not self.api_client.get_auth_token():
            return False
        envelope = await self.api_client.get(CURRENT_USER_PATH)
        if envelope.success and envelope.data:
            self.current_user = envelope.data
            return True
        logger.info(f"Stored session is no longer valid: {envelope.error}")
        self.logout()
        return False

    def logout(self) -> None:
        self.api_client.logout()
        self.current_user = None

    async def get_auth_url(self) -> ResponseEnvelope[Any]:
        """OAuth2 authorization URL, ``{'url': ...}``."""
        return await self.api_client.get(AUTH_URL_PATH)

    async def handle_auth_callback(self, code: str) -> ResponseEnvelope[Any]:
        """Exchanges an OAuth2 code for a session token."""
        envelope = await self.api_client.post(AUTH_CALLBACK_PATH, {"code": code})
        return self._adopt_session(envelope)

    async def dev_login(self) -> ResponseEnvelope[Any]:
        """Development-only login that needs no OAuth2 round trip."""
        envelope = await self.api_client.post(DEV_LOGIN_PATH, {})
        return self._adopt_session(envelope)

    def _adopt_session(self, envelope: ResponseEnvelope[Any]) -> ResponseEnvelope[Any]:
        """Stores the token of a ``{token, user}`` response."""
        data = envelope.data if isinstance(envelope.data, dict) else {}
        token = data.get("token")
        if envelope.success and token:
            self.api_client.set_auth_token(str(token))
            self.current_user = data.get("user")
            logger.info(f"Session established for {self._username()}")
        elif envelope.success:
            return ResponseEnvelope.fail("Login response did not include a token")
        return envelope

    def _username(self) -> str:
        if isinstance(self.current_user, dict):
            return str(self.current_user.get("username") or self.current_user.get("id") or "unknown user")
        return "unknown user"
