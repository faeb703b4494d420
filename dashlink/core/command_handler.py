"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the ApiClient, the AuthService and the DashboardLogService,
reporting results through the UserInterface.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from dashlink.core.services.api_client import ApiClient
from dashlink.core.services.auth_service import AuthService
from dashlink.core.services.dashboard_log_service import DashboardLogService
from dashlink.domain.interfaces.user_interface import UserInterface
from dashlink.domain.models.api import RequestOptions, ResponseEnvelope

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the client services."""

    def __init__(
        self,
        api_client: ApiClient,
        auth_service: AuthService,
        ui: UserInterface,
        log_service: Optional[DashboardLogService] = None,
    ):
        self.api_client = api_client
        self.auth_service = auth_service
        self.ui = ui
        self.log_service = log_service or DashboardLogService(api_client)

    async def handle_status(self) -> bool:
        """Handles the 'status' command."""
        try:
            base_url = await self.api_client.initialize()
            online = await self.api_client.health_check()
        except Exception as e:
            logger.error(f"Status command failed: {e}", exc_info=True)
            self.ui.display_error(f"Status command failed: {e}")
            return False
        if online:
            self.ui.display_info(f"Backend is online at {base_url}")
        else:
            self.ui.display_error(f"Backend at {base_url} is not reachable")
        return online

    async def handle_resolve(self) -> None:
        """Handles the 'resolve' command: shows which backend will be used."""
        try:
            base_url = await self.api_client.initialize()
        except Exception as e:
            logger.error(f"Resolve command failed: {e}", exc_info=True)
            self.ui.display_error(f"Resolve command failed: {e}")
            return
        self.ui.display_info(f"Using API server at {base_url}")
        self.ui.display_info(f"WebSocket URL: {self.api_client.get_websocket_url()}")

    async def handle_request(
        self,
        method: str,
        path: str,
        body: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> None:
        """Handles the get/post/put/delete commands."""
        logger.info(f"Handling '{method}' command for path: {path}")
        try:
            envelope = await self.api_client.request(method, path, body, options)
        except Exception as e:
            logger.error(f"Request command failed: {e}", exc_info=True)
            self.ui.display_error(f"Request command failed: {e}")
            return
        self.ui.display_envelope(envelope, title=f"{method.upper()} {path}")

    async def handle_login(self, token: str) -> None:
        """Handles the 'login' command."""
        envelope = await self.auth_service.login(token)
        if envelope.success:
            user = envelope.data if isinstance(envelope.data, dict) else {}
            self.ui.display_info(f"Welcome back, {user.get('username', 'user')}!")
        else:
            self.ui.display_error(f"Login failed: {envelope.error}")

    async def handle_whoami(self) -> None:
        """Handles the 'whoami' command."""
        if await self.auth_service.check_auth():
            self.ui.display_envelope(
                ResponseEnvelope.ok(self.auth_service.current_user), title="Current user"
            )
        else:
            self.ui.display_warning("Not logged in.")

    def handle_logout(self) -> None:
        """Handles the 'logout' command."""
        self.auth_service.logout()
        self.ui.display_info("Logged out successfully")

    async def handle_logs(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
        action_type: Optional[str] = None,
    ) -> None:
        """Handles the 'logs' command."""
        envelope = await self.log_service.get_logs(
            page=page, limit=limit, user_id=user_id, action_type=action_type
        )
        self.ui.display_envelope(envelope, title="Dashboard logs")

    async def handle_delete_logs(self, ids: List[Any]) -> None:
        """Handles the 'delete-logs' command."""
        envelope = await self.log_service.delete_logs(ids)
        if envelope.success:
            self.ui.display_info(f"Deleted {len(ids)} log entries")
        else:
            self.ui.display_error(f"Delete failed: {envelope.error}")

    async def handle_export_logs(self, format: str, output: Path) -> None:
        """Handles the 'export-logs' command: writes the export to a file."""
        try:
            envelope = await self.log_service.export_logs(format=format)
        except ValueError as e:
            self.ui.display_error(str(e))
            return
        if not envelope.success:
            self.ui.display_error(f"Export failed: {envelope.error}")
            return

        data = envelope.data
        content = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)
        output.write_text(content or "", encoding="utf-8")
        logger.info(f"Exported dashboard logs to {output}")
        self.ui.display_info(f"Exported logs to {output}")
