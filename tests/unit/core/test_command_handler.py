import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from dashlink.core.command_handler import CommandHandler
from dashlink.core.services.api_client import ApiClient
from dashlink.core.services.auth_service import AuthService
from dashlink.core.services.dashboard_log_service import DashboardLogService
from dashlink.domain.interfaces.user_interface import UserInterface
from dashlink.domain.models.api import RequestOptions, ResponseEnvelope

@pytest.fixture
def mock_api_client():
    client = MagicMock(spec=ApiClient)
    client.initialize = AsyncMock(return_value="http://localhost:3001")
    client.health_check = AsyncMock(return_value=True)
    client.request = AsyncMock()
    client.get_websocket_url.return_value = "ws://localhost:3001/ws"
    return client

@pytest.fixture
def mock_auth_service():
    service = MagicMock(spec=AuthService)
    service.login = AsyncMock()
    service.check_auth = AsyncMock()
    return service

@pytest.fixture
def mock_log_service():
    service = MagicMock(spec=DashboardLogService)
    service.get_logs = AsyncMock()
    service.delete_logs = AsyncMock()
    service.export_logs = AsyncMock()
    return service

@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)

@pytest.fixture
def command_handler(mock_api_client, mock_auth_service, mock_ui, mock_log_service):
    """Fixture to create CommandHandler with mocked services."""
    return CommandHandler(
        api_client=mock_api_client,
        auth_service=mock_auth_service,
        ui=mock_ui,
        log_service=mock_log_service,
    )

@pytest.mark.asyncio
async def test_handle_status_online(command_handler: CommandHandler, mock_ui: MagicMock):
    assert await command_handler.handle_status() is True
    mock_ui.display_info.assert_called_once_with("Backend is online at http://localhost:3001")

@pytest.mark.asyncio
async def test_handle_status_offline(command_handler: CommandHandler, mock_api_client: MagicMock, mock_ui: MagicMock):
    mock_api_client.health_check.return_value = False
    assert await command_handler.handle_status() is False
    mock_ui.display_error.assert_called_once_with("Backend at http://localhost:3001 is not reachable")

@pytest.mark.asyncio
async def test_handle_status_error(command_handler: CommandHandler, mock_api_client: MagicMock, mock_ui: MagicMock):
    """Test that errors during status handling are displayed."""
    mock_api_client.initialize.side_effect = Exception("loop closed")
    assert await command_handler.handle_status() is False
    mock_ui.display_error.assert_called_once_with("Status command failed: loop closed")

@pytest.mark.asyncio
async def test_handle_resolve(command_handler: CommandHandler, mock_ui: MagicMock):
    await command_handler.handle_resolve()
    mock_ui.display_info.assert_any_call("Using API server at http://localhost:3001")
    mock_ui.display_info.assert_any_call("WebSocket URL: ws://localhost:3001/ws")

@pytest.mark.asyncio
async def test_handle_request(command_handler: CommandHandler, mock_api_client: MagicMock, mock_ui: MagicMock):
    """Test that handle_request passes arguments through and displays the envelope."""
    envelope = ResponseEnvelope.ok([{"id": 1}])
    mock_api_client.request.return_value = envelope
    options = RequestOptions(skip_retry=True)

    await command_handler.handle_request("get", "/api/servers", {"page": "2"}, options)

    mock_api_client.request.assert_awaited_once_with("get", "/api/servers", {"page": "2"}, options)
    mock_ui.display_envelope.assert_called_once_with(envelope, title="GET /api/servers")

@pytest.mark.asyncio
async def test_handle_request_error(command_handler: CommandHandler, mock_api_client: MagicMock, mock_ui: MagicMock):
    mock_api_client.request.side_effect = ValueError("Unsupported HTTP method: PATCH")
    await command_handler.handle_request("PATCH", "/api/servers")
    mock_ui.display_error.assert_called_once_with("Request command failed: Unsupported HTTP method: PATCH")
    mock_ui.display_envelope.assert_not_called()

@pytest.mark.asyncio
async def test_handle_login(command_handler: CommandHandler, mock_auth_service: MagicMock, mock_ui: MagicMock):
    mock_auth_service.login.return_value = ResponseEnvelope.ok({"username": "moderator"})
    await command_handler.handle_login("token")
    mock_auth_service.login.assert_awaited_once_with("token")
    mock_ui.display_info.assert_called_once_with("Welcome back, moderator!")

@pytest.mark.asyncio
async def test_handle_login_failure(command_handler: CommandHandler, mock_auth_service: MagicMock, mock_ui: MagicMock):
    mock_auth_service.login.return_value = ResponseEnvelope.fail("Token expired")
    await command_handler.handle_login("token")
    mock_ui.display_error.assert_called_once_with("Login failed: Token expired")

@pytest.mark.asyncio
async def test_handle_whoami(command_handler: CommandHandler, mock_auth_service: MagicMock, mock_ui: MagicMock):
    mock_auth_service.check_auth.return_value = True
    mock_auth_service.current_user = {"username": "moderator"}
    await command_handler.handle_whoami()
    mock_ui.display_envelope.assert_called_once_with(
        ResponseEnvelope.ok({"username": "moderator"}), title="Current user"
    )

@pytest.mark.asyncio
async def test_handle_whoami_logged_out(command_handler: CommandHandler, mock_auth_service: MagicMock, mock_ui: MagicMock):
    mock_auth_service.check_auth.return_value = False
    await command_handler.handle_whoami()
    mock_ui.display_warning.assert_called_once_with("Not logged in.")

def test_handle_logout(command_handler: CommandHandler, mock_auth_service: MagicMock, mock_ui: MagicMock):
    command_handler.handle_logout()
    mock_auth_service.logout.assert_called_once()
    mock_ui.display_info.assert_called_once_with("Logged out successfully")

@pytest.mark.asyncio
async def test_handle_logs(command_handler: CommandHandler, mock_log_service: MagicMock, mock_ui: MagicMock):
    envelope = ResponseEnvelope.ok([{"id": 1}])
    mock_log_service.get_logs.return_value = envelope
    await command_handler.handle_logs(page=1, action_type="ban")
    mock_log_service.get_logs.assert_awaited_once_with(page=1, limit=None, user_id=None, action_type="ban")
    mock_ui.display_envelope.assert_called_once_with(envelope, title="Dashboard logs")

@pytest.mark.asyncio
async def test_handle_delete_logs(command_handler: CommandHandler, mock_log_service: MagicMock, mock_ui: MagicMock):
    mock_log_service.delete_logs.return_value = ResponseEnvelope.ok()
    await command_handler.handle_delete_logs([1, 2])
    mock_log_service.delete_logs.assert_awaited_once_with([1, 2])
    mock_ui.display_info.assert_called_once_with("Deleted 2 log entries")

@pytest.mark.asyncio
async def test_handle_delete_logs_failure(command_handler: CommandHandler, mock_log_service: MagicMock, mock_ui: MagicMock):
    mock_log_service.delete_logs.return_value = ResponseEnvelope.fail("Forbidden")
    await command_handler.handle_delete_logs([1])
    mock_ui.display_error.assert_called_once_with("Delete failed: Forbidden")

@pytest.mark.asyncio
async def test_handle_export_logs_writes_file(command_handler: CommandHandler, mock_log_service: MagicMock, mock_ui: MagicMock, tmp_path):
    mock_log_service.export_logs.return_value = ResponseEnvelope.ok([{"id": 1}])
    output = tmp_path / "logs.json"
    await command_handler.handle_export_logs("json", output)
    mock_log_service.export_logs.assert_awaited_once_with(format="json")
    assert json.loads(output.read_text(encoding="utf-8")) == [{"id": 1}]
    mock_ui.display_info.assert_called_once_with(f"Exported logs to {output}")

@pytest.mark.asyncio
async def test_handle_export_logs_bad_format(command_handler: CommandHandler, mock_log_service: MagicMock, mock_ui: MagicMock, tmp_path):
    mock_log_service.export_logs.side_effect = ValueError("Unsupported export format: xml. Use one of: csv, json")
    output = tmp_path / "logs.xml"
    await command_handler.handle_export_logs("xml", output)
    mock_ui.display_error.assert_called_once_with("Unsupported export format: xml. Use one of: csv, json")
    assert not output.exists()
