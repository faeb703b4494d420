import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dashlink.core.services.api_client import ApiClient
from dashlink.core.services.auth_service import AuthService
from dashlink.domain.models.api import ResponseEnvelope

USER = {"id": "42", "username": "moderator"}


@pytest.fixture
def mock_api_client():
    client = MagicMock(spec=ApiClient)
    client.get = AsyncMock()
    client.post = AsyncMock()
    client.get_auth_token.return_value = "stored-token"
    client.is_authenticated.return_value = True
    return client


@pytest.fixture
def auth_service(mock_api_client):
    return AuthService(api_client=mock_api_client)


@pytest.mark.asyncio
async def test_login_stores_token_and_loads_user(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.ok(USER)

    envelope = await auth_service.login("new-token")

    assert envelope.success
    mock_api_client.set_auth_token.assert_called_once_with("new-token")
    mock_api_client.get.assert_awaited_once_with("/auth/me")
    assert auth_service.current_user == USER
    assert auth_service.is_authenticated


@pytest.mark.asyncio
async def test_login_failure_logs_out(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.fail("Token expired")

    envelope = await auth_service.login("bad-token")

    assert envelope == ResponseEnvelope.fail("Token expired")
    mock_api_client.logout.assert_called_once()
    assert auth_service.current_user is None


@pytest.mark.asyncio
async def test_login_without_user_data_fails(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.ok(None)

    envelope = await auth_service.login("token")

    assert envelope.error == "Failed to get user data"


@pytest.mark.asyncio
async def test_concurrent_logins_share_one_attempt(auth_service: AuthService, mock_api_client: MagicMock):
    async def slow_me(_path):
        await asyncio.sleep(0.01)
        return ResponseEnvelope.ok(USER)

    mock_api_client.get.side_effect = slow_me

    results = await asyncio.gather(auth_service.login("token"), auth_service.login("token"))

    assert all(r.success for r in results)
    mock_api_client.get.assert_awaited_once()


@pytest.mark.asyncio
async def test_check_auth_without_token_skips_backend(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get_auth_token.return_value = None

    assert await auth_service.check_auth() is False
    mock_api_client.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_check_auth_valid_session(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.ok(USER)

    assert await auth_service.check_auth() is True
    assert auth_service.current_user == USER


@pytest.mark.asyncio
async def test_check_auth_rejected_session_logs_out(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.fail("Unauthorized")

    assert await auth_service.check_auth() is False
    mock_api_client.logout.assert_called_once()


@pytest.mark.asyncio
async def test_auth_callback_adopts_session(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.post.return_value = ResponseEnvelope.ok({"token": "issued", "user": USER})

    envelope = await auth_service.handle_auth_callback("oauth-code")

    assert envelope.success
    mock_api_client.post.assert_awaited_once_with("/auth/discord/callback", {"code": "oauth-code"})
    mock_api_client.set_auth_token.assert_called_once_with("issued")
    assert auth_service.current_user == USER


@pytest.mark.asyncio
async def test_auth_callback_without_token_fails(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.post.return_value = ResponseEnvelope.ok({"user": USER})

    envelope = await auth_service.handle_auth_callback("oauth-code")

    assert envelope.error == "Login response did not include a token"
    mock_api_client.set_auth_token.assert_not_called()


@pytest.mark.asyncio
async def test_dev_login(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.post.return_value = ResponseEnvelope.ok({"token": "dev", "user": USER})

    await auth_service.dev_login()

    mock_api_client.post.assert_awaited_once_with("/auth/dev-login", {})
    mock_api_client.set_auth_token.assert_called_once_with("dev")


@pytest.mark.asyncio
async def test_get_auth_url(auth_service: AuthService, mock_api_client: MagicMock):
    mock_api_client.get.return_value = ResponseEnvelope.ok({"url": "https://discord.com/oauth2/authorize"})

    envelope = await auth_service.get_auth_url()

    assert envelope.data["url"].startswith("https://discord.com")
    mock_api_client.get.assert_awaited_once_with("/auth/discord")


def test_logout_forgets_user(auth_service: AuthService, mock_api_client: MagicMock):
    auth_service.current_user = USER

    auth_service.logout()

    mock_api_client.logout.assert_called_once()
    assert auth_service.current_user is None
    assert not auth_service.is_authenticated
