import functools
import os
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest
from typer.testing import CliRunner

# Import the application entry point and key components to mock/replace
from dashlink import main as dashlink_main
from dashlink.core.services.api_client import ApiClient
from dashlink.domain.interfaces.user_interface import UserInterface
from dashlink.infrastructure.config.settings import (
    clear_test_config,
    reset_configuration,
    set_config_for_testing,
)

TEST_BASE_URL = "http://testserver"


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(mocker):
    """Each test starts with no loaded config and no DASHLINK_ variables.

    os.environ is restored afterwards, including anything a .env file added.
    """
    mocker.patch.dict(os.environ)
    for key in [k for k in os.environ if k.startswith("DASHLINK_")]:
        del os.environ[key]
    clear_test_config()
    reset_configuration()
    yield
    clear_test_config()
    reset_configuration()


@pytest.fixture
def mock_ui(mocker):
    return mocker.MagicMock(spec=UserInterface)


@pytest.fixture
def events() -> List[Any]:
    """Collects domain events; pass ``events.append`` as the listener."""
    return []


class FakeBackend:
    """Routes requests to canned responses and records what was sent.

    Routes map '<METHOD> <path>' to either an httpx.Response or a callable
    taking the request.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, response: Any) -> None:
        self.routes[f"{method} {path}"] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.method} {request.url.path}")
        if route is None:
            return httpx.Response(404, json={"success": False, "error": "Not found"})
        if callable(route):
            return route(request)
        return route

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def cli_app(mocker, monkeypatch, tmp_path: Path, backend: FakeBackend):
    """Runs the real composition root against the fake backend.

    Config points at a temporary session file; the ApiClient gets a mock
    httpx transport; logging setup is left alone so CliRunner output stays
    clean.
    """
    set_config_for_testing({
        "environment": "production",
        "api.url": TEST_BASE_URL,
        "session.file": str(tmp_path / "session.json"),
        "retry.max_retries": 1,
        "retry.base_delay": 0.0,
    })
    mocker.patch("dashlink.main.setup_logging")
    mocker.patch(
        "dashlink.main.ApiClient",
        new=functools.partial(ApiClient, http_transport=httpx.MockTransport(backend)),
    )
    monkeypatch.setattr(dashlink_main, "_dependencies", None)
    return dashlink_main.app


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    return tmp_path / "session.json"
