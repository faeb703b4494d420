"""Main entry point for the dashlink application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

# --- Setup Logging Early ---
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Core Layer ---
from dashlink.core.command_handler import CommandHandler
from dashlink.core.services.api_client import ApiClient
from dashlink.core.services.auth_service import AuthService
from dashlink.core.services.dashboard_log_service import DashboardLogService
from dashlink.domain.models.api import RequestOptions

# --- Infrastructure Layer ---
from dashlink.infrastructure.config.settings import get_config, get_session_file, load_client_settings, load_configuration
from dashlink.infrastructure.cli.display import ConsoleDisplay
from dashlink.infrastructure.cli.navigator import ConsoleNavigator
from dashlink.infrastructure.monitoring.logger_setup import (
    DEFAULT_BACKUP_COUNT,
    DEFAULT_MAX_BYTES,
    level_from_name,
    setup_logging,
)
from dashlink.infrastructure.storage.session_store import FileSessionStore

# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Configuration and logging
    load_configuration()
    setup_logging(
        log_level=level_from_name(get_config('logging.level'), logging.WARNING),
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        max_bytes=int(get_config('logging.max_bytes', DEFAULT_MAX_BYTES)),
        backup_count=int(get_config('logging.backup_count', DEFAULT_BACKUP_COUNT)),
    )
    settings = load_client_settings()
    logger.info(f"Client settings loaded: api_url={settings.api_url}, development={settings.development}")

    # 2. Infrastructure adapters
    dependencies['ui'] = ConsoleDisplay()
    dependencies['session_store'] = FileSessionStore(get_session_file())
    dependencies['navigator'] = ConsoleNavigator(ui=dependencies['ui'])

    # 3. Client and services
    dependencies['api_client'] = ApiClient(
        settings=settings,
        session_store=dependencies['session_store'],
        navigator=dependencies['navigator'],
    )
    dependencies['auth_service'] = AuthService(api_client=dependencies['api_client'])
    dependencies['log_service'] = DashboardLogService(api_client=dependencies['api_client'])

    # 4. Command handler
    dependencies['command_handler'] = CommandHandler(
        api_client=dependencies['api_client'],
        auth_service=dependencies['auth_service'],
        ui=dependencies['ui'],
        log_service=dependencies['log_service'],
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies

_dependencies: Optional[Dict[str, Any]] = None

def get_dependencies() -> Dict[str, Any]:
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="dashlink",
    help="dashlink: command-line client for the bot dashboard API, with endpoint discovery, retries and request deduplication.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a handler coroutine, then disposes the client."""
    deps = get_dependencies()

    async def runner() -> Any:
        try:
            return await coro
        finally:
            await deps['api_client'].dispose()

    try:
        return asyncio.run(runner())
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        deps['ui'].display_error(f"Command execution failed: {e}")
        return None

# --- Parsing helpers ---

def parse_params(pairs: List[str]) -> Optional[Dict[str, str]]:
    """['page=2', 'limit=50'] -> {'page': '2', 'limit': '50'}."""
    if not pairs:
        return None
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'")
        params[key] = value
    return params

def parse_json_body(data: Optional[str]) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except ValueError as e:
        raise typer.BadParameter(f"--data is not valid JSON: {e}")

# --- CLI Commands ---

SkipAuthOption = Annotated[bool, typer.Option("--skip-auth", help="Do not send the session token.")]
NoRetryOption = Annotated[bool, typer.Option("--no-retry", help="Send once; do not retry transient failures.")]
NoDedupOption = Annotated[bool, typer.Option("--no-dedup", help="Never share an identical in-flight request.")]
TimeoutOption = Annotated[Optional[float], typer.Option("--timeout", "-t", help="Request timeout in seconds.")]
DataOption = Annotated[Optional[str], typer.Option("--data", "-d", help="JSON request body.")]
PathArgument = Annotated[str, typer.Argument(help="API path, e.g. /api/servers.")]

def _options(skip_auth: bool, no_retry: bool, no_dedup: bool, timeout: Optional[float]) -> RequestOptions:
    return RequestOptions(
        skip_auth=skip_auth,
        skip_retry=no_retry,
        skip_deduplication=no_dedup,
        timeout=timeout,
    )

@app.command()
def status():
    """Checks whether the backend is online."""
    handler: CommandHandler = get_dependencies()['command_handler']
    if not run_async(handler.handle_status()):
        raise typer.Exit(code=1)

@app.command()
def resolve():
    """Shows which backend URL the client will talk to."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_resolve())

@app.command()
def get(
    path: PathArgument,
    param: Annotated[List[str], typer.Option("--param", "-p", help="Query parameter as key=value. Repeatable.")] = [],
    skip_auth: SkipAuthOption = False,
    no_retry: NoRetryOption = False,
    no_dedup: NoDedupOption = False,
    timeout: TimeoutOption = None,
):
    """Sends a GET request."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_request("GET", path, parse_params(param), _options(skip_auth, no_retry, no_dedup, timeout)))

@app.command()
def post(
    path: PathArgument,
    data: DataOption = None,
    skip_auth: SkipAuthOption = False,
    no_retry: NoRetryOption = False,
    no_dedup: NoDedupOption = False,
    timeout: TimeoutOption = None,
):
    """Sends a POST request with an optional JSON body."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_request("POST", path, parse_json_body(data), _options(skip_auth, no_retry, no_dedup, timeout)))

@app.command()
def put(
    path: PathArgument,
    data: DataOption = None,
    skip_auth: SkipAuthOption = False,
    no_retry: NoRetryOption = False,
    no_dedup: NoDedupOption = False,
    timeout: TimeoutOption = None,
):
    """Sends a PUT request with an optional JSON body."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_request("PUT", path, parse_json_body(data), _options(skip_auth, no_retry, no_dedup, timeout)))

@app.command()
def delete(
    path: PathArgument,
    skip_auth: SkipAuthOption = False,
    no_retry: NoRetryOption = False,
    no_dedup: NoDedupOption = False,
    timeout: TimeoutOption = None,
):
    """Sends a DELETE request."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_request("DELETE", path, None, _options(skip_auth, no_retry, no_dedup, timeout)))

@app.command()
def login(
    token: Annotated[str, typer.Argument(help="Session token issued by the dashboard.")]
):
    """Stores a session token after checking it with the backend."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_login(token))

@app.command()
def logout():
    """Forgets the stored session token."""
    handler: CommandHandler = get_dependencies()['command_handler']
    handler.handle_logout()

@app.command()
def whoami():
    """Shows the user the stored session belongs to."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_whoami())

@app.command()
def logs(
    page: Annotated[Optional[int], typer.Option("--page", help="Page number.")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", help="Entries per page.")] = None,
    user: Annotated[Optional[str], typer.Option("--user", help="Only entries by this user id.")] = None,
    action: Annotated[Optional[str], typer.Option("--action", help="Only entries of this action type.")] = None,
):
    """Lists dashboard audit log entries."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_logs(page=page, limit=limit, user_id=user, action_type=action))

@app.command("delete-logs")
def delete_logs(
    ids: Annotated[List[str], typer.Argument(help="Ids of the log entries to delete.")],
):
    """Deletes dashboard audit log entries."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_delete_logs([int(i) if i.isdigit() else i for i in ids]))

@app.command("export-logs")
def export_logs(
    format: Annotated[str, typer.Option("--format", "-f", help="csv or json.")] = "csv",
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Target file (default: dashboard-logs.<format>).")] = None,
):
    """Downloads the dashboard audit log to a file."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_export_logs(format, output or Path(f"dashboard-logs.{format}")))

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    logger.debug("Starting dashlink application...")
    app()

if __name__ == "__main__":
    cli_entry_point()
