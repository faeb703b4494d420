"""Resilient client for the dashboard backend.

Hides the complexity of talking to the backend: finding the live endpoint
once, attaching credentials and correlation headers, collapsing concurrent
duplicate calls, retrying transient failures, and turning every outcome
into a ``ResponseEnvelope``. It is the only component the rest of the
application calls.
"""

import asyncio
import functools
import logging
import time
import uuid
from typing import Any, Dict, Mapping, Optional, Union

import httpx
import jwt

from dashlink.domain.events.api_events import (
    EndpointResolved,
    EventListener,
    RateLimited as RateLimitedEvent,
    RequestFailed,
    RequestInitiated,
    RequestSucceeded,
    SessionCleared,
    dispatch_event,
)
from dashlink.domain.interfaces.navigator import Navigator
from dashlink.domain.interfaces.session_store import SessionStore
from dashlink.domain.models.api import InitializationState, RequestOptions, ResponseEnvelope
from dashlink.domain.models.common import (
    AUTH_TOKEN_KEY,
    LOGIN_PATH,
    BaseURL,
    RequestId,
    SessionToken,
    UserId,
)
from dashlink.infrastructure.config.settings import ClientSettings
from dashlink.infrastructure.http.errors import (
    ApiError,
    ApiHttpError,
    AuthFailure,
    ClientDisposed,
    RateLimited,
    status_of,
)
from dashlink.infrastructure.http.transport import HttpTransport
from dashlink.infrastructure.resilience.api_retry import RetryEngine
from dashlink.infrastructure.resilience.deduplicator import RequestDeduplicator, build_fingerprint
from dashlink.infrastructure.resilience.endpoint_resolver import (
    STATUS_PATH,
    EndpointResolver,
    candidates_from_ports,
)
from dashlink.infrastructure.storage.session_store import InMemorySessionStore

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE")
HEALTH_CHECK_TIMEOUT_SECONDS = 5.0

OptionsArg = Union[RequestOptions, Mapping[str, Any], None]


def new_request_id() -> RequestId:
    """Correlation id sent as x-request-id, e.g. 'req_1700000000000_3f9a1c2b7'."""
    return RequestId(f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}")


def decode_user_id(token: str) -> Optional[UserId]:
    """Reads the ``userId`` claim from a JWT without verifying it.

    The backend verifies the token; the client only forwards the id as a
    hint. Undecodable tokens give None.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.warning(f"Could not extract user ID from token: {e}")
        return None
    user_id = payload.get("userId")
    return UserId(str(user_id)) if user_id is not None else None


class ApiClient:
    """Facade over endpoint resolution, deduplication and retries.

    Lifecycle: create, ``await initialize()`` (or let the first call do it),
    ``await dispose()``. Also usable as ``async with ApiClient(...)``.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        session_store: Optional[SessionStore] = None,
        navigator: Optional[Navigator] = None,
        resolver: Optional[EndpointResolver] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
        retry_engine: Optional[RetryEngine] = None,
        transport: Optional[HttpTransport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the ApiClient with its collaborators.

        Args:
            settings: Client configuration; defaults to ``ClientSettings()``.
            session_store: Where the session token lives.
            navigator: Navigation context used to redirect to the login
                surface after a 401. Optional.
            resolver: Endpoint resolver; built from settings if None.
            deduplicator: Request deduplicator; built from settings if None.
            retry_engine: Retry engine; built from settings if None.
            transport: HTTP transport; built from settings if None.
            http_transport: Optional httpx transport handed to the default
                resolver and transport (e.g. ``httpx.MockTransport``).
            event_listener: Optional receiver of domain events.
        """
        self.settings = settings or ClientSettings()
        self.session_store = session_store or InMemorySessionStore()
        self.navigator = navigator
        self.event_listener = event_listener
        self.resolver = resolver or EndpointResolver(
            default_url=self.settings.api_url,
            candidates=candidates_from_ports(self.settings.fallback_ports),
            probing_enabled=self.settings.probing_enabled,
            transport=http_transport,
        )
        self.deduplicator = deduplicator or RequestDeduplicator(
            stale_after=self.settings.stale_after,
            event_listener=event_listener,
        )
        self.retry_engine = retry_engine or RetryEngine(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.base_delay,
            event_listener=event_listener,
        )
        self.transport = transport or HttpTransport(
            base_url=self.settings.api_url,
            timeout=self.settings.request_timeout,
            transport=http_transport,
        )
        self._state = InitializationState.UNINITIALIZED
        self._init_task: Optional["asyncio.Future[None]"] = None

    # --- Lifecycle ---

    @property
    def state(self) -> InitializationState:
        return self._state

    @property
    def base_url(self) -> BaseURL:
        return BaseURL(self.transport.base_url)

    async def initialize(self) -> BaseURL:
        """Resolves the backend endpoint once.

        Concurrent callers share one resolution: the first call starts it,
        every other call awaits the same task.

        Raises:
            ClientDisposed: If ``dispose()`` cancelled the resolution this
                call was waiting for.
        """
        if self._state is InitializationState.READY:
            return self.base_url
        if self._init_task is None:
            self._state = InitializationState.RESOLVING
            self._init_task = asyncio.ensure_future(self._resolve_endpoint())
        init_task = self._init_task
        try:
            await asyncio.shield(init_task)
        except asyncio.CancelledError:
            # Our own cancellation leaves the shared task running
            if not init_task.cancelled():
                raise
            raise ClientDisposed() from None
        return self.base_url

    async def _resolve_endpoint(self) -> None:
        try:
            base_url = await self.resolver.resolve()
        except Exception as e:
            logger.error(f"Failed to resolve API endpoint, using default: {e}", exc_info=True)
            base_url = BaseURL(self.settings.api_url)
        self.transport.base_url = base_url.rstrip("/")
        self._state = InitializationState.READY
        logger.info(f"API client initialized: base_url={self.transport.base_url}")
        dispatch_event(
            self.event_listener,
            EndpointResolved(base_url=self.transport.base_url, probed=self.resolver.probing_enabled),
        )

    async def dispose(self) -> None:
        """Drops in-flight state and closes connections.

        The instance may be initialized again afterwards.
        """
        self.deduplicator.clear()
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._init_task = None
        self._state = InitializationState.UNINITIALIZED
        await self.transport.aclose()
        logger.debug("API client disposed.")

    async def __aenter__(self) -> "ApiClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    # --- Authentication state ---

    def set_auth_token(self, token: str) -> None:
        self.session_store.set(AUTH_TOKEN_KEY, token)

    def get_auth_token(self) -> Optional[SessionToken]:
        token = self.session_store.get(AUTH_TOKEN_KEY)
        return SessionToken(token) if token else None

    def clear_auth(self) -> None:
        self.session_store.remove(AUTH_TOKEN_KEY)

    def is_authenticated(self) -> bool:
        return self.get_auth_token() is not None

    def logout(self) -> None:
        """Clears the session and forgets every in-flight request."""
        self.clear_auth()
        self.deduplicator.clear()
        dispatch_event(self.event_listener, SessionCleared(reason="logout"))
        logger.info("Logged out; session and in-flight requests cleared.")

    def get_websocket_url(self) -> str:
        if self.settings.ws_url:
            return self.settings.ws_url
        return self.base_url.replace("http", "ws", 1) + "/ws"

    # --- Request pipeline ---

    def _build_headers(self, options: RequestOptions) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        token = None if options.skip_auth else self.get_auth_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
            user_id = decode_user_id(token)
            if user_id:
                headers["x-user-id"] = user_id
        if self.settings.api_key:
            headers["x-api-key"] = self.settings.api_key
        headers["x-request-id"] = new_request_id()
        return headers

    def _handle_unauthorized(self) -> None:
        self.clear_auth()
        dispatch_event(self.event_listener, SessionCleared(reason="unauthorized"))
        if self.navigator is not None and LOGIN_PATH not in self.navigator.current_path():
            self.navigator.redirect(LOGIN_PATH)

    def _handle_response_error(self, method: str, url: str, request_id: str, error: ApiError) -> None:
        status = status_of(error)
        logger.error(f"Request failed: {method} {url} status={status} request_id={request_id}: {error}")
        dispatch_event(
            self.event_listener,
            RequestFailed(
                method=method,
                url=url,
                error_type=type(error).__name__,
                error_message=str(error),
                status_code=status,
                request_id=request_id,
            ),
        )
        if isinstance(error, AuthFailure):
            self._handle_unauthorized()
        elif isinstance(error, RateLimited):
            logger.warning(f"Rate limited on {method} {url}; retry after: {error.retry_after or 'unspecified'}")
            dispatch_event(self.event_listener, RateLimitedEvent(url=url, retry_after=error.retry_after))

    async def _send(self, method: str, url: str, body: Any, options: RequestOptions) -> Any:
        """One HTTP attempt. Headers are rebuilt so each attempt has its own id."""
        headers = self._build_headers(options)
        request_id = headers["x-request-id"]
        params = None
        json_body = None
        if body is not None:
            if method == "GET":
                params = body
            else:
                json_body = body

        logger.debug(f"Request starting: {method} {url} request_id={request_id}")
        dispatch_event(self.event_listener, RequestInitiated(method=method, url=url, request_id=request_id))
        start_time = time.perf_counter()
        try:
            response = await self.transport.send(
                method,
                url,
                params=params,
                json_body=json_body,
                headers=headers,
                timeout=options.timeout,
            )
        except ApiError as e:
            self._handle_response_error(method, url, request_id, e)
            raise
        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(f"Response received: {response.status_code} {method} {url} request_id={request_id}")
        dispatch_event(
            self.event_listener,
            RequestSucceeded(
                method=method,
                url=url,
                status_code=response.status_code,
                latency_ms=latency_ms,
                request_id=request_id,
            ),
        )
        return response.payload

    @staticmethod
    def _error_message(error: Exception) -> str:
        if isinstance(error, ApiHttpError):
            return error.backend_error or error.message
        return str(error) or "Request failed"

    async def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        options: OptionsArg = None,
    ) -> ResponseEnvelope[Any]:
        """Issues a call through deduplication and retry and normalizes it.

        Args:
            method: One of GET, POST, PUT, DELETE.
            url: Path relative to the resolved base URL (e.g. '/api/servers').
            body: Query parameters for GET (None values dropped), JSON body
                for POST, PUT and DELETE.
            options: ``RequestOptions`` or a mapping of its fields.

        Returns:
            A ResponseEnvelope; failures are reported in it, never raised.

        Raises:
            InvalidRequestOptions: If options contain unknown fields.
            ValueError: If the method is not supported.
        """
        opts = RequestOptions.coerce(options)
        method = method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if method == "GET" and body is not None:
            if not isinstance(body, Mapping):
                raise ValueError("GET parameters must be a mapping")
            body = {k: v for k, v in body.items() if v is not None}

        try:
            await self.initialize()
            send = functools.partial(self._send, method, url, body, opts)
            if opts.skip_retry:
                call = send
            else:
                call = functools.partial(self.retry_engine.with_retry, send)

            if opts.skip_deduplication:
                payload = await call()
            else:
                fingerprint = build_fingerprint(method, url, body)
                payload = await self.deduplicator.deduplicate(fingerprint, call)
        except Exception as e:
            return ResponseEnvelope.fail(self._error_message(e))
        return ResponseEnvelope.from_payload(payload)

    # --- Public API methods ---

    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None, options: OptionsArg = None) -> ResponseEnvelope[Any]:
        return await self.request("GET", url, params, options)

    async def post(self, url: str, body: Any = None, options: OptionsArg = None) -> ResponseEnvelope[Any]:
        return await self.request("POST", url, body, options)

    async def put(self, url: str, body: Any = None, options: OptionsArg = None) -> ResponseEnvelope[Any]:
        return await self.request("PUT", url, body, options)

    async def delete(self, url: str, body: Any = None, options: OptionsArg = None) -> ResponseEnvelope[Any]:
        return await self.request("DELETE", url, body, options)

    async def health_check(self) -> bool:
        """True when the backend status endpoint answers successfully.

        Skips auth and retries and uses a short timeout. Never raises.
        """
        try:
            envelope = await self.get(
                STATUS_PATH,
                options=RequestOptions(
                    skip_auth=True,
                    skip_retry=True,
                    timeout=HEALTH_CHECK_TIMEOUT_SECONDS,
                ),
            )
        except Exception as e:
            logger.error(f"Health check failed unexpectedly: {e}", exc_info=True)
            return False
        return envelope.success
