"""HTTP transport for the dashboard backend, built on httpx.

Owns one pooled ``httpx.AsyncClient`` and turns every outcome into either
a decoded response or an ``ApiError`` from the error taxonomy. It knows
nothing about retries, deduplication or sessions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from dashlink.infrastructure.http.errors import ApiHttpError, TransportFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_HEADERS = {"Content-Type": "application/json"}


@dataclass
class TransportResponse:
    """A 2xx response with its body decoded."""
    status_code: int
    payload: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


def decode_body(response: httpx.Response) -> Any:
    """Decodes a JSON body, falling back to text for non-JSON responses."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpTransport:
    """Sends single requests to the backend. One instance per client."""

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the transport.

        Args:
            base_url: Prefix for every request path. May be changed later,
                once the endpoint resolver has run.
            timeout: Default timeout in seconds for requests.
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``
                in tests).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Returns the shared client, creating it on first use or after close."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
                transport=self._transport,
            )
        return self._client

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    async def send(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """Sends one request.

        Returns:
            The decoded 2xx response.

        Raises:
            TransportFailure: If no response was received.
            ApiHttpError: If the backend answered with a non-2xx status.
        """
        url = self.url_for(path)
        client = self._get_client()
        try:
            response = await client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            effective = timeout if timeout is not None else self.timeout
            raise TransportFailure(
                f"Request to {url} timed out after {effective}s", timed_out=True
            ) from e
        except httpx.TransportError as e:
            raise TransportFailure(f"Network error calling {url}: {e}") from e

        payload = decode_body(response)
        if not response.is_success:
            raise ApiHttpError.from_status(
                response.status_code,
                payload=payload,
                headers=response.headers,
            )
        return TransportResponse(
            status_code=response.status_code,
            payload=payload,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Closes the pooled client. A later send opens a new one."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
