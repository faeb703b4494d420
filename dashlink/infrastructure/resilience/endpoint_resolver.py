"""Finds the live dashboard backend among a few candidate base URLs.

In development the backend may come up on any of several local ports. Each
candidate is probed in order with GET /api/status, and accepted only when
the body confirms it is the dashboard API. In production the configured URL
is used as is.
"""

import logging
from typing import Any, List, Optional, Sequence

import httpx

from dashlink.domain.models.common import BaseURL

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/status"
DEFAULT_PROBE_TIMEOUT_SECONDS = 2.0


def candidates_from_ports(ports: Sequence[int], host: str = "localhost") -> List[BaseURL]:
    """Builds candidate base URLs, e.g. [3001] -> ['http://localhost:3001']."""
    return [BaseURL(f"http://{host}:{port}") for port in ports]


def is_dashboard_status(payload: Any) -> bool:
    """True only for the status body our backend returns.

    A reachable service that answers anything else is the wrong service.
    """
    if not isinstance(payload, dict):
        return False
    port = payload.get("port")
    return (
        payload.get("success") is True
        and payload.get("status") == "online"
        and isinstance(port, (int, float))
        and not isinstance(port, bool)
    )


class EndpointResolver:
    """Resolves the base URL used by every subsequent call."""

    def __init__(
        self,
        default_url: str,
        candidates: Sequence[str] = (),
        probing_enabled: bool = False,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the resolver.

        Args:
            default_url: Configured URL. Returned in production, and as the
                fallback when no candidate answers correctly.
            candidates: Base URLs to probe, in order of preference.
            probing_enabled: False in production; no probes are sent.
            probe_timeout: Seconds allowed for each probe.
            transport: Optional httpx transport (for tests).
        """
        self.default_url = BaseURL(default_url.rstrip("/"))
        self.candidates = [c.rstrip("/") for c in candidates]
        self.probing_enabled = probing_enabled
        self.probe_timeout = probe_timeout
        self._transport = transport

    async def _probe(self, client: httpx.AsyncClient, candidate: str) -> bool:
        try:
            response = await client.get(f"{candidate}{STATUS_PATH}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.info(f"Backend not available at {candidate}: {type(e).__name__}")
            return False
        if not response.is_success:
            logger.info(f"{candidate} answered {response.status_code}; not our API server")
            return False
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not is_dashboard_status(payload):
            logger.info(f"{candidate} returned a response but not our API server")
            return False
        return True

    async def resolve(self) -> BaseURL:
        """Returns the first candidate that is our backend, else the default.

        Candidates are probed one after the other, never concurrently.
        Never raises.
        """
        if not self.probing_enabled:
            return self.default_url

        async with httpx.AsyncClient(
            timeout=self.probe_timeout, transport=self._transport
        ) as client:
            for candidate in self.candidates:
                if await self._probe(client, candidate):
                    logger.info(f"Found API server at {candidate}")
                    return BaseURL(candidate)

        logger.warning(f"No API server found on any candidate, using default {self.default_url}")
        return self.default_url
