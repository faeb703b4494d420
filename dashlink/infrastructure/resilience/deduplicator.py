"""Collapses concurrent identical requests into one in-flight call.

Requests are identified by a fingerprint of method, URL and body. While a
request with a given fingerprint is in flight, later callers await the same
task instead of dispatching again, and all of them observe the same result
or the same exception.

The lookup and the insert in ``deduplicate`` run without an ``await`` in
between, so under asyncio two back-to-back calls cannot both miss. A
threaded port would need a lock around that section.
"""

import asyncio
import functools
import hashlib
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from dashlink.domain.events.api_events import (
    EventListener,
    RequestDeduplicated,
    dispatch_event,
)
from dashlink.domain.models.api import PendingEntry
from dashlink.domain.models.common import RequestFingerprint

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STALE_AFTER_SECONDS = 30.0


def build_fingerprint(method: str, url: str, body: Any = None) -> RequestFingerprint:
    """Deterministic dedup key for a request.

    Bodies are serialized as canonical JSON (sorted keys), so structurally
    equal bodies map to the same key regardless of dict ordering.
    """
    body_json = "" if body is None else json.dumps(
        body, sort_keys=True, separators=(",", ":"), default=str
    )
    body_digest = hashlib.sha256(body_json.encode("utf-8")).hexdigest()
    return RequestFingerprint(f"{method.upper()}:{url}:{body_digest}")


class RequestDeduplicator:
    """Maps fingerprints to in-flight tasks."""

    def __init__(
        self,
        stale_after: float = DEFAULT_STALE_AFTER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the deduplicator.

        Args:
            stale_after: Age in seconds after which a settled entry that is
                still in the map is swept. Unsettled entries are never
                evicted by age.
            clock: Monotonic time source.
            event_listener: Optional receiver of RequestDeduplicated events.
        """
        self.stale_after = stale_after
        self._clock = clock
        self._event_listener = event_listener
        self._pending: Dict[RequestFingerprint, PendingEntry] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._pending

    def _sweep_stale(self) -> None:
        """Drops settled entries older than the staleness window.

        An entry that is old but still running keeps its slot: evicting it
        would let a second identical request dispatch while the first is
        outstanding.
        """
        now = self._clock()
        for fingerprint, entry in list(self._pending.items()):
            if entry.age(now) <= self.stale_after:
                continue
            if entry.settled:
                del self._pending[fingerprint]
                logger.debug(f"Swept settled dedup entry: {fingerprint}")
            else:
                logger.warning(
                    f"Request {fingerprint} has been in flight for {entry.age(now):.1f}s; "
                    f"keeping it deduplicated until it settles."
                )

    def _on_settled(self, fingerprint: RequestFingerprint, entry: PendingEntry, _task: Any) -> None:
        # Only remove our own entry; clear() may have replaced it.
        if self._pending.get(fingerprint) is entry:
            del self._pending[fingerprint]

    async def deduplicate(
        self,
        fingerprint: RequestFingerprint,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Runs ``request_fn`` unless an identical request is already in flight.

        Args:
            fingerprint: Key of the request, see ``build_fingerprint``.
            request_fn: Zero-argument coroutine function issuing the request.

        Returns:
            The outcome of the single shared invocation.
        """
        self._sweep_stale()

        entry = self._pending.get(fingerprint)
        if entry is not None:
            logger.debug(f"Deduplicating request: {fingerprint}")
            dispatch_event(self._event_listener, RequestDeduplicated(fingerprint=fingerprint))
        else:
            task = asyncio.ensure_future(request_fn())
            entry = PendingEntry(task=task, inserted_at=self._clock())
            self._pending[fingerprint] = entry
            task.add_done_callback(functools.partial(self._on_settled, fingerprint, entry))

        # shield: a cancelled caller must not cancel the request for the others
        return await asyncio.shield(entry.task)

    def clear(self) -> None:
        """Forgets every in-flight request. Running tasks are not cancelled."""
        if self._pending:
            logger.info(f"Clearing {len(self._pending)} in-flight request(s) from dedup map.")
        self._pending.clear()
