"""Domain Events related to API calls and resilience.

Examples include events for when calls are retried, deduplicated, fail,
or succeed, and for changes to the endpoint or the session.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

EventListener = Callable[[DomainEvent], None]

# --- Specific API Events ---

@dataclass
class RequestInitiated(DomainEvent):
    """Event triggered when an HTTP request is about to be sent."""
    method: str
    url: str
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestSucceeded(DomainEvent):
    """Event triggered when an HTTP request returns a 2xx response."""
    method: str
    url: str
    status_code: int
    latency_ms: float
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestFailed(DomainEvent):
    """Event triggered when a single HTTP attempt fails."""
    method: str
    url: str
    error_type: str
    error_message: str
    status_code: Optional[int] = None
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed call."""
    attempt_number: int
    delay_seconds: float
    error_type: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestDeduplicated(DomainEvent):
    """Event triggered when a call joins an identical in-flight request."""
    fingerprint: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class EndpointResolved(DomainEvent):
    """Event triggered once the backend base URL is known."""
    base_url: str
    probed: bool  # False when the configured URL was used without probing
    timestamp: float = field(default_factory=time.time)

@dataclass
class SessionCleared(DomainEvent):
    """Event triggered when the stored session token is removed."""
    reason: str  # e.g. 'unauthorized', 'logout'
    timestamp: float = field(default_factory=time.time)

@dataclass
class RateLimited(DomainEvent):
    """Event triggered when the backend answers 429."""
    url: str
    retry_after: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


def dispatch_event(listener: Optional[EventListener], event: DomainEvent) -> None:
    """Logs the event and forwards it to the listener, if any."""
    logger.debug(f"EVENT: {event}")
    if listener is not None:
        listener(event)
