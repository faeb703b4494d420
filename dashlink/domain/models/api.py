"""Domain models for requests issued through the resiliency layer.

Includes the response envelope returned to callers, the per-call options,
and the bookkeeping structures owned by the deduplicator and retry engine.
"""

import asyncio
import enum
import time
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


class InitializationState(enum.Enum):
    """Lifecycle of endpoint resolution for one client instance."""
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    READY = "ready"


@dataclass
class ResponseEnvelope(Generic[T]):
    """Uniform result of every public client call.

    The UI layer only ever sees this shape: ``success`` tells it which of
    ``data`` or ``error`` to look at.
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ResponseEnvelope[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ResponseEnvelope[T]":
        return cls(success=False, error=error)

    @classmethod
    def from_payload(cls, payload: Any) -> "ResponseEnvelope[Any]":
        """Builds an envelope from a decoded backend response body.

        Bodies already in envelope form pass through; anything else is
        treated as bare data from a successful call. A successful envelope
        body without a ``data`` key keeps its other fields as the data, e.g.
        ``{success, cases, total}`` -> ``data={cases, total}``.
        """
        if isinstance(payload, dict) and "success" in payload:
            success = bool(payload.get("success"))
            error = payload.get("error")
            if not success and not error:
                error = payload.get("message") or "Request failed"
            if "data" in payload or not success:
                data = payload.get("data")
            else:
                data = {k: v for k, v in payload.items() if k not in ("success", "error")} or None
            return cls(
                success=success,
                data=data,
                error=str(error) if error is not None else None,
            )
        return cls(success=True, data=payload)

    def to_dict(self) -> Dict[str, Any]:
        """Renders ``{success, data?, error?}`` omitting absent fields."""
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result


class InvalidRequestOptions(ValueError):
    """Raised when per-call options contain unknown or malformed fields."""


@dataclass(frozen=True)
class RequestOptions:
    """Per-call configuration of the resiliency facade.

    Attributes:
        skip_auth: Do not send the Authorization header (default False).
        skip_retry: Issue the request once, without backoff (default False).
        skip_deduplication: Never share an in-flight call (default False).
        timeout: Seconds before the call is abandoned; None uses the client
            default.
    """
    skip_auth: bool = False
    skip_retry: bool = False
    skip_deduplication: bool = False
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.timeout is not None:
            if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
                raise InvalidRequestOptions(f"timeout must be a number, got {self.timeout!r}")
            if self.timeout <= 0:
                raise InvalidRequestOptions(f"timeout must be positive, got {self.timeout!r}")

    @classmethod
    def coerce(
        cls, options: Union["RequestOptions", Mapping[str, Any], None]
    ) -> "RequestOptions":
        """Accepts an options object, a mapping, or None."""
        if options is None:
            return cls()
        if isinstance(options, RequestOptions):
            return options
        if not isinstance(options, Mapping):
            raise InvalidRequestOptions(
                f"options must be RequestOptions or a mapping, got {type(options).__name__}"
            )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise InvalidRequestOptions(
                f"Unknown request option(s): {', '.join(unknown)}. "
                f"Recognised: {', '.join(sorted(known))}"
            )
        return cls(**options)


@dataclass
class PendingEntry:
    """An in-flight request shared by all callers with the same fingerprint."""
    task: "asyncio.Future[Any]"
    inserted_at: float = field(default_factory=time.monotonic)

    @property
    def settled(self) -> bool:
        return self.task.done()

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.monotonic()) - self.inserted_at


@dataclass
class RetryContext:
    """Transient state of one ``with_retry`` invocation."""
    max_retries: int
    base_delay: float
    attempt: int = 0

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_retries
