"""Error taxonomy for calls to the dashboard backend.

Every failure raised by the transport is an ``ApiError``. HTTP failures
carry the status code and decoded body so the facade can build a useful
message, and so the retry engine can tell transient failures from final
ones.
"""

from typing import Any, Mapping, Optional


class ApiError(Exception):
    """Base class for failures talking to the backend."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportFailure(ApiError):
    """No response was received (connection refused, DNS, timeout)."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class ClientDisposed(ApiError):
    """The client was disposed while the call waited for initialization."""

    def __init__(self, message: str = "Client disposed"):
        super().__init__(message)


class ApiHttpError(ApiError):
    """The backend answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: Optional[str] = None,
        payload: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.status_code = status_code
        self.payload = payload
        self.headers = dict(headers or {})
        super().__init__(message or f"Request failed with status code {status_code}")

    @property
    def backend_error(self) -> Optional[str]:
        """The ``error`` or ``message`` field of a decoded JSON body."""
        if isinstance(self.payload, dict):
            for key in ("error", "message"):
                value = self.payload.get(key)
                if value:
                    return str(value)
        return None

    @staticmethod
    def from_status(
        status_code: int,
        message: Optional[str] = None,
        payload: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "ApiHttpError":
        """Builds the subclass matching the status code."""
        if status_code == 401:
            cls = AuthFailure
        elif status_code == 403:
            cls = AuthorizationFailure
        elif status_code == 429:
            cls = RateLimited
        elif 400 <= status_code < 500:
            cls = ClientFailure
        elif status_code >= 500:
            cls = ServerFailure
        else:
            cls = ApiHttpError
        return cls(status_code, message=message, payload=payload, headers=headers)


class ServerFailure(ApiHttpError):
    """5xx: the backend failed; worth retrying."""


class ClientFailure(ApiHttpError):
    """4xx other than 401/403/429: the request itself is wrong."""


class AuthFailure(ApiHttpError):
    """401: the session is missing or no longer valid."""


class AuthorizationFailure(ApiHttpError):
    """403: the session is valid but lacks permission."""


class RateLimited(ApiHttpError):
    """429: the backend asks the client to slow down. Not retried here."""

    @property
    def retry_after(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "retry-after":
                return value
        return None


def status_of(error: BaseException) -> Optional[int]:
    """Returns the HTTP status carried by an error, if any."""
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(error: BaseException) -> bool:
    """Classifies a failure for the retry engine.

    Any 4xx (including 401 and 403) is final. Everything else, 5xx,
    transport failures and unexpected exceptions, may be retried.
    """
    status = status_of(error)
    if status is not None and 400 <= status < 500:
        return False
    return True
