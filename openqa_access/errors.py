"""
Error definitions for the openQA access layer.

Every failure is surfaced to the immediate caller; nothing here retries.
"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from openqa_access.models import Job


class OpenQAError(Exception):
    """Base class for all errors raised by this package."""

    pass


# ---------------------------------------------------------------------------
# REST transport
# ---------------------------------------------------------------------------


class TransportError(OpenQAError):
    """Raised when a request cannot be delivered (network failure)."""

    pass


class HTTPStatusError(TransportError):
    """
    Raised when the service answers with a non-2xx status.

    The response body is kept for diagnostics.
    """

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        super().__init__(f"http status code {status_code}")
        self.status_code = status_code
        self.body = body


class AuthenticationRequiredError(OpenQAError):
    """Raised when an operation needs API credentials but none are set."""

    pass


class DecodeError(OpenQAError):
    """Raised on malformed JSON or an unexpected envelope shape."""

    pass


class NotFoundError(OpenQAError):
    """Raised when a single-resource lookup returns an empty listing."""

    pass


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(OpenQAError):
    """Base class for job-resolution failures."""

    pass


class MaxRecursionDepthError(ResolutionError):
    """Raised when a clone chain is longer than the configured bound."""

    def __init__(self, job_id: int, depth: int) -> None:
        super().__init__(
            f"maximum recursion depth reached (job {job_id}, depth {depth})"
        )
        self.job_id = job_id
        self.depth = depth


class InvalidIdentifierError(ResolutionError):
    """Raised when an identifier field has a type that cannot be coerced."""

    pass


class ChildResolutionError(ResolutionError):
    """
    Raised when one child of a job cannot be fetched.

    ``resolved`` holds the children fetched before the failure.
    """

    def __init__(
        self, job_id: int, resolved: Optional[List["Job"]] = None
    ) -> None:
        super().__init__(f"failed to fetch child job {job_id}")
        self.job_id = job_id
        self.resolved = resolved or []


# ---------------------------------------------------------------------------
# Message bus
# ---------------------------------------------------------------------------


class SubscriptionError(OpenQAError):
    """Raised when a channel cannot be declared, bound or consumed."""

    pass


class EndOfStreamError(SubscriptionError):
    """Raised by receive() once the session was closed gracefully."""

    def __init__(self, message: str = "EOF") -> None:
        super().__init__(message)


class UnexpectedCloseError(SubscriptionError):
    """Raised by receive() when the channel died while the session was open."""

    def __init__(self, message: str = "channel unexpectedly closed") -> None:
        super().__init__(message)
