"""
Signing HTTP Transport.

Sends single requests to an openQA instance:
- Signs requests with the time-salted HMAC-SHA1 scheme openQA expects
  (``X-API-Key``, ``X-API-Microtime``, ``X-API-Hash``).
- Sends bodies as URL-encoded form data, never as JSON.
- Serializes all calls through one lock unless parallel calls are allowed,
  because openQA rejects concurrent API calls from one key.
"""

from __future__ import annotations

import contextlib
import hashlib
import hmac
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union
from urllib.parse import urlencode

import requests
from loguru import logger

from openqa_access.errors import HTTPStatusError, TransportError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
DEFAULT_USER_AGENT = "openqa-access"

Body = Union[bytes, str, Mapping[str, Any], None]


@dataclass(frozen=True)
class Credentials:
    """API key and secret of an openQA user."""

    api_key: str = ""
    api_secret: str = ""

    @property
    def complete(self) -> bool:
        """True if both key and secret are set."""
        return bool(self.api_key and self.api_secret)

    def __repr__(self) -> str:
        return f"Credentials(api_key={self.api_key!r}, api_secret='***')"


@dataclass(frozen=True)
class RequestSpec:
    """A fully built request. Owned by the call that builds it."""

    method: str
    url: str
    body: bytes = b""
    content_type: Optional[str] = None

    @classmethod
    def build(cls, method: str, url: str, body: Body = None) -> "RequestSpec":
        """
        Build a request, encoding ``body`` as form data.

        Args:
            method: HTTP method.
            url: Absolute target URL, including any query string.
            body: Mapping (form-encoded), pre-encoded str/bytes, or None.

        Returns:
            The immutable request.
        """
        if body is None:
            data = b""
        elif isinstance(body, bytes):
            data = body
        elif isinstance(body, str):
            data = body.encode("utf-8")
        else:
            data = urlencode(body, doseq=True).encode("utf-8")

        content_type = FORM_CONTENT_TYPE if data else None
        return cls(method=method.upper(), url=url, body=data, content_type=content_type)


def url_path(url: str) -> str:
    """
    Strip scheme and host from a URL.

    Returns everything from the first ``/`` onward (query string included),
    or the whole string if there is no ``/``.
    """
    for scheme in ("http://", "https://"):
        if url.startswith(scheme):
            url = url[len(scheme):]
            break
    index = url.find("/")
    if index >= 0:
        return url[index:]
    return url


def compute_signature(path: str, timestamp: int, secret: str) -> str:
    """HMAC-SHA1 of ``path + timestamp`` keyed by ``secret``, hex-encoded."""
    message = f"{path}{timestamp}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha1).hexdigest()


class SigningTransport:
    """
    Performs authenticated requests against an openQA instance.

    Usage::

        transport = SigningTransport(Credentials("KEY", "SECRET"))
        body = transport.send("GET", "https://openqa.example.com/api/v1/jobs/42")

    Thread Safety:
        Unless ``allow_parallel`` is set, every call holds one lock for the
        full round trip, so at most one request is in flight per transport.
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        allow_parallel: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_sec: Optional[float] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the transport.

        Args:
            credentials: API credentials. None sends unsigned requests.
            allow_parallel: Allow concurrent requests (only if the server supports it).
            user_agent: User-Agent header, empty to omit.
            timeout_sec: Per-request timeout in seconds. None blocks indefinitely.
            session: requests.Session to use (created lazily if not provided).
            clock: Source of the Unix timestamp used for signing.
        """
        self.credentials = credentials or Credentials()
        self.allow_parallel = allow_parallel
        self.user_agent = user_agent
        self.timeout_sec = timeout_sec
        self._session = session
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def has_credentials(self) -> bool:
        return self.credentials.complete

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def sign(self, request: RequestSpec, timestamp: int) -> Dict[str, str]:
        """Return the authentication headers for ``request`` at ``timestamp``."""
        signature = compute_signature(
            url_path(request.url), timestamp, self.credentials.api_secret
        )
        return {
            "X-API-Key": self.credentials.api_key,
            "X-API-Microtime": str(timestamp),
            "X-API-Hash": signature,
        }

    def _headers_for(self, request: RequestSpec) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if request.content_type:
            headers["Content-Type"] = request.content_type
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        if self.has_credentials:
            # Bound to path and timestamp, so computed for every request
            headers.update(self.sign(request, int(self._clock())))
        return headers

    def send(self, method: str, url: str, body: Body = None) -> bytes:
        """
        Send one request and return the response body.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            url: Absolute URL.
            body: Optional form body.

        Returns:
            The raw response body.

        Raises:
            HTTPStatusError: On a non-2xx status (body attached).
            TransportError: If the request could not be performed.
        """
        request = RequestSpec.build(method, url, body)
        return self.perform(request)

    def perform(self, request: RequestSpec) -> bytes:
        """Send a prebuilt request. See :meth:`send`."""
        guard = contextlib.nullcontext() if self.allow_parallel else self._lock
        with guard:
            return self._round_trip(request)

    def _round_trip(self, request: RequestSpec) -> bytes:
        session = self._get_session()
        headers = self._headers_for(request)
        logger.debug(f"openQA {request.method} {request.url}")

        try:
            response = session.request(
                method=request.method,
                url=request.url,
                data=request.body or None,
                headers=headers,
                timeout=self.timeout_sec,
            )
            content = response.content
        except requests.exceptions.RequestException as e:
            logger.error(f"openQA request {request.method} {request.url} failed: {e}")
            raise TransportError(f"{request.method} {request.url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(
                f"openQA {request.method} {request.url} returned "
                f"status {response.status_code}"
            )
            logger.debug(content.decode("utf-8", errors="replace"))
            raise HTTPStatusError(response.status_code, content)

        return content

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            logger.debug("openQA transport session closed")
