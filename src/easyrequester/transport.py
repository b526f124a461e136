from __future__ import annotations

import logging
import threading
from typing import Mapping, Optional, Protocol

import httpx

from easyrequester.assembly import Request
from easyrequester.error import ResponseConsumedError, transport_error_for

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Protocol for HTTP transports.

    A transport sends a Request once, synchronously, and returns the
    Response as soon as the status line and headers are available. The body
    is read lazily through the response.
    """

    def send(self, request: Request) -> Response:
        """Send a request and wait for the response."""
        ...


class Response:
    """The response to a request, as seen by handlers.

    The body can be read only once, through read() or text(). Subclasses
    adapt the response objects of HTTP client libraries by implementing
    _read_body and _close.
    """

    __slots__ = ("status_code", "reason", "headers", "url", "_consumed", "_closed")

    status_code: int
    reason: str
    headers: Mapping[str, str]
    url: str

    def __init__(
        self, status_code: int, reason: str, headers: Mapping[str, str], url: str
    ):
        self.status_code = status_code
        self.reason = reason
        self.headers = headers
        self.url = url
        self._consumed = False
        self._closed = False

    def __repr__(self):
        return f"<{type(self).__name__} [{self.status_code} {self.reason}]>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def is_success(self) -> bool:
        """True when the status code is in the 2xx range."""
        return 200 <= self.status_code <= 299

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def encoding(self) -> Optional[str]:
        """Charset declared by the Content-Type header, if any."""
        return None

    def read(self) -> bytes:
        """Read the whole body.

        Raises:
            ResponseConsumedError: if the body was already read.

            TransportError: if the connection failed while reading.
        """
        if self._consumed:
            raise ResponseConsumedError("response body already consumed")
        self._consumed = True
        try:
            return self._read_body()
        except OSError as e:
            raise transport_error_for(e) from e

    def text(self) -> str:
        """Read the whole body and decode it as text."""
        body = self.read()
        try:
            return body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:  # unknown charset
            return body.decode("utf-8", errors="replace")

    def close(self):
        """Release the resources held by the response. Calling close more
        than once has no effect."""
        if self._closed:
            return
        self._closed = True
        self._close()

    def _read_body(self) -> bytes:
        raise NotImplementedError

    def _close(self):
        pass


class StaticResponse(Response):
    """A Response whose body is already in memory."""

    __slots__ = ("_response",)

    def __init__(
        self,
        status_code: int,
        body: bytes = b"",
        reason: str = "",
        headers: Optional[Mapping[str, str]] = None,
        url: str = "",
    ):
        response = httpx.Response(
            status_code, headers=headers, stream=httpx.ByteStream(body)
        )
        super().__init__(status_code, reason, response.headers, url)
        self._response = response

    @property
    def encoding(self) -> Optional[str]:
        return self._response.charset_encoding

    def _read_body(self) -> bytes:
        return self._response.read()


DEFAULT_TRANSPORT: Optional[Transport] = None
"""The transport used by requesters that are not given one.

It is created on first use and wraps a shared httpx.Client.
"""

_lock = threading.Lock()


def default_transport() -> Transport:
    """Returns the default transport, creating it if needed."""
    global DEFAULT_TRANSPORT
    transport = DEFAULT_TRANSPORT
    if transport is None:
        with _lock:
            if DEFAULT_TRANSPORT is None:
                from easyrequester.integrations.httpx import HttpxTransport

                DEFAULT_TRANSPORT = HttpxTransport.shared()
                logger.debug("initialized default transport: %r", DEFAULT_TRANSPORT)
            transport = DEFAULT_TRANSPORT
    return transport


def set_default_transport(transport: Optional[Transport]):
    """Replace the default transport. Passing None restores the httpx
    transport on next use."""
    global DEFAULT_TRANSPORT
    with _lock:
        DEFAULT_TRANSPORT = transport
