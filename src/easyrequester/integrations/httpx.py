from __future__ import annotations

import atexit
import logging
import threading
from typing import Optional

import httpx

from easyrequester.assembly import Request
from easyrequester.config import DEFAULT_TIMEOUT
from easyrequester.error import (
    ConnectError,
    InvalidURLError,
    TimeoutError,
    TransportError,
    register_error_type,
    transport_error_for,
)
from easyrequester.integrations.http import reason_phrase
from easyrequester.transport import Response

logger = logging.getLogger(__name__)

_lock = threading.Lock()


def httpx_error(error: Exception) -> TransportError:
    # See https://www.python-httpx.org/exceptions/
    match error:
        case httpx.TimeoutException():
            return TimeoutError(str(error))
        case httpx.ConnectError():
            return ConnectError(str(error))
        case httpx.InvalidURL() | httpx.UnsupportedProtocol():
            return InvalidURLError(str(error))

    return TransportError(str(error) or type(error).__name__)


# Register base exceptions.
register_error_type(httpx.HTTPError, httpx_error)
register_error_type(httpx.StreamError, httpx_error)
register_error_type(httpx.InvalidURL, httpx_error)


class HttpxResponse(Response):
    """Response backed by a streamed httpx.Response."""

    __slots__ = ("response",)

    def __init__(self, response: httpx.Response):
        super().__init__(
            response.status_code,
            response.reason_phrase or reason_phrase(response.status_code),
            response.headers,
            str(response.url),
        )
        self.response = response

    @property
    def encoding(self) -> Optional[str]:
        return self.response.charset_encoding

    def _read_body(self) -> bytes:
        try:
            return self.response.read()
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise transport_error_for(e) from e

    def _close(self):
        self.response.close()


class HttpxTransport:
    """Transport sending requests with an httpx.Client.

    Args:
        client: The client to send requests with. A new client is created when
            omitted, and closed by close().
    """

    __slots__ = ("client", "_owned")

    _shared: Optional[HttpxTransport] = None

    def __init__(self, client: Optional[httpx.Client] = None):
        self._owned = client is None
        self.client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    def __repr__(self):
        return f"HttpxTransport({self.client!r})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @classmethod
    def shared(cls) -> HttpxTransport:
        """Returns a process-wide transport whose client is closed when the
        interpreter exits."""
        if cls._shared is None:
            with _lock:
                if cls._shared is None:
                    transport = cls()
                    atexit.register(transport.close)
                    cls._shared = transport
        return cls._shared

    def send(self, request: Request) -> HttpxResponse:
        outgoing = self.client.build_request(
            request.method.value,
            request.url,
            headers=request.headers,
            content=request.content,
        )
        logger.debug("sending [%s]%s with httpx", request.method, request.url)
        return HttpxResponse(self.client.send(outgoing, stream=True))

    def close(self):
        if self._owned:
            self.client.close()
