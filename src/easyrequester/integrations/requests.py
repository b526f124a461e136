from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

import requests

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


def requests_error(error: Exception) -> TransportError:
    # See https://requests.readthedocs.io/en/latest/api/#exceptions
    # and https://requests.readthedocs.io/en/latest/_modules/requests/exceptions/
    match error:
        case requests.Timeout():
            return TimeoutError(str(error))
        case requests.ConnectionError():
            return ConnectError(str(error))
        case ValueError():  # base class of things like requests.InvalidURL, etc.
            return InvalidURLError(str(error))

    return TransportError(str(error) or type(error).__name__)


# Register base exception.
register_error_type(requests.RequestException, requests_error)


class RequestsResponse(Response):
    """Response backed by a streamed requests.Response."""

    __slots__ = ("response",)

    def __init__(self, response: requests.Response):
        super().__init__(
            response.status_code,
            response.reason or reason_phrase(response.status_code),
            response.headers,
            response.url,
        )
        self.response = response

    @property
    def encoding(self) -> Optional[str]:
        return self.response.encoding

    def _read_body(self) -> bytes:
        try:
            return self.response.content
        except requests.RequestException as e:
            raise transport_error_for(e) from e

    def _close(self):
        self.response.close()


class RequestsTransport:
    """Transport sending requests with a requests.Session.

    Args:
        session: The session to send requests with. A new session is created
            when omitted, and closed by close().

        timeout: Timeout passed to every request, in seconds or as a
            (connect, read) tuple.
    """

    __slots__ = ("session", "timeout", "_owned")

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Union[None, float, Tuple[float, float]] = DEFAULT_TIMEOUT,
    ):
        self._owned = session is None
        self.session = session or requests.Session()
        self.timeout = timeout

    def __repr__(self):
        return f"RequestsTransport({self.session!r}, timeout={self.timeout!r})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def send(self, request: Request) -> RequestsResponse:
        headers = {
            key.decode("latin-1"): value.decode("latin-1")
            for key, value in request.raw_headers
        }
        logger.debug("sending [%s]%s with requests", request.method, request.url)
        response = self.session.request(
            request.method.value,
            request.url,
            headers=headers,
            data=request.content,
            timeout=self.timeout,
            stream=True,
        )
        return RequestsResponse(response)

    def close(self):
        if self._owned:
            self.session.close()
