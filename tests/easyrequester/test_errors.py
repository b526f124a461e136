import builtins
import socket

import httpx
import pytest
import requests

from easyrequester.assembly import build_request
from easyrequester.error import (
    ConnectError,
    InvalidURLError,
    TimeoutError,
    TransportError,
    UnhandledResponseStatus,
    register_error_type,
    transport_error_for,
)

REQUEST = build_request("GET", "http://example.com/fetch")


@pytest.mark.parametrize(
    "error, expected",
    [
        (httpx.ConnectError("refused"), ConnectError),
        (httpx.ReadTimeout("slow"), TimeoutError),
        (httpx.PoolTimeout("busy"), TimeoutError),
        (httpx.UnsupportedProtocol("ftp"), InvalidURLError),
        (httpx.RemoteProtocolError("garbage"), TransportError),
        (requests.ConnectTimeout("slow"), TimeoutError),
        (requests.ConnectionError("refused"), ConnectError),
        (requests.exceptions.InvalidURL("nope"), InvalidURLError),
        (requests.TooManyRedirects("loop"), TransportError),
        (socket.timeout("slow"), TimeoutError),
        (ConnectionRefusedError("refused"), ConnectError),
        (RuntimeError("boom"), TransportError),
    ],
)
def test_transport_error_mapping(error, expected):
    wrapped = transport_error_for(error, REQUEST)
    assert type(wrapped) is expected
    assert wrapped.__cause__ is error
    assert wrapped.request is REQUEST
    assert str(error) in str(wrapped)


def test_timeout_is_builtin_timeout():
    wrapped = transport_error_for(httpx.ReadTimeout("slow"))
    assert isinstance(wrapped, builtins.TimeoutError)
    assert isinstance(transport_error_for(ConnectionResetError()), ConnectionError)


def test_transport_error_is_kept():
    error = ConnectError("refused")
    assert transport_error_for(error, REQUEST) is error
    assert error.request is REQUEST


def test_registered_error_type():
    class LibraryError(Exception):
        pass

    class LibraryTimeout(LibraryError):
        pass

    register_error_type(LibraryError, ConnectError)
    assert type(transport_error_for(LibraryTimeout("x"))) is ConnectError

    register_error_type(LibraryTimeout, lambda e: TimeoutError(f"library: {e}"))
    wrapped = transport_error_for(LibraryTimeout("x"))
    assert type(wrapped) is TimeoutError
    assert str(wrapped) == "library: x"


def test_unhandled_response_status():
    error = UnhandledResponseStatus(502, "Bad Gateway", REQUEST)
    assert error.status_code == 502
    assert error.reason == "Bad Gateway"
    assert str(error) == (
        "502-Bad Gateway: response failed [GET]http://example.com/fetch"
    )
    assert str(UnhandledResponseStatus(500, "")) == "500-: response failed"
