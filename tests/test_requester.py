import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import httpx
import pytest

import easyrequester
from easyrequester import (
    Builder,
    ConnectError,
    DecodeError,
    HttpMethod,
    InvalidRequestError,
    TimeoutError,
    TransportError,
    UnspecifiedTargetTypeError,
)
from easyrequester.codec import plain_codec, record_codec
from easyrequester.config import DEFAULT_USER_AGENT
from easyrequester.integrations.httpx import HttpxTransport

URL = "http://test/fetch"

REPLY = {"data": "x", "statusCode": 0, "statusMessage": "SUCCESS"}


@dataclass
class Reply:
    data: str
    statusCode: int
    statusMessage: str


class Envelope:
    data: str
    statusCode: int
    statusMessage: str


class MockServer:
    """Answers requests with a handler function, recording what was sent and
    which responses were produced."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []
        self.responses = []
        self._lock = threading.Lock()
        self.transport = HttpxTransport(
            httpx.Client(transport=httpx.MockTransport(self._handle))
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self.handler(request)

    def send(self, request):
        response = self.transport.send(request)
        with self._lock:
            self.responses.append(response)
        return response

    def all_closed(self) -> bool:
        return all(r.response.is_closed for r in self.responses)


class Collector:
    def __init__(self):
        self.values = []

    def __call__(self, *args):
        self.values.append(args[0] if len(args) == 1 else args)


def respond(status=200, **kwargs):
    return MockServer(lambda request: httpx.Response(status, **kwargs))


def test_successful_request_is_decoded():
    server = respond(json=REPLY)
    on_success = Collector()

    value = (
        Builder(Reply)
        .set_url(URL)
        .set_params({"millis": 233})
        .set_transport(server)
        .on_success(on_success)
        .build()
        .execute()
    )

    assert value == Reply("x", 0, "SUCCESS")
    assert on_success.values == [value]
    assert server.all_closed()

    sent = server.requests[0]
    assert sent.method == "GET"
    assert str(sent.url) == "http://test/fetch?millis=233"
    assert sent.headers["User-Agent"] == DEFAULT_USER_AGENT
    assert "Content-Type" not in sent.headers


def test_failed_request_is_logged_and_not_decoded(caplog):
    server = respond(404, text="{not json")
    on_success = Collector()
    on_exception = Collector()

    value = (
        Builder(Reply)
        .set_url(URL)
        .set_transport(server)
        .on_success(on_success)
        .on_exception(on_exception)
        .build()
        .execute()
    )

    assert value is None
    assert on_success.values == []
    assert on_exception.values == []
    assert "404-Not Found: response failed [GET]http://test/fetch" in caplog.text
    assert server.all_closed()


def test_failure_handler_can_read_body():
    server = respond(503, text="down")
    bodies = Collector()

    Builder(Reply).set_url(URL).set_transport(server).on_response_failure(
        lambda response: bodies(response.status_code, response.text())
    ).build().execute()

    assert bodies.values == [(503, "down")]
    assert server.all_closed()


def test_malformed_body_goes_to_exception_handler():
    server = respond(text="{not json")
    on_exception = Collector()

    requester = (
        Builder(Reply).set_url(URL).set_transport(server).on_exception(on_exception)
    ).build()

    assert requester.execute() is None
    [(error, request)] = on_exception.values
    assert isinstance(error, DecodeError)
    assert error.request is request
    assert request is requester.request
    assert server.all_closed()


def test_default_exception_handler_raises(caplog):
    server = respond(text="{not json")
    requester = Builder(Reply).set_url(URL).set_transport(server).build()

    with pytest.raises(DecodeError):
        requester.execute()
    assert "ERROR: [GET]http://test/fetch" in caplog.text
    assert server.all_closed()


def test_transport_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    server = MockServer(refuse)
    on_exception = Collector()
    value = easyrequester.get(
        URL, Reply, transport=server, on_exception=on_exception
    )

    assert value is None
    [(error, request)] = on_exception.values
    assert isinstance(error, ConnectError)
    assert isinstance(error.__cause__, httpx.ConnectError)
    assert error.request is request
    assert str(request.url) == URL

    with pytest.raises(ConnectError):
        easyrequester.get(URL, transport=server)


def test_handler_errors_go_to_exception_handler():
    def fail(value):
        raise RuntimeError("handler failed")

    server = respond(json=REPLY)
    on_exception = Collector()
    value = easyrequester.get(
        URL, Reply, transport=server, on_success=fail, on_exception=on_exception
    )

    assert value is None
    [(error, _)] = on_exception.values
    assert isinstance(error, RuntimeError)
    assert server.all_closed()


def test_raw_response_handler():
    server = respond(500, text="raw")
    seen = Collector()

    easyrequester.request_raw(
        "GET",
        URL,
        lambda response: seen(response.status_code, response.read()),
        transport=server,
    )

    assert seen.values == [(500, b"raw")]
    assert server.all_closed()


def test_raw_success_handler_leaves_failures_to_default(caplog):
    server = respond(500)
    seen = Collector()

    builder = Builder().set_url(URL).set_transport(server).on_response_success(seen)
    builder.build().execute()

    assert seen.values == []
    assert "500-Internal Server Error" in caplog.text


def test_requester_can_be_executed_concurrently():
    server = respond(json=REPLY)
    requester = Builder(Reply).set_url(URL).set_transport(server).build()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: requester.execute(), range(2)))

    assert results == [Reply("x", 0, "SUCCESS")] * 2
    assert len(server.requests) == 2
    assert server.all_closed()


def test_body_and_headers_are_sent():
    server = MockServer(lambda request: httpx.Response(201, content=request.content))
    body = Reply("x", 0, "SUCCESS")

    value = easyrequester.post(
        URL,
        Reply,
        body=body,
        headers={"Authorization": "Bearer t", "X-Blank": ""},
        cookies={"session": "abc"},
        transport=server,
    )

    assert value == body
    sent = server.requests[0]
    assert json.loads(sent.content) == REPLY
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.headers["Authorization"] == "Bearer t"
    assert sent.headers["Cookie"] == "session=abc"
    assert "X-Blank" not in sent.headers


def test_text_and_head_requests():
    server = MockServer(
        lambda request: httpx.Response(
            200, text="" if request.method == "HEAD" else "hello"
        )
    )
    assert easyrequester.request_text(HttpMethod.GET, URL, transport=server) == "hello"
    assert easyrequester.head(URL, transport=server) == ""
    assert easyrequester.delete(URL, transport=server) == "hello"
    assert [r.method for r in server.requests] == ["GET", "HEAD", "DELETE"]


def test_default_transport_is_used():
    server = respond(json=REPLY)
    easyrequester.set_default_transport(server)
    try:
        assert easyrequester.get(URL, dict) == REPLY
    finally:
        easyrequester.set_default_transport(None)
    assert len(server.requests) == 1


def test_builder_requires_url():
    with pytest.raises(InvalidRequestError):
        Builder(str).build()
    with pytest.raises(InvalidRequestError):
        Builder(str).set_url("  ").build()


def test_builder_requires_target():
    with pytest.raises(UnspecifiedTargetTypeError):
        Builder().set_url(URL).build()
    Builder().set_url(URL).on_response(print).build()
    Builder().set_url(URL).on_response_success(print).build()


def test_builder_rejects_unknown_method():
    with pytest.raises(ValueError):
        Builder(str, "FETCH")


def test_codec_selection():
    def codec(builder):
        return builder.set_url(URL).build().chain.codec

    assert codec(Builder(Reply)) is record_codec()
    assert codec(Builder(dict)) is plain_codec()
    assert codec(Builder(str)) is plain_codec()
    assert codec(Builder(Reply).set_record_codec(False)) is plain_codec()
    assert codec(Builder(dict).set_record_codec(True)) is record_codec()
    assert codec(Builder(list[list[Reply]]).set_max_depth(1)) is plain_codec()

    custom = easyrequester.JsonCodec(lenient=True)
    assert codec(Builder(Reply).set_codec(custom)) is custom


def test_plain_class_target_with_forced_plain_codec():
    class Loose:
        def __init__(self, data, statusCode, statusMessage):
            self.data = data

    server = respond(json=dict(REPLY, extra=True))
    value = easyrequester.get(URL, Loose, transport=server, record=False)
    assert value.data == "x"


def test_success_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="easyrequester")
    server = respond(json={"a": 1})
    easyrequester.get(URL, dict, transport=server)
    assert "SUCCESS: {'a': 1}" in caplog.text


def test_annotated_class_target():
    server = respond(json=REPLY)
    value = easyrequester.get(URL, Envelope, transport=server)
    assert isinstance(value, Envelope)
    assert vars(value) == REPLY

    on_exception = Collector()
    easyrequester.get(
        URL,
        Envelope,
        transport=respond(json={"data": "x"}),
        on_exception=on_exception,
    )
    [(error, _)] = on_exception.values
    assert isinstance(error, DecodeError)


class BrokenStream(httpx.SyncByteStream):
    def __init__(self, error: Exception):
        self.error = error

    def __iter__(self):
        yield b'{"data": '
        raise self.error


def test_body_read_error_is_a_transport_error():
    for error, expected in [
        (httpx.ReadTimeout("read timed out"), TimeoutError),
        (httpx.RemoteProtocolError("peer closed connection"), TransportError),
    ]:
        server = respond(stream=BrokenStream(error))
        on_exception = Collector()
        value = easyrequester.get(
            URL, Reply, transport=server, on_exception=on_exception
        )

        assert value is None
        [(wrapped, request)] = on_exception.values
        assert type(wrapped) is expected
        assert wrapped.__cause__ is error
        assert wrapped.request is request
        assert server.all_closed()


def test_default_transport_is_created_once():
    easyrequester.set_default_transport(None)
    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            transports = list(
                pool.map(lambda _: easyrequester.default_transport(), range(8))
            )
        assert all(t is transports[0] for t in transports)
        assert transports[0] is HttpxTransport.shared()
    finally:
        easyrequester.set_default_transport(None)
