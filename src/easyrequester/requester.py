from __future__ import annotations

import logging
from typing import Any, Generic, Mapping, Optional, TypeVar, Union

from easyrequester.assembly import Request, build_request, is_blank
from easyrequester.codec import Codec, codec_for, plain_codec
from easyrequester.config import DEFAULT_MAX_DEPTH
from easyrequester.error import (
    EasyRequestError,
    InvalidRequestError,
    UnspecifiedTargetTypeError,
    transport_error_for,
)
from easyrequester.handlers import (
    ExceptionHandler,
    Handlers,
    ResponseChain,
    ResponseHandler,
    SuccessHandler,
    default_exception_handler,
)
from easyrequester.method import HttpMethod
from easyrequester.transport import Transport, default_transport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Requester(Generic[T]):
    """A ready-to-send request along with the handlers of its response.

    Requesters are created by Builder.build() and can be executed any number
    of times; each execution sends the request once.
    """

    __slots__ = ("request", "chain", "transport", "on_exception")

    def __init__(
        self,
        request: Request,
        chain: ResponseChain[T],
        transport: Optional[Transport] = None,
        on_exception: Optional[ExceptionHandler] = None,
    ):
        self.request = request
        self.chain = chain
        self.transport = transport
        self.on_exception = on_exception

    def __repr__(self):
        return f"Requester([{self.request.method}]{self.request.url})"

    def execute(self) -> Optional[T]:
        """Send the request and run the response through the handlers.

        The call blocks until the response has been handled. The response is
        always closed before returning.

        Returns:
            The decoded value, or None when no value was decoded (failure
            status, raw handlers, empty body, or an error suppressed by the
            exception handler).

        Raises:
            TransportError: if the request could not be sent, unless the
                exception handler suppresses it.

            DecodeError: if the response body does not match the target type,
                unless the exception handler suppresses it.
        """
        request = self.request
        transport = self.transport or default_transport()
        try:
            response = transport.send(request)
        except Exception as e:
            self._handle_exception(transport_error_for(e, request), request)
            return None

        logger.debug(
            "[%s]%s responded %d %s",
            request.method,
            request.url,
            response.status_code,
            response.reason,
        )
        with response:
            try:
                return self.chain.handle(response, request)
            except Exception as e:
                self._handle_exception(e, request)
                return None

    def _handle_exception(self, error: Exception, request: Request):
        if isinstance(error, EasyRequestError) and error.request is None:
            error.request = request
        handler = self.on_exception or default_exception_handler
        handler(error, request)


class Builder(Generic[T]):
    """Builder of Requester instances.

    Setters return the builder so calls can be chained:

        value = (
            Builder(User)
            .set_url("https://example.com/users/1")
            .set_headers({"Authorization": "Bearer ..."})
            .on_success(print)
            .build()
            .execute()
        )

    Args:
        target: The type successful responses are decoded into. It can be a
            class or a type descriptor like list[User]. str returns the body
            as text. May be omitted when a raw response handler is set.

        method: The HTTP method, GET by default.
    """

    __slots__ = (
        "_target",
        "_method",
        "_url",
        "_params",
        "_headers",
        "_cookies",
        "_body",
        "_content_type",
        "_transport",
        "_codec",
        "_record",
        "_max_depth",
        "_on_response",
        "_on_response_success",
        "_on_response_failure",
        "_on_success",
        "_on_exception",
    )

    def __init__(
        self, target: Any = None, method: Union[HttpMethod, str] = HttpMethod.GET
    ):
        self._target = target
        self._method = HttpMethod.parse(method)
        self._url: Optional[str] = None
        self._params: Optional[Mapping[str, Any]] = None
        self._headers: Optional[Mapping[str, str]] = None
        self._cookies: Optional[Mapping[str, str]] = None
        self._body: Any = None
        self._content_type: Optional[str] = None
        self._transport: Optional[Transport] = None
        self._codec: Optional[Codec] = None
        self._record: Optional[bool] = None
        self._max_depth = DEFAULT_MAX_DEPTH
        self._on_response: Optional[ResponseHandler] = None
        self._on_response_success: Optional[ResponseHandler] = None
        self._on_response_failure: Optional[ResponseHandler] = None
        self._on_success: Optional[SuccessHandler[T]] = None
        self._on_exception: Optional[ExceptionHandler] = None

    def set_target(self, target: Any) -> Builder[T]:
        self._target = target
        return self

    def set_method(self, method: Union[HttpMethod, str]) -> Builder[T]:
        self._method = HttpMethod.parse(method)
        return self

    def set_url(self, url: str) -> Builder[T]:
        self._url = url
        return self

    def set_params(self, params: Optional[Mapping[str, Any]]) -> Builder[T]:
        self._params = params
        return self

    def set_headers(self, headers: Optional[Mapping[str, str]]) -> Builder[T]:
        self._headers = headers
        return self

    def set_cookies(self, cookies: Optional[Mapping[str, str]]) -> Builder[T]:
        self._cookies = cookies
        return self

    def set_body(self, body: Any) -> Builder[T]:
        self._body = body
        return self

    def set_content_type(self, content_type: Optional[str]) -> Builder[T]:
        self._content_type = content_type
        return self

    def set_transport(self, transport: Optional[Transport]) -> Builder[T]:
        """Send the request with this transport instead of the default
        one."""
        self._transport = transport
        return self

    def set_codec(self, codec: Optional[Codec]) -> Builder[T]:
        """Encode the body and decode the response with this codec instead of
        the shared codec chosen from the types involved."""
        self._codec = codec
        return self

    def set_record_codec(self, record: Optional[bool]) -> Builder[T]:
        """Force (True) or prevent (False) the use of the record codec for
        the response, skipping the inspection of the target type. None
        restores the inspection."""
        self._record = record
        return self

    def set_max_depth(self, max_depth: int) -> Builder[T]:
        """Limit how deep nested fields of the target type are inspected."""
        self._max_depth = max_depth
        return self

    def on_response(self, handler: Optional[ResponseHandler]) -> Builder[T]:
        """Receive every response raw, bypassing status handling and
        decoding."""
        self._on_response = handler
        return self

    def on_response_success(self, handler: Optional[ResponseHandler]) -> Builder[T]:
        """Receive 2xx responses raw instead of having them decoded."""
        self._on_response_success = handler
        return self

    def on_response_failure(self, handler: Optional[ResponseHandler]) -> Builder[T]:
        """Receive non-2xx responses instead of having them logged."""
        self._on_response_failure = handler
        return self

    def on_success(self, handler: Optional[SuccessHandler[T]]) -> Builder[T]:
        """Receive the decoded value of 2xx responses."""
        self._on_success = handler
        return self

    def on_exception(self, handler: Optional[ExceptionHandler]) -> Builder[T]:
        """Receive transport and decode errors. The error is suppressed
        unless the handler raises."""
        self._on_exception = handler
        return self

    def build(self) -> Requester[T]:
        """Validate the configuration and assemble the request.

        Raises:
            InvalidRequestError: if the URL is missing.

            UnspecifiedTargetTypeError: if there is neither a target type nor
                a raw response handler.

            EncodeError: if the body cannot be serialized.
        """
        if is_blank(self._url):
            raise InvalidRequestError("missing URL: set it with set_url")

        handlers: Handlers[T] = Handlers(
            on_response=self._on_response,
            on_response_success=self._on_response_success,
            on_response_failure=self._on_response_failure,
            on_success=self._on_success,
            on_exception=self._on_exception,
        )
        if self._target is None and not handlers.reads_raw_response:
            raise UnspecifiedTargetTypeError(
                "no target type specified: pass one to the Builder or set a raw "
                "response handler"
            )

        if self._codec is not None:
            codec: Codec = self._codec
        elif self._target is None or self._target in (str, bytes):
            codec = plain_codec()
        else:
            codec = codec_for(self._target, self._record, self._max_depth)

        request = build_request(
            self._method,
            self._url,  # type: ignore[arg-type]
            params=self._params,
            headers=self._headers,
            cookies=self._cookies,
            body=self._body,
            content_type=self._content_type,
            codec=self._codec,
        )
        logger.debug(
            "built requester for [%s]%s using %r", request.method, request.url, codec
        )
        return Requester(
            request,
            ResponseChain(handlers, self._target, codec),
            transport=self._transport,
            on_exception=handlers.on_exception,
        )


def request(
    method: Union[HttpMethod, str],
    url: str,
    target: Any = str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
    body: Any = None,
    content_type: Optional[str] = None,
    transport: Optional[Transport] = None,
    codec: Optional[Codec] = None,
    record: Optional[bool] = None,
    on_response: Optional[ResponseHandler] = None,
    on_response_success: Optional[ResponseHandler] = None,
    on_response_failure: Optional[ResponseHandler] = None,
    on_success: Optional[SuccessHandler] = None,
    on_exception: Optional[ExceptionHandler] = None,
) -> Any:
    """Send a request and decode its response in one call.

    This is a shortcut for configuring a Builder, building the Requester and
    executing it. The arguments match the Builder setters.

    Returns:
        The decoded value of a 2xx response, None otherwise.
    """
    return (
        Builder(target, method)
        .set_url(url)
        .set_params(params)
        .set_headers(headers)
        .set_cookies(cookies)
        .set_body(body)
        .set_content_type(content_type)
        .set_transport(transport)
        .set_codec(codec)
        .set_record_codec(record)
        .on_response(on_response)
        .on_response_success(on_response_success)
        .on_response_failure(on_response_failure)
        .on_success(on_success)
        .on_exception(on_exception)
        .build()
        .execute()
    )


def request_text(method: Union[HttpMethod, str], url: str, **kwargs: Any) -> Any:
    """Send a request and return the body of a 2xx response as text."""
    return request(method, url, str, **kwargs)


def request_raw(
    method: Union[HttpMethod, str],
    url: str,
    on_response: ResponseHandler,
    **kwargs: Any,
) -> None:
    """Send a request and hand the raw response to on_response, whatever its
    status."""
    request(method, url, None, on_response=on_response, **kwargs)


def get(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a GET request. See request for the arguments."""
    return request(HttpMethod.GET, url, target, **kwargs)


def post(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a POST request. See request for the arguments."""
    return request(HttpMethod.POST, url, target, **kwargs)


def put(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a PUT request. See request for the arguments."""
    return request(HttpMethod.PUT, url, target, **kwargs)


def patch(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a PATCH request. See request for the arguments."""
    return request(HttpMethod.PATCH, url, target, **kwargs)


def delete(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a DELETE request. See request for the arguments."""
    return request(HttpMethod.DELETE, url, target, **kwargs)


def head(url: str, **kwargs: Any) -> Any:
    """Send a HEAD request. The response has no body, so the value is the
    empty string unless raw handlers are set."""
    return request(HttpMethod.HEAD, url, str, **kwargs)


def options(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send an OPTIONS request. See request for the arguments."""
    return request(HttpMethod.OPTIONS, url, target, **kwargs)


def trace(url: str, target: Any = str, **kwargs: Any) -> Any:
    """Send a TRACE request. See request for the arguments."""
    return request(HttpMethod.TRACE, url, target, **kwargs)
