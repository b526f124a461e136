"""Handling of responses: the success and failure branches, decoding, and the
default handlers used when callers leave a slot empty."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from typing_extensions import TypeAlias

from easyrequester.assembly import Request
from easyrequester.codec import Codec
from easyrequester.error import DecodeError, UnhandledResponseStatus
from easyrequester.transport import Response

logger = logging.getLogger(__name__)

T = TypeVar("T")

ResponseHandler: TypeAlias = Callable[[Response], Any]
"""Receives the raw response. Used for the raw, success and failure slots."""

SuccessHandler: TypeAlias = Callable[[Optional[T]], Any]
"""Receives the decoded value, which may be None."""

ExceptionHandler: TypeAlias = Callable[[Exception, Request], Any]
"""Receives transport and decode errors along with the request. Returning
normally suppresses the error."""


@dataclass(frozen=True)
class Handlers(Generic[T]):
    """The callbacks invoked while handling a response.

    When on_response is set it receives every response and nothing else
    runs. Otherwise 2xx responses go to on_response_success, or are decoded
    and the value passed to on_success; other responses go to
    on_response_failure. Empty slots fall back to handlers that log.
    """

    on_response: Optional[ResponseHandler] = None
    on_response_success: Optional[ResponseHandler] = None
    on_response_failure: Optional[ResponseHandler] = None
    on_success: Optional[SuccessHandler[T]] = None
    on_exception: Optional[ExceptionHandler] = None

    @property
    def reads_raw_response(self) -> bool:
        """True when the response is given to a raw handler instead of being
        decoded."""
        return self.on_response is not None or self.on_response_success is not None


def default_failure_handler(response: Response, request: Request):
    # The body is left unread so that callers can still consume it.
    logger.warning(
        "%s", UnhandledResponseStatus(response.status_code, response.reason, request)
    )


def default_success_handler(value: Any):
    logger.info("SUCCESS: %r", value)


def default_exception_handler(error: Exception, request: Request):
    logger.error("ERROR: [%s]%s: %s", request.method, request.url, error)
    raise error


class ResponseChain(Generic[T]):
    """Runs a response through the handlers.

    Args:
        handlers: The callbacks to invoke.

        target: The type to decode successful responses into. str returns the
            body as text and bytes returns it untouched.

        codec: The codec decoding JSON bodies.
    """

    __slots__ = ("handlers", "target", "codec")

    def __init__(self, handlers: Handlers[T], target: Any, codec: Codec):
        self.handlers = handlers
        self.target = target
        self.codec = codec

    def handle(self, response: Response, request: Request) -> Optional[T]:
        """Handle a response, returning the decoded value if one was
        produced.

        Raises:
            DecodeError: if the body of a successful response cannot be
                decoded into the target type.
        """
        if self.handlers.on_response is not None:
            self.handlers.on_response(response)
            return None

        if response.is_success:
            return self._handle_success(response, request)

        logger.debug(
            "[%s]%s failed with status %d",
            request.method,
            request.url,
            response.status_code,
        )
        if self.handlers.on_response_failure is not None:
            self.handlers.on_response_failure(response)
        else:
            default_failure_handler(response, request)
        return None

    def _handle_success(self, response: Response, request: Request) -> Optional[T]:
        if self.handlers.on_response_success is not None:
            self.handlers.on_response_success(response)
            return None

        value = self.decode(response, request)
        if self.handlers.on_success is not None:
            self.handlers.on_success(value)
        else:
            default_success_handler(value)
        return value

    def decode(self, response: Response, request: Request) -> Optional[T]:
        """Decode the body of a response into the target type."""
        if self.target is str:
            return response.text()  # type: ignore[return-value]
        if self.target is bytes:
            return response.read()  # type: ignore[return-value]

        body = response.read()
        if not body.strip():
            return None

        try:
            return self.codec.decode(body, self.target)
        except DecodeError as e:
            e.request = request
            raise
