from __future__ import annotations

from builtins import TimeoutError as _TimeoutError
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Type, Union

if TYPE_CHECKING:
    from easyrequester.assembly import Request


class EasyRequestError(Exception):
    """Base class for easyrequester exceptions."""

    request: Optional[Request]

    def __init__(self, message: str = "", request: Optional[Request] = None):
        super().__init__(message)
        self.request = request


class TransportError(EasyRequestError):
    """The request could not be sent or the response could not be received.
    Used in cases where a more specific error class is not available."""


class TimeoutError(TransportError, _TimeoutError):
    """The transport timed out."""


class ConnectError(TransportError, ConnectionError):
    """The transport could not connect to the remote host."""


class InvalidURLError(TransportError, ValueError):
    """The request URL is malformed or uses an unsupported scheme."""


class DecodeError(EasyRequestError, ValueError):
    """The response body is malformed or does not match the target type."""


class EncodeError(EasyRequestError, ValueError):
    """The request body could not be serialized."""


class UnspecifiedTargetTypeError(EasyRequestError, ValueError):
    """The requester has no target type to decode responses into."""


class InvalidRequestError(EasyRequestError, ValueError):
    """The requester was configured with invalid values."""


class ResponseConsumedError(EasyRequestError):
    """The response body was already read."""


class UnhandledResponseStatus(EasyRequestError):
    """A non-2xx response reached the default failure handler.

    It describes the failure in logs and is never raised by this package.
    """

    status_code: int
    reason: str

    def __init__(
        self, status_code: int, reason: str, request: Optional[Request] = None
    ):
        self.status_code = status_code
        self.reason = reason
        target = f" [{request.method}]{request.url}" if request is not None else ""
        super().__init__(f"{status_code}-{reason}: response failed{target}", request)


TransportErrorFactory = Callable[[Exception], TransportError]

_ERROR_TYPES: Dict[
    Type[Exception], Union[Type[TransportError], TransportErrorFactory]
] = {}


def register_error_type(
    error_type: Type[Exception],
    error_class_or_handler: Union[Type[TransportError], TransportErrorFactory],
):
    """Register how exceptions raised by a transport library are wrapped.

    The caller can either register a base exception and a handler, which
    builds a TransportError from errors of this type. Or, if every exception
    of that type maps to the same class, the caller can simply pass the
    exception type and the TransportError subclass.
    """
    _ERROR_TYPES[error_type] = error_class_or_handler


def transport_error_for(
    error: BaseException, request: Optional[Request] = None
) -> TransportError:
    """Returns the TransportError that wraps an exception raised while
    sending a request. The wrapped exception is kept as the cause."""
    if isinstance(error, TransportError):
        if error.request is None:
            error.request = request
        return error

    wrapped = _wrap(error)
    wrapped.request = request
    wrapped.__cause__ = error
    return wrapped


def _wrap(error: BaseException) -> TransportError:
    factory = _find_handler(error, _ERROR_TYPES)
    if factory is not None:
        if isinstance(factory, type):
            return factory(str(error))
        return factory(error)  # type: ignore[arg-type]
    # If not, resort to standard error categorization.
    #
    # See https://docs.python.org/3/library/exceptions.html
    if isinstance(error, _TimeoutError):
        return TimeoutError(str(error))
    elif isinstance(error, ConnectionError):
        return ConnectError(str(error))
    return TransportError(str(error) or type(error).__name__)


def _find_handler(obj: Any, types):
    for cls in type(obj).__mro__:
        try:
            return types[cls]
        except KeyError:
            pass

    return None  # not found
