"""Synchronous HTTP requests with typed, handler-driven responses.

Example:

    import easyrequester

    @dataclass
    class Reply:
        data: str
        statusCode: int
        statusMessage: str

    reply = easyrequester.get("http://127.0.0.1:8080/fetch", Reply)
"""

import easyrequester.integrations
from easyrequester.assembly import Request, build_request
from easyrequester.codec import (
    Codec,
    JsonCodec,
    codec_for,
    plain_codec,
    record_codec,
)
from easyrequester.error import (
    ConnectError,
    DecodeError,
    EasyRequestError,
    EncodeError,
    InvalidRequestError,
    InvalidURLError,
    ResponseConsumedError,
    TimeoutError,
    TransportError,
    UnhandledResponseStatus,
    UnspecifiedTargetTypeError,
)
from easyrequester.handlers import Handlers
from easyrequester.method import HttpMethod
from easyrequester.requester import (
    Builder,
    Requester,
    delete,
    get,
    head,
    options,
    patch,
    post,
    put,
    request,
    request_raw,
    request_text,
    trace,
)
from easyrequester.resolver import requires_record_codec
from easyrequester.transport import (
    Response,
    Transport,
    default_transport,
    set_default_transport,
)

__all__ = [
    "Builder",
    "Codec",
    "ConnectError",
    "DecodeError",
    "EasyRequestError",
    "EncodeError",
    "Handlers",
    "HttpMethod",
    "InvalidRequestError",
    "InvalidURLError",
    "JsonCodec",
    "Request",
    "Requester",
    "Response",
    "ResponseConsumedError",
    "TimeoutError",
    "Transport",
    "TransportError",
    "UnhandledResponseStatus",
    "UnspecifiedTargetTypeError",
    "build_request",
    "codec_for",
    "default_transport",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "plain_codec",
    "post",
    "put",
    "record_codec",
    "request",
    "request_raw",
    "request_text",
    "requires_record_codec",
    "set_default_transport",
    "trace",
]
