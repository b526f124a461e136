from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

import httpx

from easyrequester.codec import Codec, codec_for_value
from easyrequester.config import (
    CONTENT_TYPE_HEADER,
    COOKIE_HEADER,
    DEFAULT_CONTENT_TYPE,
    DEFAULT_USER_AGENT,
    USER_AGENT_HEADER,
)
from easyrequester.error import InvalidURLError
from easyrequester.method import HttpMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    """A transport-agnostic description of an HTTP request, ready to be sent.

    The URL already carries the query string and the body is already encoded,
    so transports only have to copy the fields over. Headers are kept as raw
    (name, value) pairs; the headers property returns a fresh copy.
    """

    method: HttpMethod
    url: str
    raw_headers: Tuple[Tuple[bytes, bytes], ...]
    body: Union[None, str, bytes] = None
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def headers(self) -> httpx.Headers:
        return httpx.Headers(list(self.raw_headers))

    @property
    def content(self) -> Optional[bytes]:
        """The body as bytes, or None when the request has no body."""
        if self.body is None:
            return None
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body


def is_blank(value: Any) -> bool:
    """Reports whether a key or value counts as missing: None, or a string
    that is empty or made only of whitespace."""
    return value is None or (isinstance(value, str) and not value.strip())


def build_request(
    method: Union[HttpMethod, str],
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
    body: Any = None,
    content_type: Optional[str] = None,
    codec: Optional[Codec] = None,
    record: Optional[bool] = None,
) -> Request:
    """Assemble a Request from loosely specified parts.

    Args:
        method: HTTP method of the request.

        url: Target URL. Query parameters are appended to its query string.

        params: Query parameters. Entries with a blank key are dropped.

        headers: Request headers. Entries with a blank key or value are
            dropped. A default User-Agent is added unless one is present.

        cookies: Cookies, sent as a single Cookie header. Entries with a blank
            key or value are dropped.

        body: Request body. Strings and bytes are sent as-is, anything else
            is serialized to JSON.

        content_type: Content-Type of the body, used unless the headers
            already set one. Defaults to application/json.

        codec: Codec used to serialize the body. Chosen from the body value
            when not provided.

        record: Forces (True) or prevents (False) the use of the record codec
            when the codec is chosen from the body value.

    Returns:
        The assembled request.

    Raises:
        InvalidURLError: if the URL cannot be parsed.
        EncodeError: if the body cannot be serialized.
    """
    method = HttpMethod.parse(method)
    content_type = content_type or DEFAULT_CONTENT_TYPE

    request_headers = httpx.Headers()
    for key, value in (headers or {}).items():
        if is_blank(key) or is_blank(value):
            logger.debug("dropping blank header %r", key)
            continue
        request_headers[key] = value

    if USER_AGENT_HEADER not in request_headers:
        request_headers[USER_AGENT_HEADER] = DEFAULT_USER_AGENT

    if (body is not None or method.has_body) and (
        CONTENT_TYPE_HEADER not in request_headers
    ):
        request_headers[CONTENT_TYPE_HEADER] = content_type

    cookie = join_cookies(cookies)
    if cookie:
        if COOKIE_HEADER in request_headers:
            cookie = f"{request_headers[COOKIE_HEADER]}; {cookie}"
        request_headers[COOKIE_HEADER] = cookie

    request = Request(
        method=method,
        url=apply_params(url, params),
        raw_headers=tuple(request_headers.raw),
        body=encode_body(body, codec, record),
        content_type=request_headers.get(CONTENT_TYPE_HEADER, content_type),
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "assembled request [%s]%s with headers: %s",
            request.method,
            request.url,
            ", ".join(request.headers.keys()),
        )
    return request


def apply_params(url: str, params: Optional[Mapping[str, Any]]) -> str:
    """Returns the URL with the query parameters appended to its query
    string. The URL is returned untouched when no parameter is left after
    dropping blank keys."""
    pairs = [
        (key, "" if value is None else str(value))
        for key, value in (params or {}).items()
        if not is_blank(key)
    ]
    if not pairs:
        return url

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidURLError(f"invalid URL '{url}': {e}") from e

    for key, value in pairs:
        parsed = parsed.copy_add_param(key, value)
    return str(parsed)


def join_cookies(cookies: Optional[Mapping[str, str]]) -> str:
    """Joins cookies as key=value pairs separated by "; ". Entries with a blank
    key or value are dropped."""
    return "; ".join(
        f"{key}={value}"
        for key, value in (cookies or {}).items()
        if not is_blank(key) and not is_blank(value)
    )


def encode_body(
    body: Any, codec: Optional[Codec] = None, record: Optional[bool] = None
) -> Union[None, str, bytes]:
    """Returns the wire form of a request body."""
    if body is None or isinstance(body, (str, bytes)):
        return body
    if isinstance(body, bytearray):
        return bytes(body)

    if codec is None:
        codec = codec_for_value(body, record)
    return codec.encode(body)
