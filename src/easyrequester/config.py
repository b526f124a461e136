DEFAULT_USER_AGENT: str = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36"
)
"""User-Agent sent when the caller does not provide one."""

DEFAULT_CONTENT_TYPE: str = "application/json"
"""Content-Type applied to request bodies unless a header overrides it."""

DEFAULT_MAX_DEPTH: int = 10
"""How deep the type resolver walks nested fields before giving up."""

DEFAULT_TIMEOUT: float = 10.0
"""Timeout in seconds used by the transports created by this package."""

USER_AGENT_HEADER = "User-Agent"
CONTENT_TYPE_HEADER = "Content-Type"
COOKIE_HEADER = "Cookie"
