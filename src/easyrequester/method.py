import enum


@enum.unique
class HttpMethod(str, enum.Enum):
    """HTTP methods supported by requesters."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.value

    @property
    def has_body(self) -> bool:
        """Whether requests with this method always carry a body."""
        return self in {HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH}

    @classmethod
    def parse(cls, method) -> "HttpMethod":
        """Returns the HttpMethod for a method name, case-insensitively."""
        if isinstance(method, HttpMethod):
            return method
        try:
            return cls(str(method).strip().upper())
        except ValueError:
            raise ValueError(f"unsupported HTTP method: '{method}'") from None
