"""Helpers for testing code that sends requests with easyrequester."""

from .server import ReceivedRequest, Route, Server

__all__ = [
    "ReceivedRequest",
    "Route",
    "Server",
]
