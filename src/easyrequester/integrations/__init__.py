"""Adapters for the HTTP client libraries requests can be sent with.

Importing an adapter registers the exception types of its library, so that
transport_error_for maps them to TransportError subclasses. The package
loads every adapter whose library is installed.
"""

import importlib
import logging
from typing import List

logger = logging.getLogger(__name__)

LIBRARIES = ("httpx", "requests")


def load() -> List[str]:
    """Import the adapter of each installed library and return the names of
    the libraries that were loaded."""
    loaded = []
    for library in LIBRARIES:
        try:
            importlib.import_module(f"{__name__}.{library}")
        except ImportError as e:
            logger.debug("%s integration unavailable: %s", library, e)
            continue
        loaded.append(library)
    return loaded


load()
