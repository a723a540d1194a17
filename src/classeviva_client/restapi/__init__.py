"""ClasseViva REST API client package.

Provides an async HTTP client for the ClasseViva REST API that handles
login, session caching and renewal, and exposes the data endpoints as
coroutine methods returning the decoded JSON payloads.

Exports:
    ClassevivaClient: HTTP client with session lifecycle and endpoint catalogue.
    endpoints: Module containing the declarative endpoint table.
    types: Module containing Pydantic models for API responses.
    DEFAULT_TIMEOUT: Default HTTP request timeout.
    RENEWAL_INTERVAL: Default delay between automatic session renewals.
"""

from . import endpoints, types
from .client import (
    DEFAULT_TIMEOUT,
    RENEWAL_INTERVAL,
    ClassevivaClient,
    remove_letters,
)
from .endpoints import format_date

__all__ = [
    "DEFAULT_TIMEOUT",
    "RENEWAL_INTERVAL",
    "ClassevivaClient",
    "endpoints",
    "format_date",
    "remove_letters",
    "types",
]
