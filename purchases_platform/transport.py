"""Transport port consumed by backend operations.

The concrete HTTP client (ETag caching, retries, timeouts) lives outside this
package; anything implementing ``HTTPTransport`` can be injected.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from typing import Any, NamedTuple, Protocol, runtime_checkable


class HTTPStatusCode(IntEnum):
    CREATED = 201
    REDIRECT = 300
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500


class HTTPResult(NamedTuple):
    """Outcome of one transport call: ``(status_code, body, error)``."""

    status_code: int
    body: Mapping[str, Any] | None = None
    error: BaseException | None = None


@runtime_checkable
class HTTPTransport(Protocol):
    """Port for the injected HTTP client."""

    def perform_get(self, path: str, headers: Mapping[str, str]) -> HTTPResult:
        ...

    def perform_post(
        self,
        path: str,
        headers: Mapping[str, str],
        body: Mapping[str, Any],
    ) -> HTTPResult:
        ...


def is_success(status_code: int) -> bool:
    """``status < 300``; used by customer info, login, offerings, offers, eligibility."""
    return status_code < HTTPStatusCode.REDIRECT


def is_post_success(status_code: int) -> bool:
    """``status <= 300``; used by attribute, alias and attribution posts."""
    return status_code <= HTTPStatusCode.REDIRECT
