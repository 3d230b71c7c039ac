"""Extra request headers and header application.

Extra headers are configured as `"key: value"` strings and are sent with
every request, independent of the credential source. They can be applied to
two request representations with identical semantics:

- `httpx.Request` for regular clients
- `httpcore.Request` for low-level connection pools that skip httpx's
  request model

Each header replaces any existing header with the same (case-insensitive)
name.
"""

import asyncio
from collections.abc import AsyncGenerator, Generator, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpcore
import httpx

from httpauth_core.auth.exceptions import ConfigurationError

if TYPE_CHECKING:
    from httpauth_core.runtime import RuntimeConfig

AUTHORIZATION = "Authorization"

# Encoding httpx uses when a header is set from a str.
HEADER_ENCODING = "utf-8"


@dataclass(frozen=True)
class Header:
    """A single extra header."""

    key: str
    value: str


def parse_headers(headers: Iterable[str] | None) -> list[Header]:
    """Parse `"key: value"` entries.

    Keys and values are stripped of surrounding whitespace.

    Raises:
        ConfigurationError: If an entry has no `:` separator.
    """
    parsed = []
    for h in headers or ():
        key, sep, value = h.partition(":")
        if not sep:
            raise ConfigurationError(
                f'missing ":" in header {h!r}; expecting "key: value" format', field="headers"
            )
        parsed.append(Header(key.strip(), value.strip()))
    return parsed


def format_headers(headers: Sequence[Header]) -> str:
    """Render headers as `key: value\\r\\n` lines."""
    return "".join(f"{h.key}: {h.value}\r\n" for h in headers)


def set_request_headers(request: httpx.Request, headers: Sequence[Header], auth_header: str = "") -> None:
    """Set headers (and a non-empty auth header) on an httpx request."""
    for h in headers:
        request.headers[h.key] = h.value
    if auth_header:
        request.headers[AUTHORIZATION] = auth_header


def set_httpcore_request_headers(
    request: httpcore.Request, headers: Sequence[Header], auth_header: str = ""
) -> None:
    """Set headers (and a non-empty auth header) on an httpcore request."""
    for h in headers:
        _set_raw_header(request.headers, h.key, h.value)
    if auth_header:
        _set_raw_header(request.headers, AUTHORIZATION, auth_header)


def _set_raw_header(raw_headers: list[tuple[bytes, bytes]], key: str, value: str) -> None:
    name = key.encode(HEADER_ENCODING)
    lowered = name.lower()
    raw_headers[:] = [(k, v) for k, v in raw_headers if k.lower() != lowered]
    raw_headers.append((name, value.encode(HEADER_ENCODING)))


class RuntimeConfigAuth(httpx.Auth):
    """httpx auth flow applying a runtime config's headers to every request.

    With `httpx.AsyncClient` the headers are computed in a worker thread so
    file reads and token requests do not block the event loop.

    Example:
        ```python
        client = httpx.Client(auth=ac.auth(), transport=ac.new_transport())
        ```
    """

    def __init__(self, config: "RuntimeConfig", set_auth_header: bool = True) -> None:
        self._config = config
        self._set_auth_header = set_auth_header

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        self._config.set_headers(request, set_auth_header=self._set_auth_header)
        yield request

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        # Header refreshes read files and may call the token endpoint.
        await asyncio.to_thread(self._config.set_headers, request, self._set_auth_header)
        yield request
