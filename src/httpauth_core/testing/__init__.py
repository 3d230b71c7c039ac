"""Testing utilities for code using httpauth-core.

This module provides a controllable clock for the one-second caches and a
fake OAuth2 token endpoint for `httpx.MockTransport`.

Example:
    ```python
    import httpx
    from httpauth_core.testing import FakeClock, create_token_handler


    def test_token_is_cached():
        clock = FakeClock()
        handler = create_token_handler(expires_in=3600)
        ac = new_config(oauth2=oauth2_config, oauth2_transport=httpx.MockTransport(handler), clock=clock)

        ac.get_auth_header()
        clock.advance(2)
        ac.get_auth_header()
        assert handler.calls == 1
    ```
"""

from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import parse_qs

import httpx


class FakeClock:
    """Monotonic clock that only moves when told to.

    Pass an instance wherever a `clock` callable is accepted.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TokenHandler:
    """`httpx.MockTransport` handler emulating a client-credentials token endpoint.

    Attributes:
        calls: Number of token requests served.
        requests: The form fields of each request, in order.
    """

    def __init__(
        self,
        access_token: str | Callable[[int], str] = "token",
        token_type: str = "Bearer",
        expires_in: int | None = None,
        status_code: int = 200,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        self.access_token = access_token
        self.token_type = token_type
        self.expires_in = expires_in
        self.status_code = status_code
        self.extra = dict(extra or {})
        self.calls = 0
        self.requests: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        form = parse_qs(request.content.decode(), keep_blank_values=True)
        self.requests.append({k: v[0] for k, v in form.items()})

        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "invalid_client"})

        if callable(self.access_token):
            access_token = self.access_token(self.calls)
        else:
            access_token = self.access_token
        body: dict[str, Any] = {"access_token": access_token, "token_type": self.token_type}
        if self.expires_in is not None:
            body["expires_in"] = self.expires_in
        body.update(self.extra)
        return httpx.Response(200, json=body)


def create_token_handler(
    access_token: str | Callable[[int], str] = "token",
    token_type: str = "Bearer",
    expires_in: int | None = None,
    status_code: int = 200,
    extra: Mapping[str, Any] | None = None,
) -> TokenHandler:
    """Create a fake token endpoint handler.

    Args:
        access_token: Token to return, or a function of the call count
            (starting at 1) returning it.
        token_type: Value of `token_type` in the response.
        expires_in: Value of `expires_in`, omitted when None.
        status_code: Status to respond with; non-200 returns an OAuth2
            error body.
        extra: Additional response fields.

    Returns:
        A handler for `httpx.MockTransport`.
    """
    return TokenHandler(
        access_token=access_token,
        token_type=token_type,
        expires_in=expires_in,
        status_code=status_code,
        extra=extra,
    )


__all__ = ["FakeClock", "TokenHandler", "create_token_handler"]
