"""Transports that keep the TLS client certificate current.

Python's `ssl` module has no per-handshake client certificate callback, so
certificate rotation happens one layer up: these transports ask their
`ClientTLSContext` to refresh the certificate before each `https` request.
The refresh is cached for a second, so most requests only take a lock.

A certificate that cannot be re-loaded fails the request with
`httpx.ConnectError`, the same way a failed TLS handshake would. Retrying is
left to the caller.

## Example

```python
from httpauth_core.transport import CertificateReloadingTransport
import httpx

ctx = ac.new_tls_context()
transport = CertificateReloadingTransport(
    tls_context=ctx,
    wrapped_transport=httpx.HTTPTransport(verify=ctx.ssl_context),
)

with httpx.Client(transport=transport, auth=ac.auth()) as client:
    response = client.get("https://metrics.example.com/federate")
```
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from httpauth_core.auth.exceptions import CertificateRefreshError

if TYPE_CHECKING:
    from httpauth_core.tls import ClientTLSContext

logger = logging.getLogger(__name__)


def _prepare_request(tls_context: "ClientTLSContext", request: httpx.Request) -> None:
    if request.url.scheme != "https":
        return
    try:
        tls_context.refresh_certificate()
    except CertificateRefreshError as e:
        logger.error(f"Request {request.method} {request.url} aborted: {e}")
        raise httpx.ConnectError(str(e), request=request) from e
    if tls_context.server_name:
        request.extensions["sni_hostname"] = tls_context.server_name


class CertificateReloadingTransport(httpx.BaseTransport):
    """Sync transport refreshing the client certificate before TLS requests.

    Args:
        tls_context: The context whose certificate is refreshed. Its
            `ssl_context` must be the one used by the wrapped transport.
        wrapped_transport: The underlying transport to wrap.
    """

    def __init__(self, *, tls_context: "ClientTLSContext", wrapped_transport: httpx.BaseTransport) -> None:
        self._tls_context = tls_context
        self._wrapped_transport = wrapped_transport

    def __enter__(self):
        """Enter context, delegating to wrapped transport."""
        self._wrapped_transport.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context, delegating to wrapped transport."""
        return self._wrapped_transport.__exit__(exc_type, exc_val, exc_tb)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        _prepare_request(self._tls_context, request)
        return self._wrapped_transport.handle_request(request)

    def close(self) -> None:
        self._wrapped_transport.close()


class AsyncCertificateReloadingTransport(httpx.AsyncBaseTransport):
    """Async variant of `CertificateReloadingTransport`.

    The certificate refresh runs in a worker thread.
    """

    def __init__(self, *, tls_context: "ClientTLSContext", wrapped_transport: httpx.AsyncBaseTransport) -> None:
        self._tls_context = tls_context
        self._wrapped_transport = wrapped_transport

    async def __aenter__(self):
        """Enter async context, delegating to wrapped transport."""
        await self._wrapped_transport.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context, delegating to wrapped transport."""
        return await self._wrapped_transport.__aexit__(exc_type, exc_val, exc_tb)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        # Certificate reloads read files and parse PEM data.
        await asyncio.to_thread(_prepare_request, self._tls_context, request)
        return await self._wrapped_transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._wrapped_transport.aclose()
