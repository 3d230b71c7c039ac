"""Transport layer components for TLS-aware httpx clients.

Transports here wrap httpx's `HTTPTransport`/`AsyncHTTPTransport` and keep
the TLS client certificate of a `ClientTLSContext` current.

Example:
    ```python
    ac = HTTPClientConfig.from_dict(cfg).new_config(base_dir)

    with httpx.Client(transport=ac.new_transport(), auth=ac.auth()) as client:
        client.get("https://metrics.example.com/federate")
    ```
"""

from httpauth_core.transport.tls import AsyncCertificateReloadingTransport, CertificateReloadingTransport

__all__ = [
    "AsyncCertificateReloadingTransport",
    "CertificateReloadingTransport",
]
