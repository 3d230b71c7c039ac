"""httpauth-core - Auth and TLS settings for outgoing HTTP requests.

This library turns declarative auth config into long-lived runtime objects:
- One credential source per config: custom `authorization`, `basic_auth`,
  `bearer_token`/`bearer_token_file`, or OAuth2 client credentials
- Secrets read from files are picked up without restarts (1s cache)
- TLS client certificates reloaded from disk on rotation
- Secret-free equality digests for deciding when clients must be rebuilt

Example:
    ```python
    import httpx
    from httpauth_core import HTTPClientConfig

    hcc = HTTPClientConfig.from_dict(
        {
            "bearer_token_file": "secrets/token",
            "tls_config": {"ca_file": "ca.pem"},
        }
    )
    ac = hcc.new_config(base_dir="/etc/scraper")

    with httpx.Client(transport=ac.new_transport(), auth=ac.auth()) as client:
        client.get("https://metrics.example.com/federate")
    ```
"""

from httpauth_core.auth.exceptions import AuthConfigError, ConfigurationError, RuntimeRefreshError
from httpauth_core.auth.secret import Secret
from httpauth_core.config import (
    Authorization,
    BasicAuthConfig,
    HTTPClientConfig,
    OAuth2Config,
    ProxyClientConfig,
    TLSConfig,
)
from httpauth_core.runtime import RuntimeConfig, new_config

__version__ = "0.1.0"

__all__ = [
    "AuthConfigError",
    "Authorization",
    "BasicAuthConfig",
    "ConfigurationError",
    "HTTPClientConfig",
    "OAuth2Config",
    "ProxyClientConfig",
    "RuntimeConfig",
    "RuntimeRefreshError",
    "Secret",
    "TLSConfig",
    "__version__",
    "new_config",
]
