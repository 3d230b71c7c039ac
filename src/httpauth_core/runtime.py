"""Runtime auth configs built from declarative records.

`new_config()` validates the declarative auth and TLS settings and returns a
`RuntimeConfig`. A `RuntimeConfig` is long-lived and cheap to use on the
request path:

- `get_auth_header()` returns the `Authorization` value, refreshed at most
  once per second.
- `set_headers()` / `set_httpcore_headers()` apply the extra headers and
  the auth header to outgoing requests.
- `new_tls_context()` / `new_transport()` provide TLS settings whose client
  certificate follows the configured files.
- `digest` (also `str()`) identifies the config; two configs compare equal
  iff their digests are equal.

No threads, timers or file watchers are started.

Example:
    ```python
    from httpauth_core.runtime import new_config
    from httpauth_core.config import BasicAuthConfig, TLSConfig

    ac = new_config(
        base_dir="/etc/scraper",
        basic_auth=BasicAuthConfig(username="alice", password_file="secrets/password"),
        tls_config=TLSConfig(ca_file="ca.pem"),
        headers=["X-Scope-OrgID: team-a"],
    )

    with httpx.Client(transport=ac.new_transport(), auth=ac.auth()) as client:
        client.get("https://metrics.example.com/federate")
    ```
"""

import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import httpcore
import httpx

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.auth.exceptions import ConfigurationError
from httpauth_core.auth.oauth2 import OAuth2TokenManager
from httpauth_core.auth.secret import Secret
from httpauth_core.auth.sources import (
    AuthorizationSource,
    AuthSource,
    BasicAuthSource,
    BearerTokenSource,
    OAuth2Source,
)
from httpauth_core.config import Authorization, BasicAuthConfig, OAuth2Config, TLSConfig
from httpauth_core.digest import build_digest
from httpauth_core.headers import (
    Header,
    RuntimeConfigAuth,
    format_headers,
    parse_headers,
    set_httpcore_request_headers,
    set_request_headers,
)
from httpauth_core.tls import ClientTLSContext, TLSSettings, build_tls_settings
from httpauth_core.transport.tls import AsyncCertificateReloadingTransport, CertificateReloadingTransport
from httpauth_core.ttl import TTLValue

logger = logging.getLogger(__name__)


class RuntimeConfig:
    """Resolved auth and TLS config.

    Built by `new_config()`; not meant to be constructed directly.
    """

    def __init__(
        self,
        *,
        auth_source: AuthSource | None,
        tls: TLSSettings,
        headers: Sequence[Header],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.auth_source = auth_source
        self.tls = tls
        self.headers = list(headers)
        self._auth_header: TTLValue[str] | None = None
        if auth_source is not None:
            self._auth_header = TTLValue(auth_source.produce_header, clock=clock)
        self._digest = build_digest(auth_source, tls, self.headers)

    @property
    def digest(self) -> str:
        return self._digest

    @property
    def root_ca_subjects(self) -> list[str]:
        return self.tls.root_ca_subjects

    @property
    def server_name(self) -> str:
        return self.tls.server_name

    @property
    def insecure_skip_verify(self) -> bool:
        return self.tls.insecure_skip_verify

    @property
    def min_version(self):
        return self.tls.min_version

    def get_auth_header(self) -> str:
        """Return the `Authorization` header value, or "" if none is configured.

        The value is cached for one second; concurrent callers share one
        refresh.
        """
        if self._auth_header is None:
            return ""
        return self._auth_header.get()

    def set_headers(self, request: httpx.Request, set_auth_header: bool = True) -> None:
        """Apply extra headers and, optionally, the auth header to an httpx request."""
        auth_header = self.get_auth_header() if set_auth_header else ""
        set_request_headers(request, self.headers, auth_header)

    def set_httpcore_headers(self, request: httpcore.Request, set_auth_header: bool = True) -> None:
        """Apply extra headers and, optionally, the auth header to an httpcore request."""
        auth_header = self.get_auth_header() if set_auth_header else ""
        set_httpcore_request_headers(request, self.headers, auth_header)

    def headers_no_auth_string(self) -> str:
        """Render the extra headers as `key: value\\r\\n` lines."""
        return format_headers(self.headers)

    def auth(self, set_auth_header: bool = True) -> RuntimeConfigAuth:
        """Return an `httpx.Auth` that applies this config's headers."""
        return RuntimeConfigAuth(self, set_auth_header=set_auth_header)

    def new_tls_context(self) -> ClientTLSContext:
        """Return a new TLS context with its own client certificate cache."""
        return self.tls.new_context()

    def new_transport(self, proxy: str | None = None) -> CertificateReloadingTransport:
        """Return a sync httpx transport using a new TLS context."""
        return self.new_tls_context().new_transport(proxy=proxy)

    def new_async_transport(self, proxy: str | None = None) -> AsyncCertificateReloadingTransport:
        """Return an async httpx transport using a new TLS context."""
        return self.new_tls_context().new_async_transport(proxy=proxy)

    def __str__(self) -> str:
        return self._digest

    def __repr__(self) -> str:
        return f"RuntimeConfig({self._digest!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuntimeConfig):
            return NotImplemented
        return self._digest == other._digest

    def __hash__(self) -> int:
        return hash(self._digest)


def new_config(
    *,
    base_dir: str | Path | None = None,
    authorization: Authorization | None = None,
    basic_auth: BasicAuthConfig | None = None,
    bearer_token: Secret | str | None = None,
    bearer_token_file: str = "",
    oauth2: OAuth2Config | None = None,
    tls_config: TLSConfig | None = None,
    headers: Sequence[str] | None = None,
    resolver: FileResolver | None = None,
    oauth2_transport: httpx.BaseTransport | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> RuntimeConfig:
    """Validate auth and TLS settings and build a `RuntimeConfig`.

    At most one of `authorization`, `basic_auth`, `bearer_token_file`,
    `bearer_token` and `oauth2` may be set.

    Args:
        base_dir: Directory that relative file paths are resolved against.
        authorization: Generic authorization header config.
        basic_auth: Basic auth config.
        bearer_token: Inline bearer token.
        bearer_token_file: Path to a file holding the bearer token.
        oauth2: OAuth2 client-credentials config.
        tls_config: TLS config.
        headers: Extra `"key: value"` headers sent with every request.
        resolver: File resolver; defaults to `FileResolver(base_dir)`.
        oauth2_transport: Transport for OAuth2 token requests; defaults to
            one built from the OAuth2 TLS config and proxy URL.
        clock: Monotonic clock driving all caches.

    Returns:
        The runtime config.

    Raises:
        ConfigurationError: If the settings are invalid. No partially built
            config is returned.
    """
    if resolver is None:
        resolver = FileResolver(base_dir=base_dir)
    bearer_token = Secret.new(bearer_token)

    auth_source: AuthSource | None = None

    def check_conflict(config_key: str) -> None:
        if auth_source is not None:
            raise ConfigurationError(
                f"cannot use both `{auth_source.config_key}` and `{config_key}`", field=config_key
            )

    if authorization is not None:
        if authorization.credentials and authorization.credentials_file:
            raise ConfigurationError(
                f"both `credentials`={authorization.credentials} and "
                f"`credentials_file`={authorization.credentials_file!r} are set",
                field="authorization",
            )
        auth_source = AuthorizationSource(
            type=authorization.type,
            credentials=authorization.credentials,
            credentials_file=(
                resolver.get_filepath(authorization.credentials_file) if authorization.credentials_file else ""
            ),
            resolver=resolver,
        )

    if basic_auth is not None:
        check_conflict("basic_auth")
        if not basic_auth.username:
            raise ConfigurationError("missing `username` in `basic_auth` section", field="basic_auth.username")
        if basic_auth.password and basic_auth.password_file:
            raise ConfigurationError(
                f"both `password`={basic_auth.password} and `password_file`={basic_auth.password_file!r} "
                "are set in `basic_auth` section",
                field="basic_auth",
            )
        auth_source = BasicAuthSource(
            username=basic_auth.username,
            password=basic_auth.password,
            password_file=resolver.get_filepath(basic_auth.password_file) if basic_auth.password_file else "",
            resolver=resolver,
        )

    if bearer_token_file:
        check_conflict("bearer_token_file")
        if bearer_token:
            raise ConfigurationError(
                f"both `bearer_token`={bearer_token} and `bearer_token_file`={bearer_token_file!r} are set",
                field="bearer_token",
            )
        auth_source = BearerTokenSource(token_file=resolver.get_filepath(bearer_token_file), resolver=resolver)

    if bearer_token:
        check_conflict("bearer_token")
        auth_source = BearerTokenSource(token=bearer_token, resolver=resolver)

    manager: OAuth2TokenManager | None = None
    if oauth2 is not None:
        check_conflict("oauth2")
        manager = OAuth2TokenManager(oauth2, resolver, transport=oauth2_transport, clock=clock)
        auth_source = OAuth2Source(oauth2, manager)

    try:
        tls = build_tls_settings(tls_config, resolver, clock=clock)
        parsed_headers = parse_headers(headers)
    except ConfigurationError:
        if manager is not None:
            manager.close()
        raise

    if auth_source is not None:
        logger.debug(f"Using `{auth_source.config_key}` credentials")
    return RuntimeConfig(auth_source=auth_source, tls=tls, headers=parsed_headers, clock=clock)
