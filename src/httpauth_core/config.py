"""Declarative auth and TLS records.

These dataclasses mirror the `authorization`, `basic_auth`, `bearer_token`,
`oauth2`, `tls_config` and `headers` sections that scrape and remote-write
configs carry. They hold configuration only; `new_config()` turns them into
a `RuntimeConfig` that produces headers and TLS contexts.

Example:
    ```python
    from httpauth_core.config import HTTPClientConfig

    hcc = HTTPClientConfig.from_dict(
        {
            "basic_auth": {"username": "alice", "password_file": "secrets/pass"},
            "tls_config": {"ca_file": "ca.pem", "min_version": "TLS12"},
            "headers": ["X-Scope-OrgID: team-a"],
        }
    )
    ac = hcc.new_config(base_dir="/etc/scraper")
    ```
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

from httpauth_core.auth.exceptions import ConfigurationError
from httpauth_core.auth.secret import Secret
from httpauth_core.digest import content_hash, quote, secret_hash

if TYPE_CHECKING:
    from httpauth_core.auth.credentials import FileResolver
    from httpauth_core.runtime import RuntimeConfig


def _check_keys(section: str, data: Mapping[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"unknown fields in `{section}` section: {', '.join(unknown)}", field=section)


def _as_bytes(value: str | bytes | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _dump(value: Any) -> Any:
    if isinstance(value, Secret):
        return Secret.PLACEHOLDER
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def _to_dict(record: Any, prefix: str = "") -> dict[str, Any]:
    """Serialize a record, omitting empty fields and masking secrets."""
    result = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None or value == "" or value == b"" or value == [] or value == {} or value is False:
            continue
        result[prefix + f.name] = _dump(value)
    return result


@dataclass
class TLSConfig:
    """TLS settings for connections to a server.

    `ca`, `cert` and `key` hold inline PEM data; the `*_file` fields hold
    paths (or, for `ca_file`, an http(s) URL).
    """

    ca: bytes = b""
    ca_file: str = ""
    cert: bytes = b""
    cert_file: str = ""
    key: bytes = field(default=b"", repr=False)
    key_file: str = ""
    server_name: str = ""
    insecure_skip_verify: bool = False
    min_version: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TLSConfig":
        _check_keys("tls_config", data, {f.name for f in fields(cls)})
        return cls(
            ca=_as_bytes(data.get("ca")),
            ca_file=data.get("ca_file", ""),
            cert=_as_bytes(data.get("cert")),
            cert_file=data.get("cert_file", ""),
            key=_as_bytes(data.get("key")),
            key_file=data.get("key_file", ""),
            server_name=data.get("server_name", ""),
            insecure_skip_verify=bool(data.get("insecure_skip_verify", False)),
            min_version=data.get("min_version", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _to_dict(self)
        if self.key:
            result["key"] = Secret.PLACEHOLDER
        return result

    def __str__(self) -> str:
        return (
            f"hash(ca)={content_hash(self.ca)}, ca_file={quote(self.ca_file)}, "
            f"hash(cert)={content_hash(self.cert)}, cert_file={quote(self.cert_file)}, "
            f"hash(key)={content_hash(self.key)}, key_file={quote(self.key_file)}, "
            f"server_name={quote(self.server_name)}, insecure_skip_verify={self.insecure_skip_verify}, "
            f"min_version={quote(self.min_version)}"
        )


@dataclass
class Authorization:
    """Generic `Authorization: <type> <credentials>` header config."""

    type: str = ""
    credentials: Secret | None = None
    credentials_file: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Authorization":
        _check_keys("authorization", data, {"type", "credentials", "credentials_file"})
        return cls(
            type=data.get("type", ""),
            credentials=Secret.new(data.get("credentials")),
            credentials_file=data.get("credentials_file", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass
class BasicAuthConfig:
    """HTTP basic auth config."""

    username: str = ""
    password: Secret | None = None
    password_file: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BasicAuthConfig":
        _check_keys("basic_auth", data, {"username", "password", "password_file"})
        return cls(
            username=data.get("username", ""),
            password=Secret.new(data.get("password")),
            password_file=data.get("password_file", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)

    def new_config(self, base_dir: str | Path | None = None) -> "RuntimeConfig":
        """Build a runtime config that only carries this basic auth."""
        from httpauth_core.runtime import new_config

        return new_config(base_dir=base_dir, basic_auth=self)


@dataclass
class OAuth2Config:
    """OAuth2 client-credentials config."""

    client_id: str = ""
    client_secret: Secret | None = None
    client_secret_file: str = ""
    scopes: list[str] = field(default_factory=list)
    token_url: str = ""
    endpoint_params: dict[str, str] = field(default_factory=dict)
    tls_config: TLSConfig | None = None
    proxy_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OAuth2Config":
        _check_keys("oauth2", data, {f.name for f in fields(cls)})
        tls_config = data.get("tls_config")
        return cls(
            client_id=data.get("client_id", ""),
            client_secret=Secret.new(data.get("client_secret")),
            client_secret_file=data.get("client_secret_file", ""),
            scopes=list(data.get("scopes") or []),
            token_url=data.get("token_url", ""),
            endpoint_params={str(k): str(v) for k, v in (data.get("endpoint_params") or {}).items()},
            tls_config=TLSConfig.from_dict(tls_config) if tls_config is not None else None,
            proxy_url=data.get("proxy_url", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)

    def validate(self) -> None:
        """Check required fields.

        Raises:
            ConfigurationError: If client_id or token_url is missing, or not
                exactly one of client_secret and client_secret_file is set.
        """
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty", field="oauth2.client_id")
        if not self.client_secret and not self.client_secret_file:
            raise ConfigurationError(
                "client_secret or client_secret_file must be set", field="oauth2.client_secret"
            )
        if self.client_secret and self.client_secret_file:
            raise ConfigurationError(
                "client_secret and client_secret_file cannot be set simultaneously", field="oauth2.client_secret"
            )
        if not self.token_url:
            raise ConfigurationError("token_url cannot be empty", field="oauth2.token_url")

    def new_config(self, base_dir: str | Path | None = None) -> "RuntimeConfig":
        """Build a runtime config from the OAuth2 TLS settings only.

        Used for the transport that talks to the token endpoint.
        """
        from httpauth_core.runtime import new_config

        return new_config(base_dir=base_dir, tls_config=self.tls_config)

    def __str__(self) -> str:
        secret = secret_hash(self.client_secret.get_secret_value()) if self.client_secret else '""'
        params = ", ".join(f"{quote(k)}: {quote(v)}" for k, v in sorted(self.endpoint_params.items()))
        scopes = ", ".join(quote(s) for s in self.scopes)
        tls = str(self.tls_config) if self.tls_config is not None else ""
        return (
            f"clientID={quote(self.client_id)}, clientSecret={secret}, "
            f"clientSecretFile={quote(self.client_secret_file)}, scopes=[{scopes}], "
            f"tokenURL={quote(self.token_url)}, endpointParams={{{params}}}, "
            f"tlsConfig={{{tls}}}, proxyURL={quote(self.proxy_url)}"
        )


@dataclass
class HTTPClientConfig:
    """Auth and TLS settings for requests to a server."""

    KEY_PREFIX = ""

    authorization: Authorization | None = None
    basic_auth: BasicAuthConfig | None = None
    bearer_token: Secret | None = None
    bearer_token_file: str = ""
    oauth2: OAuth2Config | None = None
    tls_config: TLSConfig | None = None
    headers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HTTPClientConfig":
        p = cls.KEY_PREFIX
        _check_keys(cls.__name__, data, {p + f.name for f in fields(cls)})
        authorization = data.get(p + "authorization")
        basic_auth = data.get(p + "basic_auth")
        oauth2 = data.get(p + "oauth2")
        tls_config = data.get(p + "tls_config")
        return cls(
            authorization=Authorization.from_dict(authorization) if authorization is not None else None,
            basic_auth=BasicAuthConfig.from_dict(basic_auth) if basic_auth is not None else None,
            bearer_token=Secret.new(data.get(p + "bearer_token")),
            bearer_token_file=data.get(p + "bearer_token_file", ""),
            oauth2=OAuth2Config.from_dict(oauth2) if oauth2 is not None else None,
            tls_config=TLSConfig.from_dict(tls_config) if tls_config is not None else None,
            headers=list(data.get(p + "headers") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self, prefix=self.KEY_PREFIX)

    def new_config(
        self, base_dir: str | Path | None = None, resolver: "FileResolver | None" = None
    ) -> "RuntimeConfig":
        """Validate this config and build a `RuntimeConfig` from it.

        Raises:
            ConfigurationError: If the config is invalid.
        """
        from httpauth_core.runtime import new_config

        return new_config(
            base_dir=base_dir,
            resolver=resolver,
            authorization=self.authorization,
            basic_auth=self.basic_auth,
            bearer_token=self.bearer_token,
            bearer_token_file=self.bearer_token_file,
            oauth2=self.oauth2,
            tls_config=self.tls_config,
            headers=self.headers,
        )


@dataclass
class ProxyClientConfig(HTTPClientConfig):
    """Auth and TLS settings for requests to a proxy.

    Same fields as `HTTPClientConfig`; the declarative keys carry a
    `proxy_` prefix (`proxy_basic_auth`, `proxy_tls_config`, ...).
    """

    KEY_PREFIX = "proxy_"
