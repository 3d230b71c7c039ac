"""OAuth2 client-credentials tokens with rotating client secrets.

`ClientCredentialsTokenSource` performs the non-interactive Client
Credentials grant (RFC 6749 section 4.4) and caches the access token until
shortly before it expires.

`OAuth2TokenManager` owns the dedicated HTTP client used for the token
endpoint (with the OAuth2-specific TLS settings and optional proxy) and
handles `client_secret_file` rotation: whenever the secret file content
changes, the token source is replaced, which drops the cached token.

Token URL, scopes and endpoint params are fixed for the lifetime of a
manager; only the client secret is picked up live.
"""

import hmac
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Any

import httpx

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.auth.exceptions import ConfigurationError, CredentialFileError, TokenFetchError
from httpauth_core.config import OAuth2Config
from httpauth_core.tls import build_tls_settings
from httpauth_core.ttl import TTLValue

logger = logging.getLogger(__name__)

# Tokens are refreshed this many seconds before they expire.
EXPIRY_DELTA = 10.0

_STANDARD_PARAMS = frozenset(["grant_type", "client_id", "client_secret", "scope"])

_TOKEN_TYPES = {"bearer": "Bearer", "mac": "MAC", "basic": "Basic"}


@dataclass(frozen=True)
class Token:
    """An OAuth2 access token.

    Attributes:
        access_token: The token value.
        token_type: The token type as returned by the server.
        expiry: `time.monotonic()`-based expiry, or None if it never expires.
    """

    access_token: str
    token_type: str = ""
    expiry: float | None = None

    @property
    def type(self) -> str:
        """Return the normalized token type (`Bearer` when unset)."""
        if not self.token_type:
            return "Bearer"
        return _TOKEN_TYPES.get(self.token_type.lower(), self.token_type)

    def valid(self, now: float) -> bool:
        if not self.access_token:
            return False
        return self.expiry is None or now < self.expiry - EXPIRY_DELTA


class ClientCredentialsTokenSource:
    """Fetch and cache client-credentials access tokens.

    `token()` returns the cached token while it is valid and otherwise
    fetches a new one. Concurrent callers wait for a single fetch.

    Args:
        client: HTTP client used for token requests.
        client_id: OAuth2 client id.
        client_secret: OAuth2 client secret.
        token_url: Token endpoint URL.
        scopes: Requested scopes.
        endpoint_params: Extra form parameters for the token request.
        clock: Monotonic clock used for expiry tracking.
    """

    def __init__(
        self,
        *,
        client: httpx.Client,
        client_id: str,
        client_secret: str,
        token_url: str,
        scopes: Sequence[str] = (),
        endpoint_params: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._scopes = list(scopes)
        self._endpoint_params = dict(endpoint_params or {})
        self._clock = clock
        self._lock = Lock()
        self._token: Token | None = None

    def token(self) -> Token:
        """Return a valid token, fetching a new one if needed.

        Raises:
            TokenFetchError: If the token endpoint does not return a token.
        """
        with self._lock:
            if self._token is not None and self._token.valid(self._clock()):
                return self._token
            self._token = self._fetch_token()
            return self._token

    def _fetch_token(self) -> Token:
        """POST to the token endpoint and parse the response."""
        data: dict[str, str] = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        if self._scopes:
            data["scope"] = " ".join(self._scopes)
        data.update(self._endpoint_params)

        try:
            response = self._client.post(
                self._token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise TokenFetchError(
                f"Token request failed with status {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TokenFetchError(f"Token request failed: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise TokenFetchError(f"Token request failed: invalid token URL: {exc}") from exc
        except ValueError as exc:
            raise TokenFetchError(f"Token response is not valid JSON: {exc}") from exc

        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            raise TokenFetchError("Token response missing 'access_token' field")
        if not isinstance(token_data["access_token"], str):
            raise TokenFetchError("Token response has non-string 'access_token'")
        token_type = token_data.get("token_type") or ""
        if not isinstance(token_type, str):
            raise TokenFetchError(f"Token response has invalid 'token_type': {token_type!r}")

        expiry = None
        expires_in = token_data.get("expires_in")
        if expires_in:
            try:
                expiry = self._clock() + float(expires_in)
            except (TypeError, ValueError):
                raise TokenFetchError(f"Token response has invalid 'expires_in': {expires_in!r}") from None

        logger.debug(f"Fetched OAuth2 token from {self._token_url}")
        return Token(
            access_token=token_data["access_token"],
            token_type=token_type,
            expiry=expiry,
        )


def _check_url(url: str, name: str, schemes: tuple[str, ...]) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"cannot parse {name}={url!r}: {e}", field=f"oauth2.{name}") from e
    if parsed.scheme not in schemes or not parsed.host:
        raise ConfigurationError(
            f"cannot parse {name}={url!r}: expecting {'/'.join(schemes)} URL with a host", field=f"oauth2.{name}"
        )


class OAuth2TokenManager:
    """Manage the token source for an OAuth2 config.

    Args:
        config: The OAuth2 config. Validated on construction.
        resolver: Resolves and reads `client_secret_file` and the TLS files.
        transport: Optional transport for token requests. Defaults to a
            transport built from `config.tls_config` and `config.proxy_url`.
        clock: Monotonic clock for secret and token caches.

    Raises:
        ConfigurationError: If the config is invalid, the secret file cannot
            be read, the TLS config is invalid, or token_url or proxy_url
            cannot be parsed.
    """

    def __init__(
        self,
        config: OAuth2Config,
        resolver: FileResolver,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config.validate()
        for key in config.endpoint_params:
            if key in _STANDARD_PARAMS and key != "grant_type":
                raise ConfigurationError(
                    f"endpoint_params cannot overwrite parameter {key!r}", field="oauth2.endpoint_params"
                )

        _check_url(config.token_url, "token_url", ("http", "https"))

        self.config = config
        self._clock = clock
        self._lock = Lock()

        self._client_secret_file: str | None = None
        self._secret_value: TTLValue[str] | None = None
        if config.client_secret_file:
            self._client_secret_file = resolver.get_filepath(config.client_secret_file)
            secret_path = self._client_secret_file
            self._secret_value = TTLValue(lambda: resolver.read_secret(secret_path), clock=clock)
            try:
                self._client_secret = self._secret_value.get()
            except CredentialFileError as e:
                raise ConfigurationError(
                    f"cannot read OAuth2 secret from {self._client_secret_file!r}: {e}",
                    field="oauth2.client_secret_file",
                ) from e
        else:
            self._client_secret = config.client_secret.get_secret_value()

        try:
            tls_settings = build_tls_settings(config.tls_config, resolver, clock=clock)
        except ConfigurationError as e:
            raise ConfigurationError(f"cannot initialize TLS config for OAuth2: {e}", field=e.field) from e

        if config.proxy_url:
            _check_url(config.proxy_url, "proxy_url", ("http", "https", "socks5"))

        tls_context = tls_settings.new_context()
        if transport is None:
            self._client = httpx.Client(transport=tls_context.new_transport(proxy=config.proxy_url or None))
        else:
            self._client = httpx.Client(transport=tls_context.new_transport(wrapped_transport=transport))
        self._token_source = self._new_token_source(self._client_secret)

    def _new_token_source(self, client_secret: str) -> ClientCredentialsTokenSource:
        return ClientCredentialsTokenSource(
            client=self._client,
            client_id=self.config.client_id,
            client_secret=client_secret,
            token_url=self.config.token_url,
            scopes=self.config.scopes,
            endpoint_params=self.config.endpoint_params,
            clock=self._clock,
        )

    def close(self) -> None:
        """Close the HTTP client used for token requests."""
        self._client.close()

    def get_token_source(self) -> ClientCredentialsTokenSource:
        """Return the token source for the current client secret.

        With `client_secret_file`, the file is re-read (at most once per
        second) and a changed secret replaces the token source.

        Raises:
            CredentialFileError: If the secret file cannot be read.
        """
        with self._lock:
            if self._secret_value is None:
                return self._token_source
            new_secret = self._secret_value.get()
            if hmac.compare_digest(new_secret.encode(), self._client_secret.encode()):
                return self._token_source
            logger.info(f"OAuth2 client secret in {self._client_secret_file!r} changed; discarding cached token")
            self._client_secret = new_secret
            self._token_source = self._new_token_source(new_secret)
            return self._token_source
