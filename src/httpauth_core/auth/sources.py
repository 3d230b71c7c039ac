"""Credential sources producing `Authorization` header values.

Each configured credential mechanism becomes one `AuthSource`:

| Source | Header |
|--------|--------|
| `AuthorizationSource` | `<type> <credentials>` (type defaults to `Bearer`) |
| `BasicAuthSource` | `Basic base64(<username>:<password>)` |
| `BearerTokenSource` | `Bearer <token>` |
| `OAuth2Source` | `<token type> <access token>` |

File-backed secrets are re-read every time `produce_header()` runs. The
caller (`RuntimeConfig`) caches the result for a second, so rotated files
are picked up without rebuilding the config.

`produce_header()` never raises: failures are logged and an empty value is
returned.
`digest()` renders the source for config equality checks, with secret
values replaced by hashes.
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.auth.exceptions import RuntimeRefreshError
from httpauth_core.auth.oauth2 import OAuth2TokenManager
from httpauth_core.auth.secret import Secret
from httpauth_core.config import OAuth2Config
from httpauth_core.digest import quote, secret_hash

logger = logging.getLogger(__name__)


class AuthSource(ABC):
    """Base class for credential sources.

    Subclasses set `config_key` to the declarative section they come from
    and implement `produce_header()` and `digest()`.
    """

    config_key: str = ""

    @abstractmethod
    def produce_header(self) -> str:
        """Return the current `Authorization` header value, or "" on failure."""
        ...

    @abstractmethod
    def digest(self) -> str:
        """Return a secret-free description for equality digests."""
        ...


def _basic_header(username: str, password: str) -> str:
    token = f"{username}:{password}".encode()
    return "Basic " + base64.b64encode(token).decode("ascii")


@dataclass(frozen=True)
class AuthorizationSource(AuthSource):
    """`authorization` section: custom type with inline or file credentials.

    Attributes:
        type: Configured type; empty means `Bearer`.
        credentials: Inline credentials.
        credentials_file: Resolved path of the credentials file.
    """

    config_key = "authorization"

    type: str = ""
    credentials: Secret | None = None
    credentials_file: str = ""
    resolver: FileResolver = field(default_factory=FileResolver, repr=False, compare=False)

    @property
    def auth_type(self) -> str:
        return self.type or "Bearer"

    def produce_header(self) -> str:
        if self.credentials_file:
            try:
                token = self.resolver.read_secret(self.credentials_file)
            except RuntimeRefreshError as e:
                logger.error(f"cannot read credentials from `credentials_file`={self.credentials_file!r}: {e}")
                return ""
        else:
            token = self.credentials.get_secret_value() if self.credentials else ""
        return f"{self.auth_type} {token}"

    def digest(self) -> str:
        if self.credentials_file:
            return f"custom(type={quote(self.type)}, credsFile={quote(self.credentials_file)})"
        creds = self.credentials.get_secret_value() if self.credentials else ""
        return f"custom(type={quote(self.type)}, creds={secret_hash(creds)})"


@dataclass(frozen=True)
class BasicAuthSource(AuthSource):
    """`basic_auth` section: username with inline or file password."""

    config_key = "basic_auth"

    username: str = ""
    password: Secret | None = None
    password_file: str = ""
    resolver: FileResolver = field(default_factory=FileResolver, repr=False, compare=False)

    def produce_header(self) -> str:
        if self.password_file:
            try:
                password = self.resolver.read_secret(self.password_file)
            except RuntimeRefreshError as e:
                logger.error(
                    f"cannot read password from `password_file`={self.password_file!r} "
                    f"set in `basic_auth` section: {e}"
                )
                return ""
        else:
            password = self.password.get_secret_value() if self.password else ""
        return _basic_header(self.username, password)

    def digest(self) -> str:
        if self.password_file:
            return f"basic(username={quote(self.username)}, passwordFile={quote(self.password_file)})"
        password = self.password.get_secret_value() if self.password else ""
        return f"basic(username={quote(self.username)}, password={secret_hash(password)})"


@dataclass(frozen=True)
class BearerTokenSource(AuthSource):
    """`bearer_token` or `bearer_token_file`."""

    token: Secret | None = None
    token_file: str = ""
    resolver: FileResolver = field(default_factory=FileResolver, repr=False, compare=False)

    @property
    def config_key(self) -> str:  # type: ignore[override]
        return "bearer_token_file" if self.token_file else "bearer_token"

    def produce_header(self) -> str:
        if self.token_file:
            try:
                token = self.resolver.read_secret(self.token_file)
            except RuntimeRefreshError as e:
                logger.error(f"cannot read bearer token from `bearer_token_file`={self.token_file!r}: {e}")
                return ""
        else:
            token = self.token.get_secret_value() if self.token else ""
        return "Bearer " + token

    def digest(self) -> str:
        if self.token_file:
            return f"bearer(tokenFile={quote(self.token_file)})"
        token = self.token.get_secret_value() if self.token else ""
        return f"bearer(token={secret_hash(token)})"


class OAuth2Source(AuthSource):
    """`oauth2` section: client-credentials access tokens."""

    config_key = "oauth2"

    def __init__(self, config: OAuth2Config, manager: OAuth2TokenManager) -> None:
        self.config = config
        self.manager = manager

    def produce_header(self) -> str:
        try:
            token = self.manager.get_token_source().token()
        except RuntimeRefreshError as e:
            logger.error(f"cannot get OAuth2 token from {self.config.token_url!r}: {e}")
            return ""
        return f"{token.type} {token.access_token}"

    def digest(self) -> str:
        return f"oauth2({self.config})"
