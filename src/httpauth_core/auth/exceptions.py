"""Exceptions raised while building and refreshing auth configs.

Two families exist:

- `ConfigurationError` is raised while a `RuntimeConfig` is being built.
  It is fatal: no partially built config is ever returned.
- `RuntimeRefreshError` and its subclasses describe failures while a header,
  token or certificate is refreshed on the request path. Header refreshes
  log them and fall back to an empty header; certificate refreshes surface
  them to the transport.

Example:
    ```python
    from httpauth_core.auth.exceptions import ConfigurationError

    try:
        ac = new_config(basic_auth=ba, bearer_token="abc")
    except ConfigurationError as e:
        print(f"refusing to start client: {e}")
    ```
"""


class AuthConfigError(Exception):
    """Base exception for all auth config errors.

    Catch this to handle both construction and refresh failures.
    """

    pass


class ConfigurationError(AuthConfigError):
    """Raised when the declarative input cannot be turned into a config.

    Covers conflicting credential sources, malformed PEM data, unsupported
    TLS versions, malformed header entries and missing OAuth2 fields.

    Attributes:
        field: The declarative field that caused the error (if known).
    """

    def __init__(self, message: str, field: str | None = None):
        """Initialize ConfigurationError.

        Args:
            message: Error message describing the invalid input.
            field: Optional name of the offending field.
        """
        super().__init__(message)
        self.field = field


class RuntimeRefreshError(AuthConfigError):
    """Base exception for recoverable failures during a lazy refresh."""

    pass


class CredentialFileError(RuntimeRefreshError):
    """Raised when a secret, certificate or CA file cannot be read.

    Attributes:
        path: The resolved path or URL that could not be read.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class TokenFetchError(RuntimeRefreshError):
    """Raised when the OAuth2 token endpoint does not return a usable token."""

    pass


class CertificateRefreshError(RuntimeRefreshError):
    """Raised when a file-backed client certificate cannot be re-loaded."""

    pass
