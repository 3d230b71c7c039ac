"""Credential components for auth configs.

This module provides:
- `Secret`, a string that renders as `<secret>` in every diagnostic
- `FileResolver`, resolving and reading secret, certificate and CA files
- The exception hierarchy shared by config building and runtime refreshes

Credential sources (`httpauth_core.auth.sources`) and the OAuth2 token
manager (`httpauth_core.auth.oauth2`) are imported from their modules.

Example:
    ```python
    from httpauth_core.auth import FileResolver

    resolver = FileResolver(base_dir="/etc/scraper")
    token = resolver.read_secret(resolver.get_filepath("secrets/token"))
    ```
"""

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.auth.exceptions import (
    AuthConfigError,
    CertificateRefreshError,
    ConfigurationError,
    CredentialFileError,
    RuntimeRefreshError,
    TokenFetchError,
)
from httpauth_core.auth.secret import Secret

__all__ = [
    "AuthConfigError",
    "CertificateRefreshError",
    "ConfigurationError",
    "CredentialFileError",
    "FileResolver",
    "RuntimeRefreshError",
    "Secret",
    "TokenFetchError",
]
