"""TLS client settings with hot-reloadable client certificates.

`build_tls_settings()` turns a declarative `TLSConfig` into `TLSSettings`:

- Root CAs are loaded once, from inline PEM (`ca`) or from `ca_file`, which
  may be a local path or an http(s) URL. Without CA material the system
  trust store is used.
- An inline `cert`/`key` pair is parsed once and served unchanged.
- A `cert_file`/`key_file` pair is re-read from disk whenever a TLS
  connection needs it, at most once per second per context, so rotated
  certificates are picked up without a restart.
- `min_version` accepts `TLS10`, `TLS11`, `TLS12` and `TLS13`.

`TLSSettings.new_context()` returns a `ClientTLSContext` that owns an
`ssl.SSLContext` and its own certificate cache. Transports built from the
context keep a bounded pool of established TLS connections, so repeated
requests to the same server reuse an open connection instead of
re-handshaking.

Example:
    ```python
    settings = build_tls_settings(TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver)
    ctx = settings.new_context()
    client = httpx.Client(transport=ctx.new_transport())
    ```
"""

import functools
import logging
import os
import ssl
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, Any

import httpx

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.auth.exceptions import (
    CertificateRefreshError,
    ConfigurationError,
    CredentialFileError,
    RuntimeRefreshError,
)
from httpauth_core.config import TLSConfig
from httpauth_core.digest import content_hash, quote
from httpauth_core.ttl import TTLValue

if TYPE_CHECKING:
    from httpauth_core.transport.tls import AsyncCertificateReloadingTransport, CertificateReloadingTransport

logger = logging.getLogger(__name__)

TLS_VERSIONS: dict[str, ssl.TLSVersion] = {
    "TLS13": ssl.TLSVersion.TLSv1_3,
    "TLS12": ssl.TLSVersion.TLSv1_2,
    "TLS11": ssl.TLSVersion.TLSv1_1,
    "TLS10": ssl.TLSVersion.TLSv1,
}

# Idle TLS connections kept open per transport. Reusing an open connection
# skips the handshake; this is connection pooling, `ssl` has no client-side
# TLS session cache to size.
MAX_KEEPALIVE_CONNECTIONS = 64


def parse_tls_version(value: str) -> ssl.TLSVersion:
    """Map a `TLS1x` string (case-insensitive) to an `ssl.TLSVersion`.

    Raises:
        ConfigurationError: If the version is not supported.
    """
    try:
        return TLS_VERSIONS[value.upper()]
    except KeyError:
        raise ConfigurationError(f"unsupported TLS version {value!r}", field="tls_config.min_version") from None


@dataclass(frozen=True)
class ClientCertificate:
    """A PEM-encoded client certificate chain and its private key."""

    cert_pem: bytes
    key_pem: bytes

    def digest(self) -> int:
        return content_hash(self.key_pem) ^ content_hash(self.cert_pem)


def load_client_certificate(context: ssl.SSLContext, certificate: ClientCertificate) -> None:
    """Load a certificate into an SSL context.

    `ssl.SSLContext.load_cert_chain` only reads from files, so the PEM data
    is written to a private temporary directory first.

    Raises:
        ssl.SSLError: If the certificate or key cannot be parsed, or the key
            does not match the certificate.
    """
    with tempfile.TemporaryDirectory(prefix="httpauth-") as tmp:
        cert_path = os.path.join(tmp, "cert.pem")
        key_path = os.path.join(tmp, "key.pem")
        with open(cert_path, "wb") as f:
            f.write(certificate.cert_pem)
        with open(key_path, "wb") as f:
            f.write(certificate.key_pem)
        # Encrypted keys must fail instead of prompting for a password.
        context.load_cert_chain(cert_path, key_path, password=b"")


def parse_client_certificate(cert_pem: bytes, key_pem: bytes) -> ClientCertificate:
    """Validate a certificate/key pair and return it.

    Raises:
        ssl.SSLError: If the pair cannot be loaded.
    """
    certificate = ClientCertificate(cert_pem=cert_pem, key_pem=key_pem)
    load_client_certificate(ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT), certificate)
    return certificate


def format_subject(subject: tuple[Any, ...]) -> str:
    """Render an `ssl` subject tuple as `name=value, ...`."""
    return ", ".join(f"{name}={value}" for rdn in subject for name, value in rdn)


def _parse_root_ca(data: bytes, source: str) -> tuple[str, list[str]]:
    try:
        pem = data.decode("utf-8")
        if not pem.strip():
            raise ValueError("no PEM data")
        context = ssl.create_default_context(cadata=pem)
    except (UnicodeDecodeError, ValueError, ssl.SSLError) as e:
        raise ConfigurationError(f"cannot parse data from {source}: {e}", field="tls_config.ca") from e
    subjects = [format_subject(cert["subject"]) for cert in context.get_ca_certs()]
    return pem, subjects


def _static_certificate(certificate: ClientCertificate) -> ClientCertificate:
    return certificate


def _read_certificate_files(
    resolver: FileResolver, cert_path: str, key_path: str, cert_file: str, key_file: str
) -> ClientCertificate:
    try:
        return parse_client_certificate(resolver.read_file(cert_path), resolver.read_file(key_path))
    except (CredentialFileError, ssl.SSLError) as e:
        raise CertificateRefreshError(
            f"cannot load TLS certificate from `cert_file`={quote(cert_file)}, `key_file`={quote(key_file)}: {e}"
        ) from e


class TLSSettings:
    """Resolved TLS settings shared by all contexts built from one config.

    Attributes:
        root_ca: PEM text of the configured root CAs, or None for the
            system trust store.
        root_ca_subjects: Subjects of the configured root CAs.
        cert_digest: Change-detection digest of the client certificate
            config (empty when no client certificate is configured).
        server_name: Server name for SNI and hostname verification.
        insecure_skip_verify: Disable certificate verification.
        min_version: Minimum TLS version, or None for the ssl default.
    """

    def __init__(
        self,
        *,
        root_ca: str | None = None,
        root_ca_subjects: list[str] | None = None,
        get_certificate: Callable[[], ClientCertificate] | None = None,
        cert_digest: str = "",
        server_name: str = "",
        insecure_skip_verify: bool = False,
        min_version: ssl.TLSVersion | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root_ca = root_ca
        self.root_ca_subjects = root_ca_subjects or []
        self.get_certificate = get_certificate
        self.cert_digest = cert_digest
        self.server_name = server_name
        self.insecure_skip_verify = insecure_skip_verify
        self.min_version = min_version
        self.clock = clock

    def root_ca_string(self) -> str:
        return "\n".join(self.root_ca_subjects)

    def new_ssl_context(self) -> ssl.SSLContext:
        """Create an `ssl.SSLContext` without a client certificate loaded."""
        if self.root_ca is not None:
            context = ssl.create_default_context(cadata=self.root_ca)
        else:
            context = ssl.create_default_context()
        if self.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.min_version is not None:
            context.minimum_version = self.min_version
        return context

    def new_context(self) -> "ClientTLSContext":
        return ClientTLSContext(self)


class ClientTLSContext:
    """An `ssl.SSLContext` whose client certificate follows the configured files.

    Each context caches the client certificate independently for one
    second. `refresh_certificate()` is called by the transports before each
    TLS request and swaps the certificate loaded into `ssl_context` when its
    content changed.
    """

    def __init__(self, settings: TLSSettings) -> None:
        self.settings = settings
        self.server_name = settings.server_name
        self.ssl_context = settings.new_ssl_context()
        self._certificate: TTLValue[ClientCertificate] | None = None
        if settings.get_certificate is not None:
            self._certificate = TTLValue(settings.get_certificate, clock=settings.clock)
        self._load_lock = Lock()
        self._loaded: ClientCertificate | None = None
        self._loaded_digest: int | None = None

        try:
            self.refresh_certificate()
        except RuntimeRefreshError as e:
            logger.warning(f"Client certificate not loaded yet, will retry on the next TLS request: {e}")

    def get_client_certificate(self) -> ClientCertificate | None:
        """Return the current client certificate (cached for one second).

        Raises:
            CertificateRefreshError: If a file-backed certificate cannot be read.
        """
        if self._certificate is None:
            return None
        return self._certificate.get()

    def refresh_certificate(self) -> None:
        """Make sure `ssl_context` carries the current client certificate.

        Raises:
            CertificateRefreshError: If the certificate cannot be read or loaded.
        """
        certificate = self.get_client_certificate()
        if certificate is None:
            return

        with self._load_lock:
            if certificate is self._loaded:
                return
            digest = certificate.digest()
            if digest != self._loaded_digest:
                try:
                    load_client_certificate(self.ssl_context, certificate)
                except (ssl.SSLError, OSError) as e:
                    raise CertificateRefreshError(f"cannot load TLS client certificate: {e}") from e
                logger.debug(f"Loaded TLS client certificate ({self.settings.cert_digest})")
                self._loaded_digest = digest
            self._loaded = certificate

    def new_transport(
        self, proxy: str | None = None, wrapped_transport: httpx.BaseTransport | None = None
    ) -> "CertificateReloadingTransport":
        """Build a sync httpx transport using this context."""
        from httpauth_core.transport.tls import CertificateReloadingTransport

        if wrapped_transport is None:
            wrapped_transport = httpx.HTTPTransport(
                verify=self.ssl_context,
                proxy=proxy,
                limits=httpx.Limits(max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS),
            )
        return CertificateReloadingTransport(tls_context=self, wrapped_transport=wrapped_transport)

    def new_async_transport(
        self, proxy: str | None = None, wrapped_transport: httpx.AsyncBaseTransport | None = None
    ) -> "AsyncCertificateReloadingTransport":
        """Build an async httpx transport using this context."""
        from httpauth_core.transport.tls import AsyncCertificateReloadingTransport

        if wrapped_transport is None:
            wrapped_transport = httpx.AsyncHTTPTransport(
                verify=self.ssl_context,
                proxy=proxy,
                limits=httpx.Limits(max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS),
            )
        return AsyncCertificateReloadingTransport(tls_context=self, wrapped_transport=wrapped_transport)


def build_tls_settings(
    tls_config: TLSConfig | None,
    resolver: FileResolver,
    clock: Callable[[], float] = time.monotonic,
) -> TLSSettings:
    """Validate a declarative TLS config and resolve its material.

    Args:
        tls_config: The declarative TLS config, or None for defaults.
        resolver: Used to resolve and read `ca_file`, `cert_file` and `key_file`.
        clock: Clock for the certificate cache of contexts built later.

    Raises:
        ConfigurationError: If the CA or certificate material cannot be
            read or parsed, or min_version is unsupported.
    """
    if tls_config is None:
        return TLSSettings(clock=clock)

    get_certificate = None
    cert_digest = ""
    if tls_config.cert or tls_config.key:
        try:
            certificate = parse_client_certificate(tls_config.cert, tls_config.key)
        except ssl.SSLError as e:
            raise ConfigurationError(
                f"cannot load TLS certificate from the provided `cert` and `key` values: {e}", field="tls_config.cert"
            ) from e
        get_certificate = functools.partial(_static_certificate, certificate)
        cert_digest = f"digest(key+cert)={certificate.digest()}"
    elif tls_config.cert_file or tls_config.key_file:
        get_certificate = functools.partial(
            _read_certificate_files,
            resolver,
            resolver.get_filepath(tls_config.cert_file),
            resolver.get_filepath(tls_config.key_file),
            tls_config.cert_file,
            tls_config.key_file,
        )
        # Fail fast on misconfiguration; later failures only affect handshakes.
        try:
            get_certificate()
        except CertificateRefreshError as e:
            raise ConfigurationError(str(e), field="tls_config.cert_file") from e
        cert_digest = f"certFile={quote(tls_config.cert_file)}, keyFile={quote(tls_config.key_file)}"

    root_ca = None
    root_ca_subjects: list[str] = []
    if tls_config.ca:
        root_ca, root_ca_subjects = _parse_root_ca(tls_config.ca, "`ca` value")
    elif tls_config.ca_file:
        path = resolver.get_filepath(tls_config.ca_file)
        try:
            data = resolver.read_file_or_http(path)
        except CredentialFileError as e:
            raise ConfigurationError(
                f"cannot read `ca_file` {quote(tls_config.ca_file)}: {e}", field="tls_config.ca_file"
            ) from e
        root_ca, root_ca_subjects = _parse_root_ca(data, f"`ca_file` {quote(tls_config.ca_file)}")

    min_version = None
    if tls_config.min_version:
        try:
            min_version = parse_tls_version(tls_config.min_version)
        except ConfigurationError as e:
            raise ConfigurationError(f"cannot parse `min_version`: {e}", field=e.field) from e

    return TLSSettings(
        root_ca=root_ca,
        root_ca_subjects=root_ca_subjects,
        get_certificate=get_certificate,
        cert_digest=cert_digest,
        server_name=tls_config.server_name,
        insecure_skip_verify=tls_config.insecure_skip_verify,
        min_version=min_version,
        clock=clock,
    )
