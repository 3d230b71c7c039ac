"""Equality digests for runtime auth configs.

Two `RuntimeConfig` objects are equal iff their digests are equal. Callers
that pool HTTP clients compare digests to decide whether a client must be
rebuilt after a config reload.

The digest is human readable. Secret values never appear in it: they are
replaced by a short content hash, which is enough to detect a changed
secret without exposing it.
"""

import hashlib
import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpauth_core.auth.sources import AuthSource
    from httpauth_core.headers import Header
    from httpauth_core.tls import TLSSettings

HASH_SIZE = 8


def content_hash(data: bytes | str) -> int:
    """Return a 64-bit hash of data for change detection."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return int.from_bytes(hashlib.blake2b(data, digest_size=HASH_SIZE).digest(), "big")


def secret_hash(data: bytes | str) -> str:
    """Render a secret as a fixed-width hash placeholder."""
    return f"hash({content_hash(data):016x})"


def quote(value: str) -> str:
    """Quote a string for inclusion in a digest."""
    return json.dumps(value, ensure_ascii=False)


def build_digest(
    auth_source: "AuthSource | None",
    tls: "TLSSettings",
    headers: Sequence["Header"],
) -> str:
    """Build the equality digest for a resolved config.

    Headers are rendered in their configured order, so reordering them
    changes the digest even though the resulting requests are equivalent.

    Args:
        auth_source: The active credential source, or None.
        tls: The resolved TLS settings.
        headers: The parsed extra headers.

    Returns:
        A deterministic, secret-free string.
    """
    auth_digest = auth_source.digest() if auth_source is not None else ""
    rendered_headers = ", ".join(f"{h.key}: {h.value}" for h in headers)
    min_version = tls.min_version.name if tls.min_version is not None else ""
    return (
        f"AuthDigest={auth_digest}, Headers=[{rendered_headers}], "
        f"TLSRootCA={tls.root_ca_string()}, TLSCertificate={tls.cert_digest}, "
        f"TLSServerName={quote(tls.server_name)}, TLSInsecureSkipVerify={tls.insecure_skip_verify}, "
        f"TLSMinVersion={min_version}"
    )
