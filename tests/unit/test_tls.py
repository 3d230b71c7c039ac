"""Tests for TLS settings and client certificate reloading."""

import ssl

import pytest

from httpauth_core.auth.exceptions import CertificateRefreshError, ConfigurationError
from httpauth_core.config import TLSConfig
from httpauth_core.tls import (
    ClientTLSContext,
    TLSSettings,
    build_tls_settings,
    parse_client_certificate,
    parse_tls_version,
)

TEST_CA_SUBJECT = "organizationName=httpauth-core tests, commonName=Test Root CA"
OTHER_CA_SUBJECT = "organizationName=httpauth-core tests, commonName=Other Root CA"


class TestParseTLSVersion:
    """Test min_version parsing."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("TLS10", ssl.TLSVersion.TLSv1),
            ("TLS11", ssl.TLSVersion.TLSv1_1),
            ("TLS12", ssl.TLSVersion.TLSv1_2),
            ("TLS13", ssl.TLSVersion.TLSv1_3),
            ("tls12", ssl.TLSVersion.TLSv1_2),
        ],
    )
    def test_supported_versions(self, value, expected):
        """Test that supported version strings map case-insensitively."""
        assert parse_tls_version(value) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["TLS14", "SSL3", "1.2"])
    def test_unsupported_version(self, value):
        """Test that unsupported versions are rejected."""
        with pytest.raises(ConfigurationError, match="unsupported TLS version"):
            parse_tls_version(value)


class TestBuildTLSSettings:
    """Test validation and resolution of TLSConfig."""

    @pytest.mark.unit
    def test_none_gives_defaults(self, resolver):
        """Test that no TLS config gives default settings."""
        settings = build_tls_settings(None, resolver)

        assert settings.root_ca is None
        assert settings.root_ca_subjects == []
        assert settings.get_certificate is None
        assert settings.cert_digest == ""
        assert settings.min_version is None

    @pytest.mark.unit
    def test_min_version(self, resolver):
        """Test that min_version is mapped to an ssl.TLSVersion."""
        settings = build_tls_settings(TLSConfig(min_version="TLS12"), resolver)

        assert settings.min_version == ssl.TLSVersion.TLSv1_2

    @pytest.mark.unit
    def test_bad_min_version(self, resolver):
        """Test that a bad min_version is reported with context."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_tls_settings(TLSConfig(min_version="TLS99"), resolver)

        assert "cannot parse `min_version`" in str(exc_info.value)

    @pytest.mark.unit
    def test_inline_ca(self, resolver, fixtures_dir):
        """Test that an inline CA is parsed with its subject."""
        settings = build_tls_settings(TLSConfig(ca=(fixtures_dir / "ca.pem").read_bytes()), resolver)

        assert settings.root_ca_subjects == [TEST_CA_SUBJECT]
        assert settings.root_ca_string() == TEST_CA_SUBJECT

    @pytest.mark.unit
    def test_ca_bundle_subjects(self, resolver, fixtures_dir):
        """Test that every certificate of a CA bundle is listed."""
        bundle = (fixtures_dir / "ca.pem").read_bytes() + (fixtures_dir / "other-ca.pem").read_bytes()
        settings = build_tls_settings(TLSConfig(ca=bundle), resolver)

        assert sorted(settings.root_ca_subjects) == sorted([TEST_CA_SUBJECT, OTHER_CA_SUBJECT])

    @pytest.mark.unit
    def test_ca_file_relative_to_base_dir(self, tmp_path, resolver, fixtures_dir):
        """Test that a relative ca_file is resolved against the base dir."""
        (tmp_path / "ca.pem").write_bytes((fixtures_dir / "ca.pem").read_bytes())

        settings = build_tls_settings(TLSConfig(ca_file="ca.pem"), resolver)

        assert settings.root_ca_subjects == [TEST_CA_SUBJECT]

    @pytest.mark.unit
    def test_ca_wins_over_ca_file(self, resolver, fixtures_dir):
        """Test that inline CA data takes precedence over ca_file."""
        settings = build_tls_settings(
            TLSConfig(ca=(fixtures_dir / "ca.pem").read_bytes(), ca_file="missing.pem"), resolver
        )

        assert settings.root_ca_subjects == [TEST_CA_SUBJECT]

    @pytest.mark.unit
    def test_missing_ca_file(self, resolver):
        """Test that a missing ca_file is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_tls_settings(TLSConfig(ca_file="missing.pem"), resolver)

        assert "cannot read `ca_file`" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [b"not a certificate", b"   \n", b"\xff\xfe"])
    def test_malformed_ca(self, resolver, data):
        """Test that malformed inline CA data is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_tls_settings(TLSConfig(ca=data), resolver)

        assert "cannot parse data" in str(exc_info.value)

    @pytest.mark.unit
    def test_malformed_ca_file(self, tmp_path, resolver):
        """Test that a malformed ca_file is rejected."""
        (tmp_path / "ca.pem").write_text("garbage")

        with pytest.raises(ConfigurationError, match="cannot parse data from `ca_file`"):
            build_tls_settings(TLSConfig(ca_file="ca.pem"), resolver)

    @pytest.mark.unit
    def test_inline_certificate(self, resolver, fixtures_dir):
        """Test that an inline certificate pair is served unchanged."""
        cert = (fixtures_dir / "client.pem").read_bytes()
        key = (fixtures_dir / "client-key.pem").read_bytes()

        settings = build_tls_settings(TLSConfig(cert=cert, key=key), resolver)

        assert settings.cert_digest.startswith("digest(key+cert)=")
        certificate = settings.get_certificate()
        assert certificate.cert_pem == cert
        assert settings.get_certificate() is certificate

    @pytest.mark.unit
    def test_inline_certificate_key_mismatch(self, resolver, fixtures_dir):
        """Test that a certificate with the wrong key is rejected."""
        config = TLSConfig(
            cert=(fixtures_dir / "client.pem").read_bytes(),
            key=(fixtures_dir / "client2-key.pem").read_bytes(),
        )

        with pytest.raises(ConfigurationError, match="cannot load TLS certificate from the provided"):
            build_tls_settings(config, resolver)

    @pytest.mark.unit
    def test_certificate_files(self, resolver, cert_files):
        """Test that file-backed certificates are loaded and named in the digest."""
        settings = build_tls_settings(TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver)

        assert settings.cert_digest == 'certFile="client.pem", keyFile="client-key.pem"'
        assert settings.get_certificate().cert_pem == cert_files[0].read_bytes()

    @pytest.mark.unit
    def test_missing_certificate_file_fails_fast(self, resolver):
        """Test that missing certificate files fail at build time."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_tls_settings(TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver)

        assert "cannot load TLS certificate from `cert_file`" in str(exc_info.value)

    @pytest.mark.unit
    def test_server_name_and_insecure(self, resolver):
        """Test that server name and skip-verify are carried over."""
        settings = build_tls_settings(TLSConfig(server_name="metrics.internal", insecure_skip_verify=True), resolver)

        assert settings.server_name == "metrics.internal"
        assert settings.insecure_skip_verify is True


class TestSSLContext:
    """Test ssl.SSLContext construction."""

    @pytest.mark.unit
    def test_default_context_verifies(self):
        """Test that the default context verifies hostnames and certificates."""
        context = TLSSettings().new_ssl_context()

        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname is True

    @pytest.mark.unit
    def test_insecure_skip_verify(self):
        """Test that skip-verify disables verification."""
        context = TLSSettings(insecure_skip_verify=True).new_ssl_context()

        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    @pytest.mark.unit
    def test_min_version(self):
        """Test that the minimum version is applied to the SSL context."""
        context = TLSSettings(min_version=ssl.TLSVersion.TLSv1_3).new_ssl_context()

        assert context.minimum_version == ssl.TLSVersion.TLSv1_3

    @pytest.mark.unit
    def test_custom_root_ca_only(self, resolver, fixtures_dir):
        """Test that a custom root CA replaces the system trust store."""
        settings = build_tls_settings(TLSConfig(ca=(fixtures_dir / "ca.pem").read_bytes()), resolver)
        context = settings.new_ssl_context()

        subjects = [dict(rdn[0] for rdn in c["subject"])["commonName"] for c in context.get_ca_certs()]
        assert subjects == ["Test Root CA"]


class TestClientTLSContext:
    """Test client certificate caching and rotation."""

    @pytest.mark.unit
    def test_without_certificate(self):
        """Test that a context without a certificate returns None."""
        ctx = ClientTLSContext(TLSSettings())

        assert ctx.get_client_certificate() is None
        ctx.refresh_certificate()

    @pytest.mark.unit
    def test_certificate_rotation(self, tmp_path, resolver, cert_files, fixtures_dir, clock):
        """Test that rotated files are loaded after the cache window."""
        settings = build_tls_settings(
            TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver, clock=clock
        )
        ctx = settings.new_context()
        first = ctx.get_client_certificate()

        cert_files[0].write_bytes((fixtures_dir / "client2.pem").read_bytes())
        cert_files[1].write_bytes((fixtures_dir / "client2-key.pem").read_bytes())

        # Cached within the one second window.
        clock.advance(0.5)
        assert ctx.get_client_certificate() is first

        clock.advance(1)
        ctx.refresh_certificate()
        second = ctx.get_client_certificate()
        assert second.cert_pem == (fixtures_dir / "client2.pem").read_bytes()
        assert second.digest() != first.digest()

    @pytest.mark.unit
    def test_contexts_cache_independently(self, resolver, cert_files, clock):
        """Test that each context keeps its own certificate cache."""
        settings = build_tls_settings(
            TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver, clock=clock
        )
        ctx_a = settings.new_context()
        ctx_b = settings.new_context()

        assert ctx_a.ssl_context is not ctx_b.ssl_context
        assert ctx_a.get_client_certificate() is not ctx_b.get_client_certificate()

    @pytest.mark.unit
    def test_unreadable_certificate_after_rotation(self, resolver, cert_files, clock):
        """Test that a vanished file raises CertificateRefreshError."""
        settings = build_tls_settings(
            TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver, clock=clock
        )
        ctx = settings.new_context()

        cert_files[0].unlink()
        clock.advance(2)

        with pytest.raises(CertificateRefreshError, match="cannot load TLS certificate"):
            ctx.refresh_certificate()

    @pytest.mark.unit
    def test_half_written_certificate(self, resolver, cert_files, fixtures_dir, clock):
        """Test that a mismatched pair mid-rotation raises CertificateRefreshError."""
        settings = build_tls_settings(
            TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver, clock=clock
        )
        ctx = settings.new_context()

        # New cert written, key not yet.
        cert_files[0].write_bytes((fixtures_dir / "client2.pem").read_bytes())
        clock.advance(2)

        with pytest.raises(CertificateRefreshError):
            ctx.refresh_certificate()

    @pytest.mark.unit
    def test_context_creation_tolerates_missing_files(self, resolver, cert_files, clock, caplog):
        """Test that a context can be created while files are missing."""
        import logging

        caplog.set_level(logging.WARNING)
        settings = build_tls_settings(
            TLSConfig(cert_file="client.pem", key_file="client-key.pem"), resolver, clock=clock
        )
        cert_files[0].unlink()

        ctx = settings.new_context()

        assert isinstance(ctx, ClientTLSContext)
        assert "will retry on the next TLS request" in caplog.text


class TestParseClientCertificate:
    @pytest.mark.unit
    def test_encrypted_or_garbage_key_rejected(self, fixtures_dir):
        """Test that unusable keys are rejected."""
        with pytest.raises(ssl.SSLError):
            parse_client_certificate((fixtures_dir / "client.pem").read_bytes(), b"not a key")
