"""Pytest configuration and shared fixtures for httpauth-core tests."""

from pathlib import Path

import pytest

from httpauth_core.auth.credentials import FileResolver
from httpauth_core.testing import FakeClock

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Auto-cleanup: Clear test-related environment variables before each test.

    This prevents test pollution when testing path expansion.
    """
    import os

    # Store keys that look like test-related env vars
    test_prefixes = ("TEST_", "HTTPAUTH_")

    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in test_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the test CA and client certificates."""
    return FIXTURES_DIR


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver(tmp_path) -> FileResolver:
    """File resolver rooted at the test's temporary directory."""
    return FileResolver(base_dir=tmp_path)


@pytest.fixture
def cert_files(tmp_path):
    """Copy the first client certificate pair into tmp_path.

    Returns:
        Tuple of (cert_path, key_path).
    """
    cert_path = tmp_path / "client.pem"
    key_path = tmp_path / "client-key.pem"
    cert_path.write_bytes((FIXTURES_DIR / "client.pem").read_bytes())
    key_path.write_bytes((FIXTURES_DIR / "client-key.pem").read_bytes())
    return cert_path, key_path
