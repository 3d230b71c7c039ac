"""File access for secrets, certificates and CA bundles.

`FileResolver` is the single place where the auth config touches the
filesystem or fetches bytes over HTTP. It provides:

1. Path resolution: `~` and `$VAR` expansion, then relative paths are
   joined with the configured base directory. HTTP(S) URLs pass through.
2. Secret reads: file contents with surrounding whitespace stripped.
3. Raw reads: bytes from a local file or from an HTTP(S) URL.

Environment variables referenced from paths may come from a `.env` file
(python-dotenv), loaded once per resolver when enabled.

Example:
    ```python
    from httpauth_core.auth.credentials import FileResolver

    resolver = FileResolver(base_dir="/etc/scraper")
    path = resolver.get_filepath("secrets/token")  # /etc/scraper/secrets/token
    token = resolver.read_secret(path)
    ca_pem = resolver.read_file_or_http("https://pki.example.com/ca.pem")
    ```

Security Considerations:
    - File contents are never logged, only their paths
    - Thread-safe dotenv loading with lock
"""

import logging
import os
from pathlib import Path
from threading import Lock

import httpx
from dotenv import load_dotenv

from httpauth_core.auth.exceptions import CredentialFileError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def is_http_url(path: str) -> bool:
    """Return True if path is an http:// or https:// URL."""
    return path.startswith(("http://", "https://"))


class FileResolver:
    """Resolve and read files referenced from auth configs.

    Attributes:
        base_dir: Directory that relative paths are resolved against.
        timeout: Timeout in seconds for HTTP(S) fetches.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        dotenv_path: str | None = None,
        load_dotenv: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize file resolver.

        Args:
            base_dir: Directory used for relative paths. None keeps relative
                paths relative to the process working directory.
            dotenv_path: Path to .env file. If None, python-dotenv searches
                parent directories.
            load_dotenv: Whether to load a .env file before expanding
                `$VAR` references in paths. Default is False.
            timeout: Timeout for HTTP(S) reads in seconds.
        """
        self.base_dir = str(base_dir) if base_dir is not None else None
        self.timeout = timeout
        self._dotenv_loaded = False
        self._dotenv_lock = Lock()
        self._dotenv_path = dotenv_path
        self._load_dotenv_enabled = load_dotenv

        if self._load_dotenv_enabled:
            self._ensure_dotenv_loaded()

    def _ensure_dotenv_loaded(self) -> None:
        """Ensure .env file is loaded (thread-safe, at most once)."""
        if self._dotenv_loaded:
            return

        with self._dotenv_lock:
            if self._dotenv_loaded:
                return

            try:
                load_dotenv(dotenv_path=self._dotenv_path)
                logger.debug("Loaded .env file for path expansion")
            except Exception as e:
                logger.warning(f"Failed to load .env file: {e}")
            self._dotenv_loaded = True

    def get_filepath(self, path: str) -> str:
        """Resolve a configured path.

        Args:
            path: Path from the declarative config. Supports ~ expansion
                and $VAR substitution.

        Returns:
            The path joined with base_dir when relative, the expanded path
            when absolute, or the unchanged URL for http(s) paths.
        """
        if is_http_url(path):
            return path
        expanded = os.path.expanduser(os.path.expandvars(path))
        if os.path.isabs(expanded) or self.base_dir is None:
            return expanded
        return os.path.join(self.base_dir, expanded)

    def read_secret(self, path: str) -> str:
        """Read a secret from a file, stripped of surrounding whitespace.

        Args:
            path: Already resolved file path.

        Returns:
            File contents without leading/trailing whitespace.

        Raises:
            CredentialFileError: If the file cannot be read.
        """
        return self.read_file(path).decode("utf-8", errors="replace").strip()

    def read_file_or_http(self, path: str) -> bytes:
        """Read raw bytes from a local file or an http(s) URL.

        Args:
            path: Already resolved file path or URL.

        Returns:
            The raw content.

        Raises:
            CredentialFileError: If the file or URL cannot be read.
        """
        if not is_http_url(path):
            return self.read_file(path)

        try:
            response = httpx.get(path, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CredentialFileError(
                f"Unexpected status {e.response.status_code} when fetching {path}", path=path
            ) from e
        except httpx.HTTPError as e:
            raise CredentialFileError(f"Error fetching {path}: {e}", path=path) from e

        logger.debug(f"Fetched {len(response.content)} bytes from {path}")
        return response.content

    def read_file(self, path: str) -> bytes:
        """Read raw bytes from a local file.

        Raises:
            CredentialFileError: If the file cannot be read.
        """
        path_obj = Path(path)
        try:
            return path_obj.read_bytes()
        except FileNotFoundError:
            raise CredentialFileError(f"File not found: {path_obj}", path=path) from None
        except PermissionError:
            raise CredentialFileError(f"Permission denied reading file: {path_obj}", path=path) from None
        except OSError as e:
            raise CredentialFileError(f"Error reading file {path_obj}: {e}", path=path) from e
