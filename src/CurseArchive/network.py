# === NAVMAP v1 ===
# {
#   "module": "CurseArchive.network",
#   "purpose": "HTTPX client factory, URL escaping, and atomic streaming downloads",
#   "sections": [
#     {
#       "id": "sizemismatcherror",
#       "name": "SizeMismatchError",
#       "anchor": "class-sizemismatcherror",
#       "kind": "class"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "escape-url-fragment",
#       "name": "escape_url_fragment",
#       "anchor": "function-escape-url-fragment",
#       "kind": "function"
#     },
#     {
#       "id": "atomic-write-stream",
#       "name": "atomic_write_stream",
#       "anchor": "function-atomic-write-stream",
#       "kind": "function"
#     },
#     {
#       "id": "download-file",
#       "name": "download_file",
#       "anchor": "function-download-file",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX client factory and crash-safe streaming downloads.

Key design:
- **Explicit client**: the driver builds one ``httpx.Client`` per run and
  passes it down; httpx clients are safe to share between worker threads.
- **Streaming**: response bodies are never buffered whole; chunks go straight
  to a temporary file beside the destination.
- **Atomic writes**: temporary file + fsync + ``os.replace`` so a blob path
  only ever holds a complete body. A failed download leaves whatever was at
  the path before untouched.
- **No retries**: a failed file is left for the next run to pick up.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import quote

import certifi
import httpx

from .config.models import HttpClientConfig
from .errors import FileDownloadError

logger = logging.getLogger(__name__)

# Characters allowed unescaped in a URL fragment besides alphanumerics and "-._~".
_FRAGMENT_SAFE = "!$&'()*+,;=:@/?"

__all__ = [
    "SizeMismatchError",
    "atomic_write_stream",
    "create_http_client",
    "download_file",
    "escape_url_fragment",
]


class SizeMismatchError(OSError):
    """Raised when downloaded bytes don't match the Content-Length header.

    Attributes:
        expected: Expected bytes (from Content-Length header).
        actual: Actual bytes successfully written to disk.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Size mismatch: expected {expected} bytes, got {actual} bytes")


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED")
        return ctx
    return ssl.create_default_context(cafile=certifi.where())


def create_http_client(
    config: Optional[HttpClientConfig] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTPX client used for the manifest and every file download.

    Args:
        config: HTTP settings; defaults are used when omitted.
        transport: Optional transport override (tests pass ``httpx.MockTransport``).

    Returns:
        Configured ``httpx.Client``. Callers own it and must close it.
    """
    config = config or HttpClientConfig()
    client = httpx.Client(
        transport=transport,
        timeout=httpx.Timeout(
            connect=config.timeout_connect_s,
            read=config.timeout_read_s,
            write=config.timeout_read_s,
            pool=None,
        ),
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_connections,
        ),
        headers={"User-Agent": config.user_agent},
        follow_redirects=True,
        verify=_create_ssl_context(config.verify_tls),
    )
    logger.debug(
        "HTTPX client created",
        extra={"stage": "network", "max_connections": config.max_connections},
    )
    return client


def escape_url_fragment(url: str) -> str:
    """Percent-encode ``url`` with the escaping rules for a URL fragment.

    Catalog URLs contain raw spaces, brackets, and non-ASCII file names.
    Everything outside the fragment-safe set is encoded as UTF-8 octets,
    including ``%`` itself.
    """

    return quote(url, safe=_FRAGMENT_SAFE)


def atomic_write_stream(
    dest_path: Path,
    byte_iter: Iterator[bytes],
    *,
    expected_len: Optional[int] = None,
) -> int:
    """Write ``byte_iter`` to ``dest_path`` atomically, returning the byte count.

    Raises:
        SizeMismatchError: If ``expected_len`` is given and differs from the
            number of bytes written. Nothing is left at ``dest_path``'s temp
            location.
        OSError: If file I/O fails.
    """
    dest_path = Path(dest_path)
    dest_dir = dest_path.parent
    dest_dir.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=str(dest_dir), prefix=".part-", suffix=".tmp")
    bytes_written = 0

    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in byte_iter:
                if chunk:
                    handle.write(chunk)
                    bytes_written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())

        if expected_len is not None and bytes_written != expected_len:
            raise SizeMismatchError(expected_len, bytes_written)

        os.replace(tmp_path, dest_path)
        return bytes_written
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def _content_length(response: httpx.Response) -> Optional[int]:
    # Content-Length describes the encoded body; only trust it for identity encoding.
    if response.headers.get("Content-Encoding", "identity") != "identity":
        return None
    value = response.headers.get("Content-Length")
    if value is None or not value.isdigit():
        return None
    return int(value)


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    *,
    chunk_size: int = 1 << 20,
) -> int:
    """Stream ``url`` into ``dest_path``, replacing any previous content.

    Returns:
        Number of bytes written.

    Raises:
        FileDownloadError: On HTTP error status, transport failure, truncated
            body, or local I/O failure.
    """
    try:
        with client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise FileDownloadError(
                    f"GET {url} returned HTTP {response.status_code}",
                    url=url,
                    status_code=response.status_code,
                )
            written = atomic_write_stream(
                dest_path,
                response.iter_bytes(chunk_size=chunk_size),
                expected_len=_content_length(response),
            )
    except httpx.HTTPError as exc:
        raise FileDownloadError(f"GET {url} failed: {exc}", url=url) from exc
    except OSError as exc:
        raise FileDownloadError(f"Writing {url} to {dest_path} failed: {exc}", url=url) from exc

    logger.debug(
        "downloaded file",
        extra={"stage": "download", "url": url, "bytes": written, "path": str(dest_path)},
    )
    return written
