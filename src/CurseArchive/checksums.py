"""Streaming digest helpers used to verify archived blobs.

Sidecar records carry sha1, sha256, and md5 digests for every downloaded
file; sha256 is the one trusted when deciding whether a blob is current.
Digests are computed from chunked reads so large archives never have to be
materialised in memory, and several algorithms can share a single pass.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Dict, Iterable, Tuple

from .errors import ConfigError

SUPPORTED_ALGORITHMS: Tuple[str, ...] = ("md5", "sha1", "sha256", "sha512")
SIDECAR_ALGORITHMS: Tuple[str, ...] = ("sha1", "sha256", "md5")

_CHUNK_SIZE = 1 << 20

__all__ = [
    "SUPPORTED_ALGORITHMS",
    "SIDECAR_ALGORITHMS",
    "compute_digests",
    "file_digest",
]


def _normalize_algorithm(algorithm: str) -> str:
    candidate = (algorithm or "").strip().lower()
    if candidate not in SUPPORTED_ALGORITHMS:
        raise ConfigError(f"unsupported checksum algorithm '{algorithm}'")
    return candidate


def compute_digests(
    path: Path, algorithms: Iterable[str] = SIDECAR_ALGORITHMS
) -> Dict[str, str]:
    """Return lowercase hex digests of ``path`` for every requested algorithm.

    The file is read once; each chunk feeds all hashers.

    Raises:
        ConfigError: If an algorithm is not supported.
        OSError: If ``path`` cannot be read.
    """

    names = [_normalize_algorithm(name) for name in algorithms]
    hashers = {name: hashlib.new(name) for name in dict.fromkeys(names)}
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            for hasher in hashers.values():
                hasher.update(chunk)
    return {name: hasher.hexdigest() for name, hasher in hashers.items()}


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Return the lowercase hex digest of ``path`` using ``algorithm``."""

    return compute_digests(path, (algorithm,))[_normalize_algorithm(algorithm)]
