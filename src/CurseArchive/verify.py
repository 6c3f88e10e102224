"""Offline integrity check of an existing archive.

Walks every ``files/`` directory under the store, rehashes each blob that has
a sidecar, and reports blobs whose sha256 no longer matches, blobs that were
never recorded, and sidecars that cannot be read.  Nothing is modified; a
subsequent ``run`` repairs what this reports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .checksums import file_digest
from .errors import MetadataReadError
from .metadata import read_file_data
from .storage import ContentStore

logger = logging.getLogger(__name__)

__all__ = ["VerifyReport", "verify_store"]


@dataclass
class VerifyReport:
    checked: int = 0
    verified: int = 0
    mismatched: List[Path] = field(default_factory=list)
    unrecorded: List[Path] = field(default_factory=list)
    unreadable: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.mismatched or self.unreadable)


def verify_store(store: ContentStore) -> VerifyReport:
    report = VerifyReport()
    for blob, sidecar in store.iter_sidecars():
        report.checked += 1
        if not sidecar.exists():
            report.unrecorded.append(blob)
            continue
        try:
            data = read_file_data(sidecar)
            digest = file_digest(blob, "sha256")
        except (OSError, MetadataReadError) as exc:
            logger.warning("cannot verify %s: %s", blob, exc, extra={"stage": "verify"})
            report.unreadable.append(blob)
            continue
        if data.sha256 and digest == data.sha256.lower():
            report.verified += 1
        else:
            report.mismatched.append(blob)
    logger.info(
        "verified %d of %d blobs",
        report.verified,
        report.checked,
        extra={
            "stage": "verify",
            "mismatched": len(report.mismatched),
            "unrecorded": len(report.unrecorded),
            "unreadable": len(report.unreadable),
        },
    )
    return report
