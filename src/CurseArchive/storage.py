"""Filesystem layout of the archive root.

The storage root holds the last fetched manifest, the error log, and one
directory per archived project::

    <root>/meta.json
    <root>/error.log
    <root>/projects/<type>/<project-id>/<SanitizedTitle>.txt
    <root>/projects/<type>/<project-id>/project.json
    <root>/projects/<type>/<project-id>/files/<file-id>-<filename>
    <root>/projects/<type>/<project-id>/files/<file-id>-<filename>.json

Path functions are pure; only :meth:`ContentStore.ensure_project_layout`
touches the disk, and it never removes anything.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Tuple

from .manifest import Project

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".json"
_TITLE_STRIP = re.compile(r"[^A-Za-z0-9]")

__all__ = ["SIDECAR_SUFFIX", "ContentStore", "sanitize_title"]


def sanitize_title(title: str) -> str:
    """Strip every character outside ``[A-Za-z0-9]`` from ``title``."""

    return _TITLE_STRIP.sub("", title or "")


class ContentStore:
    """Map catalog identifiers onto stable paths under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def manifest_path(self) -> Path:
        return self.root / "meta.json"

    @property
    def error_log_path(self) -> Path:
        return self.root / "error.log"

    @property
    def projects_root(self) -> Path:
        return self.root / "projects"

    def project_dir(self, project_type: str, project_id: int) -> Path:
        return self.projects_root / project_type / str(project_id)

    def files_dir(self, project_type: str, project_id: int) -> Path:
        return self.project_dir(project_type, project_id) / "files"

    def marker_path(self, project: Project) -> Path:
        """Empty file named after the project title, used to find projects by name."""

        return self.project_dir(project.type, project.id) / f"{sanitize_title(project.title)}.txt"

    def project_data_path(self, project_type: str, project_id: int) -> Path:
        return self.project_dir(project_type, project_id) / "project.json"

    def blob_path(self, project_type: str, project_id: int, file_id: int, filename: str) -> Path:
        return self.files_dir(project_type, project_id) / f"{file_id}-{filename}"

    def sidecar_path(
        self, project_type: str, project_id: int, file_id: int, filename: str
    ) -> Path:
        blob = self.blob_path(project_type, project_id, file_id, filename)
        return blob.with_name(blob.name + SIDECAR_SUFFIX)

    def ensure_project_layout(self, project: Project) -> Path:
        """Create the project's ``files/`` directory and title marker if missing.

        Returns the project directory.

        Raises:
            OSError: If the directories or the marker cannot be created.
        """

        self.files_dir(project.type, project.id).mkdir(parents=True, exist_ok=True)
        marker = self.marker_path(project)
        if not marker.exists():
            marker.touch()
            logger.debug(
                "created project marker",
                extra={"stage": "store", "project_id": project.id, "marker": marker.name},
            )
        return self.project_dir(project.type, project.id)

    def iter_sidecars(self) -> Iterator[Tuple[Path, Path]]:
        """Yield ``(blob, sidecar)`` pairs for every blob in the store.

        The sidecar path is yielded even when the sidecar does not exist so
        callers can report blobs that were never recorded.
        """

        if not self.projects_root.is_dir():
            return
        for files_dir in sorted(self.projects_root.glob("*/*/files")):
            for blob in sorted(files_dir.iterdir()):
                if not blob.is_file() or blob.name.endswith(SIDECAR_SUFFIX):
                    continue
                if blob.name.startswith(".part-"):
                    continue
                yield blob, blob.with_name(blob.name + SIDECAR_SUFFIX)
