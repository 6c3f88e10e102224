"""Exception hierarchy shared across manifest retrieval, sync, and persistence.

The archiver spans a single fatal stage (getting a usable catalog) and many
independent per-item stages (one project, one file).  This module groups the
failure modes so the driver can tell the fatal categories apart from the
recoverable ones, which are caught at the item boundary and written to the
error log instead of aborting the run.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CurseArchiveError",
    "ManifestFetchError",
    "ManifestParseError",
    "MetadataReadError",
    "ProjectMetadataReadError",
    "FileResolutionError",
    "FileDownloadError",
    "MetadataWriteError",
    "UserConfigError",
    "ConfigError",
]


class CurseArchiveError(RuntimeError):
    """Base exception for archive failures."""


class ManifestFetchError(CurseArchiveError):
    """Raised when the catalog manifest cannot be retrieved. Fatal to the run."""


class ManifestParseError(CurseArchiveError):
    """Raised when the manifest is not a JSON object with project/file mappings."""


class MetadataReadError(CurseArchiveError):
    """Raised when a persisted JSON record exists but cannot be decoded."""


class ProjectMetadataReadError(MetadataReadError):
    """Raised when ``project.json`` is unreadable; callers start from empty state."""


class FileResolutionError(CurseArchiveError):
    """Raised when a project references a file id the manifest does not define."""

    def __init__(self, project_id: int, file_id: int) -> None:
        super().__init__(f"File {file_id} referenced by project {project_id} is not in the manifest")
        self.project_id = project_id
        self.file_id = file_id


class FileDownloadError(CurseArchiveError):
    """Raised when fetching a file fails on the network or while writing it."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MetadataWriteError(CurseArchiveError):
    """Raised when a sidecar or project record cannot be persisted."""


class UserConfigError(RuntimeError):
    """Raised when CLI arguments or YAML configuration inputs are invalid."""


# Backwards compatibility alias used throughout the package.
ConfigError = UserConfigError
# === NAVMAP v1 ===
# {
#   "module": "CurseArchive.errors",
#   "purpose": "Define the exception hierarchy used across manifest retrieval, sync, and persistence",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "manifest", "name": "Manifest Errors", "anchor": "MAN", "kind": "api"},
#     {"id": "metadata", "name": "Metadata Errors", "anchor": "MET", "kind": "api"},
#     {"id": "download", "name": "Resolution & Download Errors", "anchor": "DL", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
