# === NAVMAP v1 ===
# {
#   "module": "CurseArchive.sync",
#   "purpose": "Reconcile one project's local store with the catalog manifest",
#   "sections": [
#     {"id": "fileaction", "name": "FileAction", "anchor": "class-fileaction", "kind": "class"},
#     {"id": "plan-file-action", "name": "plan_file_action", "anchor": "function-plan-file-action", "kind": "function"},
#     {"id": "projectsyncresult", "name": "ProjectSyncResult", "anchor": "class-projectsyncresult", "kind": "class"},
#     {"id": "projectsync", "name": "ProjectSync", "anchor": "class-projectsync", "kind": "class"},
#     {"id": "sync-project", "name": "sync_project", "anchor": "function-sync-project", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Per-project reconciliation of local archive state against the manifest.

Each project is processed in four steps:

1. Load ``project.json`` (missing → empty state; unreadable → logged, empty).
2. Replace the stored catalog snapshot with the current manifest entry.
3. For every file id the project lists, decide whether the local blob is
   current (see :func:`plan_file_action`) and download it when it is not.
   File workers return their results; the project's ``fileDataMap`` is only
   touched on the calling thread once every worker has finished.
4. Write ``project.json`` back.

Failures are caught at the file boundary (and, for the record write, at the
project boundary) and sent to the error log.  A file that failed is simply
absent or unverified on disk, so the next run picks it up again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from .checksums import SIDECAR_ALGORITHMS, compute_digests, file_digest
from .concurrency import map_bounded
from .context import ArchiveContext
from .errors import (
    FileDownloadError,
    FileResolutionError,
    MetadataReadError,
    MetadataWriteError,
    ProjectMetadataReadError,
)
from .manifest import FileRecord, Manifest, Project
from .metadata import (
    FileData,
    ProjectData,
    load_project_data,
    read_file_data,
    write_file_data,
    write_project_data,
)
from .network import download_file, escape_url_fragment

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, BaseException], None]

__all__ = [
    "FileAction",
    "FileDecision",
    "FileOutcome",
    "ProjectSync",
    "ProjectSyncResult",
    "plan_file_action",
    "sync_project",
]


class FileAction(str, Enum):
    SKIP_UNVERIFIED = "skip-unverified"
    SKIP_VERIFIED = "skip-verified"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class FileDecision:
    action: FileAction
    reason: str
    sidecar: Optional[FileData] = None


def plan_file_action(
    blob: Path,
    sidecar: Path,
    *,
    always_hash_check: bool,
    on_error: Optional[ErrorCallback] = None,
) -> FileDecision:
    """Decide what to do with one file. The first matching rule wins.

    ==============  ===========  =================  =======================
    sidecar exists  blob exists  always_hash_check  action
    ==============  ===========  =================  =======================
    no              yes          false              skip, assumed current
    yes             yes          any                skip if sidecar sha256
                                                    equals the blob's,
                                                    otherwise download
    no              yes          true               download
    any             no           any                download
    ==============  ===========  =================  =======================

    An unreadable sidecar or an unreadable blob is reported through
    ``on_error`` and treated as a mismatch.
    """

    if not blob.exists():
        return FileDecision(FileAction.DOWNLOAD, "blob missing")

    if not sidecar.exists():
        if always_hash_check:
            return FileDecision(FileAction.DOWNLOAD, "no sidecar to verify against")
        return FileDecision(FileAction.SKIP_UNVERIFIED, "blob present, no sidecar")

    try:
        data = read_file_data(sidecar)
        if data.sha256 and file_digest(blob, "sha256") == data.sha256.lower():
            return FileDecision(FileAction.SKIP_VERIFIED, "sha256 verified", sidecar=data)
    except (OSError, MetadataReadError) as exc:
        if on_error is not None:
            on_error(f"verifying {blob}", exc)
        return FileDecision(FileAction.DOWNLOAD, "sidecar or blob unreadable")
    if not data.sha256:
        return FileDecision(FileAction.DOWNLOAD, "sidecar has no sha256")
    return FileDecision(FileAction.DOWNLOAD, "sha256 mismatch")


@dataclass(frozen=True)
class FileOutcome:
    """Result of one file worker."""

    file_id: int
    status: str  # downloaded | verified | skipped | failed | missing
    file_data: Optional[FileData] = None


@dataclass
class ProjectSyncResult:
    """Counters for one project, aggregated by the driver."""

    project_id: int
    title: str
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    missing: int = 0
    metadata_written: bool = False

    def add(self, outcome: FileOutcome) -> None:
        if outcome.status == "downloaded":
            self.downloaded += 1
        elif outcome.status in ("verified", "skipped"):
            self.skipped += 1
        elif outcome.status == "missing":
            self.missing += 1
        else:
            self.failed += 1


class ProjectSync:
    """Reconcile one project's files with the manifest."""

    def __init__(self, project: Project, manifest: Manifest, context: ArchiveContext) -> None:
        self.project = project
        self.manifest = manifest
        self.context = context
        self.store = context.store
        self.project_data_path = self.store.project_data_path(project.type, project.id)

    def _label(self, file_id: Optional[int] = None) -> str:
        label = f"project {self.project.id} ({self.project.title})"
        if file_id is not None:
            label += f" file {file_id}"
        return label

    def _record_error(self, context: str, error: BaseException) -> None:
        self.context.error_log.record(context, error)

    def load_state(self) -> ProjectData:
        try:
            return load_project_data(self.project_data_path)
        except ProjectMetadataReadError as exc:
            self._record_error(f"{self._label()} project.json", exc)
            return ProjectData()

    def run(self) -> ProjectSyncResult:
        project = self.project
        result = ProjectSyncResult(project_id=project.id, title=project.title)
        try:
            self.store.ensure_project_layout(project)
        except OSError as exc:
            self._record_error(f"{self._label()} layout", exc)

        state = self.load_state()
        state.curse_project_data = project

        outcomes = map_bounded(
            self.sync_file,
            list(project.files),
            workers=self.context.file_workers,
            name=f"files-{project.id}",
        )
        self._merge(state.file_data_map, outcomes)
        for outcome in outcomes:
            result.add(outcome)

        try:
            write_project_data(self.project_data_path, state)
            result.metadata_written = True
        except MetadataWriteError as exc:
            self._record_error(f"{self._label()} project.json", exc)

        logger.debug(
            "project synced",
            extra={
                "stage": "sync",
                "project_id": project.id,
                "downloaded": result.downloaded,
                "skipped": result.skipped,
                "failed": result.failed,
                "missing": result.missing,
            },
        )
        return result

    @staticmethod
    def _merge(file_data_map: Dict[int, FileData], outcomes: Iterable[FileOutcome]) -> None:
        for outcome in outcomes:
            if outcome.file_data is None:
                continue
            if outcome.status == "downloaded":
                file_data_map[outcome.file_id] = outcome.file_data
            elif outcome.status == "verified":
                file_data_map.setdefault(outcome.file_id, outcome.file_data)

    def sync_file(self, file_id: int) -> FileOutcome:
        """Bring one file up to date. Never raises."""

        try:
            return self._sync_file(file_id)
        except Exception as exc:
            self._record_error(self._label(file_id), exc)
            return FileOutcome(file_id, "failed")

    def _sync_file(self, file_id: int) -> FileOutcome:
        project = self.project
        record = self.manifest.resolve_file(file_id)
        if record is None:
            self._record_error(self._label(file_id), FileResolutionError(project.id, file_id))
            return FileOutcome(file_id, "missing")

        blob = self.store.blob_path(project.type, project.id, record.id, record.filename)
        sidecar = self.store.sidecar_path(project.type, project.id, record.id, record.filename)

        decision = plan_file_action(
            blob,
            sidecar,
            always_hash_check=self.context.always_hash_check,
            on_error=self._record_error,
        )
        if decision.action is FileAction.SKIP_VERIFIED:
            return FileOutcome(file_id, "verified", decision.sidecar)
        if decision.action is FileAction.SKIP_UNVERIFIED:
            return FileOutcome(file_id, "skipped")

        logger.info(
            "        Downloading file: %s for project %s",
            record.name or record.filename,
            project.id,
            extra={"stage": "download", "project_id": project.id, "reason": decision.reason},
        )
        try:
            data = self._download(record, blob, sidecar)
        except (FileDownloadError, MetadataWriteError) as exc:
            self._record_error(self._label(file_id), exc)
            return FileOutcome(file_id, "failed")
        return FileOutcome(file_id, "downloaded", data)

    def _download(self, record: FileRecord, blob: Path, sidecar: Path) -> FileData:
        download_file(
            self.context.client,
            escape_url_fragment(record.url),
            blob,
            chunk_size=self.context.chunk_size,
        )
        try:
            digests = compute_digests(blob, SIDECAR_ALGORITHMS)
        except OSError as exc:
            raise FileDownloadError(f"Hashing {blob} failed: {exc}", url=record.url) from exc
        data = FileData.from_digests(record, digests, blob.name)
        write_file_data(sidecar, data)
        return data


def sync_project(project: Project, manifest: Manifest, context: ArchiveContext) -> ProjectSyncResult:
    """Reconcile ``project`` against ``manifest`` using ``context``'s store and client."""

    return ProjectSync(project, manifest, context).run()
