"""Archive driver: fetch the manifest, select projects, fan out project syncs.

The driver is the only layer allowed to fail the run, and only for the two
fatal conditions: the manifest could not be fetched, or it could not be
parsed.  Everything below it is isolated per project; a project whose sync
raises unexpectedly is logged and counted, and the remaining projects keep
going.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from .concurrency import map_bounded
from .config.models import ArchiveConfig
from .context import ArchiveContext
from .errors import FileDownloadError, ManifestFetchError
from .manifest import Manifest, Project, ProjectPredicate, type_predicate
from .network import create_http_client, download_file
from .reporting import ProgressReporter
from .sync import ProjectSyncResult, sync_project

logger = logging.getLogger(__name__)

__all__ = ["ArchiveContext", "RunSummary", "fetch_manifest", "run"]


@dataclass
class RunSummary:
    """Totals for one archive pass."""

    selected: int = 0
    completed: int = 0
    failed_projects: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed_files: int = 0
    missing_files: int = 0
    errors: int = 0
    projects: List[ProjectSyncResult] = field(default_factory=list)

    def add(self, result: ProjectSyncResult) -> None:
        self.projects.append(result)
        self.downloaded += result.downloaded
        self.skipped += result.skipped
        self.failed_files += result.failed
        self.missing_files += result.missing

    def exit_code(self, strict: bool = False) -> int:
        """Return the process status: non-zero only in strict mode with errors."""

        return 1 if strict and self.errors else 0


def _is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def fetch_manifest(context: ArchiveContext) -> Manifest:
    """Retrieve the manifest into ``meta.json`` and parse it.

    ``manifest_url`` may also name a local file, which is copied instead.

    Raises:
        ManifestFetchError: If the manifest cannot be retrieved or read.
        ManifestParseError: If the retrieved document is unusable.
    """

    source = context.config.manifest_url
    target = context.store.manifest_path
    logger.info("Downloading curse meta...", extra={"stage": "manifest", "source": source})
    try:
        if _is_remote(source):
            download_file(context.client, source, target, chunk_size=context.chunk_size)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            local = Path(source).expanduser()
            if local.resolve() != target.resolve():
                shutil.copyfile(local, target)
        raw = target.read_bytes()
    except (FileDownloadError, OSError) as exc:
        raise ManifestFetchError(f"Could not retrieve manifest from {source}: {exc}") from exc

    logger.info("Reading json", extra={"stage": "manifest"})
    return Manifest.parse(raw)


def _run_project(
    project: Project,
    manifest: Manifest,
    context: ArchiveContext,
    progress: ProgressReporter,
) -> Optional[ProjectSyncResult]:
    try:
        result: Optional[ProjectSyncResult] = sync_project(project, manifest, context)
    except Exception as exc:
        context.error_log.record(f"project {project.id} ({project.title})", exc)
        result = None
    progress.completed(project)
    return result


def run(
    config: ArchiveConfig,
    *,
    predicate: Optional[ProjectPredicate] = None,
    client: Optional[httpx.Client] = None,
) -> RunSummary:
    """Run one archive pass and return its totals.

    Args:
        config: Validated configuration.
        predicate: Project selection; defaults to the configured project types.
        client: HTTP client to use; one is built from ``config.http`` (and
            closed afterwards) when omitted.

    Raises:
        ManifestFetchError: If the manifest cannot be retrieved.
        ManifestParseError: If the manifest cannot be parsed.
    """

    owns_client = client is None
    http_client = client if client is not None else create_http_client(config.http)
    try:
        context = ArchiveContext.create(config, http_client)
        manifest = fetch_manifest(context)
        selector = predicate or type_predicate(config.selection.project_types)
        selected = manifest.select(selector)

        summary = RunSummary(selected=len(selected))
        progress = ProgressReporter(len(selected), log=logger)
        logger.info(
            "archiving %d projects",
            len(selected),
            extra={
                "stage": "run",
                "project_workers": config.concurrency.project_workers,
                "file_workers": config.concurrency.file_workers,
                "config_hash": config.config_hash()[:12],
            },
        )

        results = map_bounded(
            lambda project: _run_project(project, manifest, context, progress),
            selected,
            workers=config.concurrency.project_workers,
            name="project",
        )
        for result in results:
            if result is None:
                summary.failed_projects += 1
            else:
                summary.completed += 1
                summary.add(result)
        summary.errors = context.error_log.count
    finally:
        if owns_client:
            http_client.close()

    logger.info(
        "Done",
        extra={
            "stage": "run",
            "downloaded": summary.downloaded,
            "skipped": summary.skipped,
            "failed_files": summary.failed_files,
            "errors": summary.errors,
        },
    )
    return summary
