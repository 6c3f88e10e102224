"""Persisted per-file sidecars and per-project records.

``FileData`` is written next to every downloaded blob and records the
digests computed right after the download.  ``ProjectData`` lives in
``project.json`` and accumulates one ``FileData`` per file id across runs;
the snapshot of the catalog entry is replaced on every run while file entries
are only ever added or overwritten.

All writes go through :func:`write_json_atomic` so a crash never leaves a
half-written record behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MetadataReadError, MetadataWriteError, ProjectMetadataReadError
from .manifest import FileRecord, Project

logger = logging.getLogger(__name__)

__all__ = [
    "FileData",
    "ProjectData",
    "load_project_data",
    "read_file_data",
    "write_file_data",
    "write_json_atomic",
    "write_project_data",
]


class FileData(BaseModel):
    """Sidecar record: the catalog file entry plus verified digests."""

    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True)

    curse_file_info: FileRecord = Field(default_factory=FileRecord, alias="curseFileInfo")
    sha1: str = ""
    md5: str = ""
    sha256: str = ""
    filename: str = ""

    @classmethod
    def from_digests(
        cls, record: FileRecord, digests: Dict[str, str], filename: str
    ) -> "FileData":
        return cls(
            curse_file_info=record,
            sha1=digests.get("sha1", ""),
            md5=digests.get("md5", ""),
            sha256=digests.get("sha256", ""),
            filename=filename,
        )


class ProjectData(BaseModel):
    """Contents of ``project.json``."""

    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True)

    file_data_map: Dict[int, FileData] = Field(default_factory=dict, alias="fileDataMap")
    curse_project_data: Optional[Project] = Field(default=None, alias="curseProjectData")


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def write_json_atomic(path: Path, payload: object) -> Path:
    """Atomically persist ``payload`` as JSON to ``path``."""

    resolved = Path(path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(resolved.parent), prefix=".part-", delete=False
    )
    temp_name = handle.name
    try:
        with handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.flush()
            try:
                os.fsync(handle.fileno())
            except (AttributeError, OSError):
                pass
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    try:
        Path(temp_name).replace(resolved)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return resolved


def _write_model(path: Path, model: BaseModel) -> Path:
    try:
        return write_json_atomic(path, _dump(model))
    except OSError as exc:
        raise MetadataWriteError(f"Failed to write {path}: {exc}") from exc


def write_file_data(path: Path, data: FileData) -> Path:
    """Persist a sidecar, raising :class:`MetadataWriteError` on failure."""

    return _write_model(path, data)


def write_project_data(path: Path, data: ProjectData) -> Path:
    """Persist ``project.json``, raising :class:`MetadataWriteError` on failure."""

    return _write_model(path, data)


def read_file_data(path: Path) -> FileData:
    """Load a sidecar.

    Raises:
        OSError: If the file cannot be read.
        MetadataReadError: If the file is not UTF-8 or does not hold a sidecar record.
    """

    try:
        text = Path(path).read_text(encoding="utf-8")
        return FileData.model_validate_json(text)
    except (UnicodeDecodeError, ValidationError) as exc:
        raise MetadataReadError(f"Malformed sidecar {path}: {exc}") from exc


def load_project_data(path: Path) -> ProjectData:
    """Load ``project.json``; a missing file yields fresh empty state.

    Raises:
        ProjectMetadataReadError: If the file exists but cannot be read or decoded.
    """

    path = Path(path)
    if not path.exists():
        return ProjectData()
    try:
        text = path.read_text(encoding="utf-8")
        return ProjectData.model_validate_json(text)
    except (OSError, UnicodeDecodeError, ValidationError) as exc:
        raise ProjectMetadataReadError(f"Unreadable project record {path}: {exc}") from exc
