# === NAVMAP v1 ===
# {
#   "module": "CurseArchive.manifest",
#   "purpose": "In-memory model of the catalog manifest and project selection",
#   "sections": [
#     {"id": "records", "name": "Catalog Records", "anchor": "REC", "kind": "api"},
#     {"id": "manifest", "name": "Manifest", "anchor": "class-manifest", "kind": "class"},
#     {"id": "type-predicate", "name": "type_predicate", "anchor": "function-type-predicate", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""In-memory model of the catalog manifest (``cleaned_raw.json``).

The manifest holds two top-level mappings keyed by stringified ids:
``projects`` and ``files``.  Projects reference their files by id only; no
record keeps a live reference to the collection it came from.  Validation is
limited to what the archiver needs: missing or ``null`` optional fields fall
back to empty/zero defaults and unknown fields are carried through untouched
so that project snapshots round-trip into ``project.json``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ManifestParseError

logger = logging.getLogger(__name__)

ProjectPredicate = Callable[["Project"], bool]

__all__ = [
    "Attachment",
    "Dependency",
    "FileRecord",
    "Manifest",
    "Project",
    "ProjectPredicate",
    "type_predicate",
]


class _CatalogRecord(BaseModel):
    """Base for catalog records: lenient on input, faithful on output."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def snapshot(self) -> Dict[str, Any]:
        """Return the record using its wire field names."""

        return self.model_dump(mode="json", by_alias=True)


class Attachment(_CatalogRecord):
    """Display metadata attached to a project; recorded but never downloaded."""

    desc: Any = ""
    thumbnail: Any = ""
    url: Any = ""
    name: Any = ""
    default_attachment: Any = Field(default=False, alias="default")


class Dependency(_CatalogRecord):
    type: Any = Field(default="", alias="Type")
    add_on_id: Any = Field(default=0, alias="AddOnID")


class Project(_CatalogRecord):
    """A published catalog entry grouping one or more file revisions."""

    id: int = 0
    title: str = ""
    type: str = ""
    files: List[int] = Field(default_factory=list)

    # Descriptive fields are carried into snapshots as-is.
    authors: Any = Field(default_factory=list)
    categories: Any = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    versions: Any = Field(default_factory=list)
    desc: Any = ""
    stage: Any = ""
    site: Any = ""
    featured: Any = False
    rank: Any = 0
    popularity: Any = 0.0
    downloads: Any = 0
    default_file: Any = Field(default=0, alias="defaultFile")
    primary_author: Any = Field(default="", alias="primaryAuthor")
    primary_category: Any = Field(default=0, alias="primaryCategory")


class FileRecord(_CatalogRecord):
    """A single downloadable revision belonging to a project."""

    id: int = 0
    filename: str = ""
    url: str = ""

    project: Any = 0
    name: Any = ""
    fingerprint: Any = 0
    available: Any = False
    dependencies: List[Dependency] = Field(default_factory=list)
    versions: Any = Field(default_factory=list)
    date: Any = 0
    type: Any = ""
    alternative_file: Any = Field(default=0, alias="alternativeFile")
    alternate: Any = False


def _parse_records(raw: object, model: type, section: str) -> Dict[int, Any]:
    if not isinstance(raw, Mapping):
        raise ManifestParseError(f"manifest '{section}' must be a mapping of id to record")
    records: Dict[int, Any] = {}
    for key, value in raw.items():
        try:
            record_id = int(key)
        except (TypeError, ValueError) as exc:
            raise ManifestParseError(f"manifest '{section}' has non-integer key {key!r}") from exc
        try:
            records[record_id] = model.model_validate(value)
        except ValidationError as exc:
            raise ManifestParseError(
                f"manifest '{section}' entry {key} is malformed: {exc}"
            ) from exc
    return records


class Manifest:
    """Parsed catalog: projects and files indexed by integer id."""

    def __init__(
        self,
        projects: Optional[Mapping[int, Project]] = None,
        files: Optional[Mapping[int, FileRecord]] = None,
    ) -> None:
        self.projects: Dict[int, Project] = dict(projects or {})
        self.files: Dict[int, FileRecord] = dict(files or {})

    @classmethod
    def parse(cls, raw: bytes | str) -> "Manifest":
        """Decode a manifest document.

        Raises:
            ManifestParseError: If the payload is not a JSON object holding
                ``projects`` and ``files`` mappings.
        """

        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ManifestParseError(f"manifest is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ManifestParseError("manifest must be a JSON object")
        for section in ("projects", "files"):
            if section not in payload:
                raise ManifestParseError(f"manifest is missing the '{section}' mapping")
        manifest = cls(
            projects=_parse_records(payload["projects"], Project, "projects"),
            files=_parse_records(payload["files"], FileRecord, "files"),
        )
        logger.info(
            "manifest parsed",
            extra={
                "stage": "manifest",
                "projects": len(manifest.projects),
                "files": len(manifest.files),
            },
        )
        return manifest

    def resolve_file(self, file_id: int) -> Optional[FileRecord]:
        return self.files.get(int(file_id))

    def select(self, predicate: ProjectPredicate) -> List[Project]:
        """Return the projects accepted by ``predicate``, ordered by id."""

        return [self.projects[key] for key in sorted(self.projects) if predicate(self.projects[key])]


def type_predicate(types: Iterable[str]) -> ProjectPredicate:
    """Build a predicate accepting projects whose ``type`` is one of ``types``."""

    accepted = frozenset(types)

    def _predicate(project: Project) -> bool:
        return project.type in accepted

    return _predicate
