# === NAVMAP v1 ===
# {
#   "module": "CurseArchive",
#   "purpose": "Package initialization for CurseArchive",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the CurseForge catalog archiver.

This facade exposes the entry points used by external callers to load
configuration, fetch and parse the catalog manifest, and run incremental,
resumable archive passes over the selected projects.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

__version__ = "0.3.0"

_EXPORTS: Dict[str, Tuple[str, str]] = {
    "ArchiveConfig": ("CurseArchive.config", "ArchiveConfig"),
    "load_config": ("CurseArchive.config", "load_config"),
    "ContentStore": ("CurseArchive.storage", "ContentStore"),
    "Manifest": ("CurseArchive.manifest", "Manifest"),
    "Project": ("CurseArchive.manifest", "Project"),
    "FileRecord": ("CurseArchive.manifest", "FileRecord"),
    "FileData": ("CurseArchive.metadata", "FileData"),
    "ProjectData": ("CurseArchive.metadata", "ProjectData"),
    "ArchiveContext": ("CurseArchive.runner", "ArchiveContext"),
    "RunSummary": ("CurseArchive.runner", "RunSummary"),
    "run": ("CurseArchive.runner", "run"),
    "sync_project": ("CurseArchive.sync", "sync_project"),
    "CurseArchiveError": ("CurseArchive.errors", "CurseArchiveError"),
}

__all__ = ["__version__", *_EXPORTS]


def __getattr__(name: str) -> Any:
    """Lazily import API exports so ``import CurseArchive`` stays cheap."""

    target = _EXPORTS.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module_name, attribute = target
    value = getattr(import_module(module_name), attribute)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
