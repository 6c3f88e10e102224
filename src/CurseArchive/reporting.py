"""Durable error log and console progress for archive runs.

Per-item failures never interrupt a run; they are appended to
``<root>/error.log`` with a UTC timestamp, the item they concern, and the
formatted traceback so the log can be read after the fact.  Progress is a
single lock-guarded counter of completed projects.
"""

from __future__ import annotations

import logging
import threading
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .manifest import Project

logger = logging.getLogger(__name__)

__all__ = ["ErrorLog", "ProgressReporter"]


class ErrorLog:
    """Append-only, human-readable failure log."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._count = 0

    @property
    def count(self) -> int:
        """Number of failures recorded by this instance."""

        return self._count

    def record(self, context: str, error: BaseException) -> None:
        """Append ``error`` under ``context``. Never raises."""

        logger.error(
            "%s: %s", context, error, extra={"stage": "error", "error_type": type(error).__name__}
        )
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        entry = f"[{timestamp}] {context}\n{trace}\n"
        with self._lock:
            self._count += 1
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(entry)
            except OSError as exc:
                logger.error(
                    "could not append to error log %s: %s",
                    self.path,
                    exc,
                    extra={"stage": "error"},
                )


class ProgressReporter:
    """Report ``done/total`` after each project completes."""

    def __init__(self, total: int, *, log: Optional[logging.Logger] = None) -> None:
        self._total = max(0, int(total))
        self._done = 0
        self._lock = threading.Lock()
        self._log = log or logger

    @property
    def total(self) -> int:
        return self._total

    @property
    def done(self) -> int:
        return self._done

    def completed(self, project: Project) -> int:
        """Count ``project`` as finished and emit a progress line."""

        with self._lock:
            self._done += 1
            done = self._done
        percent = (done * 100) // self._total if self._total else 100
        self._log.info(
            "Completed %s     Done: %d/%d  %d%%",
            project.title,
            done,
            self._total,
            percent,
            extra={"stage": "progress", "project_id": project.id},
        )
        return done
