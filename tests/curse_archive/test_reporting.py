"""Tests for the error log and progress reporter."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor

from CurseArchive.errors import FileDownloadError
from CurseArchive.manifest import Project
from CurseArchive.reporting import ErrorLog, ProgressReporter


def _raise(exc: BaseException) -> BaseException:
    try:
        raise exc
    except BaseException as caught:
        return caught


def test_error_log_appends_timestamped_traceback(tmp_path) -> None:
    log = ErrorLog(tmp_path / "error.log")

    log.record("project 1 (Demo) file 100", _raise(FileDownloadError("HTTP 404", status_code=404)))
    log.record("project 2 (Other)", _raise(ValueError("bad")))

    text = (tmp_path / "error.log").read_text(encoding="utf-8")
    headers = re.findall(r"^\[(\d{4}-\d{2}-\d{2}T[^\]]+Z)\] (.+)$", text, flags=re.MULTILINE)
    assert [context for _, context in headers] == ["project 1 (Demo) file 100", "project 2 (Other)"]
    assert "Traceback (most recent call last)" in text
    assert "FileDownloadError: HTTP 404" in text
    assert log.count == 2


def test_error_log_never_raises(tmp_path, caplog) -> None:
    blocked = tmp_path / "error.log"
    blocked.mkdir()
    log = ErrorLog(blocked)

    with caplog.at_level(logging.ERROR, logger="CurseArchive.reporting"):
        log.record("project 1", _raise(RuntimeError("boom")))

    assert log.count == 1
    assert any("could not append" in message for message in caplog.messages)


def test_error_log_is_thread_safe(tmp_path) -> None:
    log = ErrorLog(tmp_path / "error.log")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: log.record(f"item {i}", _raise(ValueError(str(i)))), range(50)))

    text = (tmp_path / "error.log").read_text(encoding="utf-8")
    assert log.count == 50
    assert len(re.findall(r"^\[.+Z\] item \d+$", text, flags=re.MULTILINE)) == 50


def test_progress_counts_every_completion(caplog) -> None:
    reporter = ProgressReporter(40)
    projects = [Project(id=i, title=f"P{i}", type="mod") for i in range(40)]

    with caplog.at_level(logging.INFO, logger="CurseArchive.reporting"):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(reporter.completed, projects))

    assert reporter.done == 40
    assert reporter.total == 40
    assert any("Done: 40/40  100%" in message for message in caplog.messages)


def test_progress_line_format(caplog) -> None:
    reporter = ProgressReporter(4)

    with caplog.at_level(logging.INFO, logger="CurseArchive.reporting"):
        assert reporter.completed(Project(id=1, title="Demo", type="mod")) == 1

    assert caplog.messages[-1] == "Completed Demo     Done: 1/4  25%"


def test_progress_with_nothing_selected() -> None:
    reporter = ProgressReporter(0)
    assert reporter.total == 0
    assert reporter.done == 0
