"""Shared fixtures for the curse_archive test suite."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

import httpx
import pytest

from CurseArchive.config import ArchiveConfig, ConcurrencyConfig
from CurseArchive.context import ArchiveContext
from CurseArchive.logging_utils import LOGGER_NAME
from CurseArchive.manifest import Manifest
from tests.fixtures.http_mocking import (
    MANIFEST_URL,
    FakeRemote,
    build_manifest,
    file_entry,
    project_entry,
)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo handlers and propagation changes made by setup_logging."""

    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level, propagate = logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def http_client(remote: FakeRemote):
    client = remote.client()
    yield client
    client.close()


@pytest.fixture
def archive_config(tmp_path: Path) -> ArchiveConfig:
    return ArchiveConfig(
        data_dir=tmp_path / "data",
        manifest_url=MANIFEST_URL,
        concurrency=ConcurrencyConfig(project_workers=2, file_workers=2),
    )


@pytest.fixture
def make_context(archive_config: ArchiveConfig, http_client: httpx.Client):
    """Build an :class:`ArchiveContext`, optionally overriding config fields."""

    def _make(**updates: Any) -> ArchiveContext:
        config = archive_config.model_copy(update=updates)
        return ArchiveContext.create(config, http_client)

    return _make


@pytest.fixture
def demo_catalog(remote: FakeRemote) -> Tuple[Dict[str, Any], Manifest]:
    """One project with two files, both served by the fake CDN."""

    payload = build_manifest(
        [project_entry(1, title="Demo", files=[100, 101])],
        [
            file_entry(100, project=1, filename="demo.jar"),
            file_entry(101, project=1, filename="demo-sources.jar"),
        ],
    )
    remote.serve("http://cdn.test/100/demo.jar", b"demo jar bytes")
    remote.serve("http://cdn.test/101/demo-sources.jar", b"demo sources bytes")
    remote.serve_json(MANIFEST_URL, payload)
    return payload, Manifest.parse(json.dumps(payload))
