"""Per-project reconciliation: decision table, isolation, and idempotence."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from CurseArchive.errors import FileResolutionError, ProjectMetadataReadError
from CurseArchive.manifest import Manifest
from CurseArchive.metadata import FileData, load_project_data, read_file_data, write_file_data
from CurseArchive.sync import FileAction, plan_file_action, sync_project
from tests.fixtures.http_mocking import build_manifest, file_entry, project_entry

DEMO_URL = "http://cdn.test/100/demo.jar"
SOURCES_URL = "http://cdn.test/101/demo-sources.jar"


def _sidecar_for(blob: Path, content: bytes, *, sha256: str | None = None) -> FileData:
    return FileData(
        sha1=hashlib.sha1(content).hexdigest(),
        md5=hashlib.md5(content).hexdigest(),
        sha256=hashlib.sha256(content).hexdigest() if sha256 is None else sha256,
        filename=blob.name,
    )


# --- decision table -------------------------------------------------------


def test_plan_missing_blob_downloads(tmp_path: Path) -> None:
    blob = tmp_path / "100-demo.jar"
    for always in (True, False):
        decision = plan_file_action(blob, tmp_path / "100-demo.jar.json", always_hash_check=always)
        assert decision.action is FileAction.DOWNLOAD


def test_plan_blob_without_sidecar_depends_on_hash_check(tmp_path: Path) -> None:
    blob = tmp_path / "100-demo.jar"
    blob.write_bytes(b"content")
    sidecar = tmp_path / "100-demo.jar.json"

    trusting = plan_file_action(blob, sidecar, always_hash_check=False)
    checking = plan_file_action(blob, sidecar, always_hash_check=True)

    assert trusting.action is FileAction.SKIP_UNVERIFIED
    assert checking.action is FileAction.DOWNLOAD


@pytest.mark.parametrize("always", [True, False])
def test_plan_verified_sidecar_skips(tmp_path: Path, always: bool) -> None:
    blob = tmp_path / "100-demo.jar"
    blob.write_bytes(b"content")
    sidecar = tmp_path / "100-demo.jar.json"
    write_file_data(sidecar, _sidecar_for(blob, b"content"))

    decision = plan_file_action(blob, sidecar, always_hash_check=always)

    assert decision.action is FileAction.SKIP_VERIFIED
    assert decision.sidecar is not None
    assert decision.sidecar.sha256 == hashlib.sha256(b"content").hexdigest()


def test_plan_mismatched_or_empty_sha256_downloads(tmp_path: Path) -> None:
    blob = tmp_path / "100-demo.jar"
    blob.write_bytes(b"corrupted locally")
    sidecar = tmp_path / "100-demo.jar.json"

    write_file_data(sidecar, _sidecar_for(blob, b"original"))
    assert plan_file_action(blob, sidecar, always_hash_check=False).reason == "sha256 mismatch"

    write_file_data(sidecar, _sidecar_for(blob, b"corrupted locally", sha256=""))
    decision = plan_file_action(blob, sidecar, always_hash_check=False)
    assert decision.action is FileAction.DOWNLOAD
    assert decision.reason == "sidecar has no sha256"


def test_plan_unreadable_sidecar_reports_and_downloads(tmp_path: Path) -> None:
    blob = tmp_path / "100-demo.jar"
    blob.write_bytes(b"content")
    sidecar = tmp_path / "100-demo.jar.json"
    sidecar.write_text("{broken", encoding="utf-8")
    errors = []

    decision = plan_file_action(
        blob, sidecar, always_hash_check=False, on_error=lambda ctx, exc: errors.append(exc)
    )

    assert decision.action is FileAction.DOWNLOAD
    assert len(errors) == 1


# --- sync_project ---------------------------------------------------------


def test_first_sync_downloads_and_records_everything(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    context = make_context()
    project = manifest.projects[1]

    result = sync_project(project, manifest, context)

    assert (result.downloaded, result.skipped, result.failed) == (2, 0, 0)
    assert result.metadata_written
    store = context.store
    blob = store.blob_path("mod", 1, 100, "demo.jar")
    assert blob.read_bytes() == b"demo jar bytes"
    sidecar = read_file_data(store.sidecar_path("mod", 1, 100, "demo.jar"))
    assert sidecar.sha256 == hashlib.sha256(b"demo jar bytes").hexdigest()
    assert sidecar.sha1 == hashlib.sha1(b"demo jar bytes").hexdigest()
    assert sidecar.md5 == hashlib.md5(b"demo jar bytes").hexdigest()
    assert sidecar.filename == "100-demo.jar"
    assert sidecar.curse_file_info.url == DEMO_URL
    state = load_project_data(store.project_data_path("mod", 1))
    assert set(state.file_data_map) == {100, 101}
    assert state.curse_project_data is not None
    assert state.curse_project_data.title == "Demo"
    assert (store.project_dir("mod", 1) / "Demo.txt").exists()


def test_second_sync_is_idempotent(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    context = make_context()
    project = manifest.projects[1]
    record_path = context.store.project_data_path("mod", 1)

    sync_project(project, manifest, context)
    first = json.loads(record_path.read_text(encoding="utf-8"))
    remote.reset()
    result = sync_project(project, manifest, context)
    second = json.loads(record_path.read_text(encoding="utf-8"))

    assert remote.file_requests() == []
    assert (result.downloaded, result.skipped) == (0, 2)
    assert first["fileDataMap"] == second["fileDataMap"]


@pytest.mark.parametrize("always", [True, False])
def test_verified_blob_is_never_fetched(make_context, demo_catalog, remote, always) -> None:
    _, manifest = demo_catalog
    context = make_context(always_hash_check=always)
    store = context.store
    for file_id, filename, content in ((100, "demo.jar", b"x"), (101, "demo-sources.jar", b"y")):
        blob = store.blob_path("mod", 1, file_id, filename)
        blob.parent.mkdir(parents=True, exist_ok=True)
        blob.write_bytes(content)
        write_file_data(store.sidecar_path("mod", 1, file_id, filename), _sidecar_for(blob, content))

    sync_project(manifest.projects[1], manifest, context)

    assert remote.file_requests() == []


def test_blob_without_sidecar_refetched_only_with_hash_check(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    project = manifest.projects[1]

    for always, expected_fetches in ((False, 0), (True, 2)):
        context = make_context(always_hash_check=always)
        store = context.store
        for file_id, filename in ((100, "demo.jar"), (101, "demo-sources.jar")):
            blob = store.blob_path("mod", 1, file_id, filename)
            blob.parent.mkdir(parents=True, exist_ok=True)
            blob.write_bytes(b"left over from an interrupted run")
            store.sidecar_path("mod", 1, file_id, filename).unlink(missing_ok=True)
        remote.reset()

        sync_project(project, manifest, context)

        assert len(remote.file_requests()) == expected_fetches


def test_corrupt_project_record_starts_fresh(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    context = make_context()
    record_path = context.store.project_data_path("mod", 1)
    record_path.parent.mkdir(parents=True)
    record_path.write_text("this is not json", encoding="utf-8")

    result = sync_project(manifest.projects[1], manifest, context)

    assert result.downloaded == 2
    assert set(load_project_data(record_path).file_data_map) == {100, 101}
    assert context.error_log.count == 1
    assert ProjectMetadataReadError.__name__ in context.store.error_log_path.read_text(encoding="utf-8")


def test_verified_files_backfill_lost_project_record(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    context = make_context()
    project = manifest.projects[1]
    record_path = context.store.project_data_path("mod", 1)
    sync_project(project, manifest, context)
    record_path.unlink()
    remote.reset()

    sync_project(project, manifest, context)

    assert remote.file_requests() == []
    assert set(load_project_data(record_path).file_data_map) == {100, 101}


def test_dangling_file_reference_is_logged_once(make_context, remote) -> None:
    payload = build_manifest(
        [project_entry(1, title="Demo", files=[100, 999])],
        [file_entry(100, project=1, filename="demo.jar")],
    )
    remote.serve(DEMO_URL, b"demo jar bytes")
    manifest = Manifest.parse(json.dumps(payload))
    context = make_context()

    result = sync_project(manifest.projects[1], manifest, context)

    assert (result.downloaded, result.missing) == (1, 1)
    assert context.error_log.count == 1
    log_text = context.store.error_log_path.read_text(encoding="utf-8")
    assert FileResolutionError.__name__ in log_text
    assert "999" in log_text


def test_failed_download_does_not_stop_siblings(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    remote.fail(DEMO_URL)
    context = make_context()
    store = context.store

    result = sync_project(manifest.projects[1], manifest, context)

    assert (result.downloaded, result.failed) == (1, 1)
    assert not store.blob_path("mod", 1, 100, "demo.jar").exists()
    assert not store.sidecar_path("mod", 1, 100, "demo.jar").exists()
    assert store.blob_path("mod", 1, 101, "demo-sources.jar").read_bytes() == b"demo sources bytes"
    assert set(load_project_data(store.project_data_path("mod", 1)).file_data_map) == {101}
    assert context.error_log.count == 1


def test_failed_file_is_retried_next_run(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    project = manifest.projects[1]
    remote.serve(DEMO_URL, b"", status=503)
    context = make_context()
    sync_project(project, manifest, context)

    remote.serve(DEMO_URL, b"demo jar bytes")
    remote.reset()
    result = sync_project(project, manifest, context)

    assert remote.file_requests() == [DEMO_URL]
    assert result.downloaded == 1
    assert set(load_project_data(context.store.project_data_path("mod", 1)).file_data_map) == {100, 101}


def test_entries_for_delisted_files_are_retained(make_context, demo_catalog, remote) -> None:
    payload, manifest = demo_catalog
    context = make_context()
    sync_project(manifest.projects[1], manifest, context)

    payload["projects"]["1"]["files"] = [101]
    reduced = Manifest.parse(json.dumps(payload))
    sync_project(reduced.projects[1], reduced, context)

    state = load_project_data(context.store.project_data_path("mod", 1))
    assert set(state.file_data_map) == {100, 101}
    assert state.curse_project_data is not None
    assert state.curse_project_data.files == [101]


def test_sequential_file_workers_produce_same_result(make_context, demo_catalog, remote, archive_config) -> None:
    _, manifest = demo_catalog
    concurrency = archive_config.concurrency.model_copy(update={"file_workers": 1})
    context = make_context(concurrency=concurrency)

    result = sync_project(manifest.projects[1], manifest, context)

    assert result.downloaded == 2
    assert sorted(remote.file_requests()) == sorted([DEMO_URL, SOURCES_URL])


def test_undecodable_sidecar_is_reported_and_redownloaded(make_context, demo_catalog, remote) -> None:
    _, manifest = demo_catalog
    context = make_context()
    store = context.store
    for file_id, filename in ((100, "demo.jar"), (101, "demo-sources.jar")):
        blob = store.blob_path("mod", 1, file_id, filename)
        blob.parent.mkdir(parents=True, exist_ok=True)
        blob.write_bytes(b"stale")
        store.sidecar_path("mod", 1, file_id, filename).write_bytes(b"\xff\xfe garbage")

    result = sync_project(manifest.projects[1], manifest, context)

    assert (result.downloaded, result.failed) == (2, 0)
    assert store.blob_path("mod", 1, 100, "demo.jar").read_bytes() == b"demo jar bytes"
    sidecar = read_file_data(store.sidecar_path("mod", 1, 100, "demo.jar"))
    assert sidecar.sha256 == hashlib.sha256(b"demo jar bytes").hexdigest()
    assert context.error_log.count == 2
