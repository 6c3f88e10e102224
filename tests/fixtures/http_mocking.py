# === NAVMAP v1 ===
# {
#   "module": "tests.fixtures.http_mocking",
#   "purpose": "HTTP mocking and catalog builders for hermetic archive tests",
#   "sections": [
#     {"id": "fake-remote", "name": "FakeRemote", "anchor": "class-fake-remote", "kind": "class"},
#     {"id": "catalog-builders", "name": "project_entry / file_entry / build_manifest", "anchor": "builders", "kind": "section"}
#   ]
# }
# === /NAVMAP ===

"""
HTTP mocking for hermetic archive testing.

``FakeRemote`` stands in for both the manifest host and the file CDN via an
HTTPX ``MockTransport``, recording every request so tests can assert on the
number of network fetches an archive pass performed. The builders produce
manifest documents shaped like ``cleaned_raw.json``.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from CurseArchive.network import create_http_client

MANIFEST_URL = "http://meta.test/cleaned_raw.json"


class FakeRemote:
    """Route table of URL -> response, with a request log."""

    def __init__(self) -> None:
        self._routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self._lock = threading.Lock()
        self.requests: List[str] = []

    def serve(self, url: str, body: bytes | str, *, status: int = 200) -> None:
        content = body.encode("utf-8") if isinstance(body, str) else body
        self._routes[url] = lambda request: httpx.Response(status, content=content)

    def serve_json(self, url: str, payload: Dict[str, Any]) -> None:
        self.serve(url, json.dumps(payload))

    def route(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[url] = handler

    def fail(self, url: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self._routes[url] = _raise

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.requests.append(url)
        route = self._routes.get(url)
        if route is None:
            return httpx.Response(404, content=b"not mocked")
        return route(request)

    def count(self, url: str) -> int:
        with self._lock:
            return sum(1 for seen in self.requests if seen == url)

    def file_requests(self) -> List[str]:
        with self._lock:
            return [url for url in self.requests if url != MANIFEST_URL]

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()

    def client(self) -> httpx.Client:
        return create_http_client(transport=httpx.MockTransport(self.handler))


def project_entry(
    project_id: int, *, title: str = "Demo", type_: str = "mod", files: Iterable[int] = ()
) -> Dict[str, Any]:
    return {
        "id": project_id,
        "title": title,
        "type": type_,
        "authors": ["someone"],
        "files": list(files),
        "categories": [423],
        "attachments": [],
        "desc": "A demo project",
        "stage": "release",
        "popularity": 1.5,
        "downloads": 42,
    }


def file_entry(
    file_id: int, *, project: int, filename: str, url: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "id": file_id,
        "project": project,
        "filename": filename,
        "name": filename,
        "url": url or f"http://cdn.test/{file_id}/{filename}",
        "fingerprint": 123456789,
        "available": True,
        "dependencies": [{"Type": "required", "AddOnID": 7}],
        "versions": ["1.12.2"],
    }


def build_manifest(
    projects: Iterable[Dict[str, Any]], files: Iterable[Dict[str, Any]]
) -> Dict[str, Any]:
    return {
        "projects": {str(entry["id"]): entry for entry in projects},
        "files": {str(entry["id"]): entry for entry in files},
    }
