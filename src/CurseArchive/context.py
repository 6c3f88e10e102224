"""Run-wide collaborators handed to every project sync."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .config.models import ArchiveConfig
from .reporting import ErrorLog
from .storage import ContentStore

__all__ = ["ArchiveContext"]


@dataclass(frozen=True)
class ArchiveContext:
    """Built once at startup and only read afterwards."""

    config: ArchiveConfig
    store: ContentStore
    client: httpx.Client
    error_log: ErrorLog

    @classmethod
    def create(cls, config: ArchiveConfig, client: httpx.Client) -> "ArchiveContext":
        store = ContentStore(config.data_dir)
        return cls(
            config=config,
            store=store,
            client=client,
            error_log=ErrorLog(store.error_log_path),
        )

    @property
    def always_hash_check(self) -> bool:
        return self.config.always_hash_check

    @property
    def file_workers(self) -> int:
        return self.config.concurrency.file_workers

    @property
    def chunk_size(self) -> int:
        return self.config.http.chunk_size_bytes
