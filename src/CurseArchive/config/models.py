"""
Pydantic v2 Configuration Models for CurseArchive

Provides strict, typed configuration for every archiver subsystem:
- Project selection (which catalog types are in scope)
- Concurrency bounds for project and file workers
- HTTP client settings (timeouts, TLS, pool size, chunking)
- Logging (level, directory, retention)
- Top-level ArchiveConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MANIFEST_URL = "https://cursemeta.dries007.net/cleaned_raw.json"

# ============================================================================
# Subsystem Models
# ============================================================================


class SelectionConfig(BaseModel):
    """Which catalog projects are archived."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    project_types: List[str] = Field(
        default_factory=lambda: ["mod"],
        description="Project type tags to archive (mod, modpack, texturepack, world, ...)",
    )

    @field_validator("project_types")
    @classmethod
    def validate_project_types(cls, v: List[str]) -> List[str]:
        cleaned = [item.strip() for item in v if item and item.strip()]
        if not cleaned:
            raise ValueError("project_types must name at least one type")
        return cleaned


class ConcurrencyConfig(BaseModel):
    """Bounds on parallel work."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    project_workers: int = Field(default=8, description="Projects processed in parallel")
    file_workers: int = Field(default=4, description="Downloads in parallel per project")

    @field_validator("project_workers", "file_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("worker counts must be >= 1")
        return v


class HttpClientConfig(BaseModel):
    """Configuration for HTTP client behavior."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(
        default="CurseArchive (+https://github.com/modmuss50/CurseArchiver)",
        description="User-Agent string",
    )
    timeout_connect_s: float = Field(default=10.0, description="Connection timeout in seconds")
    timeout_read_s: float = Field(default=120.0, description="Read timeout in seconds")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    max_connections: int = Field(default=32, description="Connection pool size")
    chunk_size_bytes: int = Field(default=1 << 20, description="Stream chunk size")

    @field_validator("timeout_connect_s", "timeout_read_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v

    @field_validator("max_connections", "chunk_size_bytes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Must be > 0")
        return v


class LoggingConfig(BaseModel):
    """Configuration for console and JSONL file logging."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Log level")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for JSONL logs (defaults to <data_dir>/logs)"
    )
    retention_days: int = Field(default=30, description="Days before logs are compressed/purged")
    max_log_size_mb: int = Field(default=100, description="Rotation threshold per log file")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        normalized = v.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return normalized

    @field_validator("retention_days", "max_log_size_mb")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Must be > 0")
        return v


# ============================================================================
# Top-level Config
# ============================================================================


class ArchiveConfig(BaseModel):
    """Complete archiver configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    data_dir: Path = Field(default=Path("data"), description="Storage root")
    manifest_url: str = Field(
        default=DEFAULT_MANIFEST_URL,
        description="Catalog manifest URL, or a local path to a manifest JSON file",
    )
    always_hash_check: bool = Field(
        default=True,
        description="Re-download existing blobs that have no sidecar recording their digests",
    )
    strict: bool = Field(
        default=False, description="Exit non-zero when any error was logged during the run"
    )
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    http: HttpClientConfig = Field(default_factory=HttpClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("manifest_url")
    @classmethod
    def validate_manifest_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("manifest_url must not be empty")
        return v.strip()

    def resolved_log_dir(self) -> Path:
        """Return the log directory, defaulting under the storage root."""

        return self.logging.log_dir or (self.data_dir / "logs")

    def config_hash(self) -> str:
        """
        Compute deterministic SHA256 hash of config for reproducibility.

        Returns:
            Hex-encoded SHA256 hash of normalized config JSON.
        """
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()


__all__ = [
    "DEFAULT_MANIFEST_URL",
    "SelectionConfig",
    "ConcurrencyConfig",
    "HttpClientConfig",
    "LoggingConfig",
    "ArchiveConfig",
]
