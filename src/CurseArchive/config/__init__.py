"""Typed configuration for the archiver (models plus file/env/CLI loading)."""

from .loader import DEFAULT_ENV_PREFIX, load_config
from .models import (
    DEFAULT_MANIFEST_URL,
    ArchiveConfig,
    ConcurrencyConfig,
    HttpClientConfig,
    LoggingConfig,
    SelectionConfig,
)

__all__ = [
    "DEFAULT_ENV_PREFIX",
    "DEFAULT_MANIFEST_URL",
    "ArchiveConfig",
    "ConcurrencyConfig",
    "HttpClientConfig",
    "LoggingConfig",
    "SelectionConfig",
    "load_config",
]
