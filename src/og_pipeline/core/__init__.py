"""Core utilities and shared components for the OG image pipeline."""

from .config import (
    OgImageOptions,
    ResolvedOgConfig,
    StorageConfig,
    remote_key,
    resolve_config,
)
from .exceptions import (
    AssetNotFoundError,
    ConfigurationError,
    OgPipelineError,
    RenderError,
    StorageError,
    UnsupportedStorageError,
    UploadError,
    UrlResolutionError,
)
from .error_handling import RunErrorCollector, with_error_handling
from .logging_config import get_logger, set_debug_logging, setup_logger
from .metadata import build_exif_summary, format_date
from .models import (
    CatalogItem,
    ExifSummary,
    ItemOutcome,
    ItemStatus,
    OgTemplate,
    RunOptions,
    RunSummary,
    ThumbnailData,
)

__all__ = [
    "OgImageOptions",
    "ResolvedOgConfig",
    "StorageConfig",
    "remote_key",
    "resolve_config",
    "AssetNotFoundError",
    "ConfigurationError",
    "OgPipelineError",
    "RenderError",
    "StorageError",
    "UnsupportedStorageError",
    "UploadError",
    "UrlResolutionError",
    "RunErrorCollector",
    "with_error_handling",
    "get_logger",
    "set_debug_logging",
    "setup_logger",
    "build_exif_summary",
    "format_date",
    "CatalogItem",
    "ExifSummary",
    "ItemOutcome",
    "ItemStatus",
    "OgTemplate",
    "RunOptions",
    "RunSummary",
    "ThumbnailData",
]
