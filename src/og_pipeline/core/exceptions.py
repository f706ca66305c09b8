"""Custom exceptions for the OG image pipeline."""

from __future__ import annotations


class OgPipelineError(Exception):
    """Base exception for all OG image pipeline errors."""


class ConfigurationError(OgPipelineError):
    """Error raised for invalid configuration options."""


class UnsupportedStorageError(ConfigurationError):
    """Error raised when a storage provider has no key/URL object model."""

    def __init__(self, provider: str):
        super().__init__(f"Storage provider '{provider}' is not supported")
        self.provider = provider


class AssetNotFoundError(OgPipelineError):
    """Error raised when a required asset (font, image) cannot be located."""


class RenderError(OgPipelineError):
    """Error raised when a scene cannot be turned into a raster image."""


class StorageError(OgPipelineError):
    """Error raised for storage backend failures."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class UploadError(StorageError):
    """Error raised when an object upload fails."""


class UrlResolutionError(StorageError):
    """Error raised when a public URL cannot be generated for a key."""
