"""Plugin options, storage configuration and their one-time resolution."""

import asyncio
import json
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .logging_config import get_logger
from .models import SiteMeta

DEFAULT_DIRECTORY = ".afilmory/og-images"
DEFAULT_CONTENT_TYPE = "image/png"
DEFAULT_SITE_NAME = "Photo Gallery"
DEFAULT_ACCENT_COLOR = "#007bff"
DEFAULT_SITE_CONFIG = "config.json"

# Providers whose keys live under a configurable bucket prefix
PREFIXED_PROVIDERS = ("s3", "oss", "cos")
UNSUPPORTED_PROVIDERS = ("eagle",)

StorageProvider = Literal["s3", "oss", "cos", "local", "eagle"]


class StorageConfig(BaseModel):
    """Connection settings for the object store receiving the images."""

    model_config = ConfigDict(populate_by_name=True)

    provider: StorageProvider = "s3"
    bucket: str = ""
    region: Optional[str] = None
    endpoint: Optional[str] = None
    prefix: Optional[str] = None
    custom_domain: Optional[str] = Field(default=None, alias="customDomain")
    access_key_id: Optional[str] = Field(default=None, alias="accessKeyId")
    secret_access_key: Optional[str] = Field(default=None, alias="secretAccessKey")
    # local provider
    base_path: Optional[str] = Field(default=None, alias="basePath")
    base_url: Optional[str] = Field(default=None, alias="baseUrl")


class OgImageOptions(BaseModel):
    """Every recognized option, with its default."""

    model_config = ConfigDict(populate_by_name=True)

    enable: bool = True
    directory: Optional[str] = None
    storage_config: Optional[StorageConfig] = Field(default=None, alias="storageConfig")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    site_name: Optional[str] = Field(default=None, alias="siteName")
    accent_color: Optional[str] = Field(default=None, alias="accentColor")
    site_config_path: Optional[str] = Field(default=None, alias="siteConfigPath")
    font_dirs: List[str] = Field(default_factory=list, alias="fontDirs")
    public_root: Optional[str] = Field(default=None, alias="publicRoot")


class ResolvedOgConfig(BaseModel):
    """Options after resolution against the ambient storage configuration."""

    enabled: bool
    directory: str
    remote_prefix: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    use_default_storage: bool = True
    storage_config: Optional[StorageConfig] = None
    disabled_reason: str = ""


def _strip_slashes(value: str) -> str:
    return value.replace("\\", "/").strip("/")


def normalize_directory(directory: Optional[str]) -> str:
    """Trim slashes and normalize separators; empty falls back to the default."""
    value = (directory or "").strip() or DEFAULT_DIRECTORY
    return _strip_slashes(value) or DEFAULT_DIRECTORY


def trim_slashes(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    normalized = _strip_slashes(value)
    return normalized or None


def join_segments(*segments: Optional[str]) -> str:
    """Join key segments with '/', dropping empty ones."""
    parts = [_strip_slashes(segment or "") for segment in segments]
    return "/".join(part for part in parts if part)


def resolve_remote_prefix(storage: StorageConfig, directory: str) -> str:
    if storage.provider in PREFIXED_PROVIDERS:
        return join_segments(trim_slashes(storage.prefix), directory)
    return join_segments(directory)


def remote_key(remote_prefix: str, item_id: str) -> str:
    """Deterministic storage key of an item's preview image."""
    return join_segments(remote_prefix, f"{item_id}.png")


def resolve_config(
    options: OgImageOptions, ambient_storage: Optional[StorageConfig]
) -> ResolvedOgConfig:
    """
    Resolve the options once, at initialization.

    Unsupported storage providers disable the pipeline with a warning rather
    than failing each item later on.
    """
    logger = get_logger("og-pipeline.config")
    directory = normalize_directory(options.directory)
    content_type = options.content_type or DEFAULT_CONTENT_TYPE
    use_default_storage = options.storage_config is None

    if not options.enable:
        return ResolvedOgConfig(
            enabled=False,
            directory=directory,
            content_type=content_type,
            disabled_reason="disabled by configuration",
        )

    storage = options.storage_config or ambient_storage
    if storage is None:
        logger.warning("OG image pipeline: no storage configured; pipeline disabled.")
        return ResolvedOgConfig(
            enabled=False,
            directory=directory,
            content_type=content_type,
            use_default_storage=use_default_storage,
            disabled_reason="no storage configured",
        )

    if storage.provider in UNSUPPORTED_PROVIDERS:
        logger.warning(
            f"OG image pipeline does not support the '{storage.provider}' "
            "storage provider; pipeline disabled."
        )
        return ResolvedOgConfig(
            enabled=False,
            directory=directory,
            content_type=content_type,
            use_default_storage=use_default_storage,
            disabled_reason=f"unsupported storage provider '{storage.provider}'",
        )

    return ResolvedOgConfig(
        enabled=True,
        directory=directory,
        remote_prefix=resolve_remote_prefix(storage, directory),
        content_type=content_type,
        use_default_storage=use_default_storage,
        storage_config=storage,
    )


def _read_site_config(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


async def load_site_meta(options: OgImageOptions, cwd: Optional[Path] = None) -> SiteMeta:
    """
    Resolve site branding from a JSON site config, falling back to options and
    defaults when the file is absent or malformed.
    """
    logger = get_logger("og-pipeline.config")
    fallback = SiteMeta(
        site_name=(options.site_name or "").strip() or DEFAULT_SITE_NAME,
        accent_color=(options.accent_color or "").strip() or DEFAULT_ACCENT_COLOR,
    )

    base = cwd or Path.cwd()
    site_config_path = (base / (options.site_config_path or DEFAULT_SITE_CONFIG)).resolve()

    try:
        parsed = await asyncio.to_thread(_read_site_config, site_config_path)
        if not isinstance(parsed, dict):
            raise ValueError("site config is not a JSON object")
    except (OSError, ValueError) as e:
        logger.info(
            f"OG image pipeline: using fallback site meta "
            f"({site_config_path} not readable: {e})."
        )
        return fallback

    def _text(key: str) -> str:
        value = parsed.get(key)
        return value.strip() if isinstance(value, str) else ""

    author = parsed.get("author")
    avatar = author.get("avatar") if isinstance(author, dict) else None

    return SiteMeta(
        site_name=_text("name") or _text("title") or fallback.site_name,
        accent_color=_text("accentColor") or fallback.accent_color,
        description=_text("description") or None,
        author_avatar=avatar.strip() if isinstance(avatar, str) and avatar.strip() else None,
        url=_text("url") or None,
    )
