"""Factory classes for creating configured service instances."""

from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from .assets import AssetResolver
from .config import OgImageOptions, StorageConfig
from .protocols import LoggerProtocol, Rasterizer, StoragePort
from .services import HomepageRenderer, OgImageRun


class OgPipelineFactory:
    """Factory for creating the publish pipeline and the homepage renderer."""

    @staticmethod
    def create_asset_resolver(
        options: OgImageOptions,
        http_client: Optional[httpx.AsyncClient] = None,
        cwd: Optional[Path] = None,
    ) -> AssetResolver:
        base = cwd or Path.cwd()
        public_root = Path(options.public_root) if options.public_root else base / "public"
        if not public_root.is_absolute():
            public_root = base / public_root
        return AssetResolver(http_client=http_client, public_root=public_root)

    @staticmethod
    def create_run(
        options: OgImageOptions,
        storage: Optional[StoragePort] = None,
        ambient_storage: Optional[StorageConfig] = None,
        logger: Optional[LoggerProtocol] = None,
        rasterizer: Optional[Rasterizer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cwd: Optional[Path] = None,
    ) -> OgImageRun:
        """Create a fully configured publish run."""
        return OgImageRun(
            options,
            storage=storage,
            ambient_storage=ambient_storage,
            asset_resolver=OgPipelineFactory.create_asset_resolver(options, http_client, cwd),
            rasterizer=rasterizer,
            logger=logger,
            cwd=cwd,
        )

    @staticmethod
    def create_homepage_renderer(
        options: OgImageOptions,
        rasterizer: Optional[Rasterizer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cwd: Optional[Path] = None,
    ) -> HomepageRenderer:
        return HomepageRenderer(
            options,
            asset_resolver=OgPipelineFactory.create_asset_resolver(options, http_client, cwd),
            rasterizer=rasterizer,
            cwd=cwd,
        )

    @staticmethod
    def options_from_dict(raw: Optional[Dict[str, Any]]) -> OgImageOptions:
        """Build options from a parsed JSON document (camelCase or snake_case keys)."""
        return OgImageOptions.model_validate(raw or {})
