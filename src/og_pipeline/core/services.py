"""Publish orchestration for per-photo and homepage OG images."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..rendering.renderer import render_homepage_og_image, render_og_image
from .assets import AssetResolver, FontBundle, font_search_dirs, load_font_bundle
from .config import OgImageOptions, ResolvedOgConfig, StorageConfig, load_site_meta, remote_key, resolve_config
from .error_handling import RunErrorCollector
from .metadata import build_exif_summary, item_date
from .models import (
    CatalogItem,
    HomepageStats,
    HomepageTemplate,
    ItemOutcome,
    ItemStatus,
    OgTemplate,
    RunOptions,
    RunSummary,
    SiteMeta,
    ThumbnailData,
)
from .observability import LogContext, MetricsCollector, StructuredLogger, timed_operation
from .protocols import LoggerProtocol, Rasterizer, StoragePort, TextMeasurer
from .run_state import RunState
from .storage import StorageAdapterFactory

FEATURED_PHOTO_LIMIT = 6


@dataclass
class ItemContext:
    """Context for processing one catalog item."""

    correlation_id: str
    start_time: float = field(default_factory=time.time)
    log_context: LogContext = field(default_factory=LogContext)


class OgImageRun:
    """
    Renders and publishes the OG image of each catalog item.

    Configuration is resolved once here. The run state (dedup sets, URL cache,
    fonts, site branding) is created lazily on the first item and dropped by
    ``finish_run()``.
    """

    def __init__(
        self,
        options: OgImageOptions,
        storage: Optional[StoragePort] = None,
        ambient_storage: Optional[StorageConfig] = None,
        asset_resolver: Optional[AssetResolver] = None,
        rasterizer: Optional[Rasterizer] = None,
        measurer: Optional[TextMeasurer] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        cwd: Optional[Path] = None,
    ):
        self._options = options
        self._cwd = cwd or Path.cwd()
        self._logger = logger or StructuredLogger("og-pipeline.run")
        self._metrics = metrics_collector or MetricsCollector()
        self._rasterizer = rasterizer
        self._measurer = measurer
        self.config: ResolvedOgConfig = resolve_config(options, ambient_storage)

        if self.config.enabled and storage is None and self.config.storage_config is not None:
            storage = StorageAdapterFactory.create_storage(self.config.storage_config)
        self._storage = storage

        public_root = Path(options.public_root) if options.public_root else self._cwd / "public"
        self._assets = asset_resolver or AssetResolver(public_root=public_root)
        self._state: Optional[RunState] = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self._storage is not None

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def state(self) -> RunState:
        if self._state is None:
            self._state = RunState()
        return self._state

    def finish_run(self) -> None:
        """Drop the run state; the next item starts a fresh run."""
        if self._state is not None:
            self._state.reset()
        self._state = None

    async def site_meta(self) -> SiteMeta:
        state = self.state
        if state.site_meta is None:
            state.site_meta = await load_site_meta(self._options, cwd=self._cwd)
        return state.site_meta

    async def fonts(self) -> Optional[FontBundle]:
        """
        The run's font bundle, or None when a required font is missing.

        A failed lookup is not repeated within the run; a bundle that expired
        from the cache is loaded again.
        """
        state = self.state
        bundle = state.fonts.get()
        if bundle is not None:
            return bundle
        if state.fonts_checked and not state.fonts.expired:
            return None

        bundle = await load_font_bundle(font_search_dirs(self._options.font_dirs, self._cwd))
        state.fonts_checked = True
        if bundle is not None:
            state.fonts.set(bundle)
        return bundle

    async def build_template(
        self, item: CatalogItem, thumbnail: Optional[ThumbnailData] = None
    ) -> OgTemplate:
        site = await self.site_meta()
        return OgTemplate(
            photo_title=item.title or item.id,
            site_name=site.site_name,
            tags=item.tags,
            formatted_date=item_date(item),
            exif_info=build_exif_summary(item),
            thumbnail_src=await self._assets.resolve_thumbnail(item, thumbnail),
            photo_width=item.width,
            photo_height=item.height,
            accent_color=site.accent_color,
        )

    @timed_operation("render", lambda self: self._metrics)
    async def _render(self, template: OgTemplate, fonts: FontBundle) -> bytes:
        return await render_og_image(
            template, fonts, rasterizer=self._rasterizer, measurer=self._measurer
        )

    @timed_operation("upload", lambda self: self._metrics)
    async def _upload(self, key: str, data: bytes) -> None:
        await self._storage.upload(key=key, data=data, content_type=self.config.content_type)

    async def _public_url(self, state: RunState, key: str) -> str:
        if key not in state.url_cache:
            state.url_cache[key] = await self._storage.generate_public_url(key=key)
        return state.url_cache[key]

    async def process_item(
        self,
        item: CatalogItem,
        skipped: bool = False,
        thumbnail: Optional[ThumbnailData] = None,
        options: Optional[RunOptions] = None,
    ) -> ItemOutcome:
        """
        Publish the OG image of one item and write its URL back.

        Without the required fonts nothing is rendered or written back, not
        even for skipped items. Items skipped upstream reuse the deterministic
        key's URL unless a force flag is set. Failures end the item, never
        the run.
        """
        options = options or RunOptions()
        key = remote_key(self.config.remote_prefix, item.id)
        correlation_id = f"og_{item.id}_{int(time.time() * 1000)}"
        context = ItemContext(
            correlation_id=correlation_id,
            log_context=LogContext(
                correlation_id=correlation_id,
                operation="process_item",
                component="og_image_run",
            ).with_metadata(item_id=item.id, remote_key=key),
        )
        log_context = context.log_context
        outcome = ItemOutcome(item_id=item.id, remote_key=key)

        def done(status: ItemStatus, error: str = "") -> ItemOutcome:
            outcome.status = status
            outcome.error = error
            outcome.processing_time = time.time() - context.start_time
            return outcome

        if not self.enabled:
            return done(ItemStatus.DISABLED, self.config.disabled_reason)

        state = self.state

        fonts = await self.fonts()
        if fonts is None:
            return done(ItemStatus.SKIPPED_NO_FONTS, "required fonts are missing")

        should_render = not skipped or options.forced

        if not should_render:
            async with state.lock:
                try:
                    url = await self._public_url(state, key)
                except Exception as e:
                    self._logger.info(
                        "Could not resolve the existing OG image URL",
                        log_context.with_metadata(error=str(e)),
                    )
                    return done(ItemStatus.URL_UNRESOLVED, str(e))
            item.og_image_url = url
            outcome.url = url
            return done(ItemStatus.URL_REUSED)

        try:
            self._logger.debug("Rendering OG image", log_context.with_operation("render"))
            template = await self.build_template(item, thumbnail)
            png = await self._render(template, fonts)
        except Exception as e:
            self._logger.error("OG image render failed", log_context.with_metadata(error=str(e)))
            return done(ItemStatus.RENDER_FAILED, str(e))

        # Storage ports are injectable; any failure they raise ends this item only
        async with state.lock:
            if key not in state.uploaded_keys or options.forced:
                try:
                    self._logger.debug("Uploading OG image", log_context.with_operation("upload"))
                    await self._upload(key, png)
                except Exception as e:
                    self._logger.error(
                        "OG image upload failed", log_context.with_metadata(error=str(e))
                    )
                    return done(ItemStatus.UPLOAD_FAILED, str(e))
                outcome.uploaded = True
            state.uploaded_keys.add(key)

            try:
                url = await self._public_url(state, key)
            except Exception as e:
                self._logger.error(
                    "OG image URL resolution failed", log_context.with_metadata(error=str(e))
                )
                return done(ItemStatus.URL_UNRESOLVED, str(e))

        item.og_image_url = url
        outcome.url = url
        self._logger.info(
            "Published OG image",
            log_context,
            uploaded=outcome.uploaded,
        )
        return done(ItemStatus.RENDERED)

    async def run(
        self,
        items: Sequence[CatalogItem],
        skipped_ids: Iterable[str] = (),
        thumbnails: Optional[Dict[str, ThumbnailData]] = None,
        options: Optional[RunOptions] = None,
    ) -> RunSummary:
        """Process ``items`` one after another and summarize the run."""
        start_time = time.time()
        skipped = set(skipped_ids)
        thumbnails = thumbnails or {}
        outcomes: List[ItemOutcome] = []

        if not self.enabled:
            self._logger.warning(
                f"OG image pipeline disabled: {self.config.disabled_reason or 'no storage'}"
            )

        try:
            with RunErrorCollector(f"OG image run ({len(items)} items)") as collector:
                for item in items:
                    outcome = await self.process_item(
                        item,
                        skipped=item.id in skipped,
                        thumbnail=thumbnails.get(item.id),
                        options=options,
                    )
                    if outcome.error and outcome.status is not ItemStatus.DISABLED:
                        collector.add_error(outcome.error, item.id)
                    outcomes.append(outcome)
        finally:
            self.finish_run()

        return RunSummary.from_outcomes(outcomes, time.time() - start_time)


class HomepageRenderer:
    """Renders the site-level OG image from the catalog manifest."""

    def __init__(
        self,
        options: OgImageOptions,
        asset_resolver: Optional[AssetResolver] = None,
        rasterizer: Optional[Rasterizer] = None,
        measurer: Optional[TextMeasurer] = None,
        cwd: Optional[Path] = None,
    ):
        self._options = options
        self._cwd = cwd or Path.cwd()
        public_root = Path(options.public_root) if options.public_root else self._cwd / "public"
        self._assets = asset_resolver or AssetResolver(public_root=public_root)
        self._rasterizer = rasterizer
        self._measurer = measurer

    @staticmethod
    def build_stats(
        items: Sequence[CatalogItem], cameras: Optional[Sequence[Any]] = None
    ) -> HomepageStats:
        """Photo, tag and camera counts; storage size when items carry ``size``."""
        tags = {tag for item in items for tag in item.tags}
        if cameras is not None:
            unique_cameras = len(cameras)
        else:
            summaries = (build_exif_summary(item) for item in items)
            unique_cameras = len({s.camera for s in summaries if s is not None and s.camera})

        sizes = [
            (item.model_extra or {}).get("size")
            for item in items
        ]
        byte_sizes = [size for size in sizes if isinstance(size, (int, float))]
        total_size_gb = sum(byte_sizes) / 1024**3 if byte_sizes else None

        return HomepageStats(
            total_photos=len(items),
            unique_tags=len(tags),
            unique_cameras=unique_cameras,
            total_size_gb=total_size_gb,
        )

    async def build_template(
        self,
        items: Sequence[CatalogItem],
        cameras: Optional[Sequence[Any]] = None,
        author_avatar: Optional[str] = None,
    ) -> HomepageTemplate:
        site = await load_site_meta(self._options, cwd=self._cwd)
        avatar = await self._assets.resolve_avatar(
            author_avatar or site.author_avatar, base_url=site.url
        )
        featured = [
            await self._assets.resolve_thumbnail(item)
            for item in items[:FEATURED_PHOTO_LIMIT]
        ]
        return HomepageTemplate(
            site_name=site.site_name,
            site_description=site.description,
            author_avatar=avatar,
            accent_color=site.accent_color,
            stats=self.build_stats(items, cameras),
            featured_photos=featured,
        )

    async def render(
        self,
        items: Sequence[CatalogItem],
        cameras: Optional[Sequence[Any]] = None,
        author_avatar: Optional[str] = None,
    ) -> Optional[bytes]:
        """PNG bytes of the homepage image; None when fonts are missing."""
        fonts = await load_font_bundle(font_search_dirs(self._options.font_dirs, self._cwd))
        if fonts is None:
            return None
        template = await self.build_template(items, cameras, author_avatar)
        return await render_homepage_og_image(
            template, fonts, rasterizer=self._rasterizer, measurer=self._measurer
        )
