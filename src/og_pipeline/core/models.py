"""Shared data models for the OG image pipeline."""

import math
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExifMetadata(BaseModel):
    """Raw camera/exposure block of a manifest item (manifest EXIF tag names)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    make: Optional[str] = Field(default=None, alias="Make")
    model: Optional[str] = Field(default=None, alias="Model")
    focal_length: Optional[Union[float, str]] = Field(default=None, alias="FocalLength")
    focal_length_35mm: Optional[Union[float, str]] = Field(
        default=None, alias="FocalLengthIn35mmFormat"
    )
    f_number: Optional[Union[float, str]] = Field(default=None, alias="FNumber")
    iso: Optional[Union[int, str]] = Field(default=None, alias="ISO")
    exposure_time: Optional[Union[float, str]] = Field(default=None, alias="ExposureTime")
    date_time_original: Optional[str] = Field(default=None, alias="DateTimeOriginal")


class CatalogItem(BaseModel):
    """One photo of the catalog manifest.

    The pipeline only reads the item and writes back ``og_image_url``; unknown
    manifest keys are preserved so the manifest can be written back verbatim.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    width: float = 1
    height: float = 1
    exif: Optional[ExifMetadata] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    og_image_url: Optional[str] = Field(default=None, alias="ogImageUrl")

    @field_validator("width", "height", mode="before")
    @classmethod
    def _coerce_dimension(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 1
        if not math.isfinite(number) or number < 1:
            return 1
        return number

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        return [str(tag) for tag in value]

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


class ThumbnailData(BaseModel):
    """Thumbnail payload handed over by the thumbnail stage, if any."""

    buffer: Optional[bytes] = None
    local_url: Optional[str] = None


class ExifSummary(BaseModel):
    """Compact, display-ready camera/exposure summary."""

    model_config = ConfigDict(frozen=True)

    focal_length: Optional[str] = None
    aperture: Optional[str] = None
    iso: Optional[Union[int, str]] = None
    shutter_speed: Optional[str] = None
    camera: Optional[str] = None


class SiteMeta(BaseModel):
    """Site branding used by the watermark and the accent bar."""

    site_name: str
    accent_color: str
    description: Optional[str] = None
    author_avatar: Optional[str] = None
    url: Optional[str] = None


class RunOptions(BaseModel):
    """Orchestration-level overrides of a run."""

    force_mode: bool = False
    force_manifest: bool = False

    @property
    def forced(self) -> bool:
        return self.force_mode or self.force_manifest


class OgTemplate(BaseModel):
    """Everything the per-photo scene needs, already resolved."""

    photo_title: str
    site_name: str
    tags: List[str] = Field(default_factory=list)
    formatted_date: Optional[str] = None
    exif_info: Optional[ExifSummary] = None
    thumbnail_src: Optional[str] = None
    photo_width: float = 1
    photo_height: float = 1
    accent_color: str = "#007bff"


class HomepageStats(BaseModel):
    total_photos: int = 0
    unique_tags: int = 0
    unique_cameras: int = 0
    total_size_gb: Optional[float] = None


class HomepageTemplate(BaseModel):
    """Site-level preview: stats, optional avatar and photo collage."""

    site_name: str
    site_description: Optional[str] = None
    author_avatar: Optional[str] = None
    accent_color: str = "#007bff"
    stats: HomepageStats = Field(default_factory=HomepageStats)
    featured_photos: List[Optional[str]] = Field(default_factory=list)


class ItemStatus(str, Enum):
    """Terminal state of one item in a run."""

    RENDERED = "rendered"
    URL_REUSED = "url_reused"
    SKIPPED_NO_FONTS = "skipped_no_fonts"
    URL_UNRESOLVED = "url_unresolved"
    RENDER_FAILED = "render_failed"
    UPLOAD_FAILED = "upload_failed"
    DISABLED = "disabled"


class ItemOutcome(BaseModel):
    """Result of processing a single catalog item."""

    item_id: str
    remote_key: str = ""
    status: ItemStatus = ItemStatus.DISABLED
    url: Optional[str] = None
    uploaded: bool = False
    error: str = ""
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in (ItemStatus.RENDERED, ItemStatus.URL_REUSED)


class RunSummary(BaseModel):
    """Aggregated outcome of one run."""

    total_items: int = 0
    succeeded: int = 0
    failed: int = 0
    uploaded: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    processing_time: float = 0.0

    @classmethod
    def from_outcomes(
        cls, outcomes: List[ItemOutcome], processing_time: float = 0.0
    ) -> "RunSummary":
        by_status: Dict[str, int] = {}
        for outcome in outcomes:
            by_status[outcome.status.value] = by_status.get(outcome.status.value, 0) + 1
        succeeded = sum(1 for o in outcomes if o.success)
        return cls(
            total_items=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            uploaded=sum(1 for o in outcomes if o.uploaded),
            by_status=by_status,
            processing_time=processing_time,
        )
