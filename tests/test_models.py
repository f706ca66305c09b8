"""Tests for the pydantic data models."""

import math

import pytest
from pydantic import ValidationError

from og_pipeline.core.models import (
    CatalogItem,
    ExifMetadata,
    ItemOutcome,
    ItemStatus,
    RunOptions,
    RunSummary,
)


class TestCatalogItem:
    def test_accepts_manifest_names(self):
        item = CatalogItem.model_validate(
            {
                "id": "a1",
                "title": "Dusk",
                "width": 4000,
                "height": 3000,
                "thumbnailUrl": "/thumbnails/a1.jpg",
                "lastModified": "2024-01-02T03:04:05Z",
                "exif": {"Make": "Sony", "FocalLengthIn35mmFormat": 35, "ISO": 200},
            }
        )
        assert item.thumbnail_url == "/thumbnails/a1.jpg"
        assert item.last_modified == "2024-01-02T03:04:05Z"
        assert item.exif.make == "Sony"
        assert item.exif.focal_length_35mm == 35
        assert item.exif.iso == 200
        assert item.og_image_url is None

    @pytest.mark.parametrize("value", [0, -5, None, "abc", math.inf, math.nan, 0.5])
    def test_invalid_dimensions_become_one(self, value):
        item = CatalogItem(id="x", width=value, height=value)
        assert item.width == 1
        assert item.height == 1
        assert item.aspect_ratio == 1

    def test_aspect_ratio(self):
        assert CatalogItem(id="x", width=3000, height=2000).aspect_ratio == 1.5

    def test_missing_tags_become_empty_list(self):
        assert CatalogItem(id="x", tags=None).tags == []

    def test_unknown_keys_are_preserved(self):
        item = CatalogItem.model_validate({"id": "x", "size": 1024, "format": "jpg"})
        assert item.model_extra == {"size": 1024, "format": "jpg"}

    def test_id_is_required(self):
        with pytest.raises(ValidationError):
            CatalogItem.model_validate({"title": "no id"})

    def test_exif_snake_case_names(self):
        exif = ExifMetadata(f_number=1.8, exposure_time="1/250")
        assert exif.f_number == 1.8
        assert exif.exposure_time == "1/250"


class TestRunOptions:
    @pytest.mark.parametrize(
        "force_mode,force_manifest,expected",
        [(False, False, False), (True, False, True), (False, True, True), (True, True, True)],
    )
    def test_forced(self, force_mode, force_manifest, expected):
        assert RunOptions(force_mode=force_mode, force_manifest=force_manifest).forced is expected


class TestRunSummary:
    def test_from_outcomes_counts_statuses(self):
        outcomes = [
            ItemOutcome(item_id="a", status=ItemStatus.RENDERED, uploaded=True),
            ItemOutcome(item_id="b", status=ItemStatus.URL_REUSED),
            ItemOutcome(item_id="c", status=ItemStatus.RENDER_FAILED, error="boom"),
            ItemOutcome(item_id="d", status=ItemStatus.RENDERED),
        ]

        summary = RunSummary.from_outcomes(outcomes, processing_time=1.5)

        assert summary.total_items == 4
        assert summary.succeeded == 3
        assert summary.failed == 1
        assert summary.uploaded == 1
        assert summary.by_status == {"rendered": 2, "url_reused": 1, "render_failed": 1}
        assert summary.processing_time == 1.5

    def test_empty_run(self):
        summary = RunSummary.from_outcomes([])
        assert summary.total_items == 0
        assert summary.by_status == {}
