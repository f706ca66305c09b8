"""Integration tests for the complete pipeline."""

import asyncio
import json

import httpx
import pytest

from og_pipeline.core.config import OgImageOptions, StorageConfig
from og_pipeline.core.factories import OgPipelineFactory
from og_pipeline.core.models import ItemStatus, RunOptions
from og_pipeline.main import load_manifest, write_manifest
from og_pipeline.rendering import renderer
from og_pipeline.testing.fakes import (
    FakeLogger,
    FakeRasterizer,
    FakeTextMeasurer,
    create_font_dir,
    create_test_catalog,
    create_test_image,
)


@pytest.fixture(autouse=True)
def fake_measurer(monkeypatch):
    # Placeholder font files cannot be parsed by FreeType
    monkeypatch.setattr(renderer, "PillowTextMeasurer", lambda fonts: FakeTextMeasurer())
    monkeypatch.delenv("OG_FONT_DIR", raising=False)


@pytest.fixture
def site(tmp_path):
    """A site directory: fonts, public thumbnails, branding and local storage."""
    create_font_dir(tmp_path / "assets" / "fonts")
    (tmp_path / "public" / "thumbnails").mkdir(parents=True)
    (tmp_path / "public" / "thumbnails" / "landscape.jpg").write_bytes(create_test_image(60, 40))
    (tmp_path / "config.json").write_text(json.dumps({"name": "Harbor Photos"}))
    return tmp_path


def _local_storage(site):
    return StorageConfig(
        provider="local", basePath=str(site / "dist"), baseUrl="https://photos.example.com"
    )


class TestPipelineIntegration:
    """Integration tests for the publish pipeline against local storage."""

    def test_end_to_end_local_storage(self, site):
        rasterizer = FakeRasterizer()
        run = OgPipelineFactory.create_run(
            OgImageOptions(directory="og"),
            ambient_storage=_local_storage(site),
            logger=FakeLogger(),
            rasterizer=rasterizer,
            cwd=site,
        )
        items = create_test_catalog()
        items[1].thumbnail_url = "/thumbnails/landscape.jpg"

        summary = asyncio.run(run.run(items))

        assert summary.succeeded == 4
        assert summary.uploaded == 4
        for item in items:
            assert item.og_image_url == f"https://photos.example.com/og/{item.id}.png"
            assert (site / "dist" / "og" / f"{item.id}.png").read_bytes().startswith(b"\x89PNG")

        documents = "\n".join(rasterizer.documents)
        assert documents.count("Harbor Photos") >= 4
        assert "data:image/jpeg;base64," in documents
        assert "No Preview" in documents

    def test_second_run_with_skips_reuses_urls(self, site):
        storage = _local_storage(site)
        items = create_test_catalog()

        first = OgPipelineFactory.create_run(
            OgImageOptions(), ambient_storage=storage, rasterizer=FakeRasterizer(), cwd=site
        )
        asyncio.run(first.run(items))

        rasterizer = FakeRasterizer()
        second = OgPipelineFactory.create_run(
            OgImageOptions(), ambient_storage=storage, rasterizer=rasterizer, cwd=site
        )
        summary = asyncio.run(second.run(items, skipped_ids=[item.id for item in items]))

        assert summary.by_status == {ItemStatus.URL_REUSED.value: 4}
        assert summary.uploaded == 0
        assert rasterizer.documents == []

        forced = asyncio.run(
            second.run(items, skipped_ids=[i.id for i in items], options=RunOptions(force_mode=True))
        )
        assert forced.uploaded == 4

    def test_remote_thumbnails_through_http_client(self, site):
        def handler(request):
            return httpx.Response(200, content=b"webp", headers={"content-type": "image/webp"})

        rasterizer = FakeRasterizer()
        run = OgPipelineFactory.create_run(
            OgImageOptions(),
            ambient_storage=_local_storage(site),
            rasterizer=rasterizer,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            cwd=site,
        )
        items = create_test_catalog()[:1]
        items[0].thumbnail_url = "https://cdn.example.com/portrait.webp"

        asyncio.run(run.run(items))
        assert "data:image/webp;base64,d2VicA==" in rasterizer.documents[0]

    def test_manifest_round_trip(self, site):
        manifest = site / "photos-manifest.json"
        manifest.write_text(
            json.dumps(
                {
                    "version": "v7",
                    "data": [
                        {"id": "a", "title": "A", "width": 3000, "height": 2000, "extra": 1},
                        {"id": "b", "title": "B", "width": 2000, "height": 3000},
                    ],
                    "cameras": [],
                }
            )
        )
        document, items = load_manifest(manifest)

        run = OgPipelineFactory.create_run(
            OgImageOptions(),
            ambient_storage=_local_storage(site),
            rasterizer=FakeRasterizer(),
            cwd=site,
        )
        asyncio.run(run.run(items))
        write_manifest(manifest, document, items)

        written = json.loads(manifest.read_text())
        assert written["version"] == "v7"
        assert written["data"][0]["extra"] == 1
        assert [entry["ogImageUrl"] for entry in written["data"]] == [
            "https://photos.example.com/.afilmory/og-images/a.png",
            "https://photos.example.com/.afilmory/og-images/b.png",
        ]

    def test_homepage_renderer(self, site):
        rasterizer = FakeRasterizer()
        renderer_ = OgPipelineFactory.create_homepage_renderer(
            OgImageOptions(), rasterizer=rasterizer, cwd=site
        )
        png = asyncio.run(renderer_.render(create_test_catalog()))

        assert png.startswith(b"\x89PNG")
        assert "Harbor Photos" in rasterizer.documents[0]
