"""Tests for main.py CLI functionality."""

import json
from unittest.mock import patch

import pytest

from og_pipeline.core.exceptions import ConfigurationError
from og_pipeline.main import load_manifest, load_options, main
from og_pipeline.rendering import renderer
from og_pipeline.testing.fakes import FakeRasterizer, FakeTextMeasurer, create_font_dir


@pytest.fixture
def site(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OG_FONT_DIR", raising=False)
    monkeypatch.setattr(renderer, "CairoSvgRasterizer", lambda fonts: FakeRasterizer())
    monkeypatch.setattr(renderer, "PillowTextMeasurer", lambda fonts: FakeTextMeasurer())
    create_font_dir(tmp_path / "assets" / "fonts")

    (tmp_path / "photos-manifest.json").write_text(
        json.dumps({"data": [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}]})
    )
    (tmp_path / "og.json").write_text(
        json.dumps(
            {
                "storage": {
                    "provider": "local",
                    "basePath": str(tmp_path / "dist"),
                    "baseUrl": "/static",
                },
                "ogImage": {"directory": "og"},
            }
        )
    )
    return tmp_path


class TestMainCLI:
    """Tests for the main CLI functionality."""

    def test_main_with_no_args_shows_help(self):
        """Test that running main without arguments shows help."""
        with patch("sys.argv", ["og-images"]):
            with patch("argparse.ArgumentParser.print_help") as mock_help:
                with patch("sys.exit") as mock_exit:
                    main()
                    mock_help.assert_called_once()
                    mock_exit.assert_called_once_with(1)

    def test_main_version_command(self):
        """Test version command output."""
        with patch("sys.argv", ["og-images", "version"]):
            with patch("builtins.print") as mock_print:
                with patch("sys.exit") as mock_exit:
                    main()
                    mock_print.assert_any_call("OG Image Pipeline CLI")
                    mock_print.assert_any_call("Version 0.1.0")
                    mock_exit.assert_called_once_with(0)

    def test_render_command_writes_manifest(self, site, capsys):
        main(["render", "--manifest", "photos-manifest.json", "--config", "og.json"])

        written = json.loads((site / "photos-manifest.json").read_text())
        assert [entry["ogImageUrl"] for entry in written["data"]] == [
            "/static/og/a.png",
            "/static/og/b.png",
        ]
        assert (site / "dist" / "og" / "a.png").exists()
        assert "2 succeeded" in capsys.readouterr().out

    def test_render_command_with_skips_and_output(self, site):
        main([
            "render", "--manifest", "photos-manifest.json", "--config", "og.json",
            "--skipped", "a", "b", "--output", "out.json",
        ])

        written = json.loads((site / "out.json").read_text())
        assert written["data"][0]["ogImageUrl"] == "/static/og/a.png"
        assert not (site / "dist").exists()

    def test_homepage_command(self, site):
        main(["homepage", "--manifest", "photos-manifest.json", "--out", "public/og-image.png"])
        assert (site / "public" / "og-image.png").read_bytes().startswith(b"\x89PNG")

    def test_missing_manifest_exits_with_error(self, site):
        with pytest.raises(SystemExit) as excinfo:
            main(["render", "--manifest", "missing.json"])
        assert excinfo.value.code == 1

    def test_homepage_without_fonts_exits_with_error(self, site):
        for font in (site / "assets" / "fonts").iterdir():
            font.unlink()
        with pytest.raises(SystemExit) as excinfo:
            main(["homepage", "--manifest", "photos-manifest.json", "--out", "og.png"])
        assert excinfo.value.code == 1


class TestLoaders:
    def test_manifest_may_be_a_list(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text(json.dumps([{"id": "a"}]))
        document, items = load_manifest(path)
        assert document == {"data": [{"id": "a"}]}
        assert items[0].id == "a"

    @pytest.mark.parametrize("content", ["{}", "not json", '{"data": [{"title": "no id"}]}'])
    def test_invalid_manifest(self, tmp_path, content):
        path = tmp_path / "m.json"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_manifest(path)

    def test_flat_options(self, tmp_path):
        path = tmp_path / "og.json"
        path.write_text(json.dumps({"directory": "previews", "contentType": "image/webp"}))
        options, storage = load_options(path)
        assert options.directory == "previews"
        assert options.content_type == "image/webp"
        assert storage is None

    def test_no_options_file(self):
        options, storage = load_options(None)
        assert options.enable
        assert storage is None
