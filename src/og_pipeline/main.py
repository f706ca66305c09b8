"""Main module for the OG image pipeline CLI."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from . import __version__
from .core import (
    CatalogItem,
    OgPipelineError,
    RunOptions,
    RunSummary,
    StorageConfig,
    get_logger,
    set_debug_logging,
)
from .core.exceptions import AssetNotFoundError, ConfigurationError
from .core.factories import OgPipelineFactory


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def load_manifest(path: Path) -> Tuple[Dict[str, Any], List[CatalogItem]]:
    """Parse a photos manifest; returns the raw document and its items."""
    try:
        document = _read_json(path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read manifest {path}: {e}") from e

    if isinstance(document, list):
        document = {"data": document}
    if not isinstance(document, dict) or not isinstance(document.get("data"), list):
        raise ConfigurationError(f"Manifest {path} has no 'data' list")
    try:
        items = [CatalogItem.model_validate(raw) for raw in document["data"]]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid manifest item in {path}: {e}") from e
    return document, items


def write_manifest(path: Path, document: Dict[str, Any], items: List[CatalogItem]) -> None:
    """Write the manifest back with each item's ``ogImageUrl`` filled in."""
    urls = {item.id: item.og_image_url for item in items if item.og_image_url}
    for raw in document["data"]:
        url = urls.get(raw.get("id"))
        if url:
            raw["ogImageUrl"] = url
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(document, fh, ensure_ascii=False, indent=2)
        fh.write("\n")


def load_options(path: Optional[Path]) -> Tuple[Any, Optional[StorageConfig]]:
    """
    Read plugin options from JSON.

    A top-level ``storage`` entry is the ambient storage configuration used
    when the options carry no ``storageConfig`` of their own.
    """
    if path is None:
        return OgPipelineFactory.options_from_dict({}), None
    try:
        raw = _read_json(path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read options {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Options file {path} must hold a JSON object")

    ambient = raw.pop("storage", None)
    try:
        options = OgPipelineFactory.options_from_dict(raw.get("ogImage", raw))
        storage = StorageConfig.model_validate(ambient) if ambient else None
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options in {path}: {e}") from e
    return options, storage


def print_summary(summary: RunSummary) -> None:
    print(f"Summary: {summary.total_items} items, {summary.succeeded} succeeded, "
          f"{summary.failed} failed, {summary.uploaded} uploaded "
          f"in {summary.processing_time:.2f}s")
    for status, count in sorted(summary.by_status.items()):
        print(f"   {status}: {count}")


async def run_render(args: argparse.Namespace) -> RunSummary:
    options, ambient = load_options(args.config)
    document, items = load_manifest(args.manifest)

    run = OgPipelineFactory.create_run(options, ambient_storage=ambient)
    summary = await run.run(
        items,
        skipped_ids=args.skipped or (),
        options=RunOptions(force_mode=args.force, force_manifest=args.force_manifest),
    )
    for operation in ("render", "upload"):
        timings = run.metrics.get_summary(operation)
        if timings:
            get_logger("og-pipeline.cli").info(
                f"{operation}: {timings['total_operations']} call(s), "
                f"avg {timings['avg_duration'] * 1000:.1f}ms, "
                f"{timings['failed_operations']} failed"
            )
    write_manifest(args.output or args.manifest, document, items)
    return summary


async def run_homepage(args: argparse.Namespace) -> Path:
    options, _ = load_options(args.config)
    document, items = load_manifest(args.manifest)

    renderer = OgPipelineFactory.create_homepage_renderer(options)
    png = await renderer.render(items, cameras=document.get("cameras"), author_avatar=args.avatar)
    if png is None:
        raise AssetNotFoundError("Required fonts are missing; homepage image not rendered")

    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_bytes(png)
    return args.out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="og-images",
        description="OG image pipeline - render and publish photo preview images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Render and publish previews for every photo of the manifest
  og-images render --manifest photos-manifest.json --config og.json

  # Re-render everything, ignoring the upstream skip list and upload dedup
  og-images render --manifest photos-manifest.json --config og.json --force

  # Render the site-level preview image
  og-images homepage --manifest photos-manifest.json --out public/og-image.png
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    render_parser = subparsers.add_parser(
        "render", help="Render and publish per-photo OG images"
    )
    render_parser.add_argument("--manifest", type=Path, required=True, help="Photos manifest JSON")
    render_parser.add_argument("--config", type=Path, default=None, help="Options JSON")
    render_parser.add_argument(
        "--force", action="store_true", help="Re-render and re-upload every item"
    )
    render_parser.add_argument(
        "--force-manifest", action="store_true", help="Regenerate manifest data for every item"
    )
    render_parser.add_argument(
        "--skipped", nargs="*", default=None, metavar="ID",
        help="Items left unchanged by upstream processing",
    )
    render_parser.add_argument(
        "--output", type=Path, default=None, help="Manifest output path (default: in place)"
    )
    render_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    homepage_parser = subparsers.add_parser(
        "homepage", help="Render the site-level OG image to a file"
    )
    homepage_parser.add_argument("--manifest", type=Path, required=True, help="Photos manifest JSON")
    homepage_parser.add_argument("--config", type=Path, default=None, help="Options JSON")
    homepage_parser.add_argument("--out", type=Path, required=True, help="PNG output path")
    homepage_parser.add_argument("--avatar", default=None, help="Author avatar URL")
    homepage_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("version", help="Show version information")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point of the ``og-images`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = get_logger("og-pipeline.cli")

    if args.command in ("render", "homepage"):
        if args.debug:
            set_debug_logging("og-pipeline", "og-pipeline.cli", "og-pipeline.run")
        try:
            if args.command == "render":
                print_summary(asyncio.run(run_render(args)))
            else:
                out = asyncio.run(run_homepage(args))
                print(f"Homepage OG image written to {out}")
        except KeyboardInterrupt:
            logger.warning("Interrupted by user.")
            sys.exit(130)
        except OgPipelineError as e:
            logger.error(f"OG image pipeline failed: {e}")
            sys.exit(1)

    elif args.command == "version":
        print("OG Image Pipeline CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
