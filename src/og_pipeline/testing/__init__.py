"""Testing utilities and fakes for the OG image pipeline."""

from .fakes import (
    FakeLogger,
    FakeRasterizer,
    FakeStorage,
    FakeTextMeasurer,
    StoredObject,
    create_font_dir,
    create_test_catalog,
    create_test_image,
)

__all__ = [
    "FakeLogger",
    "FakeRasterizer",
    "FakeStorage",
    "FakeTextMeasurer",
    "StoredObject",
    "create_font_dir",
    "create_test_catalog",
    "create_test_image",
]
