from .layout import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    Arrangement,
    LayoutCategory,
    LayoutConfig,
    PhotoFit,
    determine_layout,
    fit_within_box,
)
from .renderer import (
    CairoSvgRasterizer,
    PillowTextMeasurer,
    render_homepage_og_image,
    render_og_image,
)
from .scene import Scene, compose_homepage_scene, compose_og_scene
from .svg import serialize_scene

__all__ = [
    "CANVAS_HEIGHT",
    "CANVAS_WIDTH",
    "Arrangement",
    "LayoutCategory",
    "LayoutConfig",
    "PhotoFit",
    "determine_layout",
    "fit_within_box",
    "CairoSvgRasterizer",
    "PillowTextMeasurer",
    "render_homepage_og_image",
    "render_og_image",
    "Scene",
    "compose_homepage_scene",
    "compose_og_scene",
    "serialize_scene",
]
