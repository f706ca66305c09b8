"""Aspect-ratio driven layout selection and contain-fit box sizing."""

import math
from dataclasses import dataclass
from enum import Enum


CANVAS_WIDTH = 1200
CANVAS_HEIGHT = 628
CANVAS_ASPECT = CANVAS_WIDTH / CANVAS_HEIGHT

PORTRAIT_MAX_ASPECT = 0.9
SQUARE_MAX_ASPECT = 1.1
WIDE_MIN_ASPECT = 2.35
# Landscape photos narrower than this share of the canvas aspect sit beside the info panel
SPLIT_LANDSCAPE_RATIO = 0.82


class LayoutCategory(str, Enum):
    PORTRAIT = "portrait"
    SQUARE = "square"
    LANDSCAPE = "landscape"
    WIDE = "wide"


class Arrangement(str, Enum):
    SPLIT = "split"
    STACK = "stack"
    WIDE = "wide"


class PhotoFit(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"


@dataclass(frozen=True)
class PhotoBox:
    max_width: float
    max_height: float


@dataclass(frozen=True)
class BoxSize:
    width: float
    height: float


@dataclass(frozen=True)
class LayoutConfig:
    category: LayoutCategory
    arrangement: Arrangement
    padding: int
    gap: int
    photo_box: PhotoBox
    info_compact: bool
    photo_fit: PhotoFit


def sanitize_aspect(aspect: float) -> float:
    """Clamp non-finite or non-positive aspect ratios to 1."""
    if not isinstance(aspect, (int, float)) or not math.isfinite(aspect) or aspect <= 0:
        return 1.0
    return float(aspect)


def determine_layout(aspect: float) -> LayoutConfig:
    """
    Classify a photo aspect ratio into a layout.

    Boundaries are closed on the square side (0.9 and 1.1 are square) and on
    the wide side (2.35 is wide).
    """
    aspect = sanitize_aspect(aspect)

    if aspect < PORTRAIT_MAX_ASPECT:
        padding = 60
        return LayoutConfig(
            category=LayoutCategory.PORTRAIT,
            arrangement=Arrangement.SPLIT,
            padding=padding,
            gap=44,
            photo_box=PhotoBox(CANVAS_WIDTH * 0.44, CANVAS_HEIGHT - padding * 2),
            info_compact=False,
            photo_fit=PhotoFit.COVER,
        )

    if aspect <= SQUARE_MAX_ASPECT:
        padding = 60
        return LayoutConfig(
            category=LayoutCategory.SQUARE,
            arrangement=Arrangement.SPLIT,
            padding=padding,
            gap=44,
            photo_box=PhotoBox(CANVAS_WIDTH * 0.5, CANVAS_HEIGHT - padding * 2),
            info_compact=False,
            photo_fit=PhotoFit.COVER,
        )

    if aspect >= WIDE_MIN_ASPECT:
        padding = 50
        return LayoutConfig(
            category=LayoutCategory.WIDE,
            arrangement=Arrangement.WIDE,
            padding=padding,
            gap=28,
            photo_box=PhotoBox(CANVAS_WIDTH - padding * 2, 340),
            info_compact=True,
            photo_fit=PhotoFit.CONTAIN,
        )

    padding = 54
    arrangement = (
        Arrangement.SPLIT
        if aspect / CANVAS_ASPECT <= SPLIT_LANDSCAPE_RATIO
        else Arrangement.STACK
    )
    return LayoutConfig(
        category=LayoutCategory.LANDSCAPE,
        arrangement=arrangement,
        padding=padding,
        gap=26,
        photo_box=PhotoBox(CANVAS_WIDTH - padding * 2, 410),
        info_compact=False,
        photo_fit=PhotoFit.COVER,
    )


def fit_within_box(aspect: float, box: PhotoBox) -> BoxSize:
    """Largest size with the given aspect ratio fitting inside ``box``."""
    aspect = sanitize_aspect(aspect)
    width = box.max_width
    height = width / aspect
    if height > box.max_height:
        height = box.max_height
        width = min(height * aspect, box.max_width)
    return BoxSize(width=width, height=height)
