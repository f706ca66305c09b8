"""Scene composition: positioned nodes for the per-photo and homepage images.

The composer works in absolute canvas coordinates. Each arrangement places a
photo frame and an info panel inside the padded content area; text sizes come
from a ``TextMeasurer`` so wrapping matches the fonts that will be embedded.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from ..core.models import ExifSummary, HomepageTemplate, OgTemplate
from ..core.protocols import TextMeasurer
from .layout import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    Arrangement,
    BoxSize,
    LayoutConfig,
    PhotoFit,
    determine_layout,
    fit_within_box,
)

WHITE = "#ffffff"
FRAME_BACKGROUND = "#050505"
FRAME_RADIUS = 10
NO_PREVIEW_TEXT = "No Preview"
ELLIPSIS = "…"
COMPACT_SCALE = 0.8
TITLE_MAX_LINES = 3


@dataclass(frozen=True)
class LinearGradient:
    """Gradient along ``angle`` degrees (CSS convention, 135 = top-left to bottom-right)."""

    stops: Tuple[Tuple[float, str], ...]
    angle: float = 135.0


Paint = Union[str, LinearGradient]


@dataclass
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: Paint = "none"
    radius: float = 0
    stroke: Optional[str] = None
    stroke_width: float = 0


@dataclass
class ImageNode:
    x: float
    y: float
    width: float
    height: float
    href: str
    fit: PhotoFit = PhotoFit.COVER
    radius: float = 0


@dataclass
class TextNode:
    x: float
    y: float  # baseline
    text: str
    font_size: float
    fill: str = WHITE
    font_weight: int = 400
    letter_spacing: float = 0
    anchor: str = "start"


@dataclass
class Group:
    children: List["Node"] = field(default_factory=list)
    opacity: float = 1.0


Node = Union[Rect, ImageNode, TextNode, Group]


@dataclass
class Scene:
    """A fully positioned drawing on the fixed canvas."""

    nodes: List[Node]
    watermark: str
    width: int = CANVAS_WIDTH
    height: int = CANVAS_HEIGHT

    def iter_nodes(self):
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, Group):
                stack.extend(reversed(node.children))

    def texts(self) -> List[str]:
        return [node.text for node in self.iter_nodes() if isinstance(node, TextNode)]


@dataclass
class _Block:
    """A laid out fragment: nodes relative to (0, 0) plus its size."""

    nodes: List[Node]
    width: float
    height: float


def baseline(top: float, line_height: float, font_size: float) -> float:
    """Baseline of a single text line centred in a line box."""
    return top + line_height / 2 + font_size * 0.35


def translate(nodes: Sequence[Node], dx: float, dy: float) -> List[Node]:
    moved: List[Node] = []
    for node in nodes:
        if isinstance(node, Group):
            moved.append(Group(children=translate(node.children, dx, dy), opacity=node.opacity))
        elif isinstance(node, Rect):
            moved.append(
                Rect(node.x + dx, node.y + dy, node.width, node.height, node.fill,
                     node.radius, node.stroke, node.stroke_width)
            )
        elif isinstance(node, ImageNode):
            moved.append(
                ImageNode(node.x + dx, node.y + dy, node.width, node.height,
                          node.href, node.fit, node.radius)
            )
        else:
            moved.append(
                TextNode(node.x + dx, node.y + dy, node.text, node.font_size, node.fill,
                         node.font_weight, node.letter_spacing, node.anchor)
            )
    return moved


# ---------------------------------------------------------------- text wrapping

# CJK ideographs, kana, hangul and full-width forms break between any two characters
_CJK = r"\u2e80-\u9fff\uac00-\ud7af\uf900-\ufaff\uff00-\uffef"
_UNIT_PATTERN = re.compile(rf"[{_CJK}]|[^\s{_CJK}]+\s*|\s+")


def wrap_text(
    text: str,
    max_width: float,
    font_size: float,
    measurer: TextMeasurer,
    max_lines: int = TITLE_MAX_LINES,
    font_weight: int = 400,
) -> List[str]:
    """Greedy line breaking on words (and on single CJK characters)."""

    def width(value: str) -> float:
        return measurer.measure(value, font_size, font_weight)

    lines: List[str] = []
    current = ""
    for unit in _UNIT_PATTERN.findall(text.strip()):
        candidate = current + unit
        if width(candidate.rstrip()) <= max_width:
            current = candidate
            continue
        if current.strip():
            lines.append(current.rstrip())
        current = ""
        unit = unit.lstrip()
        if width(unit.rstrip()) <= max_width:
            current = unit
            continue
        # a single unit wider than the line: break it by characters
        for char in unit:
            if current and width((current + char).rstrip()) > max_width:
                lines.append(current.rstrip())
                current = ""
            current += char

    if current.strip():
        lines.append(current.rstrip())

    if len(lines) <= max_lines:
        return lines

    kept = lines[:max_lines]
    last = kept[-1]
    while last and width(last + ELLIPSIS) > max_width:
        last = last[:-1]
    kept[-1] = last.rstrip() + ELLIPSIS
    return kept


# ---------------------------------------------------------------- photo frame


def photo_frame(size: BoxSize, fit: PhotoFit, src: Optional[str]) -> _Block:
    width, height = size.width, size.height
    if not src:
        return _Block(
            nodes=[
                Rect(0, 0, width, height, FRAME_BACKGROUND, radius=FRAME_RADIUS),
                TextNode(
                    width / 2,
                    baseline(0, height, 14),
                    NO_PREVIEW_TEXT,
                    14,
                    fill="rgba(255,255,255,0.35)",
                    letter_spacing=0.3,
                    anchor="middle",
                ),
            ],
            width=width,
            height=height,
        )

    return _Block(
        nodes=[
            Rect(0, 0, width, height, FRAME_BACKGROUND, radius=FRAME_RADIUS,
                 stroke="rgba(255,255,255,0.05)", stroke_width=1),
            ImageNode(0, 0, width, height, src, fit=fit, radius=FRAME_RADIUS),
            Rect(
                0, 0, width, height,
                LinearGradient(((0.0, "rgba(255,255,255,0.08)"), (0.5, "rgba(255,255,255,0)"))),
                radius=FRAME_RADIUS,
            ),
        ],
        width=width,
        height=height,
    )


# ---------------------------------------------------------------- info panel


def exif_chips(exif: Optional[ExifSummary]) -> List[Tuple[str, str]]:
    """(label, text) pairs in display order: aperture, shutter, iso, focal length."""
    if exif is None:
        return []
    chips: List[Tuple[str, str]] = []
    if exif.aperture:
        chips.append(("f", exif.aperture))
    if exif.shutter_speed:
        chips.append(("s", exif.shutter_speed))
    if exif.iso:
        chips.append(("iso", str(exif.iso)))
    if exif.focal_length:
        chips.append(("mm", exif.focal_length))
    return chips


def _flow_row(
    items: List[Tuple[float, float, List[Node]]], max_width: float, gap: float, row_gap: float
) -> _Block:
    """Flex-wrap a row of (width, height, nodes) items."""
    nodes: List[Node] = []
    x = y = 0.0
    row_height = 0.0
    used_width = 0.0
    for item_width, item_height, item_nodes in items:
        if x > 0 and x + item_width > max_width:
            y += row_height + row_gap
            x = 0.0
            row_height = 0.0
        nodes.extend(translate(item_nodes, x, y))
        used_width = max(used_width, x + item_width)
        x += item_width + gap
        row_height = max(row_height, item_height)
    return _Block(nodes=nodes, width=used_width, height=y + row_height)


def info_panel(
    template: OgTemplate, width: float, compact: bool, measurer: TextMeasurer
) -> _Block:
    scale = COMPACT_SCALE if compact else 1.0
    gap = 12 if compact else 16
    sections: List[_Block] = []

    # title
    title_size = 28 if compact else 40
    title_line = title_size * 1.25
    title_lines = wrap_text(
        template.photo_title or "Untitled Photo", width, title_size, measurer, font_weight=700
    )
    sections.append(
        _Block(
            nodes=[
                TextNode(0, baseline(i * title_line, title_line, title_size), line,
                         title_size, font_weight=700, letter_spacing=-0.5)
                for i, line in enumerate(title_lines)
            ],
            width=width,
            height=title_line * len(title_lines),
        )
    )

    # tags
    tags = template.tags[: 2 if compact else 3]
    if tags:
        size = 13 * scale
        pad_y, pad_x = (4, 12) if compact else (6, 14)
        chips = []
        for tag in tags:
            label = f"#{tag}"
            text_width = measurer.measure(label, size) + len(label) * 0.2
            chip_w = text_width + pad_x * 2 + 2
            chip_h = size * 1.2 + pad_y * 2 + 2
            chips.append(
                (
                    chip_w,
                    chip_h,
                    [
                        Rect(0, 0, chip_w, chip_h, "rgba(255,255,255,0.12)", radius=16,
                             stroke="rgba(255,255,255,0.15)", stroke_width=1),
                        TextNode(pad_x + 1, baseline(0, chip_h, size), label, size,
                                 fill="rgba(255,255,255,0.9)", letter_spacing=0.2),
                    ],
                )
            )
        sections.append(_flow_row(chips, width, 8, 8))

    # camera
    camera = template.exif_info.camera if template.exif_info else None
    if camera:
        label_size, text_size = 11 * scale, 15 * scale
        line = text_size * 1.2
        label_width = measurer.measure("CAM", label_size) + 3 * 0.3
        sections.append(
            _Block(
                nodes=[
                    TextNode(0, baseline(0, line, label_size), "CAM", label_size,
                             fill="rgba(255,255,255,0.45)", letter_spacing=0.3),
                    TextNode(label_width + 8, baseline(0, line, text_size), camera, text_size,
                             fill="rgba(255,255,255,0.7)"),
                ],
                width=width,
                height=line,
            )
        )

    # exif chips
    chips_data = exif_chips(template.exif_info)
    if chips_data:
        label_size, text_size = 10 * scale, 14 * scale
        line = text_size * 1.2
        items = []
        for label, text in chips_data:
            label_text = label.upper()
            label_width = measurer.measure(label_text, label_size) + len(label_text) * 0.2
            text_width = measurer.measure(text, text_size)
            items.append(
                (
                    label_width + 4 + text_width,
                    line,
                    [
                        TextNode(0, baseline(0, line, label_size), label_text, label_size,
                                 fill="rgba(255,255,255,0.35)", letter_spacing=0.2),
                        TextNode(label_width + 4, baseline(0, line, text_size), text,
                                 text_size, fill="rgba(255,255,255,0.75)"),
                    ],
                )
            )
        sections.append(_flow_row(items, width, 12 if compact else 18, 6))

    # date
    if template.formatted_date:
        size = 13 * scale
        margin = 2 if compact else 6
        line = size * 1.2
        sections.append(
            _Block(
                nodes=[TextNode(0, baseline(margin, line, size), template.formatted_date,
                                size, fill="rgba(255,255,255,0.45)")],
                width=width,
                height=margin + line,
            )
        )

    # accent bar
    bar_width = 50 if compact else 80
    sections.append(
        _Block(
            nodes=[Rect(0, 0, bar_width, 3, template.accent_color, radius=2)],
            width=bar_width,
            height=3,
        )
    )

    nodes: List[Node] = []
    y = 0.0
    for index, section in enumerate(sections):
        if index:
            y += gap
        nodes.extend(translate(section.nodes, 0, y))
        y += section.height
    return _Block(nodes=nodes, width=width, height=y)


# ---------------------------------------------------------------- arrangements


def _arrange(
    layout: LayoutConfig, photo: _Block, template: OgTemplate, measurer: TextMeasurer
) -> List[Node]:
    padding = layout.padding
    content_w = CANVAS_WIDTH - padding * 2
    content_h = CANVAS_HEIGHT - padding * 2

    if layout.arrangement is Arrangement.SPLIT:
        info_w = max(content_w - photo.width - layout.gap, 1)
        info = info_panel(template, info_w, layout.info_compact, measurer)
        photo_x = padding
        photo_y = padding + (content_h - photo.height) / 2
        info_x = padding + photo.width + layout.gap
        info_y = padding + (content_h - info.height) / 2
    else:
        info_w = min(photo.width, content_w)
        info = info_panel(template, info_w, layout.info_compact, measurer)
        photo_x = padding + (content_w - photo.width) / 2
        photo_y = padding
        info_y = padding + photo.height + layout.gap
        if layout.arrangement is Arrangement.STACK:
            info_x = padding + (content_w - info_w) / 2
        else:
            info_x = padding

    return translate(photo.nodes, photo_x, photo_y) + translate(info.nodes, info_x, info_y)


def compose_og_scene(template: OgTemplate, measurer: TextMeasurer) -> Scene:
    """Lay out the per-photo preview for the template's aspect ratio."""
    aspect = template.photo_width / template.photo_height if template.photo_height else 1.0
    layout = determine_layout(aspect)
    size = fit_within_box(aspect, layout.photo_box)
    photo = photo_frame(size, layout.photo_fit, template.thumbnail_src)
    return Scene(nodes=_arrange(layout, photo, template, measurer), watermark=template.site_name)


# ---------------------------------------------------------------- homepage


def format_count(value: int) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1000:
        return f"{value / 1000:.1f}K"
    return str(value)


def _collage(photos: Sequence[Optional[str]]) -> List[Node]:
    cells: List[Node] = []
    cell_w = CANVAS_WIDTH / 3
    cell_h = CANVAS_HEIGHT / 2
    for index, src in enumerate(photos[:6]):
        row, col = divmod(index, 3)
        x, y = col * cell_w, row * cell_h
        cells.append(Rect(x, y, cell_w, cell_h, FRAME_BACKGROUND))
        if src:
            cells.append(ImageNode(x, y, cell_w, cell_h, src, fit=PhotoFit.COVER))
        cells.append(
            Rect(x, y, cell_w, cell_h,
                 LinearGradient(((0.0, "rgba(0,0,0,0.3)"), (0.5, "rgba(0,0,0,0)"))))
        )
    return [
        Group(children=cells, opacity=0.2),
        Rect(
            0, 0, CANVAS_WIDTH, CANVAS_HEIGHT,
            LinearGradient(
                ((0.0, "rgba(0,0,0,0.5)"), (0.5, "rgba(0,0,0,0.3)"), (1.0, "rgba(0,0,0,0.5)"))
            ),
        ),
    ]


def _stat(label: str, value: str, measurer: TextMeasurer) -> Tuple[float, float, List[Node]]:
    label_line, value_line = 14 * 1.2, 28 * 1.2
    width = max(measurer.measure(label, 14), measurer.measure(value, 28, 600))
    return (
        width,
        label_line + 4 + value_line,
        [
            TextNode(0, baseline(0, label_line, 14), label, 14,
                     fill="rgba(255,255,255,0.6)", letter_spacing=0.3),
            TextNode(0, baseline(label_line + 4, value_line, 28), value, 28,
                     font_weight=600, letter_spacing=-0.5),
        ],
    )


def compose_homepage_scene(template: HomepageTemplate, measurer: TextMeasurer) -> Scene:
    """Site-level preview: optional collage, optional avatar, title, stats."""
    padding = 60
    avatar_size = 180
    nodes: List[Node] = []

    featured = [src for src in template.featured_photos[:6]]
    if featured:
        nodes.extend(_collage(featured))

    text_x = padding
    if template.author_avatar:
        avatar_y = (CANVAS_HEIGHT - avatar_size) / 2
        nodes.extend(
            [
                Rect(padding, avatar_y, avatar_size, avatar_size, FRAME_BACKGROUND, radius=20,
                     stroke="rgba(255,255,255,0.05)", stroke_width=1),
                ImageNode(padding, avatar_y, avatar_size, avatar_size, template.author_avatar,
                          fit=PhotoFit.COVER, radius=20),
                Rect(padding, avatar_y, avatar_size, avatar_size,
                     LinearGradient(((0.0, "rgba(255,255,255,0.08)"), (0.5, "rgba(255,255,255,0)"))),
                     radius=20),
            ]
        )
        text_x = padding + avatar_size + 48
    column_w = CANVAS_WIDTH - padding - text_x

    sections: List[Tuple[_Block, float]] = []
    title_line = 56 * 1.2
    title_lines = wrap_text(template.site_name, column_w, 56, measurer, max_lines=2, font_weight=700)
    heading_nodes: List[Node] = [
        TextNode(0, baseline(i * title_line, title_line, 56), line, 56,
                 font_weight=700, letter_spacing=-1)
        for i, line in enumerate(title_lines)
    ]
    heading_h = title_line * len(title_lines)
    if template.site_description:
        desc_line = 22 * 1.4
        desc_lines = wrap_text(template.site_description, min(column_w, 700), 22, measurer)
        top = heading_h + 12
        heading_nodes.extend(
            TextNode(0, baseline(top + i * desc_line, desc_line, 22), line, 22,
                     fill="rgba(255,255,255,0.75)")
            for i, line in enumerate(desc_lines)
        )
        heading_h = top + desc_line * len(desc_lines)
    sections.append((_Block(heading_nodes, column_w, heading_h), 0))

    stats = template.stats
    stat_items = [
        _stat("Photos", format_count(stats.total_photos), measurer),
        _stat("Tags", format_count(stats.unique_tags), measurer),
        _stat("Cameras", format_count(stats.unique_cameras), measurer),
    ]
    if stats.total_size_gb is not None:
        stat_items.append(_stat("Storage", f"{stats.total_size_gb:.1f} GB", measurer))
    sections.append((_flow_row(stat_items, column_w, 32, 16), 8))

    sections.append((_Block([Rect(0, 0, 120, 4, template.accent_color, radius=2)], 120, 4), 12))

    total_h = sum(block.height + margin for block, margin in sections) + 24 * (len(sections) - 1)
    y = (CANVAS_HEIGHT - total_h) / 2
    for index, (block, margin) in enumerate(sections):
        if index:
            y += 24
        y += margin
        nodes.extend(translate(block.nodes, text_x, y))
        y += block.height

    return Scene(nodes=nodes, watermark=template.site_name)
