"""Scene to SVG serialization with the font bundle embedded.

The watermark in the bottom-right corner carries the site name alone, with
no product suffix. Text stays in the document as `<text>` elements so the SVG
is usable on its own; the rasterizer paints them from the bundle faces.
"""

import base64
import math
import re
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

from ..core.assets import FontBundle
from .layout import PhotoFit
from .scene import Group, ImageNode, LinearGradient, Node, Paint, Rect, Scene, TextNode

BACKGROUND = LinearGradient(((0.0, "#0a0a0a"), (0.5, "#1a1a1a"), (1.0, "#0f0f0f")))
GRID_SIZE = 48
GRID_OPACITY = 0.02
WATERMARK_OFFSET = 32
WATERMARK_SIZE = 20
WATERMARK_FILL = "rgba(255,255,255,0.68)"
FALLBACK_FAMILIES = "system-ui, sans-serif"

_RGBA = re.compile(
    r"^rgba\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*\)$"
)


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def split_color(color: str) -> Tuple[str, Optional[float]]:
    """Split ``rgba()`` into an ``rgb()`` color and an opacity."""
    match = _RGBA.match(color.strip())
    if not match:
        return color, None
    r, g, b, alpha = match.groups()
    return f"rgb({r},{g},{b})", float(alpha)


def _gradient_vector(angle: float) -> Tuple[float, float, float, float]:
    # CSS angles: 0deg points up, 90deg points right
    radians = math.radians(angle)
    dx, dy = math.sin(radians), -math.cos(radians)
    scale = 0.5 / max(abs(dx), abs(dy))
    return 0.5 - dx * scale, 0.5 - dy * scale, 0.5 + dx * scale, 0.5 + dy * scale


class _Defs:
    """Collects gradient and clip path definitions while nodes are written."""

    def __init__(self) -> None:
        self.entries: List[str] = []
        self._gradients: Dict[LinearGradient, str] = {}
        self._clips = 0

    def gradient(self, gradient: LinearGradient) -> str:
        if gradient in self._gradients:
            return self._gradients[gradient]
        gradient_id = f"g{len(self._gradients)}"
        x1, y1, x2, y2 = _gradient_vector(gradient.angle)
        stops = []
        for offset, color in gradient.stops:
            stop_color, opacity = split_color(color)
            opacity_attr = f' stop-opacity="{_num(opacity)}"' if opacity is not None else ""
            stops.append(
                f'<stop offset="{_num(offset)}" stop-color={quoteattr(stop_color)}{opacity_attr}/>'
            )
        self.entries.append(
            f'<linearGradient id="{gradient_id}" x1="{_num(x1)}" y1="{_num(y1)}" '
            f'x2="{_num(x2)}" y2="{_num(y2)}">{"".join(stops)}</linearGradient>'
        )
        self._gradients[gradient] = gradient_id
        return gradient_id

    def clip(self, node: ImageNode) -> str:
        clip_id = f"c{self._clips}"
        self._clips += 1
        self.entries.append(
            f'<clipPath id="{clip_id}"><rect x="{_num(node.x)}" y="{_num(node.y)}" '
            f'width="{_num(node.width)}" height="{_num(node.height)}" '
            f'rx="{_num(node.radius)}"/></clipPath>'
        )
        return clip_id


def _paint_attrs(paint: Paint, defs: _Defs, prefix: str = "fill") -> str:
    if isinstance(paint, LinearGradient):
        return f'{prefix}="url(#{defs.gradient(paint)})"'
    color, opacity = split_color(paint)
    attrs = f"{prefix}={quoteattr(color)}"
    if opacity is not None:
        attrs += f' {prefix}-opacity="{_num(opacity)}"'
    return attrs


def _rect(node: Rect, defs: _Defs) -> str:
    attrs = [
        f'x="{_num(node.x)}" y="{_num(node.y)}"',
        f'width="{_num(node.width)}" height="{_num(node.height)}"',
        _paint_attrs(node.fill, defs),
    ]
    if node.radius:
        attrs.append(f'rx="{_num(node.radius)}"')
    if node.stroke and node.stroke_width:
        attrs.append(_paint_attrs(node.stroke, defs, prefix="stroke"))
        attrs.append(f'stroke-width="{_num(node.stroke_width)}"')
    return f"<rect {' '.join(attrs)}/>"


def _image(node: ImageNode, defs: _Defs) -> str:
    aspect = "xMidYMid slice" if node.fit is PhotoFit.COVER else "xMidYMid meet"
    clip = f' clip-path="url(#{defs.clip(node)})"' if node.radius else ""
    return (
        f'<image x="{_num(node.x)}" y="{_num(node.y)}" width="{_num(node.width)}" '
        f'height="{_num(node.height)}" preserveAspectRatio="{aspect}"{clip} '
        f"xlink:href={quoteattr(node.href)}/>"
    )


def _text(node: TextNode, defs: _Defs) -> str:
    attrs = [
        f'x="{_num(node.x)}" y="{_num(node.y)}"',
        f'font-size="{_num(node.font_size)}"',
        f'font-weight="{node.font_weight}"',
        _paint_attrs(node.fill, defs),
    ]
    if node.letter_spacing:
        attrs.append(f'letter-spacing="{_num(node.letter_spacing)}"')
    if node.anchor != "start":
        attrs.append(f'text-anchor="{node.anchor}"')
    return f"<text {' '.join(attrs)}>{escape(node.text)}</text>"


def _node(node: Node, defs: _Defs) -> str:
    if isinstance(node, Group):
        body = "".join(_node(child, defs) for child in node.children)
        if node.opacity >= 1:
            return f"<g>{body}</g>"
        return f'<g opacity="{_num(node.opacity)}">{body}</g>'
    if isinstance(node, Rect):
        return _rect(node, defs)
    if isinstance(node, ImageNode):
        return _image(node, defs)
    return _text(node, defs)


def font_face_css(fonts: FontBundle) -> str:
    rules = []
    for font in fonts.fonts:
        encoded = base64.b64encode(font.data).decode("ascii")
        rules.append(
            f"@font-face {{ font-family: '{font.family}'; "
            f"font-weight: {font.weight}; font-style: {font.style}; "
            f"src: url(data:font/ttf;base64,{encoded}) format('truetype'); }}"
        )
    return "\n".join(rules)


def font_family_list(fonts: FontBundle) -> str:
    families = ", ".join(f"'{family}'" for family in fonts.families)
    return f"{families}, {FALLBACK_FAMILIES}"


def serialize_scene(scene: Scene, fonts: FontBundle) -> str:
    """Render ``scene`` as a standalone SVG document."""
    defs = _Defs()
    background_id = defs.gradient(BACKGROUND)
    grid_color, grid_alpha = split_color("rgba(255,255,255,0.1)")
    defs.entries.append(
        f'<pattern id="grid" width="{GRID_SIZE}" height="{GRID_SIZE}" '
        f'patternUnits="userSpaceOnUse">'
        f'<rect width="1" height="{GRID_SIZE}" fill="{grid_color}" fill-opacity="{grid_alpha}"/>'
        f'<rect width="{GRID_SIZE}" height="1" fill="{grid_color}" fill-opacity="{grid_alpha}"/>'
        f"</pattern>"
    )

    body = "".join(_node(node, defs) for node in scene.nodes)
    watermark = _text(
        TextNode(
            scene.width - WATERMARK_OFFSET,
            scene.height - WATERMARK_OFFSET,
            scene.watermark,
            WATERMARK_SIZE,
            fill=WATERMARK_FILL,
            font_weight=500,
            letter_spacing=0.5,
            anchor="end",
        ),
        defs,
    )

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'xmlns:xlink="http://www.w3.org/1999/xlink" '
        f'width="{scene.width}" height="{scene.height}" '
        f'viewBox="0 0 {scene.width} {scene.height}">'
        f"<style>{font_face_css(fonts)}\n"
        f"text {{ font-family: {font_family_list(fonts)}; }}</style>"
        f"<defs>{''.join(defs.entries)}</defs>"
        f'<rect width="{scene.width}" height="{scene.height}" fill="url(#{background_id})"/>'
        f'<rect width="{scene.width}" height="{scene.height}" fill="url(#grid)" '
        f'opacity="{GRID_OPACITY}"/>'
        f"{body}{watermark}</svg>"
    )
