"""Render pipeline: template to scene to SVG to PNG bytes."""

import asyncio
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..core.assets import FontBundle, LoadedFont
from ..core.error_handling import with_error_handling
from ..core.exceptions import RenderError
from ..core.models import HomepageTemplate, OgTemplate
from ..core.protocols import Rasterizer, TextMeasurer
from .layout import CANVAS_WIDTH
from .scene import Scene, compose_homepage_scene, compose_og_scene
from .svg import serialize_scene

# Glyph outlines are measured once at this size and scaled linearly
MEASURE_SIZE = 64
# Code points from the CJK radicals block upward use the CJK face
CJK_START = 0x2E80

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)


@dataclass(frozen=True)
class SvgText:
    """A ``<text>`` element lifted out of a document, in canvas units."""

    x: float
    y: float  # baseline
    text: str
    font_size: float
    fill: Tuple[int, int, int, int]
    anchor: str = "start"
    letter_spacing: float = 0.0


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text_fill(element: ET.Element, opacity: float) -> Tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(element.get("fill", "#ffffff"))[:3]
    alpha = float(element.get("fill-opacity", 1)) * opacity
    return r, g, b, round(255 * alpha)


def extract_text(svg: str) -> Tuple[str, List[SvgText], float]:
    """
    Split ``svg`` into a document without text and its text elements.

    Elements come back in paint order with the opacity of enclosing groups
    folded into their fill alpha. The third value is the document width.
    """
    root = ET.fromstring(svg)
    texts: List[SvgText] = []

    def walk(parent: ET.Element, opacity: float) -> None:
        for child in list(parent):
            name = _local_name(child.tag)
            if name == "text":
                texts.append(
                    SvgText(
                        x=float(child.get("x", 0)),
                        y=float(child.get("y", 0)),
                        text=child.text or "",
                        font_size=float(child.get("font-size", 16)),
                        fill=_text_fill(child, opacity),
                        anchor=child.get("text-anchor", "start"),
                        letter_spacing=float(child.get("letter-spacing", 0)),
                    )
                )
                parent.remove(child)
            elif name == "g":
                walk(child, opacity * float(child.get("opacity", 1)))

    walk(root, 1.0)
    width = float(root.get("width", CANVAS_WIDTH))
    return ET.tostring(root, encoding="unicode"), texts, width


class PillowTextPainter:
    """Paints lifted text onto a raster with the bundle's own faces."""

    def __init__(self, fonts: FontBundle):
        self._latin = fonts.primary
        self._cjk = fonts.fonts[-1]
        self._faces: Dict[Tuple[str, float], ImageFont.FreeTypeFont] = {}

    def _face(self, font: LoadedFont, size: float) -> ImageFont.FreeTypeFont:
        key = (font.family, size)
        if key not in self._faces:
            self._faces[key] = ImageFont.truetype(BytesIO(font.data), size)
        return self._faces[key]

    def _runs(self, text: str, size: float) -> List[Tuple[ImageFont.FreeTypeFont, str]]:
        runs: List[Tuple[LoadedFont, str]] = []
        for char in text:
            font = self._cjk if ord(char) >= CJK_START else self._latin
            if runs and runs[-1][0] is font:
                runs[-1] = (font, runs[-1][1] + char)
            else:
                runs.append((font, char))
        return [(self._face(font, size), run) for font, run in runs]

    def _draw(self, draw: ImageDraw.ImageDraw, text: SvgText, scale: float) -> None:
        size = text.font_size * scale
        spacing = text.letter_spacing * scale
        runs = self._runs(text.text, size)
        width = sum(face.getlength(run) for face, run in runs) + spacing * len(text.text)

        x = text.x * scale
        if text.anchor == "middle":
            x -= width / 2
        elif text.anchor == "end":
            x -= width
        y = text.y * scale

        for face, run in runs:
            pieces = list(run) if spacing else [run]
            for piece in pieces:
                draw.text((x, y), piece, font=face, fill=text.fill, anchor="ls")
                x += face.getlength(piece) + spacing * len(piece)

    def paint(self, png: bytes, texts: List[SvgText], scale: float = 1.0) -> bytes:
        with Image.open(BytesIO(png)) as raster:
            canvas = raster.convert("RGBA")
        draw = ImageDraw.Draw(canvas, "RGBA")
        for text in texts:
            self._draw(draw, text, scale)
        buffer = BytesIO()
        canvas.save(buffer, format="PNG")
        return buffer.getvalue()


class CairoSvgRasterizer:
    """
    Rasterizes SVG documents to PNG with cairosvg, painting text with Pillow.

    cairosvg ignores ``@font-face`` rules and resolves families through
    fontconfig, which would make glyphs depend on the host. Text elements are
    lifted out before cairosvg runs and painted above the shapes with the same
    faces the layout was measured with.
    """

    def __init__(self, fonts: FontBundle):
        self._painter = PillowTextPainter(fonts)

    def rasterize(self, svg: str, output_width: int) -> bytes:
        # cairosvg loads the native cairo library on import
        import cairosvg

        shapes, texts, width = extract_text(svg)
        png = cairosvg.svg2png(bytestring=shapes.encode("utf-8"), output_width=output_width)
        if not png:
            raise RenderError("Rasterizer produced no output")
        return self._painter.paint(png, texts, scale=output_width / width)


class PillowTextMeasurer:
    """
    Measures text with the bundle's own TrueType faces.

    Latin text uses the primary face; CJK runs use the last face of the
    bundle, which is the CJK-capable one.
    """

    def __init__(self, fonts: FontBundle):
        self._latin = self._load(fonts.primary)
        self._cjk = self._load(fonts.fonts[-1])
        self._cache: Dict[Tuple[str, float], float] = {}

    @staticmethod
    def _load(font: LoadedFont) -> ImageFont.FreeTypeFont:
        return ImageFont.truetype(BytesIO(font.data), MEASURE_SIZE)

    def _runs(self, text: str) -> List[Tuple[ImageFont.FreeTypeFont, str]]:
        runs: List[Tuple[ImageFont.FreeTypeFont, str]] = []
        for char in text:
            face = self._cjk if ord(char) >= CJK_START else self._latin
            if runs and runs[-1][0] is face:
                runs[-1] = (face, runs[-1][1] + char)
            else:
                runs.append((face, char))
        return runs

    def measure(self, text: str, font_size: float, font_weight: int = 400) -> float:
        cache_key = (text, font_size)
        if cache_key not in self._cache:
            base = sum(face.getlength(run) for face, run in self._runs(text))
            self._cache[cache_key] = base * font_size / MEASURE_SIZE
        return self._cache[cache_key]


async def _rasterize(scene: Scene, fonts: FontBundle, rasterizer: Rasterizer) -> bytes:
    svg = serialize_scene(scene, fonts)
    return await asyncio.to_thread(rasterizer.rasterize, svg, CANVAS_WIDTH)


@with_error_handling(RenderError)
async def render_og_image(
    template: OgTemplate,
    fonts: FontBundle,
    rasterizer: Optional[Rasterizer] = None,
    measurer: Optional[TextMeasurer] = None,
) -> bytes:
    """
    Render the per-photo preview as PNG bytes.

    Pure with respect to its inputs: identical template and fonts produce
    identical bytes. Any failure surfaces as ``RenderError``.
    """
    measurer = measurer or PillowTextMeasurer(fonts)
    scene = compose_og_scene(template, measurer)
    return await _rasterize(scene, fonts, rasterizer or CairoSvgRasterizer(fonts))


@with_error_handling(RenderError)
async def render_homepage_og_image(
    template: HomepageTemplate,
    fonts: FontBundle,
    rasterizer: Optional[Rasterizer] = None,
    measurer: Optional[TextMeasurer] = None,
) -> bytes:
    """Render the site-level preview as PNG bytes."""
    measurer = measurer or PillowTextMeasurer(fonts)
    scene = compose_homepage_scene(template, measurer)
    return await _rasterize(scene, fonts, rasterizer or CairoSvgRasterizer(fonts))
