"""
Drawing surfaces for mockup rendering.

DrawingSurface fixes the small set of primitives the RenderEngine uses. Two
back ends:

- RasterSurface: Pillow image, exported as PNG and embedded in PDFs
- SvgSurface: svgwrite document, exported as SVG

Every primitive call is recorded in ``surface.operations`` as a DrawOp with an
optional tag, so callers can count drawing calls per overlay.
"""

import io
import itertools
import logging
import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import svgwrite
from PIL import Image, ImageDraw, ImageFont

from stone_mockup.drawing.grid import GridTile, Segment

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Color = Union[str, Tuple[int, int, int]]

TEXT_ANCHORS = ("start", "middle", "end")


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in surface pixels."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class DrawOp:
    """One recorded drawing call."""
    name: str
    tag: str = ""


class DrawingSurface(ABC):
    """Fixed-size logical drawing area (y grows downwards)."""

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self.operations: List[DrawOp] = []

    # -- bookkeeping --------------------------------------------------------

    def _record(self, name: str, tag: str) -> None:
        self.operations.append(DrawOp(name, tag))

    @property
    def operation_count(self) -> int:
        return len(self.operations)

    def count(self, name: Optional[str] = None, tag: Optional[str] = None) -> int:
        """Number of recorded calls matching ``name`` and/or ``tag``.

        A tag ending in ':' matches every tag with that prefix.
        """
        total = 0
        for op in self.operations:
            if name is not None and op.name != name:
                continue
            if tag is not None:
                if tag.endswith(":"):
                    if not op.tag.startswith(tag):
                        continue
                elif op.tag != tag:
                    continue
            total += 1
        return total

    def reset_operations(self) -> None:
        self.operations.clear()

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def is_drawable(self) -> bool:
        """False once the surface can no longer be drawn on."""

    def fill_rect(self, rect: Rect, color: Color, tag: str = "") -> None:
        self._record("fill_rect", tag)
        self._fill_rect(rect, color)

    def stroke_rect(self, rect: Rect, color: Color, width: float, tag: str = "") -> None:
        self._record("stroke_rect", tag)
        self._stroke_rect(rect, color, width)

    def stroke_path(
        self,
        segments: Sequence[Segment],
        color: Color,
        width: float,
        tag: str = "",
    ) -> None:
        """Stroke all ``segments`` as a single path."""
        self._record("stroke_path", tag)
        self._stroke_path(segments, color, width)

    def fill_pattern(
        self,
        tile: GridTile,
        origin: Point,
        rect: Rect,
        color: Color,
        width: float,
        tag: str = "",
    ) -> None:
        """Repeat ``tile`` over ``rect``, aligned so a tile corner sits on ``origin``."""
        self._record("fill_pattern", tag)
        self._fill_pattern(tile, origin, rect, color, width)

    @contextmanager
    def clipped(self, rect: Rect) -> Iterator[None]:
        """Confine drawing inside the block to ``rect``."""
        self._record("clip", "")
        with self._clipped(rect):
            yield

    def draw_text(
        self,
        text: str,
        position: Point,
        font_size: int,
        color: Color,
        anchor: str = "start",
        rotate: bool = False,
        tag: str = "",
    ) -> None:
        """Draw one line of text with its baseline at ``position``.

        Args:
            anchor: Horizontal alignment relative to ``position`` ("start",
                "middle", "end").
            rotate: Rotate 90 degrees counter-clockwise about ``position``
                (reads bottom to top).
        """
        if anchor not in TEXT_ANCHORS:
            raise ValueError(f"anchor must be one of {TEXT_ANCHORS}, got {anchor!r}")
        self._record("draw_text", tag)
        self._draw_text(text, position, font_size, color, anchor, rotate)

    @abstractmethod
    def _fill_rect(self, rect: Rect, color: Color) -> None: ...

    @abstractmethod
    def _stroke_rect(self, rect: Rect, color: Color, width: float) -> None: ...

    @abstractmethod
    def _stroke_path(self, segments: Sequence[Segment], color: Color, width: float) -> None: ...

    @abstractmethod
    def _fill_pattern(
        self, tile: GridTile, origin: Point, rect: Rect, color: Color, width: float
    ) -> None: ...

    @abstractmethod
    def _clipped(self, rect: Rect): ...

    @abstractmethod
    def _draw_text(
        self, text: str, position: Point, font_size: int, color: Color,
        anchor: str, rotate: bool,
    ) -> None: ...


def _line_width(width: float) -> int:
    # ImageDraw only takes whole-pixel widths
    return max(1, int(round(width)))


class RasterSurface(DrawingSurface):
    """Pillow-backed surface."""

    _PIL_ANCHORS = {"start": "ls", "middle": "ms", "end": "rs"}

    def __init__(
        self,
        width: int = 800,
        height: int = 600,
        font_path: Optional[str] = None,
        background: Color = "white",
    ):
        super().__init__(width, height)
        self.font_path = font_path
        self.image: Optional[Image.Image] = None
        self._draw: Optional[ImageDraw.ImageDraw] = None
        self._fonts: Dict[int, ImageFont.ImageFont] = {}
        if self.width > 0 and self.height > 0:
            self.image = Image.new("RGB", (self.width, self.height), background)
            self._draw = ImageDraw.Draw(self.image)

    def is_drawable(self) -> bool:
        return self.image is not None and self._draw is not None

    def close(self) -> None:
        """Release the image; the surface is no longer drawable."""
        if self.image is not None:
            self.image.close()
        self.image = None
        self._draw = None

    def to_png_bytes(self) -> bytes:
        if self.image is None:
            raise ValueError("Surface has been closed")
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()

    def _font(self, size: int) -> ImageFont.ImageFont:
        font = self._fonts.get(size)
        if font is None:
            if self.font_path:
                font = ImageFont.truetype(self.font_path, size)
            else:
                font = ImageFont.load_default(size=size)
            self._fonts[size] = font
        return font

    def _fill_rect(self, rect: Rect, color: Color) -> None:
        self._draw.rectangle((rect.x, rect.y, rect.right, rect.bottom), fill=color)

    def _stroke_rect(self, rect: Rect, color: Color, width: float) -> None:
        self._draw.rectangle(
            (rect.x, rect.y, rect.right, rect.bottom),
            outline=color,
            width=_line_width(width),
        )

    def _stroke_path(self, segments: Sequence[Segment], color: Color, width: float) -> None:
        line_width = _line_width(width)
        for start, end in segments:
            self._draw.line((start, end), fill=color, width=line_width)

    def _fill_pattern(
        self, tile: GridTile, origin: Point, rect: Rect, color: Color, width: float
    ) -> None:
        size = tile.size
        tile_image = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        tile_draw = ImageDraw.Draw(tile_image)
        for start, end in tile.segment_list():
            tile_draw.line((start, end), fill=color, width=_line_width(width))

        ox, oy = origin
        x0 = ox + math.floor((rect.x - ox) / size) * size
        y0 = oy + math.floor((rect.y - oy) / size) * size
        y = y0
        while y < rect.bottom:
            x = x0
            while x < rect.right:
                self.image.paste(tile_image, (int(round(x)), int(round(y))), tile_image)
                x += size
            y += size

    @contextmanager
    def _clipped(self, rect: Rect) -> Iterator[None]:
        base = self.image
        layer = base.copy()
        self.image = layer
        self._draw = ImageDraw.Draw(layer)
        try:
            yield
        finally:
            mask = Image.new("L", base.size, 0)
            ImageDraw.Draw(mask).rectangle((rect.x, rect.y, rect.right, rect.bottom), fill=255)
            base.paste(layer, (0, 0), mask)
            self.image = base
            self._draw = ImageDraw.Draw(base)

    def _draw_text(
        self, text: str, position: Point, font_size: int, color: Color,
        anchor: str, rotate: bool,
    ) -> None:
        font = self._font(font_size)
        if not rotate:
            self._draw.text(position, text, fill=color, font=font,
                            anchor=self._PIL_ANCHORS[anchor])
            return

        # Render horizontally on a transparent strip, then turn it upright
        left, top, right, bottom = font.getbbox(text, anchor="ls")
        strip = Image.new("RGBA", (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0))
        ImageDraw.Draw(strip).text((-left, -top), text, fill=color, font=font, anchor="ls")
        upright = strip.rotate(90, expand=True)

        x, y = position
        # After rotation the baseline runs vertically through x with glyphs to its left
        paste_x = x + top
        if anchor == "middle":
            paste_y = y - upright.height / 2
        elif anchor == "end":
            paste_y = y
        else:
            paste_y = y - upright.height
        self.image.paste(upright, (int(round(paste_x)), int(round(paste_y))), upright)


class SvgSurface(DrawingSurface):
    """svgwrite-backed surface."""

    FONT_FAMILY = "Arial, Helvetica, sans-serif"

    def __init__(self, width: int = 800, height: int = 600):
        super().__init__(width, height)
        self.drawing: Optional[svgwrite.Drawing] = None
        if self.width > 0 and self.height > 0:
            self.drawing = svgwrite.Drawing(
                size=(self.width, self.height),
                viewBox=f"0 0 {self.width} {self.height}",
                profile="full",
            )
        self._containers: List = [self.drawing]
        self._ids = itertools.count(1)
        self._patterns: Dict[Tuple[int, float, float, str], object] = {}

    @property
    def _container(self):
        return self._containers[-1]

    def is_drawable(self) -> bool:
        return self.drawing is not None

    def tostring(self) -> str:
        if self.drawing is None:
            raise ValueError("Surface has no drawing")
        return self.drawing.tostring()

    def save(self, path: str) -> None:
        if self.drawing is None:
            raise ValueError("Surface has no drawing")
        self.drawing.saveas(path, pretty=True)
        logger.info("SVG saved: %s", path)

    def _fill_rect(self, rect: Rect, color: Color) -> None:
        self._container.add(self.drawing.rect(
            insert=(rect.x, rect.y), size=(rect.width, rect.height), fill=color,
        ))

    def _stroke_rect(self, rect: Rect, color: Color, width: float) -> None:
        self._container.add(self.drawing.rect(
            insert=(rect.x, rect.y), size=(rect.width, rect.height),
            fill="none", stroke=color, stroke_width=width,
        ))

    def _stroke_path(self, segments: Sequence[Segment], color: Color, width: float) -> None:
        commands = []
        for (x1, y1), (x2, y2) in segments:
            commands.append(f"M {x1:.2f} {y1:.2f} L {x2:.2f} {y2:.2f}")
        if not commands:
            return
        self._container.add(self.drawing.path(
            d=" ".join(commands), fill="none", stroke=color, stroke_width=width,
        ))

    def _fill_pattern(
        self, tile: GridTile, origin: Point, rect: Rect, color: Color, width: float
    ) -> None:
        key = (tile.size, origin[0], origin[1], str(color))
        pattern = self._patterns.get(key)
        if pattern is None:
            pattern = self.drawing.pattern(
                insert=origin,
                size=(tile.size, tile.size),
                id=f"grid-{next(self._ids)}",
                patternUnits="userSpaceOnUse",
            )
            for start, end in tile.segment_list():
                pattern.add(self.drawing.line(
                    start=start, end=end, stroke=color, stroke_width=width,
                ))
            self.drawing.defs.add(pattern)
            self._patterns[key] = pattern
        self._container.add(self.drawing.rect(
            insert=(rect.x, rect.y), size=(rect.width, rect.height),
            fill=pattern.get_paint_server(),
        ))

    @contextmanager
    def _clipped(self, rect: Rect) -> Iterator[None]:
        clip_id = f"clip-{next(self._ids)}"
        clip = self.drawing.clipPath(id=clip_id)
        clip.add(self.drawing.rect(insert=(rect.x, rect.y), size=(rect.width, rect.height)))
        self.drawing.defs.add(clip)
        group = self.drawing.g(clip_path=f"url(#{clip_id})")
        self._container.add(group)
        self._containers.append(group)
        try:
            yield
        finally:
            self._containers.pop()

    def _draw_text(
        self, text: str, position: Point, font_size: int, color: Color,
        anchor: str, rotate: bool,
    ) -> None:
        element = self.drawing.text(
            text,
            insert=position,
            fill=color,
            font_size=font_size,
            font_family=self.FONT_FAMILY,
            text_anchor=anchor,
        )
        if rotate:
            element.rotate(-90, center=position)
        self._container.add(element)
