"""
Mockup renderer: draws one stone piece onto a DrawingSurface.

Pipeline (per render):
1. Fit scale = min(available width / piece width, available height / piece
   height) times the user zoom
2. Center the scaled rectangle on the surface
3. Fill the piece, then draw the grid clipped to it (cached minor tile,
   batched major lines) and the border
4. Polished edges as one batched path; optional x-marks, one path per side
5. Width/height labels and the material label
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from stone_mockup.drawing.grid import (
    MIN_TILE_PX,
    GridPatternCache,
    Segment,
    major_grid_segments,
)
from stone_mockup.drawing.surface import DrawingSurface, RasterSurface, Rect, SvgSurface
from stone_mockup.errors import RenderError
from stone_mockup.fraction_math import format_inches
from stone_mockup.logging_config import log_timing
from stone_mockup.models import RenderOptions, StonePiece, StoneSpecifications
from stone_mockup.project_config import ProjectConfig

logger = logging.getLogger(__name__)

POLISHED_EDGES_TAG = "polished-edges"
X_MARKS_TAG = "x-marks"


@dataclass(frozen=True)
class MockupLayout:
    """Placement of the piece on the surface.

    Attributes:
        scale: Pixels per inch actually used (fit scale times zoom).
        x, y: Top-left corner of the piece rectangle.
        width, height: Piece size in pixels.
    """
    scale: float
    x: float
    y: float
    width: float
    height: float

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def side_segment(self, side: str) -> Segment:
        x, y, w, h = self.x, self.y, self.width, self.height
        if side == "top":
            return ((x, y), (x + w, y))
        if side == "bottom":
            return ((x, y + h), (x + w, y + h))
        if side == "left":
            return ((x, y), (x, y + h))
        if side == "right":
            return ((x + w, y), (x + w, y + h))
        raise ValueError(f"Unknown side: {side}")


@dataclass
class RenderedArtifact:
    """A piece rendered with specific options onto a raster surface."""
    piece: StonePiece
    options: RenderOptions
    surface: RasterSurface
    layout: MockupLayout

    def to_png_bytes(self) -> bytes:
        return self.surface.to_png_bytes()

    @property
    def size(self):
        return self.surface.width, self.surface.height


class RenderEngine:
    """Renders stone mockups.

    Each engine owns its grid pattern cache; share an engine only within one
    thread.
    """

    def __init__(self, config: Optional[ProjectConfig] = None):
        self.config = config or ProjectConfig()
        self.pattern_cache = GridPatternCache()

    def default_options(self) -> RenderOptions:
        return RenderOptions(padding=self.config.render.padding)

    def effective_zoom(self, options: RenderOptions) -> float:
        """User zoom clamped to the configured range."""
        rc = self.config.render
        zoom = options.scale
        if zoom < rc.min_scale or zoom > rc.max_scale:
            clamped = min(max(zoom, rc.min_scale), rc.max_scale)
            logger.warning("Scale %.3g outside [%.3g, %.3g], using %.3g",
                           zoom, rc.min_scale, rc.max_scale, clamped)
            return clamped
        return zoom

    def compute_layout(
        self,
        specs: StoneSpecifications,
        options: RenderOptions,
        surface_width: float,
        surface_height: float,
    ) -> MockupLayout:
        """Scale and center the piece on a surface of the given size.

        Raises:
            RenderError: padding leaves no room to draw.
        """
        available_w = surface_width - 2 * options.padding
        available_h = surface_height - 2 * options.padding
        if available_w <= 0 or available_h <= 0:
            raise RenderError(
                f"Padding {options.padding} leaves no drawable area on a "
                f"{surface_width}x{surface_height} surface"
            )

        fit = min(available_w / specs.width, available_h / specs.height)
        scale = fit * self.effective_zoom(options)
        width = specs.width * scale
        height = specs.height * scale
        return MockupLayout(
            scale=scale,
            x=(surface_width - width) / 2,
            y=(surface_height - height) / 2,
            width=width,
            height=height,
        )

    def render(
        self,
        surface: DrawingSurface,
        specs: StoneSpecifications,
        options: Optional[RenderOptions] = None,
    ) -> MockupLayout:
        """Draw ``specs`` onto ``surface``.

        Raises:
            RenderError: the surface is not drawable or padding leaves no
                area; nothing has been drawn in that case.
        """
        if options is None:
            options = self.default_options()
        if not surface.is_drawable():
            raise RenderError("Drawing surface is not available")
        layout = self.compute_layout(specs, options, surface.width, surface.height)

        warn_after = self.config.render.slow_render_ms / 1000.0
        with log_timing(logger, "render mockup", warn_after=warn_after,
                        width=specs.width, height=specs.height) as timing:
            self._draw_piece(surface, layout)
            if options.show_grid:
                self._draw_grid(surface, layout)
            self._draw_border(surface, layout)
            if options.show_polished_edges and specs.polished_edges:
                self._draw_polished_edges(surface, layout, specs.polished_edges, options.use_x_marks)
            self._draw_labels(surface, layout, specs)
            timing["operations"] = surface.operation_count

        return layout

    def new_surface(self) -> RasterSurface:
        rc = self.config.render
        return RasterSurface(rc.surface_width, rc.surface_height, font_path=rc.font_path)

    def render_artifact(
        self,
        piece: StonePiece,
        options: Optional[RenderOptions] = None,
    ) -> RenderedArtifact:
        """Render a piece to a fresh raster surface."""
        if options is None:
            options = self.default_options()
        surface = self.new_surface()
        layout = self.render(surface, piece.specs, options)
        return RenderedArtifact(piece=piece, options=options, surface=surface, layout=layout)

    def render_svg(
        self,
        piece: StonePiece,
        options: Optional[RenderOptions] = None,
    ) -> SvgSurface:
        """Render a piece to a fresh SVG surface."""
        rc = self.config.render
        surface = SvgSurface(rc.surface_width, rc.surface_height)
        self.render(surface, piece.specs, options)
        return surface

    # -- drawing steps ------------------------------------------------------

    def _draw_piece(self, surface: DrawingSurface, layout: MockupLayout) -> None:
        style = self.config.style
        surface.fill_rect(Rect(0, 0, surface.width, surface.height),
                          style.background_color, tag="background")
        surface.fill_rect(layout.rect, style.piece_fill_color, tag="piece")

    def _draw_grid(self, surface: DrawingSurface, layout: MockupLayout) -> None:
        rc, style = self.config.render, self.config.style
        rect = layout.rect
        with surface.clipped(rect):
            minor_px = layout.scale * rc.minor_grid_inches
            if minor_px >= MIN_TILE_PX:
                tile = self.pattern_cache.get(minor_px)
                surface.fill_pattern(tile, (layout.x, layout.y), rect,
                                     style.minor_grid_color, style.minor_grid_width,
                                     tag="minor-grid")
            major = major_grid_segments(layout.x, layout.y, layout.width, layout.height,
                                        layout.scale * rc.major_grid_inches)
            if major:
                surface.stroke_path(major, style.major_grid_color, style.major_grid_width,
                                    tag="major-grid")

    def _draw_border(self, surface: DrawingSurface, layout: MockupLayout) -> None:
        style = self.config.style
        surface.stroke_rect(layout.rect, style.border_color, style.border_width, tag="border")

    def _draw_polished_edges(
        self,
        surface: DrawingSurface,
        layout: MockupLayout,
        edges: Sequence[str],
        use_x_marks: bool,
    ) -> None:
        style = self.config.style
        segments = [layout.side_segment(side) for side in edges]
        surface.stroke_path(segments, style.polished_edge_color, style.polished_edge_width,
                            tag=POLISHED_EDGES_TAG)

        if not use_x_marks:
            return
        for side in edges:
            marks = self.x_mark_segments(layout, side)
            if marks:
                surface.stroke_path(marks, style.polished_edge_color, style.x_mark_width,
                                    tag=f"{X_MARKS_TAG}:{side}")

    def x_mark_segments(self, layout: MockupLayout, side: str) -> List[Segment]:
        """Crosses every ``x_mark_spacing`` px along one side, not at its ends."""
        rc = self.config.render
        spacing, arm = rc.x_mark_spacing, rc.x_mark_size
        (x1, y1), (x2, y2) = layout.side_segment(side)
        horizontal = y1 == y2
        length = (x2 - x1) if horizontal else (y2 - y1)

        segments: List[Segment] = []
        for offset in np.arange(spacing, length, spacing):
            if horizontal:
                cx, cy = x1 + float(offset), y1
            else:
                cx, cy = x1, y1 + float(offset)
            segments.append(((cx - arm, cy - arm), (cx + arm, cy + arm)))
            segments.append(((cx - arm, cy + arm), (cx + arm, cy - arm)))
        return segments

    def _draw_labels(
        self,
        surface: DrawingSurface,
        layout: MockupLayout,
        specs: StoneSpecifications,
    ) -> None:
        rc, style = self.config.render, self.config.style
        x, y, w, h = layout.x, layout.y, layout.width, layout.height

        surface.draw_text(format_inches(specs.width), (x + w / 2, y + h + rc.label_offset),
                          rc.dimension_font_size, style.text_color, anchor="middle",
                          tag="width-label")
        surface.draw_text(format_inches(specs.height), (x - rc.label_offset, y + h / 2),
                          rc.dimension_font_size, style.text_color, anchor="middle",
                          rotate=True, tag="height-label")
        surface.draw_text(
            f"{specs.material_label}, {specs.thickness}",
            (x + w - rc.material_label_inset, y + h - rc.material_label_inset),
            rc.material_font_size, style.text_color, anchor="end", tag="material-label",
        )

    def cache_stats(self) -> Dict[str, int]:
        cache = self.pattern_cache
        return {"tiles": len(cache), "hits": cache.hits, "misses": cache.misses}
