"""Mockup rendering: drawing surfaces, grid tiles and the render engine."""

from stone_mockup.drawing.engine import MockupLayout, RenderedArtifact, RenderEngine
from stone_mockup.drawing.grid import GridPatternCache, GridTile
from stone_mockup.drawing.surface import DrawingSurface, RasterSurface, Rect, SvgSurface

__all__ = [
    "DrawingSurface",
    "GridPatternCache",
    "GridTile",
    "MockupLayout",
    "RasterSurface",
    "Rect",
    "RenderedArtifact",
    "RenderEngine",
    "SvgSurface",
]
