"""
Graph-paper grid geometry.

The minor grid (every 1/4") is drawn by repeating a small tile; the tile is a
pure function of its pixel spacing, so GridPatternCache keeps one per spacing
for the lifetime of its RenderEngine. Major lines (every 1") are computed per
render, anchored at the piece's top-left corner.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Below this a repeated tile is indistinguishable from a solid fill
MIN_TILE_PX = 2

Segment = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass(frozen=True)
class GridTile:
    """One repeat unit of the minor grid.

    Attributes:
        size: Tile edge length in surface pixels.
        segments: Array of shape (N, 2, 2) with line segments in tile coordinates.
    """
    size: int
    segments: np.ndarray

    def segment_list(self) -> List[Segment]:
        return [
            ((float(a[0]), float(a[1])), (float(b[0]), float(b[1])))
            for a, b in self.segments
        ]


def tile_size(spacing_px: float) -> int:
    """Whole-pixel tile edge for a minor spacing, halves rounded up."""
    return int(math.floor(spacing_px + 0.5))


def build_tile(size: int) -> GridTile:
    """Tile with one line along its top edge and one along its left edge."""
    s = float(size)
    segments = np.array([
        [[0.0, 0.0], [s, 0.0]],
        [[0.0, 0.0], [0.0, s]],
    ])
    return GridTile(size=size, segments=segments)


class GridPatternCache:
    """Minor-grid tiles keyed by pixel spacing.

    Entries are never invalidated: a tile depends on nothing but its spacing.
    """

    def __init__(self) -> None:
        self._tiles: Dict[int, GridTile] = {}
        self.hits = 0
        self.misses = 0

    def get(self, spacing_px: float) -> GridTile:
        """Return the tile for ``spacing_px`` (rounded to whole pixels)."""
        # Tiles are whole pixels, so minor lines drift from the exact 1/4" positions
        # across a piece; major lines use the exact scale and stay true.
        size = tile_size(spacing_px)
        tile = self._tiles.get(size)
        if tile is not None:
            self.hits += 1
            return tile
        self.misses += 1
        tile = build_tile(size)
        self._tiles[size] = tile
        logger.debug("Cached minor grid tile %dpx (%d cached)", size, len(self._tiles))
        return tile

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, spacing_px: float) -> bool:
        return tile_size(spacing_px) in self._tiles


def major_grid_segments(
    x: float,
    y: float,
    width: float,
    height: float,
    spacing: float,
) -> List[Segment]:
    """Vertical and horizontal lines every ``spacing`` px inside a rectangle.

    Lines start at the rectangle's left/top edge and include the far edge when
    it falls on the spacing.
    """
    if spacing <= 0:
        return []
    eps = spacing * 1e-6
    xs = x + np.arange(0.0, width + eps, spacing)
    ys = y + np.arange(0.0, height + eps, spacing)

    segments: List[Segment] = []
    for gx in xs:
        segments.append(((float(gx), y), (float(gx), y + height)))
    for gy in ys:
        segments.append(((x, float(gy)), (x + width, float(gy))))
    return segments
