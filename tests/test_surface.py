"""
Unit tests for stone_mockup.drawing.surface.

Tests:
- Operation recording and counting
- RasterSurface drawing (Pillow)
- SvgSurface output (svgwrite)
"""

import io

import pytest
from PIL import Image

from stone_mockup.drawing.grid import build_tile
from stone_mockup.drawing.surface import RasterSurface, Rect, SvgSurface


class TestOperationLog:
    """Tests for DrawOp recording."""

    def test_ops_recorded_with_tags(self):
        """Test every primitive appends a DrawOp."""
        surface = RasterSurface(100, 100)
        surface.fill_rect(Rect(0, 0, 100, 100), "white", tag="background")
        surface.stroke_path([((0, 0), (10, 10))], "red", 2, tag="x-marks:top")
        surface.stroke_path([((0, 0), (10, 0))], "red", 2, tag="x-marks:left")
        assert [op.name for op in surface.operations] == ["fill_rect", "stroke_path", "stroke_path"]
        assert surface.count("stroke_path") == 2
        assert surface.count(tag="background") == 1
        assert surface.count(tag="x-marks:") == 2
        assert surface.count("stroke_path", tag="x-marks:top") == 1

    def test_reset(self):
        """Test reset_operations clears the log."""
        surface = RasterSurface(10, 10)
        surface.fill_rect(Rect(0, 0, 5, 5), "black")
        surface.reset_operations()
        assert surface.operation_count == 0

    def test_bad_anchor(self):
        """Test unknown text anchors are rejected before drawing."""
        surface = RasterSurface(10, 10)
        with pytest.raises(ValueError, match="anchor"):
            surface.draw_text("x", (1, 1), 12, "black", anchor="left")
        assert surface.operation_count == 0


class TestRasterSurface:
    """Tests for the Pillow surface."""

    def test_fill_rect_pixels(self):
        """Test filled rectangles change pixels."""
        surface = RasterSurface(50, 50)
        surface.fill_rect(Rect(10, 10, 20, 20), (255, 0, 0))
        assert surface.image.getpixel((20, 20)) == (255, 0, 0)
        assert surface.image.getpixel((5, 5)) == (255, 255, 255)

    def test_clip_confines_drawing(self):
        """Test drawing inside clipped() stays inside the rectangle."""
        surface = RasterSurface(50, 50)
        with surface.clipped(Rect(10, 10, 10, 10)):
            surface.fill_rect(Rect(0, 0, 50, 50), (0, 0, 255))
        assert surface.image.getpixel((15, 15)) == (0, 0, 255)
        assert surface.image.getpixel((40, 40)) == (255, 255, 255)

    def test_fill_pattern_repeats_tile(self):
        """Test pattern lines appear at every tile boundary."""
        surface = RasterSurface(40, 40)
        surface.fill_pattern(build_tile(10), (0, 0), Rect(0, 0, 40, 40), (0, 0, 0), 1)
        assert surface.image.getpixel((10, 5)) == (0, 0, 0)
        assert surface.image.getpixel((30, 25)) == (0, 0, 0)
        assert surface.image.getpixel((15, 15)) == (255, 255, 255)

    def test_text_draws_pixels(self):
        """Test horizontal and rotated text both mark the image."""
        surface = RasterSurface(200, 200)
        surface.draw_text('24"', (100, 100), 14, (0, 0, 0), anchor="middle")
        surface.draw_text('4"', (40, 100), 14, (0, 0, 0), anchor="middle", rotate=True)
        colors = surface.image.getcolors(maxcolors=1 << 16)
        assert len(colors) > 1

    def test_png_bytes(self):
        """Test PNG export decodes to the surface size."""
        surface = RasterSurface(64, 48)
        image = Image.open(io.BytesIO(surface.to_png_bytes()))
        assert image.format == "PNG"
        assert image.size == (64, 48)

    def test_closed_surface(self):
        """Test a closed surface is not drawable and cannot export."""
        surface = RasterSurface(10, 10)
        surface.close()
        assert surface.is_drawable() is False
        with pytest.raises(ValueError):
            surface.to_png_bytes()

    def test_zero_size_not_drawable(self):
        """Test an empty surface reports not drawable."""
        assert RasterSurface(0, 100).is_drawable() is False


class TestSvgSurface:
    """Tests for the svgwrite surface."""

    def test_batched_path_is_one_element(self):
        """Test a stroke_path call becomes a single <path>."""
        surface = SvgSurface(100, 100)
        surface.stroke_path([((0, 0), (10, 0)), ((0, 10), (10, 10))], "red", 4)
        svg = surface.tostring()
        assert svg.count("<path") == 1
        assert "M 0.00 0.00 L 10.00 0.00 M 0.00 10.00 L 10.00 10.00" in svg

    def test_pattern_and_clip_in_defs(self):
        """Test grid patterns and clip paths are emitted as defs."""
        surface = SvgSurface(100, 100)
        with surface.clipped(Rect(10, 10, 50, 50)):
            surface.fill_pattern(build_tile(5), (10, 10), Rect(10, 10, 50, 50), "#c0c0c0", 0.5)
        svg = surface.tostring()
        assert "<pattern" in svg
        assert "<clipPath" in svg
        assert 'clip-path="url(#clip-' in svg
        assert "url(#grid-" in svg

    def test_pattern_reused(self):
        """Test the same tile at the same origin is defined once."""
        surface = SvgSurface(100, 100)
        tile = build_tile(5)
        surface.fill_pattern(tile, (0, 0), Rect(0, 0, 10, 10), "black", 1)
        surface.fill_pattern(tile, (0, 0), Rect(20, 20, 10, 10), "black", 1)
        assert surface.tostring().count("<pattern") == 1

    def test_rotated_text(self):
        """Test rotation becomes a transform on the text element."""
        surface = SvgSurface(100, 100)
        surface.draw_text('4"', (20, 50), 14, "black", anchor="middle", rotate=True)
        svg = surface.tostring()
        assert "rotate(-90" in svg
        assert 'text-anchor="middle"' in svg

    def test_save(self, temp_dir):
        """Test SVG file is written."""
        surface = SvgSurface(20, 20)
        path = temp_dir / "out.svg"
        surface.save(str(path))
        assert path.read_text(encoding="utf-8").lstrip().startswith("<?xml")
