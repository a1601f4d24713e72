"""
Unit tests for stone_mockup.io.project_loader.
"""

import json

import pytest

from stone_mockup.errors import ValidationError
from stone_mockup.io.project_loader import ProjectLoadError, load_project, save_project


class TestLoadProject:
    """Tests for load_project."""

    def test_round_trip(self, project, tmp_path):
        """Test a saved project loads back with the same pieces."""
        path = save_project(project, tmp_path / "kitchen.json")
        loaded = load_project(path)
        assert loaded.name == "Kitchen Remodel"
        assert [p.id for p in loaded.pieces] == [p.id for p in project.pieces]
        assert loaded.pieces[1].specs == project.pieces[1].specs
        assert loaded.pieces[3].notes == "Undermount sink cutout, centered"

    def test_camel_case_file(self, tmp_path):
        """Test stored field names load."""
        path = tmp_path / "island.json"
        path.write_text(json.dumps({
            "name": "Island",
            "pieces": [{"specs": {"width": 96, "height": 42.5,
                                  "polishedEdges": ["Top", "left"],
                                  "materialType": "marble"}}],
        }), encoding="utf-8")
        piece = load_project(path).pieces[0]
        assert piece.specs.polished_edges == ("top", "left")
        assert piece.specs.material_type == "marble"
        assert piece.id

    def test_name_defaults_to_file_stem(self, tmp_path):
        """Test unnamed projects take the file name."""
        path = tmp_path / "laundry-room.json"
        path.write_text('{"pieces": []}')
        assert load_project(path).name == "laundry-room"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProjectLoadError, match="not found"):
            load_project(tmp_path / "nope.json")

    def test_bad_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{")
        with pytest.raises(ProjectLoadError, match="not valid JSON"):
            load_project(path)

    def test_invalid_piece(self, tmp_path):
        """Test invalid specifications are load errors and validation errors."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"pieces": [{"specs": {"width": -1, "height": 4}}]}))
        with pytest.raises(ValidationError):
            load_project(path)
