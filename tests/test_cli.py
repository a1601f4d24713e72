"""
Tests for the command line entry point (main.py).
"""

import json
import tempfile
import webbrowser

import pytest

from main import main
from stone_mockup.io.project_loader import save_project
from stone_mockup.project_config import CONFIG_FILENAME


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep configuration lookups and default outputs inside tmp_path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


class TestRenderCommand:
    """Tests for `render`."""

    def test_png(self, tmp_path):
        output = tmp_path / "counter.png"
        assert main(["render", "24-1/2", "4", "--edges", "top,bottom", "-o", str(output)]) == 0
        assert output.read_bytes().startswith(b"\x89PNG")

    def test_svg(self, tmp_path):
        output = tmp_path / "counter.svg"
        assert main(["render", "36", "25-1/4", "--no-grid", "-o", str(output)]) == 0
        assert "<svg" in output.read_text(encoding="utf-8")

    def test_default_output(self, tmp_path):
        assert main(["render", "12", "12"]) == 0
        assert (tmp_path / "stone-mockup.png").exists()

    def test_invalid_dimension(self):
        """Test malformed measurements exit with 1."""
        assert main(["render", "abc", "4"]) == 1

    def test_invalid_material(self):
        assert main(["render", "24", "4", "--material", "wood"]) == 1


class TestExportCommand:
    """Tests for `export`."""

    def test_pdf(self, tmp_path, capsys):
        out = tmp_path / "exports"
        assert main(["export", "24-1/2", "4", "--notes", "Sink cutout",
                     "--output-dir", str(out)]) == 0
        assert (out / "stone-mockup-24-1_2x4.pdf").read_bytes().startswith(b"%PDF-")
        assert "stone-mockup-24-1/2x4.pdf: saved" in capsys.readouterr().out

    def test_png(self, tmp_path):
        assert main(["export", "8", "4", "--png", "--output-dir", str(tmp_path)]) == 0
        assert (tmp_path / "stone-mockup-8x4.png").exists()

    def test_unwritable_output_is_fatal(self, tmp_path):
        """Test delivery failures exit with 2."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        assert main(["export", "8", "4", "--output-dir", str(blocker)]) == 2


class TestProjectCommand:
    """Tests for `project`."""

    def test_exports_project(self, project, tmp_path, capsys):
        path = save_project(project, tmp_path / "kitchen.json")
        assert main(["project", str(path), "--output-dir", str(tmp_path / "out")]) == 0
        assert (tmp_path / "out" / "kitchen-remodel-stone-project.pdf").exists()
        assert "5 pieces" in capsys.readouterr().out

    def test_name_override(self, project, tmp_path):
        path = save_project(project, tmp_path / "kitchen.json")
        assert main(["project", str(path), "--name", "Smith Kitchen",
                     "--output-dir", str(tmp_path)]) == 0
        assert (tmp_path / "smith-kitchen-stone-project.pdf").exists()

    def test_missing_file(self, tmp_path):
        assert main(["project", str(tmp_path / "missing.json")]) == 1

    def test_project_config_applied(self, project, tmp_path):
        """Test a configuration beside the project file is used."""
        path = save_project(project, tmp_path / "kitchen.json")
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({
            "delivery": {"output_dir": str(tmp_path / "configured")},
        }))
        assert main(["project", str(path)]) == 0
        assert (tmp_path / "configured" / "kitchen-remodel-stone-project.pdf").exists()


class TestBatchCommand:
    """Tests for `batch`."""

    def test_batch(self, project, tmp_path, capsys):
        save_project(project, tmp_path / "in" / "kitchen.json")
        assert main(["batch", str(tmp_path / "in"), "-o", str(tmp_path / "out")]) == 0
        assert (tmp_path / "out" / "kitchen-remodel-stone-project.pdf").exists()
        assert "Batch Export Summary" in capsys.readouterr().out

    def test_batch_with_failure(self, tmp_path):
        """Test a failed project makes the batch exit with 1."""
        folder = tmp_path / "in"
        folder.mkdir()
        (folder / "broken.json").write_text("{")
        assert main(["batch", str(folder)]) == 1


class TestInitConfig:
    """Tests for `init-config`."""

    def test_writes_sample(self, tmp_path):
        path = tmp_path / "sample.json"
        assert main(["init-config", str(path)]) == 0
        assert "_comment" in json.loads(path.read_text(encoding="utf-8"))

    def test_default_path(self, tmp_path):
        assert main(["init-config"]) == 0
        assert (tmp_path / CONFIG_FILENAME).exists()


class TestMobileDelivery:
    """Tests for `--mobile` exports."""

    @pytest.fixture
    def transient_dir(self, tmp_path, monkeypatch):
        """Temporary files land in tmp_path/tmp and the viewer is blocked."""
        folder = tmp_path / "tmp"
        folder.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(folder))
        monkeypatch.setattr(webbrowser, "open", lambda uri: False)
        (tmp_path / CONFIG_FILENAME).write_text(json.dumps({
            "delivery": {"download_dir": str(tmp_path / "downloads"),
                         "release_delay_seconds": 0.05},
        }))
        return folder

    def test_export_leaves_no_temporary_file(self, transient_dir, tmp_path, capsys):
        """Test the CLI waits for the temporary file to be removed before exiting."""
        assert main(["--mobile", "export", "24", "4"]) == 0
        assert "downloaded" in capsys.readouterr().out
        assert (tmp_path / "downloads" / "stone-mockup-24x4.pdf").exists()
        assert list(transient_dir.glob("stone-mockup-*")) == []

    def test_project_leaves_no_temporary_file(self, transient_dir, project, tmp_path):
        path = save_project(project, tmp_path / "kitchen.json")
        assert main(["--mobile", "project", str(path)]) == 0
        assert (tmp_path / "downloads" / "kitchen-remodel-stone-project.pdf").exists()
        assert list(transient_dir.glob("stone-mockup-*")) == []
