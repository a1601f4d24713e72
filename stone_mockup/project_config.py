"""
JSON-based configuration for stone_mockup.

Defaults can be overridden with a .stonemockup.json file, searched in:
1. Explicit config file path (CLI --config)
2. The project file's directory
3. The current working directory
4. The user's home directory

Example .stonemockup.json:
{
    "render": {
        "surface_width": 1200,
        "surface_height": 900,
        "padding": 60
    },
    "style": {
        "polished_edge_color": "#d00000"
    },
    "export": {
        "batch_size": 4,
        "default_project_name": "Kitchen"
    },
    "delivery": {
        "output_dir": "./exports",
        "release_delay_seconds": 10
    }
}
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".stonemockup.json"


@dataclass
class RenderConfig:
    """Drawing surface and overlay geometry (surface pixels)."""
    surface_width: int = 800
    surface_height: int = 600
    padding: float = 40.0
    minor_grid_inches: float = 0.25
    major_grid_inches: float = 1.0
    x_mark_spacing: float = 20.0
    x_mark_size: float = 6.0
    label_offset: float = 25.0
    material_label_inset: float = 5.0
    dimension_font_size: int = 14
    material_font_size: int = 12
    min_scale: float = 0.5
    max_scale: float = 2.0
    font_path: Optional[str] = None  # None = Pillow's bundled font
    slow_render_ms: float = 100.0


@dataclass
class StyleConfig:
    """Colors and line widths."""
    background_color: str = "#f5f5f5"
    piece_fill_color: str = "white"
    border_color: str = "black"
    border_width: float = 2.0
    minor_grid_color: str = "#c0c0c0"
    minor_grid_width: float = 0.5
    major_grid_color: str = "#808080"
    major_grid_width: float = 0.8
    polished_edge_color: str = "red"
    polished_edge_width: float = 4.0
    x_mark_width: float = 2.0
    text_color: str = "black"


@dataclass
class ExportConfig:
    """PDF page layout (millimetres) and batching."""
    page_format: str = "A4"
    orientation: str = "landscape"
    margin_left: float = 14.0
    margin_top: float = 20.0
    margin_bottom: float = 6.0
    image_width: float = 180.0
    image_height: float = 120.0
    notes_width: float = 180.0
    notes_line_height: float = 5.0
    max_notes_shift: float = 60.0
    title_font_size: int = 18
    project_title_font_size: int = 20
    piece_title_font_size: int = 16
    body_font_size: int = 12
    font_name: str = "Helvetica"
    batch_size: int = 2
    default_project_name: str = "Stone Project"
    slow_export_ms: float = 500.0


@dataclass
class DeliveryConfig:
    """Where exported files end up."""
    output_dir: str = ""  # "" = current directory
    download_dir: str = ""  # "" = ~/Downloads
    release_delay_seconds: float = 5.0


_SECTIONS = ("render", "style", "export", "delivery")


@dataclass
class ProjectConfig:
    """Complete configuration."""
    render: RenderConfig = field(default_factory=RenderConfig)
    style: StyleConfig = field(default_factory=StyleConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Write configuration as JSON."""
        path = Path(path)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        """Build configuration from a dict; unknown sections and keys are ignored."""
        config = cls()
        for section_name in _SECTIONS:
            section_data = data.get(section_name)
            if not isinstance(section_data, dict):
                continue
            section = getattr(config, section_name)
            for key, value in section_data.items():
                if key.startswith("_"):
                    continue
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    logger.debug("Ignoring unknown config key %s.%s", section_name, key)
        return config

    @classmethod
    def from_json(cls, json_str: str) -> "ProjectConfig":
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ProjectConfig":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def find_config_file(
    project_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Locate the configuration file, most specific location first."""
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    if project_path:
        candidate = Path(project_path).parent / CONFIG_FILENAME
        if candidate.exists():
            return candidate

    candidate = Path.cwd() / CONFIG_FILENAME
    if candidate.exists():
        return candidate

    candidate = Path.home() / CONFIG_FILENAME
    if candidate.exists():
        return candidate

    return None


def load_config(
    project_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> ProjectConfig:
    """Load configuration, falling back to defaults when none is found or it is unreadable."""
    config_path = find_config_file(project_path, explicit_config)

    if config_path:
        try:
            return ProjectConfig.load(config_path)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)

    return ProjectConfig()


def merge_configs(base: ProjectConfig, override: ProjectConfig) -> ProjectConfig:
    """Merge two configurations; only values that differ from the defaults in
    ``override`` are applied on top of ``base``."""
    merged = ProjectConfig.from_dict(base.to_dict())
    defaults = ProjectConfig()

    for section_name in _SECTIONS:
        override_section = getattr(override, section_name)
        default_section = getattr(defaults, section_name)
        merged_section = getattr(merged, section_name)
        for f in fields(override_section):
            value = getattr(override_section, f.name)
            if value != getattr(default_section, f.name):
                setattr(merged_section, f.name, value)

    return merged


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> Path:
    """Write a commented sample configuration with every default value."""
    sample: Dict[str, Any] = {
        "_comment": "Stone mockup generator configuration",
        "_version": "1.0",
    }
    comments = {
        "render": "Drawing surface size (px), padding, grid and mark geometry",
        "style": "Colors and line widths of the mockup drawing",
        "export": "PDF layout in millimetres and multi-piece batch size",
        "delivery": "Output folders and how long transient files are kept (s)",
    }
    for section_name, section_data in ProjectConfig().to_dict().items():
        sample[section_name] = {"_comment": comments[section_name], **section_data}

    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    logger.info("Sample configuration created: %s", path)
    return path
