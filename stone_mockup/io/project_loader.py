"""
Read and write project files.

Format (JSON):
    {
        "name": "Kitchen",
        "pieces": [
            {"id": "...", "specs": {"width": 24, "height": 4, ...}, "notes": "..."}
        ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Union

from stone_mockup.errors import ValidationError
from stone_mockup.models import StoneProject

logger = logging.getLogger(__name__)

PROJECT_SUFFIX = ".json"


class ProjectLoadError(ValidationError):
    """Project file missing, unreadable or malformed."""


def load_project(path: Union[str, Path]) -> StoneProject:
    """Load a project file.

    Raises:
        ProjectLoadError: the file cannot be read or does not describe a project.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ProjectLoadError(f"Project file not found: {path}")
    except json.JSONDecodeError as exc:
        raise ProjectLoadError(f"Project file {path} is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise ProjectLoadError(f"Could not read project file {path}: {exc}") from exc

    try:
        project = StoneProject.from_dict(data)
    except ValidationError as exc:
        raise ProjectLoadError(f"Invalid project file {path}: {exc}") from exc

    if not project.name:
        project.name = path.stem
    logger.info("Loaded project %r: %d pieces", project.name, len(project.pieces))
    return project


def save_project(project: StoneProject, path: Union[str, Path]) -> Path:
    """Write ``project`` as JSON and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(project.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info("Saved project %r to %s", project.name, path)
    return path
