"""
Pytest configuration and fixtures for the stone mockup generator.

Provides:
- Specification, piece and project fixtures
- Render engine and artifact fixtures
- Recording delivery for export tests
- anyio backend selection for async tests
- Logging reset between tests
"""

import logging
from pathlib import Path
from typing import List, Tuple

import pytest

from stone_mockup.drawing.engine import RenderEngine, RenderedArtifact
from stone_mockup.export.delivery import Delivery, DeliveryReceipt
from stone_mockup.logging_config import PACKAGE_LOGGER
from stone_mockup.models import RenderOptions, StonePiece, StoneProject, StoneSpecifications
from stone_mockup.project_config import ProjectConfig

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


# ============================================================================
# Pytest Configuration Hooks
# ============================================================================

@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog keeps seeing package records."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    package_logger.filters.clear()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def countertop_specs() -> StoneSpecifications:
    """24" x 4" quartz backsplash with top and bottom polished."""
    return StoneSpecifications(
        width=24,
        height=4,
        polished_edges=("top", "bottom"),
        material_type="Quartz",
        thickness="2cm",
        quantity=1,
    )


@pytest.fixture
def config() -> ProjectConfig:
    return ProjectConfig()


@pytest.fixture
def engine(config: ProjectConfig) -> RenderEngine:
    return RenderEngine(config)


@pytest.fixture
def options() -> RenderOptions:
    return RenderOptions()


def make_piece(width: float = 24, height: float = 4, notes: str = "", **kwargs) -> StonePiece:
    return StonePiece(specs=StoneSpecifications(width=width, height=height, **kwargs), notes=notes)


@pytest.fixture
def piece_factory():
    """Build a StonePiece from width, height and specification keywords."""
    return make_piece


@pytest.fixture
def piece(countertop_specs: StoneSpecifications) -> StonePiece:
    return StonePiece(specs=countertop_specs, notes="")


@pytest.fixture
def artifact(engine: RenderEngine, piece: StonePiece) -> RenderedArtifact:
    return engine.render_artifact(piece)


@pytest.fixture
def five_pieces() -> List[StonePiece]:
    return [
        make_piece(24, 4, polished_edges=("top",)),
        make_piece(36, 25.5, material_type="granite", thickness="3cm"),
        make_piece(12.25, 12.25, polished_edges=("left", "right")),
        make_piece(60, 18, notes="Undermount sink cutout, centered"),
        make_piece(8, 4, quantity=3),
    ]


@pytest.fixture
def five_artifacts(engine: RenderEngine, five_pieces: List[StonePiece]) -> List[RenderedArtifact]:
    return [engine.render_artifact(p) for p in five_pieces]


@pytest.fixture
def project(five_pieces: List[StonePiece]) -> StoneProject:
    return StoneProject(name="Kitchen Remodel", pieces=list(five_pieces))


# ============================================================================
# Delivery Fixtures
# ============================================================================

class RecordingDelivery(Delivery):
    """Keeps delivered files in memory."""

    name = "recording"

    def __init__(self):
        self.delivered: List[Tuple[str, bytes]] = []

    def deliver(self, data: bytes, filename: str) -> DeliveryReceipt:
        self.delivered.append((filename, data))
        return DeliveryReceipt(filename=filename, method="saved", size=len(data))


@pytest.fixture
def recording_delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Temporary directory for test outputs."""
    return tmp_path
