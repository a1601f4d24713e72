"""
Build ExportDocuments for one piece or a whole project.

Layout (millimetres, landscape A4 by default). A piece detail block starting
at ``top``:

    top        title
    top + 8    Material
    top + 14   Thickness
    top + 20   Quantity
    top + 26   Polished Edges
    top + 32   image                   (no notes)
    top + 32   Notes:                  (with notes)
    top + 38   note lines, 5 mm apart
    top + 38 + lines * 5   image

Notes push the image down by at most ``max_notes_shift`` and never below the
bottom margin. Lines that do not fit above the image go on continuation
pages that follow the piece's page. Page 1 of a project export carries a
header and its block starts 16 mm lower than on the following pages.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional, Sequence, Tuple

from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit

from stone_mockup.drawing.engine import RenderedArtifact
from stone_mockup.errors import ExportItemError, ValidationError
from stone_mockup.export.document import (
    ROLE_NOTES,
    ROLE_NOTES_LABEL,
    ROLE_PIECE_TITLE,
    ROLE_PLACEHOLDER,
    ROLE_PROJECT_META,
    ROLE_PROJECT_TITLE,
    ROLE_TITLE,
    ExportDocument,
    ImageBlock,
    Page,
    TextBlock,
)
from stone_mockup.fraction_math import format_inches
from stone_mockup.models import StonePiece, StoneSpecifications
from stone_mockup.project_config import ExportConfig

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Error: Could not render preview image"
PLACEHOLDER_COLOR = (255, 0, 0)

# Offsets inside a detail block
MATERIAL_OFFSET = 8.0
THICKNESS_OFFSET = 14.0
QUANTITY_OFFSET = 20.0
EDGES_OFFSET = 26.0
NOTES_LABEL_OFFSET = 32.0
NOTES_OFFSET = 38.0
IMAGE_OFFSET = 32.0

CONTINUED_LABEL = "Notes (continued):"

# Project header on page 1
PROJECT_META_OFFSET = 8.0
PROJECT_HEADER_HEIGHT = 16.0

_PAGE_FORMATS = {
    "A4": (210.0, 297.0),
    "LETTER": (215.9, 279.4),
}


def page_size_mm(config: ExportConfig) -> Tuple[float, float]:
    """(width, height) of the configured page in millimetres."""
    try:
        width, height = _PAGE_FORMATS[config.page_format.upper()]
    except KeyError:
        raise ValidationError(
            f"Unknown page format {config.page_format!r}; expected one of "
            f"{', '.join(_PAGE_FORMATS)}"
        )
    if config.orientation.lower() == "landscape":
        return height, width
    return width, height


def dimensions_text(specs: StoneSpecifications) -> str:
    """'24" × 4"' style dimension pair."""
    return f"{format_inches(specs.width)} × {format_inches(specs.height)}"


def polished_edges_text(specs: StoneSpecifications) -> str:
    edges = ", ".join(specs.polished_edges) or "None"
    return f"Polished Edges: {edges}"


def wrap_notes(notes: str, config: ExportConfig) -> List[str]:
    """Word-wrap notes to the notes column. Every word is kept."""
    if not notes or not notes.strip():
        return []
    return simpleSplit(notes.strip(), config.font_name, config.body_font_size,
                       config.notes_width * mm)


def max_note_lines(top: float, config: ExportConfig) -> int:
    """Note lines that fit between a block starting at ``top`` and its image."""
    _, page_height = page_size_mm(config)
    room = page_height - config.margin_bottom - config.image_height - (top + NOTES_OFFSET)
    shift = min(config.max_notes_shift, room)
    return max(0, int(math.floor(shift / config.notes_line_height + 1e-9)))


def encode_artifact(artifact: Optional[RenderedArtifact], index: Optional[int] = None) -> bytes:
    """PNG bytes of a rendered artifact.

    Raises:
        ExportItemError: artifact missing or not encodable.
    """
    if artifact is None:
        raise ExportItemError("Mockup image is missing", index)
    try:
        return artifact.to_png_bytes()
    except (ValueError, OSError) as exc:
        raise ExportItemError(f"Could not encode mockup image: {exc}", index) from exc


def add_detail_block(
    page: Page,
    top: float,
    title: str,
    title_role: str,
    title_font_size: int,
    specs: StoneSpecifications,
    notes: str,
    config: ExportConfig,
) -> Tuple[float, List[str]]:
    """Write a piece's title, details and notes.

    Returns the image's top y and the note lines that did not fit above the
    image; pass those to ``add_notes_continuation``.
    """
    left = config.margin_left
    body = config.body_font_size

    page.add_text(TextBlock(title, left, top, title_font_size, title_role))
    page.add_text(TextBlock(f"Material: {specs.material_label}", left,
                            top + MATERIAL_OFFSET, body))
    page.add_text(TextBlock(f"Thickness: {specs.thickness}", left,
                            top + THICKNESS_OFFSET, body))
    page.add_text(TextBlock(f"Quantity: {specs.quantity}", left,
                            top + QUANTITY_OFFSET, body))
    page.add_text(TextBlock(polished_edges_text(specs), left, top + EDGES_OFFSET, body))

    lines = wrap_notes(notes, config)
    if not lines:
        return top + IMAGE_OFFSET, []

    fit = min(len(lines), max_note_lines(top, config))
    page.add_text(TextBlock("Notes:", left, top + NOTES_LABEL_OFFSET, body, ROLE_NOTES_LABEL))
    for i, line in enumerate(lines[:fit]):
        page.add_text(TextBlock(line, left, top + NOTES_OFFSET + i * config.notes_line_height,
                                body, ROLE_NOTES))
    return top + NOTES_OFFSET + fit * config.notes_line_height, lines[fit:]


def add_notes_continuation(
    document: ExportDocument,
    lines: Sequence[str],
    config: ExportConfig,
    piece_index: Optional[int] = None,
) -> List[Page]:
    """Append pages carrying note lines that did not fit beside the image."""
    if not lines:
        return []
    _, page_height = page_size_mm(config)
    first = config.margin_top + NOTES_OFFSET - NOTES_LABEL_OFFSET
    bottom = page_height - config.margin_bottom
    per_page = max(1, int(math.floor((bottom - first) / config.notes_line_height + 1e-9)) + 1)

    pages = []
    for start in range(0, len(lines), per_page):
        page = document.new_page(piece_index=piece_index)
        page.add_text(TextBlock(CONTINUED_LABEL, config.margin_left, config.margin_top,
                                config.body_font_size, ROLE_NOTES_LABEL))
        for i, line in enumerate(lines[start:start + per_page]):
            page.add_text(TextBlock(line, config.margin_left,
                                    first + i * config.notes_line_height,
                                    config.body_font_size, ROLE_NOTES))
        pages.append(page)
    logger.debug("%d note lines moved to %d continuation page(s)", len(lines), len(pages))
    return pages


def add_image(page: Page, data: bytes, image_top: float, config: ExportConfig) -> ImageBlock:
    return page.set_image(ImageBlock(data, config.margin_left, image_top,
                                     config.image_width, config.image_height))


def add_placeholder(page: Page, image_top: float, config: ExportConfig) -> TextBlock:
    """Red message in place of a piece image."""
    return page.add_text(TextBlock(
        PLACEHOLDER_TEXT,
        config.margin_left,
        image_top + config.notes_line_height * 2,
        config.body_font_size,
        ROLE_PLACEHOLDER,
        PLACEHOLDER_COLOR,
    ))


def build_single_document(
    artifact: Optional[RenderedArtifact],
    specs: Optional[StoneSpecifications] = None,
    notes: Optional[str] = None,
    config: Optional[ExportConfig] = None,
    image_data: Optional[bytes] = None,
) -> ExportDocument:
    """Document for a single piece, one page plus any notes continuation.

    ``specs`` and ``notes`` default to the artifact's piece; ``image_data``
    skips encoding when the caller already holds the PNG.

    Raises:
        ValidationError: no artifact.
        ExportItemError: the artifact image cannot be encoded.
    """
    config = config or ExportConfig()
    if artifact is None:
        raise ValidationError("No rendered mockup to export")
    specs = specs or artifact.piece.specs
    notes = artifact.piece.notes if notes is None else notes

    if image_data is None:
        image_data = encode_artifact(artifact)

    title = f"Stone Mockup: {dimensions_text(specs)}"
    document = ExportDocument(title=title, page_size=page_size_mm(config))
    page = document.new_page()
    image_top, overflow = add_detail_block(page, config.margin_top, title, ROLE_TITLE,
                                           config.title_font_size, specs, notes, config)
    add_image(page, image_data, image_top, config)
    add_notes_continuation(document, overflow, config)
    return document


@dataclass(frozen=True)
class BatchProgress:
    """Reported after each batch of pieces."""
    batch_index: int
    batch_count: int
    start: int
    end: int
    total: int

    @property
    def processed(self) -> int:
        return self.end

    @property
    def done(self) -> bool:
        return self.end >= self.total


class MultiPieceDocumentBuilder:
    """Project document built a batch of pieces at a time.

    Pages are only added while ``iter_batches()`` is consumed, one batch per
    step, so a caller can hand control back between batches.

    Raises:
        ValidationError: on construction, for empty artifacts or pieces.
    """

    def __init__(
        self,
        artifacts: Sequence[Optional[RenderedArtifact]],
        pieces: Sequence[StonePiece],
        project_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        config: Optional[ExportConfig] = None,
        generated_on: Optional[date] = None,
    ):
        self.config = config or ExportConfig()
        if not artifacts:
            raise ValidationError("No rendered mockups to export")
        if not pieces:
            raise ValidationError("No pieces to export")
        self.batch_size = batch_size if batch_size is not None else self.config.batch_size
        if self.batch_size < 1:
            raise ValidationError(f"batch_size must be at least 1, got {self.batch_size}")
        if len(artifacts) != len(pieces):
            logger.warning("%d artifacts for %d pieces; unmatched pieces get placeholders",
                           len(artifacts), len(pieces))

        self.artifacts = list(artifacts)
        self.pieces = list(pieces)
        self.project_name = (project_name or "").strip() or self.config.default_project_name
        self.generated_on = generated_on or date.today()
        self.failures: List[int] = []
        self.document = ExportDocument(title=f"Stone Project: {self.project_name}",
                                       page_size=page_size_mm(self.config))

    @property
    def total(self) -> int:
        return len(self.pieces)

    @property
    def batch_count(self) -> int:
        return -(-self.total // self.batch_size)

    def iter_batches(self) -> Iterator[BatchProgress]:
        for batch_index, start in enumerate(range(0, self.total, self.batch_size)):
            end = min(start + self.batch_size, self.total)
            for index in range(start, end):
                self._add_piece(index)
            progress = BatchProgress(batch_index, self.batch_count, start, end, self.total)
            logger.debug("Batch %d/%d done (%d/%d pieces)",
                         batch_index + 1, self.batch_count, end, self.total)
            yield progress

    def build(self) -> ExportDocument:
        """Run every batch without pausing."""
        for _ in self.iter_batches():
            pass
        return self.document

    def _add_header(self, page: Page) -> float:
        config = self.config
        top = config.margin_top
        page.add_text(TextBlock(f"Stone Project: {self.project_name}", config.margin_left,
                                top, config.project_title_font_size, ROLE_PROJECT_TITLE))
        generated = f"{self.generated_on.month}/{self.generated_on.day}/{self.generated_on.year}"
        page.add_text(TextBlock(f"Date: {generated}    Total Pieces: {self.total}",
                                config.margin_left, top + PROJECT_META_OFFSET,
                                config.body_font_size, ROLE_PROJECT_META))
        return top + PROJECT_HEADER_HEIGHT

    def _add_piece(self, index: int) -> None:
        config = self.config
        piece = self.pieces[index]
        page = self.document.new_page(piece_index=index)
        top = self._add_header(page) if index == 0 else config.margin_top

        title = f"Piece {index + 1}: {dimensions_text(piece.specs)}"
        image_top, overflow = add_detail_block(page, top, title, ROLE_PIECE_TITLE,
                                               config.piece_title_font_size, piece.specs,
                                               piece.notes, config)

        artifact = self.artifacts[index] if index < len(self.artifacts) else None
        try:
            data = encode_artifact(artifact, index)
        except ExportItemError as exc:
            logger.warning("Piece %d: %s, using placeholder", index + 1, exc,
                           extra={"piece_index": index})
            self.failures.append(index)
            add_placeholder(page, image_top, config)
        else:
            add_image(page, data, image_top, config)
        add_notes_continuation(self.document, overflow, config, piece_index=index)


