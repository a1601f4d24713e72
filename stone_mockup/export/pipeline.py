"""
Export orchestration.

Every export call runs one ExportJob through

    IDLE -> VALIDATING -> RENDERING -> FINALIZING -> DELIVERED
                 |                          |
                 +--------> FAILED <--------+

Precondition errors (ValidationError, and ExportItemError for single-piece
exports) fail the job in VALIDATING. After that only an ExportFatalError
(no PDF could be produced or handed over) fails it; per-piece problems in
project exports become placeholders.

Project exports are async: the page builder is driven one batch per step,
each batch's pages are written to the PDF canvas (images embedded) right
away, and the pipeline awaits ``anyio.sleep(0)`` between batches.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Type, Tuple

import anyio

from stone_mockup.drawing.engine import RenderedArtifact, RenderEngine
from stone_mockup.errors import (
    ExportFatalError,
    ExportItemError,
    MockupError,
    RenderError,
    ValidationError,
)
from stone_mockup.export.builder import (
    BatchProgress,
    MultiPieceDocumentBuilder,
    build_single_document,
    encode_artifact,
)
from stone_mockup.export.delivery import (
    Delivery,
    DeliveryReceipt,
    project_filename,
    select_delivery,
    single_piece_filename,
)
from stone_mockup.export.document import ExportDocument
from stone_mockup.export.pdf_writer import PdfWriter
from stone_mockup.logging_config import LogContext, log_timing
from stone_mockup.models import RenderOptions, StonePiece, StoneProject, StoneSpecifications
from stone_mockup.project_config import ProjectConfig

logger = logging.getLogger(__name__)


class ExportState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RENDERING = "rendering"
    FINALIZING = "finalizing"
    DELIVERED = "delivered"
    FAILED = "failed"


_TRANSITIONS = {
    ExportState.IDLE: {ExportState.VALIDATING},
    ExportState.VALIDATING: {ExportState.RENDERING, ExportState.FAILED},
    ExportState.RENDERING: {ExportState.FINALIZING},
    ExportState.FINALIZING: {ExportState.DELIVERED, ExportState.FAILED},
    ExportState.DELIVERED: set(),
    ExportState.FAILED: set(),
}

# Errors that may fail a job, per state
_FAILING_ERRORS = {
    ExportState.VALIDATING: (ValidationError, ExportItemError),
    ExportState.FINALIZING: (ExportFatalError,),
}


class ExportJob:
    """State of one export call. A job runs once."""

    def __init__(self, kind: str):
        self.kind = kind
        self.export_id = uuid.uuid4().hex[:12]
        self.state = ExportState.IDLE
        self.history: List[ExportState] = [ExportState.IDLE]
        self.error: Optional[MockupError] = None

    def advance(self, state: ExportState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Export {self.export_id}: cannot go from {self.state.value} to {state.value}"
            )
        self.state = state
        self.history.append(state)
        logger.debug("Export %s -> %s", self.kind, state.value)

    def start(self) -> None:
        if self.state is not ExportState.IDLE:
            raise RuntimeError(f"Export job {self.export_id} has already run")
        self.advance(ExportState.VALIDATING)

    @contextmanager
    def stage(self, state: ExportState) -> Iterator[None]:
        """Enter ``state``; errors allowed to fail it mark the job FAILED."""
        if self.state is not state:
            self.advance(state)
        failing: Tuple[Type[MockupError], ...] = _FAILING_ERRORS.get(state, ())
        try:
            yield
        except failing as exc:
            self.error = exc
            self.advance(ExportState.FAILED)
            logger.warning("Export %s failed while %s: %s", self.kind, state.value, exc)
            raise

    @property
    def finished(self) -> bool:
        return self.state in (ExportState.DELIVERED, ExportState.FAILED)


@dataclass
class ExportResult:
    """Outcome of a delivered export.

    ``success`` stays True when some pieces were replaced by placeholders;
    their indices are in ``failed_pieces``.
    """
    filename: str
    data: bytes
    job: ExportJob
    receipt: Optional[DeliveryReceipt] = None
    document: Optional[ExportDocument] = None
    failed_pieces: List[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.job.state is ExportState.DELIVERED

    @property
    def export_id(self) -> str:
        return self.job.export_id


class ExportPipeline:
    """Turns rendered artifacts into delivered PNG and PDF files."""

    def __init__(
        self,
        config: Optional[ProjectConfig] = None,
        engine: Optional[RenderEngine] = None,
    ):
        self.config = config or ProjectConfig()
        self.engine = engine or RenderEngine(self.config)

    @property
    def _warn_after(self) -> float:
        return self.config.export.slow_export_ms / 1000.0

    def _delivery(self, is_mobile: bool, delivery: Optional[Delivery]) -> Delivery:
        if delivery is not None:
            return delivery
        return select_delivery(is_mobile, self.config.delivery)

    def _deliver(
        self,
        job: ExportJob,
        delivery: Delivery,
        data: bytes,
        filename: str,
    ) -> DeliveryReceipt:
        receipt = delivery.deliver(data, filename)
        job.advance(ExportState.DELIVERED)
        logger.info("Delivered %s via %s (%s)", filename, delivery.name, receipt.method)
        return receipt

    def export_to_png(
        self,
        artifact: Optional[RenderedArtifact],
        *,
        is_mobile: bool = False,
        delivery: Optional[Delivery] = None,
    ) -> ExportResult:
        """Deliver the rendered mockup image as a PNG file.

        Raises:
            ValidationError: no artifact.
            ExportItemError: the image cannot be encoded.
            ExportFatalError: delivery failed.
        """
        job = ExportJob("png")
        with LogContext(export_id=job.export_id):
            job.start()
            with job.stage(ExportState.VALIDATING):
                if artifact is None:
                    raise ValidationError("No rendered mockup to export")
                data = encode_artifact(artifact)
            job.advance(ExportState.RENDERING)
            filename = single_piece_filename(artifact.piece.specs, "png")
            with job.stage(ExportState.FINALIZING):
                receipt = self._deliver(job, self._delivery(is_mobile, delivery), data, filename)
        return ExportResult(filename=filename, data=data, job=job, receipt=receipt)

    def export_to_pdf(
        self,
        artifact: Optional[RenderedArtifact],
        specs: Optional[StoneSpecifications] = None,
        notes: Optional[str] = None,
        *,
        is_mobile: bool = False,
        delivery: Optional[Delivery] = None,
    ) -> ExportResult:
        """Single-page PDF for one piece.

        Raises:
            ValidationError: no artifact.
            ExportItemError: the image cannot be encoded.
            ExportFatalError: the PDF could not be written or delivered.
        """
        job = ExportJob("pdf")
        export_config = self.config.export
        with LogContext(export_id=job.export_id), \
                log_timing(logger, "export pdf", level=logging.INFO,
                           warn_after=self._warn_after):
            job.start()
            with job.stage(ExportState.VALIDATING):
                if artifact is None:
                    raise ValidationError("No rendered mockup to export")
                image_data = encode_artifact(artifact)
            specs = specs or artifact.piece.specs

            with job.stage(ExportState.RENDERING):
                document = build_single_document(artifact, specs, notes, export_config,
                                                 image_data=image_data)

            filename = single_piece_filename(specs, "pdf")
            with job.stage(ExportState.FINALIZING):
                writer = PdfWriter(export_config.font_name)
                data = writer.write(document)
                if writer.image_failures:
                    logger.warning("Mockup image replaced by a placeholder in %s", filename)
                receipt = self._deliver(job, self._delivery(is_mobile, delivery), data, filename)

        return ExportResult(filename=filename, data=data, job=job, receipt=receipt,
                            document=document, failed_pieces=list(writer.image_failures))

    async def export_multiple_to_pdf(
        self,
        artifacts: Sequence[Optional[RenderedArtifact]],
        pieces: Sequence[StonePiece],
        project_name: Optional[str] = None,
        *,
        is_mobile: bool = False,
        delivery: Optional[Delivery] = None,
        generated_on: Optional[date] = None,
        on_batch: Optional[Callable[[BatchProgress], None]] = None,
    ) -> ExportResult:
        """Project PDF: header on page 1, one page per piece.

        Pieces are laid out ``export.batch_size`` at a time and control is
        handed back to the event loop after every batch but the last.
        Missing or unusable images become placeholders.

        Raises:
            ValidationError: empty artifacts or pieces (no page is built).
            ExportFatalError: the PDF could not be written or delivered.
        """
        job = ExportJob("project-pdf")
        export_config = self.config.export
        with LogContext(export_id=job.export_id), \
                log_timing(logger, "export project pdf", level=logging.INFO,
                           warn_after=self._warn_after, pieces=len(pieces)):
            job.start()
            with job.stage(ExportState.VALIDATING):
                builder = MultiPieceDocumentBuilder(
                    artifacts, pieces, project_name,
                    config=export_config, generated_on=generated_on,
                )

            document = builder.document
            writer = PdfWriter(export_config.font_name)
            # A writer error here can only fail the job once FINALIZING is entered
            pending_error: Optional[ExportFatalError] = None
            with job.stage(ExportState.RENDERING):
                try:
                    writer.begin(document)
                    for progress in builder.iter_batches():
                        for index in range(writer.pages_drawn, document.page_count):
                            writer.draw_page(document.pages[index], index)
                        if on_batch is not None:
                            on_batch(progress)
                        if not progress.done:
                            await anyio.sleep(0)
                except ExportFatalError as exc:
                    pending_error = exc

            filename = project_filename(builder.project_name)
            with job.stage(ExportState.FINALIZING):
                if pending_error is not None:
                    raise pending_error
                data = writer.finish()
                embed_failures = {document.pages[i].piece_index for i in writer.image_failures}
                failed = sorted(set(builder.failures) | embed_failures)
                receipt = self._deliver(job, self._delivery(is_mobile, delivery), data, filename)

        if failed:
            logger.warning("%d of %d pieces exported with placeholders: %s",
                           len(failed), builder.total, [i + 1 for i in failed])
        return ExportResult(filename=filename, data=data, job=job, receipt=receipt,
                            document=document, failed_pieces=failed)

    async def export_project(
        self,
        project: StoneProject,
        options: Optional[RenderOptions] = None,
        *,
        is_mobile: bool = False,
        delivery: Optional[Delivery] = None,
        generated_on: Optional[date] = None,
    ) -> ExportResult:
        """Render every piece of ``project`` and export them as one PDF.

        A piece that fails to render is exported with a placeholder.
        """
        artifacts: List[Optional[RenderedArtifact]] = []
        for index, piece in enumerate(project.pieces):
            try:
                artifacts.append(self.engine.render_artifact(piece, options))
            except RenderError as exc:
                logger.warning("Piece %d could not be rendered: %s", index + 1, exc)
                artifacts.append(None)
            await anyio.sleep(0)

        return await self.export_multiple_to_pdf(
            artifacts, project.pieces, project.name,
            is_mobile=is_mobile, delivery=delivery, generated_on=generated_on,
        )
