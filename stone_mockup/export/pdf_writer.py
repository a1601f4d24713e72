"""
Serialize an ExportDocument to PDF bytes with reportlab.

Document coordinates are millimetres from the top-left corner; reportlab's
origin is the bottom-left corner, so every y is flipped against the page
height.

Pages can be written all at once (``write``) or one at a time while the
document is still being built:

    writer.begin(document)
    writer.draw_page(page, index)   # as pages are added
    data = writer.finish()
"""

import io
import logging
from typing import List, Optional

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from stone_mockup.errors import ExportFatalError
from stone_mockup.export.builder import PLACEHOLDER_COLOR, PLACEHOLDER_TEXT
from stone_mockup.export.document import ExportDocument, ImageBlock, Page, TextBlock

logger = logging.getLogger(__name__)


class PdfWriter:
    """Write documents page by page.

    Attributes:
        image_failures: Indices of pages whose image could not be embedded
            since the last ``begin`` (a placeholder was drawn instead).
        pages_drawn: Pages written to the current canvas.
    """

    def __init__(self, font_name: str = "Helvetica", creator: str = "stone-mockup"):
        self.font_name = font_name
        self.creator = creator
        self.image_failures: List[int] = []
        self.pages_drawn = 0
        self._canvas: Optional[canvas.Canvas] = None
        self._buffer: Optional[io.BytesIO] = None
        self._page_h = 0.0

    @property
    def started(self) -> bool:
        return self._canvas is not None

    def begin(self, document: ExportDocument) -> None:
        """Open a canvas sized for ``document``.

        Raises:
            ExportFatalError: the PDF canvas cannot be created.
        """
        self.image_failures = []
        self.pages_drawn = 0
        page_w, page_h = document.page_size
        buffer = io.BytesIO()
        try:
            pdf = canvas.Canvas(buffer, pagesize=(page_w * mm, page_h * mm))
            pdf.setTitle(document.title)
            pdf.setCreator(self.creator)
        except Exception as exc:
            raise ExportFatalError(f"Could not create PDF canvas: {exc}") from exc
        self._canvas, self._buffer, self._page_h = pdf, buffer, page_h

    def draw_page(self, page: Page, index: int) -> None:
        """Write one page and start the next.

        Raises:
            ExportFatalError: the page cannot be drawn.
        """
        if self._canvas is None:
            raise RuntimeError("begin() must be called before draw_page()")
        try:
            self._draw_page(self._canvas, page, index, self._page_h)
            self._canvas.showPage()
        except Exception as exc:
            raise ExportFatalError(f"Could not draw PDF page {index + 1}: {exc}") from exc
        self.pages_drawn += 1

    def finish(self) -> bytes:
        """Close the canvas and return the PDF bytes.

        Raises:
            ExportFatalError: no page was drawn or the PDF cannot be saved.
        """
        if self._canvas is None:
            raise RuntimeError("begin() must be called before finish()")
        pdf, buffer = self._canvas, self._buffer
        self._canvas, self._buffer = None, None
        if self.pages_drawn == 0:
            raise ExportFatalError("Document has no pages")
        try:
            pdf.save()
        except Exception as exc:
            raise ExportFatalError(f"Could not serialize PDF: {exc}") from exc

        data = buffer.getvalue()
        logger.debug("PDF written: %d pages, %d bytes", self.pages_drawn, len(data))
        return data

    def write(self, document: ExportDocument) -> bytes:
        """Render ``document`` to PDF bytes.

        Raises:
            ExportFatalError: no pages, or the PDF cannot be created or saved.
        """
        if not document.pages:
            raise ExportFatalError("Document has no pages")
        self.begin(document)
        for index, page in enumerate(document.pages):
            self.draw_page(page, index)
        return self.finish()

    def _draw_page(self, pdf: canvas.Canvas, page: Page, index: int, page_h: float) -> None:
        for block in page.texts:
            self._draw_text(pdf, block, page_h)
        if page.image is not None:
            self._draw_image(pdf, page.image, index, page_h)

    def _draw_text(self, pdf: canvas.Canvas, block: TextBlock, page_h: float) -> None:
        r, g, b = block.color
        pdf.setFillColorRGB(r / 255.0, g / 255.0, b / 255.0)
        pdf.setFont(self.font_name, block.font_size)
        pdf.drawString(block.x * mm, (page_h - block.y) * mm, block.text)

    def _draw_image(self, pdf: canvas.Canvas, image: ImageBlock, index: int, page_h: float) -> None:
        try:
            reader = ImageReader(io.BytesIO(image.data))
            pdf.drawImage(
                reader,
                image.x * mm,
                (page_h - image.y - image.height) * mm,
                width=image.width * mm,
                height=image.height * mm,
            )
        except Exception as exc:
            logger.warning("Page %d: could not embed image (%s), using placeholder",
                           index + 1, exc, extra={"page_index": index})
            self.image_failures.append(index)
            self._draw_text(pdf, TextBlock(PLACEHOLDER_TEXT, image.x, image.y + 10,
                                           12, color=PLACEHOLDER_COLOR), page_h)


def write_pdf(document: ExportDocument, font_name: Optional[str] = None) -> bytes:
    """PDF bytes for ``document``."""
    return PdfWriter(font_name or "Helvetica").write(document)
