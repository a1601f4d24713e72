"""PDF/PNG export: document model, page builders, PDF writer, delivery and the pipeline."""

from stone_mockup.export.builder import MultiPieceDocumentBuilder, build_single_document
from stone_mockup.export.delivery import (
    Delivery,
    DeliveryReceipt,
    DesktopSave,
    MobileOpenOrDownload,
    select_delivery,
)
from stone_mockup.export.document import ExportDocument, ImageBlock, Page, TextBlock
from stone_mockup.export.pdf_writer import PdfWriter, write_pdf
from stone_mockup.export.pipeline import ExportJob, ExportPipeline, ExportResult, ExportState

__all__ = [
    "Delivery",
    "DeliveryReceipt",
    "DesktopSave",
    "ExportDocument",
    "ExportJob",
    "ExportPipeline",
    "ExportResult",
    "ExportState",
    "ImageBlock",
    "MobileOpenOrDownload",
    "MultiPieceDocumentBuilder",
    "Page",
    "PdfWriter",
    "TextBlock",
    "build_single_document",
    "select_delivery",
    "write_pdf",
]
