"""
In-memory export document.

An ExportDocument is an ordered list of pages; each page holds text blocks and
at most one image. Coordinates are millimetres from the page's top-left
corner, y measured to the text baseline or the image's top edge. The document
knows nothing about PDF; pdf_writer turns it into bytes.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

# Text block roles
ROLE_TITLE = "title"
ROLE_PROJECT_TITLE = "project-title"
ROLE_PROJECT_META = "project-meta"
ROLE_PIECE_TITLE = "piece-title"
ROLE_DETAIL = "detail"
ROLE_NOTES_LABEL = "notes-label"
ROLE_NOTES = "notes"
ROLE_PLACEHOLDER = "placeholder"


@dataclass
class TextBlock:
    text: str
    x: float
    y: float
    font_size: int
    role: str = ROLE_DETAIL
    color: Tuple[int, int, int] = (0, 0, 0)


@dataclass
class ImageBlock:
    """PNG image placed with its top-left corner at (x, y)."""
    data: bytes
    x: float
    y: float
    width: float
    height: float


@dataclass
class Page:
    """One output page; ``piece_index`` names the project piece it belongs to."""
    texts: List[TextBlock] = field(default_factory=list)
    image: Optional[ImageBlock] = None
    piece_index: Optional[int] = None

    def add_text(self, block: TextBlock) -> TextBlock:
        self.texts.append(block)
        return block

    def set_image(self, block: ImageBlock) -> ImageBlock:
        if self.image is not None:
            raise ValueError("A page holds at most one image")
        self.image = block
        return block


@dataclass
class ExportDocument:
    """Pages in output order.

    Attributes:
        title: Document title written into the PDF metadata.
        page_size: (width, height) in millimetres.
    """
    title: str = ""
    page_size: Tuple[float, float] = (297.0, 210.0)
    pages: List[Page] = field(default_factory=list)

    def new_page(self, piece_index: Optional[int] = None) -> Page:
        page = Page(piece_index=piece_index)
        self.pages.append(page)
        return page

    @property
    def current_page(self) -> Page:
        if not self.pages:
            return self.new_page()
        return self.pages[-1]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def page_breaks(self) -> int:
        """Explicit breaks between pages."""
        return max(0, len(self.pages) - 1)

    def iter_texts(self) -> Iterator[Tuple[int, TextBlock]]:
        for index, page in enumerate(self.pages):
            for block in page.texts:
                yield index, block

    def blocks(self, role: Optional[str] = None) -> List[TextBlock]:
        """Text blocks across all pages, optionally filtered by role."""
        return [b for _, b in self.iter_texts() if role is None or b.role == role]

    def images(self) -> List[ImageBlock]:
        return [p.image for p in self.pages if p.image is not None]
