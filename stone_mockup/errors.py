"""
Exception hierarchy for stone_mockup.

ValidationError: bad input caught before any side effect (fraction text,
    dimensions, empty export collections).
RenderError: the drawing surface cannot be drawn on; aborts one render.
ExportItemError: one piece of a multi-piece export could not be embedded;
    recovered locally with a placeholder.
ExportFatalError: no document could be produced at all.
"""

from typing import Optional


class MockupError(Exception):
    """Base class for all stone_mockup errors."""


class ValidationError(MockupError, ValueError):
    """Input rejected before anything was drawn, written or delivered."""


class RenderError(MockupError):
    """Drawing surface unusable for a render call."""


class ExportItemError(MockupError):
    """A single piece could not be placed into an export document.

    Attributes:
        index: Zero-based piece index in the export, if known.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class ExportFatalError(MockupError):
    """Export document could not be built, serialized or delivered."""
