"""
stone_mockup: annotated scale drawings and PDF exports of stone pieces.

The command line entry point is main.py.
"""

from stone_mockup.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)

__version__ = "1.0.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
]
