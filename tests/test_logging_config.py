"""
Unit tests for stone_mockup.logging_config module.

Tests:
- JSON formatter output
- Console formatter output
- Logging setup
- Timing utilities and slow-operation warnings
- Context management
"""

import json
import logging
import sys
from io import StringIO

from stone_mockup.logging_config import (
    PACKAGE_LOGGER,
    ConsoleFormatter,
    JSONFormatter,
    LogContext,
    configure_default_logging,
    get_logger,
    log_timing,
    setup_logging,
    timed,
)


def _record(name="stone_mockup.export.pipeline", level=logging.INFO, msg="Delivered %s",
            args=("a.pdf",), exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="pipeline.py", lineno=42,
        msg=msg, args=args, exc_info=exc_info,
    )


class TestJSONFormatter:
    """Tests for JSONFormatter class."""

    def test_basic_format(self):
        """Test core keys of the JSON line."""
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "stone_mockup.export.pipeline"
        assert data["message"] == "Delivered a.pdf"
        assert "timestamp" in data
        assert "location" not in data

    def test_extra_fields(self):
        """Test extra fields are copied into the entry."""
        record = _record()
        record.export_id = "abc123"
        record.piece_index = 2
        data = json.loads(JSONFormatter().format(record))
        assert data["export_id"] == "abc123"
        assert data["piece_index"] == 2

    def test_unserializable_extra(self):
        """Test non-JSON extra values are stringified."""
        record = _record()
        record.path = object()
        data = json.loads(JSONFormatter().format(record))
        assert data["path"].startswith("<object")

    def test_location_for_warning(self):
        """Test warnings carry file and line."""
        data = json.loads(JSONFormatter().format(_record(level=logging.WARNING)))
        assert data["location"]["line"] == 42

    def test_exception_format(self):
        """Test exceptions are formatted into the entry."""
        try:
            raise ValueError("bad image")
        except ValueError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad image" in data["exception"]

    def test_unicode_message(self):
        """Test dimension labels survive unescaped."""
        line = JSONFormatter().format(_record(msg='Rendered 24" × 4"', args=()))
        assert "×" in line


class TestConsoleFormatter:
    """Tests for ConsoleFormatter class."""

    def test_basic_format(self):
        """Test the package prefix is stripped from logger names."""
        output = ConsoleFormatter(use_colors=False).format(_record())
        assert "INFO" in output
        assert "export.pipeline: Delivered a.pdf" in output

    def test_extra_fields_shown(self):
        """Test extras are appended in brackets."""
        record = _record()
        record.export_id = "abc123"
        record.elapsed_seconds = 0.123456
        output = ConsoleFormatter(use_colors=False).format(record)
        assert "export_id=abc123" in output
        assert "elapsed_seconds=0.123" in output

    def test_long_lists_summarized(self):
        """Test long list extras are shortened."""
        record = _record()
        record.failed = [1, 2, 3, 4, 5]
        output = ConsoleFormatter(use_colors=False).format(record)
        assert "failed=[...5 items]" in output

    def test_colors(self):
        """Test ANSI codes only when enabled."""
        assert "\033[" in ConsoleFormatter(use_colors=True).format(_record())
        assert "\033[" not in ConsoleFormatter(use_colors=False).format(_record())


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_package_logger(self):
        """Test the package logger is configured by default."""
        logger = setup_logging()
        assert logger.name == PACKAGE_LOGGER
        assert logger.propagate is False

    def test_console_handler_added(self):
        """Test exactly one console handler."""
        logger = setup_logging(console=True)
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, ConsoleFormatter)

    def test_json_file_handler(self, tmp_path):
        """Test JSON lines are written to the log file."""
        log_file = tmp_path / "mockup.log.json"
        logger = setup_logging(console=False, json_file=log_file)
        get_logger("stone_mockup.drawing.engine").info("Rendered piece")
        for handler in logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["message"] == "Rendered piece"
        assert entry["logger"] == "stone_mockup.drawing.engine"

    def test_level_setting(self):
        """Test the level is applied."""
        logger = setup_logging(level=logging.WARNING, console=False)
        assert logger.level == logging.WARNING


class TestGetLogger:
    """Tests for get_logger function."""

    def test_same_logger_returned(self):
        """Test loggers are shared by name."""
        assert get_logger("stone_mockup.batch") is get_logger("stone_mockup.batch")


class TestLogTiming:
    """Tests for log_timing context manager."""

    def test_logs_start_and_complete(self, caplog):
        """Test start and completion records."""
        logger = logging.getLogger("stone_mockup.test")
        with caplog.at_level(logging.DEBUG, logger="stone_mockup"):
            with log_timing(logger, "render piece"):
                pass
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "Starting: render piece"
        assert messages[1].startswith("Completed: render piece")

    def test_timing_info_updated(self):
        """Test elapsed time and caller fields are reported back."""
        logger = logging.getLogger("stone_mockup.test")
        with log_timing(logger, "export") as info:
            info["pages"] = 3
        assert info["elapsed_seconds"] >= 0
        assert info["pages"] == 3

    def test_error_logged_on_exception(self, caplog):
        """Test failures are logged and re-raised."""
        logger = logging.getLogger("stone_mockup.test")
        with caplog.at_level(logging.DEBUG, logger="stone_mockup"):
            try:
                with log_timing(logger, "write pdf"):
                    raise OSError("disk full")
            except OSError:
                pass
        error = [r for r in caplog.records if r.levelno == logging.ERROR][0]
        assert "disk full" in error.getMessage()
        assert error.event == "error"

    def test_slow_operation_warns(self, caplog):
        """Test a completion slower than warn_after is a warning."""
        logger = logging.getLogger("stone_mockup.test")
        with caplog.at_level(logging.DEBUG, logger="stone_mockup"):
            with log_timing(logger, "render piece", warn_after=-1.0):
                pass
        last = caplog.records[-1]
        assert last.levelno == logging.WARNING
        assert last.getMessage().startswith("Slow: render piece")
        assert last.event == "slow"

    def test_fast_operation_stays_at_level(self, caplog):
        """Test a fast completion keeps the requested level."""
        logger = logging.getLogger("stone_mockup.test")
        with caplog.at_level(logging.DEBUG, logger="stone_mockup"):
            with log_timing(logger, "render piece", level=logging.INFO, warn_after=60.0):
                pass
        assert caplog.records[-1].levelno == logging.INFO


class TestTimedDecorator:
    """Tests for timed decorator."""

    def test_function_executed(self):
        """Test the wrapped function runs and returns."""
        @timed()
        def area(width, height):
            return width * height

        assert area(24, 4) == 96

    def test_preserves_function_name(self):
        """Test functools.wraps metadata."""
        @timed(operation="encode")
        def encode_png():
            """Encode."""

        assert encode_png.__name__ == "encode_png"
        assert encode_png.__doc__ == "Encode."


class TestLogContext:
    """Tests for LogContext."""

    def test_fields_added_to_records(self):
        """Test handler output carries context fields inside the block only."""
        stream = StringIO()
        logger = setup_logging(console=False)
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        child = logging.getLogger("stone_mockup.export.pipeline")
        with LogContext(export_id="job-1"):
            child.info("inside")
        child.info("outside")

        inside, outside = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert inside["export_id"] == "job-1"
        assert "export_id" not in outside

    def test_context_current(self):
        """Test nesting restores the previous context."""
        assert LogContext.current() is None
        with LogContext(project="Kitchen") as outer:
            assert LogContext.current() is outer
            with LogContext(export_id="x") as inner:
                assert LogContext.current() is inner
            assert LogContext.current() is outer
        assert LogContext.current() is None


class TestConfigureDefaultLogging:
    """Tests for configure_default_logging."""

    def test_info_level_default(self):
        assert configure_default_logging().level == logging.INFO

    def test_debug_level_verbose(self):
        assert configure_default_logging(verbose=True).level == logging.DEBUG
