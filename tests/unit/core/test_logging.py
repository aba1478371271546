"""
Tests for logging helpers.
"""

import io
import json
import logging

import pytest
import structlog

from openiron.core.logging import LIBRARY_LOGGER, configure_logging, get_logger, layer_context


@pytest.fixture
def log_stream():
    """Route OpenIron logs as JSON into a buffer; restore the logger afterwards."""
    library_logger = logging.getLogger(LIBRARY_LOGGER)
    level = library_logger.level
    stream = io.StringIO()
    configure_logging(level="DEBUG", json_output=True, stream=stream)
    yield stream
    for handler in list(library_logger.handlers):
        library_logger.removeHandler(handler)
    library_logger.setLevel(level)
    library_logger.propagate = True


def read_lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestLayerContext:
    """Tests for layer_context."""

    def test_binds_and_unbinds(self):
        with layer_context("bracket", 17):
            bound = structlog.contextvars.get_contextvars()
            assert bound["mesh"] == "bracket"
            assert bound["layer"] == 17
        assert "mesh" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_structlog_event_carries_layer(self, log_stream):
        with layer_context("bracket", 3):
            get_logger("openiron.slicing.ironing").info("ironing_layer_assembled", segments=5)

        (line,) = read_lines(log_stream)
        assert line["event"] == "ironing_layer_assembled"
        assert line["segments"] == 5
        assert line["mesh"] == "bracket"
        assert line["layer"] == 3
        assert line["level"] == "info"
        assert line["logger"] == "openiron.slicing.ironing"

    def test_stdlib_record_carries_layer(self, log_stream):
        with layer_context("bracket", 4):
            logging.getLogger("openiron.slicing.path_order").debug(
                "Assembled %d ironing segments", 7,
            )

        (line,) = read_lines(log_stream)
        assert line["event"] == "Assembled 7 ironing segments"
        assert line["mesh"] == "bracket"
        assert line["layer"] == 4
        assert line["level"] == "debug"

    def test_level_filters_events(self, log_stream):
        configure_logging(level="WARNING", json_output=True, stream=log_stream)
        get_logger("openiron.pipeline").info("pipeline_started")
        get_logger("openiron.pipeline").warning("pipeline_cancelled")

        assert [line["event"] for line in read_lines(log_stream)] == ["pipeline_cancelled"]

    def test_reconfigure_replaces_handler(self, log_stream):
        configure_logging(level="DEBUG", json_output=True, stream=log_stream)
        assert len(logging.getLogger(LIBRARY_LOGGER).handlers) == 1

    def test_root_logger_untouched(self, log_stream):
        root_handlers = list(logging.getLogger().handlers)
        configure_logging(level="DEBUG", stream=log_stream)
        assert logging.getLogger().handlers == root_handlers
        assert logging.getLogger(LIBRARY_LOGGER).propagate is False
