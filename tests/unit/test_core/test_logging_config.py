"""
Unit tests for spectrack.core.logging_config module.
"""

import io
import json
import logging

from spectrack.core.logging_config import (
    ROOT_LOGGER_NAME,
    configure_logging,
    get_request_id,
    request_context,
)


class TestConfigureLogging:
    def test_structured_lines_carry_request_id_and_extra(self):
        stream = io.StringIO()
        configure_logging("INFO", structured=True, stream=stream)
        with request_context("cli_123456789abc"):
            logging.getLogger("spectrack.core.snapshot").info("Snapshot created", extra={"files": 4})

        entry = json.loads(stream.getvalue().strip())
        assert entry["message"] == "Snapshot created"
        assert entry["level"] == "INFO"
        assert entry["request_id"] == "cli_123456789abc"
        assert entry["extra"] == {"files": 4}

    def test_repeated_calls_replace_handler(self):
        configure_logging("INFO", stream=io.StringIO())
        configure_logging("DEBUG", stream=io.StringIO())
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        ours = [h for h in package_logger.handlers if getattr(h, "_spectrack_handler", False)]
        assert len(ours) == 1
        assert package_logger.level == logging.DEBUG

    def test_plain_text_format(self):
        stream = io.StringIO()
        configure_logging("WARNING", structured=False, stream=stream)
        logger = logging.getLogger("spectrack.core.registry")
        logger.info("hidden")
        logger.warning("shown")
        output = stream.getvalue()
        assert "hidden" not in output
        assert "WARNING - [-] shown" in output


class TestRequestContext:
    def test_context_is_restored(self):
        assert get_request_id() == ""
        with request_context("outer"):
            with request_context("inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"
        assert get_request_id() == ""
