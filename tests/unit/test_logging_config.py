"""
Unit Tests for logging configuration
"""
import json
import logging

from streetwise.config import StreetwiseConfig
from streetwise.logging_config import (
    ContextualFormatter,
    JSONFormatter,
    StreetwiseLogger,
    set_report_id,
    set_view_id,
    setup_logging,
)


def make_record(message="hello", **extra):
    record = logging.LogRecord("streetwise", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_includes_context_and_extras(self):
        set_view_id("ab12cd34")
        set_report_id(12)
        try:
            data = json.loads(JSONFormatter().format(make_record(poller="active-feed")))
        finally:
            set_view_id("")
            set_report_id(None)

        assert data["message"] == "hello"
        assert data["view_id"] == "ab12cd34"
        assert data["report_id"] == "12"
        assert data["poller"] == "active-feed"

    def test_contextual_formatter_placeholders(self):
        formatter = ContextualFormatter("[%(view_id)s] [%(report_id)s] %(message)s")

        assert formatter.format(make_record()) == "[-] [-] hello"


class TestSetup:

    def test_setup_returns_custom_logger(self, tmp_path):
        log_file = tmp_path / "logs" / "streetwise.log"
        named = setup_logging(StreetwiseConfig(log_level="debug", log_file=str(log_file)))

        assert isinstance(named, StreetwiseLogger)
        assert named.level == logging.DEBUG
        assert len(named.handlers) == 2

        named.log_poll("active-feed", 3, 1.5)
        for handler in named.handlers:
            handler.flush()
        assert "Poll active-feed: 3 items" in log_file.read_text()

        for handler in list(named.handlers):
            handler.close()
            named.removeHandler(handler)

    def test_verbose_forces_debug(self):
        named = setup_logging(StreetwiseConfig(verbose=True, log_level="ERROR"))

        assert named.level == logging.DEBUG
        named.handlers.clear()
