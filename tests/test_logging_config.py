"""Tests for structured event logging."""

import json
import logging

import pytest

from contractrag.analysis import ContractAnalyzer
from contractrag.core.exceptions import InputTooLargeError
from contractrag.knowledge import KnowledgeBase
from contractrag.logging_config import (
    EVENT_LOGGER_NAME,
    AnalysisEventFormatter,
    configure_logging,
    get_event_logger,
    summarize_event_log,
)


@pytest.fixture
def event_logger():
    """Restore the event logger after a test reconfigures it."""
    logger = logging.getLogger(EVENT_LOGGER_NAME)
    yield logger
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class TestFormatter:
    """Tests for AnalysisEventFormatter."""

    def test_json_with_event_fields(self):
        """Known extra fields are copied into the JSON line."""
        record = logging.LogRecord(EVENT_LOGGER_NAME, logging.INFO, __file__, 1, "Analysis completed", None, None)
        record.event = "analysis_completed"
        record.security_score = 3
        record.catalog_size = 8
        record.unrelated = "ignored"

        entry = json.loads(AnalysisEventFormatter().format(record))
        assert entry["event"] == "analysis_completed"
        assert entry["security_score"] == 3
        assert entry["catalog_size"] == 8
        assert entry["message"] == "Analysis completed"
        assert "unrelated" not in entry


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_events_written_to_file(self, event_logger, tmp_path):
        """Catalog and analysis events end up in the log file."""
        log_file = tmp_path / "events.log"
        configure_logging(log_file=str(log_file), enable_console=False)
        assert get_event_logger() is event_logger
        assert event_logger.propagate is False

        kb = KnowledgeBase(enhanced_source=tmp_path / "missing.json")
        analyzer = ContractAnalyzer(kb, max_source_bytes=64)
        analyzer.analyze("contract A {}")
        with pytest.raises(InputTooLargeError):
            analyzer.analyze("x" * 65)

        for handler in event_logger.handlers:
            handler.flush()

        stats = summarize_event_log(str(log_file))
        assert stats["catalog_load_failures"] == 1
        assert stats["analyses"] == 1
        assert stats["rejected_inputs"] == 1

    def test_reconfigure_replaces_handlers(self, event_logger):
        """Calling configure_logging twice does not stack handlers."""
        configure_logging(enable_console=True)
        configure_logging(enable_console=True, log_level="debug")
        assert len(event_logger.handlers) == 1
        assert event_logger.level == logging.DEBUG


class TestSummarizeEventLog:
    """Tests for summarize_event_log."""

    def test_counts_events(self, tmp_path):
        """Each known event increments its counter; junk lines are skipped."""
        lines = [
            {"event": "catalog_loaded"},
            {"event": "catalog_reloaded"},
            {"event": "pattern_dropped"},
            {"event": "pattern_dropped"},
            {"event": "analysis_completed"},
            {"message": "no event"},
        ]
        log_file = tmp_path / "events.log"
        log_file.write_text("\n".join(json.dumps(line) for line in lines) + "\nnot json\n[1, 2]\n")

        stats = summarize_event_log(str(log_file))
        assert stats["catalog_loads"] == 1
        assert stats["reloads"] == 1
        assert stats["dropped_patterns"] == 2
        assert stats["analyses"] == 1
        assert stats["events"] == {
            "catalog_loaded": 1,
            "catalog_reloaded": 1,
            "pattern_dropped": 2,
            "analysis_completed": 1,
        }

    def test_missing_file(self, tmp_path):
        """A missing log yields zero counters."""
        stats = summarize_event_log(str(tmp_path / "nope.log"))
        assert stats["analyses"] == 0
        assert stats["events"] == {}
