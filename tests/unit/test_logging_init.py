from __future__ import annotations

import logging
import sys

from stats_import.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME == "stats_import"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent_and_debug_lowers_level():
    first = setup_logging()
    again = setup_logging(debug=True)
    assert first is again
    assert len(again.handlers) == 1
    assert again.level == logging.DEBUG
    assert get_logger() is first


def test_labeled_prefixes(capsys):
    setup_logging()
    child = logging.getLogger("stats_import.services.pipeline")
    child.info("analyzed")
    child.warning("careful")
    child.error("boom")
    log_summary("file=a.xlsx months=1")
    child.debug("hidden")
    out = capsys.readouterr().out.splitlines()
    assert out == ["INFO analyzed", "WARN careful", "ERROR boom", "SUMMARY file=a.xlsx months=1"]


def test_formatter_includes_exception():
    formatter = LabeledFormatter()
    try:
        raise ValueError("bad cell")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    text = formatter.format(record)
    assert text.startswith("ERROR failed\n")
    assert "ValueError: bad cell" in text
    assert SUMMARY_LEVEL == 25
