import logging

import pytest

from app.core.logging import (
    COMPONENT_LOGGERS,
    LOG_FORMAT,
    ScanSessionFilter,
    scan_session_id,
    setup_logging,
)


def _record(msg: str = "scan %s") -> logging.LogRecord:
    return logging.LogRecord("assetscan.session", logging.INFO, __file__, 1, msg, ("EQP-1",), None)


def test_record_carries_bound_scan_session():
    record = _record()
    token = scan_session_id.set("abc123")
    try:
        assert ScanSessionFilter().filter(record)
    finally:
        scan_session_id.reset(token)

    line = logging.Formatter(LOG_FORMAT).format(record)
    assert "assetscan.session [scan=abc123] scan EQP-1" in line


def test_record_without_session_gets_placeholder():
    record = _record()

    ScanSessionFilter().filter(record)

    assert record.scan_session == "-"


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_setup_logging_layout(restore_root_logging):
    setup_logging("debug")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert any(isinstance(f, ScanSessionFilter) for f in root.handlers[0].filters)
    assert logging.getLogger("assetscan").level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    for name in COMPONENT_LOGGERS:
        child = logging.getLogger(name)
        assert child.getEffectiveLevel() == logging.DEBUG
        assert child.propagate
