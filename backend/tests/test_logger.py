import json
import logging

from logpilot.utils.logger import JSONFormatter, get_logger, redact


def _format(**extra):
    record = logging.LogRecord("logpilot.test", logging.INFO, __file__, 1, "Query %s", ("done",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(JSONFormatter().format(record))


def test_formatter_emits_one_json_object():
    entry = _format(turn_id="42", collection="/aws/app", extra={"records": 3})
    assert entry["message"] == "Query done"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "logpilot.test"
    assert entry["turn_id"] == "42"
    assert entry["collection"] == "/aws/app"
    assert entry["extra"] == {"records": 3}
    assert "tool" not in entry


def test_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        import sys
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    entry = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]


def test_get_logger_attaches_single_handler():
    logger = get_logger("logpilot.test.handlers")
    get_logger("logpilot.test.handlers")
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_redact_masks_nested_credentials():
    params = {
        "collectionName": "/aws/app",
        "sessionToken": "abc",
        "fieldFilters": {"apiKey": "k", "level": "ERROR"},
        "items": [{"password": "p"}],
    }
    assert redact(params) == {
        "collectionName": "/aws/app",
        "sessionToken": "***",
        "fieldFilters": {"apiKey": "***", "level": "ERROR"},
        "items": [{"password": "***"}],
    }
