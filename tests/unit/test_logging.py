from __future__ import annotations

import json
import logging

from rakit.utils.logger import StructuredJSONFormatter, get_logger, logging_context


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _capture(name: str) -> _ListHandler:
    handler = _ListHandler()
    target = logging.getLogger(name)
    target.addHandler(handler)
    target.setLevel(logging.INFO)
    return handler


def test_logging_context_fields_are_rendered_and_released():
    handler = _capture("rakit.tests.context")
    logger = get_logger("rakit.tests.context")
    formatter = StructuredJSONFormatter()

    with logging_context(request_id="abc123", path="/api/cabinets"):
        logger.info("inside", event="rakit.test.inside", cabinet_id=3)
    logger.info("outside")

    inside = json.loads(formatter.format(handler.records[0]))
    assert inside["request_id"] == "abc123"
    assert inside["path"] == "/api/cabinets"
    assert inside["event"] == "rakit.test.inside"
    assert inside["cabinet_id"] == 3

    outside = json.loads(formatter.format(handler.records[1]))
    assert "request_id" not in outside
    assert outside["message"] == "outside"


def test_nested_context_restores_outer_values():
    handler = _capture("rakit.tests.nested")
    logger = get_logger("rakit.tests.nested")
    formatter = StructuredJSONFormatter()

    with logging_context(request_id="outer"):
        with logging_context(request_id="inner", method="GET"):
            logger.info("nested")
        logger.info("after")

    nested, after = (json.loads(formatter.format(r)) for r in handler.records)
    assert nested["request_id"] == "inner"
    assert nested["method"] == "GET"
    assert after["request_id"] == "outer"
    assert "method" not in after
