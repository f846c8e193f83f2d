"""Tests for the loguru setup."""

import logging
from types import SimpleNamespace

from otterhound.log.logging import DatadogSink, InterceptHandler, LogSettings, logger
from otterhound.middleware.correlation import correlation_scope


def test_records_carry_correlation_id(captured_logs):
    logger.info("outside")
    with correlation_scope("push:evt_1"):
        logger.info("inside", event_type="checkout.session.completed")

    outside, inside = captured_logs[-2:]
    assert outside["extra"]["correlation_id"] == "-"
    assert inside["extra"]["correlation_id"] == "push:evt_1"
    assert inside["extra"]["event_type"] == "checkout.session.completed"


def test_explicit_correlation_id_wins(captured_logs):
    with correlation_scope("push:evt_1"):
        logger.bind(correlation_id="manual").info("bound")

    assert captured_logs[-1]["extra"]["correlation_id"] == "manual"


def test_standard_logging_is_intercepted(captured_logs):
    std_logger = logging.getLogger("otterhound.tests.intercept")
    std_logger.addHandler(InterceptHandler())
    std_logger.setLevel(logging.INFO)
    std_logger.propagate = False

    std_logger.warning("from the standard library")

    record = captured_logs[-1]
    assert record["message"] == "from the standard library"
    assert record["level"].name == "WARNING"


def test_datadog_item_includes_extra_fields():
    sink = DatadogSink(LogSettings(
        environment="test",
        service="otterhound",
        hostname="host-1",
        level="INFO",
        datadog_level="ERROR",
        datadog_api_key="key",
    ))
    record = {
        "level": SimpleNamespace(name="ERROR"),
        "message": "Error handling event",
        "extra": {"correlation_id": "poll:evt_2", "status_code": 503},
    }

    item = sink.build_item(record)

    assert item.message == "Error handling event"
    assert item.service == "otterhound"
    assert item.ddtags == "level:ERROR,env:test"
    assert item["status_code"] == "503"


def test_datadog_item_renames_fields_it_sets_itself():
    sink = DatadogSink(LogSettings(
        environment="test",
        service="otterhound",
        hostname="host-1",
        level="INFO",
        datadog_level="INFO",
        datadog_api_key="key",
    ))
    record = {
        "level": SimpleNamespace(name="INFO"),
        "message": "Application startup complete",
        "extra": {"status": "running", "service": "other", "event": "service_ready"},
    }

    item = sink.build_item(record)

    assert item.status == "INFO"
    assert item.service == "otterhound"
    assert item["extra_status"] == "running"
    assert item["extra_service"] == "other"
    assert item["event"] == "service_ready"
