"""Tests for structured logging and operation timing."""

import asyncio
import logging

import pytest

from og_pipeline.core.observability import (
    LogContext,
    MetricsCollector,
    StructuredLogger,
    timed_operation,
)


class Worker:
    def __init__(self):
        self.metrics = MetricsCollector()

    @timed_operation("render", lambda self: self.metrics)
    async def render(self, fail=False):
        if fail:
            raise ValueError("boom")
        return b"png"

    @timed_operation("measure", lambda self: self.metrics)
    def measure(self):
        return 42


def test_structured_logger_format(caplog):
    logger = StructuredLogger("og-pipeline.test-structured")
    logger._logger.propagate = True
    context = LogContext(correlation_id="c1", operation="upload").with_metadata(item_id="a")

    with caplog.at_level(logging.INFO, logger="og-pipeline.test-structured"):
        logger.info("Published", context, uploaded=True)

    assert "[upload] [c1] Published (item_id=a, uploaded=True)" in caplog.text


def test_context_copies_are_independent():
    base = LogContext(operation="run")
    derived = base.with_metadata(item_id="a").with_operation("render")
    assert base.metadata == {}
    assert derived.operation == "render"
    assert derived.correlation_id == base.correlation_id


def test_timed_async_operation_records_success_and_failure():
    worker = Worker()

    assert asyncio.run(worker.render()) == b"png"
    with pytest.raises(ValueError):
        asyncio.run(worker.render(fail=True))

    summary = worker.metrics.get_summary("render")
    assert summary["total_operations"] == 2
    assert summary["successful_operations"] == 1
    assert summary["success_rate"] == 0.5
    failed = [m for m in worker.metrics.get_metrics("render") if not m.success]
    assert failed[0].error_message == "boom"


def test_timed_sync_operation():
    worker = Worker()
    assert worker.measure() == 42
    assert len(worker.metrics.get_metrics("measure")) == 1
    assert worker.metrics.get_summary("missing") == {}
