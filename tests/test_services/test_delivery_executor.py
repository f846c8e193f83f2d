"""Tests for fire-and-forget event delivery."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from otterhound.core.exceptions import IdempotencyMiss, ParseError, StorageError, UpstreamError
from otterhound.middleware.correlation import correlation_scope, get_correlation_id
from otterhound.services.delivery_executor import DeliveryExecutor


@pytest.fixture
def router():
    router = MagicMock()
    router.route = AsyncMock(return_value=None)
    return router


def records_with_message(records, message):
    return [record for record in records if record["message"] == message]


class TestSubmit:
    """Tests for DeliveryExecutor.submit."""

    async def test_returns_before_processing(self, router, event_factory):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_route(event):
            started.set()
            await release.wait()

        router.route.side_effect = slow_route
        executor = DeliveryExecutor(router)

        task = executor.submit(event_factory(), source="push")

        assert not task.done()
        assert executor.inflight == 1
        await started.wait()
        release.set()
        await task
        assert executor.inflight == 0

    async def test_success_is_logged_at_info(self, router, event_factory, captured_logs):
        executor = DeliveryExecutor(router)

        await executor.submit(event_factory(), source="push")

        router.route.assert_awaited_once()
        handled = records_with_message(captured_logs, "Event handled")
        assert handled and handled[0]["level"].name == "INFO"

    async def test_idempotency_miss_is_logged_at_warning(self, router, event_factory, captured_logs):
        router.route.side_effect = IdempotencyMiss("cs_1")
        executor = DeliveryExecutor(router)

        task = executor.submit(event_factory(), source="poll")
        await task

        assert task.exception() is None
        skipped = records_with_message(captured_logs, "Event already applied, skipping")
        assert skipped[0]["level"].name == "WARNING"
        assert skipped[0]["extra"]["session_id"] == "cs_1"

    @pytest.mark.parametrize("error", [
        ParseError("Failed to parse checkout session"),
        UpstreamError("Received error from API: HTTP 500", status_code=500),
        StorageError("Database operation failed (CONNECTION_LOST)"),
    ])
    async def test_failures_are_logged_at_error(self, router, event_factory, captured_logs, error):
        router.route.side_effect = error
        executor = DeliveryExecutor(router)

        task = executor.submit(event_factory(), source="push")
        await task

        assert task.exception() is None
        failed = records_with_message(captured_logs, "Error handling event")
        assert failed[0]["level"].name == "ERROR"
        assert failed[0]["extra"]["error_type"] == type(error).__name__

    async def test_unexpected_exception_is_contained(self, router, event_factory, captured_logs):
        router.route.side_effect = RuntimeError("bug")
        executor = DeliveryExecutor(router)

        task = executor.submit(event_factory(), source="push")
        await task

        assert task.exception() is None
        failed = records_with_message(captured_logs, "Unexpected error handling event")
        assert failed[0]["level"].name == "ERROR"

    async def test_one_failure_does_not_affect_others(self, router, event_factory):
        async def route(event):
            if event.id == "evt_bad":
                raise UpstreamError("Failed to send request: ConnectError")

        router.route.side_effect = route
        executor = DeliveryExecutor(router)

        tasks = [
            executor.submit(event_factory(event_id="evt_bad"), source="push"),
            executor.submit(event_factory(event_id="evt_good"), source="push"),
        ]
        await asyncio.gather(*tasks)

        assert router.route.await_count == 2
        assert all(task.exception() is None for task in tasks)

    async def test_task_runs_with_its_own_correlation_id(self, router, event_factory):
        seen = {}

        async def route(event):
            seen["correlation_id"] = get_correlation_id()

        router.route.side_effect = route
        executor = DeliveryExecutor(router)

        with correlation_scope("request-1"):
            await executor.submit(event_factory(event_id="evt_42"), source="push")
            assert get_correlation_id() == "request-1"

        assert seen["correlation_id"] == "push:evt_42"

    async def test_events_without_id_get_generated_correlation_id(self, router, event_factory):
        seen = {}

        async def route(event):
            seen["correlation_id"] = get_correlation_id()

        router.route.side_effect = route
        executor = DeliveryExecutor(router)

        await executor.submit(event_factory(event_id=None), source="poll")

        assert seen["correlation_id"].startswith("poll:")
        assert len(seen["correlation_id"]) > len("poll:")


class TestDrain:
    """Tests for DeliveryExecutor.drain."""

    async def test_nothing_inflight(self, router):
        assert await DeliveryExecutor(router).drain(timeout=0.1) == 0

    async def test_waits_for_inflight(self, router, event_factory):
        async def route(event):
            await asyncio.sleep(0.01)

        router.route.side_effect = route
        executor = DeliveryExecutor(router)
        tasks = [executor.submit(event_factory(), source="poll") for _ in range(3)]

        assert await executor.drain(timeout=5) == 0
        assert all(task.done() for task in tasks)
        assert executor.inflight == 0

    async def test_timeout_does_not_cancel(self, router, event_factory):
        release = asyncio.Event()

        async def route(event):
            await release.wait()

        router.route.side_effect = route
        executor = DeliveryExecutor(router)
        task = executor.submit(event_factory(), source="push")

        assert await executor.drain(timeout=0.01) == 1
        assert not task.cancelled()

        release.set()
        await task
        assert executor.inflight == 0
