"""Tests for the batch scheduler."""

import asyncio

from subflow.core.translation.cancellation import CancellationToken
from subflow.core.translation.models import BackendResponse, TokenUsage
from subflow.core.translation.pipeline.batch_scheduler import (
    BatchScheduler,
    SchedulerConfig,
    split_into_batches,
)
from subflow.core.translation.pipeline.prompt_engine import PromptItem

from fakes import FakeBackendClient, answer, request_items


def items(n):
    return [PromptItem(id=str(i), text=f"line {i}") for i in range(1, n + 1)]


def config(**overrides):
    values = dict(
        provider="openai",
        model="gpt-4o-mini",
        api_key="sk-test",
        source_lang="en",
        target_lang="fr",
    )
    values.update(overrides)
    return SchedulerConfig(**values)


def fail_batch_containing(cue_id, response):
    def handler(index, requested, request):
        if any(item["id"] == cue_id for item in requested):
            return response
        return None
    return handler


class TestSplitIntoBatches:
    def test_ceil_sized_contiguous_batches(self):
        assert split_into_batches(list(range(10)), 3) == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]

    def test_no_splitting(self):
        assert split_into_batches([1, 2, 3], 1) == [[1, 2, 3]]
        assert split_into_batches([1, 2, 3], 0) == [[1, 2, 3]]

    def test_more_batches_than_items(self):
        assert split_into_batches([1, 2], 5) == [[1], [2]]


class TestBatchScheduler:
    def test_results_are_in_input_order_regardless_of_completion_order(self):
        class ReversedDelayClient(FakeBackendClient):
            async def call(self, request, token=None):
                first_id = int(request_items(request)[0]["id"])
                await asyncio.sleep(0.05 if first_id == 1 else 0)
                return await super().call(request, token)

        client = ReversedDelayClient()
        result = asyncio.run(
            BatchScheduler(client).run(items(6), config(batch_count=3, batch_concurrency=3))
        )

        assert result.ok
        assert [c.id for c in result.cues] == ["1", "2", "3", "4", "5", "6"]
        assert result.total_batches == 3
        assert result.usage.total_tokens == 45

    def test_concurrency_is_bounded(self):
        client = FakeBackendClient(delay=0.02)
        result = asyncio.run(
            BatchScheduler(client).run(items(10), config(batch_count=5, batch_concurrency=2))
        )

        assert result.ok
        assert client.call_count == 5
        assert client.max_active == 2

    def test_progress_is_reported_per_batch(self):
        events = []
        asyncio.run(
            BatchScheduler(FakeBackendClient()).run(
                items(4),
                config(batch_count=2, batch_concurrency=1, progress_start=40, progress_end=80),
                on_progress=events.append,
            )
        )

        assert [(e.progress, e.current_batch, e.total_batches) for e in events] == [
            (60, 1, 2),
            (80, 2, 2),
        ]

    def test_strict_mode_fails_on_truncation(self):
        truncated = BackendResponse(
            content='{"cues": [',
            truncated=True,
            finish_reason="length",
            usage=TokenUsage(prompt_tokens=3, completion_tokens=4),
        )
        client = FakeBackendClient(handler=fail_batch_containing("5", truncated))
        result = asyncio.run(
            BatchScheduler(client).run(items(9), config(batch_count=3, batch_concurrency=1))
        )

        assert result.error == "Batch 2/3: Response truncated (increase batch count)"
        assert result.truncated is True
        assert result.cues == []
        assert result.usage.total_tokens == 15 + 7 + 15

    def test_strict_mode_reports_first_error_in_batch_order(self):
        def handler(index, requested, request):
            ids = [item["id"] for item in requested]
            if "1" in ids:
                return BackendResponse(error="rate limited")
            if "3" in ids:
                return BackendResponse(content="")
            return None

        result = asyncio.run(
            BatchScheduler(FakeBackendClient(handler=handler)).run(
                items(4), config(batch_count=2, batch_concurrency=2)
            )
        )

        assert result.error == "Batch 1/2 failed: rate limited"
        assert result.batch_errors == ["Batch 1/2 failed: rate limited"]

    def test_empty_content_and_parse_failures(self):
        empty = FakeBackendClient(handler=lambda i, r, q: BackendResponse(content="  "))
        garbage = FakeBackendClient(handler=lambda i, r, q: BackendResponse(content="sorry, no"))

        empty_result = asyncio.run(BatchScheduler(empty).run(items(2), config()))
        garbage_result = asyncio.run(BatchScheduler(garbage).run(items(2), config()))

        assert empty_result.error == "Batch 1/1: openai returned empty content"
        assert garbage_result.error.startswith("Batch 1/1: Failed to parse openai response")

    def test_partial_mode_collects_failed_ids(self):
        client = FakeBackendClient(
            handler=fail_batch_containing("3", BackendResponse(error="boom"))
        )
        result = asyncio.run(
            BatchScheduler(client).run(
                items(6), config(batch_count=3, batch_concurrency=2, allow_partial=True)
            )
        )

        assert result.error is None
        assert [c.id for c in result.cues] == ["1", "2", "5", "6"]
        assert result.failed_ids == ["3", "4"]
        assert result.batch_errors == ["Batch 2/3 failed: boom"]

    def test_unknown_and_missing_ids(self):
        def handler(index, requested, request):
            return answer([{"id": "1", "text": "a"}, {"id": "99", "text": "x"}])

        result = asyncio.run(
            BatchScheduler(FakeBackendClient(handler=handler)).run(items(2), config())
        )

        assert result.ok
        assert [c.id for c in result.cues] == ["1"]
        assert result.failed_ids == ["2"]

    def test_cancelled_before_start_makes_no_calls(self):
        token = CancellationToken()
        token.cancel()
        client = FakeBackendClient()

        result = asyncio.run(BatchScheduler(client).run(items(4), config(batch_count=2), token=token))

        assert result.cancelled
        assert result.error == "Translation cancelled"
        assert client.call_count == 0

    def test_cancellation_stops_scheduling_new_batches(self):
        token = CancellationToken()

        def handler(index, requested, request):
            token.cancel("user")
            return None

        client = FakeBackendClient(handler=handler)
        result = asyncio.run(
            BatchScheduler(client).run(
                items(8), config(batch_count=4, batch_concurrency=1), token=token
            )
        )

        assert result.cancelled
        assert client.call_count == 1

    def test_backend_cancellation_message_counts_as_cancelled(self):
        client = FakeBackendClient(handler=lambda i, r, q: BackendResponse(error="Request cancelled"))
        result = asyncio.run(BatchScheduler(client).run(items(2), config()))
        assert result.cancelled

    def test_worker_exception_is_terminal_even_in_partial_mode(self):
        def handler(index, requested, request):
            raise RuntimeError("socket exploded")

        result = asyncio.run(
            BatchScheduler(FakeBackendClient(handler=handler)).run(
                items(2), config(allow_partial=True)
            )
        )

        assert result.worker_failure
        assert result.error == "Batch worker failed: socket exploded"

    def test_empty_input(self):
        client = FakeBackendClient()
        result = asyncio.run(BatchScheduler(client).run([], config()))
        assert result.ok
        assert client.call_count == 0
