"""Tests for multi-model orchestration and the job registry."""

import asyncio

from subflow.core.translation.cancellation import CancellationToken
from subflow.core.translation.models import BackendResponse, PipelineStatus
from subflow.core.translation.orchestrator import (
    JobStatus,
    ModelJobEntry,
    MultiModelOptions,
    MultiModelOrchestrator,
    TranslationJobRegistry,
)

from fakes import FakeBackendClient

ENTRIES = [
    ModelJobEntry(model_job_id="job-a", provider="openai", model="good"),
    ModelJobEntry(model_job_id="job-b", provider="openai", model="bad"),
    ModelJobEntry(model_job_id="job-c", provider="anthropic", model="good"),
]


def failing_model_handler(index, requested, request):
    if request.model == "bad":
        return BackendResponse(error="model not found")
    return None


class TestMultiModelOrchestrator:
    def test_jobs_settle_independently(self, build_pipeline, subtitle_file, dialogue_cues):
        pipeline, client, _ = build_pipeline(
            dialogue_cues, client=FakeBackendClient(handler=failing_model_handler)
        )
        cancelled = CancellationToken("job-c")
        cancelled.cancel()
        completed, errors, progress = [], [], []

        async def on_complete(job_id, result):
            await asyncio.sleep(0)
            completed.append(job_id)

        options = MultiModelOptions(
            batch_count=2,
            signal_by_model_job_id={"job-c": cancelled},
            on_model_progress=lambda job_id, info: progress.append((job_id, info.progress)),
            on_model_complete=on_complete,
            on_model_error=lambda job_id, error: errors.append((job_id, str(error))),
        )

        results = asyncio.run(
            MultiModelOrchestrator(pipeline).translate_multi_model(
                subtitle_file, ENTRIES, "en", "fr", options
            )
        )

        assert set(results) == {"job-a", "job-b", "job-c"}
        assert results["job-a"].success
        assert results["job-b"].status == PipelineStatus.ERROR
        assert results["job-b"].error == "Batch 1/2 failed: model not found"
        assert results["job-c"].cancelled
        assert completed == ["job-a"]
        assert errors == [("job-b", "Batch 1/2 failed: model not found")]
        assert ("job-a", 100) in progress
        assert all(job_id != "job-c" for job_id, _ in progress)

    def test_sync_complete_callback(self, build_pipeline, subtitle_file, dialogue_cues):
        pipeline, _, _ = build_pipeline(dialogue_cues)
        completed = []

        results = asyncio.run(
            MultiModelOrchestrator(pipeline).translate_multi_model(
                subtitle_file,
                ENTRIES[:1],
                "en",
                "fr",
                MultiModelOptions(on_model_complete=lambda job_id, result: completed.append(job_id)),
            )
        )

        assert results["job-a"].success
        assert completed == ["job-a"]

    def test_exception_becomes_error_result(self, build_pipeline, subtitle_file, dialogue_cues):
        pipeline, _, _ = build_pipeline(dialogue_cues)
        original = pipeline.translate

        async def translate(file, provider, model, *args, **kwargs):
            if model == "bad":
                raise RuntimeError("pipeline crashed")
            return await original(file, provider, model, *args, **kwargs)

        pipeline.translate = translate
        errors = []

        results = asyncio.run(
            MultiModelOrchestrator(pipeline).translate_multi_model(
                subtitle_file,
                ENTRIES[:2],
                "en",
                "fr",
                MultiModelOptions(on_model_error=lambda job_id, error: errors.append(job_id)),
            )
        )

        assert results["job-a"].success
        assert results["job-b"].error == "pipeline crashed"
        assert errors == ["job-b"]

    def test_registry_cancels_a_single_job(self, build_pipeline, subtitle_file, dialogue_cues):
        pipeline, _, _ = build_pipeline(dialogue_cues)
        registry = TranslationJobRegistry()
        registry.register("job-c")
        registry.cancel("job-c")

        results = asyncio.run(
            MultiModelOrchestrator(pipeline).translate_multi_model(
                subtitle_file,
                [ENTRIES[0], ENTRIES[2]],
                "en",
                "fr",
                MultiModelOptions(registry=registry),
            )
        )

        assert results["job-a"].success
        assert results["job-c"].cancelled
        assert registry.status("job-a") == JobStatus.COMPLETED
        assert registry.status("job-c") == JobStatus.CANCELLED
        assert registry.active_jobs() == []


class TestTranslationJobRegistry:
    def test_register_is_idempotent(self):
        registry = TranslationJobRegistry()
        assert registry.register("a") is registry.register("a")
        assert registry.token_for("a") is not None
        assert registry.token_for("missing") is None

    def test_cancel_unknown_job(self):
        assert TranslationJobRegistry().cancel("missing") is False

    def test_cancel_all_only_touches_running_jobs(self):
        registry = TranslationJobRegistry()
        running = registry.register("a")
        finished = registry.register("b")
        registry.mark("b", JobStatus.COMPLETED)

        assert registry.cancel_all() == 1
        assert running.cancelled
        assert not finished.cancelled

    def test_remove(self):
        registry = TranslationJobRegistry()
        registry.register("a")
        registry.remove("a")
        assert registry.status("a") is None
        assert registry.token_for("a") is None
