"""Multi-model orchestrator.

Runs the per-file pipeline once per selected model, concurrently, with an
independent cancellation token per model job. Results are delivered through
callbacks as each job settles.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from subflow.config import settings
from .cancellation import CancellationToken
from .errors import TranslationError
from .models.cue import SubtitleFile
from .models.result import BatchProgressInfo, PipelineResult
from .pipeline.pipeline import SubtitleTranslationPipeline, TranslateOptions

logger = logging.getLogger(__name__)

ModelProgressCallback = Callable[[str, BatchProgressInfo], None]
ModelCompleteCallback = Callable[[str, PipelineResult], Union[None, Awaitable[None]]]
ModelErrorCallback = Callable[[str, Exception], None]


class JobStatus(str, Enum):
    """Lifecycle of a registered model job."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TranslationJobRegistry:
    """Cancellation tokens and status of running model jobs.

    Owned by the caller and passed to the orchestrator explicitly, so that a
    UI or API layer can cancel a single model job while its siblings continue.
    """

    def __init__(self):
        self._tokens: Dict[str, CancellationToken] = {}
        self._status: Dict[str, JobStatus] = {}

    def register(self, job_id: str) -> CancellationToken:
        """Get the token for a job, creating it on first use."""
        token = self._tokens.get(job_id)
        if token is None:
            token = CancellationToken(name=job_id)
            self._tokens[job_id] = token
        self._status[job_id] = JobStatus.RUNNING
        return token

    def token_for(self, job_id: str) -> Optional[CancellationToken]:
        return self._tokens.get(job_id)

    def status(self, job_id: str) -> Optional[JobStatus]:
        return self._status.get(job_id)

    def mark(self, job_id: str, status: JobStatus) -> None:
        if job_id in self._tokens:
            self._status[job_id] = status

    def cancel(self, job_id: str, reason: str = "cancelled by user") -> bool:
        """Cancel one job.

        Returns:
            True if the job was known
        """
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    def cancel_all(self, reason: str = "cancelled by user") -> int:
        """Cancel every running job and return how many were cancelled."""
        count = 0
        for job_id, token in self._tokens.items():
            if self._status.get(job_id) == JobStatus.RUNNING:
                token.cancel(reason)
                count += 1
        return count

    def remove(self, job_id: str) -> None:
        self._tokens.pop(job_id, None)
        self._status.pop(job_id, None)

    def active_jobs(self) -> List[str]:
        return [job_id for job_id, status in self._status.items() if status == JobStatus.RUNNING]


@dataclass(frozen=True)
class ModelJobEntry:
    """One model selection of a multi-model run."""

    model_job_id: str
    provider: str
    model: str


@dataclass
class MultiModelOptions:
    """Options shared by every model job of a run."""

    batch_count: int = field(default_factory=lambda: settings.default_batch_count)
    batch_concurrency: int = field(default_factory=lambda: settings.default_batch_concurrency)
    run_id: Optional[str] = None
    signal_by_model_job_id: Dict[str, CancellationToken] = field(default_factory=dict)
    registry: Optional[TranslationJobRegistry] = None
    on_model_progress: Optional[ModelProgressCallback] = None
    on_model_complete: Optional[ModelCompleteCallback] = None
    on_model_error: Optional[ModelErrorCallback] = None


class MultiModelOrchestrator:
    """Translates one file with several models in parallel."""

    def __init__(self, pipeline: SubtitleTranslationPipeline):
        """Initialize the orchestrator.

        Args:
            pipeline: Per-file pipeline shared by every model job
        """
        self.pipeline = pipeline

    async def translate_multi_model(
        self,
        file: SubtitleFile,
        entries: Sequence[ModelJobEntry],
        source_lang: str,
        target_lang: str,
        options: Optional[MultiModelOptions] = None,
    ) -> Dict[str, PipelineResult]:
        """Run the pipeline once per model job.

        A failing or cancelled job never affects its siblings.

        Args:
            file: Subtitle file to translate
            entries: Model jobs to run
            source_lang: Source language code
            target_lang: Target language code
            options: Callbacks, cancellation tokens and batching options

        Returns:
            Results keyed by model job id, once every job has settled
        """
        options = options or MultiModelOptions()
        results: Dict[str, PipelineResult] = {}

        logger.info(
            f"[Multi-Model] Starting {len(entries)} job(s) for {file.name or file.path} "
            f"(run_id={options.run_id or 'n/a'})"
        )

        await asyncio.gather(
            *(
                self._run_job(file, entry, source_lang, target_lang, options, results)
                for entry in entries
            ),
            return_exceptions=True,
        )

        succeeded = sum(1 for result in results.values() if result.success)
        logger.info(f"[Multi-Model] Finished: {succeeded}/{len(entries)} job(s) succeeded")
        return results

    def _token_for(self, entry: ModelJobEntry, options: MultiModelOptions) -> CancellationToken:
        token = options.signal_by_model_job_id.get(entry.model_job_id)
        if token is not None:
            return token
        if options.registry is not None:
            return options.registry.register(entry.model_job_id)
        return CancellationToken(name=entry.model_job_id)

    async def _run_job(
        self,
        file: SubtitleFile,
        entry: ModelJobEntry,
        source_lang: str,
        target_lang: str,
        options: MultiModelOptions,
        results: Dict[str, PipelineResult],
    ) -> PipelineResult:
        job_id = entry.model_job_id
        token = self._token_for(entry, options)
        registry = options.registry

        def on_progress(info: BatchProgressInfo) -> None:
            if options.on_model_progress is not None:
                options.on_model_progress(job_id, info)

        try:
            result = await self.pipeline.translate(
                file,
                entry.provider,
                entry.model,
                source_lang,
                target_lang,
                TranslateOptions(
                    batch_count=options.batch_count,
                    batch_concurrency=options.batch_concurrency,
                    token=token,
                    on_progress=on_progress,
                    run_id=options.run_id,
                    log_context={"model_job_id": job_id},
                ),
            )
            results[job_id] = result

            if result.success:
                if registry is not None:
                    registry.mark(job_id, JobStatus.COMPLETED)
                if options.on_model_complete is not None:
                    await _maybe_await(options.on_model_complete(job_id, result))
            elif result.cancelled:
                if registry is not None:
                    registry.mark(job_id, JobStatus.CANCELLED)
                logger.info(f"[Multi-Model] Job {job_id} cancelled")
            else:
                if registry is not None:
                    registry.mark(job_id, JobStatus.FAILED)
                logger.warning(f"[Multi-Model] Job {job_id} failed: {result.error}")
                if options.on_model_error is not None:
                    options.on_model_error(
                        job_id, TranslationError(result.error or "Translation failed")
                    )
            return result

        except Exception as e:
            logger.error(f"[Multi-Model] Job {job_id} raised: {e}", exc_info=True)
            failed = PipelineResult.failed(file, str(e) or type(e).__name__)
            results[job_id] = failed
            if registry is not None:
                registry.mark(job_id, JobStatus.CANCELLED if token.cancelled else JobStatus.FAILED)
            if not token.cancelled and options.on_model_error is not None:
                options.on_model_error(job_id, e)
            return failed


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value
